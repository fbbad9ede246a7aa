"""
Position & permission lookup tables.

Managed outside this service; read here to answer capability checks.
"""

from __future__ import annotations

from sqlalchemy import Column, ForeignKey, Integer, String

from hrflow.db.base import Base


class Position(Base):
    __tablename__ = "positions"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    name: str = Column(String(100), unique=True, nullable=False)  # type: ignore[assignment]


class Permission(Base):
    __tablename__ = "permissions"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    key: str = Column(String(100), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    description: str | None = Column(String(255), nullable=True)  # type: ignore[assignment]


class PositionPermission(Base):
    __tablename__ = "position_permissions"

    position_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("positions.id", ondelete="CASCADE"), primary_key=True
    )
    permission_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True
    )
