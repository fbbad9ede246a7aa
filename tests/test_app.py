"""Smoke tests for application assembly."""

from sqlalchemy.orm import configure_mappers

from hrflow.db.base import Base
from hrflow.main import app, create_app
from hrflow.models.cash_advance import CashAdvance
from hrflow.models.liquidation import Liquidation
from hrflow.models.overtime import OvertimeRequest


def test_mappers_configure():
    configure_mappers()
    for model in (CashAdvance, Liquidation, OvertimeRequest):
        columns = model.__table__.columns
        for level in (1, 2):
            assert f"level{level}_status" in columns
            assert f"level{level}_reviewer_id" in columns
            assert f"level{level}_comment" in columns
    assert {"cash_advances", "liquidations", "overtime_requests"} <= set(Base.metadata.tables)


def test_every_router_is_mounted():
    paths = {route.path for route in create_app().routes}
    for path in (
        "/api/v1/auth/login",
        "/api/v1/attendance/clock-in",
        "/api/v1/leave/requests",
        "/api/v1/overtime/requests",
        "/api/v1/cash-advances",
        "/api/v1/liquidations",
        "/api/v1/health",
    ):
        assert path in paths
    assert app.title
