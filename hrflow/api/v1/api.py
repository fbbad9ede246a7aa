"""
V1 API router aggregator: wires all endpoint modules together.
"""

from fastapi import APIRouter

from hrflow.api.v1.endpoints import (attendance, auth, cash_advances, health, leave,
                                     liquidations, overtime)

api_router = APIRouter()

# Auth (login, refresh, logout, me)
api_router.include_router(auth.router)

# Attendance sessions and daily totals
api_router.include_router(attendance.router)

# Approval workflows
api_router.include_router(leave.router)
api_router.include_router(overtime.router)
api_router.include_router(cash_advances.router)
api_router.include_router(liquidations.router)

# Liveness
api_router.include_router(health.router)
