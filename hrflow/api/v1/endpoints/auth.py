"""
Auth endpoints: login (OAuth2 password flow), token refresh, logout.
"""

from __future__ import annotations

from fastapi import APIRouter, Cookie, Depends, HTTPException, Request, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrflow.api.v1.deps import get_current_active_employee, get_db
from hrflow.core.config import settings
from hrflow.core.security import (create_access_token, create_refresh_token,
                                  decode_refresh_token, verify_password)
from hrflow.models.employee import Employee
from hrflow.schemas.common import MessageResponse
from hrflow.schemas.employee import EmployeeRead
from hrflow.schemas.token import EmployeeClaims, RefreshRequest, TokenPair

# Rate limiter: keyed by client IP
limiter = Limiter(key_func=get_remote_address)

router = APIRouter(prefix="/auth", tags=["auth"])


def _set_auth_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    response.set_cookie(
        key="access_token",
        value=f"Bearer {access_token}",
        httponly=True,
        secure=settings.COOKIE_SECURE,  # Set to True in HTTPS production
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    response.set_cookie(
        key="refresh_token",
        value=refresh_token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
    )


@router.post("/login", response_model=TokenPair)
@limiter.limit("5/minute")
async def login_for_access_token(
    request: Request,
    response: Response,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
) -> TokenPair:
    """Authenticate with email/password. Tokens are returned and set as HttpOnly cookies."""
    result = await db.execute(
        select(Employee).where(Employee.email == form_data.username.lower().strip())
    )
    employee = result.scalar_one_or_none()

    if employee is None or not verify_password(form_data.password, employee.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not employee.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Employee account is inactive",
        )

    access_token = create_access_token(employee.id)
    refresh_token = create_refresh_token(employee.id)
    _set_auth_cookies(response, access_token, refresh_token)
    return TokenPair(access_token=access_token, refresh_token=refresh_token, employee_id=employee.id)


@router.post("/refresh", response_model=TokenPair)
@limiter.limit("10/minute")
async def refresh_access_token_endpoint(
    response: Response,
    request: Request,
    body: RefreshRequest | None = None,
    refresh_token_cookie: str | None = Cookie(None, alias="refresh_token"),
    db: AsyncSession = Depends(get_db),
) -> TokenPair:
    # Priority: Body > Cookie
    token_str = None
    if body and body.refresh_token:
        token_str = body.refresh_token
    elif refresh_token_cookie:
        token_str = refresh_token_cookie

    if not token_str:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token missing",
        )

    claims = EmployeeClaims.parse(decode_refresh_token(token_str))
    if claims is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
        )

    result = await db.execute(select(Employee).where(Employee.id == claims.sub))
    employee = result.scalar_one_or_none()
    if employee is None or not employee.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Employee not found or inactive",
        )

    new_access = create_access_token(employee.id)
    new_refresh = create_refresh_token(employee.id)
    _set_auth_cookies(response, new_access, new_refresh)
    return TokenPair(access_token=new_access, refresh_token=new_refresh, employee_id=employee.id)


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response) -> MessageResponse:
    """Clear auth cookies and end the session."""
    response.delete_cookie("access_token")
    response.delete_cookie("refresh_token")
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=EmployeeRead)
async def read_current_employee(
    current_employee: Employee = Depends(get_current_active_employee),
) -> Employee:
    """Return the profile of the authenticated employee."""
    return current_employee
