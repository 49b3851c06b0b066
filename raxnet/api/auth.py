"""Registration, login and token routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from raxnet.api.helpers import client_ip, user_agent
from raxnet.auth import AuthUser
from raxnet.config import settings
from raxnet.content import parse_body, render_response
from raxnet.database import get_db_session
from raxnet.db_models import User
from raxnet.models import (
    AuthResponse,
    ErrorResponse,
    LoginRequest,
    RegisterRequest,
    UserResponse,
    VerifyTokenRequest,
)
from raxnet.rate_limit import limiter
from raxnet.services.activity_logs import log_user_login
from raxnet.services.users import login, register, user_to_dict, verify_token

router = APIRouter()


@router.post(
    "/v1/auth/register",
    response_model=AuthResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_auth)
async def register_user(request: Request, session=Depends(get_db_session)):
    """Create an account. Returns the user and a bearer token."""
    body = await parse_body(request)
    try:
        req = RegisterRequest(**body)
    except ValidationError:
        return render_response(request, {"error": "Invalid request body"}, status_code=400)

    result = await register(
        session,
        req.email,
        req.password,
        req.full_name,
        google_id=req.google_id,
        facebook_id=req.facebook_id,
    )
    return render_response(request, result, status_code=201)


@router.post(
    "/v1/auth/login",
    response_model=AuthResponse,
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_auth)
async def login_user(request: Request, session=Depends(get_db_session)):
    body = await parse_body(request)
    try:
        req = LoginRequest(**body)
    except ValidationError:
        return render_response(request, {"error": "Invalid request body"}, status_code=400)

    result = await login(session, req.email, req.password)
    await log_user_login(session, result["user"]["id"], client_ip(request), user_agent(request))
    return render_response(request, result)


@router.post(
    "/v1/auth/verify",
    response_model=UserResponse,
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_auth)
async def verify(request: Request, session=Depends(get_db_session)):
    """Check a token and return the account it belongs to."""
    body = await parse_body(request)
    try:
        req = VerifyTokenRequest(**body)
    except ValidationError:
        return render_response(request, {"error": "Invalid request body"}, status_code=400)

    return render_response(request, await verify_token(session, req.token))


@router.get("/v1/auth/me", response_model=UserResponse, responses={401: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_read)
async def me(request: Request, user: User = AuthUser):
    return render_response(request, user_to_dict(user))
