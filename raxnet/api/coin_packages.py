"""Coin package catalog and purchase routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from raxnet.api.helpers import client_ip
from raxnet.auth import AdminUser, AuthUser
from raxnet.config import settings
from raxnet.content import parse_body, render_response
from raxnet.database import get_db_session
from raxnet.db_models import User
from raxnet.errors import NotFound
from raxnet.models import (
    CoinPackageResponse,
    CreateCoinPackageRequest,
    ErrorResponse,
    PurchaseCoinPackageRequest,
    PurchaseResponse,
    UpdateCoinPackageRequest,
)
from raxnet.rate_limit import limiter
from raxnet.services.activity_logs import log_admin_action, log_transaction
from raxnet.services.coin_packages import (
    create_coin_package,
    deactivate_coin_package,
    get_coin_package_by_id,
    get_coin_packages,
    purchase_coin_package,
    update_coin_package,
)

router = APIRouter()


@router.get("/v1/coin-packages")
@limiter.limit(settings.rate_limit_read)
async def list_packages(request: Request, session=Depends(get_db_session)):
    """Active packages, cheapest first. No auth required."""
    packages = await get_coin_packages(session)
    return render_response(request, {"coin_packages": packages, "total": len(packages)})


@router.get(
    "/v1/coin-packages/{package_id}",
    response_model=CoinPackageResponse,
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_read)
async def get_package(request: Request, package_id: str, session=Depends(get_db_session)):
    package = await get_coin_package_by_id(session, package_id)
    if not package:
        raise NotFound("Coin package not found")
    return render_response(request, package)


@router.post(
    "/v1/coin-packages",
    response_model=CoinPackageResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_admin)
async def post_package(request: Request, admin: User = AdminUser, session=Depends(get_db_session)):
    body = await parse_body(request)
    try:
        req = CreateCoinPackageRequest(**body)
    except ValidationError:
        return render_response(request, {"error": "Invalid request body"}, status_code=400)

    package = await create_coin_package(
        session, req.name, req.coin_amount, req.price, bonus_coins=req.bonus_coins
    )
    await log_admin_action(
        session,
        admin.id,
        "create_coin_package",
        "coin_package",
        package["id"],
        ip_address=client_ip(request),
    )
    return render_response(request, package, status_code=201)


@router.patch(
    "/v1/coin-packages/{package_id}",
    response_model=CoinPackageResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_admin)
async def patch_package(
    request: Request, package_id: str, admin: User = AdminUser, session=Depends(get_db_session)
):
    body = await parse_body(request)
    try:
        req = UpdateCoinPackageRequest(**body)
    except ValidationError:
        return render_response(request, {"error": "Invalid request body"}, status_code=400)

    package = await update_coin_package(session, package_id, **req.model_dump(exclude_none=True))
    await log_admin_action(
        session,
        admin.id,
        "update_coin_package",
        "coin_package",
        package_id,
        ip_address=client_ip(request),
    )
    return render_response(request, package)


@router.delete(
    "/v1/coin-packages/{package_id}",
    response_model=CoinPackageResponse,
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_admin)
async def delete_package(
    request: Request, package_id: str, admin: User = AdminUser, session=Depends(get_db_session)
):
    """Soft delete: the package stops being offered but stays readable by id."""
    package = await deactivate_coin_package(session, package_id)
    await log_admin_action(
        session,
        admin.id,
        "deactivate_coin_package",
        "coin_package",
        package_id,
        ip_address=client_ip(request),
    )
    return render_response(request, package)


@router.post(
    "/v1/coin-packages/{package_id}/purchase",
    response_model=PurchaseResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_write)
async def purchase_package(
    request: Request, package_id: str, user: User = AuthUser, session=Depends(get_db_session)
):
    """Start a purchase. Returns the pending top-up to hand to the payment gateway."""
    body = await parse_body(request)
    try:
        req = PurchaseCoinPackageRequest(**body)
    except ValidationError:
        return render_response(request, {"error": "Invalid request body"}, status_code=400)

    result = await purchase_coin_package(session, package_id, user.id, req.payment_method)
    await log_transaction(
        session, user.id, result["transaction"]["id"], "purchase", client_ip(request)
    )
    return render_response(request, result, status_code=201)
