"""Transaction routes: top-up and withdrawal requests plus admin processing."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from pydantic import ValidationError

from raxnet.api.helpers import client_ip, is_admin, require_self_or_admin
from raxnet.auth import AdminUser, AuthUser
from raxnet.config import settings
from raxnet.content import parse_body, render_response
from raxnet.database import get_db_session
from raxnet.db_models import TransactionType, User
from raxnet.errors import Forbidden, NotFound
from raxnet.models import (
    CreateTransactionRequest,
    ErrorResponse,
    TransactionListResponse,
    TransactionResponse,
    TransactionStatsResponse,
    UpdateTransactionRequest,
)
from raxnet.rate_limit import limiter
from raxnet.services.activity_logs import log_admin_action, log_transaction
from raxnet.services.transactions import (
    create_transaction,
    get_all_transactions,
    get_transaction_by_id,
    get_transaction_stats,
    get_transactions_by_user,
    process_topup,
    process_withdrawal,
    update_transaction,
)

router = APIRouter()

_USER_TYPES = (TransactionType.topup, TransactionType.withdrawal)


@router.post(
    "/v1/transactions",
    response_model=TransactionResponse,
    status_code=201,
    responses={
        400: {"model": ErrorResponse},
        402: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
    },
)
@limiter.limit(settings.rate_limit_write)
async def post_transaction(
    request: Request, user: User = AuthUser, session=Depends(get_db_session)
):
    """Open a pending top-up or withdrawal. No coins move until it is processed."""
    body = await parse_body(request, body_field="description")
    try:
        req = CreateTransactionRequest(**body)
    except ValidationError:
        return render_response(request, {"error": "Invalid request body"}, status_code=400)

    if req.type not in _USER_TYPES and not is_admin(user):
        raise Forbidden("Only top-ups and withdrawals can be requested")

    tx = await create_transaction(
        session,
        user.id,
        req.type,
        req.amount,
        req.description,
        payment_method=req.payment_method,
        metadata=req.metadata,
    )
    await log_transaction(session, user.id, tx["id"], "created", client_ip(request))
    return render_response(request, tx, status_code=201)


@router.get("/v1/transactions/mine", response_model=TransactionListResponse)
@limiter.limit(settings.rate_limit_read)
async def my_transactions(
    request: Request, user: User = AuthUser, session=Depends(get_db_session)
):
    txs = await get_transactions_by_user(session, user.id)
    return render_response(request, {"transactions": txs, "total": len(txs)})


@router.get(
    "/v1/transactions",
    response_model=TransactionListResponse,
    responses={403: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_admin)
async def list_transactions(
    request: Request,
    admin: User = AdminUser,
    session=Depends(get_db_session),
    type: str | None = None,
    status: str | None = None,
    offset: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
):
    txs = await get_all_transactions(
        session, tx_type=type, status=status, offset=offset, limit=limit
    )
    return render_response(request, {"transactions": txs, "total": len(txs)})


@router.get(
    "/v1/transactions/stats",
    response_model=TransactionStatsResponse,
    responses={403: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_admin)
async def transaction_stats(
    request: Request, admin: User = AdminUser, session=Depends(get_db_session)
):
    return render_response(request, await get_transaction_stats(session))


@router.get(
    "/v1/users/{user_id}/transactions",
    response_model=TransactionListResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_read)
async def user_transactions(
    request: Request, user_id: str, user: User = AuthUser, session=Depends(get_db_session)
):
    require_self_or_admin(user, user_id, "account")
    txs = await get_transactions_by_user(session, user_id)
    return render_response(request, {"transactions": txs, "total": len(txs)})


@router.get(
    "/v1/transactions/{tx_id}",
    response_model=TransactionResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_read)
async def get_transaction(
    request: Request, tx_id: str, user: User = AuthUser, session=Depends(get_db_session)
):
    tx = await get_transaction_by_id(session, tx_id)
    if not tx:
        raise NotFound("Transaction not found")
    require_self_or_admin(user, tx["user_id"], "transaction")
    return render_response(request, tx)


@router.patch(
    "/v1/transactions/{tx_id}",
    response_model=TransactionResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_admin)
async def patch_transaction(
    request: Request, tx_id: str, admin: User = AdminUser, session=Depends(get_db_session)
):
    """Gateway callback: move a pending transaction to its final status."""
    body = await parse_body(request)
    try:
        req = UpdateTransactionRequest(**body)
    except ValidationError:
        return render_response(request, {"error": "Invalid request body"}, status_code=400)

    tx = await update_transaction(session, tx_id, req.status, req.external_transaction_id)
    await log_transaction(session, tx["user_id"], tx_id, req.status.value, client_ip(request))
    return render_response(request, tx)


async def _process(request: Request, session, admin: User, tx_id: str, processor, label: str):
    tx = await processor(session, tx_id)
    await log_transaction(session, tx["user_id"], tx_id, "completed", client_ip(request))
    await log_admin_action(
        session,
        admin.id,
        f"process_{label}",
        "transaction",
        tx_id,
        details=f"Processed {label} of {tx['amount']} coins",
        ip_address=client_ip(request),
    )
    return render_response(request, tx)


@router.post(
    "/v1/transactions/{tx_id}/process-topup",
    response_model=TransactionResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_admin)
async def process_topup_route(
    request: Request, tx_id: str, admin: User = AdminUser, session=Depends(get_db_session)
):
    return await _process(request, session, admin, tx_id, process_topup, "topup")


@router.post(
    "/v1/transactions/{tx_id}/process-withdrawal",
    response_model=TransactionResponse,
    responses={
        402: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
@limiter.limit(settings.rate_limit_admin)
async def process_withdrawal_route(
    request: Request, tx_id: str, admin: User = AdminUser, session=Depends(get_db_session)
):
    """Debit a pending withdrawal. If the balance is short it is marked failed (402)."""
    return await _process(request, session, admin, tx_id, process_withdrawal, "withdrawal")
