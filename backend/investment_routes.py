"""
ADMIN LEDGER API ROUTES

Implements:
- Investment approval / rejection
- Top-up approval / rejection
- Withdrawal approval / rejection
- Read-side refresh of an investment and its history
- Audit log listing

Ledger errors are converted to HTTP errors HERE; the services never raise
HTTPException.
"""

from fastapi import APIRouter, HTTPException, Depends, Query, Request
from fastapi.responses import JSONResponse
from typing import Optional
import logging

from auth import get_current_admin
from audit_service import AuditService
from config import settings
from investment_service import InvestmentTransactionService
from models import (
    AdminActor,
    AuditLog,
    AuditLogListResponse,
    Investment,
    LedgerDecisionResponse,
    LedgerTransaction,
    RejectRequest
)
from wallet_funding_service import WalletFundingService
from core.accessors import INVESTMENTS
from core.document_store import DocumentStore
from core.ledger_errors import LedgerError
from core.ledger_history import TRANSACTIONS

logger = logging.getLogger(__name__)

# Router
admin_router = APIRouter(prefix="/api/admin", tags=["Admin Ledger"])


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_document_store(request: Request) -> DocumentStore:
    return request.app.state.document_store


def get_investment_service(store: DocumentStore = Depends(get_document_store)) -> InvestmentTransactionService:
    return InvestmentTransactionService(
        store,
        max_attempts=settings.TRANSACTION_MAX_ATTEMPTS,
        backoff_base_ms=settings.TRANSACTION_BACKOFF_BASE_MS,
        default_currency=settings.DEFAULT_CURRENCY
    )


def get_funding_service(store: DocumentStore = Depends(get_document_store)) -> WalletFundingService:
    return WalletFundingService(
        store,
        max_attempts=settings.TRANSACTION_MAX_ATTEMPTS,
        backoff_base_ms=settings.TRANSACTION_BACKOFF_BASE_MS,
        default_currency=settings.DEFAULT_CURRENCY
    )


def get_audit_service(store: DocumentStore = Depends(get_document_store)) -> AuditService:
    return AuditService(store)


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    """Registered on the app: LedgerError -> {"detail", "code"}"""
    return JSONResponse(
        status_code=exc.http_status,
        content={"detail": exc.message, "code": exc.code, "details": exc.details}
    )


# =============================================================================
# INVESTMENTS
# =============================================================================

@admin_router.post("/investments/{investment_id}/approve", response_model=LedgerDecisionResponse)
async def approve_investment(
    investment_id: str,
    admin: AdminActor = Depends(get_current_admin),
    service: InvestmentTransactionService = Depends(get_investment_service)
):
    """
    Approve a pending investment: debit wallet, credit project, record history.
    Approving an already active investment succeeds without changes.
    """
    outcome = await service.approve(investment_id, admin.uid, admin.email)
    return outcome.to_response()


@admin_router.post("/investments/{investment_id}/reject", response_model=LedgerDecisionResponse)
async def reject_investment(
    investment_id: str,
    body: RejectRequest,
    admin: AdminActor = Depends(get_current_admin),
    service: InvestmentTransactionService = Depends(get_investment_service)
):
    """Reject a pending investment. No money moves."""
    outcome = await service.reject(investment_id, body.reason, admin.uid, admin.email)
    return outcome.to_response()


@admin_router.get("/investments/{investment_id}", response_model=Investment, response_model_by_alias=False)
async def get_investment(
    investment_id: str,
    admin: AdminActor = Depends(get_current_admin),
    store: DocumentStore = Depends(get_document_store)
):
    """Read-side refresh after a decision"""
    doc = await store.get(INVESTMENTS, investment_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Investment not found")
    return Investment.model_validate(doc)


@admin_router.get("/investments/{investment_id}/transactions")
async def list_investment_transactions(
    investment_id: str,
    admin: AdminActor = Depends(get_current_admin),
    store: DocumentStore = Depends(get_document_store)
):
    """Full, append-only history for one investment, newest first"""
    docs = await store.find(TRANSACTIONS, {"investmentId": investment_id}, sort=[("createdAt", -1)])
    transactions = [LedgerTransaction.model_validate(doc).model_dump(mode="json") for doc in docs]
    return {"investment_id": investment_id, "transactions": transactions}


# =============================================================================
# TOP-UPS / WITHDRAWALS
# =============================================================================

@admin_router.post("/topups/{topup_id}/approve", response_model=LedgerDecisionResponse)
async def approve_topup(
    topup_id: str,
    admin: AdminActor = Depends(get_current_admin),
    service: WalletFundingService = Depends(get_funding_service)
):
    outcome = await service.approve_topup(topup_id, admin.uid, admin.email)
    return outcome.to_response()


@admin_router.post("/topups/{topup_id}/reject", response_model=LedgerDecisionResponse)
async def reject_topup(
    topup_id: str,
    body: RejectRequest,
    admin: AdminActor = Depends(get_current_admin),
    service: WalletFundingService = Depends(get_funding_service)
):
    outcome = await service.reject_topup(topup_id, body.reason, admin.uid, admin.email)
    return outcome.to_response()


@admin_router.post("/withdrawals/{withdrawal_id}/approve", response_model=LedgerDecisionResponse)
async def approve_withdrawal(
    withdrawal_id: str,
    admin: AdminActor = Depends(get_current_admin),
    service: WalletFundingService = Depends(get_funding_service)
):
    outcome = await service.approve_withdrawal(withdrawal_id, admin.uid, admin.email)
    return outcome.to_response()


@admin_router.post("/withdrawals/{withdrawal_id}/reject", response_model=LedgerDecisionResponse)
async def reject_withdrawal(
    withdrawal_id: str,
    body: RejectRequest,
    admin: AdminActor = Depends(get_current_admin),
    service: WalletFundingService = Depends(get_funding_service)
):
    outcome = await service.reject_withdrawal(withdrawal_id, body.reason, admin.uid, admin.email)
    return outcome.to_response()


# =============================================================================
# AUDIT
# =============================================================================

@admin_router.get("/audit-logs", response_model=AuditLogListResponse, response_model_by_alias=False)
async def list_audit_logs(
    target_id: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    admin: AdminActor = Depends(get_current_admin),
    audit_service: AuditService = Depends(get_audit_service)
):
    logs = await audit_service.get_audit_logs(target_id=target_id, action=action, limit=limit)
    return {"logs": [AuditLog.model_validate(log) for log in logs], "count": len(logs)}
