from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum


class InvestmentStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    PAUSED = "paused"


class FundingRequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# ============================================
# ACTOR
# ============================================
class AdminActor(BaseModel):
    uid: str
    email: Optional[str] = None
    role: str = "admin"


# ============================================
# DOCUMENT SHAPES (camelCase, as stored)
# ============================================
class Investment(BaseModel):
    investment_id: Optional[str] = Field(default=None, alias="_id")
    user_id: Optional[str] = Field(default=None, alias="userId")
    project_id: Optional[str] = Field(default=None, alias="projectId")
    amount: Optional[float] = None
    currency: Optional[str] = None
    status: InvestmentStatus = InvestmentStatus.PENDING
    expected_return: Optional[float] = Field(default=None, alias="expectedReturn")
    realized_return: Optional[float] = Field(default=None, alias="realizedReturn")
    transaction_id: Optional[str] = Field(default=None, alias="transactionId")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")
    approved_at: Optional[datetime] = Field(default=None, alias="approvedAt")
    approved_by: Optional[str] = Field(default=None, alias="approvedBy")
    cancelled_at: Optional[datetime] = Field(default=None, alias="cancelledAt")
    cancelled_by: Optional[str] = Field(default=None, alias="cancelledBy")
    cancellation_reason: Optional[str] = Field(default=None, alias="cancellationReason")

    class Config:
        populate_by_name = True


class LedgerTransaction(BaseModel):
    """Append-only transaction history record"""
    transaction_id: Optional[str] = Field(default=None, alias="_id")
    user_id: str = Field(alias="userId")
    project_id: Optional[str] = Field(default=None, alias="projectId")
    investment_id: Optional[str] = Field(default=None, alias="investmentId")
    amount: Optional[float] = None
    currency: str = "USD"
    type: str
    status: str
    description: Optional[str] = None
    reference: Optional[str] = None
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    approved_at: Optional[datetime] = Field(default=None, alias="approvedAt")
    approved_by: Optional[str] = Field(default=None, alias="approvedBy")
    rejected_at: Optional[datetime] = Field(default=None, alias="rejectedAt")
    rejected_by: Optional[str] = Field(default=None, alias="rejectedBy")
    rejection_reason: Optional[str] = Field(default=None, alias="rejectionReason")

    class Config:
        populate_by_name = True


class AuditLog(BaseModel):
    audit_id: str
    action: str
    admin_uid: str = Field(alias="adminUid")
    admin_email: Optional[str] = Field(default=None, alias="adminEmail")
    target_user_id: Optional[str] = Field(default=None, alias="targetUserId")
    target_id: str = Field(alias="targetId")
    status: str
    metadata: Optional[Dict[str, Any]] = None
    reason: Optional[str] = None
    timestamp: Optional[datetime] = None

    class Config:
        populate_by_name = True


# ============================================
# API REQUESTS / RESPONSES
# ============================================
class RejectRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500, description="Reason shown to the user")

    class Config:
        str_strip_whitespace = True


class SideEffectStatus(BaseModel):
    name: str
    ok: bool
    error: Optional[str] = None


class LedgerDecisionResponse(BaseModel):
    success: bool = True
    entity: str
    status: str
    already_applied: bool
    transaction_id: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    side_effects: List[SideEffectStatus] = []

    class Config:
        extra = "allow"


class AuditLogListResponse(BaseModel):
    logs: List[AuditLog]
    count: int
