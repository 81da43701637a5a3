from datetime import datetime
from typing import Optional, Dict, Any, List
import logging

from core.document_store import DocumentStore, TransactionContext

logger = logging.getLogger(__name__)

AUDIT_LOGS = "auditLogs"

# Administrative actions recorded by the ledger core
AUDIT_ACTIONS = [
    "APPROVE_INVESTMENT",
    "REJECT_INVESTMENT",
    "APPROVE_TOPUP",
    "REJECT_TOPUP",
    "APPROVE_WITHDRAWAL",
    "REJECT_WITHDRAWAL"
]


class AuditService:
    """Service for immutable audit logging"""

    def __init__(self, store: DocumentStore):
        self.store = store

    def record(
        self,
        txn: TransactionContext,
        action: str,
        admin_uid: str,
        admin_email: Optional[str],
        target_user_id: Optional[str],
        target_id: str,
        metadata: Optional[Dict[str, Any]] = None,
        reason: Optional[str] = None,
        status: str = "SUCCESS"
    ) -> str:
        """
        Stage an audit entry inside the caller's transaction (INSERT ONLY).

        The entry commits or aborts together with the state change it
        describes, so there is never an audit line for a rolled-back action.
        """
        if action not in AUDIT_ACTIONS:
            raise ValueError(f"Unknown audit action: {action}")

        entry = {
            "action": action,
            "adminUid": admin_uid,
            "adminEmail": admin_email,
            "targetUserId": target_user_id,
            "targetId": target_id,
            "status": status,
            "timestamp": txn.now()
        }
        if metadata is not None:
            entry["metadata"] = metadata
        if reason is not None:
            entry["reason"] = reason

        audit_id = txn.insert(AUDIT_LOGS, entry)
        logger.info(f"[AUDIT] Staged {action} on {target_id} by admin:{admin_uid}")
        return audit_id

    async def get_audit_logs(
        self,
        target_id: Optional[str] = None,
        action: Optional[str] = None,
        admin_uid: Optional[str] = None,
        limit: int = 100
    ) -> List[Dict[str, Any]]:
        """Retrieve audit logs (READ ONLY), newest first"""
        query: Dict[str, Any] = {}

        if target_id:
            query["targetId"] = target_id
        if action:
            query["action"] = action
        if admin_uid:
            query["adminUid"] = admin_uid

        logs = await self.store.find(AUDIT_LOGS, query, sort=[("timestamp", -1)], limit=limit)

        for log in logs:
            log["audit_id"] = log.pop("_id")
            if isinstance(log.get("timestamp"), datetime):
                log["timestamp"] = log["timestamp"].isoformat()

        return logs
