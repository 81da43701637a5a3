#!/usr/bin/env python3
"""
MIGRATION SCRIPT: Ledger Lookup Indexes

Creates:
1. transactions indexes for the prior-record lookup (newest first per source)
2. auditLogs indexes for per-target and per-action listing
3. investments index for per-user listing by status

Run: python migrations/002_ledger_indexes.py
"""

import asyncio
import os
import sys
from datetime import datetime

# Add backend to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from motor.motor_asyncio import AsyncIOMotorClient

from config import settings
from audit_service import AUDIT_LOGS
from core.accessors import INVESTMENTS
from core.ledger_history import TRANSACTIONS

MIGRATION_ID = "002_ledger_indexes"

INDEXES = {
    TRANSACTIONS: [
        ([("investmentId", 1), ("createdAt", -1)], "idx_tx_investment_created"),
        ([("topupId", 1), ("createdAt", -1)], "idx_tx_topup_created"),
        ([("withdrawalId", 1), ("createdAt", -1)], "idx_tx_withdrawal_created"),
        ([("reference", 1), ("createdAt", -1)], "idx_tx_reference_created"),
        ([("userId", 1), ("createdAt", -1)], "idx_tx_user_created"),
    ],
    AUDIT_LOGS: [
        ([("targetId", 1), ("timestamp", -1)], "idx_audit_target_timestamp"),
        ([("action", 1), ("timestamp", -1)], "idx_audit_action_timestamp"),
        ([("adminUid", 1), ("timestamp", -1)], "idx_audit_admin_timestamp"),
    ],
    INVESTMENTS: [
        ([("userId", 1), ("status", 1)], "idx_investment_user_status"),
    ],
}


async def run_migration():
    """Create the ledger lookup indexes."""

    print(f"Connecting to: {settings.MONGO_URL}")
    print(f"Database: {settings.DB_NAME}")

    client = AsyncIOMotorClient(settings.MONGO_URL)
    db = client[settings.DB_NAME]

    try:
        await client.admin.command('ping')
        print("✓ Connected to MongoDB")

        existing = await db.list_collection_names()
        created = []

        for collection, indexes in INDEXES.items():
            if collection not in existing:
                await db.create_collection(collection)
                print(f"✓ Created {collection} collection")

            for keys, name in indexes:
                await db[collection].create_index(keys, name=name)
                created.append(name)
                print(f"✓ Created index: {name}")

        for collection in INDEXES:
            info = await db[collection].index_information()
            print(f"\n=== {collection} Indexes ===")
            for name, spec in info.items():
                print(f"  {name}: {spec['key']}")

        await db.migrations.update_one(
            {"migration_id": MIGRATION_ID},
            {"$set": {
                "migration_id": MIGRATION_ID,
                "description": "Ledger lookup indexes",
                "indexes_created": created,
                "executed_at": datetime.utcnow(),
                "status": "success"
            }},
            upsert=True
        )
        print("\n✓ Migration record saved")

        print("\n" + "="*50)
        print("MIGRATION COMPLETE: Ledger Lookup Indexes")
        print("="*50)

        return {"status": "success", "indexes": len(created)}

    except Exception as e:
        print(f"\n✗ Migration failed: {str(e)}")
        raise
    finally:
        client.close()


if __name__ == "__main__":
    result = asyncio.run(run_migration())
    print(f"\nResult: {result}")
