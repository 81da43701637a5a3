#!/usr/bin/env python3
"""
MIGRATION SCRIPT: Canonical Project Capital Fields

Projects written by older clients carry the target under `target` /
`goalAmount` and the running total under only one of `totalInvestment` /
`totalInvested` / `totalInvestedAmount`. This migration:

1. copies the resolved target into `targetAmount`
2. writes the resolved total into BOTH `totalInvested` and `totalInvestment`
3. reports (does not touch) projects whose counters are not numbers

Legacy alias fields are left in place for old readers.

Run: python migrations/001_normalize_project_capital.py [--dry-run]
"""

import asyncio
import os
import sys
from datetime import datetime

# Add backend to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from motor.motor_asyncio import AsyncIOMotorClient

from config import settings
from core.accessors import COUNTER_FIELDS, PROJECTS, is_stored_number, normalize_project
from core.financial_precision import to_float

MIGRATION_ID = "001_normalize_project_capital"


def plan_project_update(project_id: str, doc: dict):
    """
    Compute the $set needed to canonicalize one project.

    Returns (update, problem): `update` is None when nothing changes,
    `problem` is a message when the project cannot be repaired automatically.
    """
    capital = normalize_project(project_id, doc)
    if capital.total_invested is None:
        return None, f"total invested is not a number: {capital.raw_counters}"

    update = {}
    if capital.target_amount is not None and not is_stored_number(doc.get("targetAmount")):
        update["targetAmount"] = to_float(capital.target_amount)

    if not capital.counters_consistent:
        total = to_float(capital.total_invested)
        for key in COUNTER_FIELDS:
            update[key] = total

    return (update or None), None


async def run_migration(dry_run: bool = False):
    """Execute the capital normalization migration."""

    print(f"Connecting to: {settings.MONGO_URL}")
    print(f"Database: {settings.DB_NAME}")

    client = AsyncIOMotorClient(settings.MONGO_URL)
    db = client[settings.DB_NAME]

    try:
        await client.admin.command('ping')
        print("✓ Connected to MongoDB")

        scanned = 0
        updated = 0
        problems = []

        async for doc in db[PROJECTS].find({}):
            scanned += 1
            project_id = str(doc["_id"])
            update, problem = plan_project_update(project_id, doc)

            if problem:
                problems.append({"project_id": project_id, "problem": problem})
                print(f"✗ {project_id}: {problem}")
                continue
            if not update:
                continue

            if dry_run:
                print(f"• would update {project_id}: {update}")
            else:
                update["updatedAt"] = datetime.utcnow()
                await db[PROJECTS].update_one({"_id": doc["_id"]}, {"$set": update})
                print(f"✓ {project_id}: {update}")
            updated += 1

        if not dry_run:
            await db.migrations.update_one(
                {"migration_id": MIGRATION_ID},
                {"$set": {
                    "migration_id": MIGRATION_ID,
                    "description": "Canonical project capital fields",
                    "projects_scanned": scanned,
                    "projects_updated": updated,
                    "projects_needing_review": problems,
                    "executed_at": datetime.utcnow(),
                    "status": "success" if not problems else "needs_review"
                }},
                upsert=True
            )
            print("\n✓ Migration record saved")

        print("\n" + "="*50)
        print(f"MIGRATION {'DRY RUN' if dry_run else 'COMPLETE'}: Canonical Project Capital")
        print("="*50)

        return {
            "status": "success",
            "scanned": scanned,
            "updated": updated,
            "needs_review": len(problems)
        }

    except Exception as e:
        print(f"\n✗ Migration failed: {str(e)}")
        raise
    finally:
        client.close()


if __name__ == "__main__":
    result = asyncio.run(run_migration(dry_run="--dry-run" in sys.argv))
    print(f"\nResult: {result}")
