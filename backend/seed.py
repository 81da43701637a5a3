"""
Seed script for the investment console ledger.

Creates:
- 1 investor wallet (balance: 1,000.00 USD)
- 1 project with a 10,000.00 target and legacy-only `totalInvestment` counter
- 1 pending investment (250.00 USD) with a pending history record
- 1 pending top-up and 1 pending withdrawal
- An admin access token for local testing

Safe to re-run: existing documents are skipped.
"""

import asyncio
from motor.motor_asyncio import AsyncIOMotorClient
from datetime import datetime, timedelta
from pathlib import Path
import sys

# Add parent directory to path for imports
sys.path.append(str(Path(__file__).parent))

from auth import create_access_token
from config import settings
from core.accessors import INVESTMENTS, PROJECTS, TOPUPS, WALLETS, WITHDRAWALS
from core.ledger_history import TRANSACTIONS

INVESTOR_ID = "demo-investor"
ADMIN_ID = "demo-admin"
PROJECT_ID = "demo-project"


async def insert_if_missing(db, collection: str, doc_id: str, document: dict) -> bool:
    existing = await db[collection].find_one({"_id": doc_id})
    if existing:
        print(f"   ⚠️  {collection}/{doc_id} already exists. Skipping...")
        return False
    await db[collection].insert_one({"_id": doc_id, **document})
    print(f"   ✅ {collection}/{doc_id} created")
    return True


async def seed_database():
    """Seed the database with demo ledger data"""

    client = AsyncIOMotorClient(settings.MONGO_URL)
    db = client[settings.DB_NAME]
    now = datetime.utcnow()

    print("🌱 Starting database seeding...")

    try:
        # ============================================
        # 1. WALLET
        # ============================================
        print("💰 Creating investor wallet...")
        await insert_if_missing(db, WALLETS, INVESTOR_ID, {
            "uid": INVESTOR_ID,
            "balance": 1000.0,
            "createdAt": now,
            "updatedAt": now
        })

        # ============================================
        # 2. PROJECT
        # ============================================
        print("🏗️  Creating project...")
        await insert_if_missing(db, PROJECTS, PROJECT_ID, {
            "name": "Solar Farm Phase 1",
            "targetAmount": 10000.0,
            "totalInvestment": 2500.0,
            "status": "open",
            "createdAt": now
        })

        # ============================================
        # 3. PENDING INVESTMENT + HISTORY
        # ============================================
        print("📄 Creating pending investment...")
        created_at = now - timedelta(days=1)
        await insert_if_missing(db, TRANSACTIONS, "demo-investment-tx", {
            "userId": INVESTOR_ID,
            "projectId": PROJECT_ID,
            "investmentId": "demo-investment",
            "amount": 250.0,
            "currency": "USD",
            "type": "investment",
            "status": "pending",
            "description": "Investment in Solar Farm Phase 1",
            "reference": "INV-0001",
            "createdAt": created_at
        })
        await insert_if_missing(db, INVESTMENTS, "demo-investment", {
            "userId": INVESTOR_ID,
            "projectId": PROJECT_ID,
            "amount": 250.0,
            "currency": "USD",
            "status": "pending",
            "transactionId": "demo-investment-tx",
            "createdAt": created_at
        })

        # ============================================
        # 4. FUNDING REQUESTS
        # ============================================
        print("🏦 Creating funding requests...")
        await insert_if_missing(db, TOPUPS, "demo-topup", {
            "userId": INVESTOR_ID,
            "amount": 500.0,
            "currency": "USD",
            "status": "pending",
            "createdAt": now
        })
        await insert_if_missing(db, WITHDRAWALS, "demo-withdrawal", {
            "userId": INVESTOR_ID,
            "amount": 100.0,
            "currency": "USD",
            "status": "pending",
            "createdAt": now
        })

        token = create_access_token(
            {"user_id": ADMIN_ID, "email": "admin@example.com", "role": "admin"},
            expires_delta=timedelta(days=1)
        )

        # ============================================
        # SUMMARY
        # ============================================
        print("\n" + "="*60)
        print("✨ DATABASE SEEDING COMPLETE ✨")
        print("="*60)
        print(f"\n👤 Investor: {INVESTOR_ID}")
        print(f"🏗️  Project: {PROJECT_ID}")
        print(f"🔑 Admin token (24h): {token}")
        print("\n🚀 Try it:")
        print("   curl -X POST -H \"Authorization: Bearer $TOKEN\" "
              "http://localhost:8001/api/admin/investments/demo-investment/approve")
        print("\n📖 API Documentation: http://localhost:8001/docs")
        print("="*60)

    except Exception as e:
        print(f"\n❌ Error during seeding: {str(e)}")
        raise
    finally:
        client.close()


if __name__ == "__main__":
    asyncio.run(seed_database())
