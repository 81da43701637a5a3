from fastapi import FastAPI, APIRouter
from starlette.middleware.cors import CORSMiddleware
from motor.motor_asyncio import AsyncIOMotorClient
import logging
from datetime import datetime
from typing import Optional

from config import settings
from investment_routes import admin_router, ledger_error_handler
from core.document_store import DocumentStore
from core.ledger_errors import LedgerError
from core.memory_store import InMemoryDocumentStore
from core.mongo_store import MongoDocumentStore

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def build_document_store() -> DocumentStore:
    """Select the storage backend from DOCUMENT_STORE"""
    if settings.DOCUMENT_STORE == "memory":
        logger.warning("Using in-memory document store; data is lost on restart")
        return InMemoryDocumentStore()
    client = AsyncIOMotorClient(settings.MONGO_URL)
    logger.info(f"Using MongoDB store: database={settings.DB_NAME}")
    return MongoDocumentStore(client, client[settings.DB_NAME])


def create_app(document_store: Optional[DocumentStore] = None) -> FastAPI:
    app = FastAPI(
        title="Investment Console - Ledger Core",
        version="1.0.0",
        description="Admin approval of investments, top-ups and withdrawals with an atomic ledger"
    )
    app.state.document_store = document_store or build_document_store()

    api_router = APIRouter(prefix="/api")

    @api_router.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "timestamp": datetime.utcnow(),
            "version": "1.0.0",
            "document_store": type(app.state.document_store).__name__
        }

    app.include_router(api_router)
    app.include_router(admin_router)
    app.add_exception_handler(LedgerError, ledger_error_handler)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_credentials=True,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("shutdown")
    async def shutdown_document_store():
        await app.state.document_store.close()

    return app


app = create_app()
