import os
from pathlib import Path
from dotenv import load_dotenv

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')


class Settings:
    # MongoDB (transactions require a replica set)
    MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017/?replicaSet=rs0")
    DB_NAME = os.getenv("DB_NAME", "investment_console")

    # "mongo" or "memory" (local development without a replica set)
    DOCUMENT_STORE = os.getenv("DOCUMENT_STORE", "mongo").lower()

    # Optimistic transaction retry policy
    TRANSACTION_MAX_ATTEMPTS = int(os.getenv("TRANSACTION_MAX_ATTEMPTS", "5"))
    TRANSACTION_BACKOFF_BASE_MS = int(os.getenv("TRANSACTION_BACKOFF_BASE_MS", "50"))

    # Ledger defaults
    DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "USD")

    # Admin identity tokens (issued by the external auth provider)
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "your-secret-key-change-in-production-2024")
    JWT_ALGORITHM = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()
