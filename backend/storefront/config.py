"""
storefront/config.py - Application configuration and Firebase initialization.

This module defines a Pydantic BaseSettings class to load configuration from environment,
and initializes the Firebase Admin SDK (Firestore DB) on first use.
Other modules import `settings` and call `get_db()` to reach the Firestore client.
"""
from decimal import Decimal
from typing import Optional

import firebase_admin
from firebase_admin import credentials, firestore
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""
    firebase_cred_file: str = Field('firebase_service_account.json', description="Service account JSON path")
    firebase_project_id: Optional[str] = None
    firebase_collection_prefix: str = ""

    # Firebase credentials from environment variables (for Cloud Run)
    firebase_private_key_id: Optional[str] = None
    firebase_private_key: Optional[str] = None
    firebase_client_email: Optional[str] = None
    firebase_client_id: Optional[str] = None
    firebase_auth_uri: Optional[str] = None
    firebase_token_uri: Optional[str] = None
    firebase_auth_provider_x509_cert_url: Optional[str] = None
    firebase_client_x509_cert_url: Optional[str] = None

    # Storefront
    site_url: str = "http://localhost:5173/#"
    currency: str = "usd"
    allow_guest_checkout: bool = True
    free_shipping_threshold: Decimal = Decimal("41700")
    shipping_fee: Decimal = Decimal("1000")
    tax_rate: Decimal = Decimal("0.18")

    # Payment-session function (remote, trusted)
    payment_function_url: str = ""
    payment_function_key: str = ""
    payment_timeout: int = 15
    payment_webhook_secret: str = ""
    verify_payment_sessions: bool = False

    # Orphaned pending-order sweep
    orphan_sweep_minutes: int = 30
    orphan_max_age_minutes: int = 60

    debug: bool = False
    log_level: str = "INFO"
    allowed_origins: str = Field('*', description="Comma-separated list or '*' for all")

    def collection(self, name: str) -> str:
        """Prefix-aware collection name (FIREBASE_COLLECTION_PREFIX)."""
        prefix = (self.firebase_collection_prefix or "").strip()
        return f"{prefix}{name}" if prefix else name

    def model_post_init(self, __context):
        """Normalize currency to the processor's lowercase ISO-4217 code."""
        cur = (self.currency or "").strip().lower()
        if len(cur) != 3:
            raise ValueError("CURRENCY must be a 3-letter ISO-4217 code")
        self.currency = cur

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


# Load settings from environment (.env file, etc.)
settings = Settings()

_db = None


def _credential(cfg: Settings):
    # Check if we have environment variables for Firebase credentials (Cloud Run)
    if all([
        cfg.firebase_private_key_id,
        cfg.firebase_private_key,
        cfg.firebase_client_email,
        cfg.firebase_client_id,
        cfg.firebase_auth_uri,
        cfg.firebase_token_uri,
        cfg.firebase_auth_provider_x509_cert_url,
        cfg.firebase_client_x509_cert_url,
    ]):
        return credentials.Certificate({
            "type": "service_account",
            "project_id": cfg.firebase_project_id,
            "private_key_id": cfg.firebase_private_key_id,
            "private_key": cfg.firebase_private_key.replace("\\n", "\n"),
            "client_email": cfg.firebase_client_email,
            "client_id": cfg.firebase_client_id,
            "auth_uri": cfg.firebase_auth_uri,
            "token_uri": cfg.firebase_token_uri,
            "auth_provider_x509_cert_url": cfg.firebase_auth_provider_x509_cert_url,
            "client_x509_cert_url": cfg.firebase_client_x509_cert_url,
        })
    # Use service account file (local development)
    return credentials.Certificate(cfg.firebase_cred_file)


def init_firebase(cfg: Settings = settings):
    """Initialize the default Firebase app once and return it."""
    try:
        return firebase_admin.get_app()
    except ValueError:
        options = {"projectId": cfg.firebase_project_id} if cfg.firebase_project_id else None
        return firebase_admin.initialize_app(_credential(cfg), options)


def get_db():
    """Firestore client, created on first use so the app imports without credentials."""
    global _db
    if _db is None:
        init_firebase()
        _db = firestore.client()
    return _db
