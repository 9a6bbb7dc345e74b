"""
Console settings (environment / `.env`) and Firebase Admin bootstrap.

`get_settings()` is cached and only read when the app is created, so importing
the package never needs credentials. `init_firebase()` runs on startup.
"""
from functools import lru_cache
from typing import Optional

import firebase_admin
from firebase_admin import credentials, firestore, storage
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Console configuration."""
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    firebase_cred_file: str = Field('firebase_service_account.json')
    firebase_project_id: str = Field(...)
    firebase_storage_bucket: str = Field(...)

    # Service account split into env vars (Cloud Run)
    firebase_private_key_id: Optional[str] = None
    firebase_private_key: Optional[str] = None
    firebase_client_email: Optional[str] = None
    firebase_client_id: Optional[str] = None
    firebase_auth_uri: Optional[str] = None
    firebase_token_uri: Optional[str] = None
    firebase_auth_provider_x509_cert_url: Optional[str] = None
    firebase_client_x509_cert_url: Optional[str] = None

    firebase_web_api_key: str = Field(...)
    sign_in_timeout: float = 10.0

    debug: bool = False
    log_level: str = "INFO"
    allowed_origins: str = '*'  # Comma-separated list or '*' for all

    session_cookie_name: str = "agency_session"
    session_cookie_secure: bool = True
    session_idle_minutes: int = 120
    session_sweep_minutes: int = 10  # 0 disables the sweeper job

    proof_public: bool = False
    proof_url_expires_hours: int = 24 * 7

    def model_post_init(self, __context):
        # Web API keys always start with AIza
        if not self.firebase_web_api_key or not self.firebase_web_api_key.startswith('AIza'):
            raise ValueError("FIREBASE_WEB_API_KEY must be a valid Firebase Web API Key starting with 'AIza'")

    @property
    def sign_in_endpoint(self) -> str:
        return (
            "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"
            f"?key={self.firebase_web_api_key}"
        )

    @property
    def origins(self) -> list[str]:
        if not self.allowed_origins:
            return ["*"]
        return [origin.strip() for origin in self.allowed_origins.split(',')]


@lru_cache
def get_settings() -> Settings:
    return Settings()


_SERVICE_ACCOUNT_KEYS = (
    "private_key_id",
    "private_key",
    "client_email",
    "client_id",
    "auth_uri",
    "token_uri",
    "auth_provider_x509_cert_url",
    "client_x509_cert_url",
)


def _credentials(settings: Settings):
    # Split FIREBASE_* variables (Cloud Run) win over the JSON file.
    info = {key: getattr(settings, f"firebase_{key}") for key in _SERVICE_ACCOUNT_KEYS}
    if all(info.values()):
        info.update(type="service_account", project_id=settings.firebase_project_id)
        return credentials.Certificate(info)
    return credentials.Certificate(settings.firebase_cred_file)


def init_firebase(settings: Settings):
    """Initialise the default Firebase app once and return `(db, bucket)`."""
    options = {
        "projectId": settings.firebase_project_id,
        "storageBucket": settings.firebase_storage_bucket,
    }
    try:
        firebase_admin.initialize_app(_credentials(settings), options)
    except ValueError as exc:
        if "already exists" not in str(exc):
            raise
    return firestore.client(), storage.bucket()
