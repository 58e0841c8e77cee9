# portal/config.py
import os
from pydantic import BaseModel
from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file

_IS_PROD = os.getenv("ENV", "development") == "production"


def _default_db_path() -> str:
    if os.getenv("SQLITE_DB_PATH"):
        return os.path.abspath(os.environ["SQLITE_DB_PATH"])
    # Azure-style persistent volume in production, project-local file otherwise
    return "/home/site/database.sqlite" if _IS_PROD else os.path.abspath("database.sqlite")


def _default_uploads_path() -> str:
    if os.getenv("UPLOADS_PATH"):
        return os.path.abspath(os.environ["UPLOADS_PATH"])
    return "/home/site/uploads" if _IS_PROD else os.path.abspath("uploads")


class Settings(BaseModel):
    # General app settings
    APP_NAME: str = "Membership Portal API"
    env: str = os.getenv("ENV", "development")

    # Host & Port settings
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "5000"))

    # CORS origins for the frontend dev servers (same-origin in production)
    CORS_ORIGINS: list[str] = [] if _IS_PROD else [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    # Session tokens
    jwt_secret: str | None = os.getenv("JWT_SECRET")
    token_ttl_days: int = int(os.getenv("TOKEN_TTL_DAYS", "7"))

    # Persistence & uploads
    sqlite_db_path: str = _default_db_path()
    uploads_path: str = _default_uploads_path()

    # Used to build password reset links
    client_url: str = os.getenv("CLIENT_URL", "http://localhost:5173")

    # Blob storage (S3-compatible); leaving BLOB_BUCKET unset keeps files on local disk
    blob_bucket: str | None = os.getenv("BLOB_BUCKET")
    blob_region: str | None = os.getenv("BLOB_REGION")
    blob_endpoint_url: str | None = os.getenv("BLOB_ENDPOINT_URL")
    blob_access_key: str | None = os.getenv("BLOB_ACCESS_KEY")
    blob_secret_key: str | None = os.getenv("BLOB_SECRET_KEY")
    blob_public_base_url: str | None = os.getenv("BLOB_PUBLIC_BASE_URL")

    # Rate limiting for /api (default: 1000 requests per 15 minutes per client)
    rate_limit_window_sec: int = int(os.getenv("RATE_LIMIT_WINDOW_SEC", "900"))
    rate_limit_max: int = int(os.getenv("RATE_LIMIT_MAX", "1000"))

    max_json_body_bytes: int = 1024 * 1024

    @property
    def is_production(self) -> bool:
        return self.env == "production"

settings = Settings()  # Instantiate configuration
