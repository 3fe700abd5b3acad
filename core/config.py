from pydantic_settings import BaseSettings
from pydantic import ConfigDict

class Settings(BaseSettings):
    model_config = ConfigDict(env_file=".env")

    ENV: str = "development"

    DATABASE_URL: str = "sqlite:///./storefront.db"
    AUTO_CREATE_TABLES: bool = True
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    CORS_ORIGINS: list[str] = ["*"]

    # Blob store for payment proofs
    BLOB_STORAGE_DIR: str = "storage"
    BLOB_PUBLIC_BASE_URL: str = "http://localhost:8000/storage"
    SERVE_BLOBS: bool = True
    PROOF_BUCKET: str = "transfer-proofs"
    PROOF_FOLDER: str = "transferencias"
    PROOF_MAX_BYTES: int = 5 * 1024 * 1024
    PROOF_ALLOWED_EXTENSIONS: list[str] = ["jpg", "jpeg", "png", "webp", "gif", "pdf"]

    # Checkout
    REQUIRE_PROOF_BEFORE_ORDER: bool = False
    TRACKING_CODE_PREFIX: str = "ORD"
    TRACKING_CODE_LENGTH: int = 8
    DEFAULT_PHONE_REGION: str = "VE"


settings = Settings()
