from core.database import SessionLocal
from core.config import settings
from typing import Annotated, Optional
from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from starlette import status
from schemas.order_schemas import Identity
from services.blob_store import BlobStore, LocalBlobStore
from services.token_service import TokenService


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

db_dependency = Annotated[Session, Depends(get_db)]


def get_blob_store() -> BlobStore:
    return LocalBlobStore(
        root_dir=settings.BLOB_STORAGE_DIR,
        bucket=settings.PROOF_BUCKET,
        public_base_url=settings.BLOB_PUBLIC_BASE_URL
    )

blob_store_dependency = Annotated[BlobStore, Depends(get_blob_store)]


# auto_error=False: checkout is open to guests
bearer_scheme = OAuth2PasswordBearer(tokenUrl="auth/token", auto_error=False)


def get_optional_identity(token: Annotated[Optional[str], Depends(bearer_scheme)]) -> Optional[Identity]:
    """An absent or invalid token degrades to an anonymous caller."""
    return TokenService.decode_identity(token)

optional_identity_dependency = Annotated[Optional[Identity], Depends(get_optional_identity)]


def get_current_identity(identity: optional_identity_dependency) -> Identity:
    if identity is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail="Could not validate credentials.",
                            headers={"WWW-Authenticate": "Bearer"})
    return identity

identity_dependency = Annotated[Identity, Depends(get_current_identity)]
