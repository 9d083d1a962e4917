"""FastAPI dependencies shared by the routers."""
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from changetrack.core.database import get_db
from changetrack.core.query_composer import ChangeRequestQueryComposer
from changetrack.core.security import decode_token
from changetrack.core.store import ValidationRecordStore
from changetrack.models.user import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the bearer token to a user."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    payload = decode_token(token)
    if payload is None:
        raise credentials_exception

    email = payload.get("sub")
    if not email:
        raise credentials_exception

    user = db.query(User).filter(User.email == email).first()
    if user is None:
        raise credentials_exception
    return user


def get_store(db: Session = Depends(get_db)) -> ValidationRecordStore:
    """Per-request store bound to the request's session."""
    return ValidationRecordStore(db)


def get_query_composer(
    store: ValidationRecordStore = Depends(get_store)
) -> ChangeRequestQueryComposer:
    return ChangeRequestQueryComposer(store)
