"""Authentication routes."""
import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from changetrack.core.database import get_db
from changetrack.core.deps import get_current_user
from changetrack.core.roles import build_capabilities, get_role_display, is_admin
from changetrack.core.security import verify_password, create_access_token, get_password_hash
from changetrack.models.audit_log import AuditLog
from changetrack.models.user import User
from changetrack.schemas.user import LoginRequest, Token, UserResponse, UserCreate

logger = logging.getLogger(__name__)

router = APIRouter()


def get_user_response(user: User) -> dict:
    """Convert user to response dict with role display and capabilities."""
    return {
        "user_id": user.user_id,
        "email": user.email,
        "full_name": user.full_name,
        "role": user.role,
        "role_display": get_role_display(user.role),
        "capabilities": build_capabilities(user.role),
        "created_at": user.created_at,
    }


@router.post("/login", response_model=Token)
def login(login_data: LoginRequest, db: Session = Depends(get_db)):
    """Login endpoint."""
    user = db.query(User).filter(User.email == login_data.email).first()

    if not user or not verify_password(login_data.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password"
        )

    access_token = create_access_token(data={"sub": user.email})
    return {"access_token": access_token, "token_type": "bearer"}


@router.get("/me", response_model=UserResponse)
def get_me(current_user: User = Depends(get_current_user)):
    """Get current user."""
    return get_user_response(current_user)


@router.get("/users", response_model=List[UserResponse])
def list_users(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """List all users (admin only)."""
    if not is_admin(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can list users"
        )
    users = db.query(User).order_by(User.full_name).all()
    return [get_user_response(u) for u in users]


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(
    user_data: UserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Register a new user (admin only)."""
    if not is_admin(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can register users"
        )

    existing_user = db.query(User).filter(User.email == user_data.email).first()
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    user = User(
        email=user_data.email,
        full_name=user_data.full_name,
        password_hash=get_password_hash(user_data.password),
        role=user_data.role.value
    )
    db.add(user)
    db.flush()
    db.add(AuditLog(
        entity_type="User",
        entity_id=user.user_id,
        action="CREATE",
        user_id=current_user.user_id,
        changes={"email": user.email, "role": user.role}
    ))
    db.commit()
    db.refresh(user)
    logger.info("User %s registered with role %s", user.email, user.role)
    return get_user_response(user)
