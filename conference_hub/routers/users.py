import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from conference_hub.db import get_db
from conference_hub.models.user import User, ROLE_ADMIN
from conference_hub.schemas.user import RoleUpdate, UserResponse
from conference_hub.utils.auth import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/users",
    tags=["users"],
)


@router.get("", response_model=List[UserResponse])
def get_users(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_admin),
):
    return db.query(User).order_by(User.id).offset(skip).limit(limit).all()


@router.patch("/{user_id}/role", response_model=UserResponse)
def update_user_role(
    user_id: int,
    role_update: RoleUpdate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_admin),
):
    """
    Change a user's role. Admins cannot demote themselves.
    """
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if user.id == current_user["id"] and role_update.role != ROLE_ADMIN:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Admins cannot remove their own admin role")

    user.role = role_update.role
    db.commit()
    db.refresh(user)
    logger.info(f"User {user.id} role set to {user.role} by admin {current_user['id']}")
    return user
