"""User routes"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Any, Dict

from sessionauth.core.database import get_db
from sessionauth.core.exceptions import ResourceNotFoundError
from sessionauth.schemas.user import UserResponse, UserUpdate
from sessionauth.services.user_service import user_service
from sessionauth.api.deps import get_current_user

router = APIRouter()


@router.get("/{id_or_email}", response_model=UserResponse)
def find_user(
    id_or_email: str,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Find user by ID or email

    Args:
        id_or_email: User ID or email
        current_user: Claims of the authenticated caller
        db: Database session

    Returns:
        User information
    """
    user = user_service.find_user(db, id_or_email)
    if user is None:
        raise ResourceNotFoundError("User")
    return UserResponse.model_validate(user)


@router.delete("/{user_id}")
def delete_user(
    user_id: str,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Delete user (self or admin); the user's refresh tokens go with it

    Returns:
        ID of the deleted user
    """
    return {"id": user_service.delete_user(db, user_id, current_user)}


@router.put("", response_model=UserResponse)
def update_user(
    body: UserUpdate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update own email or password; roles only by admins"""
    return UserResponse.model_validate(user_service.update_user(db, current_user, body))
