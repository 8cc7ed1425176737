"""Admin routes - account blocking and token housekeeping"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Any, Dict

from sessionauth.core.database import get_db
from sessionauth.api.deps import get_current_admin_user
from sessionauth.services.token_store import token_store
from sessionauth.services.user_service import user_service

router = APIRouter()


@router.post("/users/{user_id}/block")
def block_user(
    user_id: str,
    current_user: Dict[str, Any] = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """
    Block a user and revoke all of their refresh tokens

    Returns:
        Number of revoked refresh tokens
    """
    user = user_service.set_blocked(db, user_id, True)
    revoked = token_store.delete_for_user(db, user.id)
    return {"success": True, "id": user.id, "revoked_refresh_tokens": revoked}


@router.post("/users/{user_id}/unblock")
def unblock_user(
    user_id: str,
    current_user: Dict[str, Any] = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """Lift a block"""
    user = user_service.set_blocked(db, user_id, False)
    return {"success": True, "id": user.id}


@router.post("/refresh-tokens/purge")
def purge_refresh_tokens(
    current_user: Dict[str, Any] = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """Delete refresh tokens whose expiry has passed"""
    return {"success": True, "purged": token_store.purge_expired(db)}
