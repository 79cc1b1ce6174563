"""
FastAPI dependencies (DB session, current user)
"""
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from smoketrackr.infrastructure.db.session import get_db as _get_db
from smoketrackr.infrastructure.db.models import User


# Re-export get_db для удобства
get_db = _get_db


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Получить текущего пользователя из session

    Login itself is handled outside this service; it only has to put
    ``user_id`` into the signed session cookie.

    Raises:
        HTTPException(401): если не залогинен

    Usage:
        @router.get("/products")
        def list_products(user: User = Depends(get_current_user)):
            ...
    """
    user_id = request.session.get("user_id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    return user
