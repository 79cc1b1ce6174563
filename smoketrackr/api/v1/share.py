"""
Public share view (no authentication, token in the URL)
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from smoketrackr.api.deps import get_db
from smoketrackr.application.sharing import ShareNotFoundError, ShareViewService


router = APIRouter(prefix="/api/v1/share", tags=["share"])


# === Endpoints ===

@router.get("/{token}")
def get_shared_data(token: str, db: Session = Depends(get_db)):
    """Read-only данные владельца ссылки, отфильтрованные по его настройкам"""
    try:
        return ShareViewService(db).get_public_data(token)
    except ShareNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
