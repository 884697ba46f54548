from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from uniadmin.db.session import get_db
from uniadmin.errors import StorageUnavailable

router = APIRouter(tags=["health"])


@router.get("/health")
def health(db: Session = Depends(get_db)) -> dict[str, str]:
    try:
        db.execute(text("SELECT 1"))
    except DBAPIError as exc:
        raise StorageUnavailable("Database unavailable") from exc
    return {"status": "ok"}
