"""
Feed Router for Audiopub.

Endpoints:
- GET /quickfeed - Random page of audios with their comment threads
- GET /search - Search titles and descriptions
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..constants import AUDIOS_PER_PAGE
from ..database import get_db
from ..db_models import DBUser
from ..dependencies import get_optional_user, is_from_ai
from ..feed import get_quickfeed_page, search_audios
from ..models import AudioPage, QuickfeedPage

logger = logging.getLogger(__name__)

router = APIRouter(tags=["feed"])


@router.get("/quickfeed", response_model=QuickfeedPage)
async def quickfeed(
    page: int = Query(1, ge=1),
    current_user: Optional[DBUser] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    items, has_more = get_quickfeed_page(db, page=page, viewer=current_user)
    return QuickfeedPage(items=items, page=page, has_more=has_more)


@router.get("/search", response_model=AudioPage)
async def search(
    q: str = Query(""),
    page: int = Query(1, ge=1),
    from_ai: bool = Depends(is_from_ai),
    current_user: Optional[DBUser] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """
    Case-insensitive search in the current mirror.

    Raises:
        ValidationFailedError: If the trimmed query is shorter than 5 characters
    """
    audios = search_audios(db, q, page=page, is_from_ai=from_ai, viewer=current_user)
    return AudioPage(audios=audios, page=page, has_more=len(audios) == AUDIOS_PER_PAGE)
