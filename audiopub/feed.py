"""
Audio listings: the sortable main list, the random quickfeed, and search.

Audios by untrusted uploaders are only listed for admins. Every listing
attaches favorite counts and the viewer's own favorites with two grouped
queries per page.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from .constants import (
    AUDIOS_PER_PAGE,
    DEFAULT_SORT_FIELD,
    DEFAULT_SORT_ORDER,
    MIN_SEARCH_QUERY_LENGTH,
    QUICKFEED_PAGE_SIZE,
    VALID_SORT_FIELDS,
    VALID_SORT_ORDERS,
)
from .db_models import DBAudio, DBAudioFavorite, DBComment, DBUser
from .exceptions import ValidationFailedError
from .favorites import get_favorite_counts, get_user_favorite_ids
from .interactions import visible_comments_query
from .models import AudioOut, CommentThread, QuickfeedItem
from .threads import build_threads

logger = logging.getLogger(__name__)


def normalize_sort(sort: Optional[str], order: Optional[str]) -> Tuple[str, str]:
    """Fall back to created_at DESC for anything unrecognized."""
    sort = sort if sort in VALID_SORT_FIELDS else DEFAULT_SORT_FIELD
    order = (order or "").upper()
    order = order if order in VALID_SORT_ORDERS else DEFAULT_SORT_ORDER
    return sort, order


def _listable_audios(db: Session, viewer: Optional[DBUser]):
    query = (
        db.query(DBAudio)
        .join(DBUser, DBAudio.user_id == DBUser.id)
        .options(joinedload(DBAudio.user))
    )
    if viewer is None or not viewer.is_admin:
        query = query.filter(DBUser.is_trusted.is_(True))
    return query


def to_audio_out(db: Session, audios: List[DBAudio], viewer: Optional[DBUser] = None) -> List[AudioOut]:
    """Serialize audios with favorite counts and the viewer's favorite flags."""
    ids = [a.id for a in audios]
    counts = get_favorite_counts(db, ids)
    favorited = get_user_favorite_ids(db, viewer.id, ids) if viewer is not None else set()

    out = []
    for audio in audios:
        item = AudioOut.model_validate(audio)
        item.favorite_count = counts.get(audio.id, 0)
        item.is_favorited = audio.id in favorited
        out.append(item)
    return out


def list_audios(
    db: Session,
    page: int = 1,
    sort: Optional[str] = None,
    order: Optional[str] = None,
    viewer: Optional[DBUser] = None,
    is_from_ai: bool = False,
    limit: int = AUDIOS_PER_PAGE,
) -> Tuple[List[AudioOut], int]:
    """
    One page of the main listing.

    Returns:
        (audios, total matching audios)
    """
    page = max(page, 1)
    sort, order = normalize_sort(sort, order)

    query = _listable_audios(db, viewer).filter(DBAudio.is_from_ai == is_from_ai)
    total = query.count()

    if sort == "random":
        query = query.order_by(func.random())
    elif sort == "favorite_count":
        favorite_count = (
            db.query(func.count(DBAudioFavorite.id))
            .filter(DBAudioFavorite.audio_id == DBAudio.id)
            .correlate(DBAudio)
            .scalar_subquery()
        )
        query = query.order_by(favorite_count.asc() if order == "ASC" else favorite_count.desc(),
                               DBAudio.created_at.desc())
    else:
        column = getattr(DBAudio, sort)
        query = query.order_by(column.asc() if order == "ASC" else column.desc())

    audios = query.offset((page - 1) * limit).limit(limit).all()
    return to_audio_out(db, audios, viewer), total


def _comments_by_audio(db: Session, audio_ids: List[str], viewer: Optional[DBUser]) -> Dict[str, List[DBComment]]:
    grouped: Dict[str, List[DBComment]] = defaultdict(list)
    if not audio_ids:
        return grouped
    query = visible_comments_query(db, viewer).filter(DBComment.audio_id.in_(audio_ids))
    for comment in query.all():
        grouped[comment.audio_id].append(comment)
    return grouped


def get_quickfeed_page(
    db: Session,
    page: int = 1,
    viewer: Optional[DBUser] = None,
    limit: int = QUICKFEED_PAGE_SIZE,
) -> Tuple[List[QuickfeedItem], bool]:
    """
    A random page of audios, each with its comment threads.

    Returns:
        (items, has_more)
    """
    page = max(page, 1)
    query = _listable_audios(db, viewer)
    total = query.count()
    audios = query.order_by(func.random()).offset((page - 1) * limit).limit(limit).all()

    serialized = to_audio_out(db, audios, viewer)
    comments = _comments_by_audio(db, [a.id for a in audios], viewer)

    items = [
        QuickfeedItem(
            audio=audio_out,
            comments=[CommentThread.from_node(node) for node in build_threads(comments.get(audio_out.id, []))],
        )
        for audio_out in serialized
    ]
    has_more = page * limit < total
    return items, has_more


def search_audios(
    db: Session,
    query: str,
    page: int = 1,
    is_from_ai: bool = False,
    viewer: Optional[DBUser] = None,
    limit: int = AUDIOS_PER_PAGE,
) -> List[AudioOut]:
    """
    Case-insensitive substring search over titles and descriptions.

    Raises:
        ValidationFailedError: If the trimmed query is shorter than 5 characters
    """
    query = (query or "").strip()
    if len(query) < MIN_SEARCH_QUERY_LENGTH:
        raise ValidationFailedError(
            f"Search query must be at least {MIN_SEARCH_QUERY_LENGTH} characters"
        )
    page = max(page, 1)

    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    pattern = f"%{escaped}%"
    audios = (
        _listable_audios(db, viewer)
        .filter(
            DBAudio.is_from_ai == is_from_ai,
            or_(
                DBAudio.title.ilike(pattern, escape="\\"),
                DBAudio.description.ilike(pattern, escape="\\"),
            ),
        )
        .order_by(DBAudio.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    logger.debug(f"Search '{query}' page {page}: {len(audios)} results")
    return to_audio_out(db, audios, viewer)
