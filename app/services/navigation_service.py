"""Per-user navigation state, so a returning user lands on the view they left.

Stored blobs carry a version. Older versions are migrated on read and
anything that cannot be understood falls back to the default state.
"""

import json
import logging

from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.database import utcnow
from app.models.user import ModuleId, NavigationState, User
from app.schemas.navigation import NavigationStateIn, NavigationStateOut
from app.services import access_service

logger = logging.getLogger(__name__)

CURRENT_VERSION = 2
DEFAULT_PAGE = "dashboard"

PAGES = ("dashboard", "users", "profile", "finance", "documents", "operations", "sales", "admin")
PAGE_MODULES = {
    "finance": ModuleId.FINANCE,
    "documents": ModuleId.DOCUMENTS,
    "operations": ModuleId.OPERATIONS,
    "sales": ModuleId.SALES,
}
ADMIN_PAGES = ("users", "admin")


def default_state() -> NavigationStateOut:
    return NavigationStateOut(version=CURRENT_VERSION, page=DEFAULT_PAGE, section=None, filters={})


def _migrate_v1(blob: dict) -> dict:
    # v1: {"currentPage": "...", "subPage": "..."}
    return {
        "version": CURRENT_VERSION,
        "page": blob.get("currentPage") or DEFAULT_PAGE,
        "section": blob.get("subPage") or None,
        "filters": {},
        "updated_at": blob.get("updatedAt"),
    }


def parse_state(payload: str | None) -> NavigationStateOut:
    """Decode a stored blob, migrating old versions. Never raises."""
    if not payload:
        return default_state()
    try:
        blob = json.loads(payload)
    except (TypeError, ValueError):
        logger.warning("Discarding unreadable navigation state")
        return default_state()
    if not isinstance(blob, dict):
        return default_state()

    version = blob.get("version", 1)
    if version == 1:
        blob = _migrate_v1(blob)
    elif version != CURRENT_VERSION:
        logger.warning("Discarding navigation state with unknown version %s", version)
        return default_state()

    try:
        state = NavigationStateOut.model_validate(blob)
    except ValidationError:
        return default_state()
    if state.page not in PAGES:
        return default_state()
    return state


def can_open(db: Session, user: User, page: str) -> bool:
    if page in ADMIN_PAGES:
        return access_service.is_admin(user)
    module = PAGE_MODULES.get(page)
    if module is None:
        return True
    return access_service.has_access(db, user, module)


def load_state(db: Session, user: User) -> NavigationStateOut:
    row = db.query(NavigationState).filter(NavigationState.user_id == user.id).first()
    state = parse_state(row.payload if row else None)
    if not can_open(db, user, state.page):
        return default_state()
    return state


def save_state(db: Session, user: User, data: NavigationStateIn) -> NavigationStateOut:
    if data.page not in PAGES:
        raise ValueError(f"Unknown page: {data.page}")
    if not can_open(db, user, data.page):
        raise ValueError(f"No access to page: {data.page}")

    state = NavigationStateOut(
        version=CURRENT_VERSION, page=data.page, section=data.section, filters=data.filters, updated_at=utcnow()
    )
    row = db.query(NavigationState).filter(NavigationState.user_id == user.id).first()
    if not row:
        row = NavigationState(user_id=user.id)
        db.add(row)
    row.version = CURRENT_VERSION
    row.payload = state.model_dump_json()
    db.commit()
    return state


def clear_state(db: Session, user: User) -> None:
    db.query(NavigationState).filter(NavigationState.user_id == user.id).delete()
    db.commit()
