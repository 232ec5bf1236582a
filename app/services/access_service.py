import logging

from sqlalchemy.orm import Session

from app.models.document import FolderUserAccess
from app.models.user import MODULE_DEFINITIONS, AccessLevel, ModuleAccess, ModuleId, User

logger = logging.getLogger(__name__)

LEVEL_RANK = {
    AccessLevel.NO_ACCESS.value: 0,
    AccessLevel.READ_ONLY.value: 1,
    AccessLevel.READ_WRITE.value: 2,
}

# Effective folder access for admins and documents read-write users
FOLDER_ADMIN = "admin"


def is_admin(user: User) -> bool:
    return user.role == "admin"


def get_module_access(db: Session, user: User) -> dict[str, str]:
    """Access level for every module. Unassigned modules are no-access."""
    if is_admin(user):
        return {m.value: AccessLevel.READ_WRITE.value for m in ModuleId}
    levels = {m.value: AccessLevel.NO_ACCESS.value for m in ModuleId}
    for row in db.query(ModuleAccess).filter(ModuleAccess.user_id == user.id).all():
        if row.module_id in levels and row.access_level in LEVEL_RANK:
            levels[row.module_id] = row.access_level
    return levels


def get_level(db: Session, user: User, module: ModuleId) -> str:
    return get_module_access(db, user)[module.value]


def has_access(db: Session, user: User, module: ModuleId, write: bool = False) -> bool:
    needed = AccessLevel.READ_WRITE if write else AccessLevel.READ_ONLY
    return LEVEL_RANK[get_level(db, user, module)] >= LEVEL_RANK[needed.value]


def set_module_access(db: Session, user_id: str, levels: dict[str, str], assigned_by: str | None = None) -> dict[str, str]:
    valid_modules = {m.value for m in ModuleId}
    for module_id, level in levels.items():
        if module_id not in valid_modules:
            raise ValueError(f"Unknown module: {module_id}")
        if level not in LEVEL_RANK:
            raise ValueError(f"Invalid access level for {module_id}: {level}")

    for module_id, level in levels.items():
        row = (
            db.query(ModuleAccess)
            .filter(ModuleAccess.user_id == user_id, ModuleAccess.module_id == module_id)
            .first()
        )
        if row:
            row.access_level = level
            row.assigned_by = assigned_by
        else:
            db.add(ModuleAccess(user_id=user_id, module_id=module_id, access_level=level, assigned_by=assigned_by))
    db.commit()
    user = db.query(User).filter(User.id == user_id).first()
    return get_module_access(db, user)


def list_modules() -> list[dict]:
    return [{"id": m["id"].value, "name": m["name"], "description": m["description"]} for m in MODULE_DEFINITIONS]


# Document folders

def folder_access(db: Session, user: User, folder_id: str) -> str:
    """Effective level on a folder: admin, read-write, read-only or no-access."""
    if is_admin(user) or get_level(db, user, ModuleId.DOCUMENTS) == AccessLevel.READ_WRITE.value:
        return FOLDER_ADMIN
    row = (
        db.query(FolderUserAccess)
        .filter(FolderUserAccess.folder_id == folder_id, FolderUserAccess.user_id == user.id)
        .first()
    )
    if row and row.access_level in LEVEL_RANK:
        return row.access_level
    return AccessLevel.NO_ACCESS.value


def can_read_folder(level: str) -> bool:
    return level in (FOLDER_ADMIN, AccessLevel.READ_WRITE.value, AccessLevel.READ_ONLY.value)


def can_write_folder(level: str) -> bool:
    return level in (FOLDER_ADMIN, AccessLevel.READ_WRITE.value)
