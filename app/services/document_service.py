import logging

from fastapi import UploadFile
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.document import Document, DocumentFolder, FolderUserAccess
from app.models.user import AccessLevel, User
from app.schemas.document import FolderCreate, FolderUpdate
from app.services import access_service, upload_service

logger = logging.getLogger(__name__)


def get_folder(db: Session, folder_id: str) -> DocumentFolder | None:
    return db.query(DocumentFolder).filter(DocumentFolder.id == folder_id).first()


def list_folders(db: Session, user: User) -> list[dict]:
    """Folders the user can see, with their effective access and document count."""
    counts = dict(
        db.query(Document.folder_id, func.count(Document.id)).group_by(Document.folder_id).all()
    )
    result = []
    for folder in db.query(DocumentFolder).order_by(DocumentFolder.name).all():
        level = access_service.folder_access(db, user, folder.id)
        if not access_service.can_read_folder(level):
            continue
        result.append({
            "id": folder.id,
            "name": folder.name,
            "description": folder.description,
            "access_level": level,
            "document_count": counts.get(folder.id, 0),
            "created_by": folder.created_by,
            "created_at": folder.created_at,
            "updated_at": folder.updated_at,
        })
    return result


def create_folder(db: Session, data: FolderCreate, user_id: str | None = None) -> DocumentFolder:
    name = data.name.strip()
    if not name:
        raise ValueError("Folder name is required")
    if db.query(DocumentFolder).filter(func.lower(DocumentFolder.name) == name.lower()).first():
        raise ValueError(f"Folder '{name}' already exists")
    folder = DocumentFolder(name=name, description=data.description, created_by=user_id)
    db.add(folder)
    db.commit()
    db.refresh(folder)
    logger.info("Created document folder %s", folder.name)
    return folder


def update_folder(db: Session, folder_id: str, data: FolderUpdate) -> DocumentFolder | None:
    folder = get_folder(db, folder_id)
    if not folder:
        return None
    changes = data.model_dump(exclude_unset=True)
    if "name" in changes:
        if not changes["name"] or not changes["name"].strip():
            raise ValueError("Folder name is required")
        changes["name"] = changes["name"].strip()
    for field, val in changes.items():
        setattr(folder, field, val)
    db.commit()
    db.refresh(folder)
    return folder


def delete_folder(db: Session, folder_id: str) -> bool:
    folder = get_folder(db, folder_id)
    if not folder:
        return False
    name = folder.name
    paths = [d.file_path for d in folder.documents]
    db.delete(folder)
    db.commit()
    for path in paths:
        upload_service.delete_file(path)
    logger.info("Deleted document folder %s with %d documents", name, len(paths))
    return True


# Folder access

def assign_access(db: Session, folder_id: str, user_id: str, level: AccessLevel, assigned_by: str | None = None) -> FolderUserAccess:
    if not get_folder(db, folder_id):
        raise ValueError("Folder not found")
    if not db.query(User).filter(User.id == user_id).first():
        raise ValueError("User not found")
    row = (
        db.query(FolderUserAccess)
        .filter(FolderUserAccess.folder_id == folder_id, FolderUserAccess.user_id == user_id)
        .first()
    )
    if row:
        row.access_level = level.value
        row.assigned_by = assigned_by
    else:
        row = FolderUserAccess(folder_id=folder_id, user_id=user_id, access_level=level.value, assigned_by=assigned_by)
        db.add(row)
    db.commit()
    db.refresh(row)
    return row


def list_access(db: Session, folder_id: str) -> list[tuple[FolderUserAccess, User]]:
    return (
        db.query(FolderUserAccess, User)
        .join(User, User.id == FolderUserAccess.user_id)
        .filter(FolderUserAccess.folder_id == folder_id)
        .order_by(User.username)
        .all()
    )


def revoke_access(db: Session, folder_id: str, user_id: str) -> bool:
    deleted = (
        db.query(FolderUserAccess)
        .filter(FolderUserAccess.folder_id == folder_id, FolderUserAccess.user_id == user_id)
        .delete()
    )
    db.commit()
    return deleted > 0


# Documents

def list_documents(db: Session, folder_id: str) -> list[Document]:
    return db.query(Document).filter(Document.folder_id == folder_id).order_by(Document.uploaded_at.desc()).all()


def get_document(db: Session, document_id: str) -> Document | None:
    return db.query(Document).filter(Document.id == document_id).first()


def upload_document(db: Session, folder_id: str, file: UploadFile, name: str = "", user_id: str | None = None) -> Document:
    if not get_folder(db, folder_id):
        raise ValueError("Folder not found")
    stored = upload_service.save_upload(file, f"documents/{folder_id}")
    document = Document(
        folder_id=folder_id,
        name=name.strip() or stored["file_name"],
        file_name=stored["file_name"],
        file_type=stored["file_type"],
        file_size=stored["file_size"],
        file_url=stored["file_url"],
        file_path=stored["file_path"],
        uploaded_by=user_id,
    )
    db.add(document)
    db.commit()
    db.refresh(document)
    logger.info("Uploaded document %s (%d bytes)", document.file_name, document.file_size)
    return document


def delete_document(db: Session, document_id: str) -> bool:
    document = get_document(db, document_id)
    if not document:
        return False
    path = document.file_path
    db.delete(document)
    db.commit()
    upload_service.delete_file(path)
    return True
