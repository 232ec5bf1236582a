import pathlib

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from app.api.auth import require_module
from app.database import get_db
from app.models.user import ModuleId, User
from app.schemas.document import DocumentOut, FolderAccessAssign, FolderAccessOut, FolderCreate, FolderOut, FolderUpdate
from app.services import access_service, document_service

router = APIRouter(prefix="/documents", tags=["Documents"])

can_read = require_module(ModuleId.DOCUMENTS)
can_manage = require_module(ModuleId.DOCUMENTS, write=True)


def _folder_level(db: Session, user: User, folder_id: str) -> str:
    if not document_service.get_folder(db, folder_id):
        raise HTTPException(404, "Folder not found")
    return access_service.folder_access(db, user, folder_id)


def _require_read(db: Session, user: User, folder_id: str) -> None:
    if not access_service.can_read_folder(_folder_level(db, user, folder_id)):
        raise HTTPException(403, "No access to this folder")


def _require_write(db: Session, user: User, folder_id: str) -> None:
    if not access_service.can_write_folder(_folder_level(db, user, folder_id)):
        raise HTTPException(403, "Write access to this folder required")


def _folder_out(db: Session, user: User, folder) -> FolderOut:
    return FolderOut(
        id=folder.id,
        name=folder.name,
        description=folder.description,
        access_level=access_service.folder_access(db, user, folder.id),
        document_count=len(folder.documents),
        created_by=folder.created_by,
        created_at=folder.created_at,
        updated_at=folder.updated_at,
    )


# Folders

@router.get("/folders", response_model=list[FolderOut])
def list_folders(user: User = Depends(can_read), db: Session = Depends(get_db)):
    return document_service.list_folders(db, user)


@router.post("/folders", response_model=FolderOut, status_code=201)
def create_folder(data: FolderCreate, user: User = Depends(can_manage), db: Session = Depends(get_db)):
    try:
        folder = document_service.create_folder(db, data, user.id)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return _folder_out(db, user, folder)


@router.patch("/folders/{folder_id}", response_model=FolderOut)
def update_folder(folder_id: str, data: FolderUpdate, user: User = Depends(can_manage), db: Session = Depends(get_db)):
    try:
        folder = document_service.update_folder(db, folder_id, data)
    except ValueError as e:
        raise HTTPException(400, str(e))
    if not folder:
        raise HTTPException(404, "Folder not found")
    return _folder_out(db, user, folder)


@router.delete("/folders/{folder_id}", status_code=204)
def delete_folder(folder_id: str, user: User = Depends(can_manage), db: Session = Depends(get_db)):
    if not document_service.delete_folder(db, folder_id):
        raise HTTPException(404, "Folder not found")


# Folder access

@router.get("/folders/{folder_id}/access", response_model=list[FolderAccessOut])
def list_folder_access(folder_id: str, user: User = Depends(can_manage), db: Session = Depends(get_db)):
    if not document_service.get_folder(db, folder_id):
        raise HTTPException(404, "Folder not found")
    return [
        FolderAccessOut(
            id=row.id,
            folder_id=row.folder_id,
            user_id=row.user_id,
            username=u.username,
            access_level=row.access_level,
            assigned_by=row.assigned_by,
            assigned_at=row.assigned_at,
        )
        for row, u in document_service.list_access(db, folder_id)
    ]


@router.put("/folders/{folder_id}/access", response_model=FolderAccessOut)
def assign_folder_access(
    folder_id: str, data: FolderAccessAssign, user: User = Depends(can_manage), db: Session = Depends(get_db)
):
    try:
        row = document_service.assign_access(db, folder_id, data.user_id, data.access_level, assigned_by=user.id)
    except ValueError as e:
        raise HTTPException(404 if str(e).endswith("not found") else 400, str(e))
    return FolderAccessOut.model_validate(row)


@router.delete("/folders/{folder_id}/access/{user_id}", status_code=204)
def revoke_folder_access(folder_id: str, user_id: str, user: User = Depends(can_manage), db: Session = Depends(get_db)):
    if not document_service.revoke_access(db, folder_id, user_id):
        raise HTTPException(404, "Access entry not found")


# Documents

@router.get("/folders/{folder_id}/documents", response_model=list[DocumentOut])
def list_documents(folder_id: str, user: User = Depends(can_read), db: Session = Depends(get_db)):
    _require_read(db, user, folder_id)
    return document_service.list_documents(db, folder_id)


@router.post("/folders/{folder_id}/documents", response_model=DocumentOut, status_code=201)
def upload_document(
    folder_id: str,
    file: UploadFile = File(...),
    name: str = Form(""),
    user: User = Depends(can_read),
    db: Session = Depends(get_db),
):
    _require_write(db, user, folder_id)
    try:
        return document_service.upload_document(db, folder_id, file, name, user.id)
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.delete("/{document_id}", status_code=204)
def delete_document(document_id: str, user: User = Depends(can_read), db: Session = Depends(get_db)):
    document = document_service.get_document(db, document_id)
    if not document:
        raise HTTPException(404, "Document not found")
    _require_write(db, user, document.folder_id)
    document_service.delete_document(db, document_id)


@router.get("/{document_id}/download")
def download_document(document_id: str, user: User = Depends(can_read), db: Session = Depends(get_db)):
    document = document_service.get_document(db, document_id)
    if not document:
        raise HTTPException(404, "Document not found")
    _require_read(db, user, document.folder_id)
    if not pathlib.Path(document.file_path).is_file():
        raise HTTPException(404, "File is missing from storage")
    return FileResponse(document.file_path, media_type=document.file_type or None, filename=document.file_name)
