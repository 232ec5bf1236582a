from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from app.models.user import AccessLevel


class FolderCreate(BaseModel):
    name: str
    description: str = ""


class FolderUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class FolderOut(BaseModel):
    id: str
    name: str
    description: str
    access_level: str  # admin, read-write, read-only
    document_count: int
    created_by: str | None = None
    created_at: datetime
    updated_at: datetime


class FolderAccessAssign(BaseModel):
    user_id: str
    access_level: AccessLevel


class FolderAccessOut(BaseModel):
    id: str
    folder_id: str
    user_id: str
    username: str = ""
    access_level: str
    assigned_by: str | None = None
    assigned_at: datetime

    model_config = {"from_attributes": True}


class DocumentOut(BaseModel):
    id: str
    folder_id: str
    name: str
    file_name: str
    file_type: str
    file_size: int
    file_url: str
    uploaded_by: str | None = None
    uploaded_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("file_type", mode="before")
    @classmethod
    def file_type_default(cls, v):
        return v or ""
