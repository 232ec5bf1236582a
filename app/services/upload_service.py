import logging
import pathlib
import uuid

from fastapi import UploadFile

from app.config import settings

logger = logging.getLogger(__name__)

ALLOWED_EVIDENCE_TYPES = {".pdf", ".png", ".jpg", ".jpeg", ".webp", ".heic"}


def upload_root() -> pathlib.Path:
    root = pathlib.Path(settings.UPLOAD_DIR)
    root.mkdir(parents=True, exist_ok=True)
    return root


def save_upload(file: UploadFile, subdir: str, allowed: set[str] | None = None) -> dict:
    """Store an uploaded file under UPLOAD_DIR/<subdir> and return where it went."""
    if not file.filename:
        raise ValueError("No file uploaded")
    suffix = pathlib.Path(file.filename).suffix.lower()
    if allowed is not None and suffix not in allowed:
        raise ValueError(f"Unsupported file type '{suffix}'. Allowed: {', '.join(sorted(allowed))}")

    content = file.file.read()
    if not content:
        raise ValueError("Uploaded file is empty")

    target_dir = upload_root() / subdir
    target_dir.mkdir(parents=True, exist_ok=True)
    stored_name = f"{uuid.uuid4().hex}{suffix}"
    path = target_dir / stored_name
    path.write_bytes(content)
    return {
        "file_name": file.filename,
        "file_type": file.content_type or "",
        "file_size": len(content),
        "file_path": str(path),
        "file_url": f"/uploads/{subdir}/{stored_name}",
    }


def delete_file(path: str) -> None:
    p = pathlib.Path(path)
    try:
        p.unlink()
    except FileNotFoundError:
        logger.warning("Uploaded file already gone: %s", path)
