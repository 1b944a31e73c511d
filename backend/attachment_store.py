# attachment_store.py — Upload validation and on-disk storage for card attachments
import os
import uuid
import asyncio
import logging
from pathlib import Path
from typing import Iterable, Optional

from errors import InvalidOperation

logger = logging.getLogger("taskboard.attachments")

STORAGE_ROOT = Path(os.getenv("ATTACHMENT_STORAGE_ROOT", "./uploads/attachments"))
MAX_ATTACHMENT_BYTES = int(os.getenv("MAX_ATTACHMENT_BYTES", str(10 * 1024 * 1024)))

# Blocked outright, checked before the allow-list
DANGEROUS_EXTENSIONS = {
    ".exe", ".dll", ".bat", ".cmd", ".sh", ".ps1", ".vbs", ".js", ".jar", ".msi", ".app",
    ".php", ".asp", ".aspx", ".jsp", ".html", ".htm", ".xml", ".jsx", ".tsx",
    ".py", ".rb", ".pl", ".sql",
    ".lnk", ".scr", ".com", ".pif",
}

# Allowed extension → expected MIME type
EXTENSION_MIME_TYPES = {
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".ppt": "application/vnd.ms-powerpoint",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ".odt": "application/vnd.oasis.opendocument.text",
    ".ods": "application/vnd.oasis.opendocument.spreadsheet",
    ".odp": "application/vnd.oasis.opendocument.presentation",
    ".txt": "text/plain",
    ".rtf": "application/rtf",
    ".csv": "text/csv",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".zip": "application/zip",
    ".rar": "application/x-rar-compressed",
    ".7z": "application/x-7z-compressed",
    ".tar": "application/x-tar",
    ".gz": "application/gzip",
}

ZIP_CONTAINERS = {".zip", ".docx", ".xlsx", ".pptx", ".odt", ".ods", ".odp"}


def _signature_ok(extension: str, header: bytes) -> bool:
    if len(header) < 4:
        return False
    if extension == ".png":
        return header[:4] == b"\x89PNG"
    if extension == ".pdf":
        return header[:4] == b"%PDF"
    if extension in (".jpg", ".jpeg"):
        return header[:3] == b"\xff\xd8\xff"
    if extension == ".gif":
        return header[:4] == b"GIF8"
    if extension in ZIP_CONTAINERS:
        return header[:2] == b"PK" and header[2] in (0x03, 0x05, 0x07)
    return True


def validate_upload(file_name: Optional[str], content_type: Optional[str], data: bytes) -> str:
    """Returns the normalised extension or raises InvalidOperation."""
    if not data:
        raise InvalidOperation("File is empty")
    if len(data) > MAX_ATTACHMENT_BYTES:
        raise InvalidOperation(f"File exceeds the {MAX_ATTACHMENT_BYTES // (1024 * 1024)} MB limit")

    extension = os.path.splitext(file_name or "")[1].lower()
    if not extension:
        raise InvalidOperation("File must have an extension")
    if extension in DANGEROUS_EXTENSIONS:
        raise InvalidOperation(f"File type '{extension}' is not allowed for security reasons")
    expected = EXTENSION_MIME_TYPES.get(extension)
    if expected is None:
        raise InvalidOperation(f"File type '{extension}' is not supported")

    declared = (content_type or "").split(";")[0].strip().lower()
    if declared != expected:
        raise InvalidOperation(f"Content type does not match '{extension}'")
    if not _signature_ok(extension, data[:10]):
        raise InvalidOperation("File content does not match its extension")
    return extension


def path_for(stored_name: str) -> Path:
    return STORAGE_ROOT / Path(stored_name).name


def _write(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


async def store(data: bytes, extension: str) -> str:
    stored_name = f"{uuid.uuid4().hex}{extension}"
    await asyncio.to_thread(_write, path_for(stored_name), data)
    return stored_name


def _unlink(names: Iterable[str]) -> None:
    for name in names:
        try:
            path_for(name).unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove stored attachment {name}: {e}")


async def discard(names: Iterable[str]) -> None:
    """Remove stored files after their rows are gone. Failures are logged."""
    names = list(names)
    if names:
        await asyncio.to_thread(_unlink, names)
