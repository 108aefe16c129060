from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import Any
from uuid import UUID

from fastapi import UploadFile

from app.core.errors import NotFound, UpstreamError, ValidationError
from app.services.storage.adapter import StorageAdapter
from app.services.storage.key_generator import KeyGenerator


ALLOWED_EXTENSIONS = {
    ".pdf",
    ".png",
    ".jpg",
    ".jpeg",
    ".doc",
    ".docx",
    ".xls",
    ".xlsx",
    ".csv",
    ".txt",
}

_OLE_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"

# Magic byte signatures for known binary file types.
# Used to cross-check that uploaded file content matches the claimed extension.
_MAGIC_SIGNATURES: dict[str, list[bytes]] = {
    ".pdf": [b"%PDF"],
    ".png": [b"\x89PNG\r\n\x1a\n"],
    ".jpg": [b"\xff\xd8\xff"],
    ".jpeg": [b"\xff\xd8\xff"],
    ".doc": [_OLE_SIGNATURE],
    ".xls": [_OLE_SIGNATURE],
    ".docx": [b"PK\x03\x04", b"PK\x05\x06"],
    ".xlsx": [b"PK\x03\x04", b"PK\x05\x06"],
}

# Extensions whose content can execute scripts when rendered in a browser.
_DANGEROUS_EXTENSIONS = {".html", ".htm", ".svg", ".xhtml", ".js", ".mjs", ".xml"}

_CHUNK_SIZE = 1024 * 1024


def _validate_content_type(header_bytes: bytes, ext: str) -> None:
    """Check the leading bytes against the magic signature for ``ext``, if it has one."""
    signatures = _MAGIC_SIGNATURES.get(ext)
    if signatures is None:
        return  # text formats have no signature
    if not any(header_bytes.startswith(sig) for sig in signatures):
        raise ValidationError(f"File content does not match the expected format for '{ext}'")


def _safe_filename(filename: str | None, fallback: str) -> str:
    if not filename:
        return fallback
    return Path(filename).name or fallback


def _validate_extension(ext: str) -> None:
    if ext in _DANGEROUS_EXTENSIONS:
        raise ValidationError(
            f"File type '{ext}' is not allowed because it may contain executable content",
            details={"extension": ext},
        )
    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationError(
            f"File type not allowed. Allowed extensions: {', '.join(sorted(ALLOWED_EXTENSIONS))}",
            details={"extension": ext},
        )


async def read_upload(file: UploadFile, *, max_size_bytes: int) -> tuple[bytes, str, str]:
    """Read and validate an upload; returns ``(content, original_name, extension)``."""
    original_name = _safe_filename(file.filename, "upload.bin")
    ext = Path(original_name).suffix.lower()
    _validate_extension(ext)

    chunks: list[bytes] = []
    bytes_read = 0
    try:
        while True:
            chunk = await file.read(_CHUNK_SIZE)
            if not chunk:
                break
            if not chunks:
                _validate_content_type(chunk, ext)
            bytes_read += len(chunk)
            if max_size_bytes and bytes_read > max_size_bytes:
                raise ValidationError(
                    f"File exceeds maximum allowed size of {max_size_bytes // (1024 * 1024)} MB"
                )
            chunks.append(chunk)
    finally:
        await file.close()

    if bytes_read == 0:
        raise ValidationError("Uploaded file is empty")
    return b"".join(chunks), original_name, ext


async def store_upload(
    adapter: StorageAdapter,
    file: UploadFile,
    *,
    user_id: UUID,
    max_size_bytes: int,
) -> dict[str, Any]:
    content, original_name, ext = await read_upload(file, max_size_bytes=max_size_bytes)
    content_type = file.content_type or mimetypes.guess_type(original_name)[0]
    object_key = KeyGenerator.upload_key(user_id, original_name)
    try:
        adapter.write_bytes(object_key, content, content_type)
    except OSError as exc:
        raise UpstreamError("File storage unavailable") from exc
    return {
        "key": object_key,
        "file_name": original_name,
        "content_type": content_type,
        "size_bytes": len(content),
    }


def ensure_owned_file_refs(
    adapter: StorageAdapter, user_id: UUID, file_refs: list[dict[str, Any]]
) -> None:
    for ref in file_refs:
        if not KeyGenerator.is_owned_upload(user_id, ref["key"]):
            raise ValidationError(
                "File reference was not uploaded by this user", details={"key": ref["key"]}
            )
        if not adapter.object_exists(ref["key"]):
            raise ValidationError("Referenced file does not exist", details={"key": ref["key"]})


def download(adapter: StorageAdapter, file_ref: dict[str, Any]) -> bytes:
    try:
        return adapter.read_bytes(file_ref["key"])
    except FileNotFoundError as exc:
        raise NotFound("File not found", details={"key": file_ref["key"]}) from exc
    except ValueError as exc:
        raise ValidationError("Invalid file key") from exc
    except OSError as exc:
        raise UpstreamError("File storage unavailable") from exc


def access_url(adapter: StorageAdapter, file_ref: dict[str, Any], *, expires_in: int) -> str:
    try:
        return adapter.generate_download_url(
            file_ref["key"], expires_in=expires_in, filename=file_ref.get("file_name")
        )
    except ValueError as exc:
        raise ValidationError("Invalid file key") from exc
    except OSError as exc:
        raise UpstreamError("File storage unavailable") from exc
