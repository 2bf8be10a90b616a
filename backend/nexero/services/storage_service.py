# Overview: Service-layer operations for object storage; purchase-receipt attachments.

from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import Protocol
from uuid import uuid4

from flask import current_app
from werkzeug.utils import secure_filename


class StorageError(Exception):
    """Raised when an object cannot be stored."""
    pass


class ObjectStorage(Protocol):
    def put(self, data: bytes, content_type: str | None, *, filename: str | None = None, org_id: int | None = None) -> str:
        """Store bytes and return a stable reference path."""
        ...


class LocalObjectStorage:
    """
    Filesystem object storage.

    Objects land under <root>/<org_id>/<uuid><ext>; the returned path is
    relative to root so the folder can move without rewriting rows.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def put(self, data: bytes, content_type: str | None, *, filename: str | None = None, org_id: int | None = None) -> str:
        if not data:
            raise StorageError("Attachment is empty")

        extension = ""
        if filename:
            extension = Path(secure_filename(filename)).suffix.lower()
        if not extension and content_type:
            extension = mimetypes.guess_extension(content_type) or ""

        relative = Path(str(org_id or 0)) / f"{uuid4().hex}{extension}"
        target = self.root / relative
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"Could not write attachment: {exc}") from exc

        return relative.as_posix()


def get_object_storage() -> ObjectStorage:
    """Storage configured for the current app (UPLOAD_FOLDER, relative to the instance folder)."""
    root = Path(current_app.config["UPLOAD_FOLDER"])
    if not root.is_absolute():
        root = Path(current_app.instance_path) / root
    return LocalObjectStorage(root)
