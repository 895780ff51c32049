from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from ..errors import ValidationError


class ContentType(StrEnum):
    TEXT = "text"
    IMAGE = "image"
    PDF = "pdf"

    @classmethod
    def parse(cls, value: object) -> ContentType:
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.TEXT


def normalize_id(value: object) -> int:
    """Coerce an identity from any ingestion source to ``int``.

    Ids arrive as JSON numbers, numeric strings or CLI arguments; everything
    past this function compares them with plain ``==``.
    """
    if isinstance(value, bool):
        raise ValidationError(f"invalid snippet id: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        raw = value.strip()
        try:
            return int(raw, 10)
        except ValueError:
            pass
    raise ValidationError(f"invalid snippet id: {value!r}")


@dataclass(frozen=True)
class Snippet:
    id: int
    title: str
    content_type: ContentType = ContentType.TEXT
    content: str | None = None
    storage_path: str | None = None
    file_name: str | None = None
    file_type: str | None = None
    password: str = ""
    hidden: bool = False
    is_encrypted: bool = False
    timestamp: str = ""
    # Signed URL resolved for this session only; never sent back to the server.
    file_url: str | None = None

    @property
    def is_file(self) -> bool:
        return self.content_type is not ContentType.TEXT

    @property
    def has_inline_content(self) -> bool:
        return bool(self.content)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Snippet:
        if not isinstance(payload, dict):
            raise ValidationError("snippet payload must be an object")
        # Rows written by the first database backend carry `code` instead of `content`.
        content = payload.get("content") or payload.get("code") or None
        return cls(
            id=normalize_id(payload.get("id")),
            title=str(payload.get("title") or ""),
            content_type=ContentType.parse(payload.get("contentType")),
            content=str(content) if content is not None else None,
            storage_path=payload.get("storagePath") or None,
            file_name=payload.get("fileName") or None,
            file_type=payload.get("fileType") or None,
            password=str(payload.get("password") or ""),
            hidden=bool(payload.get("hidden")),
            is_encrypted=bool(payload.get("isEncrypted")),
            timestamp=str(payload.get("timestamp") or ""),
            file_url=payload.get("fileUrl") or None,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "contentType": self.content_type.value,
            "content": self.content,
            "storagePath": self.storage_path,
            "fileName": self.file_name,
            "fileType": self.file_type,
            "password": self.password,
            "hidden": self.hidden,
            "isEncrypted": self.is_encrypted,
            "timestamp": self.timestamp,
        }
