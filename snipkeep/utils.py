from __future__ import annotations

import base64
import binascii
import datetime as dt
import mimetypes
from dataclasses import dataclass
from pathlib import Path

from .errors import ValidationError


@dataclass(frozen=True)
class FilePayload:
    name: str
    mime_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    def as_data_uri(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


def read_file_payload(path: Path) -> FilePayload:
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise ValidationError(f"Failed to read file: {exc}") from exc
    mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    return FilePayload(name=path.name, mime_type=mime_type, data=data)


def decode_data_uri(value: str) -> tuple[bytes, str | None]:
    """Decode ``data:<mime>;base64,<payload>``; bare base64 is accepted too."""
    mime_type = None
    payload = value.strip()
    if payload.startswith("data:"):
        header, _, payload = payload.partition(",")
        meta = header[len("data:") :]
        if not meta.endswith(";base64"):
            raise ValidationError("only base64 data URIs are supported")
        mime_type = meta[: -len(";base64")] or None
    try:
        return base64.b64decode(payload, validate=True), mime_type
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("file content is not valid base64") from exc


def format_timestamp(moment: dt.datetime) -> str:
    """Local time in the form older clients stored, e.g. ``1/5/2026, 3:04:05 PM``."""
    hour = moment.hour % 12 or 12
    suffix = "AM" if moment.hour < 12 else "PM"
    return (
        f"{moment.month}/{moment.day}/{moment.year}, "
        f"{hour}:{moment.minute:02d}:{moment.second:02d} {suffix}"
    )
