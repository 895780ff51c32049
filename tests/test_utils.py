from __future__ import annotations

import datetime as dt
from pathlib import Path

import pytest

from snipkeep.errors import ValidationError
from snipkeep.utils import FilePayload, decode_data_uri, format_timestamp, read_file_payload


def test_read_file_payload_guesses_mime(tmp_path: Path) -> None:
    path = tmp_path / "scan.pdf"
    path.write_bytes(b"%PDF-1.4")
    payload = read_file_payload(path)
    assert payload.name == "scan.pdf"
    assert payload.mime_type == "application/pdf"
    assert payload.size == 8


def test_read_file_payload_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ValidationError, match="Failed to read file"):
        read_file_payload(tmp_path / "nope.png")


def test_data_uri_decodes_back_to_bytes() -> None:
    payload = FilePayload(name="a.png", mime_type="image/png", data=b"\x00\x01\xff")
    assert decode_data_uri(payload.as_data_uri()) == (b"\x00\x01\xff", "image/png")
    assert decode_data_uri("AAH/") == (b"\x00\x01\xff", None)


def test_decode_data_uri_rejects_bad_input() -> None:
    with pytest.raises(ValidationError):
        decode_data_uri("data:text/plain,hello")
    with pytest.raises(ValidationError):
        decode_data_uri("data:image/png;base64,@@@")


@pytest.mark.parametrize(
    ("moment", "expected"),
    [
        (dt.datetime(2026, 1, 5, 15, 4, 5), "1/5/2026, 3:04:05 PM"),
        (dt.datetime(2026, 12, 31, 0, 0, 9), "12/31/2026, 12:00:09 AM"),
        (dt.datetime(2026, 6, 1, 12, 30, 0), "6/1/2026, 12:30:00 PM"),
    ],
)
def test_format_timestamp(moment: dt.datetime, expected: str) -> None:
    assert format_timestamp(moment) == expected
