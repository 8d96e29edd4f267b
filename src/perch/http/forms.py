"""Request body parsing — URL-encoded and multipart forms.

URL-encoded bodies use stdlib ``urllib.parse``; multipart bodies are
parsed with ``python-multipart``. Both produce a ``FormData``, which is a
``MultiDict`` plus any uploaded files.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs

from python_multipart.multipart import MultipartParser, parse_options_header

from perch.http.multidict import MultiDict

FORM_CONTENT_TYPES = frozenset({"application/x-www-form-urlencoded", "multipart/form-data"})


@dataclass(frozen=True, slots=True)
class UploadFile:
    """An uploaded file from a multipart form submission, held in memory."""

    filename: str
    content_type: str
    size: int
    content: bytes = b""

    def __repr__(self) -> str:
        return f"UploadFile({self.filename!r}, {self.content_type!r}, {self.size} bytes)"


class FormData(MultiDict):
    """Parsed form fields plus uploaded files by field name."""

    __slots__ = ("_files",)

    def __init__(
        self,
        data: Mapping[str, list[str]] | None = None,
        files: Mapping[str, UploadFile] | None = None,
    ) -> None:
        super().__init__(data)
        self._files: dict[str, UploadFile] = dict(files or {})

    @property
    def files(self) -> Mapping[str, UploadFile]:
        return self._files


def media_type(content_type: str | None) -> str:
    """``"multipart/form-data; boundary=x"`` -> ``"multipart/form-data"``."""
    return (content_type or "").split(";")[0].strip().lower()


def parse_form_data(body: bytes, content_type: str) -> FormData:
    """Parse a form body.

    Raises ``ValueError`` for a content type that is not a form encoding or
    a multipart body without a boundary.
    """
    kind = media_type(content_type)

    if kind == "application/x-www-form-urlencoded":
        return FormData(parse_qs(body.decode("utf-8"), keep_blank_values=True))

    if kind == "multipart/form-data":
        return _parse_multipart(body, content_type)

    msg = f"Unsupported form content type: {content_type!r}"
    raise ValueError(msg)


def _parse_multipart(body: bytes, content_type: str) -> FormData:
    _, options = parse_options_header(content_type.encode("latin-1"))
    boundary = options.get(b"boundary")
    if boundary is None:
        msg = "Multipart form data missing boundary parameter"
        raise ValueError(msg)

    data: dict[str, list[str]] = {}
    files: dict[str, UploadFile] = {}

    # Per-part state, reset in on_part_begin
    part: dict[str, Any] = {}

    def on_part_begin() -> None:
        part.clear()
        part.update(headers={}, data=bytearray(), name=None, filename=None, pending="")

    def on_part_data(chunk: bytes, start: int, end: int) -> None:
        part["data"].extend(chunk[start:end])

    def on_header_field(chunk: bytes, start: int, end: int) -> None:
        part["pending"] = chunk[start:end].decode("latin-1").lower()

    def on_header_value(chunk: bytes, start: int, end: int) -> None:
        value = chunk[start:end].decode("latin-1")
        part["headers"][part["pending"]] = value
        if part["pending"] == "content-disposition":
            _, params = parse_options_header(value.encode("latin-1"))
            if b"name" in params:
                part["name"] = params[b"name"].decode("utf-8")
            if b"filename" in params:
                part["filename"] = params[b"filename"].decode("utf-8")

    def on_part_end() -> None:
        name = part.get("name")
        if name is None:
            return
        content = bytes(part["data"])
        if part["filename"] is not None:
            files[name] = UploadFile(
                filename=part["filename"],
                content_type=part["headers"].get("content-type", "application/octet-stream"),
                size=len(content),
                content=content,
            )
        else:
            data.setdefault(name, []).append(content.decode("utf-8", errors="replace"))

    parser = MultipartParser(
        boundary,
        {
            "on_part_begin": on_part_begin,
            "on_part_data": on_part_data,
            "on_part_end": on_part_end,
            "on_header_field": on_header_field,
            "on_header_value": on_header_value,
        },
    )
    parser.write(body)
    parser.finalize()

    return FormData(data, files)
