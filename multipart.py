"""
multipart.py – multipart/form-data decoder
Splits a raw request body into plain form fields and uploaded files. Only the
two part kinds browsers send for a form (text field, file) are supported.
File parts are written to the upload directory as they are decoded.

A part that has no header/body separator, or no name in its
Content-Disposition, is skipped; callers check for required fields afterwards.
"""

import logging
import os
import re
import secrets
import time
from typing import Optional

from werkzeug.utils import secure_filename

from errors import ValidationError
from file_helpers import remove_file, save_upload

logger = logging.getLogger(__name__)

DEFAULT_FILE_TYPE = "application/octet-stream"

_CRLF            = b"\r\n"
_HEADER_END      = b"\r\n\r\n"
_DISPOSITION_ARG = re.compile(r';\s*([\w*-]+)\s*=\s*(?:"((?:[^"\\]|\\.)*)"|([^;\s]*))')


class UploadedFile:
    """Metadata for one file part that has been saved to disk."""

    def __init__(self, field_name: str, original_filename: str, filename: str,
                 filepath: str, content_type: str, size: int):
        self.field_name        = field_name
        self.original_filename = original_filename
        self.filename          = filename
        self.filepath          = filepath
        self.content_type      = content_type
        self.size              = size

    def discard(self) -> bool:
        return remove_file(self.filepath)

    def to_dict(self) -> dict:
        return {
            "originalFilename": self.original_filename,
            "filename": self.filename,
            "filepath": self.filepath,
            "contentType": self.content_type,
            "size": self.size,
        }

    def __repr__(self):
        return f"<UploadedFile {self.field_name}={self.filename} ({self.size} bytes)>"


class MultipartForm:
    """Result of a decode: {name: str} fields and {name: UploadedFile} files."""

    def __init__(self):
        self.fields = {}
        self.files  = {}


# ─────────────────────────────────────────────────────────────────────────────
# HEADER PARSING
# ─────────────────────────────────────────────────────────────────────────────
def parse_boundary(content_type: Optional[str]) -> str:
    """
    Extract the boundary token from a multipart/form-data Content-Type.
    Raises ValidationError for any other content type.
    """
    media_type, _, params = (content_type or "").partition(";")
    if media_type.strip().lower() != "multipart/form-data":
        raise ValidationError("Content-Type must be multipart/form-data",
                              code="INVALID_CONTENT_TYPE")

    for param in params.split(";"):
        key, _, value = param.strip().partition("=")
        if key.strip().lower() == "boundary":
            boundary = value.strip().strip('"')
            if boundary:
                return boundary
    raise ValidationError("multipart/form-data request is missing its boundary",
                          code="INVALID_CONTENT_TYPE")


def _parse_part_headers(raw: bytes) -> dict:
    headers = {}
    for line in raw.decode("utf-8", "replace").split("\r\n"):
        name, sep, value = line.partition(":")
        if sep:
            headers[name.strip().lower()] = value.strip()
    return headers


def _parse_disposition(value: str) -> dict:
    params = {}
    for match in _DISPOSITION_ARG.finditer(value):
        key = match.group(1).lower()
        if match.group(2) is not None:
            params[key] = match.group(2).replace('\\"', '"')
        else:
            params[key] = match.group(3)
    return params


# ─────────────────────────────────────────────────────────────────────────────
# BOUNDARY SCANNER
# ─────────────────────────────────────────────────────────────────────────────
def iter_parts(body: bytes, boundary: str):
    """
    Yield the raw bytes of each part (headers + blank line + content).
    Content ends just before the CRLF that precedes the next delimiter.
    Scanning stops at the closing delimiter or when no further delimiter exists.
    """
    delimiter = b"--" + boundary.encode("latin-1")
    position = body.find(delimiter)

    while position != -1:
        start = position + len(delimiter)
        if body[start:start + 2] == b"--":
            return
        end = body.find(_CRLF + delimiter, start)
        if end == -1:
            logger.debug("Multipart body ends without a closing delimiter")
            return
        part = body[start:end]
        # Drop the rest of the delimiter line (transport padding + CRLF)
        line_end = part.find(_CRLF)
        yield part[line_end + 2:] if line_end != -1 else b""
        position = end + len(_CRLF)


# ─────────────────────────────────────────────────────────────────────────────
# FILE NAMING
# ─────────────────────────────────────────────────────────────────────────────
def generate_upload_name(original_filename: str) -> str:
    """
    "My Soup.JPG" -> "My_Soup_1714564800000_3f9a1c2e.jpg"
    Sanitised basename, millisecond timestamp and a random suffix; the
    original extension is kept.
    """
    base, extension = os.path.splitext(os.path.basename(original_filename.replace("\\", "/")))
    safe_base = re.sub(r"[^A-Za-z0-9]", "_", secure_filename(base)) or "upload"
    safe_extension = re.sub(r"[^A-Za-z0-9]", "", extension).lower()
    timestamp = int(time.time() * 1000)
    name = f"{safe_base}_{timestamp}_{secrets.token_hex(4)}"
    return f"{name}.{safe_extension}" if safe_extension else name


# ─────────────────────────────────────────────────────────────────────────────
# DECODER
# ─────────────────────────────────────────────────────────────────────────────
def decode_multipart(body: bytes, boundary: str, upload_dir: str) -> MultipartForm:
    """Split body into fields and files, saving each file part under upload_dir."""
    form = MultipartForm()
    try:
        _decode_parts(form, body, boundary, upload_dir)
    except OSError:
        for upload in form.files.values():
            upload.discard()
        raise

    logger.debug(f"Decoded multipart body: {len(form.fields)} fields, {len(form.files)} files")
    return form


def _decode_parts(form: MultipartForm, body: bytes, boundary: str, upload_dir: str) -> None:
    for index, part in enumerate(iter_parts(body, boundary), start=1):
        separator = part.find(_HEADER_END)
        if separator == -1:
            logger.warning(f"Skipping multipart part {index}: no header/body separator")
            continue

        headers = _parse_part_headers(part[:separator])
        content = part[separator + len(_HEADER_END):]
        disposition = _parse_disposition(headers.get("content-disposition", ""))

        field_name = disposition.get("name")
        if not field_name:
            logger.warning(f"Skipping multipart part {index}: no field name")
            continue

        if "filename" not in disposition:
            form.fields[field_name] = content.decode("utf-8", "replace")
            continue

        original_filename = disposition["filename"]
        if not original_filename:
            # Browsers send an empty filename for a file input left blank
            logger.debug(f"Skipping multipart part {index}: empty file input {field_name!r}")
            continue

        filename = generate_upload_name(original_filename)
        filepath = save_upload(upload_dir, filename, content)
        previous = form.files.get(field_name)
        if previous is not None:
            previous.discard()
        form.files[field_name] = UploadedFile(
            field_name=field_name,
            original_filename=original_filename,
            filename=filename,
            filepath=filepath,
            content_type=headers.get("content-type") or DEFAULT_FILE_TYPE,
            size=len(content),
        )


def parse_multipart(content_type: Optional[str], body: bytes, upload_dir: str) -> MultipartForm:
    return decode_multipart(body, parse_boundary(content_type), upload_dir)
