"""
Filename and MIME helpers shared by the upload pipeline.

MIME types are resolved purely from the file extension; the content of a
file is never sniffed.
"""

import base64
import binascii
import os
import re

MAX_FILENAME_LENGTH = 200
DEFAULT_MIME_TYPE = "application/octet-stream"
PDF_MIME_TYPE = "application/pdf"

MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "bmp": "image/bmp",
    "tiff": "image/tiff",
    "tif": "image/tiff",
    "heic": "image/heic",
    "heif": "image/heif",
    "avif": "image/avif",
    "pdf": PDF_MIME_TYPE,
}

IMAGE_TYPES = {mime for mime in MIME_TYPES.values() if mime.startswith("image/")}

ZIP_CONTENT_TYPES = {"application/zip", "application/x-zip-compressed", "application/x-zip"}

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_DATA_URL = re.compile(r"^data:([^;,]+);base64,(.*)$", re.DOTALL)


def fit_filename(base: str, ext: str, suffix: str = "") -> str:
    """Join base, suffix and extension, shortening only the base to stay within the length limit."""
    room = MAX_FILENAME_LENGTH - len(suffix) - len(ext)
    if room < 1:
        return f"{base}{suffix}{ext}"[:MAX_FILENAME_LENGTH]
    return f"{base[:room]}{suffix}{ext}"


def sanitize_filename(name: str) -> str:
    """Strip directories and replace anything outside [A-Za-z0-9._-] with '_'."""
    base = re.split(r"[\\/]", name or "")[-1]
    safe = _UNSAFE_CHARS.sub("_", base)
    if len(safe) > MAX_FILENAME_LENGTH:
        safe = fit_filename(*os.path.splitext(safe))
    # "", "." and ".." cannot be written as regular files
    if not safe.strip("."):
        return "file"
    return safe


def mime_type(filename: str) -> str:
    ext = filename.lower().rsplit(".", 1)[-1] if "." in filename else ""
    return MIME_TYPES.get(ext, DEFAULT_MIME_TYPE)


def extension_for(mime: str) -> str:
    """Preferred extension (with the dot) for a known MIME type, or ''."""
    for ext, known in MIME_TYPES.items():
        if known == mime:
            return f".{ext}"
    return ""


def is_image(mime: str) -> bool:
    return mime in IMAGE_TYPES or mime.startswith("image/")


def is_pdf(mime: str) -> bool:
    return mime == PDF_MIME_TYPE


def is_supported(mime: str) -> bool:
    """Images and PDFs are the only documents the pipeline keeps."""
    return is_image(mime) or is_pdf(mime)


def is_zip(filename: str, content_type: str | None = None) -> bool:
    if filename.lower().endswith(".zip"):
        return True
    return (content_type or "").split(";")[0].strip().lower() in ZIP_CONTENT_TYPES


def to_data_url(data: bytes, mime: str) -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def parse_data_url(data_url: str) -> tuple[str, bytes] | None:
    """Decode a `data:<mime>;base64,<payload>` string, or None when malformed."""
    if not isinstance(data_url, str):
        return None
    match = _DATA_URL.match(data_url.strip())
    if not match:
        return None
    try:
        payload = base64.b64decode(match.group(2), validate=True)
    except (binascii.Error, ValueError):
        return None
    return match.group(1).strip().lower(), payload
