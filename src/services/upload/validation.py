import hmac
import os
import re
import time
import uuid

from services.upload.storage import TEMP_PREFIX

CATEGORIES = ("images", "videos")
DEFAULT_CATEGORY = "images"

# mimetype -> extension used when a fallback filename has to be generated
ALLOWED_TYPES = {
    "images": {
        "image/jpeg": ".jpg",
        "image/jpg": ".jpg",
        "image/png": ".png",
        "image/gif": ".gif",
        "image/webp": ".webp",
    },
    "videos": {
        "video/mp4": ".mp4",
        "video/webm": ".webm",
        "video/ogg": ".ogv",
        "video/quicktime": ".mov",
    },
}

MAX_FILE_SIZE = 20 * 1024 * 1024  # 20 MB, applied on top of transport limits

# Transport failure reasons. The numbers are part of the response contract
# (`error_code`), so they must stay stable.
ERR_SERVER_SIZE = 1
ERR_FORM_SIZE = 2
ERR_PARTIAL = 3
ERR_NO_FILE = 4
ERR_NO_TMP_DIR = 6
ERR_CANT_WRITE = 7
ERR_EXTENSION = 8

TRANSPORT_ERROR_MESSAGES = {
    ERR_SERVER_SIZE: (
        "File is too large. Server limit is {server_limit}. "
        "Please reduce file size or contact admin to increase server limits."
    ),
    ERR_FORM_SIZE: "File exceeds form size limit. Maximum allowed: 20MB.",
    ERR_PARTIAL: "File was only partially uploaded. Please try again.",
    ERR_NO_FILE: "No file was uploaded. Please select a file.",
    ERR_NO_TMP_DIR: "Server configuration error: Missing temporary folder.",
    ERR_CANT_WRITE: "Server error: Failed to write file to disk.",
    ERR_EXTENSION: "File upload was blocked by server extension.",
}

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def resolve_category(value) -> str:
    """Unknown or missing categories fall back to images without an error."""
    if value in CATEGORIES:
        return value
    return DEFAULT_CATEGORY


def allowed_types(category: str) -> list:
    return list(ALLOWED_TYPES[category])


def is_allowed_type(category: str, mimetype) -> bool:
    return mimetype in ALLOWED_TYPES[category]


def transport_error_message(code, server_limit=None) -> str:
    template = TRANSPORT_ERROR_MESSAGES.get(code)
    if template is None:
        return f"Upload error: {code}"
    return template.format(server_limit=server_limit or "unknown")


def api_key_matches(provided, expected) -> bool:
    if not provided or not expected:
        return False
    return hmac.compare_digest(str(provided).encode("utf-8"), str(expected).encode("utf-8"))


def client_basename(name):
    """Strip any directory part a client put into the filename."""
    if not name:
        return ""
    return name.replace("\\", "/").rsplit("/", 1)[-1]


def sanitize_filename(name: str) -> str:
    return _UNSAFE_CHARS.sub("_", name)


def fallback_filename(client_name, mimetype, now=None, token=None) -> str:
    """upload-<timestamp>-<random>.<ext>, ext taken from the client name or the mimetype."""
    ext = os.path.splitext(client_name or "")[1]
    if not ext or ext == ".":
        for types in ALLOWED_TYPES.values():
            if mimetype in types:
                ext = types[mimetype]
                break
    ts = int(now if now is not None else time.time())
    token = token or uuid.uuid4().hex[:13]
    return sanitize_filename(f"upload-{ts}-{token}{ext}")


def derive_filename(client_name, mimetype) -> str:
    """Sanitized stored name; generated when the client name is unusable."""
    name = sanitize_filename(client_basename(client_name))
    if name in ("", ".", ".."):
        return fallback_filename(client_name, mimetype)
    if name.startswith(TEMP_PREFIX):
        # the in-progress write prefix is reserved
        name = "_" + name[1:]
    return name


def blocked_extension(filename, blocked) -> bool:
    if not filename or not blocked:
        return False
    return os.path.splitext(filename)[1].lower() in blocked


def build_file_url(base_url: str, category: str, filename: str) -> str:
    return f"{base_url.rstrip('/')}/uploads/{category}/{filename}"
