"""Runtime configuration for the upload service.

Values come from the process environment (and a local .env, if present) and
are validated once when the app is created. Nothing rewrites them afterwards.
"""

import os

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

SIZE_UNITS = {"K": 1024, "M": 1024 ** 2, "G": 1024 ** 3}

COLLISION_POLICIES = ("overwrite", "suffix")

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off", ""}

DEFAULTS = {
    "UPLOAD_ROOT": os.path.join(PROJECT_ROOT, "uploads"),
    "UPLOAD_MAX_FILESIZE": "64M",
    "MAX_CONTENT_LENGTH": "64M",
    "ON_COLLISION": "overwrite",
    "BLOCKED_EXTENSIONS": "",
    "VERIFY_IMAGE_CONTENT": "false",
    "SERVE_UPLOADS": "false",
    "PUBLIC_BASE_URL": "",
    "TRUST_PROXY": "false",
    "DEBUG_LOG_PATH": os.path.join("storage", "error_debug.log"),
    "PORT": "8080",
}


class ConfigError(RuntimeError):
    pass


def parse_size(value) -> int:
    """Parse '20M', '512K', '1G' or a plain byte count."""
    if isinstance(value, int):
        return value
    text = str(value).strip().upper()
    if text.endswith("B"):
        text = text[:-1]
    multiplier = 1
    if text and text[-1] in SIZE_UNITS:
        multiplier = SIZE_UNITS[text[-1]]
        text = text[:-1]
    try:
        number = int(text)
    except ValueError:
        raise ConfigError(f"Invalid size value: {value!r}")
    if number < 0:
        raise ConfigError(f"Size must not be negative: {value!r}")
    return number * multiplier


def format_size(num_bytes: int) -> str:
    """Inverse of parse_size for whole units, e.g. 67108864 -> '64M'."""
    for suffix in ("G", "M", "K"):
        unit = SIZE_UNITS[suffix]
        if num_bytes >= unit and num_bytes % unit == 0:
            return f"{num_bytes // unit}{suffix}"
    return str(num_bytes)


def parse_bool(name, value) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def parse_extensions(value):
    if isinstance(value, (list, tuple, set, frozenset)):
        items = value
    else:
        items = str(value).split(",")
    exts = set()
    for item in items:
        item = item.strip().lower()
        if not item:
            continue
        exts.add(item if item.startswith(".") else "." + item)
    return frozenset(exts)


def load_config(overrides=None) -> dict:
    """
    Build the validated config mapping for create_app().
    Raises ConfigError when UPLOAD_API_KEY is missing or a value is malformed.
    """
    raw = dict(DEFAULTS)
    for key in list(DEFAULTS) + ["UPLOAD_API_KEY"]:
        if key in os.environ:
            raw[key] = os.environ[key]
    if overrides:
        raw.update(overrides)

    api_key = raw.get("UPLOAD_API_KEY")
    if not api_key or not str(api_key).strip():
        raise ConfigError("UPLOAD_API_KEY is not set; refusing to start without an upload secret")

    on_collision = str(raw["ON_COLLISION"]).strip().lower()
    if on_collision not in COLLISION_POLICIES:
        raise ConfigError(f"ON_COLLISION must be one of {', '.join(COLLISION_POLICIES)}")

    try:
        port = int(raw["PORT"])
    except (TypeError, ValueError):
        raise ConfigError(f"PORT must be an integer, got {raw['PORT']!r}")

    return {
        "UPLOAD_API_KEY": str(api_key),
        "UPLOAD_ROOT": os.path.abspath(str(raw["UPLOAD_ROOT"])),
        "UPLOAD_MAX_FILESIZE": parse_size(raw["UPLOAD_MAX_FILESIZE"]),
        "MAX_CONTENT_LENGTH": parse_size(raw["MAX_CONTENT_LENGTH"]),
        "ON_COLLISION": on_collision,
        "BLOCKED_EXTENSIONS": parse_extensions(raw["BLOCKED_EXTENSIONS"]),
        "VERIFY_IMAGE_CONTENT": parse_bool("VERIFY_IMAGE_CONTENT", raw["VERIFY_IMAGE_CONTENT"]),
        "SERVE_UPLOADS": parse_bool("SERVE_UPLOADS", raw["SERVE_UPLOADS"]),
        "PUBLIC_BASE_URL": str(raw["PUBLIC_BASE_URL"] or "").rstrip("/"),
        "TRUST_PROXY": parse_bool("TRUST_PROXY", raw["TRUST_PROXY"]),
        "DEBUG_LOG_PATH": str(raw["DEBUG_LOG_PATH"]),
        "PORT": port,
    }
