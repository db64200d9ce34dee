import datetime
import os

from flask import current_app, g, has_app_context, has_request_context

DEFAULT_LOG_PATH = os.path.join("storage", "error_debug.log")


def _log_path():
    if has_app_context():
        return current_app.config.get("DEBUG_LOG_PATH", DEFAULT_LOG_PATH)
    return DEFAULT_LOG_PATH


def log_debug(msg, request_id=None):
    """Append a line to the debug log. Logging problems never fail a request."""
    try:
        path = _log_path()
        log_dir = os.path.dirname(path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        rid = request_id or (getattr(g, "request_id", None) if has_request_context() else None) or "unknown"
        with open(path, "a", encoding="utf-8") as fh:
            fh.write(f"{datetime.datetime.now(datetime.timezone.utc).isoformat()} [{rid}] {msg}\n")
    except Exception:
        pass
