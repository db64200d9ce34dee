from flask import Blueprint, Response, current_app, jsonify, request, url_for
from werkzeug.exceptions import ClientDisconnected, RequestEntityTooLarge
import os
import traceback

from config import format_size
from observability.debug_log import log_debug
from observability.metrics import inc, record_status
from services.upload.errors import (
    FileTooLarge,
    InvalidContentType,
    MethodNotAllowed,
    NoFileOrTransportError,
    Unauthorized,
    UploadError,
)
from services.upload.image_verify import image_matches_type
from services.upload.storage import ensure_category_dir, save_stream
from services.upload.validation import (
    ERR_CANT_WRITE,
    ERR_EXTENSION,
    ERR_FORM_SIZE,
    ERR_NO_FILE,
    ERR_NO_TMP_DIR,
    ERR_PARTIAL,
    ERR_SERVER_SIZE,
    MAX_FILE_SIZE,
    allowed_types,
    api_key_matches,
    blocked_extension,
    build_file_url,
    derive_filename,
    is_allowed_type,
    resolve_category,
    transport_error_message,
)

upload_bp = Blueprint("upload", __name__)

API_KEY_HEADER = "X-API-Key"

# Other methods are turned into a JSON 405 by method_not_allowed().
ROUTE_METHODS = ["POST", "OPTIONS"]


def transport_error_for(exc):
    """Map an exception raised while receiving the body to a transport error code."""
    if isinstance(exc, RequestEntityTooLarge):
        return ERR_SERVER_SIZE
    if isinstance(exc, ClientDisconnected):
        return ERR_PARTIAL
    if isinstance(exc, FileNotFoundError):
        return ERR_NO_TMP_DIR
    if isinstance(exc, OSError):
        return ERR_CANT_WRITE
    return None


def _load_form():
    return request.form, request.files


def _read_form():
    """
    Parse the multipart body once.
    Returns (form, files, error_code); form and files are None when parsing failed.
    """
    limit = current_app.config.get("MAX_CONTENT_LENGTH")
    if limit is not None and request.content_length is not None and request.content_length > limit:
        return None, None, ERR_SERVER_SIZE
    try:
        form, files = _load_form()
    except (RequestEntityTooLarge, ClientDisconnected, OSError) as e:
        log_debug(f"Receiving upload body failed: {e!r}")
        return None, None, transport_error_for(e)
    return form, files, None


def _transport_failure(code):
    cfg = current_app.config
    server_limit = format_size(cfg["UPLOAD_MAX_FILESIZE"])
    extra = {"error_code": code}
    if code == ERR_SERVER_SIZE:
        extra["server_limit"] = server_limit
        extra["post_limit"] = format_size(cfg["MAX_CONTENT_LENGTH"])
    return NoFileOrTransportError(transport_error_message(code, server_limit), **extra)


def _stream_size(upload):
    stream = upload.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def _form_size_limit(form):
    value = form.get("MAX_FILE_SIZE")
    if not value:
        return None
    try:
        limit = int(value)
    except ValueError:
        return None
    return limit if limit > 0 else None


def _public_base_url():
    configured = current_app.config.get("PUBLIC_BASE_URL")
    if configured:
        return configured
    scheme = "https" if request.is_secure else "http"
    host = request.headers.get("Host") or request.environ.get("SERVER_NAME") or "localhost"
    return f"{scheme}://{host}"


def _handle_upload():
    cfg = current_app.config

    form, files, transport_error = _read_form()

    provided_key = request.headers.get(API_KEY_HEADER)
    if provided_key is None and form is not None:
        provided_key = form.get("api_key")
    if not api_key_matches(provided_key, cfg["UPLOAD_API_KEY"]):
        raise Unauthorized()

    category = resolve_category(form.get("file_type") if form is not None else None)

    # ---- presence / transport checks ----
    if transport_error is not None:
        raise _transport_failure(transport_error)

    upload = files.get("file")
    if upload is None:
        raise NoFileOrTransportError()

    size = _stream_size(upload)
    if not upload.filename and size == 0:
        raise _transport_failure(ERR_NO_FILE)
    if size > cfg["UPLOAD_MAX_FILESIZE"]:
        raise _transport_failure(ERR_SERVER_SIZE)
    form_limit = _form_size_limit(form)
    if form_limit is not None and size > form_limit:
        raise _transport_failure(ERR_FORM_SIZE)
    if blocked_extension(upload.filename, cfg["BLOCKED_EXTENSIONS"]):
        raise _transport_failure(ERR_EXTENSION)

    directory = ensure_category_dir(cfg["UPLOAD_ROOT"], category)

    # ---- application limits ----
    if size > MAX_FILE_SIZE:
        raise FileTooLarge()

    mimetype = upload.mimetype
    if not is_allowed_type(category, mimetype):
        raise InvalidContentType(f"Invalid file type. Allowed: {', '.join(allowed_types(category))}")

    if cfg["VERIFY_IMAGE_CONTENT"] and category == "images":
        if not image_matches_type(upload.stream, mimetype):
            raise InvalidContentType("File content does not match declared type")

    filename = derive_filename(upload.filename, mimetype)
    upload.stream.seek(0)
    stored_name, written = save_stream(upload.stream, directory, filename, cfg["ON_COLLISION"])

    url = build_file_url(_public_base_url(), category, stored_name)
    inc("upload_bytes_stored", written)
    log_debug(f"Stored {category}/{stored_name} ({written} bytes, {mimetype})")

    return {
        "success": True,
        "message": "File uploaded successfully",
        "data": {
            "url": url,
            "filename": stored_name,
            "size": written,
            "mimetype": mimetype,
        },
    }


@upload_bp.route("/upload", methods=ROUTE_METHODS)
def upload_file():
    # pre-flight: CORS headers are added by flask-cors, body stays empty
    if request.method == "OPTIONS":
        return Response(status=200, mimetype="application/json")

    inc("upload_requests")
    body = _handle_upload()
    inc("upload_successes")
    record_status(200)
    return jsonify(body), 200


@upload_bp.errorhandler(UploadError)
def upload_failed(e):
    inc("upload_failures")
    record_status(e.status)
    if e.__cause__ is not None:
        tb = "".join(traceback.format_exception(type(e.__cause__), e.__cause__, e.__cause__.__traceback__))
        log_debug(f"Upload failed ({e.status}): {e.message}\n{tb}")
    else:
        log_debug(f"Upload rejected ({e.status}): {e.message}")
    return jsonify(e.to_dict()), e.status


def method_not_allowed(e):
    """
    App-level handler for routing 405s. Werkzeug rejects unrouted methods
    before the blueprint runs, so the JSON body is produced here.
    """
    if request.path != url_for("upload.upload_file"):
        return e
    inc("upload_requests")
    response, status = upload_failed(MethodNotAllowed())
    if e.valid_methods:
        response.headers["Allow"] = ", ".join(e.valid_methods)
    return response, status
