"""Development-only static serving of stored uploads.

Production deployments point a static file server at UPLOAD_ROOT instead;
this blueprint is registered only when SERVE_UPLOADS is enabled.
"""
import os

from flask import Blueprint, abort, current_app, send_from_directory
from services.upload.storage import TEMP_PREFIX
from services.upload.validation import CATEGORIES

files_bp = Blueprint("files", __name__)


@files_bp.route("/uploads/<category>/<filename>", methods=["GET"])
def serve_upload(category, filename):
    if category not in CATEGORIES or filename.startswith(TEMP_PREFIX):
        abort(404)
    directory = os.path.join(current_app.config["UPLOAD_ROOT"], category)
    return send_from_directory(directory, filename)
