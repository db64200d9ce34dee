import os

from flask import Blueprint, current_app, jsonify
from observability.metrics import snapshot
from services.upload.storage import TEMP_PREFIX
from services.upload.validation import CATEGORIES

metrics_bp = Blueprint("metrics", __name__)


def _stored_counts(upload_root):
    counts = {}
    for category in CATEGORIES:
        path = os.path.join(upload_root, category)
        try:
            with os.scandir(path) as entries:
                counts[category] = sum(
                    1 for entry in entries
                    if entry.is_file() and not entry.name.startswith(TEMP_PREFIX)
                )
        except FileNotFoundError:
            counts[category] = 0
    return counts


@metrics_bp.route("/metrics", methods=["GET"])
def metrics():
    return jsonify({
        "counters": snapshot(),
        "stored_files": _stored_counts(current_app.config["UPLOAD_ROOT"]),
    })
