import io

import pytest

from app import create_app
from config import DEFAULTS
from observability import metrics

API_KEY = "test-upload-secret"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in list(DEFAULTS) + ["UPLOAD_API_KEY"]:
        monkeypatch.delenv(key, raising=False)
    metrics.reset()
    yield


@pytest.fixture
def upload_root(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def make_app(tmp_path, upload_root):
    def _make(**overrides):
        cfg = {
            "TESTING": True,
            "UPLOAD_API_KEY": API_KEY,
            "UPLOAD_ROOT": str(upload_root),
            "DEBUG_LOG_PATH": str(tmp_path / "debug.log"),
            "SERVE_UPLOADS": True,
        }
        cfg.update(overrides)
        return create_app(cfg)
    return _make


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def post_upload(client):
    """POST a single file to /api/upload with the header key by default."""
    def _post(data=PNG_BYTES, filename="photo.png", content_type="image/png",
              file_type=None, api_key=API_KEY, form_key=None, test_client=None, **fields):
        form = dict(fields)
        if data is not None:
            form["file"] = (io.BytesIO(data), filename, content_type)
        if file_type is not None:
            form["file_type"] = file_type
        if form_key is not None:
            form["api_key"] = form_key
        headers = {}
        if api_key is not None:
            headers["X-API-Key"] = api_key
        return (test_client or client).post(
            "/api/upload", data=form, headers=headers, content_type="multipart/form-data"
        )
    return _post
