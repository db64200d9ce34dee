import os
import shutil
import tempfile

from services.upload.errors import DirectoryCreateFailed, PersistFailed

DIR_MODE = 0o755
FILE_MODE = 0o644
TEMP_PREFIX = ".upload-"


def ensure_category_dir(upload_root: str, category: str) -> str:
    """
    Create <upload_root>/<category> (and parents) if needed and return it.
    Concurrent creators are fine: an existing directory counts as success.
    """
    path = os.path.join(upload_root, category)
    try:
        os.makedirs(path, mode=DIR_MODE, exist_ok=True)
    except OSError as e:
        raise DirectoryCreateFailed() from e
    if not os.path.isdir(path):
        raise DirectoryCreateFailed()
    return path


def _suffixed(filename: str, n: int) -> str:
    base, ext = os.path.splitext(filename)
    return f"{base}-{n}{ext}"


def _reserve_unique(directory: str, filename: str) -> str:
    """Claim a name that does not exist yet by creating an empty placeholder."""
    candidate = filename
    n = 0
    while True:
        try:
            fd = os.open(os.path.join(directory, candidate), os.O_CREAT | os.O_EXCL | os.O_WRONLY, FILE_MODE)
        except FileExistsError:
            n += 1
            candidate = _suffixed(filename, n)
            continue
        os.close(fd)
        return candidate


def save_stream(stream, directory: str, filename: str, on_collision: str = "overwrite"):
    """
    Copy `stream` to <directory>/<filename> without ever exposing a partial file.

    Data goes to a hidden temp file in the same directory which is renamed
    over the final path once complete. With on_collision="overwrite" an
    existing file of the same name is replaced (last rename wins); with
    "suffix" the name gets -1, -2, ... appended instead.

    Returns (stored_filename, bytes_written).
    """
    tmp_path = None
    reserved = None
    try:
        if on_collision == "suffix":
            filename = reserved = _reserve_unique(directory, filename)

        fd, tmp_path = tempfile.mkstemp(prefix=TEMP_PREFIX, dir=directory)
        with os.fdopen(fd, "wb") as fh:
            shutil.copyfileobj(stream, fh, length=1024 * 1024)
            fh.flush()
            os.fsync(fh.fileno())
            size = fh.tell()
        os.chmod(tmp_path, FILE_MODE)
        os.replace(tmp_path, os.path.join(directory, filename))
        tmp_path = None
        return filename, size
    except OSError as e:
        if reserved is not None:
            _remove_quietly(os.path.join(directory, reserved))
        raise PersistFailed() from e
    finally:
        if tmp_path is not None:
            _remove_quietly(tmp_path)


def _remove_quietly(path):
    try:
        os.remove(path)
    except OSError:
        # leftover temp files are hidden and never served
        pass
