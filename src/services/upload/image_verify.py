from PIL import Image, UnidentifiedImageError

# Pillow format name -> declared mimetypes it may arrive as
FORMAT_MIMETYPES = {
    "JPEG": {"image/jpeg", "image/jpg"},
    "PNG": {"image/png"},
    "GIF": {"image/gif"},
    "WEBP": {"image/webp"},
}


def image_matches_type(stream, mimetype: str) -> bool:
    """
    Check that the bytes in `stream` decode as an image of the declared type.
    The stream position is restored before returning.
    """
    start = stream.tell()
    try:
        img = Image.open(stream)
        fmt = img.format
        img.verify()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError):
        return False
    finally:
        stream.seek(start)
    return mimetype in FORMAT_MIMETYPES.get(fmt, set())
