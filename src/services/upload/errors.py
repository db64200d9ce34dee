"""Upload failure taxonomy.

Every failure is terminal for the request and is rendered as a JSON body
with `success: false` and the matching HTTP status.
"""


class UploadError(Exception):
    status = 400
    message = "Upload failed"

    def __init__(self, message=None, **extra):
        self.message = message or self.message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self):
        body = {"success": False, "message": self.message}
        body.update(self.extra)
        return body


class MethodNotAllowed(UploadError):
    status = 405
    message = "Method not allowed"


class Unauthorized(UploadError):
    status = 401
    message = "Unauthorized: Invalid API key"


class NoFileOrTransportError(UploadError):
    status = 400
    message = "No file uploaded. Please select a file and try again."


class FileTooLarge(UploadError):
    status = 400
    message = "File too large. Max size: 20MB"


class InvalidContentType(UploadError):
    status = 400
    message = "Invalid file type"


class DirectoryCreateFailed(UploadError):
    status = 500
    message = "Failed to create upload directory"


class PersistFailed(UploadError):
    status = 500
    message = "Failed to save file"
