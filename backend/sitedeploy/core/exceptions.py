from typing import List, Optional

from fastapi import HTTPException, status


class NotFoundException(HTTPException):
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


# Service-level errors (no HTTP semantics; mapped to responses in main.py)

class DeployError(Exception):
    """Base class for deployment pipeline failures."""


class ConfigurationError(DeployError):
    """Required settings are missing; raised before any I/O happens."""

    def __init__(self, missing: List[str], service: str = "qiniu"):
        self.missing = list(missing)
        self.service = service
        super().__init__(f"{service} is not configured: missing {', '.join(self.missing)}")


class UpstreamError(DeployError):
    """A remote call (object storage, GitHub, preview fetch) failed."""

    def __init__(self, message: str, status_code: Optional[int] = None, url: Optional[str] = None):
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class UploadFailedError(DeployError):
    """Every file in a non-empty upload batch failed."""

    def __init__(self, attempted: int, errors: dict):
        self.attempted = attempted
        self.errors = errors
        super().__init__(f"All {attempted} file uploads failed")


class SourceDirectoryError(DeployError):
    """The site directory to deploy is missing or cannot be walked."""

    def __init__(self, path, error: OSError):
        self.path = str(path)
        self.error = error
        super().__init__(f"Site directory unreadable: {error}")
