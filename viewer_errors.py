"""
Error types raised by the topic viewer.

ManifestLoadError and DocumentFetchError are raised where the failure
happens (manifest loader, content transports) and recovered by Viewer,
which turns them into inline notices. RenderError wraps a converter
failure and is handled like a fetch failure.
"""

from typing import Any


class ViewerError(Exception):
    """Base class for all viewer errors."""

    kind = 'viewer-error'

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Serializable form used in JSON responses."""
        return {'type': self.kind, 'message': self.message, 'details': self.details}


class ManifestLoadError(ViewerError):
    """Manifest is missing, unparseable or fails validation."""

    kind = 'manifest-error'


class DocumentFetchError(ViewerError):
    """Topic content could not be retrieved (not found, transport error, timeout)."""

    kind = 'fetch-error'

    def __init__(self, message: str, topic_id: str | None = None,
                 status: int | None = None, **details: Any):
        super().__init__(message, topic_id=topic_id, status=status, **details)
        self.topic_id = topic_id
        self.status = status


class RenderError(DocumentFetchError):
    """Markdown could not be converted, even to literal text."""

    kind = 'render-error'


class ViewerConfigError(ViewerError):
    """Configuration file is unreadable or has invalid values."""

    kind = 'config-error'
