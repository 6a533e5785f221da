"""Exception hierarchy for EPUB parsing and Markdown export."""

from typing import Optional


class Epub2MdError(Exception):
    """Base exception for all conversion errors."""
    pass


class ArchiveEntryNotFound(Epub2MdError):
    """A referenced file is absent from the zip archive."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Error in epub. File not found: {path}")


class MalformedPackage(Epub2MdError):
    """Container, OPF or TOC document is missing or structurally invalid."""
    pass


class UnresolvableLink(Epub2MdError):
    """An internal href does not match any manifest item."""

    def __init__(self, href: str):
        self.href = href
        super().__init__(f"Cannot resolve link to a manifest item: {href}")


class NetworkFailure(Epub2MdError):
    """Fetching a remote resource failed."""

    def __init__(self, url: str, reason: Optional[str] = None):
        self.url = url
        self.reason = reason
        message = f"Failed to download {url}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class WriteFailure(Epub2MdError):
    """An output file could not be written."""

    def __init__(self, path: str, reason: Optional[str] = None):
        self.path = path
        self.reason = reason
        message = f"Failed to write {path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


__all__ = [
    'Epub2MdError',
    'ArchiveEntryNotFound',
    'MalformedPackage',
    'UnresolvableLink',
    'NetworkFailure',
    'WriteFailure'
]
