"""Exception hierarchy for refine-page."""

from __future__ import annotations


class RefinePageError(Exception):
    """Base exception for refine-page."""


class ConfigError(RefinePageError):
    """Raised when configuration is missing or invalid."""


class ReadOnlyProviderError(RefinePageError):
    """Raised when a write is attempted on a provider without write support."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"{operation.capitalize()} operation not supported: provider is read-only")


class ArchiveFormatError(RefinePageError):
    """Raised when an archive is structurally invalid."""


class CaptureError(RefinePageError):
    """Raised when a page cannot be captured."""


class StyleSheetAccessError(RefinePageError):
    """Raised when a live style sheet refuses to expose its rules."""


__all__ = [
    "RefinePageError",
    "ConfigError",
    "ReadOnlyProviderError",
    "ArchiveFormatError",
    "CaptureError",
    "StyleSheetAccessError",
]
