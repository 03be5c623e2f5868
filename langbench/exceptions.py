"""Custom exceptions and error taxonomy."""

from enum import StrEnum
from typing import Any


class ErrorKind(StrEnum):
    """Kinds of failure a benchmark can record."""

    MANIFEST_UNREACHABLE = "manifest_unreachable"
    MANIFEST_MALFORMED = "manifest_malformed"
    MANIFEST_MODULES_EMPTY = "manifest_modules_empty"
    MODULE_FETCH_ERROR = "module_fetch_error"
    MODULE_STRUCTURE_INVALID = "module_structure_invalid"
    MODULE_CHECKSUM_MISMATCH = "module_checksum_mismatch"  # non-fatal, never raised
    MODULE_SUBJECT_URL_INCONSISTENT = "module_subject_url_inconsistent"
    MODULE_SUBJECT_URL_MISSING = "module_subject_url_missing"
    PAGE_EXTRACTION_ERROR = "page_extraction_error"
    REQUEST_TIMEOUT = "request_timeout"

    @property
    def is_fatal(self) -> bool:
        """Manifest-stage errors abort the whole benchmark."""
        return self in (
            ErrorKind.MANIFEST_UNREACHABLE,
            ErrorKind.MANIFEST_MALFORMED,
            ErrorKind.MANIFEST_MODULES_EMPTY,
        )


class BenchmarkError(Exception):
    """Base exception for the benchmark engine."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind,
        url: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.kind = kind
        self.url = url
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "url": self.url,
            "details": self.details,
        }


class ManifestUnreachableError(BenchmarkError):
    """The well-known manifest could not be fetched."""

    def __init__(self, url: str, cause: str):
        super().__init__(
            message=f"This website is not LangShake ready: {url} could not be fetched ({cause})",
            kind=ErrorKind.MANIFEST_UNREACHABLE,
            url=url,
            details={"cause": cause},
        )


class ManifestMalformedError(BenchmarkError):
    """The manifest has no usable modules list."""

    def __init__(self, url: str, reason: str = "no modules list found"):
        super().__init__(
            message=f"This website is not LangShake ready: {reason} in {url}",
            kind=ErrorKind.MANIFEST_MALFORMED,
            url=url,
            details={"reason": reason},
        )


class ManifestModulesEmptyError(BenchmarkError):
    """The manifest declares an empty modules list."""

    def __init__(self, url: str):
        super().__init__(
            message=f"The modules array in {url} is empty. Merkle root cannot be confirmed.",
            kind=ErrorKind.MANIFEST_MODULES_EMPTY,
            url=url,
        )


class FetchError(BenchmarkError):
    """All fetch attempts failed."""

    def __init__(self, url: str, cause: str, attempts: int = 1):
        super().__init__(
            message=f"Error fetching {url} after {attempts} attempt(s): {cause}",
            kind=ErrorKind.MODULE_FETCH_ERROR,
            url=url,
            details={"cause": cause, "attempts": attempts},
        )


class RequestTimeoutError(FetchError):
    """The final fetch attempt timed out."""

    def __init__(self, url: str, timeout: float, attempts: int = 1):
        super().__init__(url, f"request timed out after {timeout}s", attempts)
        self.kind = ErrorKind.REQUEST_TIMEOUT
        self.details["timeout_seconds"] = timeout


class ModuleStructureError(BenchmarkError):
    """A module document does not have the expected shape."""

    def __init__(self, message: str, url: str | None = None):
        super().__init__(
            message=message,
            kind=ErrorKind.MODULE_STRUCTURE_INVALID,
            url=url,
        )


class ModuleSubjectUrlError(BenchmarkError):
    """Records of one module disagree on the page they describe."""

    def __init__(self, url: str | None, subject_urls: list[str]):
        super().__init__(
            message=(
                f"Module {url} contains records with differing subject urls: "
                f"{', '.join(subject_urls)}. All records in a module must describe the same url."
            ),
            kind=ErrorKind.MODULE_SUBJECT_URL_INCONSISTENT,
            url=url,
            details={"subject_urls": subject_urls},
        )


class PageExtractionError(BenchmarkError):
    """Structured data could not be extracted from a page."""

    def __init__(self, url: str, cause: str):
        super().__init__(
            message=f"Failed to extract structured data from {url}: {cause}",
            kind=ErrorKind.PAGE_EXTRACTION_ERROR,
            url=url,
            details={"cause": cause},
        )


class InvalidUrlError(ValueError):
    """A URL given by the caller cannot be benchmarked."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Invalid URL {url!r}: {reason}")
