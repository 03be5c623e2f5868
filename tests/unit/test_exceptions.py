"""Tests for the error taxonomy."""

from langbench.exceptions import (
    BenchmarkError,
    ErrorKind,
    FetchError,
    InvalidUrlError,
    ManifestMalformedError,
    ManifestModulesEmptyError,
    ManifestUnreachableError,
    PageExtractionError,
    RequestTimeoutError,
)

MANIFEST_URL = "https://example.com/.well-known/llm.json"


class TestErrorKind:
    """Tests for ErrorKind."""

    def test_fatal_kinds(self) -> None:
        """Only manifest-stage errors are fatal."""
        fatal = {k for k in ErrorKind if k.is_fatal}
        assert fatal == {
            ErrorKind.MANIFEST_UNREACHABLE,
            ErrorKind.MANIFEST_MALFORMED,
            ErrorKind.MANIFEST_MODULES_EMPTY,
        }

    def test_values_are_strings(self) -> None:
        """Kinds serialize as their snake_case value."""
        assert ErrorKind.MODULE_CHECKSUM_MISMATCH == "module_checksum_mismatch"


class TestBenchmarkErrors:
    """Tests for BenchmarkError subclasses."""

    def test_manifest_messages(self) -> None:
        """Manifest errors explain the site is not ready."""
        unreachable = ManifestUnreachableError(MANIFEST_URL, "HTTP error: 404")
        malformed = ManifestMalformedError(MANIFEST_URL)
        empty = ManifestModulesEmptyError(MANIFEST_URL)

        assert unreachable.message.startswith("This website is not LangShake ready")
        assert "HTTP error: 404" in unreachable.message
        assert "no modules list found" in malformed.message
        assert empty.message == (
            f"The modules array in {MANIFEST_URL} is empty. Merkle root cannot be confirmed."
        )

    def test_timeout_is_fetch_error(self) -> None:
        """Timeouts are fetch errors with their own kind."""
        error = RequestTimeoutError("https://a.test/", 10.0, attempts=3)

        assert isinstance(error, FetchError)
        assert error.kind == ErrorKind.REQUEST_TIMEOUT
        assert error.details["timeout_seconds"] == 10.0
        assert error.details["attempts"] == 3

    def test_to_dict(self) -> None:
        """Errors serialize with kind, message and details."""
        data = PageExtractionError("https://a.test/", "boom").to_dict()

        assert data["kind"] == "page_extraction_error"
        assert data["url"] == "https://a.test/"
        assert data["details"] == {"cause": "boom"}

    def test_base_error(self) -> None:
        """str() is the message."""
        error = BenchmarkError("broken", ErrorKind.MODULE_FETCH_ERROR)
        assert str(error) == "broken"
        assert error.details == {}

    def test_invalid_url_is_value_error(self) -> None:
        """Caller errors are ValueErrors."""
        error = InvalidUrlError("x", "Invalid URL format")
        assert isinstance(error, ValueError)
        assert "Invalid URL format" in str(error)
