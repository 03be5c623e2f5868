"""URL validation and resolution for the benchmark."""

from dataclasses import dataclass
from urllib.parse import urljoin, urlparse

from langbench.config import DEFAULT_MANIFEST_PATH

ALLOWED_SCHEMES = frozenset(["http", "https", "file"])


@dataclass(frozen=True)
class UrlValidation:
    """Outcome of validating a URL."""

    is_valid: bool
    error: str | None = None
    scheme: str | None = None


def validate_url(url: object) -> UrlValidation:
    """
    Check that a URL is safe and supported for crawling.

    data: URLs are refused outright (they can be used to exhaust memory
    in HTTP clients); only http, https and file are allowed.
    """
    if not url or not isinstance(url, str):
        return UrlValidation(is_valid=False, error="URL must be a non-empty string")

    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return UrlValidation(is_valid=False, error="Invalid URL format")

    scheme = parsed.scheme.lower()
    if not scheme:
        return UrlValidation(is_valid=False, error="Invalid URL format")

    if scheme == "data":
        return UrlValidation(
            is_valid=False,
            error="data: URLs are not supported for security reasons (prevents DoS attacks)",
            scheme=scheme,
        )

    if scheme not in ALLOWED_SCHEMES:
        return UrlValidation(
            is_valid=False,
            error=(
                f"Protocol '{scheme}:' is not supported. "
                "Only HTTP, HTTPS, and file: URLs are allowed"
            ),
            scheme=scheme,
        )

    if scheme in ("http", "https") and not parsed.netloc:
        return UrlValidation(is_valid=False, error="Invalid URL format", scheme=scheme)

    return UrlValidation(is_valid=True, scheme=scheme)


def validate_urls(urls: object) -> list[UrlValidation]:
    """Validate several URLs."""
    if not isinstance(urls, list):
        return [UrlValidation(is_valid=False, error="Input must be a list of URLs")]
    return [validate_url(url) for url in urls]


def manifest_url(domain_root: str, manifest_path: str = DEFAULT_MANIFEST_PATH) -> str:
    """Absolute URL of the well-known manifest for a domain."""
    path = manifest_path if manifest_path.startswith("/") else f"/{manifest_path}"
    return urljoin(domain_root, path)


def resolve_module_url(module_path: object, domain_root: str) -> str | None:
    """
    Resolve a manifest entry against the domain root.

    Returns:
        Absolute URL, or None if the entry is not a usable path string
    """
    if not isinstance(module_path, str) or not module_path.strip():
        return None
    return urljoin(domain_root, module_path.strip())


def url_host(url: str) -> str:
    """Host part of a URL, used for naming output files."""
    host = urlparse(url).hostname
    return host or "output"
