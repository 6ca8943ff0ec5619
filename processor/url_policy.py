"""URL normalization and classification policy.

Centralizes how URLs are resolved, compared by origin, and filtered
before they enter the crawl frontier or become image records.

Normalization rules (idempotent):
- Resolve against a base with standard ``urljoin`` semantics
- Only http/https URLs with a host are accepted
- Lowercase scheme and host, decode percent-escapes in the host, convert
  IDN hosts to punycode (hosts that cannot be encoded are rejected)
- Drop default ports (80/443)
- Empty path becomes "/"
- Percent-quote characters that are unsafe in a URL
"""

import logging
import re
from dataclasses import dataclass
from typing import Final
from urllib.parse import unquote, urldefrag, urljoin, urlsplit, urlunsplit

import idna
from requests.utils import requote_uri

from crawler.exceptions import InvalidUrlError

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES: Final[frozenset[str]] = frozenset({"http", "https"})

DEFAULT_PORTS: Final[dict[str, int]] = {"http": 80, "https": 443}

# Paths ending in these never enter the page frontier
NON_PAGE_EXTENSIONS: Final[tuple[str, ...]] = (
    ".pdf",
    ".doc",
    ".docx",
    ".zip",
    ".exe",
    ".dmg",
    ".jpg",
    ".jpeg",
    ".png",
    ".gif",
    ".svg",
    ".webp",
    ".ico",
    ".css",
    ".js",
)

# Extensions reported as an image record's image_type
IMAGE_TYPE_EXTENSIONS: Final[frozenset[str]] = frozenset(
    {"jpg", "jpeg", "png", "gif", "svg", "webp", "bmp", "ico", "avif"}
)

# Host characters after IDNA encoding; ":" covers IPv6 literals
_HOST_RE = re.compile(r"[a-z0-9._:-]+")

Origin = tuple[str, str, int]


@dataclass(frozen=True)
class UrlClassification:
    """Result of comparing a URL with the crawl origin."""

    url: str
    same_origin: bool


def normalize_url(url: str) -> str:
    """Normalize an absolute URL.

    Args:
        url: Absolute URL string.

    Returns:
        Normalized absolute URL.

    Raises:
        InvalidUrlError: If the URL is not an absolute http(s) URL with a
            valid host.
    """
    try:
        parts = urlsplit(url)
        scheme = parts.scheme.lower()
        if scheme not in ALLOWED_SCHEMES:
            raise InvalidUrlError(url, "unsupported scheme")
        hostname = parts.hostname
        if not hostname:
            raise InvalidUrlError(url, "missing host")
        port = parts.port
    except ValueError as e:
        raise InvalidUrlError(url, str(e)) from e

    host = _encode_host(url, hostname)
    if ":" in host:
        host = f"[{host}]"
    netloc = host if port in (None, DEFAULT_PORTS[scheme]) else f"{host}:{port}"

    userinfo, _, _ = parts.netloc.rpartition("@")
    if userinfo:
        netloc = f"{userinfo}@{netloc}"

    rebuilt = urlunsplit((scheme, netloc, parts.path or "/", parts.query, parts.fragment))
    return requote_uri(rebuilt)


def resolve(url: str | None, base_url: str) -> str:
    """Resolve a relative or absolute URL against a base URL.

    Args:
        url: Raw URL as found in markup (may be relative).
        base_url: Absolute URL of the page the reference was found on.

    Returns:
        Normalized absolute URL.

    Raises:
        InvalidUrlError: If the reference is empty or cannot be resolved.
    """
    if url is None or not url.strip():
        raise InvalidUrlError(url or "", "empty reference")

    try:
        joined = urljoin(base_url, url.strip())
    except ValueError as e:
        raise InvalidUrlError(url, str(e)) from e
    return normalize_url(joined)


def origin_of(url: str) -> Origin:
    """Return the (scheme, host, port) origin of a URL, default ports explicit.

    Raises:
        InvalidUrlError: If the URL cannot be parsed.
    """
    parts = urlsplit(normalize_url(url))
    scheme = parts.scheme
    try:
        port = parts.port or DEFAULT_PORTS[scheme]
    except ValueError as e:
        raise InvalidUrlError(url, str(e)) from e
    return scheme, parts.hostname or "", port


def classify(url: str, origin_url: str) -> UrlClassification:
    """Classify ``url`` as same-origin or cross-origin relative to ``origin_url``.

    Raises:
        InvalidUrlError: If either URL cannot be parsed.
    """
    return UrlClassification(url=url, same_origin=origin_of(url) == origin_of(origin_url))


def strip_fragment(url: str) -> str:
    """Remove the ``#fragment`` part of a URL."""
    return urldefrag(url).url


def has_non_page_extension(url: str) -> bool:
    """Check if the URL path points at a document, archive, image or asset.

    Args:
        url: Absolute URL.

    Returns:
        True if the path ends with one of NON_PAGE_EXTENSIONS.
    """
    path = urlsplit(url).path.lower()
    return path.endswith(NON_PAGE_EXTENSIONS)


def frontier_candidate(href: str | None, page_url: str, origin_url: str) -> str | None:
    """Turn a raw ``href`` into a frontier URL, or None if it is not eligible.

    A link is eligible when it resolves, is same-origin with the seed, and
    does not point at a non-page resource. Fragments are stripped.
    Malformed links are dropped without raising.
    """
    try:
        absolute = strip_fragment(resolve(href, page_url))
        if not classify(absolute, origin_url).same_origin:
            return None
    except InvalidUrlError as e:
        logger.debug(f"Dropping link {href!r} on {page_url}: {e}")
        return None

    if has_non_page_extension(absolute):
        return None
    return absolute


def image_type_from_url(url: str) -> str | None:
    """Return the lowercase image extension of a URL path, if recognized."""
    filename = filename_from_url(url)
    if not filename or "." not in filename:
        return None
    extension = filename.rsplit(".", 1)[1].lower()
    return extension if extension in IMAGE_TYPE_EXTENSIONS else None


def filename_from_url(url: str) -> str | None:
    """Return the last path segment of a URL, or None if it is empty."""
    try:
        path = urlsplit(url).path
    except ValueError:
        return None
    return path.rsplit("/", 1)[-1] or None


def _encode_host(url: str, hostname: str) -> str:
    """Lowercase a host and convert IDN labels to punycode.

    Percent-escapes in the host are decoded first so that every spelling
    of a host normalizes to the same form.

    Raises:
        InvalidUrlError: If the host cannot be IDNA-encoded or still holds
            characters that are not valid in a host name.
    """
    host = unquote(hostname).lower().rstrip(".")
    if not host:
        raise InvalidUrlError(url, "missing host")
    if not host.isascii():
        try:
            host = idna.encode(host, uts46=True).decode("ascii")
        except (idna.IDNAError, UnicodeError) as e:
            raise InvalidUrlError(url, f"invalid host: {e}") from e
    if not _HOST_RE.fullmatch(host):
        raise InvalidUrlError(url, "invalid host")
    return host
