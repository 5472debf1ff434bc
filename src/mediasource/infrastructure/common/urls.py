"""URL helpers shared by adapters, mirrors and the orchestrator."""

from __future__ import annotations

from urllib.parse import urljoin, urlsplit

_GENERIC_SECOND_LEVEL = frozenset({"ac", "co", "com", "edu", "gov", "net", "org"})


def host_of(uri: str) -> str:
    """Lower-cased hostname of *uri* (``""`` when unparsable)."""
    try:
        return (urlsplit(uri).hostname or "").lower()
    except ValueError:
        return ""


def root_domain(uri: str) -> str:
    """Registrable domain of *uri*, ignoring scheme and subdomains.

    ``https://www.voe.sx/e/1`` → ``voe.sx``.  Country-code suffixes behind a
    generic second level (``amazon.co.uk``) keep three labels.  Bare
    hostnames without a scheme are accepted.
    """
    host = host_of(uri) if "//" in uri else uri.split("/", 1)[0].lower()
    host = host.split(":", 1)[0].rstrip(".")
    if not host:
        return ""

    parts = host.split(".")
    if len(parts) <= 2:
        return host

    if len(parts[-1]) == 2 and parts[-2] in _GENERIC_SECOND_LEVEL:
        return ".".join(parts[-3:])
    return ".".join(parts[-2:])


def same_root_domain(left: str, right: str) -> bool:
    left_root = root_domain(left)
    return bool(left_root) and left_root == root_domain(right)


def origin_of(uri: str) -> str:
    """``scheme://host[:port]`` of *uri*."""
    parts = urlsplit(uri)
    return f"{parts.scheme}://{parts.netloc}"


def to_absolute(value: str | None, base: str | None = None) -> str | None:
    """Resolve *value* against *base*; ``None`` if no absolute URI results.

    Protocol-relative links (``//cdn/...``) inherit the base scheme, or
    ``https`` without a base.
    """
    if not value:
        return None
    value = value.strip()
    if not value:
        return None

    if value.startswith("//") and base is None:
        value = "https:" + value

    candidate = urljoin(base, value) if base else value
    parts = urlsplit(candidate)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return None
    return candidate

