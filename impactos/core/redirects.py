"""Open-redirect protection for ``next`` parameters."""

from __future__ import annotations

_BLOCKED_SCHEMES = ("http://", "https://", "javascript:", "data:")


def is_valid_internal_redirect(url: str | None) -> bool:
    """Return True if ``url`` is a same-origin absolute path.

    Rejects empty values, anything not starting with a single ``/``,
    protocol-relative URLs, backslashes (``/\\evil.com`` is treated as
    ``//evil.com`` by some browsers), ``@`` signs and absolute or script URLs.
    """
    if not url or not url.strip():
        return False

    candidate = url.strip()
    if not candidate.startswith("/") or candidate.startswith("//"):
        return False
    if "\\" in candidate or "@" in candidate:
        return False

    lowered = candidate.lower()
    return not lowered.startswith(_BLOCKED_SCHEMES)


def get_safe_redirect_url(url: str | None, default_url: str) -> str:
    """Return ``url`` if it is a safe internal path, else ``default_url``."""
    if not is_valid_internal_redirect(url):
        return default_url
    return url.strip()
