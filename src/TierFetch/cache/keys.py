"""Cache key derivation for fetch requests.

URL keys are canonicalized with ``url-normalize`` (lowercase scheme and host,
default ports dropped, percent-encoding normalized), fragments are stripped,
and query parameters (from the URL and from ``params``) are merged and sorted
so that equivalent requests share one cache entry and one in-flight fetch.
Opaque keys are trimmed and get the same sorted parameter suffix.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from url_normalize import url_normalize

DEFAULT_SCHEME = "https"


def _merge_params(query: str, params: Optional[Mapping[str, Any]]) -> str:
    pairs: List[Tuple[str, str]] = parse_qsl(query, keep_blank_values=True)
    if params:
        overridden = {str(name) for name in params}
        pairs = [(name, value) for name, value in pairs if name not in overridden]
        for name, value in params.items():
            if isinstance(value, (list, tuple)):
                pairs.extend((str(name), str(item)) for item in value)
            elif value is not None:
                pairs.append((str(name), str(value)))
    return urlencode(sorted(pairs))


def is_url_key(key: str) -> bool:
    return "://" in key or key.startswith("//")


def derive_cache_key(key: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Return the normalized identifier used for caching and de-duplication.

    Examples:
        >>> derive_cache_key("HTTPS://Example.COM:443/a?b=2&a=1#top")
        'https://example.com/a?a=1&b=2'
        >>> derive_cache_key("  item1 ", {"v": 2})
        'item1?v=2'
    """
    if key is None:
        raise TypeError("derive_cache_key expected a string key, received None.")
    text = str(key).strip()
    if not text:
        raise ValueError("cache key must be non-empty")

    if not is_url_key(text):
        query = _merge_params("", params)
        return f"{text}?{query}" if query else text

    canonical = url_normalize(text, default_scheme=DEFAULT_SCHEME) or text
    parts = urlsplit(canonical)
    query = _merge_params(parts.query, params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, ""))


__all__ = ["derive_cache_key", "is_url_key"]
