from __future__ import annotations

import re

_DISALLOWED_DOMAIN_CHARS = re.compile(r"[^a-z0-9.-]")


def normalize_domain(value: str) -> str:
    """Lower-case and drop everything outside [a-z0-9.-].

    Lossy: `A.com` and `a.com` map to the same identifier.
    """
    return _DISALLOWED_DOMAIN_CHARS.sub("", (value or "").lower())


def parse_port(value: object, *, field: str) -> int:
    if value is None:
        raise ValueError(f"Missing {field}")
    try:
        port = int(str(value).strip())
    except Exception as e:
        raise ValueError(f"Invalid {field}") from e
    if port <= 0 or port > 65535:
        raise ValueError(f"Invalid {field}")
    return port


def www_variant(domain: str) -> str:
    return f"www.{domain}"
