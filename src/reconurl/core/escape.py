from __future__ import annotations

import string


# RFC 3986 section 2.3 (unreserved) + section 2.2 (gen-delims, sub-delims)
RFC_UNRESERVED = string.ascii_letters + string.digits + "-._~"
RFC_RESERVED = ":/?#[]@" + "!$&'()*+,;="

DEFAULT_SAFE_CHARS: frozenset[str] = frozenset(RFC_UNRESERVED + RFC_RESERVED)


def should_escape(s: str, safe: frozenset[str] = DEFAULT_SAFE_CHARS) -> bool:
    """
    Report whether `s` holds a character that is not accepted verbatim in a URL.

    "/" is always accepted (path separator). Anything above ASCII 127 is
    always escape-worthy, as is "%" with the default safe set, so already
    percent-encoded payloads (e.g. "/%20test%0a") are detected.
    """
    for ch in s or "":
        if ch == "/":
            continue
        if ord(ch) > 127:
            return True
        if ch not in safe:
            return True
    return False
