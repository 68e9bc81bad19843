from __future__ import annotations

import re
import string
from dataclasses import dataclass
from urllib.parse import quote, unquote

from reconurl.core.errors import URLSyntaxError


_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+\-.]*$")
_BAD_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_HOST_ESCAPE_RE = re.compile(r"%([0-9A-Fa-f]{2})")

_HOST_EXTRA = "-._~!$&'()*+,;=:[]<>\""
_USERINFO_EXTRA = "-._:~!$&'()*+,;=%@"
_PATH_SAFE = "/$&+,:;=@-._~"
_USERINFO_SAFE = "-._~!$&'()*+,;="


@dataclass(frozen=True)
class UserInfo:
    username: str
    password: str | None = None

    def __str__(self) -> str:
        s = quote(self.username, safe=_USERINFO_SAFE)
        if self.password is not None:
            s += ":" + quote(self.password, safe=_USERINFO_SAFE)
        return s


@dataclass
class URLParts:
    """Syntactic fields of a URL, as produced by split_url()."""

    scheme: str = ""
    opaque: str = ""
    user: UserInfo | None = None
    host: str = ""
    path: str = ""
    raw_path: str = ""
    raw_query: str = ""
    fragment: str = ""
    raw_fragment: str = ""
    force_query: bool = False


def _has_ctl(s: str) -> bool:
    return any(ord(ch) < 0x20 or ord(ch) == 0x7F for ch in s)


def _get_scheme(raw: str) -> tuple[str, str]:
    """
    Split "scheme:rest".
    A leading ":" is an error; a non-scheme character before the first ":"
    means there is no scheme at all.
    """
    colon = raw.find(":")
    if colon == 0:
        raise URLSyntaxError("missing protocol scheme")
    if colon < 0:
        return "", raw
    candidate = raw[:colon]
    if not _SCHEME_RE.match(candidate):
        return "", raw
    return candidate, raw[colon + 1:]


def _unescape(s: str, what: str) -> str:
    m = _BAD_ESCAPE_RE.search(s)
    if m:
        raise URLSyntaxError(f"invalid URL escape {s[m.start():m.start() + 3]!r} in {what}")
    return unquote(s)


def _valid_optional_port(port: str) -> bool:
    if port == "":
        return True
    if port[0] != ":":
        return False
    return all(ch in string.digits for ch in port[1:])


def split_host_port(host: str) -> tuple[str, str | None]:
    """
    Split "name:port". Brackets of IPv6 literals are kept on the name.
    Returns (name, None) when no port segment is present.
    """
    colon = host.rfind(":")
    if colon != -1 and _valid_optional_port(host[colon:]):
        return host[:colon], host[colon + 1:]
    return host, None


def _parse_host(host: str) -> str:
    if host.startswith("["):
        end = host.rfind("]")
        if end < 0:
            raise URLSyntaxError("missing ']' in host")
        if not _valid_optional_port(host[end + 1:]):
            raise URLSyntaxError(f"invalid port {host[end + 1:]!r} after host")
    else:
        colon = host.rfind(":")
        if colon != -1 and not _valid_optional_port(host[colon:]):
            raise URLSyntaxError(f"invalid port {host[colon:]!r} after host")

    for m in _HOST_ESCAPE_RE.finditer(host):
        if int(m.group(1), 16) < 0x80 and m.group(0) != "%25":
            raise URLSyntaxError(f"invalid URL escape {m.group(0)!r} in host")
    for ch in host:
        if ord(ch) >= 0x80 or ch.isalnum() or ch in _HOST_EXTRA or ch == "%":
            continue
        raise URLSyntaxError(f"invalid character {ch!r} in host name")
    # validated only: the host is kept escaped, ex: [fe80::1%25en0]
    _unescape(host, "host")
    return host


def _parse_authority(authority: str) -> tuple[UserInfo | None, str]:
    at = authority.rfind("@")
    if at < 0:
        return None, _parse_host(authority)

    host = _parse_host(authority[at + 1:])
    userinfo = authority[:at]
    for ch in userinfo:
        if ch.isascii() and not (ch.isalnum() or ch in _USERINFO_EXTRA):
            raise URLSyntaxError("invalid userinfo")
    if ":" not in userinfo:
        return UserInfo(_unescape(userinfo, "userinfo")), host
    username, _, password = userinfo.partition(":")
    return UserInfo(_unescape(username, "userinfo"), _unescape(password, "userinfo")), host


def split_url(raw: str) -> URLParts:
    """
    Strict syntactic split of a URL reference.

    Behaves like a conventional standards-minded parser: control bytes,
    malformed escapes, bad ports and illegal host characters are rejected
    with URLSyntaxError instead of being silently cleaned up.
    """
    if _has_ctl(raw):
        raise URLSyntaxError("invalid control character in URL")

    parts = URLParts()
    rest, sep, fragment = raw.partition("#")
    if sep:
        parts.fragment = _unescape(fragment, "fragment")
        parts.raw_fragment = fragment

    scheme, rest = _get_scheme(rest)
    parts.scheme = scheme.lower()

    if rest.endswith("?") and rest.count("?") == 1:
        parts.force_query = True
        rest = rest[:-1]
    else:
        rest, _, parts.raw_query = rest.partition("?")

    if not rest.startswith("/"):
        if parts.scheme:
            parts.opaque = rest
            return parts
        if ":" in rest.split("/", 1)[0]:
            raise URLSyntaxError("first path segment in URL cannot contain colon")

    if (parts.scheme or not rest.startswith("///")) and rest.startswith("//"):
        authority, slash, tail = rest[2:].partition("/")
        rest = slash + tail
        parts.user, parts.host = _parse_authority(authority)

    parts.path = _unescape(rest, "path")
    if quote(parts.path, safe=_PATH_SAFE) != rest:
        parts.raw_path = rest
    return parts
