from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from reconurl.core.errors import (
    EmptyHostError,
    EmptyInputError,
    InvalidURLError,
    URLParseError,
    URLSyntaxError,
)
from reconurl.core.escape import DEFAULT_SAFE_CHARS, should_escape
from reconurl.core.netparse import URLParts, UserInfo, split_host_port, split_url
from reconurl.core.params import Params
from reconurl.utils.logging import diagnostics_logger


diag = diagnostics_logger()


@dataclass(frozen=True)
class ParserConfig:
    # autocorrect: a bare word mistaken for a host (e.g. "admin") is turned
    # back into a relative path
    autocorrect: bool = True
    safe_chars: frozenset[str] = DEFAULT_SAFE_CHARS


DEFAULT_CONFIG = ParserConfig()


def _part(name: str) -> property:
    def _get(self: URL) -> Any:
        return getattr(self.parts, name)

    def _set(self: URL, value: Any) -> None:
        setattr(self.parts, name, value)

    return property(_get, _set)


def _copy_parts(dst: URLParts, src: URLParts) -> None:
    # fragment and query are extracted before delegating, never copied
    dst.host = src.host
    dst.opaque = src.opaque
    dst.path = src.path
    dst.raw_path = src.raw_path
    dst.scheme = src.scheme
    dst.user = src.user


@dataclass
class URL:
    """
    Lenient URL value.

    `parts` holds the syntactic fields; `original` is the input with
    fragment and query removed. Call resync() after editing `params` by hand
    if `raw_query` is consulted afterwards.
    """

    parts: URLParts = field(default_factory=URLParts)
    original: str = ""
    unsafe: bool = False
    is_relative: bool = False
    params: Params = field(default_factory=Params)
    config: ParserConfig = field(default=DEFAULT_CONFIG, repr=False, compare=False)

    scheme = _part("scheme")
    opaque = _part("opaque")
    user = _part("user")
    host = _part("host")
    path = _part("path")
    raw_path = _part("raw_path")
    raw_query = _part("raw_query")
    fragment = _part("fragment")
    raw_fragment = _part("raw_fragment")
    force_query = _part("force_query")

    def merge_path(self, rel_path: str, unsafe: bool = False) -> None:
        """
        Merge a relative path (with its query/fragment) into this URL.
        Paths are joined without normalization, see merge_paths().
        """
        other = parse_url(rel_path, unsafe, config=self.config)
        self.params.merge(other.params)
        self.path = merge_paths(self.path, other.path)
        if other.fragment:
            self.fragment = other.fragment

    def resync(self) -> None:
        self.raw_query = self.params.encode()

    def query(self) -> Params:
        return self.params

    def clone(self) -> URL:
        user = None
        if self.user is not None:
            user = UserInfo(self.user.username, self.user.password)
        return URL(
            parts=replace(self.parts, user=user),
            original=self.original,
            unsafe=self.unsafe,
            is_relative=self.is_relative,
            params=self.params.copy(),
            config=self.config,
        )

    def serialize(self) -> str:
        if self.opaque:
            return f"{self.scheme}:{self.opaque}" + self.relative_form()
        buff = []
        if self.scheme:
            buff.append(self.scheme + "://")
        if self.user is not None:
            buff.append(f"{self.user}@")
        buff.append(self.host)
        buff.append(self.relative_form())
        return "".join(buff)

    def relative_form(self) -> str:
        """ex: /some/path?param=true#fragment"""
        buff = []
        if self.path:
            if not self.path.startswith("/"):
                buff.append("/")
            buff.append(self.path)
        if self.params:
            buff.append("?" + self.params.encode())
        if self.fragment:
            buff.append("#" + self.fragment)
        return "".join(buff)

    def hostname(self) -> str:
        return split_host_port(self.host)[0]

    def port(self) -> str:
        return split_host_port(self.host)[1] or ""

    def update_port(self, new_port: str) -> None:
        name, port = split_host_port(self.host)
        if port is None:
            self.host = f"{self.host}:{new_port}"
        else:
            self.host = f"{name}:{new_port}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.serialize(),
            "relative": self.relative_form(),
            "scheme": self.scheme,
            "opaque": self.opaque,
            "user": str(self.user) if self.user is not None else None,
            "host": self.host,
            "port": self.port() or None,
            "path": self.path,
            "raw_path": self.raw_path,
            "params": self.params.to_dict(),
            "fragment": self.fragment,
            "original": self.original,
            "is_relative": self.is_relative,
            "unsafe": self.unsafe,
        }

    def __str__(self) -> str:
        return self.serialize()

    def _fetch_params(self) -> None:
        i = self.original.find("#")
        if i != -1:
            # assuming ?param=value#highlight
            self.fragment = self.original[i + 1:]
            self.original = self.original[:i]
        i = self.original.find("?")
        if i == -1:
            return
        self.params.decode(self.original[i + 1:])
        self.original = self.original[:i]
        self.resync()

    def _force_relative(self, path: str) -> None:
        # relative implies no authority: drop every absolute-only field
        self.is_relative = True
        self.path = path
        self.raw_path = ""
        self.scheme = ""
        self.opaque = ""
        self.user = None
        self.host = ""

    def _parse_relative_path(self) -> None:
        # the strict parser decodes (or rejects) percent-encoded bytes such as
        # %0a, payloads need them verbatim: ex: /%20test%0a
        if self.host == "" or len(self.host) < 4:
            if should_escape(self.original, self.config.safe_chars):
                self._force_relative(self.original)
            return
        _, found, rest = self.original.partition(self.host)
        if not found:
            diag.warning(
                "failed to extract path from input url, falling back to defaults: host=%s input=%s",
                self.host,
                self.original,
            )
            return
        self.path = rest


def parse_url(raw: str, unsafe: bool = False, *, config: ParserConfig | None = None) -> URL:
    """
    Parse a URL, relative path or bare token leniently.

    Classification, in order:
      - "/x" (not "//x")                        -> relative path
      - "http...", "//host", anything with "://" -> absolute URL
      - anything else                            -> tried as "https://" + input,
                                                    relative when that fails
    Hosts without "." or ":" (ex: "admin") are autocorrected to relative
    paths unless config.autocorrect is off.
    """
    config = config or DEFAULT_CONFIG
    u = URL(original=raw or "", unsafe=unsafe, config=config)
    u._fetch_params()

    original = u.original
    if not original:
        raise EmptyInputError("failed to parse url: got empty input")

    if original.startswith("/") and not original.startswith("//"):
        u.is_relative = True
        u.path = original
        return u

    if original.startswith(("http", "https", "//")) or "://" in original:
        u.is_relative = False
        try:
            parsed = split_url(original)
        except URLSyntaxError as e:
            raise InvalidURLError(f"failed to parse url {original!r}: {e}") from e
        _copy_parts(u.parts, parsed)
    else:
        try:
            parsed = split_url("https://" + original)
        except URLSyntaxError:
            # most likely a relative path
            u.is_relative = True
        else:
            parsed.scheme = ""
            _copy_parts(u.parts, parsed)

    if u.is_relative:
        try:
            _copy_parts(u.parts, split_url(original))
        except URLSyntaxError as e:
            if not unsafe:
                raise InvalidURLError(f"failed to parse input url {original!r}: {e}") from e
            u.path = original
    else:
        if u.host == "":
            raise EmptyHostError(f"failed to parse url {original!r}: got empty host")
        if "." not in u.host and ":" not in u.host and config.autocorrect:
            # not a domain, ipv4 or ipv6 literal
            diag.debug("autocorrect: treating host-like token %r as relative path", u.host)
            u._force_relative(original)

    if not u.is_relative and u.host == "":
        raise EmptyHostError(f"failed to parse url {original!r}: got empty host when url is not relative")

    u._parse_relative_path()
    return u


def parse(raw: str) -> URL:
    return parse_url(raw, False)


def merge_paths(elem1: str, elem2: str) -> str:
    """
    Join two paths without normalizing them ("." and ".." are kept).

      /blog        /admin               => /blog/admin
      /blog/wp     /wp-content          => /blog/wp/wp-content
      /blog/admin  /blog/admin/profile  => /blog/admin/profile
      /blog/admin  /blog                => /blog/admin/blog
      /blog        /blog/               => /blog/
    """
    if elem1.endswith("/") and elem2.startswith("/"):
        elem2 = elem2[1:]

    if elem1 == "":
        return elem2
    if elem2 == "":
        return elem1

    if not elem1.endswith("/") and not elem2.startswith("/"):
        elem2 = "/" + elem2

    if elem1 == elem2:
        return elem1
    if len(elem1) > len(elem2) and elem1.endswith(elem2):
        return elem1
    if len(elem1) < len(elem2) and elem2.startswith(elem1):
        return elem2
    return elem1 + elem2


def auto_merge_rel_paths(path1: str, path2: str) -> str:
    """Merge two relative paths including their parameters."""
    u1 = parse(path1)
    u2 = parse(path2)
    try:
        u1.merge_path(u2.path, False)
    except URLParseError as e:
        # ex: "example.com?y=2" has no path, its params are still merged
        diag.debug("auto merge: path of %r not merged: %s", path2, e)
    u1.params.merge(u2.params)
    return u1.relative_form()
