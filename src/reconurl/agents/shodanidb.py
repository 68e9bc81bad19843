from __future__ import annotations

import ipaddress
import json
from dataclasses import asdict, dataclass, field
from typing import Any, Iterator
from urllib.parse import quote

from reconurl.core.http_client import HttpClient
from reconurl.core.urlutil import URL, parse_url
from reconurl.utils.logging import get_logger


INTERNETDB_URL = "https://internetdb.shodan.io"

logger = get_logger(__name__)


def is_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def is_cidr(value: str) -> bool:
    if "/" not in value:
        return False
    try:
        ipaddress.ip_network(value, strict=False)
    except ValueError:
        return False
    return True


def iter_addresses(query: str) -> Iterator[str]:
    """Every address of an IP or CIDR query, network/broadcast included."""
    if is_ip(query):
        yield str(ipaddress.ip_address(query))
        return
    for addr in ipaddress.ip_network(query, strict=False):
        yield str(addr)


@dataclass
class ShodanResponse:
    ip: str = ""
    ports: list[int] = field(default_factory=list)
    hostnames: list[str] = field(default_factory=list)
    cpes: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    vulns: list[str] = field(default_factory=list)

    @classmethod
    def from_json(cls, doc: Any) -> ShodanResponse:
        if not isinstance(doc, dict):
            raise ValueError("unexpected response: not a JSON object")
        return cls(
            ip=str(doc.get("ip") or ""),
            ports=[int(p) for p in doc.get("ports") or []],
            hostnames=[str(h) for h in doc.get("hostnames") or []],
            cpes=[str(c) for c in doc.get("cpes") or []],
            tags=[str(t) for t in doc.get("tags") or []],
            vulns=[str(v) for v in doc.get("vulns") or []],
        )


@dataclass
class Result:
    source: str
    ip: str = ""
    port: int = 0
    host: str = ""
    raw: str = ""
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class ShodanIDBAgent:
    """
    Shodan InternetDB source: one unauthenticated lookup per address.

    query() validates eagerly and returns a lazy iterator; request and decode
    failures come back as Result(error=...) items, iteration goes on with
    the next address.
    """

    name = "shodan-idb"

    def __init__(self, client: HttpClient | None = None, base_url: str = INTERNETDB_URL) -> None:
        self.client = client or HttpClient()
        self.base: URL = parse_url(base_url)

    def query(self, query: str) -> Iterator[Result]:
        query = (query or "").strip()
        if not is_ip(query) and not is_cidr(query):
            raise ValueError("only ip/cidr are accepted")
        return self._query(query)

    def query_url(self, ip: str) -> str:
        u = self.base.clone()
        u.merge_path("/" + quote(ip, safe=""), False)
        return u.serialize()

    def _query(self, query: str) -> Iterator[Result]:
        logger.info("%s query start: %s", self.name, query)
        for ip in iter_addresses(query):
            url = self.query_url(ip)
            resp = self.client.get(url)
            if not resp.ok:
                logger.warning("%s request failed: url=%s err=%s", self.name, url, resp.error)
                yield Result(source=self.name, ip=ip, error=resp.error)
                continue

            try:
                shodan = ShodanResponse.from_json(resp.json())
            except (TypeError, ValueError) as e:
                logger.warning("%s decode failed: url=%s status=%s err=%s", self.name, url, resp.status_code, e)
                yield Result(source=self.name, ip=ip, error=f"{type(e).__name__}: {e}")
                continue

            if not shodan.ports:
                logger.debug("%s no data: ip=%s status=%s", self.name, ip, resp.status_code)

            # every ip/port pair, then every hostname/port pair
            raw = json.dumps(asdict(shodan), ensure_ascii=False)
            for port in shodan.ports:
                yield Result(source=self.name, ip=shodan.ip or ip, port=port, raw=raw)
                for hostname in shodan.hostnames:
                    yield Result(source=self.name, ip=shodan.ip or ip, port=port, host=hostname, raw=raw)
        logger.info("%s query done: %s", self.name, query)
