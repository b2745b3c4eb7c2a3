"""Resolving DNS SRV records into ``host:port`` server strings."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterable

import dns.resolver

logger = logging.getLogger(__name__)

_SRV_RE = re.compile(r"^_(.+?)\._(.+?)\.(.+)$")


@dataclass(frozen=True)
class SrvRecord:
    """One SRV answer."""

    target: str
    port: int
    priority: int = 0
    weight: int = 0


class SrvParseError(ValueError):
    """Raised when a string is not of the form ``_service._proto.name``."""


AddrsLookup = Callable[[str, str, str], Iterable[SrvRecord]]


def parse_srv(srv: str) -> tuple[str, str, str]:
    """Split an SRV name into service, protocol and domain name."""
    match = _SRV_RE.match(srv)
    if match is None:
        message = f"could not parse {srv} to SRV parts"
        logger.error(message)
        raise SrvParseError(message)
    return match.group(1), match.group(2), match.group(3)


def lookup_server_strings_from_srv(srv: str, addrs_lookup: AddrsLookup) -> list[str]:
    """Resolve ``srv`` with ``addrs_lookup`` and return sorted ``host:port`` strings.

    The result is sorted so that shard assignment by position stays stable.
    """
    try:
        service, proto, name = parse_srv(srv)
    except SrvParseError as exc:
        logger.error("failed to parse SRV: %s", exc)
        raise

    try:
        records = list(addrs_lookup(service, proto, name))
    except Exception as exc:
        logger.error("failed to lookup SRV: %s", exc)
        raise

    logger.debug("found %d server(s) from SRV", len(records))
    servers = []
    for index, record in enumerate(records):
        server = f"{record.target}:{record.port}"
        logger.debug("server from srv[%d]: %s", index, server)
        servers.append(server)
    return sorted(servers)


def _dns_lookup(service: str, proto: str, name: str) -> list[SrvRecord]:
    answer = dns.resolver.resolve(f"_{service}._{proto}.{name}", "SRV")
    return [
        SrvRecord(
            target=rdata.target.to_text(),
            port=rdata.port,
            priority=rdata.priority,
            weight=rdata.weight,
        )
        for rdata in answer
    ]


class DnsSrvResolver:
    """Resolves SRV names through DNS."""

    def server_strings_from_srv(self, srv: str) -> list[str]:
        return lookup_server_strings_from_srv(srv, _dns_lookup)