"""Naming convention support.

Application names follow ``<app>[-<stack>[-<detail>]][-v<NNN>]``. The cluster
is everything before the sequence token. Callers can inject any resolver
implementing ``NamingResolver``.
"""

import re
from typing import Optional, Protocol

from pydantic import BaseModel

_SEQUENCE_PATTERN = re.compile(r"^(?P<cluster>.*?)-v(?P<sequence>\d{3,})$")
_VALID_NAME = re.compile(r"^[A-Za-z0-9._~^-]+$")


class Names(BaseModel):
    """Parts of a parsed application name."""

    app: Optional[str] = None
    cluster: Optional[str] = None
    stack: Optional[str] = None
    detail: Optional[str] = None
    sequence: Optional[int] = None


class NamingResolver(Protocol):
    def parse(self, name: str) -> Names: ...


class SequencedNameResolver:
    """Default resolver for ``app-stack-detail-vNNN`` style names."""

    def parse(self, name: str) -> Names:
        if not name or not _VALID_NAME.match(name):
            return Names()

        cluster = name
        sequence = None
        match = _SEQUENCE_PATTERN.match(name)
        if match:
            cluster = match.group("cluster")
            sequence = int(match.group("sequence"))
        if not cluster:
            return Names()

        parts = cluster.split("-", 2)
        return Names(
            app=parts[0],
            cluster=cluster,
            stack=parts[1] if len(parts) > 1 and parts[1] else None,
            detail=parts[2] if len(parts) > 2 and parts[2] else None,
            sequence=sequence,
        )
