"""Directory service client protocol and the entity shapes it returns."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, Sequence


class EntityKind(str, Enum):
    USER = "user"
    GROUP = "group"
    OTHER = "other"


_ODATA_KINDS = {
    "#microsoft.graph.user": EntityKind.USER,
    "#microsoft.graph.group": EntityKind.GROUP,
}


@dataclass(frozen=True)
class DirectoryEntity:
    """A directory object as far as the readiness checks care about it."""
    id: str
    display_name: str = ""
    kind: EntityKind = EntityKind.GROUP

    @classmethod
    def from_graph(cls, item: dict) -> "DirectoryEntity":
        """Build from a Graph directoryObject payload."""
        kind = _ODATA_KINDS.get(item.get("@odata.type", ""), EntityKind.OTHER)
        return cls(
            id=item["id"],
            display_name=item.get("displayName") or "",
            kind=kind,
        )


class DirectoryClient(Protocol):
    """Abstract interface over the mail service's administrative directory API."""

    async def probe(self, endpoint: str) -> None:
        """Issue a lightweight call against the named endpoint. Raises on failure."""
        ...

    async def reconnect(self, force: bool) -> Any:
        """Re-establish credentials and return the new credential material. Raises on failure."""
        ...

    async def list_parent_groups(self, entity_id: str) -> Sequence[DirectoryEntity]:
        """Return the groups the entity is a direct member of."""
        ...
