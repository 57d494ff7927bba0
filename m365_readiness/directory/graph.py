"""Directory client backed by Microsoft Graph."""

from __future__ import annotations

import logging

from ..auth.authenticator import Authenticator
from ..graph.client import GraphClient
from .protocol import DirectoryEntity, EntityKind

logger = logging.getLogger("m365_readiness.directory.graph")

# Probe name -> cheap read that needs a valid token
PROBE_ENDPOINTS = {
    "graph": ("organization", {"$select": "id"}),
    "directory": ("groups", {"$select": "id", "$top": "1"}),
}


class GraphDirectoryClient:
    """Implements the DirectoryClient protocol over GraphClient and Authenticator."""

    def __init__(self, graph: GraphClient, authenticator: Authenticator):
        self.graph = graph
        self.authenticator = authenticator

    async def probe(self, endpoint: str) -> None:
        if endpoint not in PROBE_ENDPOINTS:
            raise ValueError(f"Unknown probe endpoint: {endpoint}")
        path, params = PROBE_ENDPOINTS[endpoint]
        await self.graph.get(path, params=dict(params))

    async def reconnect(self, force: bool) -> str:
        return await self.authenticator.acquire_token(force=force)

    async def list_parent_groups(self, entity_id: str) -> list[DirectoryEntity]:
        items = await self.graph.get_all_pages(
            f"directoryObjects/{entity_id}/memberOf",
            params={"$select": "id,displayName"},
        )
        groups = []
        for item in items:
            entity = DirectoryEntity.from_graph(item)
            # memberOf also returns directory roles and administrative units
            if entity.kind is EntityKind.GROUP:
                groups.append(entity)
        logger.debug(f"{entity_id} is a direct member of {len(groups)} group(s)")
        return groups
