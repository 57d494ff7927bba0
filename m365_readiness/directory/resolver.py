"""
Group graph resolver. Computes an entity's transitive group memberships.

The walk is breadth-first over an explicit work queue, bounded by max_depth and
guarded against cycles by a visited set that lives only for one resolve() call.
Every remote fetch goes through the ResilientExecutor, so credential expiry
mid-walk is handled below this layer.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from .protocol import DirectoryClient, DirectoryEntity

if TYPE_CHECKING:
    from ..resilience.executor import ResilientExecutor

logger = logging.getLogger("m365_readiness.directory.resolver")


@dataclass(frozen=True)
class ResolvedMembership:
    """One membership edge found during resolution."""
    group: DirectoryEntity
    nested_level: int   # 0 = direct, >= 1 = transitive
    parent_of: str      # id of the entity whose parents produced this group

    @property
    def depth(self) -> int:
        """Number of edges between the resolved entity and this group."""
        return self.nested_level + 1

    @property
    def is_direct(self) -> bool:
        return self.nested_level == 0


@dataclass
class TraversalState:
    max_depth: int
    visited: set[str] = field(default_factory=set)
    queue: deque = field(default_factory=deque)
    truncated: int = 0   # groups left unexpanded at max_depth


class GroupGraphResolver:
    """Resolves direct and nested group memberships through a directory client."""

    def __init__(
        self,
        client: DirectoryClient,
        executor: ResilientExecutor,
        max_depth: Optional[int] = None,
    ):
        self.client = client
        self.executor = executor
        self.max_depth = max_depth if max_depth is not None else executor.config.max_depth
        self.fetch_count = 0
        self.truncated = 0

    async def resolve(
        self, entity_id: str, max_depth: Optional[int] = None
    ) -> list[ResolvedMembership]:
        """
        Return every group entity_id belongs to, directly or through nesting,
        in discovery order.

        A group reached through two paths before either was expanded is listed
        once per path. Any failure the executor does not absorb aborts the whole
        call.
        """
        if max_depth is None:
            max_depth = self.max_depth
        if max_depth < 1:
            raise ValueError(f"max_depth must be >= 1, got {max_depth}")

        self.fetch_count = 0
        self.truncated = 0
        state = TraversalState(max_depth=max_depth, visited={entity_id})
        memberships: list[ResolvedMembership] = []

        for group in await self._fetch_parents(entity_id):
            memberships.append(ResolvedMembership(group, 0, entity_id))
            state.queue.append((group, 1))

        while state.queue:
            group, depth = state.queue.popleft()

            if group.id in state.visited:
                logger.debug(f"Cycle guard: '{group.display_name or group.id}' already expanded")
                continue

            if depth >= state.max_depth:
                logger.warning(
                    f"Max nesting depth {state.max_depth} reached at group "
                    f"'{group.display_name or group.id}' for {entity_id}; "
                    f"not expanding further"
                )
                state.truncated += 1
                continue

            state.visited.add(group.id)
            for parent in await self._fetch_parents(group.id):
                if parent.id in state.visited:
                    logger.debug(
                        f"Cycle guard: '{parent.display_name or parent.id}' "
                        f"(parent of {group.id}) already expanded"
                    )
                    continue
                memberships.append(ResolvedMembership(parent, depth, group.id))
                state.queue.append((parent, depth + 1))

        self.truncated = state.truncated
        logger.debug(
            f"Resolved {len(memberships)} membership(s) for {entity_id} "
            f"with {self.fetch_count} fetch(es)"
        )
        return memberships

    async def _fetch_parents(self, entity_id: str) -> list[DirectoryEntity]:
        self.fetch_count += 1
        groups = await self.executor.invoke(
            lambda: self.client.list_parent_groups(entity_id),
            description=f"memberOf {entity_id}",
        )
        return list(groups)
