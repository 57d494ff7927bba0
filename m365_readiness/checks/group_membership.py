"""
Group Membership Check
Resolves each configured entity's direct and nested group memberships and
flags deep nesting, possible depth truncation, and groups reached by more
than one path.
"""

from __future__ import annotations

import logging
from collections import Counter

from ..directory.resolver import GroupGraphResolver, ResolvedMembership
from ..errors import FatalError
from .base import BaseCheck, CheckResult

logger = logging.getLogger("m365_readiness.checks.group_membership")


class GroupMembershipCheck(BaseCheck):
    name = "group_membership"
    description = "Transitive group membership of mailbox owners"

    def __init__(
        self,
        resolver: GroupGraphResolver,
        entities: list[str],
        nesting_warning_level: int = 3,
    ):
        self.resolver = resolver
        self.entities = entities
        self.nesting_warning_level = nesting_warning_level

    async def run(self, result: CheckResult):
        if not self.entities:
            result.add_warning("No entities configured; nothing to resolve.")
            return

        resolved = {}
        for entity_id in self.entities:
            try:
                memberships = await self.resolver.resolve(entity_id)
            except FatalError:
                # Session is unusable; remaining entities would fail the same way
                raise
            except Exception as e:
                result.add_error(
                    f"Could not resolve memberships for {entity_id}: {type(e).__name__}: {e}"
                )
                continue

            resolved[entity_id] = [self._to_record(m) for m in memberships]
            self._annotate(entity_id, memberships, self.resolver.truncated, result)

        result.add_data("memberships", resolved)

    @staticmethod
    def _to_record(m: ResolvedMembership) -> dict:
        return {
            "group_id": m.group.id,
            "display_name": m.group.display_name,
            "nested_level": m.nested_level,
            "parent_of": m.parent_of,
        }

    def _annotate(
        self,
        entity_id: str,
        memberships: list[ResolvedMembership],
        truncated: int,
        result: CheckResult,
    ):
        if not memberships:
            logger.info(f"{entity_id} has no group memberships")
            return

        deepest = max(m.nested_level for m in memberships)
        direct = sum(1 for m in memberships if m.is_direct)
        logger.info(
            f"{entity_id}: {direct} direct, {len(memberships) - direct} nested membership(s)"
        )

        if deepest >= self.nesting_warning_level:
            result.add_warning(
                f"{entity_id} inherits membership through {deepest} levels of group nesting."
            )

        if truncated:
            result.add_warning(
                f"{entity_id} reaches the maximum resolution depth "
                f"({self.resolver.max_depth}); {truncated} group(s) were not expanded "
                f"and deeper memberships may be missing."
            )

        counts = Counter(m.group.id for m in memberships)
        for group_id, count in counts.items():
            if count > 1:
                result.add_warning(
                    f"{entity_id} reaches group {group_id} through {count} different paths."
                )
