"""Tests for GroupGraphResolver transitive membership resolution."""

import asyncio
import unittest

from m365_readiness.config import ResilienceConfig
from m365_readiness.directory import GroupGraphResolver
from m365_readiness.errors import DirectoryError, ErrorKind, RetriesExhaustedError
from m365_readiness.resilience import ResilientExecutor, TokenHealthMonitor
from m365_readiness.session import Session

from tests.fakes import FakeDirectoryClient, group


def make_resolver(client, max_depth=5):
    config = ResilienceConfig(max_depth=max_depth)
    monitor = TokenHealthMonitor(client, Session(credential="initial"), config)
    return GroupGraphResolver(client, ResilientExecutor(monitor, config))


def summarize(memberships):
    return [(m.group.id, m.nested_level) for m in memberships]


class TestResolve(unittest.TestCase):

    def test_direct_then_transitive_in_discovery_order(self):
        client = FakeDirectoryClient(parents={
            "X": [group("G1"), group("G2")],
            "G1": [group("G3")],
        })
        result = asyncio.run(make_resolver(client).resolve("X", max_depth=5))
        self.assertEqual(summarize(result), [("G1", 0), ("G2", 0), ("G3", 1)])
        self.assertEqual([m.parent_of for m in result], ["X", "X", "G1"])
        self.assertTrue(result[0].is_direct)
        self.assertFalse(result[2].is_direct)

    def test_cycle_terminates_without_revisiting_root(self):
        client = FakeDirectoryClient(parents={
            "A": [group("B")],
            "B": [group("C")],
            "C": [group("A")],
        })
        result = asyncio.run(make_resolver(client).resolve("A", max_depth=3))
        self.assertEqual([m.group.id for m in result], ["B", "C"])
        self.assertEqual([m.depth for m in result], [1, 2])
        self.assertEqual(client.fetch_calls, ["A", "B", "C"])

    def test_cycle_between_groups(self):
        client = FakeDirectoryClient(parents={
            "U": [group("G1")],
            "G1": [group("G2")],
            "G2": [group("G1")],
        })
        result = asyncio.run(make_resolver(client).resolve("U", max_depth=10))
        self.assertEqual(summarize(result), [("G1", 0), ("G2", 1)])
        self.assertEqual(client.fetch_calls, ["U", "G1", "G2"])

    def test_self_membership_ignored(self):
        client = FakeDirectoryClient(parents={"U": [group("G1")], "G1": [group("G1")]})
        result = asyncio.run(make_resolver(client).resolve("U"))
        self.assertEqual(summarize(result), [("G1", 0)])

    def test_max_depth_one_fetches_only_direct_parents(self):
        client = FakeDirectoryClient(parents={
            "X": [group("G1"), group("G2")],
            "G1": [group("G3")],
        })
        resolver = make_resolver(client)
        with self.assertLogs("m365_readiness.directory.resolver", level="WARNING") as logs:
            result = asyncio.run(resolver.resolve("X", max_depth=1))
        self.assertEqual(summarize(result), [("G1", 0), ("G2", 0)])
        self.assertEqual(client.fetch_calls, ["X"])
        self.assertEqual(resolver.fetch_count, 1)
        self.assertEqual(resolver.truncated, 2)
        self.assertTrue(any("Max nesting depth 1" in line for line in logs.output))

    def test_depth_truncation_keeps_entry(self):
        # chain X -> L1 -> L2 -> L3 -> L4
        client = FakeDirectoryClient(parents={
            "X": [group("L1")],
            "L1": [group("L2")],
            "L2": [group("L3")],
            "L3": [group("L4")],
        })
        resolver = make_resolver(client)
        result = asyncio.run(resolver.resolve("X", max_depth=2))
        self.assertEqual(summarize(result), [("L1", 0), ("L2", 1)])
        self.assertEqual(resolver.truncated, 1)
        self.assertEqual(client.fetch_calls, ["X", "L1"])
        self.assertTrue(all(m.depth <= 2 for m in result))

    def test_group_reached_by_two_paths_listed_twice_expanded_once(self):
        client = FakeDirectoryClient(parents={
            "X": [group("G1"), group("G2")],
            "G1": [group("G3")],
            "G2": [group("G3")],
            "G3": [group("G4")],
        })
        resolver = make_resolver(client)
        result = asyncio.run(resolver.resolve("X"))
        self.assertEqual(
            summarize(result),
            [("G1", 0), ("G2", 0), ("G3", 1), ("G3", 1), ("G4", 2)],
        )
        self.assertEqual(resolver.truncated, 0)
        self.assertEqual([m.parent_of for m in result if m.group.id == "G3"], ["G1", "G2"])
        self.assertEqual(client.fetch_calls.count("G3"), 1)

    def test_entity_without_groups(self):
        client = FakeDirectoryClient()
        self.assertEqual(asyncio.run(make_resolver(client).resolve("lonely")), [])

    def test_default_depth_from_config(self):
        chain = {f"L{i}": [group(f"L{i + 1}")] for i in range(10)}
        client = FakeDirectoryClient(parents=chain)
        result = asyncio.run(make_resolver(client, max_depth=3).resolve("L0"))
        self.assertEqual([m.group.id for m in result], ["L1", "L2", "L3"])

    def test_invalid_depth(self):
        with self.assertRaises(ValueError):
            asyncio.run(make_resolver(FakeDirectoryClient()).resolve("X", max_depth=0))


class TestResolveFailures(unittest.TestCase):

    def test_auth_failure_mid_walk_is_transparent(self):
        client = FakeDirectoryClient(
            parents={"X": [group("G1")], "G1": [group("G2")]},
            failures={"G1": [DirectoryError("InvalidAuthenticationToken", kind=ErrorKind.AUTH)]},
        )
        result = asyncio.run(make_resolver(client).resolve("X"))
        self.assertEqual(summarize(result), [("G1", 0), ("G2", 1)])
        self.assertEqual(client.reconnect_calls, 1)
        self.assertEqual(client.fetch_calls, ["X", "G1", "G1", "G2"])

    def test_non_auth_failure_aborts_resolution(self):
        client = FakeDirectoryClient(
            parents={"X": [group("G1"), group("G2")], "G2": [group("G3")]},
            failures={"G1": [DirectoryError("Request_ResourceNotFound", kind=ErrorKind.NOT_FOUND)]},
        )
        with self.assertRaises(DirectoryError):
            asyncio.run(make_resolver(client).resolve("X"))
        self.assertEqual(client.fetch_calls, ["X", "G1"])
        self.assertEqual(client.reconnect_calls, 0)

    def test_persistent_auth_failure_aborts(self):
        client = FakeDirectoryClient(
            parents={"X": [group("G1")]},
            failures={"X": [Exception("401 Unauthorized")] * 5},
        )
        with self.assertRaises(RetriesExhaustedError):
            asyncio.run(make_resolver(client).resolve("X"))
        self.assertEqual(client.fetch_calls, ["X", "X"])


if __name__ == "__main__":
    unittest.main()
