"""Tests for ResilientExecutor retry and refresh behavior."""

import asyncio
import unittest

from m365_readiness.config import ResilienceConfig
from m365_readiness.errors import (
    DirectoryError,
    ErrorKind,
    RefreshFailedError,
    RetriesExhaustedError,
)
from m365_readiness.resilience import ResilientExecutor, RetryPolicy, TokenHealthMonitor, classify_error
from m365_readiness.session import Session

from tests.fakes import FakeDirectoryClient, ScriptedOperation


def make_executor(client=None, **config_overrides):
    client = client or FakeDirectoryClient()
    config = ResilienceConfig(**config_overrides)
    monitor = TokenHealthMonitor(client, Session(credential="initial"), config)
    return ResilientExecutor(monitor, config), client


class TestInvoke(unittest.TestCase):

    def test_success_first_attempt(self):
        executor, client = make_executor()
        op = ScriptedOperation(value=42)
        self.assertEqual(asyncio.run(executor.invoke(op)), 42)
        self.assertEqual(op.calls, 1)
        self.assertEqual(client.reconnect_calls, 0)

    def test_auth_failure_then_success(self):
        """401 once, refresh succeeds, second attempt returns the value."""
        executor, client = make_executor()
        op = ScriptedOperation([Exception("401 Unauthorized")], value="members")
        result = asyncio.run(executor.invoke(op, max_retries=1))
        self.assertEqual(result, "members")
        self.assertEqual(op.calls, 2)
        self.assertEqual(client.reconnect_calls, 1)
        self.assertEqual(executor.monitor.session.credential, "token-1")

    def test_non_auth_failure_propagates_unchanged(self):
        executor, client = make_executor()
        error = OSError("disk full")
        op = ScriptedOperation([error])
        with self.assertRaises(OSError) as ctx:
            asyncio.run(executor.invoke(op))
        self.assertIs(ctx.exception, error)
        self.assertEqual(op.calls, 1)
        self.assertEqual(client.reconnect_calls, 0)

    def test_exhausted_retries_bounded(self):
        for n in (0, 1, 3):
            with self.subTest(max_retries=n):
                executor, client = make_executor()
                op = ScriptedOperation([Exception("token expired")] * (n + 5))
                with self.assertRaises(RetriesExhaustedError) as ctx:
                    asyncio.run(executor.invoke(op, max_retries=n))
                self.assertEqual(op.calls, n + 1)
                self.assertEqual(client.reconnect_calls, n)
                self.assertEqual(ctx.exception.attempts, n + 1)
                self.assertIn("token expired", str(ctx.exception.last_error))

    def test_refresh_failure_is_fatal(self):
        client = FakeDirectoryClient(reconnect_error=DirectoryError("AADSTS700027: bad cert"))
        executor, _ = make_executor(client)
        original = Exception("Authentication failed: session expired")
        op = ScriptedOperation([original, original])
        with self.assertRaises(RefreshFailedError) as ctx:
            asyncio.run(executor.invoke(op, max_retries=3))
        self.assertIs(ctx.exception.original, original)
        self.assertIs(ctx.exception.__cause__, original)
        self.assertEqual(op.calls, 1)
        self.assertEqual(client.reconnect_calls, 1)

    def test_retry_failing_with_non_auth_error_stops(self):
        executor, client = make_executor()
        not_found = LookupError("object not found")
        op = ScriptedOperation([Exception("401"), not_found])
        with self.assertRaises(LookupError) as ctx:
            asyncio.run(executor.invoke(op, max_retries=5))
        self.assertIs(ctx.exception, not_found)
        self.assertEqual(op.calls, 2)
        self.assertEqual(client.reconnect_calls, 1)

    def test_defaults_come_from_config(self):
        executor, client = make_executor(max_retries=2)
        op = ScriptedOperation([Exception("Unauthorized")] * 2, value="done")
        self.assertEqual(asyncio.run(executor.invoke(op)), "done")
        self.assertEqual(op.calls, 3)
        self.assertEqual(client.reconnect_calls, 2)

    def test_custom_patterns(self):
        executor, client = make_executor()
        op = ScriptedOperation([Exception("InvalidAuthenticationToken")], value=1)
        with self.assertRaises(Exception):
            asyncio.run(executor.invoke(op, auth_error_patterns=["mfa required"]))
        self.assertEqual(op.calls, 1)

        op = ScriptedOperation([Exception("MFA Required for this call")], value=1)
        self.assertEqual(asyncio.run(executor.invoke(op, auth_error_patterns=["mfa required"])), 1)
        self.assertEqual(client.reconnect_calls, 1)

    def test_structured_kind_beats_message(self):
        executor, client = make_executor()
        op = ScriptedOperation([DirectoryError("credential rejected", kind=ErrorKind.AUTH)], value="x")
        self.assertEqual(asyncio.run(executor.invoke(op)), "x")
        self.assertEqual(client.reconnect_calls, 1)

        denied = DirectoryError("token lacks Group.Read.All", kind=ErrorKind.PERMISSION)
        op = ScriptedOperation([denied])
        with self.assertRaises(DirectoryError) as ctx:
            asyncio.run(executor.invoke(op))
        self.assertIs(ctx.exception, denied)
        self.assertEqual(op.calls, 1)
        self.assertEqual(client.reconnect_calls, 1)

    def test_nested_fatal_error_not_retried(self):
        executor, client = make_executor()
        fatal = RefreshFailedError(Exception("401"))
        op = ScriptedOperation([fatal])
        with self.assertRaises(RefreshFailedError):
            asyncio.run(executor.invoke(op, max_retries=3))
        self.assertEqual(op.calls, 1)
        self.assertEqual(client.reconnect_calls, 0)

    def test_negative_retries_rejected(self):
        executor, _ = make_executor()
        with self.assertRaises(ValueError):
            asyncio.run(executor.invoke(ScriptedOperation(), max_retries=-1))


class TestClassification(unittest.TestCase):

    def test_patterns_case_insensitive(self):
        patterns = ResilienceConfig().auth_error_patterns
        self.assertTrue(classify_error(Exception("HTTP 401"), patterns))
        self.assertTrue(classify_error(Exception("Session Expired, sign in again"), patterns))
        self.assertTrue(classify_error(Exception("UNAUTHORIZED"), patterns))
        self.assertFalse(classify_error(Exception("Request_ResourceNotFound"), patterns))
        self.assertFalse(classify_error(Exception("403 Forbidden"), patterns))

    def test_policy_lowercases_patterns(self):
        executor, _ = make_executor()
        policy = executor.policy(auth_error_patterns=["Expired"])
        self.assertIsInstance(policy, RetryPolicy)
        self.assertEqual(policy.auth_error_patterns, frozenset({"expired"}))
        self.assertTrue(policy.is_auth_error(Exception("credential EXPIRED")))


if __name__ == "__main__":
    unittest.main()
