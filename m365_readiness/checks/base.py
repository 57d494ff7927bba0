"""
Base check class: abstract interface for all readiness checks.
Each check annotates a shared CheckResult with data, warnings, and errors.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any

logger = logging.getLogger("m365_readiness.checks")


class CheckResult:
    """Standardized result from a readiness check."""

    def __init__(self, check_name: str):
        self.check_name = check_name
        self.data: dict[str, Any] = {}
        self.metadata: dict[str, Any] = {
            "check": check_name,
            "started_at": None,
            "completed_at": None,
            "duration_seconds": 0,
            "errors": [],
            "warnings": [],
        }

    @property
    def errors(self) -> list[str]:
        return self.metadata["errors"]

    @property
    def warnings(self) -> list[str]:
        return self.metadata["warnings"]

    @property
    def passed(self) -> bool:
        return not self.errors

    def add_data(self, key: str, value: Any):
        self.data[key] = value

    def add_error(self, error: str):
        self.metadata["errors"].append(error)
        logger.error(f"[{self.check_name}] {error}")

    def add_warning(self, warning: str):
        self.metadata["warnings"].append(warning)
        logger.warning(f"[{self.check_name}] {warning}")

    def to_dict(self) -> dict:
        return {
            "passed": self.passed,
            "data": self.data,
            "metadata": self.metadata,
        }


class BaseCheck(ABC):
    """
    Abstract base class for all readiness checks.

    Subclasses implement run() to query the directory and annotate the result.
    The base class provides timing and turns any exception into a recorded error,
    so one failing check never stops the others.
    """

    name: str = "base"
    description: str = "Base check"

    async def execute(self) -> CheckResult:
        """Execute the check with timing and error handling."""
        result = CheckResult(self.name)
        result.metadata["started_at"] = time.time()
        logger.info(f"[{self.name}] Starting check...")

        try:
            await self.run(result)
        except Exception as e:
            result.add_error(f"Check failed: {type(e).__name__}: {e}")
            logger.exception(f"[{self.name}] Check failed")

        result.metadata["completed_at"] = time.time()
        result.metadata["duration_seconds"] = round(
            result.metadata["completed_at"] - result.metadata["started_at"], 2
        )
        logger.info(
            f"[{self.name}] Completed in {result.metadata['duration_seconds']}s, "
            f"{len(result.errors)} error(s), {len(result.warnings)} warning(s)"
        )
        return result

    @abstractmethod
    async def run(self, result: CheckResult):
        """
        Implement the check.
        Record findings via result.add_data / add_warning / add_error.
        """
        raise NotImplementedError


async def run_checks(checks: list[BaseCheck]) -> dict[str, CheckResult]:
    """Run checks one after another, keyed by check name."""
    results = {}
    for check in checks:
        results[check.name] = await check.execute()
    return results
