"""Auth-failure classification shared by the executor and the health monitor."""

from __future__ import annotations

from typing import Iterable

from ..errors import ErrorKind


def classify_error(error: BaseException, patterns: Iterable[str]) -> bool:
    """
    Return True when the error looks like an expired or invalid credential.

    A structured ErrorKind on the error wins; free-text errors fall back to a
    case-insensitive substring match against the patterns.
    """
    kind = getattr(error, "kind", None)
    if isinstance(kind, ErrorKind):
        return kind is ErrorKind.AUTH

    message = str(error).lower()
    return any(p.lower() in message for p in patterns if p)
