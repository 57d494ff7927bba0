from .base import BaseCheck, CheckResult, run_checks
from .connectivity import ConnectivityCheck
from .group_membership import GroupMembershipCheck

__all__ = [
    "BaseCheck",
    "CheckResult",
    "run_checks",
    "ConnectivityCheck",
    "GroupMembershipCheck",
]
