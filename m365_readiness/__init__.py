"""
M365 Readiness Engine
=====================
Read-only readiness checks against a Microsoft 365 tenant's directory.

The core is the resilient query layer: a ResilientExecutor that recovers from
expired credentials through a TokenHealthMonitor, and a GroupGraphResolver that
computes transitive group memberships with depth and cycle guards.
"""

__version__ = "1.0.0"
__mode__ = "READ-ONLY"
