"""
Configuration module for the M365 Readiness Engine.
Defines tunable resilience parameters, Graph endpoints, and authentication settings.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Optional


# ─── Tenant Authentication ───────────────────────────────────────────────────

@dataclass
class CertificateAuth:
    """Certificate-based app-only authentication configuration."""
    tenant_id: str
    client_id: str
    certificate_path: str          # Path to base64-encoded PFX
    certificate_password: str = "" # Will be prompted if empty

@dataclass
class DelegatedAuth:
    """Delegated (device code) authentication configuration."""
    tenant_id: str
    client_id: str
    scopes: list[str] = field(default_factory=lambda: [
        "https://graph.microsoft.com/.default"
    ])

@dataclass
class AuthConfig:
    """Authentication configuration for either mode."""
    mode: str = "certificate"  # "certificate" or "delegated"
    certificate: Optional[CertificateAuth] = None
    delegated: Optional[DelegatedAuth] = None


# ─── Graph API Settings ─────────────────────────────────────────────────────

GRAPH_BASE_URL = "https://graph.microsoft.com"
GRAPH_API_VERSION = "v1.0"
GRAPH_BETA_VERSION = "beta"

# Throttling
MAX_THROTTLE_RETRIES = 5
INITIAL_BACKOFF_SECONDS = 2.0
MAX_BACKOFF_SECONDS = 120.0
BACKOFF_MULTIPLIER = 2.0

# Pagination
DEFAULT_PAGE_SIZE = 999
MAX_PAGES_PER_ENDPOINT = 1000


# ─── Resilience Settings ────────────────────────────────────────────────────

DEFAULT_AUTH_ERROR_PATTERNS = (
    "token",
    "unauthorized",
    "authentication",
    "401",
    "session expired",
)

@dataclass
class ResilienceConfig:
    """Controls token health checks, auth retries, and membership traversal."""
    token_lifetime_minutes: int = 50
    refresh_buffer_minutes: int = 5
    max_retries: int = 1
    max_depth: int = 5
    auth_error_patterns: list[str] = field(
        default_factory=lambda: list(DEFAULT_AUTH_ERROR_PATTERNS)
    )
    probe_endpoints: list[str] = field(default_factory=lambda: ["graph"])


# ─── Check Settings ─────────────────────────────────────────────────────────

@dataclass
class CheckConfig:
    """Which entities the readiness checks inspect, and warning thresholds."""
    entities: list[str] = field(default_factory=list)
    nesting_warning_level: int = 3    # Warn when nested_level reaches this
    enable_connectivity: bool = True
    enable_group_membership: bool = True


# ─── Master Configuration ───────────────────────────────────────────────────

@dataclass
class EngineConfig:
    """Top-level configuration for the entire engine."""
    auth: AuthConfig = field(default_factory=AuthConfig)
    resilience: ResilienceConfig = field(default_factory=ResilienceConfig)
    checks: CheckConfig = field(default_factory=CheckConfig)
    verbose: bool = False

    @classmethod
    def from_file(cls, path: str) -> "EngineConfig":
        """Load configuration from a JSON file."""
        with open(path, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> "EngineConfig":
        config = cls()
        if "auth" in data:
            auth_data = data["auth"]
            config.auth.mode = auth_data.get("mode", "certificate")
            if "certificate" in auth_data:
                c = auth_data["certificate"]
                config.auth.certificate = CertificateAuth(
                    tenant_id=c["tenant_id"],
                    client_id=c["client_id"],
                    certificate_path=c.get("certificate_path", "./base64.txt"),
                    certificate_password=c.get("certificate_password", ""),
                )
            if "delegated" in auth_data:
                d = auth_data["delegated"]
                config.auth.delegated = DelegatedAuth(
                    tenant_id=d["tenant_id"],
                    client_id=d["client_id"],
                )
        if "resilience" in data:
            for k, v in data["resilience"].items():
                if hasattr(config.resilience, k):
                    setattr(config.resilience, k, v)
        if "checks" in data:
            for k, v in data["checks"].items():
                if hasattr(config.checks, k):
                    setattr(config.checks, k, v)
        config.verbose = data.get("verbose", False)
        return config


# ─── Required Graph API Permissions (Read-Only) ─────────────────────────────

REQUIRED_PERMISSIONS = {
    "Organization.Read.All": "Probe tenant connectivity",
    "Directory.Read.All": "Resolve users, groups and directory objects",
    "Group.Read.All": "Read groups for membership checks",
    "GroupMember.Read.All": "Walk nested group memberships",
}
