"""
Authentication module. Supports certificate-based and delegated device-code auth.
Uses MSAL for token acquisition against Microsoft Identity Platform.
"""

from __future__ import annotations

import asyncio
import base64
import getpass
import logging
import os
from typing import Optional

from cryptography.hazmat.primitives.serialization import pkcs12, Encoding, PrivateFormat, NoEncryption
from cryptography.hazmat.primitives.hashes import SHA1
import msal

from ..config import AuthConfig, REQUIRED_PERMISSIONS
from ..errors import AuthenticationError

logger = logging.getLogger("m365_readiness.auth")

# Default scopes for app-only auth
APP_SCOPES = ["https://graph.microsoft.com/.default"]


class Authenticator:
    """
    Handles MSAL-based authentication for Microsoft Graph.
    Supports:
      - Certificate-based app-only authentication
      - Delegated interactive authentication (device code flow)

    The MSAL application is kept between calls so its token cache answers
    unforced requests; force=True discards it and acquires a brand-new token.
    """

    def __init__(self, config: AuthConfig):
        self.config = config
        self._access_token: Optional[str] = None
        self._confidential_app: Optional[msal.ConfidentialClientApplication] = None
        self._public_app: Optional[msal.PublicClientApplication] = None

    async def acquire_token(self, force: bool = False) -> str:
        """Acquire an access token based on configured auth mode."""
        if self.config.mode == "certificate":
            # MSAL is blocking; keep the event loop free while it talks to AAD
            return await asyncio.to_thread(self._acquire_certificate_token, force)
        elif self.config.mode == "delegated":
            return await asyncio.to_thread(self._acquire_delegated_token, force)
        else:
            raise AuthenticationError(f"Unknown auth mode: {self.config.mode}")

    def _load_certificate(self) -> dict:
        """Decode the base64 PFX into the credential dict MSAL expects."""
        cert_config = self.config.certificate
        if not cert_config:
            raise AuthenticationError("Certificate auth config not provided.")

        cert_path = cert_config.certificate_path
        password = cert_config.certificate_password
        if not password:
            password = os.environ.get("M365_CERT_PASSWORD", "")
        if not password:
            password = getpass.getpass("Enter the certificate password: ")
        # Prompt once per run
        cert_config.certificate_password = password

        try:
            with open(cert_path, "r") as f:
                cert_base64 = f.read().strip()

            cert_bytes = base64.b64decode(cert_base64)
            password_bytes = password.encode("utf-8") if password else None

            private_key, certificate, _ = pkcs12.load_key_and_certificates(
                cert_bytes, password_bytes
            )
            if private_key is None or certificate is None:
                raise AuthenticationError(f"Certificate file {cert_path} has no key or certificate.")

            private_key_pem = private_key.private_bytes(
                Encoding.PEM, PrivateFormat.PKCS8, NoEncryption()
            ).decode("utf-8")
            thumbprint = certificate.fingerprint(SHA1()).hex()
            logger.info(f"Certificate loaded. Thumbprint: {thumbprint}")

        except FileNotFoundError:
            raise AuthenticationError(f"Certificate file not found: {cert_path}.")
        except AuthenticationError:
            raise
        except Exception as e:
            raise AuthenticationError(f"Failed to load certificate: {e}")

        return {"thumbprint": thumbprint, "private_key": private_key_pem}

    def _acquire_certificate_token(self, force: bool = False) -> str:
        """Acquire token using certificate-based client credentials."""
        if force or self._confidential_app is None:
            logger.info("Authenticating with certificate-based app credentials...")
            cert_config = self.config.certificate
            credential = self._load_certificate()
            self._confidential_app = msal.ConfidentialClientApplication(
                client_id=cert_config.client_id,
                authority=f"https://login.microsoftonline.com/{cert_config.tenant_id}",
                client_credential=credential,
            )

        result = self._confidential_app.acquire_token_for_client(scopes=APP_SCOPES)

        if "access_token" in result:
            self._access_token = result["access_token"]
            logger.info("Certificate authentication successful.")
            return self._access_token
        else:
            error = result.get("error_description", result.get("error", "Unknown"))
            raise AuthenticationError(f"Certificate auth failed: {error}")

    def _acquire_delegated_token(self, force: bool = False) -> str:
        """Acquire token using delegated (device code) flow, silently when possible."""
        deleg_config = self.config.delegated
        if not deleg_config:
            raise AuthenticationError("Delegated auth config not provided.")

        if self._public_app is None:
            self._public_app = msal.PublicClientApplication(
                client_id=deleg_config.client_id,
                authority=f"https://login.microsoftonline.com/{deleg_config.tenant_id}",
            )
        app = self._public_app

        accounts = app.get_accounts()
        if accounts:
            result = app.acquire_token_silent(
                deleg_config.scopes, account=accounts[0], force_refresh=force
            )
            if result and "access_token" in result:
                self._access_token = result["access_token"]
                logger.info("Delegated token refreshed silently.")
                return self._access_token

        logger.info("Initiating device code authentication flow...")
        flow = app.initiate_device_flow(scopes=deleg_config.scopes)
        if "user_code" not in flow:
            raise AuthenticationError(
                f"Device code flow failed: {flow.get('error_description', 'Unknown')}"
            )

        print(f"\n{'='*60}")
        print(f"  To sign in, open: {flow['verification_uri']}")
        print(f"  Enter code: {flow['user_code']}")
        print(f"{'='*60}\n")

        result = app.acquire_token_by_device_flow(flow)

        if "access_token" in result:
            self._access_token = result["access_token"]
            logger.info("Delegated authentication successful.")
            return self._access_token
        else:
            error = result.get("error_description", result.get("error", "Unknown"))
            raise AuthenticationError(f"Delegated auth failed: {error}")

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    @staticmethod
    def list_required_permissions() -> dict[str, str]:
        """Return the map of required Graph API permissions."""
        return REQUIRED_PERMISSIONS
