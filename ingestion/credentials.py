"""
Credential resolution with transparent OAuth2 token refresh.

This module provides:
- CredentialStore: keyed access to the vault with per-credential locking and
  in-place refresh of OAuth2 access tokens (refresh_token or
  client_credentials grant)
- CredentialResolver: resolves the credential for a connector after checking
  that its adapter is registered

Refreshed tokens are written back onto the vault's AuthConfig object so
later lookups, in this run or later ones, reuse them without a network call.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional, Union
import logging

import httpx

from core.config import settings
from core.exceptions import (
    AdapterNotFoundError,
    AuthorizationRequiredError,
    CredentialsNotFoundError,
    TokenRefreshError
)
from ingestion.registry import AdapterRegistry
from schemas.auth import ApiKeyAuth, BasicAuth, OAuth2Auth, Vault
from schemas.connector import Connector

logger = logging.getLogger(__name__)

Auth = Union[ApiKeyAuth, OAuth2Auth, BasicAuth]


class CredentialStore:
    """
    Vault wrapper with a single writer per credential id.

    Concurrent get_or_refresh calls for the same id are serialised by an
    asyncio.Lock, so only the first caller performs a refresh and the rest
    observe its result.
    """

    def __init__(
        self,
        vault: Vault,
        http_client: Optional[httpx.AsyncClient] = None,
        request_timeout: Optional[float] = None
    ):
        self.vault = vault
        self.http_client = http_client
        self.request_timeout = request_timeout or settings.TOKEN_REQUEST_TIMEOUT
        self._locks: Dict[str, asyncio.Lock] = {}

    def get(self, credential_id: str) -> Auth:
        """Return the vault entry as stored, without refreshing"""
        auth = self.vault.get(credential_id)
        if auth is None:
            raise CredentialsNotFoundError(
                f"Credentials not found for id: {credential_id}",
                context={"credential_id": credential_id}
            )
        return auth

    def _lock_for(self, credential_id: str) -> asyncio.Lock:
        return self._locks.setdefault(credential_id, asyncio.Lock())

    async def get_or_refresh(self, credential_id: str) -> Auth:
        """
        Return a usable credential, refreshing OAuth2 tokens when expired.

        Raises:
            CredentialsNotFoundError: No vault entry for credential_id
            AuthorizationRequiredError: OAuth2 entry has no usable token material
            TokenRefreshError: The token endpoint call failed
        """
        auth = self.get(credential_id)

        if not isinstance(auth, OAuth2Auth) or not auth.credentials.token_url:
            return auth

        async with self._lock_for(credential_id):
            await self._ensure_access_token(credential_id, auth)
        return auth

    async def _ensure_access_token(self, credential_id: str, auth: OAuth2Auth) -> None:
        creds = auth.credentials

        # A token without a known expiry is refreshed
        if creds.access_token and auth.expires_at is not None and not auth.is_expired():
            return

        if creds.refresh_token:
            payload = await self._request_token(credential_id, creds.token_url, {
                "grant_type": "refresh_token",
                "client_id": creds.client_id,
                "client_secret": creds.client_secret,
                "refresh_token": creds.refresh_token,
            })
            creds.access_token = payload["access_token"]
            # Providers may rotate refresh tokens
            if payload.get("refresh_token"):
                creds.refresh_token = payload["refresh_token"]
            auth.expires_at = self._expiry_from(payload)
            logger.info(f"Refreshed access token for {credential_id}")

        elif creds.client_id and creds.client_secret:
            payload = await self._request_token(credential_id, creds.token_url, {
                "grant_type": "client_credentials",
                "client_id": creds.client_id,
                "client_secret": creds.client_secret,
            })
            creds.access_token = payload["access_token"]
            auth.expires_at = self._expiry_from(payload)
            logger.info(f"Obtained client_credentials token for {credential_id}")

        else:
            raise AuthorizationRequiredError(
                f"OAuth2 credentials for {credential_id} lack a valid access_token or "
                f"refresh_token. Initial authorization required.",
                context={"credential_id": credential_id}
            )

    @staticmethod
    def _expiry_from(payload: Dict[str, Any]) -> Optional[datetime]:
        expires_in = payload.get("expires_in")
        if not expires_in:
            return None
        return datetime.now(timezone.utc) + timedelta(seconds=float(expires_in))

    async def _request_token(
        self,
        credential_id: str,
        token_url: str,
        form: Dict[str, Optional[str]]
    ) -> Dict[str, Any]:
        """POST a form-encoded grant to the token endpoint and return the JSON body"""
        grant_type = form["grant_type"]
        data = {key: value for key, value in form.items() if value is not None}
        headers = {"Content-Type": "application/x-www-form-urlencoded"}

        try:
            if self.http_client is not None:
                response = await self.http_client.post(token_url, data=data, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.request_timeout) as client:
                    response = await client.post(token_url, data=data, headers=headers)
            response.raise_for_status()
            payload = response.json()

        except httpx.HTTPStatusError as e:
            raise TokenRefreshError(
                f"Token request for {credential_id} failed with status {e.response.status_code}",
                context={
                    "credential_id": credential_id,
                    "grant_type": grant_type,
                    "status_code": e.response.status_code
                },
                original_exception=e
            )
        except httpx.HTTPError as e:
            raise TokenRefreshError(
                f"Token request for {credential_id} failed: {e}",
                context={"credential_id": credential_id, "grant_type": grant_type},
                original_exception=e
            )
        except ValueError as e:
            raise TokenRefreshError(
                f"Token endpoint returned invalid JSON for {credential_id}",
                context={"credential_id": credential_id, "grant_type": grant_type},
                original_exception=e
            )

        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise TokenRefreshError(
                f"Token endpoint returned no access_token for {credential_id}",
                context={"credential_id": credential_id, "grant_type": grant_type}
            )
        return payload


class CredentialResolver:
    """Resolves the AuthConfig a connector's adapter should be built with"""

    def __init__(self, registry: AdapterRegistry, store: CredentialStore):
        self.registry = registry
        self.store = store

    async def resolve(self, connector: Connector) -> Auth:
        """
        Raises:
            AdapterNotFoundError: No factory registered for connector.adapter_id
            CredentialsNotFoundError: No vault entry for connector.credential_id
            AuthorizationRequiredError / TokenRefreshError: See CredentialStore
        """
        if connector.adapter_id not in self.registry:
            raise AdapterNotFoundError(
                f"Adapter {connector.adapter_id} not found",
                context={"adapter_id": connector.adapter_id}
            )
        return await self.store.get_or_refresh(connector.credential_id)
