"""
Storage for the seller's OAuth state.

The store keeps four independent slots: the user token pair, the client
credentials the pair was issued to, credentials submitted before the
authorization code arrives, and the application (client-credentials) token.
Clearing the user session never touches the application slot and vice versa.
"""

from __future__ import annotations

import abc
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from ebay_lister.clients.sqlite_store import SQLiteStore
from ebay_lister.models.oauth import ApplicationToken, ClientCredentials, TokenPair
from ebay_lister.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)


class TokenStore(abc.ABC):
    """Interface injected into the OAuth and application token services."""

    @abc.abstractmethod
    def get_token_pair(self) -> Optional[TokenPair]: ...

    @abc.abstractmethod
    def save_token_pair(self, pair: TokenPair) -> None: ...

    @abc.abstractmethod
    def clear_token_pair(self) -> None: ...

    @abc.abstractmethod
    def get_client_credentials(self) -> Optional[ClientCredentials]: ...

    @abc.abstractmethod
    def save_client_credentials(self, credentials: ClientCredentials) -> None: ...

    @abc.abstractmethod
    def clear_client_credentials(self) -> None: ...

    @abc.abstractmethod
    def get_pending_credentials(self) -> Optional[ClientCredentials]: ...

    @abc.abstractmethod
    def save_pending_credentials(self, credentials: ClientCredentials) -> None: ...

    @abc.abstractmethod
    def clear_pending_credentials(self) -> None: ...

    @abc.abstractmethod
    def get_application_token(self) -> Optional[ApplicationToken]: ...

    @abc.abstractmethod
    def save_application_token(self, token: ApplicationToken) -> None: ...

    @abc.abstractmethod
    def clear_application_token(self) -> None: ...

    def clear_user_tokens(self) -> None:
        """Drop the user session: token pair and its client credentials."""
        self.clear_token_pair()
        self.clear_client_credentials()


class InMemoryTokenStore(TokenStore):
    """Process-local store; state is lost on restart."""

    def __init__(self) -> None:
        self._pair: Optional[TokenPair] = None
        self._client: Optional[ClientCredentials] = None
        self._pending: Optional[ClientCredentials] = None
        self._application: Optional[ApplicationToken] = None

    def get_token_pair(self) -> Optional[TokenPair]:
        return self._pair

    def save_token_pair(self, pair: TokenPair) -> None:
        self._pair = pair

    def clear_token_pair(self) -> None:
        self._pair = None

    def get_client_credentials(self) -> Optional[ClientCredentials]:
        return self._client

    def save_client_credentials(self, credentials: ClientCredentials) -> None:
        self._client = credentials

    def clear_client_credentials(self) -> None:
        self._client = None

    def get_pending_credentials(self) -> Optional[ClientCredentials]:
        return self._pending

    def save_pending_credentials(self, credentials: ClientCredentials) -> None:
        self._pending = credentials

    def clear_pending_credentials(self) -> None:
        self._pending = None

    def get_application_token(self) -> Optional[ApplicationToken]:
        return self._application

    def save_application_token(self, token: ApplicationToken) -> None:
        self._application = token

    def clear_application_token(self) -> None:
        self._application = None


class SQLiteTokenStore(TokenStore):
    """Durable store with secrets encrypted at rest."""

    _PAIR_KEY = "oauth#user"
    _CLIENT_KEY = "oauth#client"
    _PENDING_KEY = "oauth#pending"
    _APPLICATION_KEY = "oauth#application"

    def __init__(
        self,
        store: SQLiteStore,
        token_cipher: TokenCipherService,
        *,
        account_key: str = "default",
    ) -> None:
        self._store = store
        self._cipher = token_cipher
        self._account = f"account#{account_key}"

    def _get(self, slot: str) -> Optional[Dict[str, Any]]:
        return self._store.read(self._account, slot)

    def _put(self, slot: str, fields: Dict[str, Any]) -> None:
        self._store.write(self._account, slot, fields)

    def _delete(self, *slots: str) -> None:
        self._store.delete(self._account, slots)

    def clear_user_tokens(self) -> None:
        self._delete(self._PAIR_KEY, self._CLIENT_KEY)

    def _decrypt_or_none(self, record: Dict[str, Any], field: str) -> Optional[str]:
        value = record.get(field)
        if not value:
            return None
        return self._cipher.decrypt(value)

    def _load_credentials(self, slot: str) -> Optional[ClientCredentials]:
        record = self._get(slot)
        if not record:
            return None
        try:
            secret = self._decrypt_or_none(record, "client_secret_encrypted")
        except ValueError:
            logger.warning("Stored credentials under %s are unreadable; ignoring.", slot)
            return None
        if not secret:
            return None
        return ClientCredentials(client_id=record["client_id"], client_secret=secret)

    def _save_credentials(self, slot: str, credentials: ClientCredentials) -> None:
        self._put(
            slot,
            {
                "client_id": credentials.client_id,
                "client_secret_encrypted": self._cipher.encrypt(credentials.client_secret),
            },
        )

    def get_token_pair(self) -> Optional[TokenPair]:
        record = self._get(self._PAIR_KEY)
        if not record:
            return None
        try:
            access_token = self._decrypt_or_none(record, "access_token_encrypted")
            refresh_token = self._decrypt_or_none(record, "refresh_token_encrypted")
        except ValueError:
            logger.warning("Stored token pair is unreadable; treating as disconnected.")
            return None
        if not access_token:
            return None
        refresh_expires_at = record.get("refresh_expires_at")
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=datetime.fromisoformat(record["expires_at"]),
            refresh_expires_at=(
                datetime.fromisoformat(refresh_expires_at) if refresh_expires_at else None
            ),
            token_type=record.get("token_type") or "User Access Token",
        )

    def save_token_pair(self, pair: TokenPair) -> None:
        self._put(
            self._PAIR_KEY,
            {
                "access_token_encrypted": self._cipher.encrypt(pair.access_token),
                "refresh_token_encrypted": (
                    self._cipher.encrypt(pair.refresh_token) if pair.refresh_token else None
                ),
                "expires_at": pair.expires_at.isoformat(),
                "refresh_expires_at": (
                    pair.refresh_expires_at.isoformat() if pair.refresh_expires_at else None
                ),
                "token_type": pair.token_type,
            },
        )

    def clear_token_pair(self) -> None:
        self._delete(self._PAIR_KEY)

    def get_client_credentials(self) -> Optional[ClientCredentials]:
        return self._load_credentials(self._CLIENT_KEY)

    def save_client_credentials(self, credentials: ClientCredentials) -> None:
        self._save_credentials(self._CLIENT_KEY, credentials)

    def clear_client_credentials(self) -> None:
        self._delete(self._CLIENT_KEY)

    def get_pending_credentials(self) -> Optional[ClientCredentials]:
        return self._load_credentials(self._PENDING_KEY)

    def save_pending_credentials(self, credentials: ClientCredentials) -> None:
        self._save_credentials(self._PENDING_KEY, credentials)

    def clear_pending_credentials(self) -> None:
        self._delete(self._PENDING_KEY)

    def get_application_token(self) -> Optional[ApplicationToken]:
        record = self._get(self._APPLICATION_KEY)
        if not record:
            return None
        try:
            access_token = self._decrypt_or_none(record, "access_token_encrypted")
        except ValueError:
            return None
        if not access_token:
            return None
        return ApplicationToken(
            access_token=access_token,
            expires_at=datetime.fromisoformat(record["expires_at"]),
            scope_owner_id=record["scope_owner_id"],
        )

    def save_application_token(self, token: ApplicationToken) -> None:
        self._put(
            self._APPLICATION_KEY,
            {
                "access_token_encrypted": self._cipher.encrypt(token.access_token),
                "expires_at": token.expires_at.isoformat(),
                "scope_owner_id": token.scope_owner_id,
            },
        )

    def clear_application_token(self) -> None:
        self._delete(self._APPLICATION_KEY)


__all__ = ["InMemoryTokenStore", "SQLiteTokenStore", "TokenStore"]
