"""
iamrotate key stores.

A key store lists, deletes and creates the access keys of one identity.
Ships an in-memory store for tests and a boto3-backed IAM store.
"""

import logging
import secrets
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from iamrotate.errors import ConfigError, CreateError, DeleteError, ListError
from iamrotate.models import CredentialPair, KeyRecord, utcnow

logger = logging.getLogger(__name__)


class KeyStoreInterface(ABC):
    """Abstract interface for the identity's key set."""

    @abstractmethod
    def current_key_id(self) -> str:
        """Access key id this store authenticates with."""
        pass

    @abstractmethod
    def list_keys(self, current_id: Optional[str] = None) -> List[KeyRecord]:
        """
        List every key of the identity. Raises ListError.

        ``current_id`` marks the current key; when None the store resolves it.
        """
        pass

    @abstractmethod
    def delete_key(self, key_id: str) -> None:
        """Delete one key. Raises DeleteError."""
        pass

    @abstractmethod
    def create_key(self) -> CredentialPair:
        """Mint a new key. Raises CreateError."""
        pass


class MemoryKeyStore(KeyStoreInterface):
    """
    In-memory key store for tests.

    Every call is appended to ``calls`` as ``(operation, key_id)`` so tests
    can assert ordering. ``fail_on`` maps an operation name ("list",
    "delete", "create") to an error message, or "delete:<key id>" to fail
    only that key.

    Example:
        >>> store = MemoryKeyStore([KeyRecord("AKIA1", created)], current_id="AKIA1")
        >>> store.create_key().id
        'AKIAMEMORY0000001'
    """

    def __init__(
        self,
        keys: Optional[List[KeyRecord]] = None,
        current_id: str = "",
        username: str = "test-user",
        fail_on: Optional[Dict[str, str]] = None,
    ):
        self._keys: Dict[str, KeyRecord] = {k.id: k for k in keys or []}
        self._current_id = current_id
        self._username = username
        self._counter = 0
        self.fail_on: Dict[str, str] = dict(fail_on or {})
        self.calls: List[Tuple[str, Optional[str]]] = []

    @property
    def key_ids(self) -> List[str]:
        return list(self._keys)

    def current_key_id(self) -> str:
        return self._current_id

    def list_keys(self, current_id: Optional[str] = None) -> List[KeyRecord]:
        self.calls.append(("list", None))
        if current_id is None:
            current_id = self._current_id
        if "list" in self.fail_on:
            raise ListError(self.fail_on["list"])
        return [
            KeyRecord(
                id=k.id,
                created_at=k.created_at,
                is_current=k.id == current_id,
                status=k.status,
                username=k.username or self._username,
            )
            for k in self._keys.values()
        ]

    def delete_key(self, key_id: str) -> None:
        self.calls.append(("delete", key_id))
        reason = self.fail_on.get(f"delete:{key_id}") or self.fail_on.get("delete")
        if reason:
            raise DeleteError(key_id, reason)
        if key_id not in self._keys:
            raise DeleteError(key_id, "no such key")
        del self._keys[key_id]

    def create_key(self) -> CredentialPair:
        self.calls.append(("create", None))
        if "create" in self.fail_on:
            raise CreateError(self.fail_on["create"])
        self._counter += 1
        key_id = f"AKIAMEMORY{self._counter:07d}"
        self._keys[key_id] = KeyRecord(id=key_id, created_at=utcnow(), username=self._username)
        return CredentialPair(
            id=key_id, secret=secrets.token_urlsafe(30), owner_username=self._username
        )


class IAMKeyStore(KeyStoreInterface):
    """
    Key store backed by the AWS IAM API through boto3.

    When ``user_name`` is None, IAM acts on the user that owns the calling
    credentials, which is the identity being rotated.

    Example:
        >>> store = IAMKeyStore.from_settings(settings)
        >>> [k.id for k in store.list_keys()]
    """

    def __init__(self, session=None, client=None, user_name: Optional[str] = None):
        if session is None and client is None:
            raise ValueError("IAMKeyStore requires a boto3 session or an IAM client")
        self._session = session
        self._client = client if client is not None else session.client("iam")
        self._user_name = user_name

    @classmethod
    def from_settings(cls, settings) -> "IAMKeyStore":
        """Build a store from region, profile and optional endpoint override."""
        try:
            session = boto3.session.Session(
                profile_name=settings.profile or None,
                region_name=settings.region,
            )
            client = session.client("iam", endpoint_url=settings.endpoint_url or None)
        except BotoCoreError as e:
            raise ConfigError(f"could not get AWS configuration with default methods; {e}") from e
        return cls(session=session, client=client)

    def _user_kwargs(self) -> dict:
        return {"UserName": self._user_name} if self._user_name else {}

    def current_key_id(self) -> str:
        if self._session is None:
            raise ListError("no session to resolve the current access key from")
        try:
            credentials = self._session.get_credentials()
        except BotoCoreError as e:
            raise ListError(f"could not get current AWS key ID; {e}") from e
        if credentials is None:
            raise ListError("could not get current AWS key ID; no credentials found")
        return credentials.get_frozen_credentials().access_key

    def list_keys(self, current_id: Optional[str] = None) -> List[KeyRecord]:
        if current_id is None:
            current_id = self.current_key_id()
        records = []
        try:
            paginator = self._client.get_paginator("list_access_keys")
            for page in paginator.paginate(**self._user_kwargs()):
                for meta in page.get("AccessKeyMetadata", []):
                    records.append(
                        KeyRecord(
                            id=meta["AccessKeyId"],
                            created_at=meta["CreateDate"],
                            is_current=meta["AccessKeyId"] == current_id,
                            status=meta.get("Status", ""),
                            username=meta.get("UserName", ""),
                        )
                    )
        except (BotoCoreError, ClientError) as e:
            raise ListError(f"could not list access keys; {e}") from e

        logger.debug(f"IAM returned {len(records)} access keys")
        return records

    def delete_key(self, key_id: str) -> None:
        try:
            self._client.delete_access_key(AccessKeyId=key_id, **self._user_kwargs())
        except (BotoCoreError, ClientError) as e:
            raise DeleteError(key_id, str(e)) from e

    def create_key(self) -> CredentialPair:
        try:
            response = self._client.create_access_key(**self._user_kwargs())
        except (BotoCoreError, ClientError) as e:
            raise CreateError(str(e)) from e

        access_key = response["AccessKey"]
        return CredentialPair(
            id=access_key["AccessKeyId"],
            secret=access_key["SecretAccessKey"],
            owner_username=access_key.get("UserName", ""),
        )
