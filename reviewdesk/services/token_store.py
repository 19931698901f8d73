"""
Persistence for account credentials and pending authorization transactions.

This is the only module that reads or writes credential records. Tokens are
stored encrypted; everything else is stored as ISO-8601 / plain JSON values.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, Optional, Protocol

from reviewdesk.core.errors import NotConnectedError
from reviewdesk.models.oauth import AccountCredential, AuthorizationTransaction, utcnow
from reviewdesk.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)

_TOKEN_FIELDS = {"access_token", "refresh_token"}


class RecordStore(Protocol):
    def put_item(self, item: Dict[str, Any]) -> None: ...

    def get_item(self, *, partition_key: str, sort_key: str) -> Optional[Dict[str, Any]]: ...

    def delete_item(self, *, partition_key: str, sort_key: str) -> None: ...

    def pop_item(self, *, partition_key: str, sort_key: str) -> Optional[Dict[str, Any]]: ...

    def list_items_with_prefix(
        self, *, partition_key: str, sort_key_prefix: str
    ) -> list[Dict[str, Any]]: ...

    def delete_expired(self, *, attribute: str, before: int) -> int: ...


def account_key(account_id: str) -> str:
    return f"user#{account_id}"


class TokenStore:
    """Read and write :class:`AccountCredential` and transaction records."""

    CREDENTIAL_SORT_KEY = "oauth#google"
    TRANSACTION_SORT_KEY = "transaction"
    TRANSACTION_EXPIRY_ATTRIBUTE = "expires_at_epoch"

    def __init__(self, store: RecordStore, token_cipher: TokenCipherService) -> None:
        self._store = store
        self._cipher = token_cipher

    # Credentials

    def get_credential(self, account_id: str) -> Optional[AccountCredential]:
        record = self._store.get_item(
            partition_key=account_key(account_id), sort_key=self.CREDENTIAL_SORT_KEY
        )
        if not record:
            return None
        return self._from_record(record)

    def require_connected(self, account_id: str) -> AccountCredential:
        """Return the credential, or raise if the account is disconnected."""
        credential = self.get_credential(account_id)
        if credential is None or not credential.is_connected:
            raise NotConnectedError("Google account not connected.")
        return credential

    def save_credential(self, credential: AccountCredential) -> AccountCredential:
        saved = credential.model_copy(update={"updated_at": utcnow()})
        self._store.put_item(self._to_record(saved))
        return saved

    def disconnect(self, account_id: str) -> Optional[AccountCredential]:
        """
        Drop the tokens and business selection but keep the record, so the
        account shows as disconnected rather than never connected.
        """
        credential = self.get_credential(account_id)
        if credential is None:
            return None
        cleared = credential.model_copy(
            update={
                "access_token": None,
                "refresh_token": None,
                "access_token_expires_at": None,
                "scopes": None,
                "selected_business_id": None,
                "selected_business_name": None,
            }
        )
        logger.info("Disconnected Google account for user %s", account_id)
        return self.save_credential(cleared)

    def _to_record(self, credential: AccountCredential) -> Dict[str, Any]:
        record = credential.model_dump(mode="json", exclude=_TOKEN_FIELDS)
        record.update(
            {
                "pk": account_key(credential.account_id),
                "sk": self.CREDENTIAL_SORT_KEY,
                "provider": "google",
                "access_token_encrypted": self._cipher.encrypt_optional(
                    credential.access_token
                ),
                "refresh_token_encrypted": self._cipher.encrypt_optional(
                    credential.refresh_token
                ),
            }
        )
        return record

    def _from_record(self, record: Dict[str, Any]) -> AccountCredential:
        data = {
            key: value
            for key, value in record.items()
            if key in AccountCredential.model_fields
        }
        data["access_token"] = self._cipher.decrypt_optional(
            record.get("access_token_encrypted")
        )
        data["refresh_token"] = self._cipher.decrypt_optional(
            record.get("refresh_token_encrypted")
        )
        return AccountCredential.model_validate(data)

    # Authorization transactions

    def put_transaction(
        self, transaction: AuthorizationTransaction, *, ttl: timedelta = timedelta(minutes=10)
    ) -> None:
        """Write a transaction, first clearing any abandoned ones past their expiry."""
        purged = self._store.delete_expired(
            attribute=self.TRANSACTION_EXPIRY_ATTRIBUTE, before=int(utcnow().timestamp())
        )
        if purged:
            logger.debug("Purged %s expired authorization transactions", purged)

        record = transaction.model_dump(mode="json")
        record.update(
            {
                "pk": f"oauth_state#{transaction.state}",
                "sk": self.TRANSACTION_SORT_KEY,
                self.TRANSACTION_EXPIRY_ATTRIBUTE: int((transaction.created_at + ttl).timestamp()),
            }
        )
        self._store.put_item(record)

    def pop_transaction(self, state: str) -> Optional[AuthorizationTransaction]:
        """Consume a transaction; a second call for the same state returns None."""
        record = self._store.pop_item(
            partition_key=f"oauth_state#{state}", sort_key=self.TRANSACTION_SORT_KEY
        )
        if not record:
            return None
        internal = {"pk", "sk", self.TRANSACTION_EXPIRY_ATTRIBUTE}
        return AuthorizationTransaction.model_validate(
            {k: v for k, v in record.items() if k not in internal}
        )


__all__ = ["RecordStore", "TokenStore", "account_key"]
