try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json
from datetime import timedelta

import pytest

from reviewdesk.core.errors import NotConnectedError
from reviewdesk.models.oauth import AccountCredential, AuthorizationTransaction, utcnow


def test_credential_round_trip_encrypts_tokens(token_store, record_store, make_credential) -> None:
    credential = make_credential(
        access_token="plain-access", refresh_token="plain-refresh", scopes="openid email"
    )

    token_store.save_credential(credential)
    raw = record_store.get_item(partition_key="user#u1", sort_key="oauth#google")
    loaded = token_store.get_credential("u1")

    serialized = json.dumps(raw)
    assert "plain-access" not in serialized
    assert "plain-refresh" not in serialized
    assert raw["access_token_encrypted"]
    assert loaded.access_token == "plain-access"
    assert loaded.refresh_token == "plain-refresh"
    assert loaded.scopes == "openid email"
    assert loaded.access_token_expires_at == credential.access_token_expires_at


def test_require_connected_rejects_missing_account(token_store) -> None:
    with pytest.raises(NotConnectedError) as excinfo:
        token_store.require_connected("nobody")

    assert excinfo.value.reconnect_required is True


def test_disconnect_clears_tokens_and_selection(token_store, make_credential) -> None:
    token_store.save_credential(
        make_credential(
            selected_business_id="accounts/1/locations/2",
            selected_business_name="Main Street",
            external_email="owner@example.com",
        )
    )

    token_store.disconnect("u1")
    credential = token_store.get_credential("u1")

    assert credential is not None
    assert credential.is_connected is False
    assert credential.refresh_token is None
    assert credential.access_token_expires_at is None
    assert credential.selected_business_id is None
    assert credential.selected_business_name is None
    assert credential.external_email == "owner@example.com"
    with pytest.raises(NotConnectedError):
        token_store.require_connected("u1")


def test_disconnect_unknown_account_is_noop(token_store) -> None:
    assert token_store.disconnect("nobody") is None


def test_transaction_is_consumed_once(token_store) -> None:
    token_store.put_transaction(
        AuthorizationTransaction(state="s1", account_id="u1", redirect_to="/settings")
    )

    first = token_store.pop_transaction("s1")
    second = token_store.pop_transaction("s1")

    assert first.account_id == "u1"
    assert first.redirect_to == "/settings"
    assert second is None


def test_access_token_requires_expiry() -> None:
    with pytest.raises(ValueError):
        AccountCredential(account_id="u1", access_token="token")


def test_needs_refresh_uses_look_ahead_window(make_credential) -> None:
    window = timedelta(minutes=5)

    assert make_credential(expires_in=120).needs_refresh(window) is True
    assert make_credential(expires_in=3600).needs_refresh(window) is False
    assert make_credential(expires_in=3600).needs_refresh(
        window, now=utcnow() + timedelta(minutes=58)
    ) is True


def test_abandoned_transactions_are_purged_on_next_write(token_store, record_store) -> None:
    token_store.put_transaction(
        AuthorizationTransaction(
            state="abandoned", account_id="u1", created_at=utcnow() - timedelta(minutes=30)
        ),
        ttl=timedelta(minutes=10),
    )
    token_store.put_transaction(
        AuthorizationTransaction(state="pending", account_id="u1"), ttl=timedelta(minutes=10)
    )

    raw = record_store.get_item(partition_key="oauth_state#pending", sort_key="transaction")
    abandoned = record_store.get_item(
        partition_key="oauth_state#abandoned", sort_key="transaction"
    )
    assert abandoned is None
    assert raw["expires_at_epoch"] > utcnow().timestamp()
    assert token_store.pop_transaction("pending").account_id == "u1"
