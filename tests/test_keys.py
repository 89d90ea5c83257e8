"""Tests for the access key lifecycle."""

import pytest

from sms4dev.auth.keys import (
    KEY_ID_PREFIX,
    AccessKeyManager,
    KeyAlreadyExistsError,
    KeyNotFoundError,
    ProtectedKeyError,
)
from sms4dev.auth.store import CredentialStore
from sms4dev.common.errors import ErrorCode


@pytest.fixture
def manager() -> AccessKeyManager:
    store = CredentialStore({"SMS4DEV_KEY_EXAMPLE": "SMS4DEV_SECRET_EXAMPLE", "K1": "S1"})
    return AccessKeyManager(store, protected_key_id="SMS4DEV_KEY_EXAMPLE", dev_mode=True)


class TestCreate:
    """Tests for creating keys with explicit secrets."""

    def test_create_new_key(self, manager):
        created = manager.create("K2", "secret-two")
        assert created.key_id == "K2"
        assert created.masked_secret == "******-two"
        assert manager.validate_public("K2", "secret-two").valid is True

    def test_create_existing_key_rejected(self, manager):
        with pytest.raises(KeyAlreadyExistsError) as exc_info:
            manager.create("K1", "other")
        assert exc_info.value.code == ErrorCode.KEY_ALREADY_EXISTS
        assert exc_info.value.status_code == 400
        # Secret unchanged, unlike CredentialStore.add
        assert manager.store.lookup("K1") == "S1"


class TestGenerate:
    """Tests for server-issued credentials."""

    def test_generate_returns_usable_secret(self, manager):
        credential = manager.generate()
        assert credential.key_id.startswith(KEY_ID_PREFIX)
        assert len(credential.secret) >= 32
        assert manager.validate_public(credential.key_id, credential.secret).valid is True

    def test_generate_twice_never_repeats(self, manager):
        first = manager.generate()
        second = manager.generate()
        assert first.key_id != second.key_id
        assert first.secret != second.secret

    def test_secret_only_masked_in_list(self, manager):
        credential = manager.generate()
        listed = {item.key_id: item.masked_secret for item in manager.list()}
        assert credential.key_id in listed
        assert listed[credential.key_id] != credential.secret
        assert listed[credential.key_id].endswith(credential.secret[-4:])
        assert credential.secret not in str([item.to_dict() for item in manager.list()])

    def test_to_dict(self, manager):
        credential = manager.generate()
        assert credential.to_dict() == {
            "accessKeyId": credential.key_id,
            "accessKeySecret": credential.secret,
        }

    def test_repr_masks_secret(self, manager):
        credential = manager.generate()
        assert credential.secret not in repr(credential)
        assert repr(credential).startswith("GeneratedCredential(")


class TestDelete:
    """Tests for deleting keys."""

    def test_delete_existing(self, manager):
        manager.delete("K1")
        assert "K1" not in manager.store

    def test_delete_unknown(self, manager):
        with pytest.raises(KeyNotFoundError) as exc_info:
            manager.delete("missing")
        assert exc_info.value.code == ErrorCode.KEY_NOT_FOUND
        assert exc_info.value.status_code == 404

    def test_default_key_protected_in_dev_mode(self, manager):
        with pytest.raises(ProtectedKeyError) as exc_info:
            manager.delete("SMS4DEV_KEY_EXAMPLE")
        assert exc_info.value.code == ErrorCode.KEY_PROTECTED
        assert "SMS4DEV_KEY_EXAMPLE" in manager.store

    def test_default_key_deletable_outside_dev_mode(self):
        store = CredentialStore({"SMS4DEV_KEY_EXAMPLE": "SMS4DEV_SECRET_EXAMPLE"})
        manager = AccessKeyManager(store, protected_key_id="SMS4DEV_KEY_EXAMPLE", dev_mode=False)
        manager.delete("SMS4DEV_KEY_EXAMPLE")
        assert len(store) == 0


class TestValidatePublic:
    """Tests for the unauthenticated validation check."""

    def test_reasons(self, manager):
        assert manager.validate_public("K1", "S1").to_dict() == {"valid": True, "reason": None}
        assert manager.validate_public("K1", "S1x").reason == "mismatch"
        assert manager.validate_public("unknown", "S1").reason == "not_found"
