"""Tests for client-side encryption and the encrypted data store."""

import base64

import pytest

from mindpal.encryption import NONCE_LENGTH, DataCipher, derive_key
from mindpal.errors import ValidationError
from mindpal.resources.encrypted import EncryptedDataStore
from tests.helpers import server_error


@pytest.fixture(scope="module")
def cipher():
    return DataCipher("user-1")


class TestCipher:
    def test_key_is_deterministic_per_secret(self):
        assert derive_key("user-1") == derive_key("user-1")
        assert derive_key("user-1") != derive_key("user-2")
        assert len(derive_key(None)) == 32

    def test_missing_secret_uses_default(self):
        assert derive_key(None) == derive_key("default-key")

    def test_nonce_is_fresh_per_message(self, cipher):
        first, second = cipher.encrypt("journal"), cipher.encrypt("journal")

        assert first != second
        assert cipher.decrypt(first) == "journal"
        assert len(base64.b64decode(first)) == NONCE_LENGTH + len("journal") + 16

    def test_wrong_key_yields_empty(self, cipher):
        token = cipher.encrypt("private")
        assert DataCipher("user-2").decrypt(token) == ""

    @pytest.mark.parametrize("token", ["not base64!", "", base64.b64encode(b"short").decode()])
    def test_garbage_yields_empty(self, cipher, token):
        assert cipher.decrypt(token) == ""

    def test_tampered_ciphertext_yields_empty(self, cipher):
        raw = bytearray(base64.b64decode(cipher.encrypt("private")))
        raw[-1] ^= 0x01
        assert cipher.decrypt(base64.b64encode(bytes(raw)).decode()) == ""


@pytest.fixture
def store(context):
    return EncryptedDataStore(context)


class TestStore:
    @pytest.mark.asyncio
    async def test_store_writes_ciphertext_only(self, store, backend):
        assert await store.store("journal", "felt anxious today") is True

        (row,) = backend.tables["encrypted_data"]
        assert row["user_id"] == "user-1"
        assert row["data_type"] == "journal"
        assert "anxious" not in row["encrypted_content"]

    @pytest.mark.asyncio
    async def test_retrieve_decrypts_by_type(self, store, backend):
        await store.store("journal", "one")
        await store.store("journal", "two")
        await store.store("notes", "other")

        assert await store.retrieve("journal") == ["one", "two"]

    @pytest.mark.asyncio
    async def test_undecryptable_rows_are_skipped(self, store, backend):
        await store.store("journal", "kept")
        backend.seed(
            "encrypted_data",
            {"user_id": "user-1", "data_type": "journal", "encrypted_content": "garbage"},
        )

        assert await store.retrieve("journal") == ["kept"]

    @pytest.mark.asyncio
    async def test_retrieve_failure_returns_empty(self, store, backend, notifier):
        backend.fail_next(server_error(), server_error(), server_error())

        assert await store.retrieve("journal") == []
        assert notifier.notices == []

    @pytest.mark.asyncio
    async def test_signed_out_retrieve_is_empty(self, store, backend, session_state):
        session_state.clear()

        assert await store.retrieve("journal") == []
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_blank_data_type(self, store):
        with pytest.raises(ValidationError):
            await store.store("  ", "x")
