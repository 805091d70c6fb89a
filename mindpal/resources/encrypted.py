"""Encrypted blobs stored per user and data type (``encrypted_data`` table)."""

from __future__ import annotations

import logging

from mindpal.backend.types import eq
from mindpal.encryption import DataCipher
from mindpal.errors import validation_required
from mindpal.resources.base import RemoteResource, ResourceContext

logger = logging.getLogger(__name__)


class EncryptedDataStore(RemoteResource):
    """Stores text encrypted under a key derived from the user id.

    Nothing is cached locally; every read goes to the backend.
    """

    table = "encrypted_data"

    def __init__(self, context: ResourceContext) -> None:
        super().__init__(context)
        self._ciphers: dict[str, DataCipher] = {}

    def cipher(self, user_id: str | None) -> DataCipher:
        key = user_id or ""
        if key not in self._ciphers:
            self._ciphers[key] = DataCipher(user_id)
        return self._ciphers[key]

    def reset(self) -> None:
        self._ciphers.clear()

    async def store(self, data_type: str, data: str) -> bool:
        """Encrypt ``data`` and insert it.

        Raises:
            ConnectivityError: Offline or backend unreachable; not attempted.
        """
        if not data_type.strip():
            raise validation_required("data_type")
        user = self._require_user()
        row = {
            "user_id": user.id,
            "data_type": data_type,
            "encrypted_content": self.cipher(user.id).encrypt(data),
        }
        ok, _ = await self._write(
            "store",
            lambda: self._client.insert(self.table, [row]),
            error_message="Failed to save encrypted data",
        )
        return ok

    async def retrieve(self, data_type: str) -> list[str]:
        """Decrypted entries of one type; entries that fail to decrypt are skipped."""
        user = self.user
        if user is None or not self._ctx.monitor.state.can_reach_backend:
            return []
        try:
            rows = await self._attempt(
                "retrieve",
                lambda: self._client.select(
                    self.table,
                    columns="encrypted_content",
                    filters=[eq("user_id", user.id), eq("data_type", data_type)],
                ),
            )
        except Exception as e:
            await self._handle_failure("retrieve", e, None)
            return []
        cipher = self.cipher(user.id)
        decrypted = (cipher.decrypt(row["encrypted_content"]) for row in rows or [])
        return [item for item in decrypted if item != ""]
