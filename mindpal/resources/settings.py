"""User settings store."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from mindpal.backend.types import eq
from mindpal.errors import ValidationError, validation_choice
from mindpal.models import UserSettings
from mindpal.resources.base import RemoteResource, ResourceContext

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = UserSettings()


class SettingsStore(RemoteResource):
    """The signed-in user's preferences.

    Missing rows are created with the defaults on first load. ``settings``
    always holds a full model; it is the defaults until a load succeeds.
    """

    table = "user_settings"

    def __init__(self, context: ResourceContext) -> None:
        super().__init__(context)
        self.settings: UserSettings = DEFAULT_SETTINGS
        self.is_saving = False

    def reset(self) -> None:
        self.settings = DEFAULT_SETTINGS

    async def load(self) -> bool:
        user = self.user
        found: list[bool] = []

        async def fetch():
            return await self._client.select(self.table, filters=[eq("user_id", user.id)], maybe_single=True)

        def apply(row: Any) -> None:
            if row:
                # Null columns fall back to the defaults
                self.settings = UserSettings.model_validate({k: v for k, v in row.items() if v is not None})
                found.append(True)

        loaded = await self._load("load", fetch, apply, error_message="Failed to load settings")
        if loaded and not found:
            return await self._create_defaults()
        return loaded

    async def _create_defaults(self) -> bool:
        user = self._require_user()
        row = {"user_id": user.id, **DEFAULT_SETTINGS.model_dump()}
        ok, _ = await self._write(
            "create_defaults",
            lambda: self._client.upsert(self.table, [row], on_conflict="user_id"),
            error_message="Failed to create default settings",
        )
        if ok and self._owns(user.id):
            self.settings = DEFAULT_SETTINGS
            logger.info("Created default settings for user %s", user.id)
        return ok

    async def update(self, **changes: Any) -> bool:
        """Merge ``changes`` into the settings and save the full row."""
        fields = tuple(UserSettings.model_fields)
        for name in changes:
            if name not in UserSettings.model_fields:
                raise validation_choice("setting", name, fields)
        try:
            updated = UserSettings.model_validate({**self.settings.model_dump(), **changes})
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid settings: {e.errors()[0]['msg']}", cause=e) from e
        user = self._require_user()

        row = {
            "user_id": user.id,
            **updated.model_dump(),
            "updated_at": datetime.now().astimezone().isoformat(),
        }
        self.is_saving = True
        try:
            ok, _ = await self._write(
                "update",
                lambda: self._client.upsert(self.table, [row], on_conflict="user_id"),
                success_message="Settings saved successfully!",
                error_message="Failed to save settings. Please try again.",
            )
        finally:
            self.is_saving = False
        if ok and self._owns(user.id):
            self.settings = updated
        return ok
