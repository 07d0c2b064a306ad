"""Run-scoped ledger of mobile application uploads."""

import asyncio
import logging
from collections.abc import Sequence

from boostsec.synthetics_ci.models.server import Test
from boostsec.synthetics_ci.models.trigger_config import AppUploadKey, TriggerConfig

logger = logging.getLogger(__name__)


class _Entry:
    def __init__(self) -> None:
        self.claimed = False
        self.file_name: str | None = None
        self.done = asyncio.Event()


class AppUploadCache:
    """Tracks which application binaries must be uploaded and their references.

    The cache never uploads anything itself. Keys are registered once, the
    first caller to ``claim`` a key performs the upload and records the file
    name, and every other consumer waits for that record with ``wait_for``.
    """

    def __init__(self) -> None:
        """Initialize an empty cache."""
        self._entries: dict[AppUploadKey, _Entry] = {}

    def register_keys(
        self,
        trigger_configs: Sequence[TriggerConfig],
        tests: Sequence[Test | None],
    ) -> list[AppUploadKey]:
        """Register the uploads needed by the given tests.

        Args:
            trigger_configs: Requested tests, in order
            tests: Resolved test for each trigger config, ``None`` if not found

        Returns:
            Keys of the applications to upload, deduplicated in first-seen order

        """
        for trigger_config, test in zip(trigger_configs, tests, strict=True):
            key = get_app_upload_key(trigger_config, test)
            if key is not None and key not in self._entries:
                self._entries[key] = _Entry()

        return self.get_apps_to_upload()

    def get_apps_to_upload(self) -> list[AppUploadKey]:
        """Return the registered keys in first-seen order."""
        return list(self._entries)

    def claim(self, key: AppUploadKey) -> bool:
        """Reserve the upload of ``key``; only the first caller gets True."""
        entry = self._entries.setdefault(key, _Entry())
        if entry.claimed or entry.file_name is not None:
            return False
        entry.claimed = True
        return True

    def record_upload_result(self, key: AppUploadKey, file_name: str) -> None:
        """Store the reference of a finished upload and wake up waiters."""
        entry = self._entries.setdefault(key, _Entry())
        entry.file_name = file_name
        entry.done.set()
        logger.debug(f"Recorded upload of {key.app_path} as {file_name}")

    def release(self, key: AppUploadKey) -> None:
        """Give up a claim after a failed upload so a later run can retry."""
        entry = self._entries.get(key)
        if entry is not None and entry.file_name is None:
            entry.claimed = False

    def lookup(self, key: AppUploadKey) -> str | None:
        """Return the recorded reference, or None if not yet available."""
        entry = self._entries.get(key)
        return entry.file_name if entry else None

    async def wait_for(self, key: AppUploadKey) -> str:
        """Wait until the upload of ``key`` is recorded and return its reference."""
        entry = self._entries.setdefault(key, _Entry())
        await entry.done.wait()
        assert entry.file_name is not None  # noqa: S101
        return entry.file_name


def get_app_upload_key(
    trigger_config: TriggerConfig, test: Test | None
) -> AppUploadKey | None:
    """Return the upload key of a test, or None if it needs no upload."""
    app_path = trigger_config.config.mobile_application_version_file_path
    if test is None or not app_path:
        return None

    mobile_application = test.options.mobile_application
    if mobile_application is None:
        logger.warning(
            f"Test {test.public_id} is not a mobile test, "
            f"ignoring application file {app_path}"
        )
        return None

    return AppUploadKey(app_path=app_path, app_id=mobile_application.application_id)
