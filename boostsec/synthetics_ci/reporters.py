"""Progress reporting for mobile application uploads."""

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Sequence

from boostsec.synthetics_ci.models.trigger_config import AppUploadKey

logger = logging.getLogger(__name__)


class AppUploadReporter(ABC):
    """Observer of the upload phase of a run.

    Purely observational: reporters must not influence control flow.
    """

    @abstractmethod
    def start(self, apps_to_upload: Sequence[AppUploadKey]) -> None:
        """Uploads are about to begin."""

    @abstractmethod
    def render_progress(self, uploaded: int) -> None:
        """``uploaded`` applications have finished uploading."""

    @abstractmethod
    def report_success(self) -> None:
        """Every application was uploaded."""

    @abstractmethod
    def report_failure(self, error: BaseException | None = None) -> None:
        """An upload failed and the run is aborted."""


class LoggingAppUploadReporter(AppUploadReporter):
    """Reports upload progress through the standard logger."""

    def __init__(self) -> None:
        """Initialize the reporter."""
        self._apps: list[AppUploadKey] = []
        self._start_time = 0.0

    def start(self, apps_to_upload: Sequence[AppUploadKey]) -> None:
        """Log the applications about to be uploaded."""
        self._apps = list(apps_to_upload)
        self._start_time = time.monotonic()
        logger.info(f"Uploading {len(self._apps)} mobile application(s):")
        for key in self._apps:
            logger.info(f"  {key.app_path} (application {key.app_id})")

    def render_progress(self, uploaded: int) -> None:
        """Log how many applications are uploaded so far."""
        logger.info(f"Uploaded {uploaded}/{len(self._apps)} mobile application(s)")

    def report_success(self) -> None:
        """Log the end of the upload phase."""
        duration = time.monotonic() - self._start_time
        logger.info(
            f"Uploaded {len(self._apps)} mobile application(s) in {duration:.2f}s"
        )

    def report_failure(self, error: BaseException | None = None) -> None:
        """Log the failed upload phase."""
        logger.error(f"Failed to upload mobile application(s): {error}")
