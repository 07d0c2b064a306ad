"""Multipart upload of mobile application binaries."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from boostsec.synthetics_ci.api import SyntheticsApiClient
from boostsec.synthetics_ci.chunker import get_size_and_parts_from_file
from boostsec.synthetics_ci.errors import (
    CiError,
    InvalidAppError,
    InvalidUploadParametersError,
    UnknownUploadFailureError,
)
from boostsec.synthetics_ci.models.run_config import UploadApplicationConfig
from boostsec.synthetics_ci.models.server import (
    AppUploadResponse,
    NewVersionParams,
    UploadedArtifact,
)

logger = logging.getLogger(__name__)

UPLOAD_POLL_INTERVAL = 1.0
MAX_UPLOAD_POLL_ATTEMPTS = 300


class MobileAppUploader:
    """Uploads application binaries and waits for their validation."""

    def __init__(
        self,
        api: SyntheticsApiClient,
        poll_interval: float = UPLOAD_POLL_INTERVAL,
        max_poll_attempts: int = MAX_UPLOAD_POLL_ATTEMPTS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the uploader with a backend client."""
        self.api = api
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts
        self._sleep = sleep

    async def upload(
        self,
        app_path: str,
        app_id: str,
        new_version_params: NewVersionParams | None = None,
    ) -> UploadedArtifact:
        """Upload an application file and wait until the backend validates it.

        Args:
            app_path: Local path of the binary
            app_id: Mobile application the binary belongs to
            new_version_params: Metadata to create a new application version

        Returns:
            The uploaded artifact and its validation response

        Raises:
            FileNotFoundError: If the binary can't be read
            InvalidAppError: If the backend rejected the binary
            InvalidUploadParametersError: If the backend rejected the parameters
            UnknownUploadFailureError: If the validation ended in any other state
            EndpointError: If a backend call fails

        """
        app_size, parts = get_size_and_parts_from_file(app_path)
        logger.info(f"Uploading {app_path} ({app_size} bytes, {len(parts)} parts)")

        presigned = await self.api.get_presigned_upload_urls(app_id, app_size, parts)
        params = presigned.multipart_presigned_urls_params

        part_responses = await self.api.upload_parts(parts, params)

        job_id = await self.api.complete_multipart_upload(
            app_id, params.upload_id, params.key, part_responses, new_version_params
        )
        logger.info(f"Upload of {app_path} complete, validation job: {job_id}")

        response = await self._wait_for_validation(job_id)
        return UploadedArtifact(
            file_name=presigned.file_name, app_upload_response=response
        )

    async def _wait_for_validation(self, job_id: str) -> AppUploadResponse:
        """Poll the validation job until it leaves the pending state."""
        response = await self.api.poll_upload_job(job_id)
        for _ in range(self.max_poll_attempts - 1):
            if response.status != "pending":
                break
            await self._sleep(self.poll_interval)
            response = await self.api.poll_upload_job(job_id)

        return check_upload_response(response)


def check_upload_response(response: AppUploadResponse) -> AppUploadResponse:
    """Map a terminal validation response to success or a typed error."""
    if response.status == "complete":
        if response.is_valid:
            return response
        invalid = response.invalid_app_result
        raise InvalidAppError(invalid.invalid_message if invalid else "")

    if response.status == "user_error":
        user_error = response.user_error_result
        raise InvalidUploadParametersError(
            user_error.user_error_message if user_error else ""
        )

    logger.error(f"Unexpected upload validation status: {response.status}")
    raise UnknownUploadFailureError()


async def upload_application_version(
    uploader: MobileAppUploader, config: UploadApplicationConfig
) -> UploadedArtifact:
    """Upload a binary as a new version of a mobile application.

    Raises:
        CiError: If the application id, file path or version name is missing

    """
    if not config.mobile_application_id:
        raise CiError(
            "MISSING_MOBILE_APPLICATION_ID", "Missing mobile application ID"
        )
    if not config.mobile_application_version_file_path:
        raise CiError(
            "MISSING_MOBILE_APPLICATION_PATH", "Missing mobile application file path"
        )
    if not config.version_name:
        raise CiError("MISSING_VERSION_NAME", "Missing version name")

    file_path = config.mobile_application_version_file_path
    new_version_params = NewVersionParams(
        original_file_name=file_path,
        version_name=config.version_name,
        is_latest=config.latest,
    )

    artifact = await uploader.upload(
        file_path, config.mobile_application_id, new_version_params
    )

    valid = artifact.app_upload_response.valid_app_result
    version_uuid = valid.app_version_uuid if valid else None
    logger.info(
        f"Created version {config.version_name} of application "
        f"{config.mobile_application_id} ({version_uuid})"
    )
    return artifact
