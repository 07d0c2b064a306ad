"""HTTP client for the synthetics backend."""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import TypeVar

import aiohttp

from boostsec.synthetics_ci.chunker import FilePart
from boostsec.synthetics_ci.errors import EndpointError
from boostsec.synthetics_ci.models.config_override import TestPayload
from boostsec.synthetics_ci.models.run_config import ApiConfig
from boostsec.synthetics_ci.models.server import (
    AppUploadResponse,
    Batch,
    MultipartPresignedUrlsParams,
    NewVersionParams,
    PartResponse,
    PresignedUrlResponse,
    ServerResult,
    Test,
    Trigger,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_POLL_RETRIES = 3
RETRY_BASE_DELAY = 1.0


def is_retryable(error: Exception) -> bool:
    """Whether a failed idempotent request is worth retrying."""
    if isinstance(error, EndpointError):
        return error.status_code >= 500 or error.status_code == 429
    return isinstance(error, aiohttp.ClientError | asyncio.TimeoutError)


async def retry_request(
    request: Callable[[], Awaitable[T]],
    retries: int = MAX_POLL_RETRIES,
    base_delay: float = RETRY_BASE_DELAY,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run an idempotent request, retrying transient failures with backoff.

    Args:
        request: Factory returning a new awaitable for each attempt
        retries: Number of retries after the first attempt
        base_delay: Delay before the first retry, doubled on each retry
        sleep: Sleep function, injectable for tests

    Returns:
        Result of the first successful attempt

    Raises:
        EndpointError: Last error once retries are exhausted, or any
            non-retryable error immediately

    """
    attempt = 0
    while True:
        try:
            return await request()
        except (EndpointError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            if attempt >= retries or not is_retryable(e):
                if isinstance(e, EndpointError):
                    raise
                raise EndpointError(str(e) or type(e).__name__, 0) from e
            delay = base_delay * 2**attempt
            logger.warning(
                f"Request failed ({e}), retrying in {delay:.1f}s "
                f"({attempt + 1}/{retries})"
            )
            attempt += 1
            await sleep(delay)


class SyntheticsApiClient:
    """Client for the synthetics CI and mobile application endpoints."""

    def __init__(
        self,
        config: ApiConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the client with credentials and site."""
        self.config = config
        self.base_url = config.base_url
        self.base_unstable_url = config.base_unstable_url
        self._sleep = sleep

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "DD-API-KEY": self.config.api_key,
            "DD-APPLICATION-KEY": self.config.app_key,
        }

    async def _request(
        self,
        method: str,
        url: str,
        *,
        payload: Mapping[str, object] | None = None,
        params: Mapping[str, str] | None = None,
    ) -> Mapping[str, object]:
        """Send a JSON request and return the decoded JSON body."""
        async with aiohttp.ClientSession() as session:
            async with session.request(
                method, url, headers=self._headers, json=payload, params=params
            ) as response:
                if response.status >= 300:
                    text = await response.text()
                    raise EndpointError(
                        f"{method} {url} failed: {text}", response.status
                    )

                data: Mapping[str, object] = await response.json()
                return data

    async def get_test(self, public_id: str) -> Test:
        """Fetch a test definition by public id."""
        url = f"{self.base_url}/synthetics/tests/{public_id}"
        data = await self._request("GET", url)
        return Test.model_validate(data)

    async def get_presigned_upload_urls(
        self, app_id: str, app_size: int, parts: Sequence[FilePart]
    ) -> PresignedUrlResponse:
        """Request one presigned upload URL per part of an application file."""
        url = (
            f"{self.base_unstable_url}/synthetics/mobile/applications/"
            f"{app_id}/multipart-presigned-urls"
        )
        payload = {
            "appSize": app_size,
            "parts": [{"md5": p.md5, "partNumber": p.part_number} for p in parts],
        }
        data = await self._request("POST", url, payload=payload)
        return PresignedUrlResponse.model_validate(data)

    async def upload_parts(
        self,
        parts: Sequence[FilePart],
        params: MultipartPresignedUrlsParams,
    ) -> list[PartResponse]:
        """Upload every part to its presigned URL concurrently."""
        async with aiohttp.ClientSession() as session:
            return list(
                await asyncio.gather(
                    *(self._upload_part(session, part, params) for part in parts)
                )
            )

    async def _upload_part(
        self,
        session: aiohttp.ClientSession,
        part: FilePart,
        params: MultipartPresignedUrlsParams,
    ) -> PartResponse:
        url = params.urls.get(part.part_number)
        if url is None:
            raise EndpointError(f"No presigned URL for part {part.part_number}", 0)

        headers = {"Content-MD5": part.md5}
        async with session.put(url, data=part.blob, headers=headers) as response:
            if response.status >= 300:
                text = await response.text()
                raise EndpointError(
                    f"Failed to upload part {part.part_number}: {text}",
                    response.status,
                )
            etag = response.headers.get("ETag", "")

        return PartResponse(part_number=part.part_number, etag=etag)

    async def complete_multipart_upload(
        self,
        app_id: str,
        upload_id: str,
        key: str,
        part_responses: Sequence[PartResponse],
        new_version_params: NewVersionParams | None = None,
    ) -> str:
        """Complete a multipart upload and return the validation job id."""
        url = (
            f"{self.base_unstable_url}/synthetics/mobile/applications/"
            f"{app_id}/multipart-upload-complete"
        )
        payload: dict[str, object] = {
            "uploadId": upload_id,
            "key": key,
            "partUploadResponseArray": [
                r.model_dump(by_alias=True) for r in part_responses
            ],
        }
        if new_version_params is not None:
            payload["newVersionParams"] = new_version_params.model_dump(by_alias=True)

        data = await self._request("POST", url, payload=payload)
        job_id = data.get("job_id")
        if not isinstance(job_id, str):
            raise EndpointError("Job ID not found in response", 0)
        return job_id

    async def poll_upload_job(self, job_id: str) -> AppUploadResponse:
        """Fetch the status of an upload validation job."""
        url = (
            f"{self.base_unstable_url}/synthetics/mobile/applications/"
            f"validation-job/{job_id}"
        )
        data = await retry_request(
            lambda: self._request("GET", url), sleep=self._sleep
        )
        return AppUploadResponse.model_validate(data)

    async def trigger_batch(
        self,
        payloads: Sequence[TestPayload],
        metadata: Mapping[str, object] | None = None,
    ) -> Trigger:
        """Trigger all tests as one batch."""
        body: dict[str, object] = {"tests": [p.to_request() for p in payloads]}
        if metadata:
            body["metadata"] = metadata

        data = await self._request(
            "POST", f"{self.base_url}/synthetics/tests/trigger/ci", payload=body
        )
        return Trigger.model_validate(data)

    async def get_batch(self, batch_id: str) -> Batch:
        """Fetch the status of a batch, retrying transient failures."""
        url = f"{self.base_unstable_url}/synthetics/ci/batch/{batch_id}"
        data = await retry_request(
            lambda: self._request("GET", url), sleep=self._sleep
        )
        return Batch.model_validate(data.get("data", data))

    async def get_result(self, result_id: str) -> ServerResult:
        """Fetch the full payload of one result, retrying transient failures."""
        url = f"{self.base_url}/synthetics/tests/poll_results"
        params = {"result_ids": json.dumps([result_id])}
        data = await retry_request(
            lambda: self._request("GET", url, params=params), sleep=self._sleep
        )

        results = data.get("results")
        if not isinstance(results, list) or not results:
            raise EndpointError(f"Result {result_id} not found in response", 404)
        return ServerResult.model_validate(results[0].get("result", {}))
