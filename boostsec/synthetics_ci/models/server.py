"""Models for payloads returned by the synthetics backend."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from boostsec.synthetics_ci.models.config_override import (
    ExecutionRule,
    MobileApplication,
)


class CiOptions(BaseModel):
    """CI options stored on a test."""

    model_config = ConfigDict(populate_by_name=True)

    execution_rule: ExecutionRule | None = Field(default=None, alias="executionRule")


class TestOptions(BaseModel):
    """Subset of the test options used by the CI client."""

    __test__ = False

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    ci: CiOptions | None = None
    device_ids: list[str] | None = None
    mobile_application: MobileApplication | None = Field(
        default=None, alias="mobileApplication"
    )


class Test(BaseModel):
    """Test definition as stored on the backend."""

    __test__ = False

    model_config = ConfigDict(extra="allow")

    public_id: str = Field(..., description="Public id of the test")
    name: str = Field(default="", description="Human-readable test name")
    type: str = Field(default="api", description="Test type (api, browser, mobile)")
    subtype: str | None = None
    locations: list[str] = Field(default_factory=list)
    config: dict[str, object] = Field(default_factory=dict)
    options: TestOptions = Field(default_factory=TestOptions)
    suite: str | None = Field(default=None, description="Suite set by the CI client")


class MultipartPresignedUrlsParams(BaseModel):
    """Presigned S3 multipart upload parameters."""

    key: str
    upload_id: str
    urls: dict[int, str] = Field(..., description="Presigned URL per part number")


class PresignedUrlResponse(BaseModel):
    """Response of the presigned URLs endpoint."""

    file_name: str = Field(..., description="Name the backend assigned to the file")
    multipart_presigned_urls_params: MultipartPresignedUrlsParams


class PartResponse(BaseModel):
    """Completion token for one uploaded part."""

    model_config = ConfigDict(populate_by_name=True)

    part_number: int = Field(..., alias="PartNumber")
    etag: str = Field(..., alias="ETag")


class NewVersionParams(BaseModel):
    """Metadata attached to an upload that creates a new application version."""

    model_config = ConfigDict(populate_by_name=True)

    original_file_name: str = Field(..., alias="originalFileName")
    version_name: str = Field(..., alias="versionName")
    is_latest: bool = Field(default=False, alias="isLatest")


class InvalidAppResult(BaseModel):
    """Reason an uploaded binary was rejected."""

    invalid_message: str = ""
    invalid_reason: str = ""


class UserErrorResult(BaseModel):
    """Reason the upload parameters were rejected."""

    user_error_message: str = ""
    user_error_reason: str = ""


class ValidAppResult(BaseModel):
    """Information extracted from a valid binary."""

    model_config = ConfigDict(extra="allow")

    app_version_uuid: str | None = None
    extracted_metadata: dict[str, object] = Field(default_factory=dict)


class AppUploadResponse(BaseModel):
    """Status of the asynchronous validation job of an upload."""

    status: str = Field(..., description="pending, complete, user_error or error")
    is_valid: bool | None = None
    invalid_app_result: InvalidAppResult | None = None
    user_error_result: UserErrorResult | None = None
    valid_app_result: ValidAppResult | None = None


class UploadedArtifact(BaseModel):
    """Outcome of a successful mobile application upload."""

    model_config = ConfigDict(frozen=True)

    file_name: str = Field(..., description="Reference of the uploaded file")
    app_upload_response: AppUploadResponse


class ResultInBatch(BaseModel):
    """One test execution inside a batch."""

    execution_rule: ExecutionRule = ExecutionRule.BLOCKING
    location: str = ""
    result_id: str | None = None
    status: Literal["passed", "failed", "in_progress", "skipped"]
    test_public_id: str
    timed_out: bool | None = None


class Batch(BaseModel):
    """Backend-side collection of the results of one run."""

    status: Literal["passed", "failed", "in_progress"]
    results: list[ResultInBatch] = Field(default_factory=list)


class Failure(BaseModel):
    """Failure reported by the backend for a result."""

    code: str
    message: str


class ServerResult(BaseModel):
    """Full result payload of one test execution."""

    model_config = ConfigDict(extra="allow")

    passed: bool
    unhealthy: bool | None = None
    failure: Failure | None = None


class Trigger(BaseModel):
    """Response of the trigger endpoint."""

    batch_id: str
    locations: list[dict[str, object]] = Field(default_factory=list)
