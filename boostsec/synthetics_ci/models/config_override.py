"""Models for user and server configuration overrides."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ExecutionRule(str, Enum):
    """Behavior of the run when a test fails."""

    BLOCKING = "blocking"
    NON_BLOCKING = "non_blocking"
    SKIPPED = "skipped"


class _CamelModel(BaseModel):
    """Frozen model serialized with the backend's camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


class RetryConfig(_CamelModel):
    """Retry policy applied by the backend to a failing test."""

    count: int = Field(..., description="Number of attempts on failure")
    interval: int = Field(..., description="Interval between attempts in ms")


class CookieSettings(_CamelModel):
    """Cookie header to append to or replace the original cookies."""

    value: str = Field(..., description="Cookie header (e.g. 'a=1;b=2;')")
    append: bool | None = Field(default=None, description="Append instead of replace")


class BasicAuthCredentials(_CamelModel):
    """Credentials for basic authentication."""

    username: str
    password: str


class MobileApplication(_CamelModel):
    """Reference to the mobile application a test runs against."""

    application_id: str = Field(..., description="Logical application identifier")
    reference_id: str = Field(..., description="Version id or uploaded file name")
    reference_type: Literal["latest", "version", "temporary"] = Field(
        ..., description="How reference_id must be interpreted"
    )


class BaseConfigOverride(_CamelModel):
    """Fields shared by user-provided and server-side overrides."""

    allow_insecure_certificates: bool | None = None
    basic_auth: BasicAuthCredentials | None = None
    body: str | None = None
    body_type: str | None = None
    cookies: str | CookieSettings | None = None
    default_step_timeout: int | None = None
    device_ids: list[str] | None = None
    execution_rule: ExecutionRule | None = None
    follow_redirects: bool | None = None
    headers: dict[str, str] | None = None
    locations: list[str] | None = None
    polling_timeout: int | None = None
    retry: RetryConfig | None = None
    start_url: str | None = None
    start_url_substitution_regex: str | None = None
    variables: dict[str, str] | None = None


class ConfigOverride(BaseConfigOverride):
    """Override provided by the user, globally or for a single test."""

    mobile_application_version: str | None = Field(
        default=None, description="Id of an existing application version"
    )
    mobile_application_version_file_path: str | None = Field(
        default=None, description="Local application binary to upload"
    )


class TestPayload(BaseConfigOverride):
    """Final per-test override sent to the backend when triggering a batch."""

    __test__ = False

    public_id: str = Field(..., alias="public_id")
    execution_rule: ExecutionRule = ExecutionRule.BLOCKING
    mobile_application: MobileApplication | None = None

    def to_request(self) -> dict[str, object]:
        """Serialize to the JSON body expected by the trigger endpoint."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
