"""Data models for trigger configs, overrides, backend payloads and results."""

from boostsec.synthetics_ci.models.config_override import (
    BasicAuthCredentials,
    ConfigOverride,
    CookieSettings,
    ExecutionRule,
    MobileApplication,
    RetryConfig,
    TestPayload,
)
from boostsec.synthetics_ci.models.result import Result, RunOutcome, RunState, Summary
from boostsec.synthetics_ci.models.run_config import (
    ApiConfig,
    RunTestsConfig,
    UploadApplicationConfig,
)
from boostsec.synthetics_ci.models.server import (
    AppUploadResponse,
    Batch,
    NewVersionParams,
    PartResponse,
    PresignedUrlResponse,
    ResultInBatch,
    ServerResult,
    Test,
    UploadedArtifact,
)
from boostsec.synthetics_ci.models.trigger_config import (
    AppUploadKey,
    TestFile,
    TriggerConfig,
)

__all__ = [
    "ApiConfig",
    "AppUploadKey",
    "AppUploadResponse",
    "BasicAuthCredentials",
    "Batch",
    "ConfigOverride",
    "CookieSettings",
    "ExecutionRule",
    "MobileApplication",
    "NewVersionParams",
    "PartResponse",
    "PresignedUrlResponse",
    "Result",
    "ResultInBatch",
    "RetryConfig",
    "RunOutcome",
    "RunState",
    "RunTestsConfig",
    "ServerResult",
    "Summary",
    "Test",
    "TestFile",
    "TestPayload",
    "TriggerConfig",
    "UploadApplicationConfig",
    "UploadedArtifact",
]
