"""Configuration models for the CI commands."""

from pydantic import BaseModel, Field

from boostsec.synthetics_ci.models.config_override import ConfigOverride


class ApiConfig(BaseModel):
    """Credentials and site of the synthetics backend."""

    api_key: str = Field(..., description="API key")
    app_key: str = Field(..., description="Application key")
    site: str = Field(default="datadoghq.com", description="Backend site")

    @property
    def base_url(self) -> str:
        """Base URL of the stable API."""
        return f"https://api.{self.site}/api/v1"

    @property
    def base_unstable_url(self) -> str:
        """Base URL of the unstable API."""
        return f"https://api.{self.site}/api/unstable"


class RunTestsConfig(BaseModel):
    """Configuration of a ``run-tests`` invocation."""

    global_override: ConfigOverride = Field(
        default_factory=ConfigOverride, description="Overrides for every test"
    )
    locations: list[str] = Field(
        default_factory=list, description="Locations forced on every test"
    )
    fail_on_critical_errors: bool = Field(default=False)
    fail_on_missing_tests: bool = Field(default=False)
    fail_on_timeout: bool = Field(default=True)
    polling_timeout: float = Field(
        default=30 * 60, description="Wall-clock budget for polling in seconds"
    )
    batch_poll_interval: float = Field(
        default=5, description="Seconds between two batch status requests"
    )
    max_concurrent_fetches: int = Field(
        default=10, ge=1, description="Maximum in-flight result fetches"
    )


class UploadApplicationConfig(BaseModel):
    """Configuration of an ``upload-application`` invocation."""

    mobile_application_id: str | None = None
    mobile_application_version_file_path: str | None = None
    version_name: str | None = None
    latest: bool = False
