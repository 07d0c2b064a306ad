"""Models for the tests requested by the user."""

from pydantic import BaseModel, ConfigDict, Field

from boostsec.synthetics_ci.models.config_override import ConfigOverride


def parse_public_id(test_id: str) -> str:
    """Extract the public id from a test id or a test details URL.

    Example: ``https://app.datadoghq.com/synthetics/details/abc-def-ghi``
    resolves to ``abc-def-ghi``.
    """
    return test_id.strip().rstrip("/").split("/")[-1].split("?")[0]


class TriggerConfig(BaseModel):
    """One test to run and its per-test override."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Public id of a test or its full URL")
    suite: str | None = Field(default=None, description="Suite name for reports")
    config: ConfigOverride = Field(
        default_factory=ConfigOverride, description="Overrides for this test only"
    )

    @property
    def public_id(self) -> str:
        """Public id of the test, whichever form ``id`` uses."""
        return parse_public_id(self.id)


class TestFile(BaseModel):
    """Content of a test file."""

    __test__ = False

    tests: list[TriggerConfig] = Field(default_factory=list)


class AppUploadKey(BaseModel):
    """Dedup key for mobile application uploads."""

    model_config = ConfigDict(frozen=True)

    app_path: str = Field(..., description="Local path of the application binary")
    app_id: str = Field(..., description="Logical mobile application identifier")
