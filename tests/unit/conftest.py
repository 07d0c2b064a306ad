"""Shared fixtures for unit tests."""

from collections.abc import Callable

import pytest

from boostsec.synthetics_ci.models.config_override import ConfigOverride
from boostsec.synthetics_ci.models.server import Test
from boostsec.synthetics_ci.models.trigger_config import TriggerConfig


def make_mobile_test(app_id: str, public_id: str = "mob-ile-tst") -> Test:
    """Build a mobile test bound to ``app_id``."""
    return Test.model_validate(
        {
            "public_id": public_id,
            "name": f"Mobile test {public_id}",
            "type": "mobile",
            "options": {
                "mobileApplication": {
                    "applicationId": app_id,
                    "referenceId": "00000000-0000-0000-0000-000000000000",
                    "referenceType": "latest",
                }
            },
        }
    )


def make_trigger_config(
    app_path: str | None = None,
    app_version: str | None = None,
    public_id: str = "mob-ile-tst",
) -> TriggerConfig:
    """Build a trigger config overriding the mobile application."""
    return TriggerConfig(
        id=public_id,
        config=ConfigOverride(
            mobile_application_version_file_path=app_path,
            mobile_application_version=app_version,
        ),
    )


@pytest.fixture
def mobile_test_factory() -> Callable[..., Test]:
    """Expose the mobile test builder as a fixture."""
    return make_mobile_test


@pytest.fixture
def trigger_config_factory() -> Callable[..., TriggerConfig]:
    """Expose the trigger config builder as a fixture."""
    return make_trigger_config
