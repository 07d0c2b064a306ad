"""Layering of configuration overrides into the final test payloads."""

import logging
from collections.abc import Iterable

from boostsec.synthetics_ci.models.config_override import (
    ConfigOverride,
    ExecutionRule,
    MobileApplication,
    TestPayload,
)
from boostsec.synthetics_ci.models.server import Test

logger = logging.getLogger(__name__)

_USER_ONLY_FIELDS = {
    "mobile_application_version",
    "mobile_application_version_file_path",
}

_STRICTNESS = {
    ExecutionRule.BLOCKING: 0,
    ExecutionRule.NON_BLOCKING: 1,
    ExecutionRule.SKIPPED: 2,
}


def merge_overrides(*layers: ConfigOverride | None) -> ConfigOverride:
    """Merge overrides from the least to the most specific layer.

    Every field set in a later layer replaces the same field of the earlier
    layers as a whole; dicts and lists are not merged key by key.
    """
    merged: dict[str, object] = {}
    for layer in layers:
        if layer is None:
            continue
        for name in layer.model_fields_set:
            value = getattr(layer, name)
            if value is not None:
                merged[name] = value

    return ConfigOverride.model_validate(merged)


def get_strictest_execution_rule(*rules: ExecutionRule | None) -> ExecutionRule:
    """Return the strictest rule: skipped, then non_blocking, then blocking."""
    present = [rule for rule in rules if rule is not None]
    if not present:
        return ExecutionRule.BLOCKING
    return max(present, key=_STRICTNESS.__getitem__)


def get_execution_rule(test: Test, override: ConfigOverride) -> ExecutionRule:
    """Resolve the execution rule of a test given its merged override."""
    test_rule = test.options.ci.execution_rule if test.options.ci else None
    if override.execution_rule is not None:
        return get_strictest_execution_rule(override.execution_rule, test_rule)
    return test_rule or ExecutionRule.BLOCKING


def override_mobile_config(
    payload: TestPayload,
    app_id: str,
    file_name: str | None = None,
    version_id: str | None = None,
) -> TestPayload:
    """Return a copy of ``payload`` bound to a mobile application reference.

    A just-uploaded file (temporary reference) takes precedence over an
    existing application version.
    """
    if file_name:
        mobile_application = MobileApplication(
            application_id=app_id, reference_id=file_name, reference_type="temporary"
        )
    elif version_id:
        mobile_application = MobileApplication(
            application_id=app_id, reference_id=version_id, reference_type="version"
        )
    else:
        return payload

    return payload.model_copy(update={"mobile_application": mobile_application})


def merge(
    base: ConfigOverride | None,
    test_override: ConfigOverride | None,
    test: Test,
    uploaded_reference: str | None = None,
    version_id: str | None = None,
) -> TestPayload:
    """Build the payload of one test from its override layers.

    Args:
        base: Global override applied to every test
        test_override: Override of this test only
        test: Test definition resolved from the backend
        uploaded_reference: File name of a binary uploaded during this run
        version_id: Existing application version, defaults to the one set
            in the merged override

    Returns:
        Payload ready to be sent in a batch

    """
    override = merge_overrides(base, test_override)
    fields = {
        name: getattr(override, name)
        for name in override.model_fields_set - _USER_ONLY_FIELDS
    }
    payload = TestPayload.model_validate(
        {
            **fields,
            "public_id": test.public_id,
            "execution_rule": get_execution_rule(test, override),
        }
    )

    version_id = version_id or override.mobile_application_version
    if not uploaded_reference and not version_id:
        return payload

    mobile_application = test.options.mobile_application
    if mobile_application is None:
        logger.warning(
            f"Test {test.public_id} is not a mobile test, "
            "ignoring mobile application override"
        )
        return payload

    return override_mobile_config(
        payload, mobile_application.application_id, uploaded_reference, version_id
    )


def parse_variables(variable_strings: Iterable[str]) -> dict[str, str]:
    """Parse ``KEY=VALUE`` strings into a variables override."""
    variables: dict[str, str] = {}
    for variable in variable_strings:
        key, separator, value = variable.partition("=")
        if not separator or not key.strip():
            logger.warning(f"Ignoring invalid variable: {variable!r}")
            continue
        variables[key.strip()] = value

    return variables
