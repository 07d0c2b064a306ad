"""CLI entry point for the synthetics CI client."""

import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import NoReturn

import typer
from pydantic import ValidationError

from boostsec.synthetics_ci.api import SyntheticsApiClient
from boostsec.synthetics_ci.errors import CiError, CriticalError
from boostsec.synthetics_ci.models.config_override import ConfigOverride
from boostsec.synthetics_ci.models.result import RunOutcome
from boostsec.synthetics_ci.models.run_config import (
    ApiConfig,
    RunTestsConfig,
    UploadApplicationConfig,
)
from boostsec.synthetics_ci.orchestrator import BatchOrchestrator
from boostsec.synthetics_ci.overrides import merge_overrides, parse_variables
from boostsec.synthetics_ci.report_writer import write_results_csv
from boostsec.synthetics_ci.test_loader import find_test_files, load_trigger_configs
from boostsec.synthetics_ci.uploader import (
    MobileAppUploader,
    upload_application_version,
)

# Configure logging - force reconfiguration
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
    force=True,
)
logger = logging.getLogger(__name__)

app = typer.Typer()


def _build_global_override(
    config_json: str | None, variable_strings: list[str]
) -> ConfigOverride:
    """Parse the global override JSON and add CLI variables on top of it."""
    try:
        override = ConfigOverride.model_validate(json.loads(config_json or "{}"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in global-config: {e}") from e
    except ValidationError as e:
        raise ValueError(f"Invalid global-config: {e}") from e

    variables = parse_variables(variable_strings)
    if not variables:
        return override

    return merge_overrides(
        override,
        ConfigOverride(variables={**(override.variables or {}), **variables}),
    )


def _handle_run_error(e: Exception) -> NoReturn:
    """Report a run error and exit with a non-zero code."""
    if isinstance(e, CriticalError):
        logger.critical(f"Critical error: {e}")
        typer.echo(f"Critical error: {e}", err=True)
    elif isinstance(e, CiError):
        logger.error(f"Error: {e}")
        typer.echo(f"Error: {e}", err=True)
    else:
        logger.exception("Test execution failed")
        typer.echo(f"Error running tests: {e}", err=True)
    raise typer.Exit(code=1)


def _summary_output(outcome: RunOutcome) -> dict[str, object]:
    summary = outcome.summary
    return {
        "state": outcome.state.value,
        "batch_id": summary.batch_id,
        "passed": summary.passed,
        "failed": summary.failed,
        "failed_non_blocking": summary.failed_non_blocking,
        "skipped": summary.skipped,
        "timed_out": summary.timed_out,
        "critical_errors": summary.critical_errors,
        "tests_not_found": sorted(summary.tests_not_found),
        "results": [
            {
                "test_public_id": r.test.public_id,
                "test_name": r.test.name,
                "location": r.location,
                "execution_rule": r.execution_rule.value,
                "passed": r.passed,
                "timed_out": r.timed_out,
                "result_id": r.result_id,
            }
            for r in outcome.results
        ],
    }


@app.command("run-tests")
def run_tests(  # noqa: PLR0913
    api_key: str = typer.Option(..., envvar="DATADOG_API_KEY", help="API key"),
    app_key: str = typer.Option(..., envvar="DATADOG_APP_KEY", help="App key"),
    site: str = typer.Option("datadoghq.com", envvar="DATADOG_SITE", help="Site"),
    public_ids: list[str] = typer.Option(  # noqa: B008
        [], "--public-id", "-p", help="Public id or URL of a test to run"
    ),
    files: list[Path] = typer.Option(  # noqa: B008
        [], "--files", "-f", help="Test files to read"
    ),
    global_config: str | None = typer.Option(
        None, help="JSON override applied to every test"
    ),
    variables: list[str] = typer.Option(  # noqa: B008
        [], "--variable", "-v", help="KEY=VALUE variable for every test"
    ),
    locations: list[str] = typer.Option(  # noqa: B008
        [], "--location", help="Location to run every test from"
    ),
    fail_on_critical_errors: bool = typer.Option(False),
    fail_on_missing_tests: bool = typer.Option(False),
    fail_on_timeout: bool = typer.Option(True),
    polling_timeout: float = typer.Option(
        30 * 60, help="Seconds to wait for results"
    ),
    csv_report: Path | None = typer.Option(None, help="Write results to a CSV file"),
) -> None:
    """Trigger tests as one batch and wait for their results."""
    logger.info("=" * 80)
    logger.info("Synthetics CI - Run tests")
    logger.info("=" * 80)

    try:
        config = RunTestsConfig(
            global_override=_build_global_override(global_config, variables),
            locations=locations,
            fail_on_critical_errors=fail_on_critical_errors,
            fail_on_missing_tests=fail_on_missing_tests,
            fail_on_timeout=fail_on_timeout,
            polling_timeout=polling_timeout,
        )
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    test_files = files or find_test_files(Path.cwd())
    trigger_configs = asyncio.run(load_trigger_configs(test_files, public_ids))
    if not trigger_configs:
        typer.echo("No tests to run")
        return
    logger.info(f"Loaded {len(trigger_configs)} test(s)")

    api = SyntheticsApiClient(ApiConfig(api_key=api_key, app_key=app_key, site=site))
    orchestrator = BatchOrchestrator(api, config, env=dict(os.environ))

    try:
        outcome = asyncio.run(orchestrator.run(trigger_configs))
    except Exception as e:
        _handle_run_error(e)

    if csv_report is not None:
        write_results_csv(outcome.results, csv_report)
        logger.info(f"Results written to {csv_report}")

    typer.echo(json.dumps(_summary_output(outcome), indent=2))

    if outcome.exit_code:
        logger.error(
            f"Tests failed: {outcome.summary.failed} blocking failure(s), "
            f"{len(outcome.summary.tests_not_found)} test(s) not found"
        )
        raise typer.Exit(code=outcome.exit_code)


@app.command("upload-application")
def upload_application(
    api_key: str = typer.Option(..., envvar="DATADOG_API_KEY", help="API key"),
    app_key: str = typer.Option(..., envvar="DATADOG_APP_KEY", help="App key"),
    site: str = typer.Option("datadoghq.com", envvar="DATADOG_SITE", help="Site"),
    mobile_application_id: str | None = typer.Option(None, help="Application id"),
    mobile_application_version_file_path: str | None = typer.Option(
        None, help="Application binary to upload"
    ),
    version_name: str | None = typer.Option(None, help="Name of the new version"),
    latest: bool = typer.Option(False, help="Mark the new version as latest"),
) -> None:
    """Upload a binary as a new version of a mobile application."""
    config = UploadApplicationConfig(
        mobile_application_id=mobile_application_id,
        mobile_application_version_file_path=mobile_application_version_file_path,
        version_name=version_name,
        latest=latest,
    )
    api = SyntheticsApiClient(ApiConfig(api_key=api_key, app_key=app_key, site=site))

    try:
        artifact = asyncio.run(
            upload_application_version(MobileAppUploader(api), config)
        )
    except Exception as e:
        _handle_run_error(e)

    valid = artifact.app_upload_response.valid_app_result
    typer.echo(
        json.dumps(
            {
                "file_name": artifact.file_name,
                "version_uuid": valid.app_version_uuid if valid else None,
            },
            indent=2,
        )
    )


if __name__ == "__main__":  # pragma: no cover
    app()
