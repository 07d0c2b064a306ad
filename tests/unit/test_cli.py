"""Tests for CLI entry point."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

from typer.testing import CliRunner

from boostsec.synthetics_ci.cli import app
from boostsec.synthetics_ci.errors import CiError, CriticalError
from boostsec.synthetics_ci.models.result import Result, RunOutcome, RunState, Summary
from boostsec.synthetics_ci.models.server import (
    AppUploadResponse,
    ServerResult,
    Test,
    UploadedArtifact,
    ValidAppResult,
)

runner = CliRunner()

ENV = {"DATADOG_API_KEY": "api-key", "DATADOG_APP_KEY": "app-key"}


def _outcome(passed: bool = True) -> RunOutcome:
    result = Result(
        test=Test(public_id="abc-def-ghi", name="Checkout"),
        result_id="result-1",
        location="aws:eu-central-1",
        result=ServerResult(passed=passed),
        passed=passed,
    )
    summary = Summary(batch_id="batch-1")
    summary.add_result(result)
    return RunOutcome(
        state=RunState.COMPLETED,
        summary=summary,
        results=[result],
        exit_code=0 if passed else 1,
    )


def _mock_orchestrator(outcome: RunOutcome | None = None) -> MagicMock:
    orchestrator = MagicMock()
    orchestrator.run = AsyncMock(return_value=outcome or _outcome())
    return orchestrator


def test_run_tests_success() -> None:
    """run-tests outputs the summary and exits successfully."""
    orchestrator = _mock_orchestrator()

    with patch(
        "boostsec.synthetics_ci.cli.BatchOrchestrator", return_value=orchestrator
    ) as mock_cls:
        result = runner.invoke(
            app,
            [
                "run-tests",
                "--public-id",
                "abc-def-ghi",
                "--location",
                "aws:eu-central-1",
                "--no-fail-on-timeout",
                "--polling-timeout",
                "60",
            ],
            env=ENV,
        )

    assert result.exit_code == 0
    output = json.loads(result.stdout)
    assert output["state"] == "completed"
    assert output["batch_id"] == "batch-1"
    assert output["passed"] == 1
    assert output["results"][0]["test_public_id"] == "abc-def-ghi"

    api, config = mock_cls.call_args.args
    assert api.config.api_key == "api-key"
    assert api.base_url == "https://api.datadoghq.com/api/v1"
    assert config.locations == ["aws:eu-central-1"]
    assert config.fail_on_timeout is False
    assert config.polling_timeout == 60
    trigger_configs = orchestrator.run.await_args.args[0]
    assert [tc.public_id for tc in trigger_configs] == ["abc-def-ghi"]


def test_run_tests_failed_tests() -> None:
    """run-tests exits with the outcome's exit code."""
    orchestrator = _mock_orchestrator(_outcome(passed=False))

    with patch(
        "boostsec.synthetics_ci.cli.BatchOrchestrator", return_value=orchestrator
    ):
        result = runner.invoke(app, ["run-tests", "-p", "abc-def-ghi"], env=ENV)

    assert result.exit_code == 1
    assert '"failed": 1' in result.stdout


def test_run_tests_global_config_and_variables() -> None:
    """CLI variables are added to the global override."""
    orchestrator = _mock_orchestrator()

    with patch(
        "boostsec.synthetics_ci.cli.BatchOrchestrator", return_value=orchestrator
    ) as mock_cls:
        result = runner.invoke(
            app,
            [
                "run-tests",
                "-p",
                "abc-def-ghi",
                "--global-config",
                json.dumps(
                    {"startUrl": "https://example.org", "variables": {"A": "1"}}
                ),
                "-v",
                "B=2",
                "-v",
                "A=3",
            ],
            env=ENV,
        )

    assert result.exit_code == 0
    config = mock_cls.call_args.args[1]
    assert config.global_override.start_url == "https://example.org"
    assert config.global_override.variables == {"A": "3", "B": "2"}


def test_run_tests_invalid_global_config() -> None:
    """run-tests rejects invalid JSON."""
    with patch("boostsec.synthetics_ci.cli.BatchOrchestrator") as mock_cls:
        result = runner.invoke(
            app,
            ["run-tests", "-p", "abc-def-ghi", "--global-config", "{not json"],
            env=ENV,
        )

    assert result.exit_code == 1
    assert "Invalid JSON in global-config" in result.output
    mock_cls.assert_not_called()


def test_run_tests_no_tests(tmp_path: Path) -> None:
    """run-tests succeeds without doing anything when there are no tests."""
    test_file = tmp_path / "empty.synthetics.json"
    test_file.write_text(json.dumps({"tests": []}))

    with patch("boostsec.synthetics_ci.cli.BatchOrchestrator") as mock_cls:
        result = runner.invoke(
            app, ["run-tests", "--files", str(test_file)], env=ENV
        )

    assert result.exit_code == 0
    assert "No tests to run" in result.stdout
    mock_cls.assert_not_called()


def test_run_tests_reads_test_files(tmp_path: Path) -> None:
    """run-tests triggers the tests of the given files."""
    test_file = tmp_path / "app.synthetics.json"
    test_file.write_text(
        json.dumps({"tests": [{"id": "abc-def-ghi", "config": {"body": "{}"}}]})
    )
    orchestrator = _mock_orchestrator()

    with patch(
        "boostsec.synthetics_ci.cli.BatchOrchestrator", return_value=orchestrator
    ):
        result = runner.invoke(app, ["run-tests", "-f", str(test_file)], env=ENV)

    assert result.exit_code == 0
    (trigger_config,) = orchestrator.run.await_args.args[0]
    assert trigger_config.suite == "app.synthetics.json"
    assert trigger_config.config.body == "{}"


def test_run_tests_writes_csv_report(tmp_path: Path) -> None:
    """run-tests writes the results to the requested CSV file."""
    report = tmp_path / "report.csv"

    with patch(
        "boostsec.synthetics_ci.cli.BatchOrchestrator",
        return_value=_mock_orchestrator(),
    ):
        result = runner.invoke(
            app,
            ["run-tests", "-p", "abc-def-ghi", "--csv-report", str(report)],
            env=ENV,
        )

    assert result.exit_code == 0
    lines = report.read_text().splitlines()
    assert len(lines) == 2
    assert lines[1].startswith("abc-def-ghi,Checkout,")


def test_run_tests_ci_error() -> None:
    """run-tests reports user errors and exits with an error."""
    orchestrator = MagicMock()
    orchestrator.run = AsyncMock(side_effect=CiError("MISSING_TESTS", "Not found"))

    with patch(
        "boostsec.synthetics_ci.cli.BatchOrchestrator", return_value=orchestrator
    ):
        result = runner.invoke(app, ["run-tests", "-p", "abc-def-ghi"], env=ENV)

    assert result.exit_code == 1
    assert "Error: MISSING_TESTS: Not found" in result.output


def test_run_tests_critical_error() -> None:
    """run-tests reports critical errors and exits with an error."""
    orchestrator = MagicMock()
    orchestrator.run = AsyncMock(
        side_effect=CriticalError("TRIGGER_TESTS_FAILED", "Bad request")
    )

    with patch(
        "boostsec.synthetics_ci.cli.BatchOrchestrator", return_value=orchestrator
    ):
        result = runner.invoke(app, ["run-tests", "-p", "abc-def-ghi"], env=ENV)

    assert result.exit_code == 1
    assert "Critical error: TRIGGER_TESTS_FAILED" in result.output


def test_run_tests_unexpected_error() -> None:
    """run-tests exits with an error on unexpected exceptions."""
    orchestrator = MagicMock()
    orchestrator.run = AsyncMock(side_effect=RuntimeError("Boom"))

    with patch(
        "boostsec.synthetics_ci.cli.BatchOrchestrator", return_value=orchestrator
    ):
        result = runner.invoke(app, ["run-tests", "-p", "abc-def-ghi"], env=ENV)

    assert result.exit_code == 1
    assert "Error running tests: Boom" in result.output


def test_run_tests_requires_credentials() -> None:
    """run-tests fails without an API key."""
    result = runner.invoke(app, ["run-tests", "-p", "abc-def-ghi"], env={})

    assert result.exit_code != 0


def test_upload_application() -> None:
    """upload-application outputs the new version."""
    artifact = UploadedArtifact(
        file_name="uploaded-file",
        app_upload_response=AppUploadResponse(
            status="complete",
            is_valid=True,
            valid_app_result=ValidAppResult(app_version_uuid="version-uuid"),
        ),
    )

    with patch(
        "boostsec.synthetics_ci.cli.upload_application_version",
        AsyncMock(return_value=artifact),
    ) as mock_upload:
        result = runner.invoke(
            app,
            [
                "upload-application",
                "--mobile-application-id",
                "app-id",
                "--mobile-application-version-file-path",
                "app.apk",
                "--version-name",
                "1.2.3",
                "--latest",
            ],
            env=ENV,
        )

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {
        "file_name": "uploaded-file",
        "version_uuid": "version-uuid",
    }
    config = mock_upload.await_args.args[1]
    assert config.mobile_application_id == "app-id"
    assert config.version_name == "1.2.3"
    assert config.latest is True


def test_upload_application_missing_parameters() -> None:
    """upload-application fails before uploading when parameters are missing."""
    result = runner.invoke(
        app, ["upload-application", "--version-name", "1.2.3"], env=ENV
    )

    assert result.exit_code == 1
    assert "MISSING_MOBILE_APPLICATION_ID" in result.output
