"""Tests for upload reporters."""

import logging

import pytest

from boostsec.synthetics_ci.models.trigger_config import AppUploadKey
from boostsec.synthetics_ci.reporters import LoggingAppUploadReporter


def test_logging_reporter(caplog: pytest.LogCaptureFixture) -> None:
    """LoggingAppUploadReporter logs every phase of the uploads."""
    reporter = LoggingAppUploadReporter()
    keys = [
        AppUploadKey(app_path="a.apk", app_id="appA"),
        AppUploadKey(app_path="b.ipa", app_id="appB"),
    ]

    with caplog.at_level(logging.INFO):
        reporter.start(keys)
        reporter.render_progress(1)
        reporter.report_success()

    assert "Uploading 2 mobile application(s)" in caplog.text
    assert "a.apk (application appA)" in caplog.text
    assert "Uploaded 1/2 mobile application(s)" in caplog.text
    assert "Uploaded 2 mobile application(s) in" in caplog.text


def test_logging_reporter_failure(caplog: pytest.LogCaptureFixture) -> None:
    """LoggingAppUploadReporter logs the failure."""
    reporter = LoggingAppUploadReporter()

    reporter.report_failure(ValueError("Corrupted binary"))

    assert caplog.records[-1].levelno == logging.ERROR
    assert "Corrupted binary" in caplog.text
