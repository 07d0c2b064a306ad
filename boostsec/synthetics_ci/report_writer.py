"""CSV export of run results."""

import csv
from collections.abc import Sequence
from pathlib import Path

from boostsec.synthetics_ci.models.result import Result

CSV_COLUMNS = [
    "test_public_id",
    "test_name",
    "suite",
    "location",
    "execution_rule",
    "result_id",
    "passed",
    "timed_out",
    "failure_code",
    "failure_message",
]


def result_to_row(result: Result) -> dict[str, str]:
    """Flatten a result into one CSV row."""
    failure = result.result.failure
    return {
        "test_public_id": result.test.public_id,
        "test_name": result.test.name,
        "suite": result.test.suite or "",
        "location": result.location,
        "execution_rule": result.execution_rule.value,
        "result_id": result.result_id or "",
        "passed": str(result.passed).lower(),
        "timed_out": str(result.timed_out).lower(),
        "failure_code": failure.code if failure else "",
        "failure_message": failure.message if failure else "",
    }


def write_results_csv(results: Sequence[Result], path: Path) -> None:
    """Write results to a CSV file with a header row."""
    with path.open("w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS)
        writer.writeheader()
        for result in results:
            writer.writerow(result_to_row(result))


def read_results_csv(path: Path) -> list[dict[str, str]]:
    """Read back rows written by ``write_results_csv``."""
    with path.open(newline="") as f:
        return list(csv.DictReader(f))
