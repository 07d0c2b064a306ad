"""Models for run results and aggregates."""

from enum import Enum

from pydantic import BaseModel, Field

from boostsec.synthetics_ci.models.config_override import ExecutionRule
from boostsec.synthetics_ci.models.server import ServerResult, Test


class RunState(str, Enum):
    """Lifecycle of one orchestrated run."""

    PENDING = "pending"
    UPLOADING = "uploading"
    SUBMITTING = "submitting"
    POLLING = "polling"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


class Result(BaseModel):
    """Final result of one test execution in a batch."""

    test: Test = Field(..., description="Test definition the result belongs to")
    result_id: str | None = Field(default=None, description="Backend result id")
    location: str = Field(default="", description="Location the test ran from")
    execution_rule: ExecutionRule = ExecutionRule.BLOCKING
    result: ServerResult = Field(..., description="Raw server result")
    timed_out: bool = False
    passed: bool = Field(
        ..., description="Server verdict combined with the timeout/critical policy"
    )


class Summary(BaseModel):
    """Run-level counters."""

    batch_id: str = ""
    passed: int = 0
    failed: int = 0
    failed_non_blocking: int = 0
    skipped: int = 0
    timed_out: int = 0
    critical_errors: int = 0
    tests_not_found: set[str] = Field(default_factory=set)

    def add_result(self, result: Result) -> None:
        """Fold a finalized result into the counters."""
        if result.timed_out:
            self.timed_out += 1
        if result.result.unhealthy:
            self.critical_errors += 1

        if result.passed:
            self.passed += 1
        elif result.execution_rule == ExecutionRule.BLOCKING:
            self.failed += 1
        else:
            self.failed_non_blocking += 1


class RunOutcome(BaseModel):
    """Terminal state of a run with its summary and results."""

    state: RunState
    summary: Summary
    results: list[Result] = Field(default_factory=list)
    exit_code: int = 0
