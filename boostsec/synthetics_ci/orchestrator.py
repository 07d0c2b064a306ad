"""Batch orchestrator: upload, merge, trigger and poll one run of tests."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping, Sequence

from boostsec.synthetics_ci.api import SyntheticsApiClient
from boostsec.synthetics_ci.errors import CiError, CriticalError, EndpointError
from boostsec.synthetics_ci.metadata import get_ci_metadata
from boostsec.synthetics_ci.models.config_override import (
    ConfigOverride,
    ExecutionRule,
    TestPayload,
)
from boostsec.synthetics_ci.models.result import Result, RunOutcome, RunState, Summary
from boostsec.synthetics_ci.models.run_config import RunTestsConfig
from boostsec.synthetics_ci.models.server import (
    Batch,
    Failure,
    ResultInBatch,
    ServerResult,
    Test,
)
from boostsec.synthetics_ci.models.trigger_config import AppUploadKey, TriggerConfig
from boostsec.synthetics_ci.overrides import merge, merge_overrides
from boostsec.synthetics_ci.reporters import AppUploadReporter, LoggingAppUploadReporter
from boostsec.synthetics_ci.upload_cache import AppUploadCache, get_app_upload_key
from boostsec.synthetics_ci.uploader import MobileAppUploader

logger = logging.getLogger(__name__)


class BatchOrchestrator:
    """Runs a set of tests as one backend batch and aggregates their results.

    The upload cache belongs to the orchestrator, so running again after an
    aborted run reuses the applications already uploaded.
    """

    def __init__(
        self,
        api: SyntheticsApiClient,
        config: RunTestsConfig,
        reporter: AppUploadReporter | None = None,
        uploader: MobileAppUploader | None = None,
        env: Mapping[str, str] | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            api: Backend client
            config: Run configuration
            reporter: Upload progress reporter, logs by default
            uploader: Application uploader, built from ``api`` by default
            env: Environment snapshot used to build CI metadata
            clock: Monotonic clock in seconds
            sleep: Sleep function

        """
        self.api = api
        self.config = config
        self.reporter = reporter or LoggingAppUploadReporter()
        self.uploader = uploader or MobileAppUploader(api, sleep=sleep)
        self.env = env or {}
        self.cache = AppUploadCache()
        self.state = RunState.PENDING
        self._clock = clock
        self._sleep = sleep

    @property
    def global_override(self) -> ConfigOverride:
        """Override applied to every test before its own override."""
        locations = ConfigOverride(locations=self.config.locations or None)
        return merge_overrides(self.config.global_override, locations)

    async def run(self, trigger_configs: Sequence[TriggerConfig]) -> RunOutcome:
        """Run all tests and wait for their results.

        Returns:
            The terminal state, summary and results of the run

        Raises:
            CiError: If the run can't start because of the user's input
            CriticalError: If the backend failed to trigger or report results
            Exception: Any upload failure, which aborts the whole run

        """
        self.state = RunState.PENDING
        summary = Summary()
        try:
            tests = await self._resolve_tests(trigger_configs, summary)

            self.state = RunState.UPLOADING
            payloads = await self.upload_and_merge(trigger_configs, tests)

            self.state = RunState.SUBMITTING
            summary.batch_id = await self._trigger(payloads)

            self.state = RunState.POLLING
            results, timed_out = await self._poll_batch(
                summary.batch_id,
                [t for t in tests if t is not None],
                payloads,
                summary,
            )
        except BaseException:
            self.state = RunState.FAILED
            raise

        self.state = RunState.TIMED_OUT if timed_out else RunState.COMPLETED
        logger.info(f"Run {self.state.value}: {summary.model_dump(mode='json')}")
        return RunOutcome(
            state=self.state,
            summary=summary,
            results=results,
            exit_code=self.get_exit_code(summary),
        )

    def get_exit_code(self, summary: Summary) -> int:
        """Return 1 if any blocking test failed or a required test is missing."""
        if summary.failed:
            return 1
        if self.config.fail_on_missing_tests and summary.tests_not_found:
            return 1
        return 0

    async def _resolve_tests(
        self, trigger_configs: Sequence[TriggerConfig], summary: Summary
    ) -> list[Test | None]:
        """Fetch the test of every trigger config, None for missing ones."""
        tests = list(
            await asyncio.gather(
                *(self._get_test(tc, summary) for tc in trigger_configs)
            )
        )

        if summary.tests_not_found:
            missing = ", ".join(sorted(summary.tests_not_found))
            if self.config.fail_on_missing_tests:
                raise CiError("MISSING_TESTS", f"Tests not found: {missing}")
            logger.warning(f"Tests not found, skipping them: {missing}")

        if not any(test is not None for test in tests):
            raise CiError("NO_TESTS_TO_RUN", "No tests to run")

        return tests

    async def _get_test(
        self, trigger_config: TriggerConfig, summary: Summary
    ) -> Test | None:
        public_id = trigger_config.public_id
        try:
            test = await self.api.get_test(public_id)
        except EndpointError as e:
            if e.status_code == 404:
                summary.tests_not_found.add(public_id)
                return None
            raise CriticalError(
                "UNAVAILABLE_TEST_CONFIG", f"Failed to get test {public_id}: {e}"
            ) from e

        return test.model_copy(update={"suite": trigger_config.suite})

    async def upload_and_merge(
        self,
        trigger_configs: Sequence[TriggerConfig],
        tests: Sequence[Test | None],
    ) -> list[TestPayload]:
        """Upload the required applications and build every test payload.

        The global override is layered under each test override first, so an
        application file or version set globally applies to every test.
        Each application is uploaded once however many tests use it. The
        payload of a test is merged as soon as its own upload is recorded.
        Any upload failure cancels the pending uploads and merges.
        """
        global_override = self.global_override
        trigger_configs = [
            tc.model_copy(
                update={"config": merge_overrides(global_override, tc.config)}
            )
            for tc in trigger_configs
        ]
        apps = self.cache.register_keys(trigger_configs, tests)
        to_upload = [key for key in apps if self.cache.claim(key)]
        payloads: list[TestPayload | None] = [None] * len(trigger_configs)
        uploaded = 0

        async def upload_one(key: AppUploadKey) -> None:
            nonlocal uploaded
            try:
                artifact = await self.uploader.upload(key.app_path, key.app_id)
            except BaseException:
                self.cache.release(key)
                raise
            self.cache.record_upload_result(key, artifact.file_name)
            uploaded += 1
            self.reporter.render_progress(uploaded)

        async def merge_one(
            index: int, trigger_config: TriggerConfig, test: Test
        ) -> None:
            key = get_app_upload_key(trigger_config, test)
            reference = await self.cache.wait_for(key) if key else None
            payloads[index] = merge(
                global_override,
                trigger_config.config,
                test,
                reference,
                trigger_config.config.mobile_application_version,
            )

        if to_upload:
            self.reporter.start(to_upload)

        try:
            async with asyncio.TaskGroup() as tg:
                for key in to_upload:
                    tg.create_task(upload_one(key))
                for index, (trigger_config, test) in enumerate(
                    zip(trigger_configs, tests, strict=True)
                ):
                    if test is not None:
                        tg.create_task(merge_one(index, trigger_config, test))
        except BaseExceptionGroup as group:
            error = group.exceptions[0]
            if to_upload:
                self.reporter.report_failure(error)
            raise error from None

        if to_upload:
            self.reporter.report_success()

        return [payload for payload in payloads if payload is not None]

    async def _trigger(self, payloads: Sequence[TestPayload]) -> str:
        metadata = get_ci_metadata(self.env)
        try:
            trigger = await self.api.trigger_batch(payloads, metadata)
        except EndpointError as e:
            raise CriticalError(
                "TRIGGER_TESTS_FAILED", f"Failed to trigger tests: {e}"
            ) from e

        logger.info(f"Triggered {len(payloads)} test(s) in batch {trigger.batch_id}")
        return trigger.batch_id

    async def _get_batch(self, batch_id: str) -> Batch:
        try:
            return await self.api.get_batch(batch_id)
        except EndpointError as e:
            raise CriticalError(
                "POLL_RESULTS_FAILED", f"Failed to get batch {batch_id}: {e}"
            ) from e

    async def _poll_batch(
        self,
        batch_id: str,
        tests: Sequence[Test],
        payloads: Sequence[TestPayload],
        summary: Summary,
    ) -> tuple[list[Result], bool]:
        """Poll a batch until it is finished and every result is final.

        Polling stops early once the budget is spent; the results still
        unresolved at that point are reported as timed out, including the
        triggered tests the batch never listed.

        Returns:
            Tuple of (results, whether the polling budget was exhausted)

        """
        tests_by_id = {test.public_id: test for test in tests}
        deadline = self._clock() + self.config.polling_timeout
        semaphore = asyncio.Semaphore(self.config.max_concurrent_fetches)
        results: dict[str, Result] = {}

        while True:
            batch = await self._get_batch(batch_id)

            to_fetch = [
                entry
                for entry in batch.results
                if entry.status in {"passed", "failed"}
                and entry.result_id
                and entry.result_id not in results
            ]
            try:
                async with asyncio.TaskGroup() as tg:
                    tasks = [
                        tg.create_task(
                            self._fetch_result(entry, tests_by_id, semaphore)
                        )
                        for entry in to_fetch
                    ]
            except BaseExceptionGroup as group:
                raise group.exceptions[0] from None

            for entry, task in zip(to_fetch, tasks, strict=True):
                assert entry.result_id is not None  # noqa: S101
                result = task.result()
                results[entry.result_id] = result
                summary.add_result(result)

            unresolved = [
                entry
                for entry in batch.results
                if entry.status != "skipped"
                and (not entry.result_id or entry.result_id not in results)
            ]
            # An in-progress batch may not list every result yet.
            pending = bool(unresolved) or batch.status == "in_progress"
            timed_out = pending and self._clock() >= deadline
            if not pending or timed_out:
                break

            remaining = deadline - self._clock()
            await self._sleep(
                max(0.0, min(self.config.batch_poll_interval, remaining))
            )

        summary.skipped = sum(1 for e in batch.results if e.status == "skipped")

        if timed_out:
            listed = {entry.test_public_id for entry in batch.results}
            unresolved += [
                ResultInBatch(
                    test_public_id=payload.public_id,
                    status="in_progress",
                    execution_rule=payload.execution_rule,
                )
                for payload in payloads
                if payload.public_id not in listed
                and payload.execution_rule != ExecutionRule.SKIPPED
            ]

        final_results = list(results.values())
        for entry in unresolved:
            logger.warning(
                f"Result of {entry.test_public_id} ({entry.location}) timed out"
            )
            result = self._build_result(
                entry,
                ServerResult(
                    passed=False,
                    failure=Failure(code="TIMEOUT", message="Result timed out"),
                ),
                tests_by_id,
                timed_out=True,
            )
            summary.add_result(result)
            final_results.append(result)

        return final_results, timed_out

    async def _fetch_result(
        self,
        entry: ResultInBatch,
        tests_by_id: Mapping[str, Test],
        semaphore: asyncio.Semaphore,
    ) -> Result:
        assert entry.result_id is not None  # noqa: S101
        async with semaphore:
            try:
                server_result = await self.api.get_result(entry.result_id)
            except EndpointError as e:
                raise CriticalError(
                    "POLL_RESULTS_FAILED",
                    f"Failed to get result {entry.result_id}: {e}",
                ) from e

        result = self._build_result(
            entry, server_result, tests_by_id, timed_out=bool(entry.timed_out)
        )
        status = "passed" if result.passed else "failed"
        logger.info(f"Result: {entry.test_public_id} ({entry.location}) = {status}")
        return result

    def _build_result(
        self,
        entry: ResultInBatch,
        server_result: ServerResult,
        tests_by_id: Mapping[str, Test],
        timed_out: bool,
    ) -> Result:
        test = tests_by_id.get(entry.test_public_id) or Test(
            public_id=entry.test_public_id
        )
        return Result(
            test=test,
            result_id=entry.result_id,
            location=entry.location,
            execution_rule=entry.execution_rule,
            result=server_result,
            timed_out=timed_out,
            passed=self.has_result_passed(server_result, timed_out),
        )

    def has_result_passed(self, server_result: ServerResult, timed_out: bool) -> bool:
        """Combine the server verdict with the timeout and critical error policy."""
        if timed_out and self.config.fail_on_timeout:
            return False
        if server_result.unhealthy and self.config.fail_on_critical_errors:
            return False
        return server_result.passed
