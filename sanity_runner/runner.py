"""
Run orchestration for Sanity Runner.

Wires the workspace, engine adapter, retry loop, reporting and alerting
together for a single run.
"""

import time
from pathlib import Path
from typing import IO, Optional

from .alerts.dispatcher import AlertDispatcher
from .alerts.transports import (
    ChatTransport,
    PagerDutyTransport,
    PagingTransport,
    SlackTransport,
)
from .core.config import Config
from .core.exceptions import ExecutionError, ReportWriteError
from .core.logging_config import get_logger, log_performance
from .core.workspace import RunWorkspace
from .execution.artifacts import ArtifactReporter, BlobStore, HttpBlobStore
from .execution.executor import EngineAdapter, ExecutionEngine, SubprocessEngine
from .execution.models import AggregateRunResult, ExecutionResult, RunConfiguration
from .execution.retry import run_with_retry
from .reporting.generator import ResultFormatter
from .reporting.models import RunReport


class TestRunner:
    """
    Executes one run end to end.

    Each call to run_tests owns a fresh workspace, which is removed on every
    exit path. Alerting failures are logged and never change the outcome.
    """

    __test__ = False

    def __init__(
        self,
        engine: ExecutionEngine,
        config: Optional[Config] = None,
        blob_store: Optional[BlobStore] = None,
        chat_transport: Optional[ChatTransport] = None,
        paging_transport: Optional[PagingTransport] = None,
        workspace_dir: Optional[Path] = None,
        record_stream: Optional[IO[str]] = None,
    ):
        self.engine = engine
        self.config = config or Config.from_env()
        self.blob_store = blob_store
        self.chat_transport = chat_transport
        self.paging_transport = paging_transport
        self.workspace_dir = workspace_dir
        self.record_stream = record_stream

    @classmethod
    def from_config(cls, config: Config, **kwargs) -> "TestRunner":
        """Build a runner with the transports the configuration enables."""
        blob_store = None
        if config.screenshots_enabled and config.blob_base_url and config.blob_signing_key:
            blob_store = HttpBlobStore(
                config.blob_base_url,
                config.screenshot_bucket,
                config.blob_signing_key,
            )

        return cls(
            engine=SubprocessEngine(config.engine_command),
            config=config,
            blob_store=blob_store,
            chat_transport=(
                SlackTransport(config.slack_bot_token) if config.slack_bot_token else None
            ),
            paging_transport=(
                PagerDutyTransport(config.pagerduty_routing_key)
                if config.pagerduty_routing_key
                else None
            ),
            **kwargs,
        )

    async def run_tests(self, run_config: RunConfiguration) -> RunReport:
        """
        Run every test file of run_config, retrying failed attempts.

        Returns:
            The run report

        Raises:
            WorkspaceError: if the test sources could not be staged
            ExecutionError: if the engine could not run; reports are still
                written before it propagates
        """
        logger = get_logger(
            __name__, run_id=run_config.run_id, execution_id=run_config.execution_id
        )
        formatter = ResultFormatter(logger=logger)
        workspace = RunWorkspace(run_config.run_id, base_dir=self.workspace_dir)
        files = list(run_config.test_files)
        start_time = time.time()

        logger.info(
            f"Starting run with {len(files)} test files",
            extra={
                "metadata": {
                    "test_files": files,
                    "max_retries": run_config.max_retries,
                }
            },
        )

        try:
            workspace.create()
            workspace.write_suites(run_config.test_files)

            async def attempt() -> ExecutionResult:
                adapter = EngineAdapter(
                    self.engine,
                    workspace,
                    artifact_reporter=self._artifact_reporter(run_config.run_id),
                    timeout=self.config.engine_timeout,
                )
                return await adapter.execute(files, run_config.variables)

            try:
                aggregate = await run_with_retry(
                    attempt, run_config.max_retries, logger=logger
                )
            except ExecutionError as e:
                aggregate = AggregateRunResult.from_execution_error(
                    run_config, e, retry_count=e.retry_count or 0
                )
                self._publish(formatter, aggregate, run_config, logger)
                log_performance(
                    logger, "run", time.time() - start_time, success=False, error=str(e)
                )
                raise

            report = self._publish(formatter, aggregate, run_config, logger)
            await self._alert(aggregate, run_config, logger)

            log_performance(
                logger,
                "run",
                time.time() - start_time,
                success=report.passed,
                retry_count=report.retry_count,
                failed=report.num_failed,
            )
            return report
        finally:
            workspace.cleanup()

    def _artifact_reporter(self, run_id: str) -> Optional[ArtifactReporter]:
        if self.blob_store is None:
            return None
        return ArtifactReporter(
            self.blob_store,
            self.config.screenshot_bucket,
            url_expiry_seconds=self.config.url_expiry_seconds,
            filename=self.config.screenshot_filename,
            run_id=run_id,
        )

    def _publish(
        self,
        formatter: ResultFormatter,
        aggregate: AggregateRunResult,
        run_config: RunConfiguration,
        logger,
    ) -> RunReport:
        """Emit log records and write the JUnit report."""
        formatter.emit_records(formatter.format(aggregate, run_config), self.record_stream)
        junit_xml = formatter.to_junit_xml(aggregate)

        junit_path = None
        if self.config.output_dir is not None:
            try:
                junit_path = formatter.write_junit_report(
                    junit_xml, self.config.output_dir, run_config.execution_id
                )
            except ReportWriteError as e:
                logger.error(str(e), extra={"metadata": e.to_dict()})

        return formatter.build_run_report(aggregate, run_config, junit_xml, junit_path)

    async def _alert(
        self,
        aggregate: AggregateRunResult,
        run_config: RunConfiguration,
        logger,
    ) -> None:
        dispatcher = AlertDispatcher(
            chat_transport=self.chat_transport,
            paging_transport=self.paging_transport,
            default_channel=self.config.slack_default_channel,
            run_id=run_config.run_id,
            execution_id=run_config.execution_id,
        )
        try:
            outcomes = await dispatcher.alert_on_result(
                run_config.test_files, aggregate, run_config.variables
            )
        except Exception as e:
            logger.error(f"Alerting failed: {e}", exc_info=True)
            return

        failed = [o.test_file for o in outcomes if not o.delivered]
        if failed:
            logger.warning(
                f"Alert delivery failed for {len(failed)} test files",
                extra={"metadata": {"test_files": failed}},
            )
