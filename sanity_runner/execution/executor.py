"""
Execution engine adapter.

Translates a run into a call against the external test-execution engine and
normalizes the engine's Jest-style JSON output into the canonical
ExecutionResult.
"""

import asyncio
import json
import os
import shlex
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from ..core.exceptions import ExecutionError
from ..core.logging_config import get_logger, log_performance
from ..core.workspace import RunWorkspace
from .artifacts import ArtifactReporter
from .models import CaseStatus, ExecutionResult, TestCaseResult, TestFileResult


class EngineRunConfig(BaseModel):
    """Configuration handed to the engine for a single attempt."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    working_dir: Path = Field(..., description="Directory the engine runs in")
    test_paths: List[Path] = Field(..., description="Test files, in declaration order")
    variables: Dict[str, str] = Field(default_factory=dict)
    artifacts_dir: Path = Field(..., description="Where the engine writes screenshots")
    timeout: int = Field(600, gt=0, description="Engine timeout in seconds")


class ExecutionEngine(ABC):
    """The external test-execution engine."""

    @abstractmethod
    async def run(self, config: EngineRunConfig) -> Dict[str, Any]:
        """
        Run the configured tests and return the engine's aggregated result.

        Raises:
            ExecutionError: if the engine could not run
        """


class SubprocessEngine(ExecutionEngine):
    """
    Runs the engine as a child process and reads its JSON report from stdout.

    Variables are exposed to the tests as ``SANITY_VAR_<NAME>`` environment
    variables and as a JSON document in ``SANITY_TEST_VARIABLES``.
    """

    def __init__(self, command: str):
        self.command = command
        self.logger = get_logger(__name__)

    def build_environment(self, config: EngineRunConfig) -> Dict[str, str]:
        env = dict(os.environ)
        for name, value in config.variables.items():
            env[f"SANITY_VAR_{name}"] = value
        env["SANITY_TEST_VARIABLES"] = json.dumps(config.variables, sort_keys=True)
        env["SANITY_ARTIFACTS_DIR"] = str(config.artifacts_dir)
        return env

    def build_args(self, config: EngineRunConfig) -> List[str]:
        return shlex.split(self.command) + [str(path) for path in config.test_paths]

    async def run(self, config: EngineRunConfig) -> Dict[str, Any]:
        args = self.build_args(config)
        self.logger.debug(f"Starting engine: {' '.join(args)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                cwd=str(config.working_dir),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self.build_environment(config),
            )
        except OSError as e:
            raise ExecutionError(f"Failed to start execution engine: {e}")

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=config.timeout
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise ExecutionError(
                f"Execution engine timed out after {config.timeout}s",
                exit_code=process.returncode,
            )

        # A failing test run still exits non-zero with a valid report
        stderr_text = stderr.decode("utf-8", errors="replace")
        try:
            payload = json.loads(stdout.decode("utf-8", errors="replace"))
        except json.JSONDecodeError:
            raise ExecutionError(
                "Execution engine returned malformed output",
                exit_code=process.returncode,
                stderr=stderr_text[-2000:],
            )

        if not isinstance(payload, dict):
            raise ExecutionError(
                "Execution engine returned malformed output",
                exit_code=process.returncode,
                stderr=stderr_text[-2000:],
            )
        return payload


class EngineAdapter:
    """
    Calls the engine for one attempt and normalizes what it returns.

    The engine configuration is rebuilt on every call, so nothing carries
    over between attempts.
    """

    def __init__(
        self,
        engine: ExecutionEngine,
        workspace: RunWorkspace,
        artifact_reporter: Optional[ArtifactReporter] = None,
        timeout: int = 600,
    ):
        self.engine = engine
        self.workspace = workspace
        self.artifact_reporter = artifact_reporter
        self.timeout = timeout
        self.logger = get_logger(__name__, run_id=workspace.run_id)

    def build_config(
        self, files: Sequence[str], variables: Dict[str, str]
    ) -> EngineRunConfig:
        return EngineRunConfig(
            working_dir=self.workspace.root,
            test_paths=[self.workspace.tests_dir / name for name in files],
            variables=dict(variables),
            artifacts_dir=self.workspace.artifacts_dir,
            timeout=self.timeout,
        )

    async def execute(
        self, files: Sequence[str], variables: Dict[str, str]
    ) -> ExecutionResult:
        """
        Run the given test files once.

        Raises:
            ExecutionError: if the engine could not run or its output is malformed
        """
        config = self.build_config(files, variables)
        start_time = time.time()

        raw = await self.engine.run(config)
        result = await self.normalize(raw, list(files), config)

        log_performance(
            self.logger,
            "engine_attempt",
            time.time() - start_time,
            success=result.success,
            failed=result.num_failed_tests,
        )
        return result

    async def normalize(
        self,
        raw: Any,
        files: List[str],
        config: EngineRunConfig,
    ) -> ExecutionResult:
        """Convert engine output to an ExecutionResult."""
        if not isinstance(raw, dict) or not isinstance(raw.get("testResults"), list):
            raise ExecutionError("Execution engine returned malformed output: missing testResults")

        results: Dict[str, TestFileResult] = {}
        artifacts: Dict[str, str] = {}

        for suite in raw["testResults"]:
            if not isinstance(suite, dict):
                raise ExecutionError("Execution engine returned malformed output: bad suite entry")

            file_name = self._declared_name(suite.get("testFilePath"), files)
            cases = [self._normalize_case(case) for case in suite.get("testResults") or []]

            if self.artifact_reporter is not None:
                cases, published = await self.artifact_reporter.collect(
                    cases, config.artifacts_dir
                )
                artifacts.update(published)

            perf = suite.get("perfStats") or {}
            start, end = _optional_int(perf.get("start")), _optional_int(perf.get("end"))

            results[file_name] = TestFileResult(
                file_name=file_name,
                cases=tuple(cases),
                num_pending=int(suite.get("numPendingTests") or 0),
                start_time=start,
                end_time=end,
                time=(end - start) / 1000 if start is not None and end is not None else None,
                error=self._suite_error(suite),
            )

        missing = [name for name in files if name not in results]
        for name in missing:
            self.logger.warning(f"No results reported for {name}")
            results[name] = TestFileResult(
                file_name=name, error=f"No results reported for {name}"
            )

        return ExecutionResult(
            success=bool(raw.get("success", False)) and not missing,
            files=results,
            artifacts=artifacts,
        )

    def _declared_name(self, test_file_path: Optional[str], files: List[str]) -> str:
        if not test_file_path:
            raise ExecutionError("Execution engine returned malformed output: suite without testFilePath")

        path = Path(test_file_path)
        try:
            relative = path.resolve().relative_to(self.workspace.tests_dir.resolve())
            return relative.as_posix()
        except ValueError:
            pass

        if path.name in files:
            return path.name
        return test_file_path

    @staticmethod
    def _normalize_case(case: Dict[str, Any]) -> TestCaseResult:
        if not isinstance(case, dict):
            raise ExecutionError("Execution engine returned malformed output: bad test case entry")
        title = case.get("title") or case.get("fullName") or "unnamed test"
        duration = case.get("duration")
        return TestCaseResult(
            title=title,
            full_name=case.get("fullName") or title,
            status=CaseStatus.from_engine(case.get("status")),
            duration=duration / 1000 if isinstance(duration, (int, float)) else None,
            failure_messages=tuple(str(m) for m in case.get("failureMessages") or []),
        )

    @staticmethod
    def _suite_error(suite: Dict[str, Any]) -> Optional[str]:
        exec_error = suite.get("testExecError")
        if exec_error:
            if isinstance(exec_error, dict):
                return str(exec_error.get("message") or exec_error)
            return str(exec_error)
        return None


def _optional_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)
