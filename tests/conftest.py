"""
Pytest configuration and shared fixtures for Sanity Runner tests.

Provides a scripted execution engine, Jest-style payload builders and
common configuration for all test modules.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional
from unittest.mock import patch

import pytest

from sanity_runner.core.config import Config
from sanity_runner.core.workspace import RunWorkspace
from sanity_runner.execution.executor import EngineRunConfig, ExecutionEngine
from sanity_runner.execution.models import RunConfiguration


LOGIN_SOURCE = """/**
 * @Description Login flow for existing users
 * @Runbook https://wiki.example.com/runbooks/login
 */
test('user can log in', async () => {});
"""

CHECKOUT_SOURCE = """/**
 * @Description Checkout flow for guest users
 */
test('guest can check out', async () => {});
"""


def make_case(
    title: str,
    status: str = "passed",
    duration: Optional[int] = 1200,
    failure_messages: Optional[List[str]] = None,
    full_name: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "title": title,
        "fullName": full_name or title,
        "status": status,
        "duration": duration,
        "failureMessages": failure_messages or [],
    }


def make_suite(
    path: str,
    cases: List[Dict[str, Any]],
    pending: int = 0,
    start: Optional[int] = 1700000000000,
    end: Optional[int] = 1700000002500,
    exec_error: Optional[str] = None,
) -> Dict[str, Any]:
    suite = {
        "testFilePath": path,
        "numPendingTests": pending,
        "perfStats": {"start": start, "end": end},
        "testResults": cases,
    }
    if exec_error:
        suite["testExecError"] = {"message": exec_error}
    return suite


class ScriptedEngine(ExecutionEngine):
    """
    Engine returning one scripted outcome per attempt.

    An outcome is either a callable taking the EngineRunConfig and returning
    the payload, a payload dict, or an exception to raise.
    """

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls: List[EngineRunConfig] = []
        self.workspace_snapshots: List[Dict[str, str]] = []

    async def run(self, config: EngineRunConfig) -> Dict[str, Any]:
        self.calls.append(config)
        self.workspace_snapshots.append(
            {path.name: path.read_text(encoding="utf-8") for path in config.test_paths}
        )
        outcome = self.outcomes[min(len(self.calls), len(self.outcomes)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            return outcome(config)
        return outcome


@pytest.fixture(autouse=True)
def clean_environment():
    """Keep host CI and credentials out of configuration defaults."""
    with patch.dict(os.environ):
        for key in list(os.environ):
            if (
                key == "CI"
                or key.startswith("SANITY_RUNNER_")
                or key in ("SLACK_BOT_TOKEN", "PAGERDUTY_ROUTING_KEY")
            ):
                del os.environ[key]
        yield


@pytest.fixture
def config(tmp_path):
    """Configuration writing reports into a temporary directory."""
    return Config(output_dir=tmp_path / "reports")


@pytest.fixture
def workspace(tmp_path):
    workspace = RunWorkspace("run-1234", base_dir=tmp_path)
    workspace.create()
    yield workspace
    workspace.cleanup()


@pytest.fixture
def run_config():
    return RunConfiguration(
        run_id="run-1234",
        execution_id="exec-5678",
        test_files={
            "login.test.js": LOGIN_SOURCE,
            "checkout.test.js": CHECKOUT_SOURCE,
        },
        variables={"ENV": "staging"},
        max_retries=2,
    )


def suite_path(config: EngineRunConfig, name: str) -> str:
    for path in config.test_paths:
        if path.name == name:
            return str(path)
    return str(Path(config.working_dir) / "tests" / name)
