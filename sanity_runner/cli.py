"""
Main CLI interface for Sanity Runner.

Runs a directory of test files once with retries, and shows the effective
configuration. Log records are written to stdout; progress goes to stderr.
"""

import argparse
import asyncio
import json
import sys
import uuid
from pathlib import Path
from typing import Dict, List, Optional

import pydantic

from .core.config import Config
from .core.exceptions import SanityRunnerError, ValidationError
from .core.logging_config import setup_logging
from .execution.models import RunConfiguration
from .runner import TestRunner


DEFAULT_INCLUDE = "*.test.js"


def _status(message: str) -> None:
    print(message, file=sys.stderr)


def parse_variables(values: Optional[List[str]]) -> Dict[str, str]:
    """Parse ``KEY=VALUE`` pairs. Later pairs override earlier ones."""
    variables: Dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ValidationError(
                f"Invalid variable '{item}', expected KEY=VALUE",
                validation_type="variables",
                violations=[item],
            )
        variables[key.strip()] = value
    return variables


def collect_test_files(test_dir: Path, include: str = DEFAULT_INCLUDE) -> Dict[str, str]:
    """Read matching test files, keyed by their path relative to test_dir."""
    test_dir = Path(test_dir)
    if not test_dir.is_dir():
        raise ValidationError(
            f"Test directory not found: {test_dir}",
            validation_type="test_dir",
        )

    test_files = {}
    for path in sorted(test_dir.rglob(include)):
        if path.is_file():
            name = path.relative_to(test_dir).as_posix()
            test_files[name] = path.read_text(encoding="utf-8")

    if not test_files:
        raise ValidationError(
            f"No test files matching '{include}' in {test_dir}",
            validation_type="test_dir",
        )
    return test_files


def load_config(args: argparse.Namespace) -> Config:
    config = Config.from_file(Path(args.config)) if args.config else Config.from_env()
    if getattr(args, "output_dir", None):
        config.output_dir = Path(args.output_dir)
    if getattr(args, "verbose", False):
        config.log_level = "DEBUG"
    config.validate()
    return config


def build_run_configuration(args: argparse.Namespace) -> RunConfiguration:
    """Build the run configuration, reporting invalid fields as a ValidationError."""
    test_files = collect_test_files(Path(args.test_dir), args.include)
    variables = parse_variables(args.var)
    try:
        return RunConfiguration(
            run_id=uuid.uuid4().hex,
            execution_id=args.execution_id or uuid.uuid4().hex,
            test_files=test_files,
            variables=variables,
            max_retries=args.retry_count,
        )
    except pydantic.ValidationError as e:
        violations = [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors()
        ]
        raise ValidationError(
            f"Invalid run configuration: {'; '.join(violations)}",
            validation_type="run_configuration",
            violations=violations,
        ) from e


def cmd_run(args: argparse.Namespace) -> int:
    """Run a directory of test files."""
    try:
        config = load_config(args)
        run_config = build_run_configuration(args)
        setup_logging(config, run_config.run_id)

        _status(f"🚀 Running {len(run_config.test_files)} test files...")
        report = asyncio.run(TestRunner.from_config(config).run_tests(run_config))

        if report.passed:
            _status(f"✅ All tests passed (retries: {report.retry_count})")
        else:
            _status(
                f"❌ {report.num_failed} failed, {report.num_skipped} skipped "
                f"(retries: {report.retry_count})"
            )
            for error in report.errors:
                _status(f"   • {error.file}: {error.message}")

        if report.junit_path:
            _status(f"📄 JUnit report: {report.junit_path}")
        return report.exit_code

    except SanityRunnerError as e:
        _status(f"❌ Sanity Runner error: {e}")
        if args.verbose:
            _status(json.dumps(e.to_dict(), indent=2, default=str))
        return 2


def cmd_config(args: argparse.Namespace) -> int:
    """Show the effective configuration."""
    try:
        config = load_config(args)
    except ValidationError as e:
        _status(f"❌ {e}")
        for violation in e.violations:
            _status(f"   • {violation}")
        return 2

    print(json.dumps(config.to_dict(), indent=2))
    return 0


def create_main_parser() -> argparse.ArgumentParser:
    """Create main CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="sanity-runner",
        description="Sanity Runner - run end-to-end tests with retries, reports and alerts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  sanity-runner run --test-dir tests/sanity
  sanity-runner run --test-dir tests/sanity --var SLACK_ALERT=true --retry-count 2
  sanity-runner config --config sanity-runner.yaml
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Run test files")
    run_parser.add_argument(
        "--test-dir", required=True, help="Directory containing the test files"
    )
    run_parser.add_argument(
        "--include",
        default=DEFAULT_INCLUDE,
        help=f"Glob selecting test files (default: {DEFAULT_INCLUDE})",
    )
    run_parser.add_argument(
        "--var",
        action="append",
        metavar="KEY=VALUE",
        help="Run variable, may be repeated",
    )
    run_parser.add_argument(
        "--retry-count",
        type=int,
        default=0,
        help="Retries allowed after the first attempt (default: 0)",
    )
    run_parser.add_argument("--output-dir", help="Directory for the JUnit report")
    run_parser.add_argument("--execution-id", help="Execution identifier")
    run_parser.add_argument("--config", help="Configuration file (JSON or YAML)")
    run_parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose output"
    )
    run_parser.set_defaults(func=cmd_run)

    config_parser = subparsers.add_parser(
        "config", help="Show the effective configuration"
    )
    config_parser.add_argument("--config", help="Configuration file (JSON or YAML)")
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_main_parser()
    parsed_args = parser.parse_args(args)

    if not hasattr(parsed_args, "func"):
        parser.print_help()
        return 1

    if getattr(parsed_args, "retry_count", 0) < 0:
        parser.error("--retry-count must be >= 0")

    return parsed_args.func(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
