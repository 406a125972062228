"""
Result formatting and report generation.

Turns the retry-resolved aggregate into per-test-case log records and a
JUnit XML report. Apart from the explicit write helpers this module only
builds structures.
"""

import json
import logging
import re
import sys
from pathlib import Path
from typing import IO, List, Optional

from jinja2 import Environment

from ..core.exceptions import ReportWriteError
from ..execution.models import AggregateRunResult, RunConfiguration, derive_test_name
from .models import JUnitCase, JUnitOutcome, RunError, RunReport, TestCaseLogRecord


SUITE_NAME = "Sanity Runner"

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*[A-Za-z]")
_INVALID_XML_CHARS = re.compile(
    "[^\t\n\r\x20-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]"
)

JUNIT_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<testsuites name="{{ suite_name }}" tests="{{ cases|length }}" failures="{{ failures }}" errors="{{ errors }}" skipped="{{ skipped }}">
  <testsuite name="{{ suite_name }}" tests="{{ cases|length }}" failures="{{ failures }}" errors="{{ errors }}" skipped="{{ skipped }}">
{% for case in cases %}
{% if case.outcome.value == "passed" %}
    <testcase classname="{{ case.classname }}" name="{{ case.name }}"{% if case.time is not none %} time="{{ case.time }}"{% endif %}/>
{% else %}
    <testcase classname="{{ case.classname }}" name="{{ case.name }}"{% if case.time is not none %} time="{{ case.time }}"{% endif %}>
{% if case.outcome.value == "skipped" %}
      <skipped/>
{% elif case.outcome.value == "error" %}
      <error message="Error running test." type="error">{{ case.body|xml_text }}</error>
{% else %}
      <failure type="failure">{{ case.body|xml_text }}</failure>
{% endif %}
    </testcase>
{% endif %}
{% endfor %}
  </testsuite>
</testsuites>
"""


def xml_text(value: Optional[str]) -> str:
    """Strip terminal colour codes and characters XML 1.0 cannot carry."""
    if value is None:
        return ""
    return _INVALID_XML_CHARS.sub("", _ANSI_ESCAPE.sub("", value))


class ResultFormatter:
    """
    Builds log records and JUnit reports from an aggregate.

    Output is deterministic for a given aggregate: records follow file then
    case order, and the JUnit document lists test files in the same order.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.jinja_env = Environment(
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        self.jinja_env.filters["xml_text"] = xml_text
        self.junit_template = self.jinja_env.from_string(JUNIT_TEMPLATE)

    def format(
        self,
        aggregate: AggregateRunResult,
        config: RunConfiguration,
    ) -> List[TestCaseLogRecord]:
        """One record per test case, in file then case order."""
        records = []
        for file_result in aggregate.files.values():
            for case in file_result.cases:
                status = "skipped" if file_result.skipped else case.status.value
                records.append(
                    TestCaseLogRecord(
                        variables=dict(config.variables),
                        retry_count=aggregate.retry_count,
                        duration=case.duration,
                        status=status,
                        end_time=file_result.end_time,
                        start_time=file_result.start_time,
                        test_name=file_result.test_name,
                        run_id=config.run_id,
                        execution_id=config.execution_id,
                    )
                )
        return records

    def junit_cases(self, aggregate: AggregateRunResult) -> List[JUnitCase]:
        """Classify every test file for the JUnit report."""
        cases = []
        for name in aggregate.file_names():
            file_result = aggregate.files.get(name)
            classname = derive_test_name(name)
            time = file_result.time if file_result else None
            error = aggregate.file_error(name)

            if file_result is not None and file_result.skipped:
                outcome, body = JUnitOutcome.SKIPPED, None
            elif error is None and file_result is not None and file_result.passed:
                outcome, body = JUnitOutcome.PASSED, None
            elif error is not None:
                outcome, body = JUnitOutcome.ERROR, error
            else:
                messages = file_result.failure_messages()
                outcome = JUnitOutcome.FAILURE
                body = "\n".join(messages) if messages else "Unknown failure."

            cases.append(
                JUnitCase(
                    name=name,
                    classname=classname,
                    outcome=outcome,
                    time=time,
                    body=body,
                )
            )
        return cases

    def to_junit_xml(self, aggregate: AggregateRunResult) -> str:
        """Render the JUnit XML document for a run."""
        cases = self.junit_cases(aggregate)
        return self.junit_template.render(
            suite_name=SUITE_NAME,
            cases=cases,
            failures=sum(1 for c in cases if c.outcome == JUnitOutcome.FAILURE),
            errors=sum(1 for c in cases if c.outcome == JUnitOutcome.ERROR),
            skipped=sum(1 for c in cases if c.outcome == JUnitOutcome.SKIPPED),
        )

    def write_junit_report(
        self,
        junit_xml: str,
        output_dir: Path,
        execution_id: str,
    ) -> Path:
        """Write ``<execution_id>.junit.xml`` into output_dir."""
        output_path = Path(output_dir) / f"{execution_id}.junit.xml"
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, "w", encoding="utf-8") as f:
                f.write(junit_xml)
        except OSError as e:
            raise ReportWriteError(
                f"Failed to write JUnit report: {e}",
                file_path=str(output_path),
            )

        self.logger.info(f"Saved junit report to: {output_path}")
        return output_path

    def emit_records(
        self,
        records: List[TestCaseLogRecord],
        stream: Optional[IO[str]] = None,
    ) -> None:
        """Write records as newline-delimited JSON."""
        stream = stream or sys.stdout
        for record in records:
            stream.write(json.dumps(record.to_log_dict()) + "\n")
        stream.flush()

    def build_run_report(
        self,
        aggregate: AggregateRunResult,
        config: RunConfiguration,
        junit_xml: str,
        junit_path: Optional[Path] = None,
    ) -> RunReport:
        errors = [
            RunError(file=name, message=aggregate.file_error(name))
            for name in aggregate.file_names()
            if aggregate.file_error(name) is not None
        ]
        return RunReport(
            run_id=config.run_id,
            execution_id=config.execution_id,
            passed=aggregate.success,
            retry_count=aggregate.retry_count,
            num_failed=aggregate.num_failed,
            num_skipped=aggregate.num_skipped,
            screenshots=dict(aggregate.artifacts),
            errors=errors,
            junit_xml=junit_xml,
            junit_path=str(junit_path) if junit_path else None,
        )
