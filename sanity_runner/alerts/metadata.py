"""
Docblock metadata parsing.

Test files declare alert metadata in a leading block comment::

    /**
     * @Description Checkout flow for guest users
     * @Runbook https://wiki.example.com/runbooks/checkout
     */

Pragma values may continue on the following lines; continuation lines are
joined with a single space.
"""

import re
from typing import Dict

from .models import TestMetadata


_DOCBLOCK = re.compile(r"^\s*(/\*\*?(?:.|\r?\n)*?\*/)")
_PRAGMA = re.compile(r"^@(\S+)\s*(.*)$")


def extract_docblock(source: str) -> str:
    """Return the leading block comment of a source file, or an empty string."""
    match = _DOCBLOCK.match(source)
    return match.group(1) if match else ""


def parse_pragmas(docblock: str) -> Dict[str, str]:
    """Parse ``@key value`` pragmas. A repeated key keeps its last value."""
    if not docblock:
        return {}

    body = docblock.strip()
    body = re.sub(r"^/\*\*?", "", body)
    body = re.sub(r"\*/$", "", body)

    pragmas: Dict[str, str] = {}
    current = None

    for raw_line in body.splitlines():
        line = re.sub(r"^\s*\*?\s?", "", raw_line).strip()
        if not line:
            current = None
            continue

        match = _PRAGMA.match(line)
        if match:
            current = match.group(1)
            pragmas[current] = match.group(2).strip()
        elif current is not None:
            pragmas[current] = f"{pragmas[current]} {line}".strip()

    return pragmas


def parse_test_metadata(source: str) -> TestMetadata:
    pragmas = parse_pragmas(extract_docblock(source))
    return TestMetadata(
        description=pragmas.get("Description") or None,
        runbook=pragmas.get("Runbook") or None,
        pragmas=pragmas,
    )
