"""
Ephemeral run workspace.

Each run owns one temporary directory holding its test sources and the
artifact output directory. The directory is removed when the run ends.
"""

import shutil
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

from .exceptions import WorkspaceError
from .logging_config import get_logger


class RunWorkspace:
    """Temporary directory with the test files of a single run."""

    def __init__(self, run_id: str, base_dir: Optional[Path] = None):
        self.run_id = run_id
        self.base_dir = base_dir
        self.logger = get_logger(__name__, run_id=run_id)
        self._root: Optional[Path] = None

    @property
    def root(self) -> Path:
        if self._root is None:
            raise WorkspaceError(
                "Workspace has not been created", operation="access"
            )
        return self._root

    @property
    def tests_dir(self) -> Path:
        return self.root / "tests"

    @property
    def artifacts_dir(self) -> Path:
        return self.root / "artifacts"

    def create(self) -> Path:
        """Create the workspace directory tree."""
        try:
            self._root = Path(
                tempfile.mkdtemp(
                    prefix=f"sanity-runner-{self.run_id[:8]}-",
                    dir=str(self.base_dir) if self.base_dir else None,
                )
            )
            self.tests_dir.mkdir()
            self.artifacts_dir.mkdir()
        except OSError as e:
            raise WorkspaceError(
                f"Failed to create workspace: {e}",
                path=str(self.base_dir) if self.base_dir else None,
                operation="create",
            )

        self.logger.debug(f"Created workspace: {self._root}")
        return self._root

    def write_suites(self, test_files: Dict[str, str]) -> List[Path]:
        """
        Write the test sources into the workspace.

        Args:
            test_files: Mapping of file name to source text

        Returns:
            Paths of the written files, in declaration order
        """
        written = []
        for filename, source in test_files.items():
            target = (self.tests_dir / filename).resolve()
            if self.tests_dir.resolve() not in target.parents:
                raise WorkspaceError(
                    f"Test file escapes the workspace: {filename}",
                    path=filename,
                    operation="write",
                )
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(source, encoding="utf-8")
            except OSError as e:
                raise WorkspaceError(
                    f"Failed to write test file {filename}: {e}",
                    path=str(target),
                    operation="write",
                )
            written.append(target)

        self.logger.info(
            f"Wrote {len(written)} test files to workspace",
            extra={"metadata": {"test_files": list(test_files)}},
        )
        return written

    def cleanup(self) -> None:
        """Remove the workspace. Safe to call more than once."""
        if self._root is None:
            return
        shutil.rmtree(self._root, ignore_errors=True)
        self.logger.debug(f"Removed workspace: {self._root}")
        self._root = None
