"""
Failure artifact publishing.

Screenshots taken for failed test cases are uploaded to blob storage and
republished as time-limited signed links. Local copies are always removed.
"""

import hashlib
import hmac
import time
import uuid
from abc import ABC, abstractmethod
from contextlib import suppress
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional, Sequence, Tuple, Union
from urllib.parse import quote, urlencode

import aiohttp

from ..core.exceptions import ArtifactUploadError
from ..core.logging_config import get_logger
from .models import CaseStatus, TestCaseResult


class BlobStore(ABC):
    """Object storage boundary."""

    @abstractmethod
    async def put(self, key: str, data: bytes) -> None:
        """Store bytes under a key."""

    @abstractmethod
    async def get_signed_url(self, key: str, ttl_seconds: int) -> str:
        """Return a URL granting read access to the key for ttl_seconds."""


class HttpBlobStore(BlobStore):
    """
    Blob store speaking plain HTTP PUT, with HMAC-signed download links.

    Objects live at ``<base_url>/<bucket>/<key>``. Download links carry an
    ``expires`` epoch and a SHA-256 HMAC over method, path and expiry, which
    the storage front end verifies.
    """

    def __init__(
        self,
        base_url: str,
        bucket: str,
        signing_key: str,
        timeout: int = 30,
    ):
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self.signing_key = signing_key
        self.timeout = timeout

    def object_path(self, key: str) -> str:
        return f"/{quote(self.bucket)}/{quote(key)}"

    def object_url(self, key: str) -> str:
        return f"{self.base_url}{self.object_path(key)}"

    def sign(self, key: str, expires: int) -> str:
        payload = f"GET\n{self.object_path(key)}\n{expires}"
        return hmac.new(
            self.signing_key.encode("utf-8"),
            payload.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    async def put(self, key: str, data: bytes) -> None:
        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as session:
                async with session.put(
                    self.object_url(key),
                    data=data,
                    headers={"Content-Type": "image/png"},
                ) as response:
                    if response.status >= 300:
                        raise ArtifactUploadError(
                            f"Upload failed with status {response.status}",
                            key=key,
                            status=response.status,
                        )
        except aiohttp.ClientError as e:
            raise ArtifactUploadError(f"Upload failed: {e}", key=key)

    async def get_signed_url(self, key: str, ttl_seconds: int) -> str:
        expires = int(time.time()) + ttl_seconds
        query = urlencode({"expires": expires, "signature": self.sign(key, expires)})
        return f"{self.object_url(key)}?{query}"


class ArtifactReporter:
    """
    Publishes failure screenshots while results are collected.

    Screenshots are expected at ``<output_dir>/<case full name>/<filename>``.
    """

    def __init__(
        self,
        blob_store: Optional[BlobStore],
        bucket: Optional[str],
        url_expiry_seconds: int = 7 * 24 * 60 * 60,
        filename: str = "screenshot.png",
        run_id: Optional[str] = None,
    ):
        self.blob_store = blob_store
        self.bucket = bucket
        self.url_expiry_seconds = url_expiry_seconds
        self.filename = filename
        self.logger = get_logger(__name__, run_id=run_id or "-")

    @property
    def enabled(self) -> bool:
        return self.blob_store is not None and bool(self.bucket)

    def relative_path(self, case: TestCaseResult) -> str:
        return str(PurePosixPath(case.full_name) / self.filename)

    async def capture(self, case_key: str, local_path: Union[str, Path]) -> Optional[str]:
        """
        Upload one artifact and return its signed URL.

        Upload failures degrade to None. The local file is removed whatever
        the outcome.
        """
        local_path = Path(local_path)
        object_key = f"{uuid.uuid4()}.png"

        try:
            if not self.enabled:
                return None
            data = local_path.read_bytes()
            await self.blob_store.put(object_key, data)
            url = await self.blob_store.get_signed_url(object_key, self.url_expiry_seconds)
            self.logger.info(
                f"Uploaded artifact for {case_key}",
                extra={"metadata": {"case_key": case_key, "object_key": object_key}},
            )
            return url
        except Exception as e:
            self.logger.warning(
                f"Artifact unavailable for {case_key}: {e}",
                extra={"metadata": {"case_key": case_key, "error": str(e)}},
            )
            return None
        finally:
            self._discard(local_path)

    async def collect(
        self,
        cases: Sequence[TestCaseResult],
        output_dir: Path,
    ) -> Tuple[List[TestCaseResult], Dict[str, str]]:
        """
        Publish screenshots for the failed cases of one test file.

        Returns:
            The cases, with a pointer appended to the failure messages of
            every case whose screenshot was published, and the published
            links keyed by relative path
        """
        collected: List[TestCaseResult] = []
        artifacts: Dict[str, str] = {}

        for case in cases:
            relative_path = self.relative_path(case)
            local_path = Path(output_dir) / relative_path

            if case.status == CaseStatus.FAILED and self.enabled:
                url = await self.capture(relative_path, local_path)
                if url is not None:
                    artifacts[relative_path] = url
                    case = case.model_copy(
                        update={
                            "failure_messages": case.failure_messages
                            + (f"Screenshot available at {relative_path}",)
                        }
                    )
            else:
                self._discard(local_path)

            collected.append(case)

        return collected, artifacts

    def _discard(self, path: Path) -> None:
        with suppress(OSError):
            path.unlink()
