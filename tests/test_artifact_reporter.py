"""
Unit tests for failure artifact publishing.

Tests screenshot upload for failed cases, degradation on upload errors,
local cleanup and signed link generation.
"""

import time
from unittest.mock import AsyncMock, Mock
from urllib.parse import parse_qs, urlparse

import pytest

from sanity_runner.core.exceptions import ArtifactUploadError
from sanity_runner.execution.artifacts import ArtifactReporter, BlobStore, HttpBlobStore
from sanity_runner.execution.models import CaseStatus, TestCaseResult


def case(full_name, status=CaseStatus.FAILED, messages=("boom",)):
    return TestCaseResult(
        title=full_name.split(" ")[-1],
        full_name=full_name,
        status=status,
        failure_messages=tuple(messages) if status == CaseStatus.FAILED else (),
    )


def write_screenshot(output_dir, full_name, filename="screenshot.png"):
    path = output_dir / full_name / filename
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\x89PNG fake")
    return path


@pytest.fixture
def blob_store():
    store = Mock(spec=BlobStore)
    store.put = AsyncMock(return_value=None)
    store.get_signed_url = AsyncMock(
        side_effect=lambda key, ttl: f"https://blobs.example.com/shots/{key}?ttl={ttl}"
    )
    return store


@pytest.fixture
def reporter(blob_store):
    return ArtifactReporter(blob_store, "shots", url_expiry_seconds=3600, run_id="run-1")


class TestArtifactReporter:
    """Test cases for ArtifactReporter."""

    @pytest.mark.asyncio
    async def test_failed_case_published(self, reporter, blob_store, tmp_path):
        local = write_screenshot(tmp_path, "checkout applies coupon")

        cases, artifacts = await reporter.collect([case("checkout applies coupon")], tmp_path)

        key, data = blob_store.put.await_args.args
        assert key.endswith(".png")
        assert data == b"\x89PNG fake"
        blob_store.get_signed_url.assert_awaited_once_with(key, 3600)

        assert artifacts == {
            "checkout applies coupon/screenshot.png": f"https://blobs.example.com/shots/{key}?ttl=3600"
        }
        assert cases[0].failure_messages == (
            "boom",
            "Screenshot available at checkout applies coupon/screenshot.png",
        )
        assert not local.exists()

    @pytest.mark.asyncio
    async def test_object_keys_are_unique(self, reporter, blob_store, tmp_path):
        write_screenshot(tmp_path, "a fails")
        write_screenshot(tmp_path, "b fails")

        await reporter.collect([case("a fails"), case("b fails")], tmp_path)

        keys = [c.args[0] for c in blob_store.put.await_args_list]
        assert len(set(keys)) == 2

    @pytest.mark.asyncio
    async def test_passed_case_screenshot_discarded(self, reporter, blob_store, tmp_path):
        local = write_screenshot(tmp_path, "login logs in")

        cases, artifacts = await reporter.collect(
            [case("login logs in", status=CaseStatus.PASSED)], tmp_path
        )

        blob_store.put.assert_not_awaited()
        assert artifacts == {}
        assert cases[0].failure_messages == ()
        assert not local.exists()

    @pytest.mark.asyncio
    async def test_upload_failure_degrades(self, reporter, blob_store, tmp_path):
        local = write_screenshot(tmp_path, "checkout applies coupon")
        blob_store.put = AsyncMock(side_effect=ArtifactUploadError("503", key="k"))

        cases, artifacts = await reporter.collect([case("checkout applies coupon")], tmp_path)

        assert artifacts == {}
        assert cases[0].failure_messages == ("boom",)
        assert not local.exists()

    @pytest.mark.asyncio
    async def test_missing_screenshot_is_skipped(self, reporter, blob_store, tmp_path):
        cases, artifacts = await reporter.collect([case("checkout applies coupon")], tmp_path)

        blob_store.put.assert_not_awaited()
        assert artifacts == {}
        assert cases[0].failure_messages == ("boom",)

    @pytest.mark.asyncio
    async def test_disabled_without_bucket(self, blob_store, tmp_path):
        reporter = ArtifactReporter(blob_store, None)
        local = write_screenshot(tmp_path, "checkout applies coupon")

        cases, artifacts = await reporter.collect([case("checkout applies coupon")], tmp_path)

        assert reporter.enabled is False
        blob_store.put.assert_not_awaited()
        assert artifacts == {}
        assert not local.exists()

    @pytest.mark.asyncio
    async def test_capture_returns_url(self, reporter, tmp_path):
        local = write_screenshot(tmp_path, "x")

        url = await reporter.capture("x/screenshot.png", local)

        assert url.startswith("https://blobs.example.com/shots/")
        assert not local.exists()

    def test_relative_path(self, reporter):
        assert reporter.relative_path(case("checkout applies coupon")) == (
            "checkout applies coupon/screenshot.png"
        )


class TestHttpBlobStore:
    """Test cases for HttpBlobStore signing."""

    @pytest.fixture
    def store(self):
        return HttpBlobStore("https://blobs.example.com/", "shots", "secret")

    def test_object_url(self, store):
        assert store.object_url("a b.png") == "https://blobs.example.com/shots/a%20b.png"

    @pytest.mark.asyncio
    async def test_signed_url_carries_signature(self, store):
        url = await store.get_signed_url("abc.png", 3600)

        parsed = urlparse(url)
        query = parse_qs(parsed.query)
        expires = int(query["expires"][0])
        signature = query["signature"][0]

        assert parsed.path == "/shots/abc.png"
        assert signature == store.sign("abc.png", expires)
        assert signature != store.sign("other.png", expires)
        assert expires > time.time()

    def test_signature_depends_on_signing_key(self):
        first = HttpBlobStore("https://blobs.example.com", "shots", "secret")
        second = HttpBlobStore("https://blobs.example.com", "shots", "other-secret")

        assert first.sign("abc.png", 100) != second.sign("abc.png", 100)
        assert first.sign("abc.png", 100) == first.sign("abc.png", 100)
