"""Shared fixtures: in-memory workspace, fake transcoder and a wired test client."""
from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path
from typing import Callable, Dict, List, Optional

import httpx
import pytest

_TEST_ROOT = Path(tempfile.mkdtemp(prefix="audiobook-service-tests-"))
# Settings are read once at import time of the application module.
os.environ.setdefault("LOG_DIR", str(_TEST_ROOT / "logs"))
os.environ.setdefault("WORK_DIR", str(_TEST_ROOT / "work"))

from fastapi.testclient import TestClient  # noqa: E402

from audiobook_service.dependencies import (  # noqa: E402
    get_concatenation_service,
    get_document_processor,
)
from audiobook_service.documents import DocumentProcessor, DocumentProcessorConfig  # noqa: E402
from audiobook_service.jobs import (  # noqa: E402
    ConcatenationService,
    Failed,
    InMemoryStorage,
    SegmentDownloader,
    Succeeded,
)
from audiobook_service.main import app  # noqa: E402

_MANIFEST_LINE_RE = re.compile(r"^file '(.*)'$")


def manifest_names(manifest: str) -> List[str]:
    """File names listed in a concat manifest, in order."""

    names = []
    for line in manifest.splitlines():
        match = _MANIFEST_LINE_RE.match(line)
        assert match, f"unexpected manifest line: {line!r}"
        names.append(Path(match.group(1)).name)
    return names


class FakeInvoker:
    """Stands in for ffmpeg by concatenating segment bytes through the storage."""

    def __init__(self, storage: InMemoryStorage) -> None:
        self.storage = storage
        self.manifests: List[str] = []
        self.events: List[str] = []
        self.failure: Optional[str] = None
        self.timed_out = False

    async def invoke(self, manifest_path, output_path, observer=None):
        manifest = self.storage.read(manifest_path).decode("utf-8")
        self.manifests.append(manifest)
        if observer is not None:
            observer.on_start(f"fake-ffmpeg -i {manifest_path} {output_path}")
            observer.on_progress({"out_time_ms": "0", "progress": "end"})
        self.events.append("invoke")

        if self.failure is not None:
            return Failed(self.failure, timed_out=self.timed_out)

        body = b"".join(
            self.storage.read(Path(_MANIFEST_LINE_RE.match(line).group(1)))
            for line in manifest.splitlines()
        )
        self.storage.write(output_path, body)
        return Succeeded(output_path)


@pytest.fixture()
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture()
def invoker(storage: InMemoryStorage) -> FakeInvoker:
    return FakeInvoker(storage)


@pytest.fixture()
def url_responses() -> Dict[str, httpx.Response]:
    """Map of URL to canned response served to the downloader; unknown URLs get a 404."""

    return {}


@pytest.fixture()
def downloader_factory(url_responses: Dict[str, httpx.Response]) -> Callable[[], SegmentDownloader]:
    def handler(request: httpx.Request) -> httpx.Response:
        return url_responses.get(str(request.url), httpx.Response(404))

    return lambda: SegmentDownloader(timeout=5, transport=httpx.MockTransport(handler))


@pytest.fixture()
def service(
    storage: InMemoryStorage,
    invoker: FakeInvoker,
    downloader_factory: Callable[[], SegmentDownloader],
) -> ConcatenationService:
    return ConcatenationService(storage=storage, invoker=invoker, downloader_factory=downloader_factory)


@pytest.fixture()
def client(service: ConcatenationService):
    app.dependency_overrides[get_concatenation_service] = lambda: service
    app.dependency_overrides[get_document_processor] = lambda: DocumentProcessor(
        DocumentProcessorConfig(max_chunk_size=200, min_document_chars=50)
    )
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
