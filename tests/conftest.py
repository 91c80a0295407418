from typing import Any, Dict, List, Optional

import pytest

from services.page_templates.batching import InsertionPolicy
from services.page_templates.exceptions import InvalidMediaReferenceError
from services.page_templates.host import HostCanvas, MediaUploader, PageSession
from services.page_templates.models import UploadResult


class RecordingSleep:
    """Stands in for asyncio.sleep; records delays on the shared timeline"""

    def __init__(self, timeline: List[tuple]):
        self.timeline = timeline
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        self.timeline.append(("sleep", seconds))


class FakeHostCanvas(HostCanvas):
    """In-memory host canvas that records every page creation and insertion"""

    def __init__(
        self,
        timeline: List[tuple],
        page: Any = None,
        fail_on: Optional[List[int]] = None,
        stale_ref_failures: int = 0,
        open_error: Optional[Exception] = None,
    ):
        self.timeline = timeline
        self.page = page
        self.fail_on = set(fail_on or [])
        self.stale_ref_failures = stale_ref_failures
        self.open_error = open_error
        self.created_pages: List[Optional[Dict[str, Any]]] = []
        self.attempts: List[Dict[str, Any]] = []
        self.inserted: List[Dict[str, Any]] = []

    async def open_current_page(self) -> PageSession:
        if self.open_error is not None:
            raise self.open_error
        return PageSession(page=self.page)

    async def create_page(self, background=None):
        self.created_pages.append(background)
        self.timeline.append(("create_page", background))
        return {"id": f"page_{len(self.created_pages)}"}

    async def insert_element(self, descriptor: Dict[str, Any]) -> None:
        index = len(self.attempts)
        self.attempts.append(descriptor)
        if index in self.fail_on:
            raise RuntimeError(f"Host rejected insertion {index}")
        if descriptor.get("type") in ("image", "video") and self.stale_ref_failures > 0:
            self.stale_ref_failures -= 1
            raise InvalidMediaReferenceError(f"Invalid image media reference: {descriptor.get('ref')}")
        self.inserted.append(descriptor)
        self.timeline.append(("insert", descriptor))


class FakeUploader(MediaUploader):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: List[Dict[str, Any]] = []

    async def upload(self, media_type: str, url: str, mime_type: str, **options: Any) -> UploadResult:
        self.calls.append({"media_type": media_type, "url": url, "mime_type": mime_type, **options})
        if self.fail:
            raise RuntimeError("Upload service unavailable")
        return UploadResult(ref=f"ref_{len(self.calls)}")


class FakeTextHandle:
    """Host text content exposing plaintext and formatted regions"""

    def __init__(self, plaintext: str, regions: Optional[List[Dict[str, Any]]] = None, regions_error: bool = False):
        self._plaintext = plaintext
        self._regions = regions if regions is not None else [{"text": plaintext, "formatting": {}}]
        self._regions_error = regions_error

    def read_plaintext(self) -> str:
        return self._plaintext

    def read_text_regions(self) -> List[Dict[str, Any]]:
        if self._regions_error:
            raise RuntimeError("regions unavailable")
        return self._regions


def host_text(plaintext: str, regions=None, **geometry) -> Dict[str, Any]:
    element = {"type": "text", "top": 10, "left": 20, "width": 300}
    element.update(geometry)
    element["text"] = FakeTextHandle(plaintext, regions)
    return element


def host_shape(color: str = "#112233", **geometry) -> Dict[str, Any]:
    element = {
        "type": "shape",
        "top": 0,
        "left": 0,
        "width": 100,
        "height": 50,
        "paths": [{"d": "M 0 0 L 100 50", "fill": {"color": color}}],
        "view_box": {"top": 0, "left": 0, "width": 100, "height": 50},
    }
    element.update(geometry)
    return element


def host_image_rect(ref: str = "M_abc", **geometry) -> Dict[str, Any]:
    element = {
        "type": "rect",
        "top": 5,
        "left": 5,
        "width": 200,
        "height": 120,
        "fill": {"type": "image", "media_container": {"ref": ref}},
    }
    element.update(geometry)
    return element


@pytest.fixture
def timeline() -> List[tuple]:
    return []


@pytest.fixture
def recording_sleep(timeline) -> RecordingSleep:
    return RecordingSleep(timeline)


@pytest.fixture
def host(timeline) -> FakeHostCanvas:
    return FakeHostCanvas(timeline)


@pytest.fixture
def uploader() -> FakeUploader:
    return FakeUploader()


@pytest.fixture
def policy() -> InsertionPolicy:
    return InsertionPolicy(
        batch_size=8,
        delay_between_elements=0.3,
        delay_between_batches=3.0,
        page_settle_delay=0.5,
    )
