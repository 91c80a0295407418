"""
Page generator.

Creates new pages from template configurations with token replacement.
Static elements are recreated exactly; dynamic elements are populated with
the supplied values. Generation is best-effort: the page is always created
and a failing element never stops the others.
"""

import asyncio
import os
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

from setup_logging_optimized import get_logger

from .batching import (
    CancellationToken,
    InsertionPolicy,
    SleepFn,
    call_with_timeout,
    get_insertion_policy,
    insert_in_batches,
)
from .exceptions import MissingTokenError, UploadFailure, is_stale_media_reference
from .host import HostCanvas, MediaUploader
from .models import (
    ElementBase,
    MediaElementBase,
    MissingTokenBehavior,
    PageConfig,
    TokenValues,
    UploadCacheEntry,
)
from .serializer import ElementSerializer
from .tokens import missing_tokens, substitute

logger = get_logger(__name__)

IMAGE_MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
}
DEFAULT_IMAGE_MIME_TYPE = "image/jpeg"
VIDEO_MIME_TYPE = "video/mp4"


def image_mime_type(url: str) -> str:
    """Infer a host-supported image MIME type from the URL extension"""
    extension = os.path.splitext(urlparse(url).path)[1].lstrip(".").lower()
    return IMAGE_MIME_TYPES.get(extension, DEFAULT_IMAGE_MIME_TYPE)


def video_mime_type(url: str) -> str:
    # The host only accepts MP4 video uploads
    return VIDEO_MIME_TYPE


@dataclass
class GenerationReport:
    """What happened to each element; for non-blocking warnings only"""
    inserted: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)
    batches: int = 0

    @property
    def warnings(self) -> List[str]:
        return [f"Element {element_id} could not be added: {error}" for element_id, error in self.failed]


class PageGenerator:
    """
    Rebuilds a page from a PageConfig on the host canvas.

    Holds an upload cache keyed by resolved media URL for its whole
    lifetime; create one generator per generation run, or call
    clear_cache() between independent runs.
    """

    def __init__(
        self,
        host: HostCanvas,
        uploader: MediaUploader,
        policy: Optional[InsertionPolicy] = None,
        serializer: Optional[ElementSerializer] = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.host = host
        self.uploader = uploader
        self.policy = (policy or get_insertion_policy()).validate()
        self.serializer = serializer or ElementSerializer()
        self._sleep = sleep
        self._upload_cache: Dict[str, UploadCacheEntry] = {}

    async def create_page_from_template(
        self,
        config: PageConfig,
        token_values: Optional[TokenValues] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> GenerationReport:
        """
        Create a page from a template, replacing tokens in dynamic elements.

        Raises:
            MissingTokenError: a dynamic element lacks values under the
                `error` policy. Elements inserted before it stay on the page.
            GenerationCancelled: the cancellation token was set.
        """
        token_values = token_values or {}
        behavior = MissingTokenBehavior(config.missing_token_behavior or MissingTokenBehavior.SKIP)

        background = config.background.to_dict() if config.background else None
        await call_with_timeout(self.host.create_page(background), self.policy.host_call_timeout)

        # Page readiness is not observable; wait before inserting
        await self._sleep(self.policy.page_settle_delay)

        async def add_element(element: ElementBase) -> bool:
            return await self._add_single_element(element, token_values, behavior)

        outcome = await insert_in_batches(
            config.elements,
            add_element,
            self.policy,
            key=lambda element: element.id,
            sleep=self._sleep,
            cancellation=cancellation,
        )

        report = GenerationReport(
            inserted=outcome.inserted,
            skipped=outcome.skipped,
            failed=outcome.failed,
            batches=outcome.batches,
        )
        logger.info(
            f"Generated page: {len(report.inserted)} inserted, {len(report.skipped)} skipped, "
            f"{len(report.failed)} failed in {report.batches} batches"
        )
        return report

    async def _add_single_element(
        self,
        element: ElementBase,
        token_values: TokenValues,
        behavior: MissingTokenBehavior,
    ) -> bool:
        """Insert one element; False means it was deliberately skipped"""
        if not element.is_dynamic:
            return await self._insert(element, None)

        missing = missing_tokens(element.tokens, token_values)
        if missing:
            if behavior == MissingTokenBehavior.ERROR:
                logger.error(f"Element {element.id} is missing required tokens: {', '.join(missing)}")
                raise MissingTokenError(missing, element_id=element.id)
            if behavior == MissingTokenBehavior.SKIP:
                logger.info(f"Skipping element {element.id}, missing tokens: {', '.join(missing)}")
                return False
            # placeholder: unresolved tokens stay as {{token}}

        return await self._insert(element, token_values)

    async def _insert(self, element: ElementBase, token_values: Optional[TokenValues]) -> bool:
        media_ref = None
        if isinstance(element, MediaElementBase) and token_values is not None and element.url:
            media_ref = await self._resolve_media_ref(element, token_values)

        descriptor = self.serializer.to_host_insertion(
            element,
            token_values,
            media_ref=media_ref,
            range_factory=self.host.create_richtext_range,
        )
        if descriptor is None:
            return False

        try:
            await self._insert_descriptor(descriptor)
        except Exception as e:
            if not (media_ref is not None and is_stale_media_reference(e)):
                raise
            # One retry with a fresh upload for a stale media reference
            logger.warning(f"Stale media reference for element {element.id}, re-uploading: {e}")
            fresh_ref = await self._resolve_media_ref(element, token_values, refresh=True)
            descriptor = self.serializer.to_host_insertion(element, token_values, media_ref=fresh_ref)
            await self._insert_descriptor(descriptor)

        return True

    async def _insert_descriptor(self, descriptor) -> None:
        await call_with_timeout(self.host.insert_element(descriptor), self.policy.host_call_timeout)

    async def _resolve_media_ref(
        self,
        element: MediaElementBase,
        token_values: TokenValues,
        refresh: bool = False,
    ) -> str:
        """Upload the element's resolved URL, reusing earlier uploads of the same URL"""
        url = substitute(element.url, token_values)

        if refresh:
            self._upload_cache.pop(url, None)
        elif url in self._upload_cache:
            logger.debug(f"Upload cache hit for {url}")
            return self._upload_cache[url].ref

        if element.type == "video":
            mime_type = video_mime_type(url)
            options = {"thumbnail_image_url": url}
        else:
            mime_type = image_mime_type(url)
            options = {"thumbnail_url": url}

        try:
            result = await call_with_timeout(
                self.uploader.upload(element.type, url, mime_type, ai_disclosure="none", **options),
                self.policy.host_call_timeout,
            )
        except Exception as e:
            raise UploadFailure(element.id, url, f"Failed to upload {element.type} for element {element.id}", cause=e) from e

        self._upload_cache[url] = UploadCacheEntry(ref=result.ref, timestamp=time.time())
        return result.ref

    def clear_cache(self) -> None:
        """Drop every cached upload; call between independent runs, not mid-run"""
        self._upload_cache.clear()

    @property
    def cache_size(self) -> int:
        return len(self._upload_cache)
