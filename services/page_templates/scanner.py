"""
Template scanner.

Scans the page that is active in the design and converts it to a page
configuration. The caller is responsible for the user having navigated to
the page first; the scanner never navigates.
"""

from enum import Enum
from typing import Dict, List, Optional

from setup_logging_optimized import get_logger

from .exceptions import ScanFailure
from .host import HostCanvas
from .models import ElementBase, PageConfig, TokenDefinition
from .serializer import ElementSerializer, element_tokens, read_attr, read_list
from .tokens import label_for

logger = get_logger(__name__)


class ScanState(Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    DONE = "done"
    FAILED = "failed"


def register_element_tokens(element: ElementBase, definitions: Dict[str, TokenDefinition]) -> List[str]:
    """
    Add definitions for the element's tokens that are not defined yet.

    An existing definition is never overwritten, so the first occurrence of
    a name decides its inferred type and label. Returns the names added.
    """
    added = []
    for name, token_type in element_tokens(element):
        if name in definitions:
            continue
        definitions[name] = TokenDefinition(type=token_type, label=label_for(name), default="")
        added.append(name)
    return added


class TemplateScanner:
    """Converts the current host page into a PageConfig"""

    def __init__(self, host: HostCanvas, serializer: Optional[ElementSerializer] = None):
        self.host = host
        self.serializer = serializer or ElementSerializer()
        self.state = ScanState.IDLE
        self.last_error: Optional[Exception] = None

    async def scan_current_page_as_template(self) -> PageConfig:
        """
        Scan the current page and classify every element as static or dynamic.

        Raises:
            ScanFailure: the page cannot be opened or does not expose elements.
                No partial configuration is returned.
        """
        self.state = ScanState.SCANNING
        self.last_error = None
        try:
            config = await self._scan()
        except ScanFailure as e:
            self._fail(e)
            raise
        except Exception as e:
            failure = ScanFailure("Template scan failed", cause=e)
            self._fail(failure)
            raise failure from e

        self.state = ScanState.DONE
        logger.info(
            f"Scanned page: {len(config.elements)} elements, "
            f"{len(config.dynamic_elements)} dynamic, {len(config.token_definitions)} tokens"
        )
        return config

    def _fail(self, error: Exception) -> None:
        self.state = ScanState.FAILED
        self.last_error = error
        logger.error(f"[TemplateScanner] Error during scan: {error}")

    async def _scan(self) -> PageConfig:
        try:
            session = await self.host.open_current_page()
        except Exception as e:
            raise ScanFailure("Could not open the current page for reading", cause=e) from e

        page = session.page
        host_elements = read_attr(page, "elements")
        if host_elements is None:
            raise ScanFailure(
                f"Current page does not support element access. Page type: {read_attr(page, 'type')}"
            )
        try:
            host_elements = read_list(host_elements)
        except TypeError as e:
            raise ScanFailure(
                f"Current page elements are not enumerable. Page type: {read_attr(page, 'type')}",
                cause=e,
            ) from e

        elements: List[ElementBase] = []
        definitions: Dict[str, TokenDefinition] = {}

        # Dropped elements still consume their id slot
        for counter, host_element in enumerate(host_elements):
            try:
                element = self.serializer.to_template_element(host_element, counter)
            except Exception as e:
                logger.warning(f"Skipping element {counter} after unexpected error: {e}")
                continue
            if element is None:
                continue

            elements.append(element)
            if element.is_dynamic:
                register_element_tokens(element, definitions)

        return PageConfig(elements=elements, token_definitions=definitions)
