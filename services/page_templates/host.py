"""
Interfaces to the host design application.

The scanner and generator only talk to the host through these seams; a
host adapter (or a test fake) implements them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .models import RichtextRange, UploadResult


@dataclass
class PageSession:
    """Read-only view of the page that is active in the design.

    `page` is the host's page object; it is expected to expose an `elements`
    list of host elements when the page type supports element access.
    """
    page: Any


class HostCanvas(ABC):
    """Design surface the scanner reads from and the generator writes to"""

    @abstractmethod
    async def open_current_page(self) -> PageSession:
        """Open the active page read-only, without navigating"""
        pass

    @abstractmethod
    async def create_page(self, background: Optional[Dict[str, Any]] = None) -> Any:
        """Append a new page and make it the insertion target"""
        pass

    @abstractmethod
    async def insert_element(self, descriptor: Dict[str, Any]) -> None:
        """Insert one element described by an insertion descriptor"""
        pass

    def create_richtext_range(self) -> RichtextRange:
        return RichtextRange()


class MediaUploader(ABC):
    """Turns a remote URL into a host media reference"""

    @abstractmethod
    async def upload(self, media_type: str, url: str, mime_type: str, **options: Any) -> UploadResult:
        pass
