"""Data models for page templates"""

from enum import Enum
from typing import Optional, List, Dict, Any, Union, Literal, Annotated
from dataclasses import dataclass, field
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ElementMode(str, Enum):
    """How an element is recreated at generation time"""
    STATIC = "static"
    DYNAMIC = "dynamic"


class MissingTokenBehavior(str, Enum):
    """Generation policy for dynamic elements whose tokens have no value"""
    SKIP = "skip"
    PLACEHOLDER = "placeholder"
    ERROR = "error"


class TokenType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    IMAGE_URL = "image_url"
    VIDEO_URL = "video_url"


TokenValue = Union[str, int, float, None]
TokenValues = Dict[str, TokenValue]


class TemplateModel(BaseModel):
    """Base for every persisted template structure.

    Python attributes are snake_case, the stored JSON is camelCase so that
    page configs saved by the design plugin load without translation.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        extra="ignore",
    )

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# ============= Text =============

class TextFormatting(TemplateModel):
    """Inline and paragraph formatting captured from a text region"""
    color: Optional[str] = None
    font_weight: Optional[Union[int, str]] = None
    font_style: Optional[str] = None
    font_size: Optional[float] = None
    text_align: Optional[str] = None
    decoration: Optional[str] = None
    strikethrough: Optional[str] = None
    link: Optional[str] = None
    font_ref: Optional[str] = None


class TextRegion(TemplateModel):
    text: str = ""
    formatting: TextFormatting = Field(default_factory=TextFormatting)


class TextContent(TemplateModel):
    plaintext: str = ""
    # Only present when regions carry differing formatting
    regions: Optional[List[TextRegion]] = None


# ============= Shapes and media =============

class ViewBox(TemplateModel):
    top: float = 0
    left: float = 0
    width: float
    height: float


class ShapePath(TemplateModel):
    d: str
    fill: Optional[Dict[str, Any]] = None
    stroke: Optional[Dict[str, Any]] = None


class MediaFill(TemplateModel):
    type: Literal["image", "video"]
    media_ref: Optional[str] = None


class AltText(TemplateModel):
    text: str = ""
    decorative: bool = False


# ============= Elements =============

class ElementBase(TemplateModel):
    """Geometry and classification shared by every element variant"""
    id: str = ""
    element_mode: ElementMode = ElementMode.STATIC
    top: float = 0
    left: float = 0
    width: float = 0
    height: Optional[float] = None
    rotation: Optional[float] = None
    transparency: Optional[float] = None
    tokens: Optional[List[str]] = None

    @property
    def is_dynamic(self) -> bool:
        return self.element_mode == ElementMode.DYNAMIC.value


class TextElement(ElementBase):
    type: Literal["text", "richtext"] = "text"
    text: TextContent = Field(default_factory=TextContent)
    # Uniform formatting, used when text.regions is absent
    font_size: Optional[float] = None
    font_weight: Optional[Union[int, str]] = None
    font_style: Optional[str] = None
    color: Optional[str] = None
    text_align: Optional[str] = None
    decoration: Optional[str] = None
    strikethrough: Optional[str] = None
    font_ref: Optional[str] = None
    link: Optional[str] = None

    @property
    def has_regions(self) -> bool:
        return bool(self.text.regions)


class ShapeElement(ElementBase):
    type: Literal["shape"] = "shape"
    paths: List[ShapePath] = Field(default_factory=list)
    view_box: Optional[ViewBox] = None


class MediaElementBase(ElementBase):
    fill: Optional[MediaFill] = None
    # Dynamic media: a (possibly tokenised) source URL and an optional prior upload ref
    url: Optional[str] = None
    ref: Optional[str] = None
    alt_text: Optional[AltText] = None


class ImageElement(MediaElementBase):
    type: Literal["image"] = "image"


class VideoElement(MediaElementBase):
    type: Literal["video"] = "video"


class RectElement(ElementBase):
    type: Literal["rect"] = "rect"
    fill: Optional[Dict[str, Any]] = None


class EmbedElement(ElementBase):
    type: Literal["embed"] = "embed"
    url: Optional[str] = None


TemplateElement = Annotated[
    Union[TextElement, ShapeElement, ImageElement, VideoElement, RectElement, EmbedElement],
    Field(discriminator="type"),
]

MEDIA_ELEMENT_TYPES = ("image", "video")


# ============= Page configuration =============

class TokenDefinition(TemplateModel):
    """One substitution slot of a template"""
    type: TokenType = TokenType.STRING
    label: str
    default: Optional[Union[str, int, float]] = ""
    required: Optional[bool] = None
    description: Optional[str] = None


class Dimensions(TemplateModel):
    width: int = 1920
    height: int = 1080


class PageBackground(TemplateModel):
    color: Optional[str] = None
    image_ref: Optional[str] = None


class PageConfig(TemplateModel):
    """Serialized, storable form of one design page"""
    # Advisory only, the host owns real page dimensions
    dimensions: Dimensions = Field(default_factory=Dimensions)
    background: Optional[PageBackground] = None
    elements: List[TemplateElement] = Field(default_factory=list)
    token_definitions: Dict[str, TokenDefinition] = Field(default_factory=dict)
    missing_token_behavior: MissingTokenBehavior = MissingTokenBehavior.SKIP

    def get_element(self, element_id: str) -> Optional[ElementBase]:
        for element in self.elements:
            if element.id == element_id:
                return element
        return None

    @property
    def dynamic_elements(self) -> List[ElementBase]:
        return [e for e in self.elements if e.is_dynamic]


# ============= Persistence =============

class TemplateData(BaseModel):
    """Payload written to the template store on create/update"""
    name: str
    description: Optional[str] = None
    preview_image_url: Optional[str] = None
    page_config: PageConfig

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(exclude={"page_config"}, exclude_none=True)
        data["page_config"] = self.page_config.to_dict()
        return data


class TemplateRecord(BaseModel):
    """A stored template row"""
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    description: Optional[str] = None
    preview_image_url: Optional[str] = None
    page_config: PageConfig
    user_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# ============= Host insertion =============

@dataclass
class RichtextRun:
    text: str
    formatting: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RichtextRange:
    """Flat rich text: a string plus formatting annotations over spans of it.

    Mirrors the range object the host canvas exposes for rich text, so a
    host adapter can replay runs and paragraph formats onto its own range.
    """
    runs: List[RichtextRun] = field(default_factory=list)
    paragraph_formats: List[Dict[str, Any]] = field(default_factory=list)

    def append_text(self, text: str, formatting: Optional[Dict[str, Any]] = None) -> None:
        self.runs.append(RichtextRun(text=text, formatting=dict(formatting or {})))

    def format_paragraph(self, index: int, length: int, formatting: Dict[str, Any]) -> None:
        self.paragraph_formats.append({"index": index, "length": length, "formatting": dict(formatting)})

    def read_plaintext(self) -> str:
        return "".join(run.text for run in self.runs)


@dataclass
class UploadResult:
    ref: str


@dataclass
class UploadCacheEntry:
    ref: str
    timestamp: float
