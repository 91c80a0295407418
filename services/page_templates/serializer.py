"""
Element model: host canvas element <-> template element record.

Scan direction reads a live host element through a narrow accessor layer
and produces a JSON-safe record. Generate direction turns a record back
into an insertion descriptor for the host canvas.
"""

import json
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from setup_logging_optimized import get_logger
from utils.json_safe import extract_serializable_props

from .exceptions import ElementSerializationSkip, ElementInsertionFailure
from .models import (
    AltText,
    ElementBase,
    ElementMode,
    EmbedElement,
    ImageElement,
    MediaElementBase,
    MediaFill,
    RectElement,
    RichtextRange,
    ShapeElement,
    ShapePath,
    TextContent,
    TextElement,
    TextFormatting,
    TextRegion,
    TokenType,
    TokenValues,
    VideoElement,
    ViewBox,
)
from .tokens import contains_tokens, find_tokens, substitute, unique_tokens

logger = get_logger(__name__)

HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")
DEFAULT_SHAPE_COLOR = "#000000"
BOLD_WEIGHT_THRESHOLD = 600
VIDEO_ASPECT = 0.5625

# Depth for walking fills and strokes copied off host objects
FILL_WALK_DEPTH = 2

FORMATTING_FIELDS = (
    "color", "font_weight", "font_style", "font_size", "text_align",
    "decoration", "strikethrough", "link", "font_ref",
)
INLINE_FORMAT_FIELDS = ("color", "font_weight", "font_style", "decoration", "strikethrough", "link")
PARAGRAPH_FORMAT_FIELDS = ("font_size", "text_align", "font_ref")


# ============= Host accessors =============

def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def read_attr(obj: Any, name: str, default: Any = None) -> Any:
    """Read a field from a host object or mapping, snake_case or camelCase"""
    if obj is None:
        return default
    for key in (name, _camel(name)):
        try:
            if isinstance(obj, dict):
                if key in obj:
                    return obj[key]
            elif hasattr(obj, key):
                return getattr(obj, key)
        except Exception:
            return default
    return default


def call_reader(obj: Any, name: str) -> Any:
    """Call a host reader method such as read_plaintext()/readPlaintext()"""
    reader = read_attr(obj, name)
    if callable(reader):
        return reader()
    return reader


def read_list(value: Any) -> List[Any]:
    """Materialize a host list (plain list, iterable, or readable list with to_array)"""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    to_array = read_attr(value, "to_array")
    if callable(to_array):
        return list(to_array())
    return list(value)


def normalize_font_weight(weight: Any) -> Any:
    """Numeric weights collapse to normal/bold (400 = normal, 700 = bold)"""
    if weight is None:
        return None
    if isinstance(weight, bool):
        return "bold" if weight else "normal"
    if isinstance(weight, (int, float)):
        return "bold" if weight >= BOLD_WEIGHT_THRESHOLD else "normal"
    if isinstance(weight, str) and weight.strip().isdigit():
        return "bold" if int(weight) >= BOLD_WEIGHT_THRESHOLD else "normal"
    return weight


def valid_color(color: Any) -> str:
    if isinstance(color, str) and HEX_COLOR.match(color):
        return color
    return DEFAULT_SHAPE_COLOR


# ============= Token bookkeeping =============

def element_token_sources(element: ElementBase) -> List[Tuple[str, TokenType]]:
    """(text, token type) pairs an element can carry tokens in"""
    sources: List[Tuple[str, TokenType]] = []
    if isinstance(element, TextElement):
        sources.append((element.text.plaintext, TokenType.STRING))
    elif isinstance(element, MediaElementBase) and element.url:
        url_type = TokenType.VIDEO_URL if element.type == "video" else TokenType.IMAGE_URL
        sources.append((element.url, url_type))
    elif isinstance(element, EmbedElement) and element.url:
        sources.append((element.url, TokenType.STRING))
    return sources


def element_tokens(element: ElementBase) -> List[Tuple[str, TokenType]]:
    """Distinct tokens found in an element, with the type their context implies"""
    found: Dict[str, TokenType] = {}
    for text, token_type in element_token_sources(element):
        for name in find_tokens(text):
            found.setdefault(name, token_type)
    return list(found.items())


def classify_element(element: ElementBase) -> ElementMode:
    """Automatic rule: dynamic if and only if text or URL holds a token"""
    if any(contains_tokens(text) for text, _ in element_token_sources(element)):
        return ElementMode.DYNAMIC
    return ElementMode.STATIC


class ElementSerializer:
    """Bidirectional mapping between host elements and template records"""

    def __init__(self, fill_depth: int = FILL_WALK_DEPTH):
        self.fill_depth = fill_depth

    # ============= Scan direction =============

    def to_template_element(self, host_element: Any, index: int) -> Optional[ElementBase]:
        """
        Convert a host element to a template record, or None when it cannot
        be captured. Scanning is best-effort per element.
        """
        element_id = f"elem_{index:03d}"
        try:
            element = self._convert(host_element, element_id)
        except ElementSerializationSkip as e:
            logger.debug(f"Dropping element {element_id}: {e}")
            return None

        element.element_mode = classify_element(element)
        if element.is_dynamic:
            element.tokens = unique_tokens([name for name, _ in element_tokens(element)])
        return element

    def _convert(self, host_element: Any, element_id: str) -> ElementBase:
        element_type = read_attr(host_element, "type")
        base = self._base_fields(host_element, element_id)

        if element_type == "text":
            return self._convert_text(host_element, base)
        if element_type == "shape":
            return self._convert_shape(host_element, base)
        if element_type == "rect":
            return self._convert_rect(host_element, base)
        if element_type == "embed":
            url = read_attr(host_element, "url")
            return EmbedElement(**base, url=url if isinstance(url, str) else None)

        raise ElementSerializationSkip(element_type, f"Unsupported element type: {element_type}")

    def _base_fields(self, host_element: Any, element_id: str) -> Dict[str, Any]:
        base = {"id": element_id}
        for name in ("top", "left", "width", "height", "rotation", "transparency"):
            value = read_attr(host_element, name)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                base[name] = value
        return base

    def _convert_text(self, host_element: Any, base: Dict[str, Any]) -> TextElement:
        text_handle = read_attr(host_element, "text")
        plaintext = call_reader(text_handle, "read_plaintext") or ""

        try:
            raw_regions = read_list(call_reader(text_handle, "read_text_regions"))
        except Exception as e:
            logger.warning(f"Failed to read text regions for {base['id']}: {e}")
            raw_regions = [{"text": plaintext}]

        raw_formatting = [read_attr(region, "formatting") for region in raw_regions]
        regions = [
            TextRegion(
                text=read_attr(region, "text") or "",
                formatting=self.extract_formatting(formatting),
            )
            for region, formatting in zip(raw_regions, raw_formatting)
        ]

        if self.regions_uniform(raw_formatting):
            formatting = regions[0].formatting if regions else TextFormatting()
            return TextElement(
                **base,
                text=TextContent(plaintext=plaintext),
                **formatting.model_dump(exclude_none=True),
            )

        return TextElement(**base, text=TextContent(plaintext=plaintext, regions=regions))

    @staticmethod
    def regions_uniform(raw_formatting: List[Any]) -> bool:
        """
        All regions carry identical host formatting.

        Compares the full serialized host formatting, including fields the
        template does not keep.
        """
        if len(raw_formatting) <= 1:
            return True
        serialized = {
            json.dumps(extract_serializable_props(formatting or {}), sort_keys=True, default=str)
            for formatting in raw_formatting
        }
        return len(serialized) == 1

    @staticmethod
    def extract_formatting(formatting: Any) -> TextFormatting:
        if not formatting:
            return TextFormatting()
        values = {}
        for name in FORMATTING_FIELDS:
            value = read_attr(formatting, name)
            if value is None or callable(value):
                continue
            values[name] = str(value) if name == "font_ref" else value
        return TextFormatting(**values)

    def _convert_shape(self, host_element: Any, base: Dict[str, Any]) -> ShapeElement:
        paths: List[ShapePath] = []
        view_box = None
        try:
            for path in read_list(read_attr(host_element, "paths")):
                fill = extract_serializable_props(read_attr(path, "fill"), self.fill_depth)
                stroke = extract_serializable_props(read_attr(path, "stroke"), self.fill_depth)
                paths.append(ShapePath(
                    d=read_attr(path, "d") or "",
                    fill=fill if isinstance(fill, dict) else None,
                    stroke=stroke if isinstance(stroke, dict) and stroke else None,
                ))

            host_view_box = read_attr(host_element, "view_box")
            if host_view_box is not None:
                view_box = ViewBox(
                    top=read_attr(host_view_box, "top", 0),
                    left=read_attr(host_view_box, "left", 0),
                    width=read_attr(host_view_box, "width"),
                    height=read_attr(host_view_box, "height"),
                )
        except Exception as e:
            raise ElementSerializationSkip("shape", f"Failed to process shape: {e}", cause=e)

        if not paths:
            raise ElementSerializationSkip("shape", "Shape has no paths")
        if view_box is None or base.get("height") is None:
            raise ElementSerializationSkip("shape", "Shape is missing viewBox or height")

        return ShapeElement(**base, paths=paths, view_box=view_box)

    def _convert_rect(self, host_element: Any, base: Dict[str, Any]) -> ElementBase:
        fill = read_attr(host_element, "fill")
        fill_type = read_attr(fill, "type")

        if fill_type in ("image", "video"):
            media_ref = read_attr(read_attr(fill, "media_container"), "ref")
            host_alt = read_attr(host_element, "alt_text")
            alt_text = None
            if host_alt:
                alt_text = AltText(
                    text=read_attr(host_alt, "text") or "",
                    decorative=bool(read_attr(host_alt, "decorative", False)),
                )
            media_cls = ImageElement if fill_type == "image" else VideoElement
            return media_cls(
                **base,
                fill=MediaFill(type=fill_type, media_ref=str(media_ref) if media_ref is not None else None),
                alt_text=alt_text,
            )

        plain_fill = extract_serializable_props(fill, self.fill_depth)
        return RectElement(**base, fill=plain_fill if isinstance(plain_fill, dict) else None)

    # ============= Generate direction =============

    def to_host_insertion(
        self,
        element: ElementBase,
        token_values: Optional[TokenValues] = None,
        media_ref: Optional[str] = None,
        range_factory: Callable[[], RichtextRange] = RichtextRange,
    ) -> Optional[Dict[str, Any]]:
        """
        Build the host insertion descriptor for a record.

        token_values is None for static elements (verbatim), otherwise tokens
        are substituted. Returns None when the record cannot be inserted and
        should be skipped.
        """
        if isinstance(element, TextElement):
            if element.has_regions:
                return self._richtext_descriptor(element, token_values, range_factory)
            return self._text_descriptor(element, token_values)
        if isinstance(element, ShapeElement):
            return self._shape_descriptor(element)
        if isinstance(element, MediaElementBase):
            return self._media_descriptor(element, media_ref)
        if isinstance(element, RectElement):
            return self._rect_descriptor(element)
        if isinstance(element, EmbedElement):
            return self._embed_descriptor(element, token_values)
        logger.warning(f"No insertion mapping for element {element.id} of type {element.type}")
        return None

    @staticmethod
    def _placement(element: ElementBase, include_height: bool = False) -> Dict[str, Any]:
        placement = {
            "top": element.top,
            "left": element.left,
            "width": element.width,
        }
        if include_height:
            placement["height"] = element.height
        if element.rotation is not None:
            placement["rotation"] = element.rotation
        if element.transparency is not None:
            placement["transparency"] = element.transparency
        return placement

    @staticmethod
    def _resolve(text: str, token_values: Optional[TokenValues]) -> str:
        return substitute(text, token_values) if token_values is not None else text

    def _text_descriptor(self, element: TextElement, token_values: Optional[TokenValues]) -> Dict[str, Any]:
        descriptor = {
            "type": "text",
            "children": [self._resolve(element.text.plaintext, token_values)],
            **self._placement(element),
        }
        formatting = {
            "font_size": element.font_size,
            "font_weight": normalize_font_weight(element.font_weight),
            "font_style": element.font_style,
            "color": element.color,
            "text_align": element.text_align,
            "decoration": element.decoration,
            "strikethrough": element.strikethrough,
            "font_ref": element.font_ref,
            "link": element.link,
        }
        descriptor.update({k: v for k, v in formatting.items() if v is not None})
        return descriptor

    def _richtext_descriptor(
        self,
        element: TextElement,
        token_values: Optional[TokenValues],
        range_factory: Callable[[], RichtextRange],
    ) -> Dict[str, Any]:
        text_range = range_factory()
        regions = element.text.regions or []

        for region in regions:
            inline = {}
            for name in INLINE_FORMAT_FIELDS:
                value = getattr(region.formatting, name)
                if value:
                    inline[name] = normalize_font_weight(value) if name == "font_weight" else value
            text_range.append_text(self._resolve(region.text, token_values), inline)

        # The host annotates a flat string; paragraph formatting comes from the first region
        first = regions[0].formatting if regions else TextFormatting()
        paragraph = {name: getattr(first, name) for name in PARAGRAPH_FORMAT_FIELDS if getattr(first, name)}
        if paragraph:
            text_range.format_paragraph(0, len(text_range.read_plaintext()), paragraph)

        return {
            "type": "richtext",
            "range": text_range,
            **self._placement(element),
        }

    def _shape_descriptor(self, element: ShapeElement) -> Optional[Dict[str, Any]]:
        if not element.paths:
            logger.warning(f"Shape element {element.id} has no paths, skipping")
            return None
        if element.view_box is None or element.height is None:
            logger.warning(f"Shape element {element.id} missing viewBox or height, skipping")
            return None

        paths = []
        for path in element.paths:
            fill = dict(path.fill) if isinstance(path.fill, dict) else {}
            fill["color"] = valid_color(fill.get("color"))
            entry = {"d": path.d, "fill": fill}
            if path.stroke:
                entry["stroke"] = dict(path.stroke)
            paths.append(entry)

        return {
            "type": "shape",
            "paths": paths,
            "view_box": element.view_box.model_dump(),
            **self._placement(element, include_height=True),
        }

    def _media_descriptor(self, element: MediaElementBase, media_ref: Optional[str]) -> Optional[Dict[str, Any]]:
        ref = media_ref
        if ref is None and not element.is_dynamic and element.fill is not None:
            ref = element.fill.media_ref
        if ref is None:
            ref = element.ref

        if ref is None:
            if element.is_dynamic:
                raise ElementInsertionFailure(element.id, f"No {element.type} reference for dynamic element {element.id}")
            logger.warning(f"{element.type.title()} element {element.id} missing media reference, skipping")
            return None

        height = element.height
        if height is None:
            height = element.width if element.type == "image" else element.width * VIDEO_ASPECT

        alt_text = element.alt_text or AltText(text="", decorative=True)
        placement = self._placement(element)
        placement["height"] = height
        return {
            "type": element.type,
            "ref": ref,
            **placement,
            "alt_text": alt_text.model_dump(),
        }

    def _rect_descriptor(self, element: RectElement) -> Optional[Dict[str, Any]]:
        """Plain rectangles are recreated as a single-path shape"""
        if element.height is None or not element.width:
            logger.warning(f"Rect element {element.id} missing size, skipping")
            return None

        width, height = element.width, element.height
        color = valid_color(read_attr(element.fill, "color"))
        return {
            "type": "shape",
            "paths": [{"d": f"M 0 0 H {width:g} V {height:g} H 0 L 0 0", "fill": {"color": color}}],
            "view_box": {"top": 0, "left": 0, "width": width, "height": height},
            **self._placement(element, include_height=True),
        }

    def _embed_descriptor(self, element: EmbedElement, token_values: Optional[TokenValues]) -> Optional[Dict[str, Any]]:
        if not element.url:
            logger.warning(f"Embed element {element.id} has no url, skipping")
            return None
        placement = self._placement(element)
        if element.height is not None:
            placement["height"] = element.height
        return {
            "type": "embed",
            "url": self._resolve(element.url, token_values),
            **placement,
        }
