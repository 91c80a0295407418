"""Edits applied to a scanned page configuration before it is saved"""

from typing import Any, Dict, Optional, Union

from .models import (
    ElementMode,
    MediaElementBase,
    PageConfig,
    TemplateData,
    TemplateRecord,
    TokenDefinition,
    TokenValues,
)
from .scanner import register_element_tokens
from .serializer import classify_element, element_tokens
from .tokens import has_value


def _copy_with_element(config: PageConfig, element_id: str):
    updated = config.model_copy(deep=True)
    element = updated.get_element(element_id)
    if element is None:
        raise ValueError(f"Element {element_id} not found in template")
    return updated, element


def _apply_mode(config: PageConfig, element, mode: ElementMode) -> None:
    element.element_mode = mode
    if mode == ElementMode.DYNAMIC:
        element.tokens = [name for name, _ in element_tokens(element)] or None
        register_element_tokens(element, config.token_definitions)
    else:
        element.tokens = None


def set_element_mode(config: PageConfig, element_id: str, mode: Union[ElementMode, str]) -> PageConfig:
    """
    Explicitly override an element's classification.

    Returns a new configuration. Switching to dynamic defines any of the
    element's tokens that are not defined yet.
    """
    updated, element = _copy_with_element(config, element_id)
    _apply_mode(updated, element, ElementMode(mode))
    return updated


def toggle_element_mode(config: PageConfig, element_id: str) -> PageConfig:
    element = config.get_element(element_id)
    if element is None:
        raise ValueError(f"Element {element_id} not found in template")
    new_mode = ElementMode.STATIC if element.is_dynamic else ElementMode.DYNAMIC
    return set_element_mode(config, element_id, new_mode)


def bind_media_url(config: PageConfig, element_id: str, url: str) -> PageConfig:
    """Attach a source URL (which may hold tokens) to an image or video element"""
    updated, element = _copy_with_element(config, element_id)
    if not isinstance(element, MediaElementBase):
        raise ValueError(f"Element {element_id} is a {element.type} element, not image or video")
    element.url = url
    _apply_mode(updated, element, classify_element(element))
    return updated


def prepare_template_data(
    name: str,
    description: Optional[str],
    config: PageConfig,
    preview_image_url: Optional[str] = None,
) -> TemplateData:
    """Validate user-entered details and build the store payload"""
    if not name or not name.strip():
        raise ValueError("Template name is required")
    return TemplateData(
        name=name.strip(),
        description=(description or "").strip() or None,
        preview_image_url=preview_image_url,
        page_config=config,
    )


def initial_token_values(token_definitions: Dict[str, TokenDefinition]) -> TokenValues:
    """Pre-fill values for a token form from each definition's default"""
    return {
        name: definition.default if has_value(definition.default) else ""
        for name, definition in token_definitions.items()
    }


def summarize_template(template: Union[TemplateRecord, PageConfig]) -> Dict[str, Any]:
    config = template.page_config if isinstance(template, TemplateRecord) else template
    return {
        "element_count": len(config.elements),
        "dynamic_count": len(config.dynamic_elements),
        "token_count": len(config.token_definitions),
    }
