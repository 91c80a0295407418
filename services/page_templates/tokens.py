"""Token engine: {{name}} placeholder detection, substitution and labels"""

import re
from typing import List, Mapping, Optional

from .models import TokenValue

TOKEN_PATTERN = re.compile(r"\{\{(\w+)\}\}", re.ASCII)
_CAMEL_BOUNDARY = re.compile(r"([A-Z])")


def contains_tokens(text: Optional[str]) -> bool:
    """Check if text contains {{token}} placeholders"""
    return bool(text) and TOKEN_PATTERN.search(text) is not None


def find_tokens(text: Optional[str]) -> List[str]:
    """Return token names in order of appearance, duplicates preserved"""
    if not text:
        return []
    return TOKEN_PATTERN.findall(text)


def unique_tokens(tokens: List[str]) -> List[str]:
    """Distinct names, first appearance wins"""
    return list(dict.fromkeys(tokens))


def has_value(value: TokenValue) -> bool:
    """Falsy values (None, "", 0) count as missing; the string "0" does not"""
    return bool(value)


def format_token_value(value: TokenValue) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def substitute(text: Optional[str], values: Mapping[str, TokenValue]) -> str:
    """
    Replace every {{name}} with its stringified value.

    Tokens without a usable value are left as the literal {{name}}, which is
    what keeps the `placeholder` missing-token policy meaningful.
    """
    if not text:
        return text or ""

    def _replace(match: "re.Match[str]") -> str:
        value = values.get(match.group(1))
        if not has_value(value):
            return match.group(0)
        return format_token_value(value)

    return TOKEN_PATTERN.sub(_replace, text)


def missing_tokens(tokens: Optional[List[str]], values: Mapping[str, TokenValue]) -> List[str]:
    """Required tokens that have no non-empty value, distinct and in order"""
    return [t for t in unique_tokens(tokens or []) if not has_value(values.get(t))]


def label_for(token_name: str) -> str:
    """
    Convert snake_case or camelCase to Title Case.

    Examples: company_name -> Company Name, productImage -> Product Image
    """
    if "_" in token_name:
        return " ".join(word[:1].upper() + word[1:] for word in token_name.split("_"))

    spaced = _CAMEL_BOUNDARY.sub(r" \1", token_name)
    return (spaced[:1].upper() + spaced[1:]).strip()
