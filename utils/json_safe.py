#!/usr/bin/env python3
"""
JSON-safe serialization utilities.

to_json_safe converts our own values (Pydantic models, datetimes, decimals)
into plain JSON data. extract_serializable_props is the defensive walker for
objects coming from the host canvas, which may carry back-references, bound
methods or accessors that raise.
"""
import json
import enum
from typing import Any, Dict
from datetime import datetime, date
from decimal import Decimal
from setup_logging_optimized import get_logger

logger = get_logger(__name__)

_PRIMITIVES = (str, int, float, bool)


def to_json_safe(obj: Any) -> Any:
    """
    Convert any object to a JSON-serializable representation.
    Handles Pydantic models, enums, datetime, Decimal, sets and objects with __dict__.

    Args:
        obj: Any object that needs to be JSON-serializable

    Returns:
        JSON-safe representation of the object
    """
    try:
        if obj is None:
            return None

        if isinstance(obj, enum.Enum):
            return to_json_safe(obj.value)

        if isinstance(obj, _PRIMITIVES):
            return obj

        if isinstance(obj, (datetime, date)):
            return obj.isoformat()

        if isinstance(obj, Decimal):
            return float(obj)

        # Template models serialize with their stored (camelCase) aliases
        if hasattr(obj, 'to_dict') and callable(obj.to_dict):
            try:
                return to_json_safe(obj.to_dict())
            except Exception as e:
                logger.warning(f"to_dict failed for {type(obj)}: {e}")

        if hasattr(obj, 'model_dump'):
            try:
                return to_json_safe(obj.model_dump(exclude_none=True))
            except Exception as e:
                logger.warning(f"model_dump failed for {type(obj)}: {e}")

        if isinstance(obj, dict):
            return {
                (key if isinstance(key, str) else str(key)): to_json_safe(value)
                for key, value in obj.items()
            }

        if isinstance(obj, (list, tuple, set)):
            return [to_json_safe(item) for item in obj]

        if hasattr(obj, '__dict__'):
            return to_json_safe(vars(obj))

        logger.warning(f"Falling back to str() for object {type(obj)}")
        return str(obj)

    except Exception as e:
        logger.error(f"Failed to serialize object {type(obj)}: {e}")
        return str(obj)


def ensure_json_serializable(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convert a payload to JSON-safe data and verify json.dumps accepts it.

    Raises:
        ValueError: if the converted payload still cannot be encoded
    """
    safe_data = to_json_safe(data)
    try:
        json.dumps(safe_data)
    except (TypeError, ValueError) as e:
        logger.error(f"Payload is not JSON-serializable: {e}")
        raise ValueError(f"Payload is not JSON-serializable: {e}") from e
    return safe_data


def _iter_public_attributes(obj: Any):
    """Yield (name, getter) pairs for the data attributes of a host object"""
    if isinstance(obj, dict):
        for key in list(obj.keys()):
            yield str(key), (lambda k=key: obj[k])
        return

    try:
        names = list(vars(obj).keys())
    except TypeError:
        # __slots__ objects and similar
        names = [n for n in dir(obj) if not n.startswith('_')]

    for name in names:
        if name.startswith('_'):
            continue
        yield name, (lambda n=name: getattr(obj, n))


def extract_serializable_props(obj: Any, max_depth: int = 3, current_depth: int = 0) -> Any:
    """
    Copy a host object into plain data, walking at most max_depth levels.

    Callables are dropped, properties whose access raises are dropped, and
    lists/tuples are mapped element-wise. Anything still non-primitive at the
    depth bound is dropped as well, so back-references are never followed.
    """
    if obj is None or isinstance(obj, _PRIMITIVES):
        return obj

    if isinstance(obj, enum.Enum):
        return extract_serializable_props(obj.value, max_depth, current_depth)

    if current_depth >= max_depth:
        return None

    if isinstance(obj, (list, tuple)):
        return [
            extract_serializable_props(item, max_depth, current_depth + 1)
            for item in obj
        ]

    if callable(obj):
        return None

    result: Dict[str, Any] = {}
    for name, getter in _iter_public_attributes(obj):
        try:
            value = getter()
        except Exception:
            # Accessors on live host objects may raise
            continue
        if callable(value) and not isinstance(value, (dict, list, tuple)):
            continue
        result[name] = extract_serializable_props(value, max_depth, current_depth + 1)
    return result
