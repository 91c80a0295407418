"""
Exception hierarchy for the page template pipeline.

Scan-level failures are fatal and reported whole. Generation-level failures
are element-scoped and absorbed by the generator, except MissingTokenError
under the `error` policy.
"""

import re
from typing import Optional, Dict, Any, List


class TemplateError(Exception):
    """Base exception for all page template errors"""

    def __init__(
        self,
        message: str,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.cause = cause
        self.context = context or {}

    def __str__(self):
        parts = [super().__str__()]
        if self.cause:
            parts.append(f" (caused by: {type(self.cause).__name__}: {str(self.cause)})")
        if self.context:
            parts.append(f" Context: {self.context}")
        return "".join(parts)


# === Scan exceptions ===

class ScanFailure(TemplateError):
    """Active page cannot be enumerated or the scan session could not be opened"""
    pass


class ElementSerializationSkip(TemplateError):
    """A single host element could not be captured; the scanner drops it"""

    def __init__(self, element_type: Optional[str], message: str, **kwargs):
        super().__init__(message, **kwargs)
        self.element_type = element_type


# === Generation exceptions ===

class MissingTokenError(TemplateError):
    """Required tokens have no value under the `error` missing-token policy"""

    def __init__(self, missing_tokens: List[str], element_id: Optional[str] = None, **kwargs):
        super().__init__(f"Missing required tokens: {', '.join(missing_tokens)}", **kwargs)
        self.missing_tokens = list(missing_tokens)
        self.element_id = element_id
        self.context.update({
            'element_id': element_id,
            'missing_tokens': self.missing_tokens
        })


class ElementInsertionFailure(TemplateError):
    """A single element failed to insert"""

    def __init__(self, element_id: str, message: str, **kwargs):
        super().__init__(message, **kwargs)
        self.element_id = element_id
        self.context.setdefault('element_id', element_id)


class UploadFailure(ElementInsertionFailure):
    """Media upload service rejected or failed an upload"""

    def __init__(self, element_id: str, url: str, message: str, **kwargs):
        super().__init__(element_id, message, **kwargs)
        self.url = url
        self.context['url'] = url


class InvalidMediaReferenceError(TemplateError):
    """Raised by host adapters that can tell a stale media reference apart"""
    pass


class GenerationCancelled(TemplateError):
    """Generation was cancelled between elements"""
    pass


class GenerationInProgressError(TemplateError):
    """Another generation is already running for the same design session"""

    def __init__(self, session_id: str, **kwargs):
        super().__init__(f"Generation already in progress for session {session_id}", **kwargs)
        self.session_id = session_id


# === Store exceptions ===

class TemplateStoreError(TemplateError):
    """Structured failure answered by the template store"""

    def __init__(self, error_code: str, message: str, status_code: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.error_code = error_code
        self.status_code = status_code
        self.context.update({'error_code': error_code, 'status_code': status_code})


# === Configuration exceptions ===

class ConfigurationError(TemplateError):
    """Configuration error"""
    pass


class InvalidConfigError(ConfigurationError):
    """Invalid configuration value"""
    pass


# === Recovery helpers ===

_STALE_REF_PATTERN = re.compile(r"invalid\s+(image|video|media)?\s*(media\s+)?ref(erence)?", re.IGNORECASE)


def is_stale_media_reference(error: Exception) -> bool:
    """Check if a host error means the media reference is no longer usable.

    Best-effort: hosts rarely expose an error code for this, so the message
    is matched when the adapter did not raise InvalidMediaReferenceError.
    """
    if isinstance(error, InvalidMediaReferenceError):
        return True
    if getattr(error, "code", None) == "invalid_media_reference":
        return True
    return bool(_STALE_REF_PATTERN.search(str(error)))


def should_abort_generation(error: Exception) -> bool:
    """Check if an error must stop the whole generation run"""
    return isinstance(error, (MissingTokenError, GenerationCancelled))
