"""Page template service package"""

from .batching import CancellationToken, InsertionPolicy, get_insertion_policy
from .editor import (
    bind_media_url,
    initial_token_values,
    prepare_template_data,
    set_element_mode,
    summarize_template,
    toggle_element_mode
)
from .exceptions import (
    TemplateError,
    ScanFailure,
    MissingTokenError,
    ElementInsertionFailure,
    UploadFailure,
    InvalidMediaReferenceError,
    GenerationCancelled,
    GenerationInProgressError,
    TemplateStoreError
)
from .generator import GenerationReport, PageGenerator
from .host import HostCanvas, MediaUploader, PageSession
from .models import (
    ElementMode,
    MissingTokenBehavior,
    TokenType,
    TokenDefinition,
    PageConfig,
    TemplateData,
    TemplateRecord
)
from .scanner import ScanState, TemplateScanner
from .serializer import ElementSerializer
from .session_lock import GenerationSessionLock
from .store import TemplatePagesClient
from .tokens import contains_tokens, find_tokens, label_for, substitute

__all__ = [
    'CancellationToken',
    'InsertionPolicy',
    'get_insertion_policy',
    'bind_media_url',
    'initial_token_values',
    'prepare_template_data',
    'set_element_mode',
    'summarize_template',
    'toggle_element_mode',
    'TemplateError',
    'ScanFailure',
    'MissingTokenError',
    'ElementInsertionFailure',
    'UploadFailure',
    'InvalidMediaReferenceError',
    'GenerationCancelled',
    'GenerationInProgressError',
    'TemplateStoreError',
    'GenerationReport',
    'PageGenerator',
    'HostCanvas',
    'MediaUploader',
    'PageSession',
    'ElementMode',
    'MissingTokenBehavior',
    'TokenType',
    'TokenDefinition',
    'PageConfig',
    'TemplateData',
    'TemplateRecord',
    'ScanState',
    'TemplateScanner',
    'ElementSerializer',
    'GenerationSessionLock',
    'TemplatePagesClient',
    'contains_tokens',
    'find_tokens',
    'label_for',
    'substitute'
]
