import os
from supabase import create_client, Client
from dotenv import load_dotenv
from typing import Dict, Any, List, Optional
from datetime import datetime, timezone
import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError

# Load environment variables
load_dotenv()

SUPABASE_URL = os.getenv("SUPABASE_URL")
# Service key bypasses RLS; fall back to the plain key for local setups
SUPABASE_KEY = os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_KEY")

TEMPLATE_PAGES_TABLE = "app_template_pages"

_service_client = None
_anon_client = None

TRANSIENT_ERROR_MARKERS = (
    "StreamReset", "UNEXPECTED_EOF_WHILE_READING", "EOF occurred in violation of protocol",
    "RemoteProtocolError", "ConnectionResetError", "ReadError"
)


def get_supabase_client() -> Client:
    """
    Create and return the service Supabase client.

    Raises:
        ValueError: If SUPABASE_URL or SUPABASE_KEY environment variables are not set
    """
    global _service_client

    if not SUPABASE_URL or not SUPABASE_KEY:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY environment variables must be set")

    if _service_client is None:
        _service_client = create_client(SUPABASE_URL, SUPABASE_KEY)

    return _service_client


def get_anon_supabase_client() -> Client:
    """Supabase client with the anon key, used to resolve user tokens"""
    global _anon_client

    anon_key = os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY")
    if not SUPABASE_URL or not anon_key:
        raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY environment variables must be set")

    if _anon_client is None:
        _anon_client = create_client(SUPABASE_URL, anon_key)

    return _anon_client


def reset_supabase_client() -> None:
    """Drop the cached service client so the next call opens a fresh connection pool"""
    global _service_client
    _service_client = None
    logging.getLogger(__name__).info("Supabase client has been reset")


def perform_supabase_operation_with_retry(operation, description: str = "operation", max_attempts: int = 3, timeout_seconds: float = 8.0):
    """
    Execute a blocking Supabase SDK call with a per-attempt timeout and retries.

    Args:
        operation: Zero-arg callable that performs the request and returns the result
        description: Text description for logging
        max_attempts: Max number of attempts (including the first)
        timeout_seconds: Per-attempt timeout

    Raises:
        The last exception if all attempts fail
    """
    logger = logging.getLogger(__name__)
    last_error = None
    for attempt in range(1, max_attempts + 1):
        try:
            with ThreadPoolExecutor(max_workers=1) as executor:
                future = executor.submit(operation)
                return future.result(timeout=timeout_seconds)
        except FutureTimeoutError as e:
            last_error = e
            logger.warning(f"Supabase {description} timed out on attempt {attempt}/{max_attempts}")
            reset_supabase_client()
        except Exception as e:
            last_error = e
            message = str(e)
            logger.warning(f"Supabase {description} failed on attempt {attempt}/{max_attempts}: {message}")
            if any(marker in message for marker in TRANSIENT_ERROR_MARKERS):
                reset_supabase_client()
        if attempt < max_attempts:
            time.sleep(0.2 * (2 ** (attempt - 1)))
    raise last_error


def get_user_id_for_token(token: Optional[str]) -> Optional[str]:
    """Resolve a bearer token to a user id; None for anonymous or invalid tokens"""
    if not token:
        return None
    logger = logging.getLogger(__name__)
    try:
        response = get_anon_supabase_client().auth.get_user(token)
    except Exception as e:
        logger.warning(f"Auth error resolving template author: {e}")
        return None
    user = getattr(response, "user", None)
    return getattr(user, "id", None) if user else None


# ============= Template pages =============

def list_template_pages() -> List[Dict[str, Any]]:
    """All stored templates, newest first"""
    supabase = get_supabase_client()
    response = perform_supabase_operation_with_retry(
        lambda: supabase.table(TEMPLATE_PAGES_TABLE).select("*").order("created_at", desc=True).execute(),
        description="list template pages"
    )
    return response.data or []


def get_template_page(template_id: str) -> Optional[Dict[str, Any]]:
    """
    Retrieve a template by id.

    Returns:
        The template row if found, None otherwise
    """
    logger = logging.getLogger(__name__)
    supabase = get_supabase_client()
    response = perform_supabase_operation_with_retry(
        lambda: supabase.table(TEMPLATE_PAGES_TABLE).select("*").eq("id", template_id).limit(1).execute(),
        description=f"get template page {template_id}"
    )
    if response.data:
        return response.data[0]
    logger.warning(f"Template page {template_id} not found in database")
    return None


def create_template_page(template_data: Dict[str, Any], user_id: Optional[str] = None) -> Dict[str, Any]:
    """Insert a template row; user_id is None for anonymous authors"""
    logger = logging.getLogger(__name__)
    supabase = get_supabase_client()
    record = dict(template_data)
    record["user_id"] = user_id

    response = perform_supabase_operation_with_retry(
        lambda: supabase.table(TEMPLATE_PAGES_TABLE).insert(record).execute(),
        description="create template page",
        timeout_seconds=15.0
    )
    if not response.data:
        raise Exception("Failed to create template page in Supabase")

    logger.info(f"Created template page '{record.get('name')}' for user {user_id or 'anonymous'}")
    return response.data[0]


def update_template_page(template_id: str, template_data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Update a template and stamp updated_at.

    Returns:
        The updated row, or None when no row matched
    """
    supabase = get_supabase_client()
    record = dict(template_data)
    record["updated_at"] = datetime.now(timezone.utc).isoformat()

    response = perform_supabase_operation_with_retry(
        lambda: supabase.table(TEMPLATE_PAGES_TABLE).update(record).eq("id", template_id).execute(),
        description=f"update template page {template_id}",
        timeout_seconds=15.0
    )
    if not response.data:
        return None
    return response.data[0]


def delete_template_page(template_id: str) -> None:
    supabase = get_supabase_client()
    perform_supabase_operation_with_retry(
        lambda: supabase.table(TEMPLATE_PAGES_TABLE).delete().eq("id", template_id).execute(),
        description=f"delete template page {template_id}"
    )
