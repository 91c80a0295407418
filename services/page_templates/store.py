"""
Template store client.

Talks to the template-pages action endpoint (the Supabase function or the
local FastAPI router); every call is a POST of {action, templateId?,
templateData?}.
"""

import os
from typing import Any, Dict, List, Optional

import httpx
from dotenv import load_dotenv
from pydantic import ValidationError

from setup_logging_optimized import get_logger
from utils.json_safe import ensure_json_serializable

from .exceptions import TemplateStoreError
from .models import TemplateData, TemplateRecord

load_dotenv()

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


def default_function_url() -> Optional[str]:
    override = os.getenv("TEMPLATE_PAGES_FUNCTION_URL")
    if override:
        return override
    supabase_url = os.getenv("SUPABASE_URL")
    if supabase_url:
        return f"{supabase_url.rstrip('/')}/functions/v1/template-pages"
    return None


class TemplatePagesClient:
    """CRUD over saved templates; failures surface as TemplateStoreError"""

    def __init__(
        self,
        function_url: Optional[str] = None,
        anon_key: Optional[str] = None,
        access_token: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.function_url = function_url or default_function_url()
        if not self.function_url:
            raise ValueError("TEMPLATE_PAGES_FUNCTION_URL or SUPABASE_URL must be set")
        self.anon_key = anon_key if anon_key is not None else os.getenv("SUPABASE_ANON_KEY")
        self.access_token = access_token
        self.timeout = timeout
        self._client = http_client

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        bearer = self.access_token or self.anon_key
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        if self.anon_key:
            headers["apikey"] = self.anon_key
        return headers

    async def _call(
        self,
        action: str,
        template_id: Optional[str] = None,
        template_data: Optional[TemplateData] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"action": action}
        if template_id is not None:
            payload["templateId"] = template_id
        if template_data is not None:
            payload["templateData"] = ensure_json_serializable(template_data.to_dict())

        try:
            if self._client is not None:
                response = await self._client.post(self.function_url, json=payload, headers=self._headers())
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.function_url, json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            logger.error(f"Template store {action} request failed: {e}")
            raise TemplateStoreError("NETWORK_ERROR", f"Template store request failed: {e}", cause=e) from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.status_code >= 400 or not body.get("success"):
            error_code = body.get("errorCode") or "HTTP_ERROR"
            message = body.get("message") or f"Template store answered HTTP {response.status_code}"
            logger.warning(f"Template store {action} failed [{error_code}]: {message}")
            raise TemplateStoreError(error_code, message, status_code=response.status_code)

        return body

    @staticmethod
    def _parse_record(data: Dict[str, Any]) -> TemplateRecord:
        try:
            return TemplateRecord.model_validate(data)
        except ValidationError as e:
            raise TemplateStoreError("INVALID_TEMPLATE_RECORD", f"Stored template could not be parsed: {e}", cause=e)

    async def list(self) -> List[TemplateRecord]:
        body = await self._call("list")
        return [self._parse_record(item) for item in body.get("templates") or []]

    async def get(self, template_id: str) -> TemplateRecord:
        body = await self._call("get", template_id=template_id)
        return self._parse_record(body["template"])

    async def create(self, template_data: TemplateData) -> TemplateRecord:
        body = await self._call("create", template_data=template_data)
        record = self._parse_record(body["template"])
        logger.info(f"Saved template '{record.name}' ({record.id})")
        return record

    async def update(self, template_id: str, template_data: TemplateData) -> TemplateRecord:
        body = await self._call("update", template_id=template_id, template_data=template_data)
        return self._parse_record(body["template"])

    async def delete(self, template_id: str) -> None:
        await self._call("delete", template_id=template_id)
