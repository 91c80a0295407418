"""
Template pages action endpoint.

A single POST endpoint dispatching on `action` (list, get, create, update,
delete) over the app_template_pages table.
"""
import logging
from typing import Dict, Any, List, Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from services.page_templates.models import PageConfig
from utils import supabase as supabase_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["template-pages"])

SUPPORTED_ACTIONS = ("list", "get", "create", "update", "delete")
TEMPLATE_COLUMNS = ("name", "description", "preview_image_url", "page_config")


# Request/Response Models
class TemplatePagesRequest(BaseModel):
    """Action request for the template store."""
    model_config = ConfigDict(populate_by_name=True)

    action: Optional[str] = Field(None, description="One of list, get, create, update, delete")
    template_id: Optional[str] = Field(None, alias="templateId")
    template_data: Optional[Dict[str, Any]] = Field(None, alias="templateData")


class TemplatePagesResponse(BaseModel):
    """Action response; only the fields relevant to the action are sent."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    template: Optional[Dict[str, Any]] = None
    templates: Optional[List[Dict[str, Any]]] = None
    message: Optional[str] = None
    error_code: Optional[str] = Field(None, alias="errorCode")


class TemplatePageRepository:
    """Supabase-backed storage for template pages"""

    def list(self) -> List[Dict[str, Any]]:
        return supabase_store.list_template_pages()

    def get(self, template_id: str) -> Optional[Dict[str, Any]]:
        return supabase_store.get_template_page(template_id)

    def create(self, template_data: Dict[str, Any], user_id: Optional[str]) -> Dict[str, Any]:
        return supabase_store.create_template_page(template_data, user_id=user_id)

    def update(self, template_id: str, template_data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return supabase_store.update_template_page(template_id, template_data)

    def delete(self, template_id: str) -> None:
        supabase_store.delete_template_page(template_id)

    def resolve_user_id(self, token: Optional[str]) -> Optional[str]:
        return supabase_store.get_user_id_for_token(token)


def get_template_repository() -> TemplatePageRepository:
    return TemplatePageRepository()


async def get_auth_header(authorization: Optional[str] = Header(None)) -> Optional[str]:
    """Extract JWT token from Authorization header"""
    if authorization and authorization.startswith("Bearer "):
        return authorization.replace("Bearer ", "")
    return None


def _respond(status_code: int, **fields) -> JSONResponse:
    body = TemplatePagesResponse(**fields)
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True, exclude_none=True))


def _error(status_code: int, error_code: str, message: str) -> JSONResponse:
    return _respond(status_code, success=False, error_code=error_code, message=message)


def _template_columns(template_data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: template_data[key] for key in TEMPLATE_COLUMNS if key in template_data}


def _validate_page_config(template_data: Dict[str, Any]) -> Optional[str]:
    try:
        PageConfig.model_validate(template_data["page_config"])
    except ValidationError as e:
        return f"Invalid page_config: {e.error_count()} validation error(s)"
    return None


# Endpoints
@router.post("/template-pages")
async def template_pages(
    request: TemplatePagesRequest,
    token: Optional[str] = Depends(get_auth_header),
    repository: TemplatePageRepository = Depends(get_template_repository)
):
    """Handle CRUD actions for saved page templates."""
    action = request.action
    template_id = request.template_id
    template_data = request.template_data

    try:
        if action == "list":
            return _respond(200, success=True, templates=repository.list())

        if action == "get":
            if not template_id:
                return _error(400, "MISSING_TEMPLATE_ID", "Template ID is required for get action")
            template = repository.get(template_id)
            if template is None:
                return _error(404, "TEMPLATE_NOT_FOUND", "Template not found")
            return _respond(200, success=True, template=template)

        if action == "create":
            if not template_data:
                return _error(400, "MISSING_TEMPLATE_DATA", "Template data is required for create action")
            if not template_data.get("name") or not template_data.get("page_config"):
                return _error(400, "INVALID_TEMPLATE_DATA", "Template name and page_config are required")
            invalid = _validate_page_config(template_data)
            if invalid:
                return _error(400, "INVALID_TEMPLATE_DATA", invalid)

            user_id = repository.resolve_user_id(token)
            template = repository.create(_template_columns(template_data), user_id)
            logger.info(f"Created template {template.get('id')} for user {user_id or 'anonymous'}")
            return _respond(201, success=True, template=template)

        if action == "update":
            if not template_id or not template_data:
                return _error(400, "MISSING_DATA", "Template ID and data are required for update action")
            if template_data.get("page_config"):
                invalid = _validate_page_config(template_data)
                if invalid:
                    return _error(400, "INVALID_TEMPLATE_DATA", invalid)
            template = repository.update(template_id, _template_columns(template_data))
            if template is None:
                return _error(
                    404, "TEMPLATE_NOT_FOUND",
                    "Template not found or you do not have permission to update it"
                )
            return _respond(200, success=True, template=template)

        if action == "delete":
            if not template_id:
                return _error(400, "MISSING_TEMPLATE_ID", "Template ID is required for delete action")
            repository.delete(template_id)
            return _respond(200, success=True, message="Template deleted successfully")

        return _error(
            400, "INVALID_ACTION",
            f"Invalid action: {action}. Supported actions: {', '.join(SUPPORTED_ACTIONS)}"
        )
    except Exception as e:
        logger.error(f"Error in template-pages {action}: {e}")
        return _error(500, "INTERNAL_ERROR", str(e) or "Unknown error occurred")
