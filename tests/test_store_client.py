import json

import httpx
import pytest

from api.requests.api_template_pages import get_template_repository
from api.template_server import app
from services.page_templates.editor import prepare_template_data
from services.page_templates.exceptions import TemplateStoreError
from services.page_templates.models import PageConfig, TemplateRecord
from services.page_templates.store import TemplatePagesClient, default_function_url
from tests.test_template_pages_api import PAGE_CONFIG, InMemoryTemplateRepository

FUNCTION_URL = "http://testserver/api/template-pages"


@pytest.fixture
def repository():
    return InMemoryTemplateRepository(users={"token-abc": "user-1"})


@pytest.fixture
def store(repository):
    app.dependency_overrides[get_template_repository] = lambda: repository
    http_client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")
    yield TemplatePagesClient(
        function_url=FUNCTION_URL,
        anon_key="anon-key",
        access_token="token-abc",
        http_client=http_client,
    )
    app.dependency_overrides.clear()


def template_data(name="Intro"):
    return prepare_template_data(name, "Team intro", PageConfig.model_validate(PAGE_CONFIG))


def mock_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestTemplatePagesClient:
    @pytest.mark.asyncio
    async def test_crud_round_trip(self, store):
        created = await store.create(template_data())

        assert isinstance(created, TemplateRecord)
        assert created.user_id == "user-1"
        assert created.page_config.to_dict() == PAGE_CONFIG

        fetched = await store.get(created.id)
        assert fetched.page_config == created.page_config

        updated = await store.update(created.id, template_data(name="Renamed"))
        assert updated.name == "Renamed"

        listed = await store.list()
        assert [t.id for t in listed] == [created.id]

        await store.delete(created.id)
        assert await store.list() == []

    @pytest.mark.asyncio
    async def test_not_found_raises_store_error(self, store):
        with pytest.raises(TemplateStoreError) as exc_info:
            await store.get("missing")

        assert exc_info.value.error_code == "TEMPLATE_NOT_FOUND"
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_sends_action_payload_and_auth_headers(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["body"] = json.loads(request.content)
            seen["headers"] = request.headers
            return httpx.Response(200, json={"success": True, "message": "Template deleted successfully"})

        store = TemplatePagesClient(function_url=FUNCTION_URL, anon_key="anon-key", http_client=mock_client(handler))
        await store.delete("t1")

        assert seen["body"] == {"action": "delete", "templateId": "t1"}
        assert seen["headers"]["authorization"] == "Bearer anon-key"
        assert seen["headers"]["apikey"] == "anon-key"

    @pytest.mark.asyncio
    async def test_success_false_raises_even_on_200(self):
        def handler(request):
            return httpx.Response(200, json={"success": False, "errorCode": "INVALID_ACTION", "message": "nope"})

        store = TemplatePagesClient(function_url=FUNCTION_URL, anon_key="k", http_client=mock_client(handler))

        with pytest.raises(TemplateStoreError) as exc_info:
            await store.list()
        assert exc_info.value.error_code == "INVALID_ACTION"

    @pytest.mark.asyncio
    async def test_non_json_error_response(self):
        def handler(request):
            return httpx.Response(502, text="Bad gateway")

        store = TemplatePagesClient(function_url=FUNCTION_URL, anon_key="k", http_client=mock_client(handler))

        with pytest.raises(TemplateStoreError) as exc_info:
            await store.list()
        assert exc_info.value.error_code == "HTTP_ERROR"
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        store = TemplatePagesClient(function_url=FUNCTION_URL, anon_key="k", http_client=mock_client(handler))

        with pytest.raises(TemplateStoreError) as exc_info:
            await store.list()
        assert exc_info.value.error_code == "NETWORK_ERROR"

    @pytest.mark.asyncio
    async def test_unparseable_record(self):
        def handler(request):
            return httpx.Response(200, json={"success": True, "template": {"id": "t1", "name": "x"}})

        store = TemplatePagesClient(function_url=FUNCTION_URL, anon_key="k", http_client=mock_client(handler))

        with pytest.raises(TemplateStoreError) as exc_info:
            await store.get("t1")
        assert exc_info.value.error_code == "INVALID_TEMPLATE_RECORD"


class TestFunctionUrl:
    def test_override_wins(self, monkeypatch):
        monkeypatch.setenv("TEMPLATE_PAGES_FUNCTION_URL", "https://functions.test/template-pages")
        monkeypatch.setenv("SUPABASE_URL", "https://project.supabase.co")
        assert default_function_url() == "https://functions.test/template-pages"

    def test_derived_from_supabase_url(self, monkeypatch):
        monkeypatch.delenv("TEMPLATE_PAGES_FUNCTION_URL", raising=False)
        monkeypatch.setenv("SUPABASE_URL", "https://project.supabase.co/")
        assert default_function_url() == "https://project.supabase.co/functions/v1/template-pages"

    def test_missing_configuration(self, monkeypatch):
        monkeypatch.delenv("TEMPLATE_PAGES_FUNCTION_URL", raising=False)
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        with pytest.raises(ValueError):
            TemplatePagesClient()
