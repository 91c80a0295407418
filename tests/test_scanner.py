import pytest

from services.page_templates.exceptions import ScanFailure
from services.page_templates.models import ElementMode, TokenType
from services.page_templates.scanner import ScanState, TemplateScanner
from tests.conftest import FakeHostCanvas, host_image_rect, host_shape, host_text


def sample_page():
    return {
        "type": "absolute",
        "elements": [
            host_text("Welcome to {{company_name}}"),
            {"type": "group", "width": 10},
            host_shape(),
            host_image_rect(),
            host_text("{{company_name}} has {{employeeCount}} people"),
        ],
    }


def without_ids(config):
    data = config.to_dict()
    for element in data["elements"]:
        element.pop("id")
    return data


class TestTemplateScanner:
    @pytest.mark.asyncio
    async def test_scan_classifies_and_defines_tokens(self, timeline):
        scanner = TemplateScanner(FakeHostCanvas(timeline, page=sample_page()))

        config = await scanner.scan_current_page_as_template()

        assert scanner.state == ScanState.DONE
        assert [e.type for e in config.elements] == ["text", "shape", "image", "text"]
        assert [e.element_mode for e in config.elements] == [
            ElementMode.DYNAMIC, ElementMode.STATIC, ElementMode.STATIC, ElementMode.DYNAMIC,
        ]
        assert list(config.token_definitions) == ["company_name", "employeeCount"]
        assert config.token_definitions["company_name"].label == "Company Name"
        assert config.token_definitions["employeeCount"].label == "Employee Count"
        assert config.token_definitions["employeeCount"].type == TokenType.STRING
        assert config.token_definitions["company_name"].default == ""

    @pytest.mark.asyncio
    async def test_dropped_elements_consume_id_slot(self, timeline):
        scanner = TemplateScanner(FakeHostCanvas(timeline, page=sample_page()))

        config = await scanner.scan_current_page_as_template()

        assert [e.id for e in config.elements] == ["elem_000", "elem_002", "elem_003", "elem_004"]

    @pytest.mark.asyncio
    async def test_every_dynamic_token_is_defined(self, timeline):
        scanner = TemplateScanner(FakeHostCanvas(timeline, page=sample_page()))

        config = await scanner.scan_current_page_as_template()

        for element in config.dynamic_elements:
            assert set(element.tokens) <= set(config.token_definitions)

    @pytest.mark.asyncio
    async def test_scanning_twice_is_stable(self, timeline):
        scanner = TemplateScanner(FakeHostCanvas(timeline, page=sample_page()))

        first = await scanner.scan_current_page_as_template()
        second = await scanner.scan_current_page_as_template()

        assert without_ids(first) == without_ids(second)

    @pytest.mark.asyncio
    async def test_tokenised_embed_url_defines_token(self, timeline):
        page = {
            "type": "absolute",
            "elements": [{"type": "embed", "top": 0, "left": 0, "width": 400, "url": "https://youtu.be/{{video_id}}"}],
        }
        scanner = TemplateScanner(FakeHostCanvas(timeline, page=page))

        config = await scanner.scan_current_page_as_template()

        embed = config.elements[0]
        assert embed.element_mode == ElementMode.DYNAMIC
        assert embed.tokens == ["video_id"]
        assert config.token_definitions["video_id"].label == "Video Id"
        assert config.token_definitions["video_id"].type == TokenType.STRING

    @pytest.mark.asyncio
    async def test_element_raising_unexpectedly_is_dropped(self, timeline, monkeypatch):
        scanner = TemplateScanner(FakeHostCanvas(timeline, page=sample_page()))
        original = scanner.serializer.to_template_element

        def flaky(host_element, index):
            if index == 2:
                raise RuntimeError("host accessor exploded")
            return original(host_element, index)

        monkeypatch.setattr(scanner.serializer, "to_template_element", flaky)

        config = await scanner.scan_current_page_as_template()

        assert [e.id for e in config.elements] == ["elem_000", "elem_003", "elem_004"]

    @pytest.mark.asyncio
    async def test_page_without_element_access_fails(self, timeline):
        scanner = TemplateScanner(FakeHostCanvas(timeline, page={"type": "unsupported"}))

        with pytest.raises(ScanFailure) as exc_info:
            await scanner.scan_current_page_as_template()

        assert "unsupported" in str(exc_info.value)
        assert scanner.state == ScanState.FAILED
        assert scanner.last_error is exc_info.value

    @pytest.mark.asyncio
    async def test_session_open_failure_is_scan_failure(self, timeline):
        host = FakeHostCanvas(timeline, open_error=RuntimeError("no design open"))
        scanner = TemplateScanner(host)

        with pytest.raises(ScanFailure) as exc_info:
            await scanner.scan_current_page_as_template()

        assert isinstance(exc_info.value.cause, RuntimeError)
        assert scanner.state == ScanState.FAILED

    @pytest.mark.asyncio
    async def test_non_enumerable_elements_fail(self, timeline):
        scanner = TemplateScanner(FakeHostCanvas(timeline, page={"type": "absolute", "elements": 42}))

        with pytest.raises(ScanFailure):
            await scanner.scan_current_page_as_template()
