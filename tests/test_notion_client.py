import httpx
import pytest
from tenacity import wait_none

from coach.errors import ConfigurationError
from coach.notion_client import NotionClient, NotionError, blocks_to_text, has_heading

pytestmark = pytest.mark.unit


def client_for(handler) -> tuple[httpx.AsyncClient, NotionClient]:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return http, NotionClient(http, token="secret")


@pytest.fixture
def no_wait(monkeypatch):
    monkeypatch.setattr(NotionClient._get_json.retry, "wait", wait_none())


class TestNotionClient:
    def test_requires_token(self):
        """Should refuse to build a client without a token."""
        with pytest.raises(ConfigurationError):
            NotionClient(httpx.AsyncClient())

    @pytest.mark.asyncio
    async def test_follows_pagination(self):
        """Should request the next cursor until has_more is false."""
        cursors = []

        def handler(request):
            assert request.headers["Authorization"] == "Bearer secret"
            assert request.headers["Notion-Version"]
            cursor = request.url.params.get("start_cursor")
            cursors.append(cursor)
            if cursor is None:
                return httpx.Response(
                    200, json={"results": [{"id": "1"}], "has_more": True, "next_cursor": "c2"}
                )
            return httpx.Response(200, json={"results": [{"id": "2"}], "has_more": False})

        http, notion = client_for(handler)
        async with http:
            blocks = await notion.list_children("page")

        assert [b["id"] for b in blocks] == ["1", "2"]
        assert cursors == [None, "c2"]

    @pytest.mark.asyncio
    async def test_retries_server_errors(self, no_wait):
        """Should retry a 503 and return the next successful response."""
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(503)
            return httpx.Response(200, json={"url": "https://notion.so/page"})

        http, notion = client_for(handler)
        async with http:
            assert await notion.page_url("page") == "https://notion.so/page"
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, no_wait):
        """Should fail at once on a 4xx response."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(401, json={"message": "unauthorized"})

        http, notion = client_for(handler)
        async with http:
            with pytest.raises(NotionError):
                await notion.list_children("page")
        assert len(calls) == 1


class TestBlocksToText:
    def test_plain_text_projection(self):
        """Should join rich text per block and mark sub-pages."""
        blocks = [
            {"type": "heading_1", "heading_1": {"rich_text": [{"plain_text": "Modal "}, {"plain_text": "verbs"}]}},
            {"type": "divider", "divider": {}},
            {"type": "child_page", "child_page": {"title": "Deduction"}},
            {"type": "bulleted_list_item", "bulleted_list_item": {"rich_text": [{"plain_text": "must have"}]}},
        ]

        text = blocks_to_text(blocks)

        assert text == "Modal verbs\n\n[Sub-section: Deduction]\n\nmust have"
        assert has_heading(blocks)
        assert not has_heading(blocks[1:])
