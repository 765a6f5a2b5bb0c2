"""Notion API client for study topic pages."""

from typing import NamedTuple, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

import config
from coach.errors import ConfigurationError, TransportError
from coach.logger import get_logger
from coach.models import SubPage

HEADING_TYPES = {"heading_1", "heading_2", "heading_3"}


class TopicCandidate(NamedTuple):
    id: str
    title: str
    blocks: list[dict]


class NotionError(TransportError):
    """Raised when a Notion request fails."""

    pass


class RetryableStatusError(Exception):
    """Raised for 429 and 5xx responses so tenacity can retry them."""

    pass


class NotionClient:
    """Thin async wrapper over the Notion blocks and pages endpoints."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        token: Optional[str] = None,
        base_url: str = config.NOTION_API_URL,
    ):
        """
        Initialize the client.

        Args:
            http: Shared async HTTP client
            token: Notion integration token. Defaults to NOTION_KEY.
            base_url: API root

        Raises:
            ConfigurationError: If no token is configured
        """
        token = token or config.NOTION_KEY
        if not token:
            raise ConfigurationError("NOTION_KEY is not set")
        self._http = http
        self._base_url = base_url.rstrip("/")
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Notion-Version": config.NOTION_API_VERSION,
        }

    @retry(
        stop=stop_after_attempt(config.HTTP_MAX_RETRIES),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((httpx.TimeoutException, RetryableStatusError)),
        reraise=True,
    )
    async def _get_json(self, path: str, params: Optional[dict] = None) -> dict:
        response = await self._http.get(
            f"{self._base_url}{path}",
            headers=self._headers,
            params=params,
            timeout=config.HTTP_TIMEOUT,
        )
        if response.status_code == 429 or response.status_code >= 500:
            raise RetryableStatusError(f"Notion returned {response.status_code} for {path}")
        response.raise_for_status()
        return response.json()

    async def _request(self, path: str, params: Optional[dict] = None) -> dict:
        try:
            return await self._get_json(path, params)
        except (httpx.HTTPError, RetryableStatusError) as e:
            raise NotionError(f"Notion request failed ({path}): {e}") from e

    async def list_children(self, block_id: str) -> list[dict]:
        """
        List every child block of a block or page, following pagination.

        Args:
            block_id: Block or page id

        Returns:
            Raw Notion block objects
        """
        blocks: list[dict] = []
        params: dict = {"page_size": 100}
        while True:
            data = await self._request(f"/blocks/{block_id}/children", params)
            blocks.extend(data.get("results", []))
            if not data.get("has_more") or not data.get("next_cursor"):
                return blocks
            params = {"page_size": 100, "start_cursor": data["next_cursor"]}

    async def page_url(self, page_id: str) -> str:
        data = await self._request(f"/pages/{page_id}")
        return data.get("url", "")


def child_page_title(block: dict) -> str:
    return block.get("child_page", {}).get("title") or "Untitled"


def has_heading(blocks: list[dict]) -> bool:
    return any(b.get("type") in HEADING_TYPES for b in blocks)


def sub_pages(blocks: list[dict]) -> list[SubPage]:
    return [
        SubPage(id=b["id"], title=child_page_title(b))
        for b in blocks
        if b.get("type") == "child_page"
    ]


def blocks_to_text(blocks: list[dict]) -> str:
    """
    Flatten Notion blocks to plain text, one line per block.

    Child pages become ``[Sub-section: <title>]`` markers; blocks without rich
    text are skipped.
    """
    lines = []
    for block in blocks:
        block_type = block.get("type")
        if block_type == "child_page":
            lines.append(f"\n[Sub-section: {child_page_title(block)}]\n")
            continue
        body = block.get(block_type) or {}
        rich_text = body.get("rich_text") if isinstance(body, dict) else None
        if rich_text is None:
            continue
        lines.append("".join(part.get("plain_text", "") for part in rich_text))
    return "\n".join(lines)


async def find_topic_pages(
    notion: NotionClient,
    root_id: str,
    ignored_titles: set[str],
    max_depth: int = config.NOTION_MAX_DEPTH,
) -> list[TopicCandidate]:
    """
    Recursively collect child pages that contain at least one heading.

    Pages with an ignored title are skipped together with everything below them.

    Args:
        notion: Notion client
        root_id: Page id the search starts from
        ignored_titles: Titles never offered as topics
        max_depth: Maximum nesting depth to descend

    Returns:
        A TopicCandidate for every page with content
    """
    logger = get_logger()
    found: list[TopicCandidate] = []

    async def collect(blocks: list[dict], depth: int) -> None:
        if depth > max_depth:
            return
        for block in blocks:
            if block.get("type") != "child_page":
                continue
            title = child_page_title(block)
            if title in ignored_titles:
                logger.debug(f"Skipping ignored page: {title}")
                continue
            page_blocks = await notion.list_children(block["id"])
            if has_heading(page_blocks):
                found.append(TopicCandidate(block["id"], title, page_blocks))
            await collect(page_blocks, depth + 1)

    await collect(await notion.list_children(root_id), 0)
    logger.info(f"Found {len(found)} Notion pages with content")
    return found
