"""Google Sheets API client for the phrasal verbs sheet."""

from typing import Optional
from urllib.parse import quote

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

import config
from coach.errors import ConfigurationError, TransportError
from coach.models import PhrasalVerb


class SheetsError(TransportError):
    """Raised when a Sheets request fails."""

    pass


class RetryableStatusError(Exception):
    """Raised for 429 and 5xx responses so tenacity can retry them."""

    pass


class SheetsClient:
    """Reads a cell range from one spreadsheet using an API key."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: Optional[str] = None,
        spreadsheet_id: Optional[str] = None,
        cell_range: str = config.GOOGLE_SHEETS_RANGE,
        base_url: str = config.SHEETS_API_URL,
    ):
        """
        Initialize the client.

        Raises:
            ConfigurationError: If the API key or the spreadsheet id is missing
        """
        self.api_key = api_key or config.GOOGLE_SHEETS_API_KEY
        self.spreadsheet_id = spreadsheet_id or config.GOOGLE_SHEETS_ID
        if not self.spreadsheet_id:
            raise ConfigurationError("GOOGLE_SHEETS_ID is not set")
        if not self.api_key:
            raise ConfigurationError("GOOGLE_SHEETS_API_KEY is not set")
        self.cell_range = cell_range
        self._http = http
        self._base_url = base_url.rstrip("/")

    @retry(
        stop=stop_after_attempt(config.HTTP_MAX_RETRIES),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((httpx.TimeoutException, RetryableStatusError)),
        reraise=True,
    )
    async def _get_values(self) -> dict:
        url = f"{self._base_url}/{self.spreadsheet_id}/values/{quote(self.cell_range)}"
        response = await self._http.get(
            url, params={"key": self.api_key}, timeout=config.HTTP_TIMEOUT
        )
        if response.status_code == 429 or response.status_code >= 500:
            raise RetryableStatusError(f"Sheets returned {response.status_code}")
        response.raise_for_status()
        return response.json()

    async def fetch_rows(self) -> list[list[str]]:
        """
        Fetch the configured range.

        Returns:
            Rows of cell strings; empty list when the range has no data
        """
        try:
            data = await self._get_values()
        except (httpx.HTTPError, RetryableStatusError) as e:
            raise SheetsError(f"Sheets request failed: {e}") from e
        return [[str(cell) for cell in row] for row in data.get("values", [])]


def rows_to_phrasal_verbs(rows: list[list[str]], skip_header: bool = True) -> list[PhrasalVerb]:
    """
    Read (verb, definition) pairs from sheet rows.

    Rows without a verb in the first cell are dropped.
    """
    if skip_header:
        rows = rows[1:]
    verbs = []
    for row in rows:
        if not row or not row[0].strip():
            continue
        definition = row[1].strip() if len(row) > 1 else ""
        verbs.append(PhrasalVerb(verb=row[0].strip(), definition=definition, source="sheets"))
    return verbs
