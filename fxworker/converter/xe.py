"""HTTP rate provider scraping the xe.com currency converter page."""

import asyncio
import logging

import httpx
from bs4 import BeautifulSoup

from fxworker.converter.rates import format_rate
from fxworker.exceptions import RateFetchError

logger = logging.getLogger(__name__)

RESULT_SELECTOR = ".uccRes .rightCol"


def parse_rate_html(html: str) -> str:
    """
    Extract the converted amount of one unit from a converter result page.

    Raises:
        RateFetchError: If the result cell is missing or holds no rate.
    """
    soup = BeautifulSoup(html, "html.parser")
    cell = soup.select_one(RESULT_SELECTOR)
    if cell is None:
        raise RateFetchError("Get exchange rate error: result cell not found")
    return format_rate(cell.get_text().strip())


class XeRateProvider:
    """Queries one unit of ``from`` converted to ``to`` and scrapes the result."""

    def __init__(
        self,
        host: str,
        path: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.url = f"http://{host}{path}"
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    async def query(self, from_currency: str, to_currency: str) -> str:
        """
        Get the exchange rate as a two-decimal string.

        Raises:
            RateFetchError: On network errors, error responses, unusable markup or
                when the whole request takes longer than ``timeout``.
        """
        params = {"Amount": 1, "From": from_currency, "To": to_currency}

        try:
            async with asyncio.timeout(self.timeout):
                response = await self._client.get(self.url, params=params)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise RateFetchError(f"Get exchange rate error: {e}") from e
        except TimeoutError as e:
            raise RateFetchError(
                f"Get exchange rate error: no response within {self.timeout}s"
            ) from e

        rate = parse_rate_html(response.text)
        logger.debug(
            "Rate page parsed",
            extra={"from": from_currency, "to": to_currency, "rate": rate},
        )
        return rate

    async def close(self) -> None:
        await self._client.aclose()
