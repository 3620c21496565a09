"""Serper.dev search client used by the ``get_quote`` tool.

Features:
- httpx.AsyncClient with a 10 second timeout
- Retries with exponential backoff (1s, 2s, 4s) on network errors and 5xx
- Quote extraction from organic search snippets
- Request/response logging with the API key masked
"""

import asyncio
import logging
import re
from typing import Any

import httpx

from mcp_quotes import __version__
from mcp_quotes.observability.logging import log_api_request, log_api_response, log_error
from mcp_quotes.server.errors import SerperApiError, SerperConfigurationError

logger = logging.getLogger(__name__)

SERPER_BASE_URL = "https://google.serper.dev"
SEARCH_PATH = "/search"
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 1.0

MIN_QUOTE_LENGTH = 10
MAX_QUOTE_LENGTH = 500

# Tried in order against every snippet; each contributes at most one candidate
QUOTE_PATTERNS = (
    re.compile(r'["“]([^"“”]+)["”]'),  # "double" or “curly double”
    re.compile(r"['‘]([^'‘’]+)['’]"),  # 'single' or ‘curly single’
    re.compile(r"^([^.!?]+[.!?])"),  # first sentence
)
_SURROUNDING_QUOTES = "\"'“”‘’"


def build_search_query(person: str, topic: str | None = None) -> str:
    """Search query for quotes by ``person``, optionally about ``topic``."""
    if topic and topic.strip():
        return f'"{person}" quotes about "{topic.strip()}"'
    return f'"{person}" quotes famous sayings'


def extract_quotes(response: dict[str, Any], limit: int) -> list[str]:
    """
    Pull up to ``limit`` distinct quotes out of organic result snippets.

    Candidates shorter than 11 or longer than 499 characters are skipped;
    duplicates are detected case-insensitively.
    """
    found: list[str] = []
    seen: set[str] = set()

    for result in response.get("organic") or []:
        if len(found) >= limit:
            break
        snippet = result.get("snippet") or ""

        for pattern in QUOTE_PATTERNS:
            match = pattern.search(snippet)
            if match is None:
                continue
            candidate = match.group(1).strip().strip(_SURROUNDING_QUOTES).strip()
            if not MIN_QUOTE_LENGTH < len(candidate) < MAX_QUOTE_LENGTH:
                continue
            key = candidate.lower()
            if key in seen:
                continue

            seen.add(key)
            found.append(candidate)
            logger.debug(
                "Quote extracted from search results",
                extra={"source": result.get("title"), "quote_length": len(candidate)},
            )
            if len(found) >= limit:
                break

    return found


def format_quotes(quotes: list[str]) -> str:
    """One quote as bare text; several as a numbered list separated by blank lines."""
    if len(quotes) == 1:
        return quotes[0]
    return "\n\n".join(f'{i}. "{quote}"' for i, quote in enumerate(quotes, start=1))


def fallback_message(person: str, topic: str | None, number_of_quotes: int) -> str:
    requested = "a quote" if number_of_quotes == 1 else f"{number_of_quotes} quotes"
    if topic:
        return (
            f"Unable to find {requested} from {person} about {topic}. "
            "Try a different topic or check the spelling."
        )
    return (
        f"Unable to find {requested} from {person}. "
        "Please verify the person's name or try a more famous figure."
    )


class SerperService:
    """Async client for the Serper.dev search API.

    Usage:
        async with SerperService(api_key) as serper:
            text = await serper.get_quote("Mark Twain", topic="life", number_of_quotes=3)
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = SERPER_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = DEFAULT_BASE_DELAY,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: Serper.dev API key
            base_url: API base URL
            timeout: Per-request timeout in seconds
            max_retries: Retries after the first attempt
            base_delay: First backoff delay; doubles on each retry
            transport: Optional httpx transport (tests use httpx.MockTransport)

        Raises:
            SerperConfigurationError: If the API key is missing or blank
        """
        if not api_key or not isinstance(api_key, str) or not api_key.strip():
            msg = "Serper API key is required and must be a non-empty string"
            raise SerperConfigurationError(msg)

        self.base_url = base_url
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "X-API-KEY": api_key.strip(),
                "Content-Type": "application/json",
                "User-Agent": f"MCP-Quotes-Server/{__version__}",
            },
        )

    async def __aenter__(self) -> "SerperService":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _calculate_backoff(self, attempt: int) -> float:
        # Exponential: 1s, 2s, 4s, ...
        return self.base_delay * (2**attempt)

    async def _post_with_retry(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        """POST with retries on transport errors and 5xx responses."""
        url = f"{self.base_url}{path}"

        for attempt in range(self.max_retries + 1):
            log_api_request(url, "POST", payload)
            try:
                response = await self._client.post(path, json=payload)
            except httpx.TransportError as e:
                if attempt >= self.max_retries:
                    raise
                logger.warning(
                    "API request retry (attempt %s/%s): %s", attempt + 1, self.max_retries, e
                )
            else:
                log_api_response(url, response.status_code, len(response.content))
                if response.status_code < 500 or attempt >= self.max_retries:
                    response.raise_for_status()
                    return response
                logger.warning(
                    "API request retry (attempt %s/%s): HTTP %s",
                    attempt + 1,
                    self.max_retries,
                    response.status_code,
                )

            await asyncio.sleep(self._calculate_backoff(attempt))

        msg = f"Request to {url} failed with no response"
        raise SerperApiError(msg)

    async def get_quote(
        self, person: str, topic: str | None = None, number_of_quotes: int = 1
    ) -> str:
        """Retrieve one or more quotes by ``person``.

        Args:
            person: Who said it
            topic: Optional subject filter
            number_of_quotes: How many quotes to return (1-10)

        Returns:
            The quote text, a numbered list of quotes, or a fallback message

        Raises:
            SerperConfigurationError: If the parameters are invalid
            SerperApiError: If the API request fails
        """
        if not person or not isinstance(person, str) or not person.strip():
            msg = "Person parameter is required and must be a non-empty string"
            raise SerperConfigurationError(msg)
        if topic is not None and not isinstance(topic, str):
            msg = "Topic parameter must be a string when provided"
            raise SerperConfigurationError(msg)
        if (
            isinstance(number_of_quotes, bool)
            or not isinstance(number_of_quotes, int)
            or not 1 <= number_of_quotes <= 10
        ):
            msg = "Number of quotes parameter must be an integer between 1 and 10"
            raise SerperConfigurationError(msg)

        person = person.strip()
        query = build_search_query(person, topic)
        payload = {
            "q": query,
            "gl": "us",
            "hl": "en",
            "num": max(10, number_of_quotes * 2),
        }
        context = {"person": person, "topic": topic, "number_of_quotes": number_of_quotes}

        logger.info("Starting quote search", extra={**context, "search_query": query})

        try:
            response = await self._post_with_retry(SEARCH_PATH, payload)
            data = response.json()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            message = _api_error_message(e.response) or str(e)
            log_error(logger, "Serper API request failed", e, {**context, "status_code": status_code})
            msg = f"Failed to retrieve quote from Serper API: {message}"
            raise SerperApiError(msg, status_code=status_code, response=e.response) from e
        except httpx.HTTPError as e:
            log_error(logger, "Serper API request failed", e, context)
            msg = f"Failed to retrieve quote from Serper API: {e}"
            raise SerperApiError(msg) from e
        except ValueError as e:
            log_error(logger, "Serper API returned invalid JSON", e, context)
            msg = f"Unexpected error during quote retrieval: {e}"
            raise SerperApiError(msg, status_code=response.status_code) from e

        if not data or not isinstance(data, dict):
            msg = "Empty response received from Serper API"
            raise SerperApiError(msg, status_code=200)

        quotes = extract_quotes(data, number_of_quotes)
        if not quotes:
            logger.warning(
                "No suitable quotes found in search results",
                extra={**context, "organic_results": len(data.get("organic") or [])},
            )
            return fallback_message(person, topic, number_of_quotes)

        logger.info(
            "Quote search completed successfully",
            extra={**context, "found_count": len(quotes)},
        )
        return format_quotes(quotes)


def _api_error_message(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    return None


__all__ = [
    "SerperService",
    "build_search_query",
    "extract_quotes",
    "fallback_message",
    "format_quotes",
]
