"""HTTP fetcher for raw feed documents."""

import asyncio
import logging

from aiohttp import ClientError, ClientSession, ClientTimeout

from albumfeed.config.schema import DEFAULT_USER_AGENT
from albumfeed.utils.errors import FetchError, NetworkError

logger = logging.getLogger(__name__)

# Some feed hosts reject requests that do not look like a browser or reader.
DEFAULT_HEADERS = {
    "Accept": "application/rss+xml, application/atom+xml, application/xml;q=0.9, */*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


class FeedFetcher:
    """Fetches feed documents with a bounded timeout.

    One attempt per call; callers decide what to do with failures.

    Example:
        >>> async with FeedFetcher(timeout=10) as fetcher:
        ...     data = await fetcher.fetch("https://example.com/feed.xml")
    """

    def __init__(
        self,
        timeout: float = 10.0,
        user_agent: str = DEFAULT_USER_AGENT,
        session: ClientSession | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            timeout: Total per-request timeout in seconds
            user_agent: User-Agent header sent with every request
            session: Optional shared session; created lazily when omitted
        """
        self.timeout = timeout
        self.user_agent = user_agent
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "FeedFetcher":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the session if this fetcher created it."""
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def _get_session(self) -> ClientSession:
        if self._session is None:
            self._session = ClientSession()
        return self._session

    def build_headers(self, range_header: str | None = None) -> dict[str, str]:
        headers = {**DEFAULT_HEADERS, "User-Agent": self.user_agent}
        if range_header:
            headers["Range"] = range_header
        return headers

    async def fetch(self, url: str, range_header: str | None = None) -> bytes:
        """Fetch a document.

        Args:
            url: Document URL
            range_header: Optional ``Range`` header value passed through as-is

        Returns:
            Response body on any 2xx status

        Raises:
            FetchError: On a non-2xx status
            NetworkError: On timeout, DNS or connection failure
        """
        logger.debug(f"Fetching {url}")
        session = self._get_session()

        try:
            async with session.get(
                url,
                headers=self.build_headers(range_header),
                timeout=ClientTimeout(total=self.timeout),
                allow_redirects=True,
            ) as response:
                if not 200 <= response.status < 300:
                    raise FetchError(response.status, url)
                return await response.read()
        except asyncio.TimeoutError as e:
            raise NetworkError(url, f"timed out after {self.timeout}s") from e
        except ClientError as e:
            raise NetworkError(url, str(e) or type(e).__name__) from e
