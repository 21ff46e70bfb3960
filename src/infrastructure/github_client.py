import aiohttp
import asyncio
import json
import logging
import os
from typing import Optional

from src.domain.exceptions import ParseError, RemoteUnavailable, TransportError
from src.domain.models import GitHubFields
from src.infrastructure.acl import GitHubTranslator

logger = logging.getLogger(__name__)

CLIENT_NAME = "package-metadata-sync"
CLIENT_VERSION = "0.1.0"

USERNAME_ENV = "PKGSYNC_GITHUB_USERNAME"
ACCESSTOKEN_ENV = "PKGSYNC_GITHUB_ACCESSTOKEN"

REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=60, connect=10)


class GitHubRestClient:
    """
    Client for the GitHub REST repository endpoint.
    Sends exactly one request per lookup; retrying is left to the next scheduled pass.
    """

    def __init__(self, username: Optional[str] = None, token: Optional[str] = None):
        self.headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": f"{CLIENT_NAME}/{CLIENT_VERSION}",
        }
        self.api_url = "https://api.github.com"
        username = username or ""
        token = token or ""
        # Without any credentials the request is sent anonymously
        self.auth = aiohttp.BasicAuth(username, token) if (username or token) else None

    @classmethod
    def from_env(cls) -> "GitHubRestClient":
        return cls(username=os.getenv(USERNAME_ENV), token=os.getenv(ACCESSTOKEN_ENV))

    async def fetch_repository(self, session: aiohttp.ClientSession, path: str) -> GitHubFields:
        """
        Fetches the metadata of a single repository.

        Args:
            session: The aiohttp session owned by the current pass.
            path: Repository identifier in ``owner/repo`` form.

        Raises:
            TransportError: The API could not be reached.
            RemoteUnavailable: The API answered with a status other than 200.
            ParseError: The body is not a JSON object.
        """
        url = f"{self.api_url}/repos/{path}"
        try:
            async with session.get(url, headers=self.headers, auth=self.auth, timeout=REQUEST_TIMEOUT) as response:
                if response.status != 200:
                    raise RemoteUnavailable(response.status, path)
                body = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"Request to {url} failed: {e}") from e

        try:
            data = json.loads(body)
        except ValueError as e:
            raise ParseError(f"Invalid JSON from {url}: {e}") from e

        if not isinstance(data, dict):
            raise ParseError(f"Expected a JSON object from {url}, got {type(data).__name__}.")

        logger.debug(f"Fetched GitHub data for {path}.")
        return GitHubTranslator.to_domain(data)
