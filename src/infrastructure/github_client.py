import aiohttp
import asyncio
import logging
import random
from typing import Any, Dict, Optional, Sequence

from src.domain.exceptions import GitHubApiException, OrgSessionException
from src.domain.models import OrgSession

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=60, connect=10)
MAX_RETRIES = 5
DEFAULT_RATE_LIMIT_WAIT = 60


class GitHubRestClient:
    """
    Client for the GitHub REST API.
    Handles authentication, pull request management and retrying on rate limits or server errors.
    """

    def __init__(self, token: Optional[str], api_url: str = GITHUB_API_URL):
        self.token = token
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "User-Agent": "nuget-dependency-updater",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        self.api_url = api_url.rstrip("/")

    async def request(
        self,
        session: aiohttp.ClientSession,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        Sends a single REST call, retrying on rate limiting and transient failures.

        Returns:
            The decoded JSON body, or None for empty responses.
        """
        url = f"{self.api_url}{path}"

        for attempt in range(MAX_RETRIES):
          try:
            async with session.request(
                method, url, json=json, params=params, headers=self.headers, timeout=REQUEST_TIMEOUT
            ) as response:
                # Primary and secondary rate limits both surface as 403/429
                if response.status in {403, 429} and (
                    response.headers.get("Retry-After") or response.headers.get("X-RateLimit-Remaining") == "0"
                ):
                  retry_after = response.headers.get("Retry-After")
                  sleep_time = int(retry_after) if retry_after else DEFAULT_RATE_LIMIT_WAIT
                  logger.warning(f"Rate limited ({response.status}) on {method} {path}. Sleeping {sleep_time}s...")
                  await asyncio.sleep(sleep_time)
                  continue

                if response.status in {500, 502, 503, 504}:
                  sleep_time = (2 ** attempt) + random.uniform(0, 2)
                  logger.warning(
                      f"Server error ({response.status}) on {method} {path}, "
                      f"retrying in {sleep_time:.1f}s (attempt {attempt + 1}/{MAX_RETRIES})..."
                  )
                  await asyncio.sleep(sleep_time)
                  continue

                if response.status >= 400:
                    raise GitHubApiException(response.status, await response.text())

                if response.status == 204:
                    return None
                return await response.json()

          except (aiohttp.ClientError, asyncio.TimeoutError) as e:
              sleep_time = (2 ** attempt) + random.uniform(0, 2)
              logger.warning(
                  f"Request {method} {path} failed (attempt {attempt + 1}/{MAX_RETRIES}): {e}. "
                  f"Retrying in {sleep_time:.1f}s..."
              )
              await asyncio.sleep(sleep_time)

        raise GitHubApiException(0, f"{method} {path} failed after {MAX_RETRIES} attempts.")

    async def open_org_session(self, session: aiohttp.ClientSession, org: str) -> OrgSession:
        """
        Verifies the token can see the organisation (or user account) and
        returns a session scoped to it.
        """
        if not self.token:
            raise OrgSessionException(org, "no GitHub token configured")
        try:
            await self.request(session, "GET", f"/orgs/{org}")
        except GitHubApiException as e:
            if e.status != 404:
                raise OrgSessionException(org, str(e)) from e
            try:
                await self.request(session, "GET", f"/users/{org}")
            except GitHubApiException as inner:
                raise OrgSessionException(org, str(inner)) from inner
        return OrgSession(org=org, token=self.token)

    async def get_default_branch(self, session: aiohttp.ClientSession, org: str, repo_name: str) -> str:
        data = await self.request(session, "GET", f"/repos/{org}/{repo_name}")
        return data.get("default_branch", "main")

    async def find_open_pull_request(
        self, session: aiohttp.ClientSession, org: str, repo_name: str, branch_name: str
    ) -> Optional[Dict[str, Any]]:
        pulls = await self.request(
            session,
            "GET",
            f"/repos/{org}/{repo_name}/pulls",
            params={"state": "open", "head": f"{org}:{branch_name}"},
        )
        return pulls[0] if pulls else None

    async def create_pull_request(
        self,
        session: aiohttp.ClientSession,
        org: str,
        repo_name: str,
        head: str,
        base: str,
        title: str,
        body: str,
    ) -> Dict[str, Any]:
        return await self.request(
            session,
            "POST",
            f"/repos/{org}/{repo_name}/pulls",
            json={"title": title, "body": body, "head": head, "base": base},
        )

    async def update_pull_request(
        self, session: aiohttp.ClientSession, org: str, repo_name: str, number: int, title: str, body: str
    ) -> Dict[str, Any]:
        return await self.request(
            session,
            "PATCH",
            f"/repos/{org}/{repo_name}/pulls/{number}",
            json={"title": title, "body": body},
        )

    async def add_labels(
        self, session: aiohttp.ClientSession, org: str, repo_name: str, number: int, labels: Sequence[str]
    ) -> None:
        if not labels:
            return
        await self.request(
            session,
            "POST",
            f"/repos/{org}/{repo_name}/issues/{number}/labels",
            json={"labels": list(labels)},
        )
