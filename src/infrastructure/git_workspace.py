import logging
from pathlib import Path
from typing import List, Sequence

from src.domain.models import OrgSession
from src.infrastructure.process import run_command

logger = logging.getLogger(__name__)

GIT_TIMEOUT = 600


class GitWorkspace:
    """
    Git operations on a single working copy, driven through the git CLI.
    The token is embedded in the remote URL and never logged.
    """

    def __init__(
        self,
        path: Path,
        committer_name: str = "dependency-bot",
        committer_email: str = "dependency-bot@users.noreply.github.com",
        host: str = "github.com",
    ):
        self.path = path
        self.committer_name = committer_name
        self.committer_email = committer_email
        self.host = host
        self._secrets: List[str] = []

    def remote_url(self, session: OrgSession, repo_name: str) -> str:
        return f"https://x-access-token:{session.token}@{self.host}/{session.org}/{repo_name}.git"

    async def _git(self, *args: str, cwd: Path = None, check: bool = True):
        return await run_command(
            ["git", *args], cwd=cwd or self.path, timeout=GIT_TIMEOUT, check=check, secrets=self._secrets
        )

    async def clone(self, session: OrgSession, repo_name: str) -> None:
        logger.info(f"Cloning {session.org}/{repo_name}")
        self._secrets.append(session.token)
        await self._git("clone", "--quiet", self.remote_url(session, repo_name), str(self.path), cwd=self.path.parent)

    async def remote_branch_exists(self, branch_name: str) -> bool:
        result = await self._git("ls-remote", "--heads", "origin", branch_name)
        return bool(result.stdout.strip())

    async def checkout_branch(self, branch_name: str) -> bool:
        """
        Switches to `branch_name`, reusing the remote branch when a previous
        run left one behind. Returns True when the branch already existed.
        """
        if await self.remote_branch_exists(branch_name):
            await self._git("fetch", "--quiet", "origin", branch_name)
            await self._git("checkout", "-B", branch_name, f"origin/{branch_name}")
            return True
        await self._git("checkout", "-b", branch_name)
        return False

    async def changed_files(self) -> List[str]:
        result = await self._git("status", "--porcelain")
        return [line[3:] for line in result.stdout.splitlines() if line.strip()]

    async def commit_all(self, message: str) -> None:
        await self._git("add", "--all")
        await self._git(
            "-c", f"user.name={self.committer_name}",
            "-c", f"user.email={self.committer_email}",
            "commit", "--quiet", "-m", message,
        )

    async def push(self, branch_name: str) -> None:
        await self._git("push", "--quiet", "--set-upstream", "origin", branch_name)


def summarise_changes(paths: Sequence[str], limit: int = 5) -> str:
    shown = ", ".join(paths[:limit])
    more = len(paths) - limit
    return f"{shown} (+{more} more)" if more > 0 else shown
