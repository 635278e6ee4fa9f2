import logging
import tempfile
from pathlib import Path
from typing import Callable, Optional, Sequence

import aiohttp

from src.domain.models import OrgSession, dry_run_reference
from src.domain.protocols import RepoChangeOperation
from src.infrastructure.git_workspace import GitWorkspace, summarise_changes
from src.infrastructure.github_client import GitHubRestClient

logger = logging.getLogger(__name__)

WorkspaceFactory = Callable[[Path, str, str], GitWorkspace]


class RepoUpdateClient:
    """
    Drives one repository end to end: clone, branch, run the change
    operation, and when the working copy changed commit, push and open or
    refresh the pull request for the branch.
    """

    def __init__(
        self,
        github_client: GitHubRestClient,
        session: aiohttp.ClientSession,
        committer_name: str,
        committer_email: str,
        work_root: Optional[Path] = None,
        workspace_factory: WorkspaceFactory = GitWorkspace,
    ):
        self.github_client = github_client
        self.session = session
        self.committer_name = committer_name
        self.committer_email = committer_email
        self.work_root = work_root
        self.workspace_factory = workspace_factory

    async def open_org_session(self, org: str) -> OrgSession:
        return await self.github_client.open_org_session(self.session, org)

    async def update(
        self,
        session: OrgSession,
        repo_name: str,
        branch_name: str,
        change_operation: RepoChangeOperation,
        commit_message: str,
        pr_title: str,
        pr_body: str,
        labels: Sequence[str],
        dry_run: bool,
    ) -> Optional[str]:
        """
        Returns the pull request URL, a dry-run placeholder reference, or None
        when the change operation left the working copy untouched.
        """
        full_name = f"{session.org}/{repo_name}"

        with tempfile.TemporaryDirectory(prefix="repo-", dir=self.work_root) as checkout_root:
            workspace = self.workspace_factory(
                Path(checkout_root) / repo_name, self.committer_name, self.committer_email
            )
            await workspace.clone(session, repo_name)
            if await workspace.checkout_branch(branch_name):
                logger.info(f"{full_name}: reusing existing branch '{branch_name}'.")

            reported_change = await change_operation.execute(workspace.path)
            changed = await workspace.changed_files()

            if not changed:
                if reported_change:
                    logger.warning(f"{full_name}: change operation reported updates but the working copy is clean.")
                return None

            logger.info(f"{full_name}: {len(changed)} file(s) changed: {summarise_changes(changed)}")

            if dry_run:
                reference = dry_run_reference(session.org, repo_name, branch_name)
                logger.info(f"[DRY RUN] {full_name}: would commit, push '{branch_name}' and open a pull request.")
                return reference

            await workspace.commit_all(commit_message)
            await workspace.push(branch_name)

        return await self._open_or_update_pull_request(session, repo_name, branch_name, pr_title, pr_body, labels)

    async def _open_or_update_pull_request(
        self,
        session: OrgSession,
        repo_name: str,
        branch_name: str,
        title: str,
        body: str,
        labels: Sequence[str],
    ) -> str:
        existing = await self.github_client.find_open_pull_request(self.session, session.org, repo_name, branch_name)
        if existing:
            pull = await self.github_client.update_pull_request(
                self.session, session.org, repo_name, existing["number"], title, body
            )
            logger.info(f"{session.org}/{repo_name}: updated pull request #{existing['number']}.")
        else:
            base = await self.github_client.get_default_branch(self.session, session.org, repo_name)
            pull = await self.github_client.create_pull_request(
                self.session, session.org, repo_name, branch_name, base, title, body
            )
            logger.info(f"{session.org}/{repo_name}: opened pull request #{pull['number']} against '{base}'.")

        await self.github_client.add_labels(self.session, session.org, repo_name, pull["number"], labels)
        return pull["html_url"]
