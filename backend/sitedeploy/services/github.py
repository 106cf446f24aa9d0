import asyncio
import base64
import logging
import re
import time
from pathlib import Path
from typing import Any, Dict, Optional, Union

import httpx

from ..config import Settings
from ..core.exceptions import ConfigurationError, SourceDirectoryError, UpstreamError
from ..schemas import GitHubConfigStatus, GitHubDeployResult
from .files import collect_site_files

logger = logging.getLogger(__name__)

REPO_SUFFIX = "-official-website"

STATUS_HINTS = {
    401: "GitHub token is invalid or expired; check GITHUB_TOKEN",
    403: "GitHub rate limit hit or token lacks permission",
    404: "GitHub user not found; check GITHUB_USERNAME",
}


def repo_name_for(logical_name: str) -> str:
    """
    Repository name for a logical name.

    Names that do not survive ASCII sanitising (e.g. CJK company names) fall
    back to a timestamped name.
    """
    name = re.sub(r"[^a-z0-9]", "-", logical_name.lower())
    name = re.sub(r"-+", "-", name).strip("-")
    if len(name) < 3:
        name = f"company-website-{int(time.time() * 1000)}"
    return f"{name}{REPO_SUFFIX}"


class GitHubPagesService:
    """Publishes a generated site as a GitHub Pages repository."""

    GITHUB_API_URL = "https://api.github.com"

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.transport = transport

    def _get_client(self, timeout: float = 30.0) -> httpx.AsyncClient:
        """Get configured HTTP client with proxy support."""
        client_kwargs = {
            "base_url": self.GITHUB_API_URL,
            "timeout": timeout,
            "headers": {
                "Authorization": f"Bearer {self.settings.github_token}",
                "Accept": "application/vnd.github.v3+json",
            },
        }
        if self.transport is not None:
            client_kwargs["transport"] = self.transport
        elif self.settings.http_proxy:
            client_kwargs["proxy"] = self.settings.http_proxy
        return httpx.AsyncClient(**client_kwargs)

    def check_config(self) -> GitHubConfigStatus:
        token = bool(self.settings.github_token)
        username = bool(self.settings.github_username)
        return GitHubConfigStatus(token=token, username=username, configured=token and username)

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        hint = STATUS_HINTS.get(response.status_code, f"GitHub API returned {response.status_code}")
        raise UpstreamError(hint, status_code=response.status_code, url=str(response.url))

    async def _get_or_create_repo(self, client: httpx.AsyncClient, repo: str, logical_name: str) -> Dict[str, Any]:
        owner = self.settings.github_username
        response = await client.get(f"/repos/{owner}/{repo}")
        if response.status_code == 200:
            logger.info(f"Repository exists: {repo}")
            return response.json()
        if response.status_code != 404:
            self._raise_for_status(response)

        response = await client.post(
            "/user/repos",
            json={
                "name": repo,
                "description": f"{logical_name} official website",
                "homepage": f"https://{owner}.github.io/{repo}/",
                "private": False,
                "has_issues": False,
                "has_projects": False,
                "has_wiki": False,
            },
        )
        self._raise_for_status(response)
        logger.info(f"Repository created: {repo}")
        return response.json()

    async def _put_file(self, client: httpx.AsyncClient, repo: str, path: str, content: bytes) -> None:
        owner = self.settings.github_username
        url = f"/repos/{owner}/{repo}/contents/{path}"

        # Existing files need their blob sha to be updated
        sha = None
        existing = await client.get(url)
        if existing.status_code == 200:
            sha = existing.json().get("sha")

        payload = {
            "message": f"Add {path}",
            "content": base64.b64encode(content).decode("ascii"),
        }
        if sha:
            payload["sha"] = sha
        response = await client.put(url, json=payload)
        self._raise_for_status(response)

    async def _enable_pages(self, client: httpx.AsyncClient, repo: str) -> None:
        owner = self.settings.github_username
        for branch in ("main", "master"):
            response = await client.post(
                f"/repos/{owner}/{repo}/pages",
                json={"source": {"branch": branch, "path": "/"}},
            )
            # 409: Pages already enabled
            if response.status_code in (201, 409):
                return
        logger.warning(f"Could not enable GitHub Pages for {repo}; enable it manually in the repository settings")

    async def deploy(self, source_dir: Union[str, Path], logical_name: str) -> GitHubDeployResult:
        """
        Push every file of the site to a repository and enable Pages.

        Raises:
            ConfigurationError: token or username missing
            SourceDirectoryError: source_dir missing or unreadable
            UpstreamError: repository lookup/creation rejected by GitHub
        """
        missing = [
            name for name, value in (
                ("GITHUB_TOKEN", self.settings.github_token),
                ("GITHUB_USERNAME", self.settings.github_username),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(missing, service="github")

        repo = repo_name_for(logical_name)
        try:
            entries = await asyncio.to_thread(collect_site_files, source_dir)
        except OSError as e:
            raise SourceDirectoryError(source_dir, e) from e

        uploaded = 0
        failed = 0
        async with self._get_client(timeout=60.0) as client:
            repo_data = await self._get_or_create_repo(client, repo, logical_name)

            logger.info(f"Uploading {len(entries)} files to {repo}...")
            for entry in entries:
                try:
                    content = await asyncio.to_thread(entry.read_bytes)
                    await self._put_file(client, repo, entry.storage_relative_path, content)
                except Exception as e:
                    failed += 1
                    logger.error(f"✗ {entry.storage_relative_path}: {e}")
                    continue
                uploaded += 1
                logger.info(f"✓ {entry.storage_relative_path}")

            await self._enable_pages(client, repo)

        owner = self.settings.github_username
        pages_url = f"https://{owner}.github.io/{repo}/"
        logger.info(f"GitHub deploy complete: {pages_url}")
        return GitHubDeployResult(
            success=True,
            repo_url=repo_data.get("html_url", f"https://github.com/{owner}/{repo}"),
            pages_url=pages_url,
            repo_name=repo,
            uploaded_count=uploaded,
            failed_count=failed,
        )
