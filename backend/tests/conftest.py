"""Pytest configuration and fixtures."""

from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from helpers import SITE_FILES, FakeStorage, storage_backend
from sitedeploy.api.deps import get_deploy_service, get_preview_proxy
from sitedeploy.config import Settings, get_settings
from sitedeploy.main import app
from sitedeploy.services.deploy import DeployService
from sitedeploy.services.preview import PreviewProxy
from sitedeploy.services.signing import URLSigner


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        qiniu_access_key="test-ak",
        qiniu_secret_key="test-sk",
        qiniu_bucket="sites",
        qiniu_zone="z0",
        qiniu_domain="",
        hash_secret="secret",
        server_url="http://testserver",
        github_token="",
        github_username="",
        history_file=str(tmp_path / "data" / "history.json"),
    )


@pytest.fixture
def unconfigured_settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        qiniu_access_key="",
        qiniu_secret_key="",
        qiniu_bucket="",
        history_file=str(tmp_path / "history.json"),
    )


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def signer(settings: Settings) -> URLSigner:
    return URLSigner.from_settings(settings)


@pytest.fixture
def deploy_service(settings: Settings, storage: FakeStorage) -> DeployService:
    return DeployService(settings, storage=storage)


@pytest.fixture
def preview_proxy(settings: Settings, signer: URLSigner, storage: FakeStorage) -> PreviewProxy:
    return PreviewProxy(settings, signer=signer, transport=storage_backend(signer, storage))


@pytest.fixture
def site_dir(tmp_path: Path) -> Path:
    """A generated site with index.html, css/style.css and js/main.js."""
    root = tmp_path / "site"
    for rel_path, content in SITE_FILES.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
async def client(settings: Settings, deploy_service: DeployService, preview_proxy: PreviewProxy) -> AsyncClient:
    """Async test client wired to fake storage and a temporary history file."""
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_deploy_service] = lambda: deploy_service
    app.dependency_overrides[get_preview_proxy] = lambda: preview_proxy

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
