"""FastAPI dependencies; tests swap these through app.dependency_overrides."""
from fastapi import Depends

from ..config import Settings, get_settings
from ..services.deploy import DeployService
from ..services.github import GitHubPagesService
from ..services.history import HistoryStore
from ..services.preview import PreviewProxy


def get_deploy_service(settings: Settings = Depends(get_settings)) -> DeployService:
    return DeployService(settings)


def get_github_service(settings: Settings = Depends(get_settings)) -> GitHubPagesService:
    return GitHubPagesService(settings)


def get_history_store(settings: Settings = Depends(get_settings)) -> HistoryStore:
    return HistoryStore(settings.history_file, limit=settings.history_limit)


def get_preview_proxy(settings: Settings = Depends(get_settings)) -> PreviewProxy:
    return PreviewProxy(settings)
