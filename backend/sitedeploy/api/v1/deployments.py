import logging

from fastapi import APIRouter, Depends

from ...schemas import DeploymentRecord, DeployRequest, DeployResponse, DeployTarget, TeardownResult
from ...services.deploy import DeployService
from ...services.github import GitHubPagesService
from ...services.history import HistoryStore
from ..deps import get_deploy_service, get_github_service, get_history_store

router = APIRouter(prefix="/deployments", tags=["Deployments"])

logger = logging.getLogger(__name__)


@router.post("", response_model=DeployResponse)
async def create_deployment(
    body: DeployRequest,
    deploy_service: DeployService = Depends(get_deploy_service),
    github_service: GitHubPagesService = Depends(get_github_service),
    history: HistoryStore = Depends(get_history_store),
):
    """
    Deploy a generated site and record it in the history.

    Object storage deploys are keyed by logical name: unless force_redeploy is
    set, an existing record is returned as-is without uploading again.
    """
    logger.info(f"Deploy requested: {body.logical_name!r} -> {body.target.value} (force={body.force_redeploy})")

    existing = None
    if body.target == DeployTarget.QINIU:
        existing = await history.find(body.logical_name, DeployTarget.QINIU)
        if existing and existing.preview_url and not body.force_redeploy:
            logger.info(f"Site for {body.logical_name!r} already deployed, returning stored links")
            return DeployResponse(record=existing, is_existing=True)

    if body.target == DeployTarget.QINIU:
        result = await deploy_service.deploy(body.source_dir, body.logical_name)
        fields = {
            "public_url": result.index_url,
            "preview_url": result.preview_url,
            "uploaded_count": result.uploaded_count,
            "failed_count": result.failed_count,
            "metadata": body.metadata,
        }

        # Same prefix as before: refresh the existing record instead of adding a twin
        if existing and existing.storage_prefix == result.dir_name:
            record = await history.update(existing.id, fields)
            if record is not None:
                return DeployResponse(record=record, qiniu=result)

        record = DeploymentRecord(
            logical_name=body.logical_name,
            storage_prefix=result.dir_name,
            target=DeployTarget.QINIU,
            **fields,
        )
        await history.save(record)
        return DeployResponse(record=record, qiniu=result)

    if body.target == DeployTarget.GITHUB:
        result = await github_service.deploy(body.source_dir, body.logical_name)
        record = DeploymentRecord(
            logical_name=body.logical_name,
            target=DeployTarget.GITHUB,
            public_url=result.pages_url,
            uploaded_count=result.uploaded_count,
            failed_count=result.failed_count,
            metadata=body.metadata,
        )
        await history.save(record)
        return DeployResponse(record=record, github=result)

    logger.info("No deploy target, recording only")
    record = DeploymentRecord(logical_name=body.logical_name, metadata=body.metadata)
    await history.save(record)
    return DeployResponse(record=record)


@router.delete("/{storage_prefix:path}", response_model=TeardownResult)
async def teardown_deployment(
    storage_prefix: str,
    deploy_service: DeployService = Depends(get_deploy_service),
):
    """Delete every stored object under a prefix (history is left untouched)."""
    return await deploy_service.teardown(storage_prefix)
