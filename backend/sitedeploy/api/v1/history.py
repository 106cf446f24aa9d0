import logging
from typing import List

from fastapi import APIRouter, Depends

from ...core.exceptions import NotFoundException
from ...schemas import DeploymentRecord, DeploymentRecordUpdate, DeployTarget
from ...services.deploy import DeployService
from ...services.history import HistoryStore
from ..deps import get_deploy_service, get_history_store

router = APIRouter(prefix="/history", tags=["History"])

logger = logging.getLogger(__name__)


@router.get("", response_model=List[DeploymentRecord])
async def list_history(history: HistoryStore = Depends(get_history_store)):
    """Deployment records, newest first."""
    return await history.list()


@router.get("/{record_id}", response_model=DeploymentRecord)
async def get_history_record(record_id: str, history: HistoryStore = Depends(get_history_store)):
    record = await history.get(record_id)
    if not record:
        raise NotFoundException("Record not found")
    return record


@router.patch("/{record_id}", response_model=DeploymentRecord)
async def update_history_record(
    record_id: str,
    body: DeploymentRecordUpdate,
    history: HistoryStore = Depends(get_history_store),
):
    record = await history.update(record_id, body.model_dump(exclude_unset=True))
    if not record:
        raise NotFoundException("Record not found")
    return record


@router.delete("/{record_id}")
async def delete_history_record(
    record_id: str,
    history: HistoryStore = Depends(get_history_store),
    deploy_service: DeployService = Depends(get_deploy_service),
):
    """
    Delete a record; object storage deployments are torn down first.

    Unknown ids are not an error.
    """
    record = await history.get(record_id)

    teardown = None
    if record and record.target == DeployTarget.QINIU and record.storage_prefix:
        try:
            teardown = await deploy_service.teardown(record.storage_prefix)
            logger.info(f"Deleted stored files for {record.storage_prefix}")
        except Exception as e:
            logger.warning(f"Failed to delete stored files for {record.storage_prefix}: {e}")

    await history.delete(record_id)
    return {
        "deleted": record is not None,
        "teardown": teardown.model_dump() if teardown else None,
    }
