from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeployTarget(str, Enum):
    NONE = "none"
    QINIU = "qiniu"      # object storage
    GITHUB = "github"    # git-hosted pages


# Deployment history
class DeploymentRecord(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    logical_name: str = Field(..., min_length=1)
    storage_prefix: Optional[str] = None
    target: DeployTarget = DeployTarget.NONE
    public_url: Optional[str] = None
    preview_url: Optional[str] = None
    uploaded_count: int = 0
    failed_count: int = 0
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class DeploymentRecordUpdate(BaseModel):
    logical_name: Optional[str] = Field(None, min_length=1)
    public_url: Optional[str] = None
    preview_url: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("logical_name", "metadata")
    @classmethod
    def not_null(cls, v):
        # Omit the field to leave it unchanged; null is not a value here
        if v is None:
            raise ValueError("may be omitted but not null")
        return v


# Deploy requests / results
class DeployRequest(BaseModel):
    source_dir: str = Field(..., min_length=1, description="Absolute path of the generated site")
    logical_name: str = Field(..., min_length=1, max_length=255)
    target: DeployTarget = DeployTarget.NONE
    force_redeploy: bool = False
    metadata: Dict[str, Any] = Field(default_factory=dict)


class DeployResult(BaseModel):
    success: bool = True
    dir_name: str
    base_url: str
    index_url: str
    preview_url: str
    uploaded_count: int
    failed_count: int


class GitHubDeployResult(BaseModel):
    success: bool = True
    repo_url: str
    pages_url: str
    repo_name: str
    uploaded_count: int
    failed_count: int


class DeployResponse(BaseModel):
    record: DeploymentRecord
    is_existing: bool = False
    qiniu: Optional[DeployResult] = None
    github: Optional[GitHubDeployResult] = None


class TeardownResult(BaseModel):
    deleted_count: int
    total_count: int


# Health
class ConfigStatus(BaseModel):
    access_key: bool
    secret_key: bool
    bucket: bool
    domain: bool
    configured: bool


class GitHubConfigStatus(BaseModel):
    token: bool
    username: bool
    configured: bool


class HealthCheck(BaseModel):
    status: str
    timestamp: datetime
    version: str
    qiniu: ConfigStatus
    github: GitHubConfigStatus
