"""
Deploy Service: publishes a generated site directory to object storage.

Steps:
1. Validate storage configuration (fail before any I/O)
2. Resolve the deterministic storage prefix for the logical name
3. Enumerate the site directory (all-or-nothing)
4. Upload files sequentially with one upload token for the whole batch
5. Build the direct (signed) and preview URLs

Teardown is the reverse: list everything under the prefix and batch-delete it.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Union

from ..config import Settings
from ..core.exceptions import ConfigurationError, SourceDirectoryError, UploadFailedError, UpstreamError
from ..schemas import ConfigStatus, DeployResult, TeardownResult
from .files import FileEntry, collect_site_files, content_type_for
from .naming import storage_prefix
from .signing import URLSigner
from .storage import BATCH_LIMIT, QiniuStorage

logger = logging.getLogger(__name__)


@dataclass
class UploadOutcome:
    files_attempted: int = 0
    files_succeeded: int = 0
    files_failed: int = 0
    per_file_errors: Dict[str, str] = field(default_factory=dict)


class DeployService:
    """
    Object storage deployment for generated sites.

    Args:
        settings: Process-wide settings
        storage: Storage adapter override (default: QiniuStorage built lazily)
        signer: URL signer override (default: built from settings)
    """

    def __init__(
        self,
        settings: Settings,
        storage: Optional[QiniuStorage] = None,
        signer: Optional[URLSigner] = None,
    ):
        self.settings = settings
        self._storage = storage
        self.signer = signer or URLSigner.from_settings(settings)

    @property
    def storage(self) -> QiniuStorage:
        if self._storage is None:
            self._storage = QiniuStorage(self.settings)
        return self._storage

    def check_config(self) -> ConfigStatus:
        s = self.settings
        return ConfigStatus(
            access_key=bool(s.qiniu_access_key),
            secret_key=bool(s.qiniu_secret_key),
            bucket=bool(s.qiniu_bucket),
            domain=bool(s.qiniu_domain),
            configured=bool(s.qiniu_access_key and s.qiniu_secret_key and s.qiniu_bucket),
        )

    def require_config(self) -> None:
        missing = self.settings.missing_qiniu_settings()
        if missing:
            raise ConfigurationError(missing)

    def resolve_prefix(self, logical_name: str) -> str:
        return storage_prefix(logical_name, self.settings.hash_secret)

    async def upload_files(
        self,
        prefix: str,
        entries: Iterable[FileEntry],
        log: Optional[Callable[[str], None]] = None,
    ) -> UploadOutcome:
        """
        Upload files under `prefix/`, one at a time, in the given order.

        A failing file is recorded and skipped. The batch only fails as a
        whole when files were attempted and none of them succeeded.

        Raises:
            UploadFailedError: every attempted file failed
        """
        if log is None:
            log = lambda msg: None

        token = await asyncio.to_thread(
            self.storage.upload_token, f"{prefix}/", self.settings.upload_token_lifetime
        )
        outcome = UploadOutcome()

        for entry in entries:
            outcome.files_attempted += 1
            key = f"{prefix}/{entry.storage_relative_path}"
            try:
                data = await asyncio.to_thread(entry.read_bytes)
                await asyncio.to_thread(
                    self.storage.put, token, key, data, content_type_for(key)
                )
            except Exception as e:
                outcome.files_failed += 1
                outcome.per_file_errors[entry.storage_relative_path] = str(e)
                logger.error(f"✗ {entry.storage_relative_path}: {e}")
                log(f"✗ {entry.storage_relative_path}: {e}")
                continue

            outcome.files_succeeded += 1
            logger.info(f"✓ {entry.storage_relative_path}")
            log(f"✓ {entry.storage_relative_path}")

        if outcome.files_attempted and not outcome.files_succeeded:
            raise UploadFailedError(outcome.files_attempted, outcome.per_file_errors)

        if outcome.files_failed:
            logger.warning(
                f"Upload to {prefix} finished with {outcome.files_failed} of "
                f"{outcome.files_attempted} files failed"
            )
        return outcome

    def base_url(self, prefix: str) -> str:
        domain = self.settings.qiniu_domain or self.settings.qiniu_default_domain
        return f"https://{domain}/{prefix}"

    def preview_url(self, prefix: str) -> str:
        return f"{self.settings.server_url.rstrip('/')}/preview/{prefix}/"

    async def deploy(
        self,
        source_dir: Union[str, Path],
        logical_name: str,
        log: Optional[Callable[[str], None]] = None,
    ) -> DeployResult:
        """
        Upload a generated site and return its URLs.

        Raises:
            ConfigurationError: storage credentials or bucket missing
            SourceDirectoryError: source_dir missing or unreadable
            UploadFailedError: no file could be uploaded
        """
        self.require_config()

        prefix = self.resolve_prefix(logical_name)
        logger.info(f"Deploying {logical_name!r} to {self.settings.qiniu_bucket}/{prefix}")

        try:
            entries = await asyncio.to_thread(collect_site_files, source_dir)
        except OSError as e:
            raise SourceDirectoryError(source_dir, e) from e
        logger.info(f"Uploading {len(entries)} files...")

        outcome = await self.upload_files(prefix, entries, log=log)

        index_url = self.signer.sign(f"{prefix}/index.html", self.settings.index_url_lifetime)
        result = DeployResult(
            success=True,
            dir_name=prefix,
            base_url=self.base_url(prefix),
            index_url=index_url,
            preview_url=self.preview_url(prefix),
            uploaded_count=outcome.files_succeeded,
            failed_count=outcome.files_failed,
        )
        logger.info(f"Deploy of {prefix} complete: {result.uploaded_count} uploaded, {result.failed_count} failed")
        return result

    async def teardown(self, prefix: str) -> TeardownResult:
        """
        Delete every object under `prefix/`.

        Listing errors abort before anything is deleted. Keys the backend
        refuses to delete (e.g. already gone) and batches that fail outright
        are not counted.
        """
        self.require_config()
        list_prefix = prefix if prefix.endswith("/") else f"{prefix}/"

        keys: List[str] = []
        marker = None
        while True:
            page, marker = await asyncio.to_thread(self.storage.list_page, list_prefix, marker)
            keys.extend(page)
            if marker is None:
                break

        if not keys:
            logger.info(f"Nothing to delete under {list_prefix}")
            return TeardownResult(deleted_count=0, total_count=0)

        deleted = 0
        for start in range(0, len(keys), BATCH_LIMIT):
            batch = keys[start:start + BATCH_LIMIT]
            try:
                flags = await asyncio.to_thread(self.storage.batch_delete, batch)
            except UpstreamError as e:
                logger.error(f"Batch delete of {len(batch)} keys under {list_prefix} failed: {e}")
                continue
            deleted += sum(1 for ok in flags if ok)

        if deleted < len(keys):
            logger.warning(f"Teardown of {list_prefix}: {len(keys) - deleted} of {len(keys)} keys not deleted")
        else:
            logger.info(f"Teardown of {list_prefix}: deleted {deleted} objects")
        return TeardownResult(deleted_count=deleted, total_count=len(keys))
