import json
import logging
from typing import List, Optional, Tuple

from qiniu import Auth, BucketManager, build_batch_delete, put_data

from ..config import Settings
from ..core.exceptions import UpstreamError

logger = logging.getLogger(__name__)

# Qiniu accepts at most 1000 operations per batch request
BATCH_LIMIT = 1000
# Batch reply where some operations failed; body still lists per-op codes
PARTIAL_SUCCESS = 298
LIST_PAGE_SIZE = 1000


class QiniuStorage:
    """
    Thin synchronous adapter over the qiniu SDK.

    Every method either returns a plain value or raises UpstreamError, so the
    callers never see the SDK's (ret, info) tuples.
    """

    def __init__(self, settings: Settings):
        self.bucket = settings.qiniu_bucket
        self.auth = Auth(settings.qiniu_access_key, settings.qiniu_secret_key)
        self.manager = BucketManager(self.auth)

    def upload_token(self, prefix: str, lifetime: int) -> str:
        """
        Upload credential valid for every key under `prefix`.

        Prefix scope lets a re-deploy overwrite the objects of a previous one.
        """
        return self.auth.upload_token(
            self.bucket,
            prefix,
            lifetime,
            policy={"isPrefixalScope": 1},
            strict_policy=False,
        )

    def put(self, token: str, key: str, data: bytes, mime_type: str) -> None:
        ret, info = put_data(token, key, data, mime_type=mime_type)
        if info is None or info.status_code != 200:
            status_code = getattr(info, "status_code", None)
            error = getattr(info, "error", None) or "upload failed"
            raise UpstreamError(f"Upload of {key} failed: {error}", status_code=status_code)

    def list_page(self, prefix: str, marker: Optional[str] = None) -> Tuple[List[str], Optional[str]]:
        """One page of keys under prefix and the marker of the next page (None when done)."""
        ret, eof, info = self.manager.list(self.bucket, prefix=prefix, marker=marker, limit=LIST_PAGE_SIZE)
        if info is None or info.status_code != 200:
            status_code = getattr(info, "status_code", None)
            raise UpstreamError(f"Listing {prefix} failed: {getattr(info, 'error', None)}", status_code=status_code)

        ret = ret or {}
        keys = [item["key"] for item in ret.get("items", [])]
        next_marker = ret.get("marker")
        if eof or not next_marker:
            next_marker = None
        logger.debug(f"Listed {len(keys)} keys under {prefix} (more={next_marker is not None})")
        return keys, next_marker

    def batch_delete(self, keys: List[str]) -> List[bool]:
        """Delete keys in one request; per-key success flags in input order."""
        if not keys:
            return []
        ret, info = self.manager.batch(build_batch_delete(self.bucket, keys))
        status_code = getattr(info, "status_code", None)
        if ret is None and status_code == PARTIAL_SUCCESS:
            ret = self._parse_batch_body(getattr(info, "text_body", None))
        if not isinstance(ret, list):
            raise UpstreamError(f"Batch delete failed: {getattr(info, 'error', None)}", status_code=status_code)
        return [isinstance(entry, dict) and entry.get("code") == 200 for entry in ret]

    @staticmethod
    def _parse_batch_body(body: Optional[str]) -> Optional[list]:
        if not body:
            return None
        try:
            return json.loads(body)
        except ValueError:
            logger.warning(f"Unparseable batch reply: {body[:200]}")
            return None
