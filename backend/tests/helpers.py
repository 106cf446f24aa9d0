"""Test doubles for the storage backend."""

from typing import Dict, Iterable, List, Optional, Tuple
from urllib.parse import unquote

import httpx

from sitedeploy.core.exceptions import UpstreamError
from sitedeploy.services.signing import URLSigner

SITE_FILES = {
    "index.html": "<!DOCTYPE html><html><body><h1>Acme</h1></body></html>",
    "css/style.css": "body { color: #333; }",
    "js/main.js": "console.log('acme');",
}


class FakeStorage:
    """In-memory stand-in for QiniuStorage."""

    def __init__(self, fail_keys: Iterable[str] = (), page_size: int = 1000):
        self.objects: Dict[str, bytes] = {}
        self.mime_types: Dict[str, str] = {}
        self.fail_keys = set(fail_keys)
        self.page_size = page_size
        self.tokens: List[Tuple[str, int]] = []
        self.put_order: List[str] = []
        self.list_calls = 0
        self.list_error: Optional[Exception] = None
        self.refuse_delete = set()
        self.batch_calls: List[List[str]] = []

    def upload_token(self, prefix: str, lifetime: int) -> str:
        self.tokens.append((prefix, lifetime))
        return f"upload-token:{prefix}"

    def put(self, token: str, key: str, data: bytes, mime_type: str) -> None:
        self.put_order.append(key)
        if key in self.fail_keys:
            raise UpstreamError(f"Upload of {key} failed: simulated network error", status_code=-1)
        self.objects[key] = data
        self.mime_types[key] = mime_type

    def list_page(self, prefix: str, marker: Optional[str] = None):
        self.list_calls += 1
        if self.list_error:
            raise self.list_error
        keys = sorted(k for k in self.objects if k.startswith(prefix))
        start = int(marker) if marker else 0
        end = start + self.page_size
        return keys[start:end], (str(end) if end < len(keys) else None)

    def batch_delete(self, keys: List[str]) -> List[bool]:
        self.batch_calls.append(list(keys))
        flags = []
        for key in keys:
            if key in self.refuse_delete or key not in self.objects:
                flags.append(False)
                continue
            del self.objects[key]
            flags.append(True)
        return flags


def storage_backend(signer: URLSigner, storage: FakeStorage) -> httpx.MockTransport:
    """HTTP face of FakeStorage: checks the signature like the real bucket does."""

    def handler(request: httpx.Request) -> httpx.Response:
        if not signer.verify(str(request.url)):
            return httpx.Response(401, json={"error": "bad token"})
        key = unquote(request.url.path).lstrip("/")
        if key not in storage.objects:
            return httpx.Response(404, json={"error": "no such file"})
        # Deliberately wrong metadata; the proxy must not trust it
        return httpx.Response(
            200,
            content=storage.objects[key],
            headers={"Content-Type": "application/octet-stream"},
        )

    return httpx.MockTransport(handler)
