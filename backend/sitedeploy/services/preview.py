"""
Preview proxy: fetch private objects server-side with a fresh signed URL.

Key resolution rule: a path that is empty, ends with "/", or whose final
segment contains no "." is treated as a directory and gets "index.html"
appended. Dots in earlier segments do not matter ("v1.2/docs" is a
directory, "v1.2/docs/app.js" is a file).
"""
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from ..config import Settings
from ..core.exceptions import ConfigurationError
from .files import content_type_for
from .signing import URLSigner, is_expired

logger = logging.getLogger(__name__)

INDEX_FILE = "index.html"


class PreviewError(Exception):
    """Upstream fetch failed; carries what the client should see."""

    def __init__(self, status_code: int, error: str, attempted_url: Optional[str] = None):
        self.status_code = status_code
        self.error = error
        self.attempted_url = attempted_url
        super().__init__(error)

    def to_dict(self) -> dict:
        body = {"error": self.error}
        if self.attempted_url:
            body["attempted_url"] = self.attempted_url
        return body


@dataclass
class PreviewObject:
    key: str
    content_type: str
    response: httpx.Response
    client: httpx.AsyncClient

    async def aclose(self) -> None:
        await self.response.aclose()
        await self.client.aclose()


def resolve_key(path: str) -> str:
    path = path.lstrip("/")
    if not path or path.endswith("/"):
        return f"{path}{INDEX_FILE}"
    final_segment = path.rsplit("/", 1)[-1]
    if "." not in final_segment:
        return f"{path}/{INDEX_FILE}"
    return path


class PreviewProxy:
    """
    Args:
        settings: Process-wide settings
        signer: URL signer override (default: built from settings)
        transport: httpx transport override (testing)
    """

    def __init__(
        self,
        settings: Settings,
        signer: Optional[URLSigner] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self.signer = signer or URLSigner.from_settings(settings)
        self.transport = transport

    def _get_client(self, timeout: float = 30.0) -> httpx.AsyncClient:
        client_kwargs = {"timeout": timeout}
        if self.transport is not None:
            client_kwargs["transport"] = self.transport
        elif self.settings.http_proxy:
            client_kwargs["proxy"] = self.settings.http_proxy
        return httpx.AsyncClient(**client_kwargs)

    async def open(self, path: str, lifetime: Optional[int] = None) -> PreviewObject:
        """
        Start streaming the object behind a preview path.

        The caller owns the returned response and must close it.

        Raises:
            ConfigurationError: storage credentials or bucket missing
            PreviewError: signature rejected (401/403), object missing, or
                the storage backend unreachable (500)
        """
        missing = self.settings.missing_qiniu_settings()
        if missing:
            raise ConfigurationError(missing)

        key = resolve_key(path)
        if lifetime is None:
            lifetime = self.settings.preview_url_lifetime
        signed_url = self.signer.sign(key, lifetime)

        if is_expired(signed_url):
            raise PreviewError(403, "Signed URL already expired", attempted_url=signed_url)

        client = self._get_client()
        try:
            request = client.build_request("GET", signed_url)
            response = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            await client.aclose()
            logger.error(f"Preview fetch for {key} failed: {e}")
            raise PreviewError(500, f"Preview failed: {e}")

        if response.status_code in (401, 403):
            await response.aclose()
            await client.aclose()
            logger.warning(f"Preview of {key} rejected by storage ({response.status_code})")
            raise PreviewError(
                response.status_code,
                "Access denied by storage; signature rejected or object missing",
                attempted_url=signed_url,
            )
        if response.status_code >= 400:
            await response.aclose()
            await client.aclose()
            raise PreviewError(response.status_code, f"Storage returned {response.status_code} for {key}")

        return PreviewObject(key=key, content_type=content_type_for(key), response=response, client=client)
