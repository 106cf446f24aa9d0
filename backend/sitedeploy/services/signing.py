"""
Private download URL signing for the storage bucket.

    canonical = "/{key}?e={deadline}"
    token     = "{access_key}:" + urlsafe_b64(hmac_sha1(secret_key, canonical))
    url       = "http://{domain}{canonical}&token={token}"

Signed URLs are bearer capabilities until their deadline. Do not log them.
"""
import base64
import hashlib
import hmac
import time
from typing import Optional
from urllib.parse import parse_qs, quote, unquote, urlsplit


def urlsafe_signature(secret_key: str, data: str) -> str:
    digest = hmac.new(secret_key.encode("utf-8"), data.encode("utf-8"), hashlib.sha1).digest()
    encoded = base64.b64encode(digest).decode("ascii")
    return encoded.replace("+", "-").replace("/", "_").rstrip("=")


def signed_url_deadline(url: str) -> int:
    """Expiry timestamp embedded in a signed URL."""
    query = parse_qs(urlsplit(url).query)
    values = query.get("e")
    if not values:
        raise ValueError("URL carries no expiry parameter")
    return int(values[0])


def is_expired(url: str, now: Optional[float] = None) -> bool:
    if now is None:
        now = time.time()
    return int(now) > signed_url_deadline(url)


class URLSigner:
    """Builds time-limited URLs for objects in a private bucket."""

    def __init__(
        self,
        access_key: str,
        secret_key: str,
        canonical_domain: str,
        display_domain: Optional[str] = None,
    ):
        self.access_key = access_key
        self.secret_key = secret_key
        self.canonical_domain = canonical_domain
        self.display_domain = display_domain or None

    @classmethod
    def from_settings(cls, settings) -> "URLSigner":
        return cls(
            access_key=settings.qiniu_access_key,
            secret_key=settings.qiniu_secret_key,
            canonical_domain=settings.qiniu_default_domain,
            display_domain=settings.qiniu_domain,
        )

    def _canonical(self, key: str, deadline: int) -> str:
        return f"/{quote(key.lstrip('/'), safe='/')}?e={deadline}"

    def sign(self, key: str, lifetime: int, now: Optional[float] = None) -> str:
        """
        Sign a storage key.

        Args:
            key: Object key (no leading slash required)
            lifetime: Seconds from now until the URL stops working
            now: Override the current time (testing)

        Returns:
            Signed URL, with the display domain substituted if one is configured
        """
        if now is None:
            now = time.time()
        deadline = int(now) + lifetime
        canonical = self._canonical(key, deadline)
        signature = urlsafe_signature(self.secret_key, canonical)
        url = f"http://{self.canonical_domain}{canonical}&token={self.access_key}:{signature}"

        # Cosmetic only: the signature above covers the canonical path
        if self.display_domain:
            url = url.replace(self.canonical_domain, self.display_domain, 1)
        return url

    def verify(self, url: str, now: Optional[float] = None) -> bool:
        """Check signature and deadline the way the storage backend does."""
        parts = urlsplit(url)
        query = parse_qs(parts.query)
        try:
            deadline = int(query["e"][0])
            access_key, signature = query["token"][0].split(":", 1)
        except (KeyError, ValueError):
            return False

        if access_key != self.access_key or is_expired(url, now):
            return False

        expected = urlsafe_signature(self.secret_key, self._canonical(unquote(parts.path), deadline))
        return hmac.compare_digest(expected, signature)
