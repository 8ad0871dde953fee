import json
import logging
import os
import time
from pathlib import Path, PurePosixPath
from typing import Iterable, Optional, Tuple
from urllib.parse import quote, unquote

import httpx

from modules.orders.errors import (
    ArtifactNotFound, InvalidArtifactKey, KeyConflict, TransientIOError,
)

logger = logging.getLogger(__name__)

META_DIR = ".meta"
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def make_key(collection: str, name: str, now_ms: Optional[int] = None) -> str:
    """`<collection>/<millisecond-timestamp>-<name>`, e.g. `orders/1718000000000-budget.pdf`."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    safe_name = os.path.basename(name.replace("\\", "/")) or "file"
    return f"{collection}/{now_ms}-{safe_name}"


class LocalArtifactStore:
    """
    Blob storage on the local filesystem, addressed by public URLs of the form
    `<public_base_url>/storage/<bucket>/<key>`.

    Objects are immutable unless the caller uploads with `upsert=True`.
    URLs issued by other hosts are fetched over HTTP.
    """

    def __init__(self, root_dir: str, public_base_url: str, bucket: str = "documents",
                 http_client: Optional[httpx.Client] = None, timeout: float = 10.0):
        self.root = Path(root_dir)
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")
        self.timeout = timeout
        self._http_client = http_client

    # --- keys & paths ---

    @property
    def url_prefix(self) -> str:
        return f"{self.public_base_url}/storage/{self.bucket}/"

    def _normalize_key(self, key: str) -> str:
        if not key or key.startswith("/") or "\\" in key:
            raise InvalidArtifactKey(f"Invalid artifact key: {key!r}")
        parts = PurePosixPath(key).parts
        if any(part in ("", ".", "..") for part in parts) or parts[0] == META_DIR:
            raise InvalidArtifactKey(f"Invalid artifact key: {key!r}")
        return "/".join(parts)

    def _blob_path(self, key: str) -> Path:
        return self.root / self.bucket / key

    def _meta_path(self, key: str) -> Path:
        return self.root / META_DIR / self.bucket / f"{key}.json"

    def get_public_url(self, key: str) -> str:
        key = self._normalize_key(key)
        return self.url_prefix + quote(key)

    def key_for_url(self, url: str) -> Optional[str]:
        if not url or not url.startswith(self.url_prefix):
            return None
        return unquote(url[len(self.url_prefix):])

    def exists(self, key: str) -> bool:
        return self._blob_path(self._normalize_key(key)).is_file()

    # --- writes ---

    def upload(self, key: str, data: bytes, content_type: str = DEFAULT_CONTENT_TYPE,
               cache_control: Optional[str] = None, upsert: bool = False) -> str:
        key = self._normalize_key(key)
        blob_path = self._blob_path(key)
        if blob_path.exists() and not upsert:
            raise KeyConflict(f"Artifact '{key}' already exists")

        try:
            blob_path.parent.mkdir(parents=True, exist_ok=True)
            # "x" falla si otro escritor creó la clave entre medio
            with open(blob_path, "wb" if upsert else "xb") as f:
                f.write(data)
            meta_path = self._meta_path(key)
            meta_path.parent.mkdir(parents=True, exist_ok=True)
            meta_path.write_text(json.dumps({
                "content_type": content_type,
                "cache_control": cache_control,
                "size": len(data),
            }))
        except FileExistsError:
            raise KeyConflict(f"Artifact '{key}' already exists")
        except OSError as e:
            logger.exception("Failed to write artifact %s", key)
            raise TransientIOError(f"Could not store artifact '{key}': {e}")

        logger.info("Stored artifact %s (%d bytes, %s)", key, len(data), content_type)
        return self.get_public_url(key)

    def remove(self, keys: Iterable[str]) -> None:
        for key in keys:
            key = self._normalize_key(key)
            for path in (self._blob_path(key), self._meta_path(key)):
                try:
                    path.unlink()
                except FileNotFoundError:
                    continue
            logger.info("Removed artifact %s", key)

    # --- reads ---

    def open_artifact(self, key: str) -> Tuple[Path, dict]:
        key = self._normalize_key(key)
        blob_path = self._blob_path(key)
        if not blob_path.is_file():
            raise ArtifactNotFound(f"Artifact '{key}' not found")
        try:
            meta = json.loads(self._meta_path(key).read_text())
        except (FileNotFoundError, ValueError):
            meta = {}
        meta.setdefault("content_type", DEFAULT_CONTENT_TYPE)
        return blob_path, meta

    def fetch(self, url: str) -> bytes:
        key = self.key_for_url(url)
        if key is not None:
            blob_path, _ = self.open_artifact(key)
            try:
                return blob_path.read_bytes()
            except OSError as e:
                raise TransientIOError(f"Could not read artifact '{key}': {e}")
        return self._fetch_remote(url)

    def _fetch_remote(self, url: str) -> bytes:
        try:
            if self._http_client is not None:
                response = self._http_client.get(url, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout, follow_redirects=True) as client:
                    response = client.get(url)
        except httpx.TransportError as e:
            raise TransientIOError(f"Could not fetch {url}: {e}")

        if response.status_code == 404:
            raise ArtifactNotFound(f"Artifact not found at {url}")
        if response.status_code >= 500:
            raise TransientIOError(f"Storage returned {response.status_code} for {url}")
        if response.status_code >= 400:
            raise ArtifactNotFound(f"Storage returned {response.status_code} for {url}")
        return response.content
