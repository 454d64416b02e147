"""Required assets: background loop and the two character portraits.

Each asset may be a local path or an http(s) URL. URLs are downloaded into the
asset cache and reused while the cached copy is younger than the TTL.
"""

import hashlib
import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import urlparse

import requests

from ..exceptions import AssetError
from ..models import Speaker
from ..utils.logger import logger
from .config.settings import Settings


@dataclass
class AssetPaths:
    background: Path
    portraits: Dict[Speaker, Path]


def is_url(value: str) -> bool:
    return urlparse(str(value)).scheme in ("http", "https")


class AssetResolver:
    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.cache_dir = Path(settings.system.asset_cache_dir)
        self.ttl = settings.system.asset_cache_ttl
        self.timeout = settings.system.download_timeout
        self.session = session or requests.Session()

    def _cache_path(self, url: str) -> Path:
        # URL 全体のハッシュで区別し、末尾に元のファイル名を残す
        digest = hashlib.sha256(url.encode("utf-8")).hexdigest()[:16]
        name = Path(urlparse(url).path).name or "asset"
        return self.cache_dir / f"{digest}_{name}"

    def _is_fresh(self, path: Path) -> bool:
        if not path.is_file() or path.stat().st_size == 0:
            return False
        return (time.time() - path.stat().st_mtime) < self.ttl

    def download(self, url: str) -> Path:
        """Download ``url`` into the cache unless a fresh copy exists.

        Each call streams into its own ``.part`` file and renames it into place,
        so concurrent downloads of the same URL never share a partial file.
        """
        target = self._cache_path(url)
        if self._is_fresh(target):
            logger.debug(f"[Assets] using cached {target.name}")
            return target

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        fd, partial_name = tempfile.mkstemp(
            prefix=f"{target.name}.", suffix=".part", dir=self.cache_dir
        )
        partial = Path(partial_name)
        logger.info(f"[Assets] downloading {url}")
        try:
            with os.fdopen(fd, "wb") as f:
                with self.session.get(url, stream=True, timeout=self.timeout) as res:
                    res.raise_for_status()
                    for chunk in res.iter_content(chunk_size=1 << 16):
                        if chunk:
                            f.write(chunk)
            partial.replace(target)
        except requests.RequestException as e:
            partial.unlink(missing_ok=True)
            raise AssetError(f"Failed to download {url}: {e}") from e
        return target

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        partial = target.with_name(target.name + ".part")
        logger.info(f"[Assets] downloading {url}")
        try:
            with self.session.get(url, stream=True, timeout=self.timeout) as res:
                res.raise_for_status()
                with open(partial, "wb") as f:
                    for chunk in res.iter_content(chunk_size=1 << 16):
                        if chunk:
                            f.write(chunk)
            partial.replace(target)
        except requests.RequestException as e:
            partial.unlink(missing_ok=True)
            raise AssetError(f"Failed to download {url}: {e}") from e
        return target

    def _local(self, value: str) -> Path:
        return self.download(value) if is_url(value) else Path(value)

    def resolve(self) -> AssetPaths:
        return AssetPaths(
            background=self._local(self.settings.background_source),
            portraits={
                slot: self._local(char.portrait)
                for slot, char in self.settings.characters.items()
            },
        )

    def validate(self, assets: AssetPaths) -> None:
        """Raise :class:`AssetError` listing every missing required asset."""
        errors: List[str] = []
        if not assets.background.is_file():
            errors.append(f"Background video not found: {assets.background}")
        for slot, path in assets.portraits.items():
            if not path.is_file():
                name = self.settings.character(slot).name
                errors.append(f"{name} character image not found: {path}")
        if errors:
            raise AssetError("Asset validation failed:\n" + "\n".join(errors))

    def resolve_and_validate(self) -> AssetPaths:
        assets = self.resolve()
        self.validate(assets)
        return assets
