from __future__ import annotations

import json
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

import requests

from blocklaunch.common.config import AppPaths, RuntimeConfig
from blocklaunch.common.errors import AssetSyncError, DownloadError
from blocklaunch.common.types import AssetIndex, AssetIndexRef, AssetObject, VersionDescriptor
from blocklaunch.launcher.http import build_session, download_file, is_cached


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FailedAsset:
    path: str
    hash: str
    error: str


@dataclass
class AssetSyncResult:
    total: int = 0
    downloaded: int = 0
    cached: int = 0
    failed: list[FailedAsset] = field(default_factory=list)

    @property
    def completed(self) -> int:
        return self.downloaded + self.cached

    @property
    def warnings(self) -> list[str]:
        if not self.failed:
            return []
        return [
            f"Warning: {len(self.failed)} assets failed to download. "
            "Game may have missing textures or sounds."
        ]


class AssetService:
    def __init__(
        self,
        paths: AppPaths,
        runtime: RuntimeConfig,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.paths = paths
        self.runtime = runtime
        self.session = session or build_session(runtime)
        self._sleep = sleep
        self._lock = threading.Lock()

    def index_path(self, ref: AssetIndexRef) -> Path:
        return self.paths.asset_indexes_dir / f"{ref.id}.json"

    def object_path(self, digest: str) -> Path:
        return self.paths.asset_objects_dir / digest[:2] / digest

    def object_url(self, digest: str) -> str:
        return f"{self.runtime.asset_base_url.rstrip('/')}/{digest[:2]}/{digest}"

    def ensure_index(self, ref: AssetIndexRef) -> Path:
        path = self.index_path(ref)
        if not is_cached(path, None):
            log.info("Downloading asset index %s", ref.id)
            download_file(self.session, self.runtime, ref.url, path, expected_size=ref.size)
        return path

    def load_index(self, index_id: str, path: Path) -> AssetIndex:
        try:
            with path.open("r", encoding="utf-8") as fh:
                raw = json.load(fh)
            objects = {
                str(name): AssetObject(hash=str(item["hash"]), size=int(item["size"]))
                for name, item in (raw.get("objects") or {}).items()
            }
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            raise AssetSyncError(f"Asset index {path} is unreadable: {exc}") from exc
        return AssetIndex(id=index_id, objects=objects)

    def _fetch_object(self, name: str, obj: AssetObject) -> tuple[str, FailedAsset | None]:
        """Return ("cached" | "downloaded" | "failed", failure)."""
        destination = self.object_path(obj.hash)
        if is_cached(destination, obj.size):
            return "cached", None

        attempts = max(1, self.runtime.asset_max_attempts)
        last_error = ""
        for attempt in range(attempts):
            try:
                download_file(self.session, self.runtime, self.object_url(obj.hash), destination)
                actual = destination.stat().st_size
                if actual != obj.size:
                    destination.unlink(missing_ok=True)
                    raise DownloadError(f"Size mismatch: expected {obj.size}, got {actual}")
                return "downloaded", None
            except (DownloadError, OSError) as exc:
                last_error = str(exc)
                if attempt < attempts - 1:
                    self._sleep(self.runtime.asset_backoff_seconds * (2**attempt))

        log.warning("Failed to download asset %s after %d attempts", obj.hash, attempts)
        return "failed", FailedAsset(path=name, hash=obj.hash, error=last_error)

    def sync_objects(
        self,
        index: AssetIndex,
        progress: Callable[[float], None] | None = None,
    ) -> AssetSyncResult:
        # Many logical paths share one object file; fetch each hash once.
        by_hash: dict[str, tuple[AssetObject, list[str]]] = {}
        for name, obj in index.objects.items():
            by_hash.setdefault(obj.hash, (obj, []))[1].append(name)
        entries = list(by_hash.values())
        result = AssetSyncResult(total=len(index.objects))
        width = max(1, self.runtime.asset_batch_width)
        log.info("Downloading %d asset files (%d unique)...", result.total, len(entries))

        def run_one(obj: AssetObject, names: list[str]) -> None:
            outcome, failure = self._fetch_object(names[0], obj)
            with self._lock:
                if outcome == "cached":
                    result.cached += len(names)
                elif outcome == "downloaded":
                    result.downloaded += len(names)
                else:
                    result.failed.extend(
                        FailedAsset(path=name, hash=obj.hash, error=failure.error) for name in names
                    )
                finished = result.completed + len(result.failed)
            if progress is not None and result.total:
                progress(finished / result.total)

        with ThreadPoolExecutor(max_workers=width, thread_name_prefix="blocklaunch-assets") as pool:
            for start in range(0, len(entries), width):
                batch = entries[start : start + width]
                futures = [pool.submit(run_one, obj, names) for obj, names in batch]
                for future in futures:
                    future.result()
                log.debug(
                    "Assets: %d/%d downloaded (%d failed)",
                    result.completed,
                    result.total,
                    len(result.failed),
                )

        log.info(
            "Asset download complete: %d/%d (%d failed)",
            result.completed,
            result.total,
            len(result.failed),
        )
        if len(result.failed) > result.total * self.runtime.asset_failure_ratio:
            raise AssetSyncError(
                f"Too many asset downloads failed ({len(result.failed)}/{result.total})."
            )
        for warning in result.warnings:
            log.warning(warning)
        if progress is not None:
            progress(1.0)
        return result

    def sync(
        self,
        descriptor: VersionDescriptor,
        progress: Callable[[float], None] | None = None,
    ) -> AssetSyncResult:
        if descriptor.asset_index is None:
            log.info("Version %s declares no asset index", descriptor.id)
            if progress is not None:
                progress(1.0)
            return AssetSyncResult()
        try:
            index_path = self.ensure_index(descriptor.asset_index)
        except DownloadError as exc:
            raise AssetSyncError(f"Failed to download asset index {descriptor.asset_index.id}: {exc}") from exc
        index = self.load_index(descriptor.asset_index.id, index_path)
        return self.sync_objects(index, progress=progress)
