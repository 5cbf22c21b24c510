from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable

import requests

from blocklaunch.common.config import AppPaths, RuntimeConfig
from blocklaunch.common.errors import DownloadError
from blocklaunch.common.platform import PlatformInfo
from blocklaunch.common.types import Artifact, LibraryEntry, PlatformRule, VersionDescriptor
from blocklaunch.launcher.http import build_session, download_file, is_cached


log = logging.getLogger(__name__)


def rule_applies(rule: PlatformRule, platform: PlatformInfo) -> bool:
    if rule.os_name is not None and rule.os_name != platform.os_name:
        return False
    if rule.os_arch is not None and not platform.matches_arch(rule.os_arch):
        return False
    return True


def rule_allows(rules: Iterable[PlatformRule], platform: PlatformInfo) -> bool:
    """Evaluate rules in order; the last applicable rule decides."""
    rules = tuple(rules)
    if not rules:
        return True
    allowed = False
    for rule in rules:
        if rule_applies(rule, platform):
            allowed = rule.allows
    return allowed


def native_classifier(library: LibraryEntry, platform: PlatformInfo) -> str | None:
    key = library.native_classifiers.get(platform.os_name)
    if not key:
        return None
    return key.replace("${arch}", platform.arch_bits)


@dataclass
class LibrarySyncResult:
    downloaded: list[str] = field(default_factory=list)
    cached: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)

    @property
    def warnings(self) -> list[str]:
        return [f"Failed to download library {name}" for name in self.missing]


class LibraryService:
    def __init__(
        self,
        paths: AppPaths,
        runtime: RuntimeConfig,
        platform: PlatformInfo,
        session: requests.Session | None = None,
    ):
        self.paths = paths
        self.runtime = runtime
        self.platform = platform
        self.session = session or build_session(runtime)

    def eligible_libraries(self, descriptor: VersionDescriptor) -> list[LibraryEntry]:
        return [lib for lib in descriptor.libraries if rule_allows(lib.rules, self.platform)]

    def library_path(self, library: LibraryEntry) -> Path:
        return self.paths.libraries_dir / Path(*library.relative_path.split("/"))

    def native_artifact(self, library: LibraryEntry) -> tuple[Artifact, str] | None:
        """Return the current platform's native artifact and its repository path."""
        key = native_classifier(library, self.platform)
        if key is None:
            return None
        artifact = library.classifiers.get(key)
        if artifact is None:
            if library.classifiers:
                return None
            # Coordinate-only descriptors: derive the classifier jar from the name.
            artifact = Artifact()
        rel = artifact.path or library.coordinate.with_classifier(key).path
        return artifact, rel

    def native_path(self, library: LibraryEntry) -> Path | None:
        resolved = self.native_artifact(library)
        if resolved is None:
            return None
        return self.paths.libraries_dir / Path(*resolved[1].split("/"))

    def _candidate_urls(self, explicit_url: str | None, rel_path: str) -> list[str]:
        urls = []
        if explicit_url:
            urls.append(explicit_url)
        for mirror in self.runtime.library_mirrors:
            url = f"{mirror.rstrip('/')}/{rel_path}"
            if url not in urls:
                urls.append(url)
        return urls

    def _fetch_from_sources(
        self,
        name: str,
        explicit_url: str | None,
        rel_path: str,
        destination: Path,
        size: int | None,
        progress: Callable[[float], None] | None = None,
    ) -> bool:
        for url in self._candidate_urls(explicit_url, rel_path):
            try:
                written = download_file(
                    self.session,
                    self.runtime,
                    url,
                    destination,
                    progress=progress,
                    expected_size=size,
                )
                if size is not None and written != size:
                    destination.unlink(missing_ok=True)
                    raise DownloadError(
                        f"Size mismatch for {url}: expected {size}, got {written}",
                        url=url,
                        path=str(destination),
                    )
            except DownloadError as exc:
                if url == explicit_url:
                    log.warning("Direct URL failed for %s, trying fallback repos...", name)
                else:
                    log.debug("Mirror miss for %s: %s", name, exc)
                continue
            if url != explicit_url:
                log.info("Downloaded %s from fallback repo: %s", name, url)
            return True
        return False

    def sync(
        self,
        descriptor: VersionDescriptor,
        progress: Callable[[float], None] | None = None,
    ) -> LibrarySyncResult:
        libraries = self.eligible_libraries(descriptor)
        total = len(libraries)
        result = LibrarySyncResult()

        for index, library in enumerate(libraries):

            def file_progress(fraction: float, index: int = index) -> None:
                if progress is not None and total:
                    progress((index + fraction) / total)

            if not library.is_native_only:
                destination = self.library_path(library)
                size = library.artifact.size if library.artifact else None
                if is_cached(destination, size):
                    result.cached.append(library.name)
                elif self._fetch_from_sources(
                    library.name,
                    library.artifact.url if library.artifact else None,
                    library.relative_path,
                    destination,
                    size,
                    progress=file_progress,
                ):
                    result.downloaded.append(library.name)
                else:
                    log.warning("Failed to download library %s from all repos", library.name)
                    result.missing.append(library.name)

            native = self.native_artifact(library)
            if native is not None:
                artifact, rel = native
                native_name = f"{library.name} (natives)"
                destination = self.paths.libraries_dir / Path(*rel.split("/"))
                if is_cached(destination, artifact.size):
                    result.cached.append(native_name)
                elif self._fetch_from_sources(native_name, artifact.url, rel, destination, artifact.size):
                    result.downloaded.append(native_name)
                else:
                    log.warning("Failed to download native library %s", library.name)
                    result.missing.append(native_name)

            if progress is not None and total:
                progress((index + 1) / total)

        if progress is not None and not total:
            progress(1.0)
        log.info(
            "Libraries downloaded: %d, cached: %d, failed: %d",
            len(result.downloaded),
            len(result.cached),
            len(result.missing),
        )
        return result
