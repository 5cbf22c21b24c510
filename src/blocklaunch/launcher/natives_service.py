from __future__ import annotations

import logging
import shutil
import zipfile
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from blocklaunch.common.config import AppPaths
from blocklaunch.common.types import LibraryEntry, VersionDescriptor
from blocklaunch.launcher.library_service import LibraryService


log = logging.getLogger(__name__)

METADATA_PREFIX = "META-INF/"


@dataclass
class NativeExtractionResult:
    extracted: list[str] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)

    @property
    def warnings(self) -> list[str]:
        return [f"Failed to extract natives from {item}" for item in self.failures]


class NativesService:
    def __init__(self, paths: AppPaths, libraries: LibraryService):
        self.paths = paths
        self.libraries = libraries

    def reset_directory(self) -> Path:
        natives_dir = self.paths.natives_dir
        if natives_dir.exists():
            shutil.rmtree(natives_dir)
        natives_dir.mkdir(parents=True, exist_ok=True)
        return natives_dir

    @staticmethod
    def _excluded(name: str, library: LibraryEntry) -> bool:
        if name.startswith(METADATA_PREFIX):
            return True
        return any(name.startswith(prefix) for prefix in library.extract_exclude)

    def _extract_archive(self, archive: Path, library: LibraryEntry, natives_dir: Path) -> int:
        count = 0
        with zipfile.ZipFile(archive, "r") as zf:
            for info in zf.infolist():
                if info.is_dir() or self._excluded(info.filename, library):
                    continue
                # Flat layout: only the entry's file name survives.
                filename = PurePosixPath(info.filename.replace("\\", "/")).name
                if not filename or filename in {".", ".."}:
                    continue
                with zf.open(info, "r") as src, (natives_dir / filename).open("wb") as dst:
                    shutil.copyfileobj(src, dst, length=1024 * 1024)
                count += 1
        return count

    def extract(self, descriptor: VersionDescriptor) -> NativeExtractionResult:
        natives_dir = self.reset_directory()
        result = NativeExtractionResult()
        log.info("Extracting native libraries...")

        for library in self.libraries.eligible_libraries(descriptor):
            archive = self.libraries.native_path(library)
            if archive is None:
                continue
            if not archive.exists():
                log.warning("Native library not found: %s", archive)
                result.failures.append(library.name)
                continue
            try:
                count = self._extract_archive(archive, library, natives_dir)
            except (zipfile.BadZipFile, OSError) as exc:
                log.warning("Failed to extract natives from %s: %s", library.name, exc)
                result.failures.append(library.name)
                continue
            log.info("Extracted %d native files from %s", count, library.name)
            result.extracted.append(library.name)

        log.info("Native extraction complete")
        return result
