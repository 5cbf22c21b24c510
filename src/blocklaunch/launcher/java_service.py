from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Iterable, Mapping

from blocklaunch.common.config import RuntimeConfig
from blocklaunch.common.errors import RuntimeIncompatible, RuntimeNotFound
from blocklaunch.common.platform import LINUX, OSX, WINDOWS, PlatformInfo, path_key
from blocklaunch.common.types import JavaInstallation, VersionDescriptor


log = logging.getLogger(__name__)

ORIGIN_BUNDLED = "bundled"
ORIGIN_ENV_HOME = "env_home"
ORIGIN_WELL_KNOWN = "well_known_dir"
ORIGIN_PATH = "path_probe"

BUNDLED_VENDOR = "Zulu (Built-in)"
LOWEST_SUPPORTED_MAJOR = 8

_LEGACY_VERSION_RE = re.compile(r'version\s+"1\.(\d+)')
_MODERN_VERSION_RE = re.compile(r'version\s+"(\d+)')
_ZULU_FOLDER_RE = re.compile(r"zulu(\d+)", re.IGNORECASE)
_LEGACY_JDK_FOLDER_RE = re.compile(r"(?:jdk|jre)-?1\.(\d+)", re.IGNORECASE)
_JDK_FOLDER_RE = re.compile(r"(?:jdk|jre)-?(\d+)", re.IGNORECASE)
_SNAPSHOT_RE = re.compile(r"^(\d{2})w\d{2}")
_RELEASE_RE = re.compile(r"^1\.(\d+)(?:\.(\d+))?")

# (folder under Program Files, vendor label)
WINDOWS_VENDOR_DIRS: tuple[tuple[str, str], ...] = (
    ("Eclipse Adoptium", "Adoptium"),
    ("Temurin", "Adoptium"),
    ("Java", "Oracle"),
    ("OpenJDK", "OpenJDK"),
    ("Zulu", "Azul Zulu"),
    ("Azul", "Azul Zulu"),
    ("Amazon Corretto", "Amazon Corretto"),
    ("Corretto", "Amazon Corretto"),
    ("Microsoft", "Microsoft"),
    ("BellSoft", "Liberica"),
    ("Liberica", "Liberica"),
    ("GraalVM", "GraalVM"),
    ("SapMachine", "SAP"),
    ("Semeru", "IBM Semeru"),
    ("RedHat", "Red Hat"),
)

# (substring of the JVM folder name, vendor label), first match wins
_VENDOR_MARKERS: tuple[tuple[str, str], ...] = (
    ("temurin", "Adoptium"),
    ("adoptium", "Adoptium"),
    ("zulu", "Azul Zulu"),
    ("corretto", "Amazon Corretto"),
    ("liberica", "Liberica"),
    ("graalvm", "GraalVM"),
    ("openjdk", "OpenJDK"),
    ("oracle", "Oracle"),
)


def parse_java_version(output: str) -> int | None:
    legacy = _LEGACY_VERSION_RE.search(output)
    if legacy:
        return int(legacy.group(1))
    modern = _MODERN_VERSION_RE.search(output)
    if modern:
        return int(modern.group(1))
    return None


def vendor_from_name(name: str) -> str:
    lowered = name.lower()
    for marker, vendor in _VENDOR_MARKERS:
        if marker in lowered:
            return vendor
    return "Unknown"


def major_from_folder_name(name: str) -> int | None:
    for pattern in (_ZULU_FOLDER_RE, _LEGACY_JDK_FOLDER_RE, _JDK_FOLDER_RE):
        match = pattern.search(name)
        if match:
            return int(match.group(1))
    return None


def required_java_major(descriptor: VersionDescriptor) -> int:
    if descriptor.required_java_major:
        return descriptor.required_java_major

    version_id = descriptor.id or ""
    snapshot = _SNAPSHOT_RE.match(version_id)
    if snapshot:
        year = int(snapshot.group(1))
        if year >= 24:
            return 21
        if year >= 21:
            return 17
        return LOWEST_SUPPORTED_MAJOR

    release = _RELEASE_RE.match(version_id)
    if release:
        minor = int(release.group(1))
        patch = int(release.group(2) or 0)
        if minor >= 21 or (minor == 20 and patch >= 5):
            return 21
        if minor >= 18:
            return 17
        if minor == 17:
            return 16
    return LOWEST_SUPPORTED_MAJOR


def select_runtime(required: int, candidates: Iterable[JavaInstallation]) -> JavaInstallation | None:
    candidates = list(candidates)
    for candidate in candidates:
        if candidate.major_version == required:
            return candidate
    compatible = [c for c in candidates if c.major_version >= required]
    if not compatible:
        return None
    # min() keeps the first of equal majors, so discovery order breaks ties.
    return min(compatible, key=lambda c: c.major_version)


class JavaService:
    def __init__(
        self,
        runtime: RuntimeConfig,
        platform: PlatformInfo,
        env: Mapping[str, str] | None = None,
        home: Path | None = None,
    ):
        self.runtime = runtime
        self.platform = platform
        self.env = os.environ if env is None else env
        self.home = home or Path.home()

    def probe_version(self, executable: str) -> int | None:
        try:
            completed = subprocess.run(
                [executable, "-version"],
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=self.runtime.java_probe_timeout_seconds,
                check=False,
                shell=False,
                text=True,
                errors="replace",
            )
        except (OSError, subprocess.SubprocessError):
            return None
        return parse_java_version(completed.stdout or "")

    def _bundled_roots(self) -> list[Path]:
        if self.runtime.bundled_java_dir is not None:
            return [self.runtime.bundled_java_dir]
        app_dirs: list[Path] = []
        portable = self.env.get("PORTABLE_EXECUTABLE_DIR", "").strip()
        if portable:
            app_dirs.append(Path(portable))
        app_dirs.append(Path(sys.executable).resolve().parent)
        if sys.argv and sys.argv[0]:
            app_dirs.append(Path(sys.argv[0]).resolve().parent)
        # src/blocklaunch/launcher/java_service.py -> project root is parents[3]
        app_dirs.append(Path(__file__).resolve().parents[3])
        for app_dir in app_dirs:
            java_dir = app_dir / "java"
            log.debug("Checking for java directory at: %s", java_dir)
            if java_dir.is_dir():
                return [java_dir]
        return []

    def find_bundled(self) -> list[JavaInstallation]:
        found: list[JavaInstallation] = []
        for base in self._bundled_roots():
            platform_dir = base / self.platform.bundled_java_subdir
            if not platform_dir.is_dir():
                log.debug("No built-in Java found for platform: %s", self.platform.os_name)
                continue
            for folder in sorted(platform_dir.iterdir()):
                if not folder.is_dir():
                    continue
                exe = folder / "bin" / self.platform.bundled_java_executable
                if not exe.exists():
                    log.debug("Skipped %s: missing bin directory or executable", folder.name)
                    continue
                major = major_from_folder_name(folder.name) or self.probe_version(str(exe))
                if major is None:
                    log.debug("Skipped %s: version not recognised", folder.name)
                    continue
                if _ZULU_FOLDER_RE.search(folder.name):
                    vendor = BUNDLED_VENDOR
                else:
                    vendor = f"{vendor_from_name(folder.name)} (Built-in)"
                found.append(JavaInstallation(str(exe), major, vendor, ORIGIN_BUNDLED))
                log.info("Found built-in Java %s at %s", major, exe)
        return found

    def _well_known_candidates(self) -> list[tuple[str, str]]:
        exe = self.platform.java_executable
        candidates: list[tuple[str, str]] = []
        if self.platform.os_name == WINDOWS:
            bases = [
                Path(self.env.get("ProgramFiles") or "C:\\Program Files"),
                Path(self.env.get("ProgramFiles(x86)") or "C:\\Program Files (x86)"),
            ]
            for base in bases:
                for folder, vendor in WINDOWS_VENDOR_DIRS:
                    vendor_dir = base / folder
                    if not vendor_dir.is_dir():
                        continue
                    # Newer installs first.
                    for child in sorted(vendor_dir.iterdir(), reverse=True):
                        candidates.append((str(child / "bin" / exe), vendor))
                if base.is_dir():
                    for item in sorted(base.iterdir()):
                        lowered = item.name.lower()
                        if "jdk" in lowered or "jre" in lowered:
                            candidates.append((str(item / "bin" / exe), "Generic"))
        elif self.platform.os_name == OSX:
            bases = [
                Path("/Library/Java/JavaVirtualMachines"),
                Path("/System/Library/Java/JavaVirtualMachines"),
                self.home / "Library" / "Java" / "JavaVirtualMachines",
            ]
            for base in bases:
                if not base.is_dir():
                    continue
                for jvm in sorted(base.iterdir()):
                    candidates.append((str(jvm / "Contents" / "Home" / "bin" / exe), vendor_from_name(jvm.name)))
        elif self.platform.os_name == LINUX:
            bases = [
                Path("/usr/lib/jvm"),
                Path("/usr/java"),
                Path("/opt/java"),
                Path("/opt/jdk"),
                self.home / ".sdkman" / "candidates" / "java",
            ]
            for base in bases:
                if not base.is_dir():
                    continue
                for jvm in sorted(base.iterdir()):
                    candidates.append((str(jvm / "bin" / exe), vendor_from_name(jvm.name)))
        return candidates

    def _path_commands(self) -> list[tuple[str, str]]:
        commands = [("java", "PATH")]
        high, low = self.runtime.java_command_range
        for major in range(high, low - 1, -1):
            commands.append((self.platform.versioned_java_command(major), f"PATH (Java {major})"))
        return commands

    def find_system(self) -> list[JavaInstallation]:
        found: list[JavaInstallation] = []
        seen: set[str] = set()

        def add(executable: str, vendor: str, origin: str) -> None:
            key = path_key(executable)
            if key in seen:
                return
            major = self.probe_version(executable)
            if major is None:
                return
            seen.add(key)
            found.append(JavaInstallation(executable, major, vendor, origin))

        java_home = self.env.get("JAVA_HOME", "").strip()
        if java_home:
            exe = Path(java_home) / "bin" / self.platform.java_executable
            if exe.exists():
                add(str(exe), "JAVA_HOME", ORIGIN_ENV_HOME)

        for executable, vendor in self._well_known_candidates():
            if Path(executable).exists():
                add(executable, vendor, ORIGIN_WELL_KNOWN)

        for command, vendor in self._path_commands():
            resolved = shutil.which(command, path=self.env.get("PATH"))
            if resolved:
                add(resolved, vendor, ORIGIN_PATH)

        # Stable sort: highest major first, discovery order among equals.
        return sorted(found, key=lambda j: j.major_version, reverse=True)

    def discover(self) -> list[JavaInstallation]:
        unique: list[JavaInstallation] = []
        seen: set[str] = set()
        for candidate in [*self.find_bundled(), *self.find_system()]:
            key = path_key(candidate.executable_path)
            if key in seen:
                continue
            seen.add(key)
            unique.append(candidate)
        return unique

    def choose(
        self,
        version_id: str,
        required: int,
        candidates: list[JavaInstallation] | None = None,
    ) -> JavaInstallation:
        if candidates is None:
            candidates = self.discover()
        if not candidates:
            raise RuntimeNotFound(required)
        log.info("Found %d Java installation(s):", len(candidates))
        for c in candidates:
            log.info("  - Java %s (%s) at %s", c.major_version, c.vendor, c.executable_path)
        selected = select_runtime(required, candidates)
        if selected is None:
            raise RuntimeIncompatible(version_id, required, (c.major_version for c in candidates))
        log.info(
            "Selected Java %s (%s) at: %s",
            selected.major_version,
            selected.vendor,
            selected.executable_path,
        )
        return selected
