from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Union


DEFAULT_MAIN_CLASS = "net.minecraft.client.main.Main"
DEFAULT_MEMORY_MB = 2048


@dataclass(frozen=True)
class VersionSummary:
    id: str
    kind: str
    release_time: str
    descriptor_url: str


@dataclass(frozen=True)
class VersionManifest:
    latest_release: str
    versions: tuple[VersionSummary, ...]

    def find(self, version_id: str) -> VersionSummary | None:
        for summary in self.versions:
            if summary.id == version_id:
                return summary
        return None


@dataclass(frozen=True)
class Artifact:
    url: str | None = None
    path: str | None = None
    size: int | None = None


@dataclass(frozen=True)
class MavenCoordinate:
    group: str
    artifact: str
    version: str
    classifier: str | None = None
    extension: str = "jar"

    @classmethod
    def parse(cls, name: str) -> "MavenCoordinate":
        raw = str(name or "").strip()
        extension = "jar"
        if "@" in raw:
            raw, extension = raw.rsplit("@", 1)
        parts = raw.split(":")
        if len(parts) < 3 or not all(parts[:3]):
            raise ValueError(f"Invalid library coordinate: {name!r}")
        classifier = parts[3] if len(parts) > 3 and parts[3] else None
        return cls(
            group=parts[0],
            artifact=parts[1],
            version=parts[2],
            classifier=classifier,
            extension=extension or "jar",
        )

    def with_classifier(self, classifier: str) -> "MavenCoordinate":
        return MavenCoordinate(self.group, self.artifact, self.version, classifier, self.extension)

    @property
    def path(self) -> str:
        suffix = f"-{self.classifier}" if self.classifier else ""
        filename = f"{self.artifact}-{self.version}{suffix}.{self.extension}"
        return "/".join([*self.group.split("."), self.artifact, self.version, filename])

    def __str__(self) -> str:
        text = f"{self.group}:{self.artifact}:{self.version}"
        if self.classifier:
            text += f":{self.classifier}"
        return text


@dataclass(frozen=True)
class PlatformRule:
    action: str
    os_name: str | None = None
    os_arch: str | None = None

    @property
    def allows(self) -> bool:
        return self.action == "allow"


@dataclass(frozen=True)
class LibraryEntry:
    coordinate: MavenCoordinate
    artifact: Artifact | None = None
    native_classifiers: Mapping[str, str] = field(default_factory=dict)
    classifiers: Mapping[str, Artifact] = field(default_factory=dict)
    rules: tuple[PlatformRule, ...] = ()
    extract_exclude: tuple[str, ...] = ()

    @property
    def name(self) -> str:
        return str(self.coordinate)

    @property
    def is_native_only(self) -> bool:
        return self.artifact is None and bool(self.classifiers or self.native_classifiers)

    @property
    def relative_path(self) -> str:
        if self.artifact is not None and self.artifact.path:
            return self.artifact.path
        return self.coordinate.path


@dataclass(frozen=True)
class LegacyArguments:
    template: str


@dataclass(frozen=True)
class ModernArguments:
    """Descriptor with a structured ``arguments`` block; launched with the fixed flag set."""


ArgumentSpec = Union[LegacyArguments, ModernArguments]


@dataclass(frozen=True)
class AssetIndexRef:
    id: str
    url: str
    size: int | None = None


@dataclass(frozen=True)
class VersionDescriptor:
    id: str
    main_class: str
    asset_index: AssetIndexRef | None
    client_download: Artifact | None
    libraries: tuple[LibraryEntry, ...]
    arguments: ArgumentSpec
    kind: str = "release"
    required_java_major: int | None = None


@dataclass(frozen=True)
class AssetObject:
    hash: str
    size: int


@dataclass(frozen=True)
class AssetIndex:
    id: str
    objects: Mapping[str, AssetObject]


@dataclass(frozen=True)
class JavaInstallation:
    executable_path: str
    major_version: int
    vendor: str
    origin: str


@dataclass(frozen=True)
class Account:
    username: str
    uuid: str
    access_token: str
    type: str = "offline"

    @property
    def is_microsoft(self) -> bool:
        return self.type == "microsoft"


@dataclass(frozen=True)
class LaunchRequest:
    version_id: str | None = None
    memory_mb: int | None = None
    username: str | None = None


@dataclass(frozen=True)
class LaunchPlan:
    classpath: tuple[Path, ...]
    selected_runtime: JavaInstallation
    argument_vector: tuple[str, ...]
    working_dir: Path
    main_class: str = DEFAULT_MAIN_CLASS

    def command(self) -> list[str]:
        return [self.selected_runtime.executable_path, *self.argument_vector]
