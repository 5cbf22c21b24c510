from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


DEFAULT_MANIFEST_URL = "https://launchermeta.mojang.com/mc/game/version_manifest.json"
DEFAULT_ASSET_BASE_URL = "https://resources.download.minecraft.net"

# Tried in order for libraries whose explicit URL is missing or broken.
DEFAULT_LIBRARY_MIRRORS: tuple[str, ...] = (
    "https://libraries.minecraft.net",
    "https://maven.minecraftforge.net",
    "https://repo1.maven.org/maven2",
    "https://maven.codehaus.org/maven2",
    "https://oss.sonatype.org/content/repositories/public",
)


@dataclass(frozen=True)
class AppPaths:
    game_root: Path
    versions_dir: Path
    libraries_dir: Path
    assets_dir: Path
    asset_indexes_dir: Path
    asset_objects_dir: Path
    natives_dir: Path
    logs_dir: Path
    state_dir: Path

    @classmethod
    def for_root(cls, game_root: Path) -> "AppPaths":
        game_root = Path(game_root)
        assets_dir = game_root / "assets"
        return cls(
            game_root=game_root,
            versions_dir=game_root / "versions",
            libraries_dir=game_root / "libraries",
            assets_dir=assets_dir,
            asset_indexes_dir=assets_dir / "indexes",
            asset_objects_dir=assets_dir / "objects",
            natives_dir=game_root / "natives",
            logs_dir=game_root / "logs",
            state_dir=game_root / "launcher",
        )

    @classmethod
    def default(cls) -> "AppPaths":
        override_root = os.environ.get("BLOCKLAUNCH_HOME", "").strip()
        if override_root:
            return cls.for_root(Path(override_root))
        return cls.for_root(Path.home() / ".minecraft-launcher")

    def version_dir(self, version_id: str) -> Path:
        return self.versions_dir / version_id

    def version_jar(self, version_id: str) -> Path:
        return self.version_dir(version_id) / f"{version_id}.jar"

    def ensure_layout(self) -> None:
        for path in (
            self.game_root,
            self.versions_dir,
            self.libraries_dir,
            self.assets_dir,
            self.asset_indexes_dir,
            self.asset_objects_dir,
            self.logs_dir,
            self.state_dir,
        ):
            path.mkdir(parents=True, exist_ok=True)


def initialize(cache_root: Path) -> AppPaths:
    paths = AppPaths.for_root(cache_root)
    paths.ensure_layout()
    return paths


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.environ.get(name, str(default)))


def _env_optional_int(name: str) -> int | None:
    raw = os.environ.get(name, "").strip()
    return int(raw) if raw else None


@dataclass(frozen=True)
class RuntimeConfig:
    manifest_url: str = DEFAULT_MANIFEST_URL
    asset_base_url: str = DEFAULT_ASSET_BASE_URL
    library_mirrors: tuple[str, ...] = DEFAULT_LIBRARY_MIRRORS
    download_chunk_size: int = 64 * 1024
    connect_timeout_seconds: int = 10
    read_timeout_seconds: int = 60
    transport_retries: int = 0
    asset_batch_width: int = 10
    asset_failure_ratio: float = 0.1
    asset_max_attempts: int = 3
    asset_backoff_seconds: float = 1.0
    java_probe_timeout_seconds: float = 5.0
    java_command_range: tuple[int, int] = (25, 8)
    bundled_java_dir: Path | None = None
    default_memory_mb: int | None = None

    @classmethod
    def from_env(cls) -> "RuntimeConfig":
        mirrors_raw = os.environ.get("BLOCKLAUNCH_LIBRARY_MIRRORS", "").strip()
        mirrors = (
            tuple(m.strip().rstrip("/") for m in mirrors_raw.split(",") if m.strip())
            if mirrors_raw
            else DEFAULT_LIBRARY_MIRRORS
        )
        bundled_raw = os.environ.get("BLOCKLAUNCH_BUNDLED_JAVA_DIR", "").strip()
        return cls(
            manifest_url=os.environ.get("BLOCKLAUNCH_MANIFEST_URL", DEFAULT_MANIFEST_URL),
            asset_base_url=os.environ.get("BLOCKLAUNCH_ASSET_BASE_URL", DEFAULT_ASSET_BASE_URL).rstrip("/"),
            library_mirrors=mirrors,
            download_chunk_size=_env_int("BLOCKLAUNCH_DOWNLOAD_CHUNK", 64 * 1024),
            connect_timeout_seconds=_env_int("BLOCKLAUNCH_CONNECT_TIMEOUT", 10),
            read_timeout_seconds=_env_int("BLOCKLAUNCH_READ_TIMEOUT", 60),
            transport_retries=_env_int("BLOCKLAUNCH_TRANSPORT_RETRIES", 0),
            asset_batch_width=_env_int("BLOCKLAUNCH_ASSET_BATCH", 10),
            asset_failure_ratio=_env_float("BLOCKLAUNCH_ASSET_FAILURE_RATIO", 0.1),
            asset_max_attempts=_env_int("BLOCKLAUNCH_ASSET_ATTEMPTS", 3),
            asset_backoff_seconds=_env_float("BLOCKLAUNCH_ASSET_BACKOFF", 1.0),
            java_probe_timeout_seconds=_env_float("BLOCKLAUNCH_JAVA_PROBE_TIMEOUT", 5.0),
            bundled_java_dir=Path(bundled_raw) if bundled_raw else None,
            default_memory_mb=_env_optional_int("BLOCKLAUNCH_MEMORY_MB"),
        )
