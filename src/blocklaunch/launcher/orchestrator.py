from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import requests

from blocklaunch.common.config import AppPaths, RuntimeConfig
from blocklaunch.common.errors import AccountMissing, DownloadError, LauncherError
from blocklaunch.common.events import (
    EventBus,
    GameClosed,
    GameStarted,
    ProgressTracker,
    StateChanged,
    WarningRaised,
)
from blocklaunch.common.platform import PlatformInfo
from blocklaunch.common.types import (
    DEFAULT_MEMORY_MB,
    Account,
    JavaInstallation,
    LaunchPlan,
    LaunchRequest,
    LegacyArguments,
    VersionDescriptor,
)
from blocklaunch.launcher.accounts import AccountProvider, auth_fields
from blocklaunch.launcher.asset_service import AssetService
from blocklaunch.launcher.http import build_session, download_file, is_cached
from blocklaunch.launcher.java_service import JavaService, required_java_major
from blocklaunch.launcher.library_service import LibraryService
from blocklaunch.launcher.manifest_service import ManifestService
from blocklaunch.launcher.natives_service import NativesService
from blocklaunch.launcher.process_service import ProcessService


log = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\$\{([^}]+)\}")

# Progress boundaries (percent) of the weighted phases.
MANIFEST_DONE = 5.0
CLIENT_JAR_DONE = 35.0
LIBRARIES_DONE = 85.0
ASSETS_DONE = 100.0

MAX_LISTED_MISSING = 10


class LaunchState(str, Enum):
    IDLE = "idle"
    RESOLVING_MANIFEST = "resolving_manifest"
    FETCHING_CLIENT_JAR = "fetching_client_jar"
    FETCHING_LIBRARIES = "fetching_libraries"
    FETCHING_ASSETS = "fetching_assets"
    EXTRACTING_NATIVES = "extracting_natives"
    DISCOVERING_RUNTIME = "discovering_runtime"
    BUILDING_PLAN = "building_plan"
    LAUNCHING = "launching"
    RUNNING = "running"
    CLOSED = "closed"
    ERROR = "error"


_FORWARD_ORDER = [s for s in LaunchState if s is not LaunchState.ERROR]


@dataclass(frozen=True)
class LaunchResult:
    state: LaunchState
    exit_code: int | None = None
    error: str | None = None
    warnings: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.error is None


class LaunchOrchestrator:
    """Runs one launch from manifest lookup to game exit.

    Not safe to run concurrently against the same game directory: the cache
    tree is shared without any locking.
    """

    def __init__(
        self,
        paths: AppPaths,
        runtime: RuntimeConfig,
        accounts: AccountProvider,
        events: EventBus | None = None,
        platform: PlatformInfo | None = None,
        session: requests.Session | None = None,
        manifests: ManifestService | None = None,
        libraries: LibraryService | None = None,
        assets: AssetService | None = None,
        natives: NativesService | None = None,
        java: JavaService | None = None,
        processes: ProcessService | None = None,
    ):
        self.paths = paths
        self.runtime = runtime
        self.accounts = accounts
        self.events = events or EventBus()
        self.platform = platform or PlatformInfo.current()
        self.session = session or build_session(runtime)
        self.manifests = manifests or ManifestService(runtime, session=self.session)
        self.libraries = libraries or LibraryService(paths, runtime, self.platform, session=self.session)
        self.assets = assets or AssetService(paths, runtime, session=self.session)
        self.natives = natives or NativesService(paths, self.libraries)
        self.java = java or JavaService(runtime, self.platform)
        self.processes = processes or ProcessService()
        self.progress = ProgressTracker(self.events)
        self.state = LaunchState.IDLE
        self.warnings: list[str] = []

    def _transition(self, state: LaunchState) -> None:
        if self.state in (LaunchState.ERROR, LaunchState.CLOSED):
            raise RuntimeError(f"Launch already finished in state {self.state.value}")
        if state is not LaunchState.ERROR:
            if _FORWARD_ORDER.index(state) <= _FORWARD_ORDER.index(self.state):
                raise RuntimeError(f"Illegal launch transition {self.state.value} -> {state.value}")
        log.debug("Launch state %s -> %s", self.state.value, state.value)
        self.state = state
        self.events.publish(StateChanged(state.value))

    def _warn(self, message: str) -> None:
        self.warnings.append(message)
        self.events.publish(WarningRaised(message))

    def run(self, request: LaunchRequest) -> LaunchResult:
        """Launch and report the outcome instead of raising launcher errors."""
        try:
            code = self.execute(request)
        except LauncherError as exc:
            log.error("Launch failed: %s", exc)
            self._transition(LaunchState.ERROR)
            return LaunchResult(
                state=self.state,
                error=exc.user_message(),
                warnings=tuple(self.warnings),
            )
        except OSError as exc:
            log.exception("Launch failed on a filesystem error")
            self._transition(LaunchState.ERROR)
            return LaunchResult(state=self.state, error=str(exc), warnings=tuple(self.warnings))
        return LaunchResult(state=self.state, exit_code=code, warnings=tuple(self.warnings))

    def execute(self, request: LaunchRequest) -> int:
        self._transition(LaunchState.RESOLVING_MANIFEST)
        self.progress.report(0)
        self.paths.ensure_layout()
        descriptor = self.manifests.resolve(request.version_id)
        self.progress.report(MANIFEST_DONE)

        self._transition(LaunchState.FETCHING_CLIENT_JAR)
        self.fetch_client_jar(descriptor)
        self.progress.report(CLIENT_JAR_DONE)

        self._transition(LaunchState.FETCHING_LIBRARIES)
        libraries = self.libraries.sync(descriptor, self.progress.phase(CLIENT_JAR_DONE, LIBRARIES_DONE))
        for warning in libraries.warnings:
            self._warn(warning)
        self.progress.report(LIBRARIES_DONE)

        self._transition(LaunchState.FETCHING_ASSETS)
        assets = self.assets.sync(descriptor, self.progress.phase(LIBRARIES_DONE, ASSETS_DONE))
        for warning in assets.warnings:
            self._warn(warning)
        self.progress.report(ASSETS_DONE)

        self._transition(LaunchState.EXTRACTING_NATIVES)
        natives = self.natives.extract(descriptor)
        for warning in natives.warnings:
            self._warn(warning)

        self._transition(LaunchState.DISCOVERING_RUNTIME)
        required = required_java_major(descriptor)
        log.info("%s requires Java %s", descriptor.id, required)
        selected = self.java.choose(descriptor.id, required)

        self._transition(LaunchState.BUILDING_PLAN)
        account = self.accounts.selected_account()
        if account is None:
            raise AccountMissing()
        log.info("Account: %s (%s)", account.username, account.type)
        plan = self.build_plan(descriptor, selected, account, request)

        self._transition(LaunchState.LAUNCHING)
        process = self.processes.spawn(plan)
        self.events.publish(GameStarted(process.pid))

        self._transition(LaunchState.RUNNING)
        code = self.processes.wait(process)
        self._transition(LaunchState.CLOSED)
        self.events.publish(GameClosed(code))
        return code

    def fetch_client_jar(self, descriptor: VersionDescriptor) -> Path:
        version_dir = self.paths.version_dir(descriptor.id)
        version_dir.mkdir(parents=True, exist_ok=True)
        jar = self.paths.version_jar(descriptor.id)
        client = descriptor.client_download
        size = client.size if client is not None else None
        if is_cached(jar, size):
            return jar
        if client is None or not client.url:
            raise DownloadError(f"Version {descriptor.id} has no client download", path=str(jar))
        log.info("Downloading client jar for %s", descriptor.id)
        download_file(
            self.session,
            self.runtime,
            client.url,
            jar,
            progress=self.progress.phase(MANIFEST_DONE, CLIENT_JAR_DONE),
            expected_size=size,
        )
        return jar

    def build_classpath(self, descriptor: VersionDescriptor) -> list[Path]:
        classpath: list[Path] = []
        missing: list[str] = []

        version_jar = self.paths.version_jar(descriptor.id)
        if version_jar.exists():
            classpath.append(version_jar)
        else:
            log.warning("Version JAR not found: %s", version_jar)
            missing.append(f"{descriptor.id}.jar")

        native_only = 0
        for library in self.libraries.eligible_libraries(descriptor):
            if library.is_native_only:
                native_only += 1
                continue
            path = self.libraries.library_path(library)
            if path.exists():
                classpath.append(path)
            else:
                missing.append(f"{library.name} ({path.name})")

        log.info(
            "Library classpath: %d entries, %d missing, %d natives (extracted separately)",
            len(classpath),
            len(missing),
            native_only,
        )
        if missing:
            if len(missing) <= MAX_LISTED_MISSING:
                self._warn(f"Missing libraries: {', '.join(missing)}")
            else:
                self._warn(f"Missing {len(missing)} libraries (too many to list)")
        return classpath

    def game_arguments(self, descriptor: VersionDescriptor, account: Account) -> list[str]:
        auth = auth_fields(account)
        asset_index_id = descriptor.asset_index.id if descriptor.asset_index else ""
        if isinstance(descriptor.arguments, LegacyArguments):
            values = {
                "auth_player_name": auth["username"],
                "version_name": descriptor.id,
                "game_directory": str(self.paths.game_root),
                "assets_root": str(self.paths.assets_dir),
                "game_assets": str(self.paths.assets_dir),
                "assets_index_name": asset_index_id,
                "auth_access_token": auth["access_token"],
                "auth_session": auth["access_token"],
                "user_type": auth["user_type"],
                "auth_uuid": auth["uuid"],
                "user_properties": "{}",
            }
            # Split first so substituted paths containing spaces stay one argument.
            return [
                _PLACEHOLDER_RE.sub(lambda m: values.get(m.group(1), m.group(0)), token)
                for token in descriptor.arguments.template.split()
            ]
        return [
            "--username", auth["username"],
            "--version", descriptor.id,
            "--gameDir", str(self.paths.game_root),
            "--assetsDir", str(self.paths.assets_dir),
            "--assetIndex", asset_index_id,
            "--uuid", auth["uuid"],
            "--accessToken", auth["access_token"],
            "--userType", auth["user_type"],
            "--versionType", descriptor.kind or "release",
        ]

    def build_plan(
        self,
        descriptor: VersionDescriptor,
        selected: JavaInstallation,
        account: Account,
        request: LaunchRequest,
    ) -> LaunchPlan:
        if request.username and not account.is_microsoft:
            account = Account(request.username, account.uuid, account.access_token, account.type)
        classpath = self.build_classpath(descriptor)
        memory_mb = int(request.memory_mb or self.runtime.default_memory_mb or DEFAULT_MEMORY_MB)
        game_args = self.game_arguments(descriptor, account)
        argv = [
            f"-Xmx{memory_mb}M",
            f"-Xms{memory_mb // 2}M",
            f"-Djava.library.path={self.paths.natives_dir}",
            "-cp",
            self.platform.classpath_separator.join(str(p) for p in classpath),
            descriptor.main_class,
            *game_args,
        ]
        log.info("Main class: %s", descriptor.main_class)
        log.info("Memory settings: %s, %s", argv[0], argv[1])
        log.info("Game args format: %s", "legacy" if isinstance(descriptor.arguments, LegacyArguments) else "modern")
        return LaunchPlan(
            classpath=tuple(classpath),
            selected_runtime=selected,
            argument_vector=tuple(argv),
            working_dir=self.paths.game_root,
            main_class=descriptor.main_class,
        )
