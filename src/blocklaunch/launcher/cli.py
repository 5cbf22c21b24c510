from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from blocklaunch import __version__ as BLOCKLAUNCH_VERSION
from blocklaunch.common.config import AppPaths, RuntimeConfig
from blocklaunch.common.errors import LauncherError
from blocklaunch.common.events import EventBus, LaunchEvent, ProgressChanged, StateChanged, WarningRaised
from blocklaunch.common.logging_utils import configure_logging
from blocklaunch.common.platform import PlatformInfo
from blocklaunch.common.preferences import JsonPreferencesStore
from blocklaunch.common.types import LaunchRequest
from blocklaunch.launcher.accounts import StaticAccountProvider, offline_account
from blocklaunch.launcher.java_service import JavaService
from blocklaunch.launcher.manifest_service import ManifestService
from blocklaunch.launcher.orchestrator import LaunchOrchestrator


log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="blocklaunch", description="Game client launcher")
    parser.add_argument("--version", action="version", version=f"%(prog)s {BLOCKLAUNCH_VERSION}")
    parser.add_argument("--log-level", default="INFO", help="Log level.")
    parser.add_argument("--game-dir", type=Path, default=None, help="Cache and game directory.")
    sub = parser.add_subparsers(dest="command", required=True)

    versions = sub.add_parser("versions", help="List available game versions.")
    versions.add_argument("--releases-only", action="store_true", help="Hide snapshots.")

    sub.add_parser("java", help="List discovered Java installations.")

    launch = sub.add_parser("launch", help="Download everything needed and start the game.")
    launch.add_argument("--game-version", dest="game_version", default=None, help="Version id (default: saved or latest).")
    launch.add_argument("--username", default=None, help="Offline player name.")
    launch.add_argument("--memory", type=int, default=None, help="Maximum heap in MB.")
    return parser


def _print_progress(event: LaunchEvent) -> None:
    if isinstance(event, ProgressChanged):
        print(f"\rProgress: {event.percent:5.1f}%", end="", file=sys.stderr, flush=True)
    elif isinstance(event, StateChanged):
        print(f"\n[{event.state}]", file=sys.stderr)
    elif isinstance(event, WarningRaised):
        print(f"\nwarning: {event.message}", file=sys.stderr)


def _cmd_versions(runtime: RuntimeConfig, args: argparse.Namespace) -> int:
    for summary in ManifestService(runtime).list_versions(include_snapshots=not args.releases_only):
        print(f"{summary.id}\t{summary.kind}\t{summary.release_time}")
    return 0


def _cmd_java(runtime: RuntimeConfig) -> int:
    installations = JavaService(runtime, PlatformInfo.current()).discover()
    if not installations:
        print("No Java installation found.")
        return 1
    for java in installations:
        print(f"Java {java.major_version}\t{java.vendor}\t{java.origin}\t{java.executable_path}")
    return 0


def _cmd_launch(paths: AppPaths, runtime: RuntimeConfig, args: argparse.Namespace) -> int:
    store = JsonPreferencesStore(paths.state_dir)
    prefs = store.load()
    username = args.username or prefs.username
    version_id = args.game_version or prefs.version
    # --memory, then BLOCKLAUNCH_MEMORY_MB, then the saved allocation.
    memory_mb = args.memory or runtime.default_memory_mb or prefs.ram_allocation
    if args.memory:
        store.set(username=username, version=version_id, ram_allocation=args.memory)
    else:
        store.set(username=username, version=version_id)

    events = EventBus()
    events.subscribe(_print_progress)
    orchestrator = LaunchOrchestrator(
        paths,
        runtime,
        accounts=StaticAccountProvider(offline_account(username)),
        events=events,
    )
    result = orchestrator.run(LaunchRequest(version_id=version_id, memory_mb=memory_mb, username=username))
    print(file=sys.stderr)
    if not result.ok:
        print(f"Launch failed: {result.error}", file=sys.stderr)
        return 1
    return int(result.exit_code or 0)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    paths = AppPaths.for_root(args.game_dir) if args.game_dir else AppPaths.default()
    paths.ensure_layout()
    configure_logging(paths.logs_dir, level=args.log_level)
    runtime = RuntimeConfig.from_env()

    try:
        if args.command == "versions":
            return _cmd_versions(runtime, args)
        if args.command == "java":
            return _cmd_java(runtime)
        return _cmd_launch(paths, runtime, args)
    except LauncherError as exc:
        log.error("%s failed: %s", args.command, exc)
        print(exc.user_message(), file=sys.stderr)
        return 1
