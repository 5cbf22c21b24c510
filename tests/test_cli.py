from __future__ import annotations

import io
import os
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest.mock import patch

from blocklaunch.common.config import AppPaths
from blocklaunch.common.errors import ManifestError
from blocklaunch.common.preferences import JsonPreferencesStore
from blocklaunch.common.types import LaunchRequest, VersionSummary
from blocklaunch.launcher import cli
from blocklaunch.launcher.orchestrator import LaunchResult, LaunchState


class CliTests(unittest.TestCase):
    def test_versions_lists_catalog(self) -> None:
        summaries = [VersionSummary("1.20.4", "release", "2023-12-07T12:00:00+00:00", "https://x/1.20.4.json")]
        out = io.StringIO()
        with tempfile.TemporaryDirectory() as td, patch.object(cli, "configure_logging"), patch.object(
            cli, "ManifestService"
        ) as service, redirect_stdout(out):
            service.return_value.list_versions.return_value = summaries
            code = cli.main(["--game-dir", td, "versions", "--releases-only"])

        self.assertEqual(code, 0)
        service.return_value.list_versions.assert_called_once_with(include_snapshots=False)
        self.assertIn("1.20.4\trelease", out.getvalue())

    def test_launcher_errors_print_hint(self) -> None:
        err = io.StringIO()
        with tempfile.TemporaryDirectory() as td, patch.object(cli, "configure_logging"), patch.object(
            cli, "ManifestService"
        ) as service, redirect_stderr(err):
            service.return_value.list_versions.side_effect = ManifestError("Failed to get version manifest")
            code = cli.main(["--game-dir", td, "versions"])

        self.assertEqual(code, 1)
        self.assertIn("internet connection", err.getvalue())

    def _launch(self, td: str, env: dict[str, str], *extra: str) -> LaunchRequest:
        with patch.dict(os.environ, env), patch.object(cli, "configure_logging"), patch.object(
            cli, "LaunchOrchestrator"
        ) as orchestrator, redirect_stderr(io.StringIO()):
            orchestrator.return_value.run.return_value = LaunchResult(state=LaunchState.CLOSED, exit_code=0)
            code = cli.main(["--game-dir", td, "launch", "--username", "Steve", *extra])

        self.assertEqual(code, 0)
        return orchestrator.return_value.run.call_args.args[0]

    def test_memory_from_environment_is_used_but_not_saved(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            request = self._launch(td, {"BLOCKLAUNCH_MEMORY_MB": "4096"})

            self.assertEqual(request.memory_mb, 4096)
            prefs = JsonPreferencesStore(AppPaths.for_root(Path(td)).state_dir).load()
            self.assertEqual(prefs.ram_allocation, 2048)
            self.assertEqual(prefs.username, "Steve")

    def test_memory_flag_beats_environment_and_is_saved(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            request = self._launch(td, {"BLOCKLAUNCH_MEMORY_MB": "4096"}, "--memory", "3072")

            self.assertEqual(request.memory_mb, 3072)
            prefs = JsonPreferencesStore(AppPaths.for_root(Path(td)).state_dir).load()
            self.assertEqual(prefs.ram_allocation, 3072)


if __name__ == "__main__":
    unittest.main()
