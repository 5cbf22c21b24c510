from __future__ import annotations

import logging
import subprocess

from blocklaunch.common.errors import ProcessSpawnError
from blocklaunch.common.types import LaunchPlan


log = logging.getLogger(__name__)


class ProcessService:
    def spawn(self, plan: LaunchPlan) -> subprocess.Popen:
        cmd = plan.command()
        executable = plan.selected_runtime.executable_path
        log.info("Launching with: %s (%d args)", executable, len(plan.argument_vector))
        try:
            # stdin/stdout/stderr are inherited from the launcher.
            return subprocess.Popen(cmd, shell=False, cwd=str(plan.working_dir))
        except FileNotFoundError as exc:
            raise ProcessSpawnError(
                f"Java not found: {executable}",
                executable=executable,
                executable_missing=True,
            ) from exc
        except OSError as exc:
            raise ProcessSpawnError(
                f"Failed to start {executable}: {exc}",
                executable=executable,
            ) from exc

    def wait(self, process: subprocess.Popen) -> int:
        code = process.wait()
        if code == 0:
            log.info("Game exited successfully")
        else:
            log.warning("Game exited with code %s", code)
        return code
