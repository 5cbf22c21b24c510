from __future__ import annotations

from typing import Iterable


ADOPTIUM_URL = "https://adoptium.net/"


class LauncherError(Exception):
    """Base class for failures that stop a launch.

    ``hint`` carries the remediation text shown to the user next to the message.
    """

    hint: str = ""

    def __init__(self, message: str, hint: str | None = None):
        super().__init__(message)
        if hint is not None:
            self.hint = hint

    def user_message(self) -> str:
        text = str(self)
        if self.hint:
            return f"{text}\n{self.hint}"
        return text


class ManifestError(LauncherError):
    hint = "Check your internet connection and try again."


class VersionNotFound(LauncherError):
    def __init__(self, version_id: str):
        super().__init__(
            f"Version {version_id} not found in manifest",
            hint="Pick a version from the list returned by the versions command.",
        )
        self.version_id = version_id


class DownloadError(LauncherError):
    hint = "Check your internet connection and try again."

    def __init__(self, message: str, url: str | None = None, path: str | None = None):
        super().__init__(message)
        self.url = url
        self.path = path


class AssetSyncError(LauncherError):
    hint = "Please check your internet connection and try again."


class RuntimeNotFound(LauncherError):
    def __init__(self, required_major: int):
        super().__init__(
            "No Java installation found.",
            hint=(
                "Please ensure built-in Java is included with the launcher, "
                f"or install Java {required_major} or later.\n"
                f"You can download it from: {ADOPTIUM_URL}"
            ),
        )
        self.required_major = required_major


class RuntimeIncompatible(LauncherError):
    def __init__(self, version_id: str, required_major: int, available: Iterable[int]):
        self.required_major = required_major
        self.available = tuple(sorted(set(available)))
        listed = ", ".join(str(v) for v in self.available)
        super().__init__(
            f"No compatible Java found for {version_id}.\n"
            f"Required: Java {required_major} or later\n"
            f"Available: Java {listed}",
            hint=f"Please install Java {required_major} from: {ADOPTIUM_URL}",
        )


class AccountMissing(LauncherError):
    def __init__(self) -> None:
        super().__init__("No account selected", hint="Sign in or add an offline account before launching.")


class ProcessSpawnError(LauncherError):
    def __init__(self, message: str, executable: str, executable_missing: bool = False):
        hint = "Please install Java and ensure it's in your PATH." if executable_missing else ""
        super().__init__(message, hint=hint)
        self.executable = executable
        self.executable_missing = executable_missing
