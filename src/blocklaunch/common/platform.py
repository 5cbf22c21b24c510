from __future__ import annotations

import os
import platform as _platform
import sys
from dataclasses import dataclass


WINDOWS = "windows"
OSX = "osx"
LINUX = "linux"

_BUNDLED_SUBDIRS = {WINDOWS: "win", OSX: "mac", LINUX: "linux"}


@dataclass(frozen=True)
class PlatformInfo:
    """Everything the launcher needs to know about the host OS, resolved once."""

    os_name: str
    arch_bits: str = "64"
    arch: str = "x86_64"

    @classmethod
    def current(cls) -> "PlatformInfo":
        if sys.platform.startswith("win"):
            os_name = WINDOWS
        elif sys.platform == "darwin":
            os_name = OSX
        else:
            os_name = LINUX
        machine = (_platform.machine() or "").lower()
        bits = "64" if sys.maxsize > 2**32 else "32"
        return cls(os_name=os_name, arch_bits=bits, arch=machine or "x86_64")

    @property
    def is_windows(self) -> bool:
        return self.os_name == WINDOWS

    @property
    def java_executable(self) -> str:
        return "java.exe" if self.is_windows else "java"

    @property
    def bundled_java_executable(self) -> str:
        # Bundled Windows runtimes are started without a console window.
        return "javaw.exe" if self.is_windows else "java"

    @property
    def bundled_java_subdir(self) -> str:
        return _BUNDLED_SUBDIRS[self.os_name]

    @property
    def classpath_separator(self) -> str:
        return ";" if self.is_windows else ":"

    def versioned_java_command(self, major: int) -> str:
        return f"java{major}.exe" if self.is_windows else f"java{major}"

    def matches_arch(self, rule_arch: str) -> bool:
        wanted = rule_arch.strip().lower()
        if wanted in {"x86", "i386", "i686"}:
            return self.arch_bits == "32"
        if wanted in {"x86_64", "amd64", "x64"}:
            return self.arch_bits == "64" and not self.arch.startswith(("arm", "aarch"))
        if wanted in {"arm64", "aarch64"}:
            return self.arch.startswith(("arm64", "aarch64"))
        return wanted == self.arch


def path_key(path: str) -> str:
    return os.path.normcase(os.path.normpath(os.path.realpath(path)))
