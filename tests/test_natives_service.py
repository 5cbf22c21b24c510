from __future__ import annotations

import tempfile
import unittest
import zipfile
from pathlib import Path

from blocklaunch.common.config import RuntimeConfig
from blocklaunch.common.platform import LINUX, PlatformInfo
from blocklaunch.common.types import Artifact, LibraryEntry, MavenCoordinate, ModernArguments, VersionDescriptor
from blocklaunch.launcher.library_service import LibraryService
from blocklaunch.launcher.natives_service import NativesService

from http_fakes import FakeSession, build_paths


def _native_library(artifact_id: str, exclude: tuple[str, ...] = ()) -> LibraryEntry:
    return LibraryEntry(
        coordinate=MavenCoordinate.parse(f"org.lwjgl:{artifact_id}:3.3.3"),
        native_classifiers={LINUX: "natives-linux"},
        classifiers={"natives-linux": Artifact(path=f"org/lwjgl/{artifact_id}-natives-linux.jar")},
        extract_exclude=exclude,
    )


def _descriptor(*libraries: LibraryEntry) -> VersionDescriptor:
    return VersionDescriptor(
        id="1.20.4",
        main_class="net.minecraft.client.main.Main",
        asset_index=None,
        client_download=None,
        libraries=tuple(libraries),
        arguments=ModernArguments(),
    )


class NativesServiceTests(unittest.TestCase):
    def _services(self, root: Path) -> tuple[LibraryService, NativesService]:
        paths = build_paths(root)
        libraries = LibraryService(paths, RuntimeConfig(), PlatformInfo(LINUX), session=FakeSession())
        return libraries, NativesService(paths, libraries)

    def _write_zip(self, path: Path, entries: dict[str, bytes]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(path, "w") as zf:
            for name, data in entries.items():
                zf.writestr(name, data)

    def test_flat_extraction_skips_metadata_and_excludes(self) -> None:
        lib = _native_library("lwjgl", exclude=("docs/",))
        with tempfile.TemporaryDirectory() as td:
            libraries, natives = self._services(Path(td))
            self._write_zip(
                libraries.native_path(lib),
                {
                    "linux/x64/org/lwjgl/liblwjgl.so": b"elf",
                    "libopenal.so": b"elf2",
                    "META-INF/MANIFEST.MF": b"Manifest-Version: 1.0",
                    "docs/readme.txt": b"text",
                },
            )

            result = natives.extract(_descriptor(lib))

            self.assertEqual(result.extracted, [lib.name])
            names = sorted(p.name for p in natives.paths.natives_dir.iterdir())
            self.assertEqual(names, ["liblwjgl.so", "libopenal.so"])
            self.assertEqual((natives.paths.natives_dir / "liblwjgl.so").read_bytes(), b"elf")

    def test_stale_natives_are_removed(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            _, natives = self._services(Path(td))
            natives.paths.natives_dir.mkdir(parents=True, exist_ok=True)
            stale = natives.paths.natives_dir / "old.so"
            stale.write_bytes(b"old")

            natives.extract(_descriptor())

            self.assertTrue(natives.paths.natives_dir.is_dir())
            self.assertFalse(stale.exists())

    def test_broken_and_missing_archives_do_not_stop_extraction(self) -> None:
        broken = _native_library("lwjgl-glfw")
        missing = _native_library("lwjgl-openal")
        good = _native_library("lwjgl")
        with tempfile.TemporaryDirectory() as td:
            libraries, natives = self._services(Path(td))
            bad_path = libraries.native_path(broken)
            bad_path.parent.mkdir(parents=True, exist_ok=True)
            bad_path.write_bytes(b"this is not a zip")
            self._write_zip(libraries.native_path(good), {"liblwjgl.so": b"elf"})

            result = natives.extract(_descriptor(broken, missing, good))

            self.assertEqual(result.extracted, [good.name])
            self.assertEqual(result.failures, [broken.name, missing.name])
            self.assertEqual(len(result.warnings), 2)
            self.assertTrue((natives.paths.natives_dir / "liblwjgl.so").is_file())

    def test_plain_libraries_are_ignored(self) -> None:
        plain = LibraryEntry(
            coordinate=MavenCoordinate.parse("com.mojang:brigadier:1.1.8"),
            artifact=Artifact(url="https://libs.example/brigadier.jar"),
        )
        with tempfile.TemporaryDirectory() as td:
            _, natives = self._services(Path(td))
            result = natives.extract(_descriptor(plain))
            self.assertEqual(result.extracted, [])
            self.assertEqual(result.failures, [])


if __name__ == "__main__":
    unittest.main()
