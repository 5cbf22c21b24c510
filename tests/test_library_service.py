from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from blocklaunch.common.config import RuntimeConfig
from blocklaunch.common.platform import LINUX, OSX, WINDOWS, PlatformInfo
from blocklaunch.common.types import (
    Artifact,
    LibraryEntry,
    MavenCoordinate,
    ModernArguments,
    PlatformRule,
    VersionDescriptor,
)
from blocklaunch.launcher.library_service import LibraryService, native_classifier, rule_allows

from http_fakes import FakeSession, build_paths


MIRRORS = ("https://mirror-a.example", "https://mirror-b.example")


def _descriptor(*libraries: LibraryEntry) -> VersionDescriptor:
    return VersionDescriptor(
        id="1.20.4",
        main_class="net.minecraft.client.main.Main",
        asset_index=None,
        client_download=None,
        libraries=tuple(libraries),
        arguments=ModernArguments(),
    )


def _library(name: str, url: str | None = None, size: int | None = None, rules=()) -> LibraryEntry:
    coordinate = MavenCoordinate.parse(name)
    return LibraryEntry(
        coordinate=coordinate,
        artifact=Artifact(url=url, path=coordinate.path, size=size),
        rules=tuple(rules),
    )


class RuleTests(unittest.TestCase):
    def test_no_rules_allows(self) -> None:
        self.assertTrue(rule_allows((), PlatformInfo(LINUX)))

    def test_osx_disallow_rule(self) -> None:
        rules = (PlatformRule("allow"), PlatformRule("disallow", os_name=OSX))
        self.assertTrue(rule_allows(rules, PlatformInfo(LINUX)))
        self.assertFalse(rule_allows(rules, PlatformInfo(OSX)))

    def test_last_applicable_rule_wins(self) -> None:
        rules = (PlatformRule("disallow", os_name=WINDOWS), PlatformRule("allow"))
        self.assertTrue(rule_allows(rules, PlatformInfo(WINDOWS)))

    def test_allow_only_for_other_os_excludes(self) -> None:
        rules = (PlatformRule("allow", os_name=OSX),)
        self.assertFalse(rule_allows(rules, PlatformInfo(LINUX)))

    def test_arch_constraint(self) -> None:
        rules = (PlatformRule("allow"), PlatformRule("disallow", os_arch="x86"))
        self.assertTrue(rule_allows(rules, PlatformInfo(LINUX, arch_bits="64")))
        self.assertFalse(rule_allows(rules, PlatformInfo(LINUX, arch_bits="32", arch="i686")))

    def test_native_classifier_substitutes_arch(self) -> None:
        lib = LibraryEntry(
            coordinate=MavenCoordinate.parse("tv.twitch:twitch-platform:5.16"),
            native_classifiers={WINDOWS: "natives-windows-${arch}"},
        )
        self.assertEqual(native_classifier(lib, PlatformInfo(WINDOWS, arch_bits="32")), "natives-windows-32")
        self.assertIsNone(native_classifier(lib, PlatformInfo(LINUX)))


class CoordinateTests(unittest.TestCase):
    def test_path_layout(self) -> None:
        coord = MavenCoordinate.parse("org.lwjgl:lwjgl:3.3.3")
        self.assertEqual(coord.path, "org/lwjgl/lwjgl/3.3.3/lwjgl-3.3.3.jar")
        self.assertEqual(
            coord.with_classifier("natives-linux").path,
            "org/lwjgl/lwjgl/3.3.3/lwjgl-3.3.3-natives-linux.jar",
        )

    def test_invalid_coordinate(self) -> None:
        with self.assertRaises(ValueError):
            MavenCoordinate.parse("broken")


class LibrarySyncTests(unittest.TestCase):
    def _service(self, root: Path, session: FakeSession, platform: PlatformInfo | None = None) -> LibraryService:
        runtime = RuntimeConfig(library_mirrors=MIRRORS)
        return LibraryService(build_paths(root), runtime, platform or PlatformInfo(LINUX), session=session)

    def test_explicit_url_then_mirrors_in_order(self) -> None:
        lib = _library("com.example:core:1.0", url="https://broken.example/core.jar", size=4)
        with tempfile.TemporaryDirectory() as td:
            session = FakeSession()
            session.add(f"{MIRRORS[1]}/com/example/core/1.0/core-1.0.jar", body=b"data")
            svc = self._service(Path(td), session)

            result = svc.sync(_descriptor(lib))

            self.assertEqual(result.downloaded, ["com.example:core:1.0"])
            self.assertEqual(
                session.requests,
                [
                    "https://broken.example/core.jar",
                    f"{MIRRORS[0]}/com/example/core/1.0/core-1.0.jar",
                    f"{MIRRORS[1]}/com/example/core/1.0/core-1.0.jar",
                ],
            )
            self.assertEqual(svc.library_path(lib).read_bytes(), b"data")

    def test_missing_library_does_not_stop_the_rest(self) -> None:
        missing = _library("com.example:gone:1.0")
        present = _library("com.example:here:2.0", url="https://libs.example/here.jar")
        with tempfile.TemporaryDirectory() as td:
            session = FakeSession()
            session.add("https://libs.example/here.jar", body=b"jar")
            fractions: list[float] = []

            result = self._service(Path(td), session).sync(_descriptor(missing, present), fractions.append)

            self.assertEqual(result.missing, ["com.example:gone:1.0"])
            self.assertEqual(result.downloaded, ["com.example:here:2.0"])
            self.assertEqual(len(result.warnings), 1)
            self.assertEqual(fractions[-1], 1.0)
            self.assertEqual(fractions, sorted(fractions))

    def test_cached_library_makes_no_requests(self) -> None:
        lib = _library("com.example:core:1.0", url="https://libs.example/core.jar", size=3)
        with tempfile.TemporaryDirectory() as td:
            session = FakeSession()
            svc = self._service(Path(td), session)
            target = svc.library_path(lib)
            target.parent.mkdir(parents=True)
            target.write_bytes(b"abc")

            result = svc.sync(_descriptor(lib))

            self.assertEqual(result.cached, ["com.example:core:1.0"])
            self.assertEqual(session.requests, [])

    def test_size_mismatch_is_downloaded_again(self) -> None:
        lib = _library("com.example:core:1.0", url="https://libs.example/core.jar", size=3)
        with tempfile.TemporaryDirectory() as td:
            session = FakeSession()
            session.add("https://libs.example/core.jar", body=b"abc")
            svc = self._service(Path(td), session)
            target = svc.library_path(lib)
            target.parent.mkdir(parents=True)
            target.write_bytes(b"a")

            result = svc.sync(_descriptor(lib))

            self.assertEqual(result.downloaded, ["com.example:core:1.0"])
            self.assertEqual(target.read_bytes(), b"abc")

    def test_wrong_size_download_falls_through_to_mirror(self) -> None:
        lib = _library("com.example:core:1.0", url="https://libs.example/core.jar", size=4)
        mirror_url = f"{MIRRORS[0]}/com/example/core/1.0/core-1.0.jar"
        with tempfile.TemporaryDirectory() as td:
            session = FakeSession()
            session.add("https://libs.example/core.jar", body=b"truncated!")
            session.add(mirror_url, body=b"core")
            svc = self._service(Path(td), session)

            result = svc.sync(_descriptor(lib))

            self.assertEqual(result.downloaded, ["com.example:core:1.0"])
            self.assertEqual(session.requests, ["https://libs.example/core.jar", mirror_url])
            self.assertEqual(svc.library_path(lib).read_bytes(), b"core")

            rerun = svc.sync(_descriptor(lib))
            self.assertEqual(rerun.cached, ["com.example:core:1.0"])
            self.assertEqual(len(session.requests), 2)

    def test_wrong_size_everywhere_is_missing(self) -> None:
        lib = _library("com.example:core:1.0", url="https://libs.example/core.jar", size=4)
        with tempfile.TemporaryDirectory() as td:
            session = FakeSession()
            session.add("https://libs.example/core.jar", body=b"truncated!")
            svc = self._service(Path(td), session)

            result = svc.sync(_descriptor(lib))

            self.assertEqual(result.missing, ["com.example:core:1.0"])
            self.assertFalse(svc.library_path(lib).exists())

    def test_disallowed_library_is_skipped(self) -> None:
        lib = _library(
            "ca.weblite:java-objc-bridge:1.1",
            url="https://libs.example/objc.jar",
            rules=(PlatformRule("allow", os_name=OSX),),
        )
        with tempfile.TemporaryDirectory() as td:
            session = FakeSession()
            result = self._service(Path(td), session).sync(_descriptor(lib))
            self.assertEqual(result.downloaded + result.cached + result.missing, [])
            self.assertEqual(session.requests, [])

    def test_native_only_library_downloads_platform_classifier(self) -> None:
        lib = LibraryEntry(
            coordinate=MavenCoordinate.parse("org.lwjgl.lwjgl:lwjgl-platform:2.9.4"),
            native_classifiers={LINUX: "natives-linux", OSX: "natives-osx"},
            classifiers={
                "natives-linux": Artifact(url="https://libs.example/natives-linux.jar", path="org/lwjgl/natives-linux.jar", size=2),
                "natives-osx": Artifact(url="https://libs.example/natives-osx.jar", path="org/lwjgl/natives-osx.jar", size=2),
            },
        )
        with tempfile.TemporaryDirectory() as td:
            session = FakeSession()
            session.add("https://libs.example/natives-linux.jar", body=b"nl")
            svc = self._service(Path(td), session)

            result = svc.sync(_descriptor(lib))

            self.assertEqual(result.downloaded, ["org.lwjgl.lwjgl:lwjgl-platform:2.9.4 (natives)"])
            self.assertEqual(session.requests, ["https://libs.example/natives-linux.jar"])
            self.assertEqual(svc.native_path(lib).read_bytes(), b"nl")

    def test_coordinate_only_natives_use_mirrors(self) -> None:
        lib = LibraryEntry(
            coordinate=MavenCoordinate.parse("org.example:native:1.0"),
            native_classifiers={LINUX: "natives-linux"},
        )
        with tempfile.TemporaryDirectory() as td:
            session = FakeSession()
            session.add(f"{MIRRORS[0]}/org/example/native/1.0/native-1.0-natives-linux.jar", body=b"so")
            svc = self._service(Path(td), session)

            result = svc.sync(_descriptor(lib))

            self.assertEqual(result.missing, [])
            self.assertTrue(svc.native_path(lib).is_file())


if __name__ == "__main__":
    unittest.main()
