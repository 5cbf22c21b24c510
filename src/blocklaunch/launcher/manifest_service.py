from __future__ import annotations

import logging
from typing import Any

import requests

from blocklaunch.common.config import RuntimeConfig
from blocklaunch.common.errors import ManifestError, VersionNotFound
from blocklaunch.common.types import (
    DEFAULT_MAIN_CLASS,
    ArgumentSpec,
    Artifact,
    AssetIndexRef,
    LegacyArguments,
    LibraryEntry,
    MavenCoordinate,
    ModernArguments,
    PlatformRule,
    VersionDescriptor,
    VersionManifest,
    VersionSummary,
)
from blocklaunch.launcher.http import build_session


log = logging.getLogger(__name__)

LISTED_KINDS = ("release", "snapshot")


class ManifestService:
    """Resolves the version catalog and a single version's descriptor.

    Nothing is cached between launches and nothing is retried here; any
    failure surfaces as a ``ManifestError``.
    """

    def __init__(self, runtime: RuntimeConfig, session: requests.Session | None = None):
        self.runtime = runtime
        self.session = session or build_session(runtime)

    def _get_json(self, url: str, what: str) -> Any:
        try:
            resp = self.session.get(
                url,
                timeout=(self.runtime.connect_timeout_seconds, self.runtime.read_timeout_seconds),
            )
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as exc:
            raise ManifestError(f"Failed to get {what}: {exc}") from exc
        except ValueError as exc:
            raise ManifestError(f"Failed to parse {what}: {exc}") from exc

    def fetch_manifest(self) -> VersionManifest:
        log.info("Fetching version manifest from %s", self.runtime.manifest_url)
        data = self._get_json(self.runtime.manifest_url, "version manifest")
        return self._parse_manifest(data)

    def list_versions(self, include_snapshots: bool = True) -> list[VersionSummary]:
        kinds = LISTED_KINDS if include_snapshots else ("release",)
        manifest = self.fetch_manifest()
        versions = [v for v in manifest.versions if v.kind in kinds]
        # ISO-8601 timestamps with a common offset sort lexically.
        return sorted(versions, key=lambda v: v.release_time, reverse=True)

    def resolve(self, version_id: str | None = None) -> VersionDescriptor:
        manifest = self.fetch_manifest()
        if not version_id:
            version_id = manifest.latest_release
            log.info("No version requested, using latest release %s", version_id)
        summary = manifest.find(version_id)
        if summary is None:
            raise VersionNotFound(version_id)
        log.info("Fetching descriptor for %s from %s", version_id, summary.descriptor_url)
        data = self._get_json(summary.descriptor_url, f"version data for {version_id}")
        return self._parse_descriptor(data, fallback_id=version_id)

    def _parse_manifest(self, data: Any) -> VersionManifest:
        if not isinstance(data, dict):
            raise ManifestError("Version manifest is not a JSON object.")
        try:
            latest = data.get("latest") or {}
            versions = []
            seen_ids: set[str] = set()
            for item in data["versions"]:
                version_id = str(item["id"]).strip()
                if version_id in seen_ids:
                    raise ManifestError(f"Manifest contains duplicate version id: {version_id}")
                seen_ids.add(version_id)
                versions.append(
                    VersionSummary(
                        id=version_id,
                        kind=str(item.get("type", "release")),
                        release_time=str(item.get("releaseTime", "")),
                        descriptor_url=str(item["url"]),
                    )
                )
            latest_release = str(latest["release"])
        except (KeyError, TypeError, AttributeError) as exc:
            raise ManifestError(f"Version manifest is missing field {exc}") from exc
        return VersionManifest(latest_release=latest_release, versions=tuple(versions))

    def _parse_descriptor(self, data: Any, fallback_id: str = "") -> VersionDescriptor:
        if not isinstance(data, dict):
            raise ManifestError("Version descriptor is not a JSON object.")
        try:
            libraries = tuple(_parse_library(item) for item in data.get("libraries") or [])
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise ManifestError(f"Invalid library entry in descriptor: {exc}") from exc

        try:
            asset_index = None
            raw_index = data.get("assetIndex")
            if isinstance(raw_index, dict) and raw_index.get("url"):
                asset_index = AssetIndexRef(
                    id=str(raw_index.get("id") or data.get("assets") or ""),
                    url=str(raw_index["url"]),
                    size=_optional_int(raw_index.get("size")),
                )

            client = None
            raw_client = (data.get("downloads") or {}).get("client")
            if isinstance(raw_client, dict) and raw_client.get("url"):
                client = Artifact(url=str(raw_client["url"]), size=_optional_int(raw_client.get("size")))

            return VersionDescriptor(
                id=str(data.get("id") or fallback_id),
                main_class=str(data.get("mainClass") or DEFAULT_MAIN_CLASS),
                asset_index=asset_index,
                client_download=client,
                libraries=libraries,
                arguments=_parse_arguments(data),
                kind=str(data.get("type") or "release"),
                required_java_major=_parse_java_major(data.get("javaVersion")),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise ManifestError(f"Invalid version descriptor: {exc}") from exc


def _optional_int(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _parse_java_major(value: Any) -> int | None:
    if isinstance(value, dict):
        return _optional_int(value.get("majorVersion"))
    return _optional_int(value)


def _parse_arguments(data: dict) -> ArgumentSpec:
    template = data.get("minecraftArguments")
    if isinstance(template, str) and template.strip():
        return LegacyArguments(template=template)
    return ModernArguments()


def _parse_artifact(raw: Any) -> Artifact | None:
    if not isinstance(raw, dict):
        return None
    return Artifact(
        url=str(raw["url"]) if raw.get("url") else None,
        path=str(raw["path"]) if raw.get("path") else None,
        size=_optional_int(raw.get("size")),
    )


def _parse_rules(raw: Any) -> tuple[PlatformRule, ...]:
    rules = []
    for item in raw or []:
        os_constraint = item.get("os") or {}
        rules.append(
            PlatformRule(
                action=str(item.get("action", "allow")),
                os_name=os_constraint.get("name"),
                os_arch=os_constraint.get("arch"),
            )
        )
    return tuple(rules)


def _parse_library(raw: dict) -> LibraryEntry:
    coordinate = MavenCoordinate.parse(raw["name"])
    downloads = raw.get("downloads")
    artifact = None
    classifiers = {}
    if isinstance(downloads, dict):
        artifact = _parse_artifact(downloads.get("artifact"))
        for key, value in (downloads.get("classifiers") or {}).items():
            parsed = _parse_artifact(value)
            if parsed is not None:
                classifiers[str(key)] = parsed
    elif raw.get("url"):
        # Pre-"downloads" descriptors name a repository base instead of a file URL.
        base = str(raw["url"]).rstrip("/")
        artifact = Artifact(url=f"{base}/{coordinate.path}", path=coordinate.path)
    extract = raw.get("extract") or {}
    return LibraryEntry(
        coordinate=coordinate,
        artifact=artifact,
        native_classifiers={str(k): str(v) for k, v in (raw.get("natives") or {}).items()},
        classifiers=classifiers,
        rules=_parse_rules(raw.get("rules")),
        extract_exclude=tuple(str(p) for p in extract.get("exclude") or ()),
    )
