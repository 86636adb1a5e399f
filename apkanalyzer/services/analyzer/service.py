"""
Analyzer Service.

The facade callers use: sequences archive extraction, binary decoding, DEX
reading and package tree construction for one APK per call. Each method opens
the archive, computes its answer and closes it again; nothing is cached
between requests. A full report reads every entry through one open archive.
"""

from __future__ import annotations

import time
import xml.etree.ElementTree as ET
from pathlib import Path

from pydantic import BaseModel, Field

from ...binary.resources import ResourceTableSummary, read_resource_table
from ...binary.xml import XmlAttribute, XmlElement, decode_xml
from ...core.config import Config, get_config
from ...core.exceptions import APKAnalyzerError, DecodeError, ServiceError, ValidationError
from ...core.logging import bind_context, clear_context, get_logger, log_context
from ...core.types import ServiceResult
from ...models.apk import (
    ArchiveEntry,
    ComponentInfo,
    DexFileStats,
    IntentFilterInfo,
    ManifestData,
    ProviderInfo,
)
from ...models.dex import DexSymbols
from ...models.tree import PackageSummary
from ..archive.service import ANDROID_MANIFEST_XML, RESOURCES_ARSC, ArchiveReader, download_size, file_size
from ..dex.reader import DEX_READ_ERRORS, AndroguardDexSource, DexHeader, dex_file_stats
from ..mapping.service import load_symbol_map
from ..mapping.symbol_map import SymbolMap
from ..packages.builder import DuplicateClassPolicy, PackageTreeBuilder, PackageTreeResult

logger = get_logger(__name__)


class ApkReport(BaseModel):
    """Everything the analyzer reports about one APK, ready to be stored as JSON."""

    apk_name: str
    file_size: int
    download_size: int
    manifest: ManifestData | None = None
    dex_files: list[DexFileStats] = Field(default_factory=list)
    packages: PackageSummary | None = None
    resources: ResourceTableSummary | None = None
    warnings: list[str] = Field(default_factory=list)


def _int_or_none(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value, 0)
    except ValueError:
        return None


def _from_etree(element: ET.Element) -> XmlElement:
    """Convert a plain-text XML element into the decoder's element type."""
    tag = element.tag.split("}")[-1]
    node = XmlElement(name=tag, text=(element.text or "").strip())
    for key, value in element.attrib.items():
        namespace, name = ("", key)
        if key.startswith("{"):
            namespace, name = key[1:].split("}", 1)
        node.attributes.append(XmlAttribute(name=name, value=value, namespace=namespace))
    node.children = [_from_etree(child) for child in element]
    return node


def decode_manifest(data: bytes) -> XmlElement:
    """Decode ``AndroidManifest.xml``, compiled or plain text.

    Raises:
        DecodeError: If the compiled manifest is corrupt.
        ValidationError: If the plain-text manifest is not well-formed.
    """
    if data.lstrip().startswith(b"<"):
        try:
            return _from_etree(ET.fromstring(data))
        except ET.ParseError as e:
            raise ValidationError(
                message=f"Unparsable text manifest: {e}",
                field_name=ANDROID_MANIFEST_XML,
                cause=e,
            ) from e
    return decode_xml(data)


def parse_manifest(root: XmlElement) -> ManifestData:
    """Extract manifest data from a decoded ``<manifest>`` element."""
    uses_sdk = next(iter(root.find_all("uses-sdk")), None)
    application = next(iter(root.find_all("application")), None)

    def component(element: XmlElement) -> ComponentInfo:
        exported = element.get("exported")
        return ComponentInfo(
            name=element.get("name") or "",
            exported=None if exported is None else exported == "true",
            intent_filters=[
                IntentFilterInfo(
                    actions=[a.get("name") or "" for a in f.find_all("action")],
                    categories=[c.get("name") or "" for c in f.find_all("category")],
                )
                for f in element.find_all("intent-filter")
            ],
        )

    manifest = ManifestData(
        package_name=root.get("package", namespace=None) or "",
        version_code=_int_or_none(root.get("versionCode")),
        version_name=root.get("versionName"),
        min_sdk_version=_int_or_none(uses_sdk.get("minSdkVersion")) if uses_sdk else None,
        target_sdk_version=_int_or_none(uses_sdk.get("targetSdkVersion")) if uses_sdk else None,
        permissions=[p.get("name") or "" for p in root.find_all("uses-permission")],
        uses_features=[f.get("name") or "" for f in root.find_all("uses-feature") if f.get("name")],
    )

    if application is not None:
        manifest.application_label = application.get("label")
        manifest.activities = [component(e) for e in application.find_all("activity")]
        manifest.activities += [component(e) for e in application.find_all("activity-alias")]
        manifest.services = [component(e) for e in application.find_all("service")]
        manifest.receivers = [component(e) for e in application.find_all("receiver")]
        for element in application.find_all("provider"):
            base = component(element)
            manifest.providers.append(
                ProviderInfo(
                    **base.model_dump(),
                    authorities=[a for a in (element.get("authorities") or "").split(";") if a],
                )
            )
    return manifest


class ApkAnalyzer:
    """Package-level operations over one APK file at a time."""

    def __init__(self, config: Config | None = None) -> None:
        self.config = config or get_config()

    # Size

    def apk_file_size(self, apk: Path) -> int:
        return file_size(apk)

    def apk_download_size(self, apk: Path) -> int:
        return download_size(apk, level=self.config.analysis.gzip_level)

    # Archive

    def files_list(self, apk: Path) -> list[ArchiveEntry]:
        with ArchiveReader(apk) as archive:
            return sorted(archive.entries(), key=lambda entry: entry.path)

    def file_cat(self, apk: Path, name: str) -> str:
        with ArchiveReader(apk) as archive:
            return archive.read(name).decode("utf-8", errors="replace")

    # Manifest

    def _manifest_root(self, apk: Path) -> XmlElement:
        with ArchiveReader(apk) as archive:
            return decode_manifest(archive.read(ANDROID_MANIFEST_XML))

    def manifest_print(self, apk: Path) -> str:
        return self._manifest_root(apk).to_xml()

    def apk_summary(self, apk: Path) -> ManifestData:
        return parse_manifest(self._manifest_root(apk))

    # Resources

    def resources_summary(self, apk: Path) -> ResourceTableSummary:
        with ArchiveReader(apk) as archive:
            return read_resource_table(archive.read(RESOURCES_ARSC))

    # DEX

    def dex_list(self, apk: Path) -> list[ArchiveEntry]:
        with ArchiveReader(apk) as archive:
            by_path = {entry.path: entry for entry in archive.entries()}
            return [by_path[name] for name in archive.dex_names()]

    def _dex_files(self, archive: ArchiveReader, warnings: list[str] | None = None) -> list[tuple[bytes, DexSymbols]]:
        """Read and materialize every DEX file; unreadable ones are skipped with a warning."""
        results = []
        for name in archive.dex_names():
            data = archive.read(name)
            with log_context(dex=name):
                symbols = self._read_dex(name, data, warnings)
            if symbols is not None:
                results.append((data, symbols))
        return results

    def _read_dex(self, name: str, data: bytes, warnings: list[str] | None) -> DexSymbols | None:
        try:
            DexHeader.parse(data)
            source = AndroguardDexSource(name, data)
            return DexSymbols(
                name=name,
                declared=list(source.classes()),
                referenced=list(source.references()),
            )
        except DEX_READ_ERRORS as e:
            logger.warning("Skipping unreadable DEX file", error=str(e))
            if warnings is not None:
                warnings.append(f"Skipped unreadable DEX file {name}: {e}")
            return None

    def dex_references(self, apk: Path) -> list[DexFileStats]:
        with ArchiveReader(apk) as archive:
            dex_files = self._dex_files(archive)
        return [dex_file_stats(symbols.name, data, symbols) for data, symbols in dex_files]

    def load_symbol_map(self, mapping: Path | None = None, seeds: Path | None = None) -> SymbolMap:
        """SymbolMap from explicit paths, falling back to the configured ones."""
        return load_symbol_map(
            mapping_path=mapping or self.config.mapping.mapping_path,
            seeds_path=seeds or self.config.mapping.seeds_path,
            strict=self.config.mapping.strict,
        )

    def _tree_builder(self, symbol_map: SymbolMap) -> PackageTreeBuilder:
        return PackageTreeBuilder(
            symbol_map=symbol_map,
            duplicate_policy=DuplicateClassPolicy(self.config.analysis.duplicate_class_policy),
            record_references=self.config.analysis.record_references,
        )

    def dex_packages(
        self,
        apk: Path,
        mapping: Path | None = None,
        seeds: Path | None = None,
        symbol_map: SymbolMap | None = None,
    ) -> PackageTreeResult:
        """Build the deobfuscated package tree of every DEX file in the APK."""
        if symbol_map is None:
            symbol_map = self.load_symbol_map(mapping, seeds)
        with ArchiveReader(apk) as archive:
            dex_files = self._dex_files(archive)
        return self._tree_builder(symbol_map).build(symbols for _, symbols in dex_files)

    # Report

    def analyze(
        self,
        apk: Path,
        mapping: Path | None = None,
        seeds: Path | None = None,
        max_depth: int | None = 3,
    ) -> ServiceResult[ApkReport]:
        """Run every analysis on ``apk`` and collect the results in one report.

        The archive is opened once; the manifest, resource table and DEX
        entries are all read through the same reader.

        Args:
            apk: Path to the APK file
            mapping: Optional ProGuard/R8 mapping.txt
            seeds: Optional ProGuard/R8 seeds.txt
            max_depth: Depth of the package summary kept in the report

        Returns:
            ServiceResult containing the ApkReport, or the failure message
        """
        start_time = time.perf_counter()
        apk = Path(apk)
        bind_context(apk=apk.name)

        try:
            logger.info("Starting APK analysis")
            warnings: list[str] = []

            with ArchiveReader(apk) as archive:
                report = ApkReport(
                    apk_name=apk.name,
                    file_size=self.apk_file_size(apk),
                    download_size=self.apk_download_size(apk),
                )

                with log_context(entry=ANDROID_MANIFEST_XML):
                    try:
                        report.manifest = parse_manifest(decode_manifest(archive.read(ANDROID_MANIFEST_XML)))
                    except (DecodeError, ValidationError) as e:
                        logger.warning("Manifest not decoded", error=str(e))
                        warnings.append(f"Manifest not decoded: {e}")

                if archive.has(RESOURCES_ARSC):
                    with log_context(entry=RESOURCES_ARSC):
                        try:
                            report.resources = read_resource_table(archive.read(RESOURCES_ARSC))
                        except DecodeError as e:
                            logger.warning("Resource table not decoded", error=str(e))
                            warnings.append(f"Resource table not decoded: {e}")

                dex_files = self._dex_files(archive, warnings)

            report.dex_files = [dex_file_stats(s.name, data, s) for data, s in dex_files]

            tree_result = self._tree_builder(self.load_symbol_map(mapping, seeds)).build(
                symbols for _, symbols in dex_files
            )
            report.packages = tree_result.tree.to_summary(max_depth=max_depth)
            warnings.extend(str(w) for w in tree_result.warnings)
            for dex_name, errors in tree_result.errors.items():
                warnings.extend(f"{dex_name}: {e.message}" for e in errors)
            report.warnings = warnings

            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                "APK analysis completed",
                dex_files=len(report.dex_files),
                classes=tree_result.tree.total_class_count(),
                duration_ms=duration_ms,
            )
            if warnings:
                return ServiceResult.with_warnings(report, warnings, duration_ms=duration_ms)
            return ServiceResult.ok(report, duration_ms=duration_ms)

        except APKAnalyzerError as e:
            logger.error("APK analysis failed", error=str(e))
            return ServiceResult.fail(str(e))
        except Exception as e:
            logger.error("APK analysis failed", error=str(e))
            raise ServiceError(
                message=f"Analysis failed: {e}",
                service_name="analyzer",
                operation="analyze",
                cause=e,
            ) from e
        finally:
            clear_context()
