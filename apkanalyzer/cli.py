"""
apkanalyzer CLI.

Command-line interface over the ApkAnalyzer facade.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from .core.config import get_config
from .core.exceptions import APKAnalyzerError
from .core.logging import setup_logging
from .models.tree import Metric, PackageNode, PackageTree

app = typer.Typer(
    name="apkanalyzer",
    help="Inspect APK size, manifest, resources and DEX package structure",
    add_completion=False,
)

console = Console()

ApkArgument = typer.Argument(
    ...,
    help="Path to the APK file",
    exists=True,
    file_okay=True,
    dir_okay=False,
    resolve_path=True,
)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        from . import __version__
        console.print(f"apkanalyzer v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging"),
) -> None:
    """apkanalyzer: package-level statistics for Android APKs."""
    config = get_config()
    if verbose:
        config.log_level = "DEBUG"
    setup_logging(config)


def _analyzer():
    from .services.analyzer import ApkAnalyzer

    return ApkAnalyzer(get_config())


def _fail(error: APKAnalyzerError) -> None:
    console.print(f"[bold red]Error:[/bold red] {error}")
    raise typer.Exit(1)


def _format_size(size: int, human: bool) -> str:
    if not human:
        return str(size)
    if size < 1024:
        return f"{size}B"
    value = size / 1024
    for unit in ("KB", "MB"):
        if value < 1024:
            return f"{value:.1f}{unit}"
        value /= 1024
    return f"{value:.1f}GB"


@app.command()
def size(
    apk_path: Path = ApkArgument,
    human: bool = typer.Option(False, "--human", "-h", help="Human readable sizes"),
) -> None:
    """Print the raw file size and estimated download size."""
    analyzer = _analyzer()
    try:
        raw = analyzer.apk_file_size(apk_path)
        download = analyzer.apk_download_size(apk_path)
    except APKAnalyzerError as e:
        _fail(e)

    table = Table(title=apk_path.name)
    table.add_column("Measure", style="cyan")
    table.add_column("Size", justify="right")
    table.add_row("File size", _format_size(raw, human))
    table.add_row("Download size", _format_size(download, human))
    console.print(table)


@app.command()
def manifest(apk_path: Path = ApkArgument) -> None:
    """Print the decoded AndroidManifest.xml."""
    try:
        text = _analyzer().manifest_print(apk_path)
    except APKAnalyzerError as e:
        _fail(e)
    console.print(text, markup=False, highlight=False)


@app.command()
def summary(apk_path: Path = ApkArgument) -> None:
    """Print the application id, version and declared components."""
    try:
        data = _analyzer().apk_summary(apk_path)
    except APKAnalyzerError as e:
        _fail(e)

    table = Table(title="APK Summary")
    table.add_column("Property", style="cyan")
    table.add_column("Value")

    table.add_row("Package", data.package_name)
    table.add_row("Version", f"{data.version_name} ({data.version_code})")
    table.add_row("Min SDK", str(data.min_sdk_version))
    table.add_row("Target SDK", str(data.target_sdk_version))
    table.add_row("Activities", str(len(data.activities)))
    table.add_row("Services", str(len(data.services)))
    table.add_row("Receivers", str(len(data.receivers)))
    table.add_row("Providers", str(len(data.providers)))
    table.add_row("Permissions", str(len(data.permissions)))
    console.print(table)

    if data.activities:
        console.print("\n[bold]Activities:[/bold]")
        for activity in data.activities[:10]:
            launcher = " [launcher]" if activity.is_launcher else ""
            console.print(f"  • {activity.simple_name}{launcher}", markup=False)


@app.command()
def files(
    apk_path: Path = ApkArgument,
    human: bool = typer.Option(False, "--human", "-h", help="Human readable sizes"),
) -> None:
    """List archive entries with raw and download sizes."""
    try:
        entries = _analyzer().files_list(apk_path)
    except APKAnalyzerError as e:
        _fail(e)

    table = Table(title=f"{apk_path.name} ({len(entries)} entries)")
    table.add_column("Path", style="cyan")
    table.add_column("Raw", justify="right")
    table.add_column("Download", justify="right")
    for entry in entries:
        table.add_row(entry.path, _format_size(entry.raw_size, human), _format_size(entry.download_size, human))
    console.print(table)


@app.command()
def cat(
    apk_path: Path = ApkArgument,
    entry: str = typer.Argument(..., help="Entry path inside the APK"),
) -> None:
    """Print the contents of one archive entry."""
    try:
        content = _analyzer().file_cat(apk_path, entry)
    except APKAnalyzerError as e:
        _fail(e)
    console.print(content, markup=False, highlight=False)


@app.command("dex-list")
def dex_list(apk_path: Path = ApkArgument) -> None:
    """List the DEX files in load order."""
    try:
        entries = _analyzer().dex_list(apk_path)
    except APKAnalyzerError as e:
        _fail(e)
    for entry in entries:
        console.print(entry.path)


@app.command("dex-refs")
def dex_refs(apk_path: Path = ApkArgument) -> None:
    """Print method/field reference counts per DEX file."""
    try:
        stats = _analyzer().dex_references(apk_path)
    except APKAnalyzerError as e:
        _fail(e)

    table = Table(title="DEX References")
    table.add_column("File", style="cyan")
    table.add_column("Classes", justify="right")
    table.add_column("Defined methods", justify="right")
    table.add_column("Referenced methods", justify="right")
    table.add_column("Referenced fields", justify="right")
    table.add_column("Headroom", justify="right")
    for item in stats:
        table.add_row(
            item.file_name,
            str(item.class_count),
            str(item.defined_method_count),
            str(item.referenced_method_count),
            str(item.referenced_field_count),
            str(item.method_reference_headroom),
        )
    if stats:
        table.add_row(
            "[bold]total[/bold]",
            str(sum(s.class_count for s in stats)),
            str(sum(s.defined_method_count for s in stats)),
            str(sum(s.referenced_method_count for s in stats)),
            str(sum(s.referenced_field_count for s in stats)),
            "",
        )
    console.print(table)


def _add_branch(branch: Tree, tree: PackageTree, node: PackageNode, by: Metric, limit: int, depth: int) -> None:
    if depth <= 0:
        return
    for child in tree.largest_children(node, by=by, limit=limit):
        label = (
            f"{child.name} [dim]{child.kind.value}[/dim] "
            f"methods={child.method_count} fields={child.field_count} "
            f"refs={child.referenced_method_count}/{child.referenced_field_count}"
        )
        _add_branch(branch.add(label), tree, child, by, limit, depth - 1)


@app.command()
def packages(
    apk_path: Path = ApkArgument,
    mapping: Optional[Path] = typer.Option(None, "--mapping", "-m", exists=True, help="ProGuard/R8 mapping.txt"),
    seeds: Optional[Path] = typer.Option(None, "--seeds", "-s", exists=True, help="ProGuard/R8 seeds.txt"),
    by: Metric = typer.Option(Metric.METHOD_COUNT, "--by", help="Metric used to rank packages"),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Children shown per package"),
    depth: int = typer.Option(3, "--depth", "-d", help="Levels of the tree to print"),
) -> None:
    """Print the deobfuscated package tree with aggregated counts."""
    config = get_config()
    try:
        result = _analyzer().dex_packages(apk_path, mapping=mapping, seeds=seeds)
    except APKAnalyzerError as e:
        _fail(e)

    tree = result.tree
    root = Tree(
        f"[bold]{apk_path.name}[/bold] classes={tree.total_class_count()} "
        f"methods={tree.total_method_count()} fields={tree.total_field_count()}"
    )
    _add_branch(root, tree, tree.root, by, limit or config.analysis.largest_children_limit, depth)
    console.print(root)

    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")
    for dex_name, errors in result.errors.items():
        for error in errors:
            console.print(f"[red]{dex_name}:[/red] {error.message}")


@app.command()
def resources(apk_path: Path = ApkArgument) -> None:
    """Summarize the compiled resource table."""
    try:
        data = _analyzer().resources_summary(apk_path)
    except APKAnalyzerError as e:
        _fail(e)

    table = Table(title="Resource Table")
    table.add_column("Package", style="cyan")
    table.add_column("Id", justify="right")
    table.add_column("Type specs", justify="right")
    table.add_column("Types", justify="right")
    table.add_column("Size", justify="right")
    for package in data.packages:
        table.add_row(
            package.name,
            f"0x{package.package_id:02x}",
            str(package.type_spec_count),
            str(package.type_count),
            str(package.size_bytes),
        )
    console.print(table)
    console.print(f"Global strings: {data.string_count}")


@app.command()
def report(
    apk_path: Path = ApkArgument,
    mapping: Optional[Path] = typer.Option(None, "--mapping", "-m", exists=True, help="ProGuard/R8 mapping.txt"),
    seeds: Optional[Path] = typer.Option(None, "--seeds", "-s", exists=True, help="ProGuard/R8 seeds.txt"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Report directory"),
    depth: int = typer.Option(3, "--depth", "-d", help="Levels of the package tree kept in the report"),
) -> None:
    """Run every analysis and store the combined JSON report."""
    config = get_config()

    async def run_async() -> None:
        from .storage import LocalReportStore

        store = LocalReportStore(output or config.storage.base_path)
        result = _analyzer().analyze(apk_path, mapping=mapping, seeds=seeds, max_depth=depth)

        if not result.success:
            console.print(f"[bold red]✗ Analysis failed:[/bold red] {result.error}")
            raise typer.Exit(1)

        key = await store.store_report(
            store.report_key(apk_path),
            result.data,
            metadata={"apk": str(apk_path), "warnings": len(result.warnings)},
        )
        console.print(f"[bold green]✓ Report stored:[/bold green] {store.get_local_path(key)}")
        for warning in result.warnings:
            console.print(f"[yellow]Warning:[/yellow] {warning}")

    asyncio.run(run_async())


@app.command()
def reports(
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Report directory"),
) -> None:
    """List stored reports."""
    config = get_config()

    async def run_async() -> None:
        from .storage import LocalReportStore

        store = LocalReportStore(output or config.storage.base_path)
        table = Table(title="Stored Reports")
        table.add_column("Key", style="cyan")
        table.add_column("Stored at")
        for key in await store.list_reports():
            metadata = await store.get_metadata(key)
            table.add_row(key, str(metadata.get("_stored_at", "")))
        console.print(table)

    asyncio.run(run_async())


@app.command()
def config() -> None:
    """Show the current configuration."""
    cfg = get_config()

    table = Table(title="Current Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Log Level", cfg.log_level)
    table.add_row("Log Format", cfg.log_format)
    table.add_row("Duplicate Class Policy", cfg.analysis.duplicate_class_policy)
    table.add_row("Record References", str(cfg.analysis.record_references))
    table.add_row("Gzip Level", str(cfg.analysis.gzip_level))
    table.add_row("Mapping", str(cfg.mapping.mapping_path))
    table.add_row("Seeds", str(cfg.mapping.seeds_path))
    table.add_row("Mapping Strict", str(cfg.mapping.strict))
    table.add_row("Storage Backend", cfg.storage.backend)
    table.add_row("Storage Path", str(cfg.storage.base_path))

    console.print(table)

    console.print("\n[dim]Configure via environment variables:[/dim]")
    console.print("  APKA_LOG_LEVEL, APKA_LOG_FORMAT, APKA_DUPLICATE_POLICY, APKA_RECORD_REFERENCES, APKA_GZIP_LEVEL")
    console.print("  APKA_MAPPING_PATH, APKA_SEEDS_PATH, APKA_MAPPING_STRICT, APKA_REPORTS_PATH")


def run() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()
