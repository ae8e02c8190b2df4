"""snp-query-engine: match personal genome files against an in-memory SNP dataset."""

import asyncio
import json
import logging
import time
from dataclasses import asdict
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from . import __version__
from .config import ConfigValidationError, EngineConfig, load_config
from .errors import QueryEngineError
from .models import DatabaseStats, FilterCriteria, MatchedSNP, SearchResult, UserGenotype
from .parsers import parse_23andme, read_genotype_file, validate_23andme
from .rpc import EngineClient


def version_callback(value: bool) -> None:
    if value:
        print(__version__)
        raise typer.Exit()


app = typer.Typer(
    name="snp-query-engine",
    help="Match 23andMe genotype files against an SNPedia dataset held in memory",
)
console = Console()

DbOption = Annotated[
    str, typer.Option("--db", "-d", help="URL of the SQLite dataset image to load")
]
ConfigOption = Annotated[
    Path | None, typer.Option("--config", "-c", help="TOML configuration file")
]
VerboseOption = Annotated[
    bool, typer.Option("--verbose", "-v", help="Enable verbose logging")
]
QuietOption = Annotated[bool, typer.Option("--quiet", "-q", help="Suppress non-error output")]


@app.callback()
def main_callback(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version", callback=version_callback, is_eager=True, help="Show version and exit"
        ),
    ] = None,
) -> None:
    pass


def setup_logging(verbose: bool, quiet: bool) -> None:
    """Configure logging based on verbosity flags."""
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("snp_query_engine").setLevel(level)


def _resolve_config(config_file: Path | None) -> EngineConfig:
    if config_file is None:
        return EngineConfig()
    try:
        return load_config(config_file)
    except (FileNotFoundError, ConfigValidationError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from None


def _progress_bar() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    )


async def _load_database(engine: EngineClient, db_url: str, show_progress: bool) -> None:
    if not show_progress:
        await engine.load_database(db_url)
        return

    with _progress_bar() as progress_bar:
        task = progress_bar.add_task("Loading SNP database...", total=100)

        def update_progress(percent: float) -> None:
            progress_bar.update(task, completed=percent)

        await engine.load_database(db_url, on_progress=update_progress)


async def _run_match(
    db_url: str, genotypes: list[UserGenotype], config: EngineConfig, show_progress: bool
) -> list[MatchedSNP]:
    async with EngineClient(config) as engine:
        await _load_database(engine, db_url, show_progress)

        if not show_progress:
            return await engine.match_snps(genotypes)

        with _progress_bar() as progress_bar:
            task = progress_bar.add_task("Matching SNPs...", total=len(genotypes))

            def update_progress(current: int, total: int) -> None:
                progress_bar.update(
                    task, completed=current, description=f"Checked {current:,}/{total:,} SNPs"
                )

            return await engine.match_snps(genotypes, on_progress=update_progress)


async def _run_search(
    db_url: str, criteria: FilterCriteria, config: EngineConfig, show_progress: bool
) -> SearchResult:
    async with EngineClient(config) as engine:
        await _load_database(engine, db_url, show_progress)
        return await engine.search_snps(criteria)


async def _run_stats(db_url: str, config: EngineConfig, show_progress: bool) -> DatabaseStats:
    async with EngineClient(config) as engine:
        await _load_database(engine, db_url, show_progress)
        return await engine.get_database_stats()


def _matches_table(matches: list[MatchedSNP], limit: int) -> Table:
    table = Table(title=f"Matched SNPs (showing {min(limit, len(matches)):,} of {len(matches):,})")
    table.add_column("rsID", style="cyan")
    table.add_column("Genotype")
    table.add_column("Chr")
    table.add_column("Gene")
    table.add_column("Clinical significance")
    table.add_column("Disease")

    for match in matches[:limit]:
        snp = match.snp_data
        table.add_row(
            match.rsid,
            match.genotype,
            match.chromosome,
            snp.gene or "",
            snp.clin_sig or "",
            snp.clin_disease or "",
        )
    return table


def _search_table(result: SearchResult, offset: int) -> Table:
    first = offset + 1 if result.results else 0
    last = offset + len(result.results)
    table = Table(title=f"SNPs {first:,}-{last:,} of {result.total:,}")
    table.add_column("rsID", style="cyan")
    table.add_column("Chr")
    table.add_column("Position", justify="right")
    table.add_column("Gene")
    table.add_column("Clinical significance")
    table.add_column("Disease")

    for snp in result.results:
        table.add_row(
            snp.rsid,
            snp.chromosome or "",
            str(snp.position) if snp.position is not None else "",
            snp.gene or "",
            snp.clin_sig or "",
            snp.clin_disease or "",
        )
    return table


@app.command()
def match(
    genome_file: Annotated[Path, typer.Argument(help="Path to a 23andMe raw data file")],
    db_url: DbOption,
    config_file: ConfigOption = None,
    report: Annotated[
        Path | None, typer.Option("--report", "-r", help="Write JSON report of matches to file")
    ] = None,
    show: int = typer.Option(25, "--show", "-n", help="Number of matches to print"),
    skip_validation: bool = typer.Option(
        False, "--skip-validation", help="Parse even if the file doesn't look like 23andMe data"
    ),
    verbose: VerboseOption = False,
    quiet: QuietOption = False,
    progress: bool = typer.Option(True, "--progress/--no-progress", help="Show progress bars"),
) -> None:
    """Match the genotypes in a 23andMe file against the SNP dataset."""
    setup_logging(verbose, quiet)

    if not genome_file.exists():
        console.print(f"[red]Error: Genome file not found: {genome_file}[/red]")
        raise typer.Exit(1)

    config = _resolve_config(config_file)
    content = read_genotype_file(genome_file)

    if not skip_validation:
        validation = validate_23andme(content)
        if not validation.valid:
            console.print(f"[red]Error: {validation.reason}[/red]")
            raise typer.Exit(1)

    parsed = parse_23andme(content)
    if not parsed.genotypes:
        console.print("[red]Error: No genotypes found in file[/red]")
        raise typer.Exit(1)

    if not quiet:
        console.print(
            f"Parsed {len(parsed.genotypes):,} genotypes from {genome_file.name} "
            f"({parsed.skipped_lines:,} lines skipped)"
        )
        if parsed.errors:
            console.print(f"[yellow]⚠[/yellow] {len(parsed.errors):,} malformed lines ignored")

    started = time.perf_counter()
    try:
        matches = asyncio.run(
            _run_match(db_url, parsed.genotypes, config, progress and not quiet)
        )
    except QueryEngineError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from None
    elapsed = time.perf_counter() - started

    if not quiet:
        console.print(
            f"[green]✓[/green] Matched {len(matches):,} of {len(parsed.genotypes):,} genotypes "
            f"in {elapsed:.1f}s"
        )
        if matches and show > 0:
            console.print(_matches_table(matches, show))

    if report:
        report_data = {
            "genome_file": str(genome_file),
            "database": db_url,
            "genotypes_parsed": len(parsed.genotypes),
            "lines_skipped": parsed.skipped_lines,
            "parse_errors": parsed.errors,
            "matches_found": len(matches),
            "elapsed_seconds": round(elapsed, 3),
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "matches": [asdict(m) for m in matches],
        }
        with open(report, "w") as f:
            json.dump(report_data, f, indent=2)
            f.write("\n")
        if not quiet:
            console.print(f"  Report: {report}")


@app.command()
def search(
    db_url: DbOption,
    term: Annotated[
        str | None, typer.Option("--term", "-t", help="Free-text search across key fields")
    ] = None,
    chromosome: Annotated[
        str | None, typer.Option("--chromosome", help="Exact chromosome")
    ] = None,
    gene: Annotated[str | None, typer.Option("--gene", help="Gene name substring")] = None,
    significance: Annotated[
        str | None, typer.Option("--significance", help="Clinical significance substring")
    ] = None,
    disease: Annotated[str | None, typer.Option("--disease", help="Disease substring")] = None,
    limit: Annotated[int | None, typer.Option("--limit", "-l", help="Page size")] = None,
    offset: int = typer.Option(0, "--offset", "-o", help="Rows to skip"),
    as_json: bool = typer.Option(False, "--json", help="Print results as JSON"),
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
    quiet: QuietOption = False,
) -> None:
    """Search the SNP dataset with optional filters."""
    setup_logging(verbose, quiet)
    config = _resolve_config(config_file)

    try:
        criteria = FilterCriteria(
            search_term=term,
            chromosome=chromosome,
            gene=gene,
            clinical_significance=significance,
            disease=disease,
            limit=limit if limit is not None else config.page_size,
            offset=offset,
        )
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from None

    try:
        result = asyncio.run(_run_search(db_url, criteria, config, not quiet and not as_json))
    except QueryEngineError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from None

    if as_json:
        print(json.dumps({"total": result.total, "results": [asdict(r) for r in result.results]}))
        return

    if not result.results:
        console.print(f"No SNPs on this page (total matches: {result.total:,})")
        return
    console.print(_search_table(result, offset))


@app.command()
def stats(
    db_url: DbOption,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
    quiet: QuietOption = False,
) -> None:
    """Show summary statistics for the SNP dataset."""
    setup_logging(verbose, quiet)
    config = _resolve_config(config_file)

    try:
        db_stats = asyncio.run(_run_stats(db_url, config, not quiet))
    except QueryEngineError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from None

    console.print(f"Total SNPs: {db_stats.total_snps:,}")


@app.command("validate-file")
def validate_file(
    genome_file: Path = typer.Argument(..., help="Path to a 23andMe raw data file"),
) -> None:
    """Check that a file looks like 23andMe raw data and report parse problems."""
    if not genome_file.exists():
        console.print(f"[red]Error: Genome file not found: {genome_file}[/red]")
        raise typer.Exit(1)

    content = read_genotype_file(genome_file)
    validation = validate_23andme(content)
    if not validation.valid:
        console.print(f"[red]✗[/red] {validation.reason}")
        raise typer.Exit(1)

    parsed = parse_23andme(content)
    console.print(f"[green]✓[/green] {genome_file.name} looks like a 23andMe raw data file")
    console.print(f"  Genotypes: {len(parsed.genotypes):,}")
    console.print(f"  Lines: {parsed.total_lines:,} ({parsed.skipped_lines:,} skipped)")
    for error in parsed.errors[:10]:
        console.print(f"  [yellow]{error}[/yellow]")
    if len(parsed.errors) > 10:
        console.print(f"  ... and {len(parsed.errors) - 10:,} more")


if __name__ == "__main__":
    app()
