"""Command-line interface for RegionForge.

This module provides the main entry point for the regionforge CLI tool.
It uses Click to define command groups for each kind of input.

Commands:
    gff3: Merge, consolidate, select and summarise GFF3 files
    genome: Homopolymer, N-region and motif scans of a FASTA genome
    qpileup: Low mapping quality and read depth scans of qpileup views

Example:
    $ regionforge --help
    $ regionforge gff3 merge --gff3 a.gff3 --gff3 b.gff3 -o merged.gff3
    $ regionforge genome homopolymer --fasta genome.fa -o hpoly.gff3 --min-length 6
    $ regionforge qpileup read-depth --view chr1.txt.gz --bam-count 4 --threshold 10 --below -o rd.gff3
"""

from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from regionforge import __version__
from regionforge.config import (
    Config,
    HomopolymerConfig,
    LowMapqConfig,
    MotifConfig,
    NRegionConfig,
    ReadDepthConfig,
)
from regionforge.utils.logging import Timer, get_logger, setup_logging

# Initialize rich console for pretty output
console = Console()
logger = get_logger(__name__)


def _config(ctx: click.Context) -> Config:
    return ctx.obj["config"]


def _fail(ctx: click.Context, error: Exception) -> None:
    console.print(f"[red]Error:[/red] {escape(str(error))}")
    if ctx.obj.get("verbose", False):
        import traceback

        traceback.print_exc()
    raise SystemExit(1)


def _pick(value, default):
    """Command-line value if given, else the configured default."""
    return default if value is None else value


@click.group()
@click.version_option(__version__, prog_name="regionforge")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output.")
@click.option("-q", "--quiet", is_flag=True, help="Suppress non-error output.")
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    help="Also write a debug log to this file.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    help="TOML configuration file with default scan settings.",
)
@click.pass_context
def main(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    log_file: Optional[Path],
    config_path: Optional[Path],
) -> None:
    """RegionForge: genomic interval merging and region detection.

    Merges GFF3 annotation sets using Allen interval relationships and
    finds runs of interest (homopolymers, N regions, low mapping quality,
    unusual read depth) in genomes and qpileup reports.
    """
    # Ensure context object exists
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet

    verbosity = 0 if quiet else (2 if verbose else 1)
    setup_logging(verbosity=verbosity, log_file=log_file)

    try:
        ctx.obj["config"] = Config.load(config_path)
    except (ValueError, OSError, TypeError) as e:
        _fail(ctx, e)


# =============================================================================
# gff3 command group
# =============================================================================


@main.group()
def gff3():
    """Merge, consolidate, select and summarise GFF3 files."""
    pass


@gff3.command("merge")
@click.option(
    "--gff3",
    "gff3_files",
    type=click.Path(exists=True, path_type=Path),
    multiple=True,
    required=True,
    help="GFF3 file to merge. Repeat for each file; at least two are needed.",
)
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path),
    required=True,
    help="Output merged GFF3 file.",
)
@click.pass_context
def gff3_merge(ctx: click.Context, gff3_files: tuple[Path, ...], output: Path) -> None:
    """Prudently merge two or more GFF3 files.

    Files are folded together in the order given. Each output feature is
    a region covered by one file only, or by several files; its type
    lists the files (by position on the command line, from 0) that cover
    it, e.g. "0+2". Only the sequence, type, start and end of the input
    features are used.

    \b
    Example:
        $ regionforge gff3 merge --gff3 a.gff3 --gff3 b.gff3 -o merged.gff3
    """
    from regionforge.core.prudent import merge_sets
    from regionforge.io.files import md5sum
    from regionforge.io.gff import GFF3Reader, GFF3Writer, versioned_headers
    from regionforge.stats import collection_stats

    quiet = ctx.obj.get("quiet", False)

    if len(gff3_files) < 2:
        console.print("[red]Error:[/red] At least two GFF3 files are required to merge")
        raise SystemExit(1)

    try:
        sets = []
        headers = ["##created-by regionforge mode: gff3 merge"]
        source_headers: list[str] = []
        for i, path in enumerate(gff3_files):
            if not quiet:
                console.print(f"[blue]Reading GFF3 {i}:[/blue] {path} (md5 {md5sum(path)})")
            reader = GFF3Reader(path)
            sets.append(reader.read())
            headers.append(f"##merged-gff3-file {i} {path}")
            source_headers.extend(versioned_headers(reader.headers, str(i)))
            source_headers.append("###")

        with Timer("Merging", logger):
            merged = merge_sets(sets)
        collection_stats(merged).log(logger)

        with GFF3Writer(output, source="regionforge:merge") as writer:
            writer.write_header(headers + source_headers)
            n = writer.write_intervals(merged.intervals())

        if not quiet:
            console.print(f"[green]Wrote {n:,} merged features:[/green] {output}")

    except (ValueError, OSError) as e:
        _fail(ctx, e)


@gff3.command("consolidate")
@click.option(
    "-i",
    "--input",
    "input_path",
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help="Input GFF3 file.",
)
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path),
    required=True,
    help="Output consolidated GFF3 file.",
)
@click.option(
    "--merge-adjacent/--keep-adjacent",
    default=None,
    help="Also merge features that meet end-to-start.  [default: keep-adjacent]",
)
@click.pass_context
def gff3_consolidate(
    ctx: click.Context,
    input_path: Path,
    output: Path,
    merge_adjacent: Optional[bool],
) -> None:
    """Merge overlapping features within each sequence of a GFF3 file."""
    from regionforge.core.consolidate import consolidate
    from regionforge.io.gff import GFF3Writer, read_gff

    quiet = ctx.obj.get("quiet", False)
    adjacent = _pick(merge_adjacent, _config(ctx).merge.merge_adjacent)

    try:
        iset = read_gff(input_path)
        n_merged = 0
        for coll in iset:
            coll.sort()
            n_merged += consolidate(coll, merge_adjacent=adjacent)

        with GFF3Writer(output, source="regionforge:consolidate") as writer:
            writer.write_header([f"##consolidated-gff3-file {input_path}"])
            n = writer.write_intervals(iset.intervals())

        if not quiet:
            console.print(f"[blue]Merges performed:[/blue] {n_merged:,}")
            console.print(f"[green]Wrote {n:,} features:[/green] {output}")

    except (ValueError, OSError) as e:
        _fail(ctx, e)


_select_option = click.option(
    "--select",
    "selectors",
    multiple=True,
    help="Selector operation:subject:pattern, e.g. keep:seqid:^chr or delete:type:_UTR$. "
    "Operations: keep, delete. Subjects: seqid, type. Repeat to apply several in order.",
)


@gff3.command("select")
@click.option(
    "-i",
    "--input",
    "input_path",
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help="Input GFF3 file.",
)
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path),
    required=True,
    help="Output GFF3 file of the selected features.",
)
@_select_option
@click.pass_context
def gff3_select(
    ctx: click.Context,
    input_path: Path,
    output: Path,
    selectors: tuple[str, ...],
) -> None:
    """Keep or delete features whose sequence or type matches a pattern.

    Selectors only ever drop features: delete drops features whose subject
    matches the pattern, keep drops those whose subject does not. They
    are applied in the order given.

    \b
    Example:
        $ regionforge gff3 select -i genes.gff3 -o chroms.gff3 \\
            --select 'delete:seqid:^GL' --select 'delete:type:_UTR$'
    """
    from regionforge.core.selector import apply_selectors, parse_selectors
    from regionforge.io.gff import GFF3Writer, read_gff

    quiet = ctx.obj.get("quiet", False)

    if not selectors:
        console.print("[red]Error:[/red] At least one --select is required")
        raise SystemExit(1)

    try:
        parsed = parse_selectors(selectors)
        iset = read_gff(input_path)
        logger.info(f"Number of features: {iset.feature_count}")
        dropped = apply_selectors(iset, parsed)

        with GFF3Writer(output, source="regionforge:select") as writer:
            writer.write_header(
                [f"##selected-gff3-file {input_path}"] + [f"##selector {s}" for s in parsed]
            )
            n = writer.write_intervals(iset.intervals())

        if not quiet:
            console.print(f"[blue]Features dropped:[/blue] {dropped:,}")
            console.print(f"[green]Wrote {n:,} features:[/green] {output}")

    except (ValueError, OSError) as e:
        _fail(ctx, e)


@gff3.command("exons")
@click.option(
    "--gff3",
    "gff3_files",
    type=click.Path(exists=True, path_type=Path),
    multiple=True,
    required=True,
    help="Gene model GFF3 file. Repeat to combine several.",
)
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path),
    required=True,
    help="Output GFF3 file of consolidated exons.",
)
@click.option(
    "--type",
    "feature_types",
    multiple=True,
    default=("exon",),
    show_default=True,
    help="Feature type to keep. Repeat to keep several.",
)
@_select_option
@click.option(
    "--merge-adjacent/--keep-adjacent",
    default=None,
    help="Also merge features that meet end-to-start.  [default: keep-adjacent]",
)
@click.pass_context
def gff3_exons(
    ctx: click.Context,
    gff3_files: tuple[Path, ...],
    output: Path,
    feature_types: tuple[str, ...],
    selectors: tuple[str, ...],
    merge_adjacent: Optional[bool],
) -> None:
    """Prune a gene model to exons and consolidate them.

    Selectors are applied first (for example to delete unplaced
    sequences), then every feature that is not an exon is dropped.
    Duplicate exons from different transcripts collapse into one and
    overlapping exons are merged into a single feature.

    \b
    Example:
        $ regionforge gff3 exons --gff3 genes.gff3 -o exons.gff3 --select 'keep:seqid:^chr'
    """
    from regionforge.core.consolidate import consolidate_features
    from regionforge.core.intervals import IntervalSet
    from regionforge.core.selector import apply_selectors, parse_selectors
    from regionforge.io.files import md5sum
    from regionforge.io.gff import GFF3Writer, read_gff

    quiet = ctx.obj.get("quiet", False)
    adjacent = _pick(merge_adjacent, _config(ctx).merge.merge_adjacent)

    try:
        parsed = parse_selectors(selectors)
        model = IntervalSet("gene-model")
        for path in gff3_files:
            logger.info(f"Reading GFF3 file: {path} (md5 {md5sum(path)})")
            for interval in read_gff(path).intervals():
                model.add(interval)
            logger.info(f"  gene model now has features on {len(model)} sequences")
        logger.info(f"Number of features: {model.feature_count}")

        apply_selectors(model, parsed)
        n_merged = consolidate_features(model, feature_types, merge_adjacent=adjacent)

        with GFF3Writer(output, source="regionforge:exons") as writer:
            writer.write_header(
                [f"##gene-model-gff3-file {path}" for path in gff3_files]
                + [f"##selector {s}" for s in parsed]
            )
            n = writer.write_intervals(model.intervals())

        if not quiet:
            console.print(f"[blue]Merges performed:[/blue] {n_merged:,}")
            console.print(f"[green]Wrote {n:,} consolidated features:[/green] {output}")

    except (ValueError, OSError) as e:
        _fail(ctx, e)


@gff3.command("stats")
@click.option(
    "-i",
    "--input",
    "input_path",
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help="Input GFF3 file.",
)
@click.pass_context
def gff3_stats(ctx: click.Context, input_path: Path) -> None:
    """Summarise features per sequence: counts, lengths and sortedness."""
    from regionforge.io.gff import read_gff
    from regionforge.stats import collection_stats

    try:
        stats = collection_stats(read_gff(input_path))
    except (ValueError, OSError) as e:
        _fail(ctx, e)
        return

    console.print(f"[bold]Total number of features:[/bold] {stats.count:,}")

    table = Table(title="Features per sequence", show_header=True)
    table.add_column("Name", style="cyan")
    table.add_column("Count", justify="right")
    table.add_column("SumIntvl", justify="right")
    table.add_column("ConsIntvl", justify="right")
    table.add_column("IsSorted", style="yellow")
    for s in stats.sequences:
        table.add_row(
            escape(s.seqid),
            str(s.count),
            str(s.sum_lengths),
            str(s.consolidated_length),
            str(s.is_sorted),
        )
    table.add_row(
        "Totals",
        str(stats.count),
        str(stats.sum_lengths),
        str(stats.consolidated_length),
        "",
        style="bold",
    )
    console.print(table)

    if stats.length_percentiles:
        parts = ", ".join(f"p{p}={v:g}" for p, v in stats.length_percentiles.items())
        console.print(f"[blue]Feature length percentiles:[/blue] {parts}")


# =============================================================================
# genome command group
# =============================================================================


@main.group()
def genome():
    """Scan a FASTA genome for homopolymers, N regions and motifs."""
    pass


_fasta_option = click.option(
    "--fasta",
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help="Genome FASTA file.",
)


@genome.command("homopolymer")
@_fasta_option
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path),
    required=True,
    help="Output GFF3 file of homopolymer regions.",
)
@click.option(
    "--min-length",
    type=click.IntRange(min=1),
    default=None,
    help="Shortest homopolymer reported.  [default: 5]",
)
@click.pass_context
def genome_homopolymer(
    ctx: click.Context, fasta: Path, output: Path, min_length: Optional[int]
) -> None:
    """Find runs of a repeated base."""
    from regionforge.scan.sequence import find_homopolymers

    quiet = ctx.obj.get("quiet", False)
    config = HomopolymerConfig(
        min_length=_pick(min_length, _config(ctx).homopolymer.min_length)
    )

    try:
        summary = find_homopolymers(fasta, output, config)
    except (ValueError, OSError) as e:
        _fail(ctx, e)
        return

    if not quiet:
        console.print(f"[green]Wrote {summary.regions:,} homopolymers:[/green] {output}")


@genome.command("homopolymer-stats")
@_fasta_option
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path),
    required=True,
    help="Output TSV of homopolymer counts by length and base.",
)
@click.pass_context
def genome_homopolymer_stats(ctx: click.Context, fasta: Path, output: Path) -> None:
    """Tally homopolymers of every length by base."""
    from regionforge.scan.sequence import homopolymer_stats

    quiet = ctx.obj.get("quiet", False)
    try:
        tally = homopolymer_stats(fasta, output)
    except (ValueError, OSError) as e:
        _fail(ctx, e)
        return

    if not quiet:
        console.print(f"[green]Tallied {tally.total:,} homopolymers:[/green] {output}")


@genome.command("n-regions")
@_fasta_option
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path),
    required=True,
    help="Output GFF3 file of N regions.",
)
@click.option(
    "--min-length",
    type=click.IntRange(min=1),
    default=None,
    help="Shortest N region reported.  [default: 1]",
)
@click.pass_context
def genome_n_regions(
    ctx: click.Context, fasta: Path, output: Path, min_length: Optional[int]
) -> None:
    """Find runs of ambiguous bases."""
    from regionforge.scan.sequence import find_n_regions

    quiet = ctx.obj.get("quiet", False)
    configured = _config(ctx).n_region
    config = NRegionConfig(
        min_length=_pick(min_length, configured.min_length),
        bases=configured.bases,
    )

    try:
        summary = find_n_regions(fasta, output, config)
    except (ValueError, OSError) as e:
        _fail(ctx, e)
        return

    if not quiet:
        console.print(f"[green]Wrote {summary.regions:,} N regions:[/green] {output}")


@genome.command("motif")
@_fasta_option
@click.option(
    "--regex",
    "patterns",
    multiple=True,
    required=True,
    help="Regular expression to search for. Repeat for several patterns.",
)
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path),
    required=True,
    help="Output TSV report of matches.",
)
@click.option(
    "--workers",
    type=click.IntRange(min=1),
    default=None,
    help="Patterns searched at once.  [default: one per pattern]",
)
@click.pass_context
def genome_motif(
    ctx: click.Context,
    fasta: Path,
    patterns: tuple[str, ...],
    output: Path,
    workers: Optional[int],
) -> None:
    """Search a genome for regular-expression matches."""
    from regionforge.io.fasta import GenomeReader
    from regionforge.io.files import md5sum
    from regionforge.scan.motif import compile_patterns, search_patterns, write_motif_report

    quiet = ctx.obj.get("quiet", False)
    workers = _pick(workers, _config(ctx).motif.workers)

    try:
        # Fail on a bad pattern before reading the genome
        compile_patterns(patterns)
        if not quiet:
            console.print(f"[blue]FASTA:[/blue] {fasta} (md5 {md5sum(fasta)})")
        with GenomeReader(fasta) as reader:
            sequences = reader.load_sequences()
        searches = search_patterns(sequences, patterns, MotifConfig(workers=workers))
        write_motif_report(searches, output)
    except (ValueError, OSError) as e:
        _fail(ctx, e)
        return

    if not quiet:
        for search in searches:
            console.print(f"  {search.pattern}: {len(search.matches):,} matches", highlight=False)
        console.print(f"[green]Wrote motif report:[/green] {output}")


# =============================================================================
# qpileup command group
# =============================================================================


@main.group()
def qpileup():
    """Find regions of interest in qpileup view 1 reports."""
    pass


def _view_files(view: tuple[Path, ...], viewlist: Optional[Path]) -> list[Path]:
    from regionforge.io.files import consolidate_file_list

    files = consolidate_file_list(viewlist, view)
    if not files:
        console.print("[red]Error:[/red] No qpileup view files to process")
        raise SystemExit(1)
    return files


_view_option = click.option(
    "--view",
    type=click.Path(path_type=Path),
    multiple=True,
    help="qpileup view file (optionally gzipped). Repeat for several files.",
)
_viewlist_option = click.option(
    "--viewlist",
    type=click.Path(exists=True, path_type=Path),
    help="Text file listing qpileup view files, one per line.",
)
_region_min_option = click.option(
    "--region-min",
    type=click.IntRange(min=1),
    default=None,
    help="Shortest region reported.  [default: 100]",
)


@qpileup.command("low-mapq")
@_view_option
@_viewlist_option
@click.option(
    "--threshold",
    type=click.IntRange(min=0),
    default=None,
    help="Positions with average mapping quality below this are reported.  [default: 10]",
)
@_region_min_option
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path),
    required=True,
    help="Output GFF3 file of low mapping quality regions.",
)
@click.pass_context
def qpileup_low_mapq(
    ctx: click.Context,
    view: tuple[Path, ...],
    viewlist: Optional[Path],
    threshold: Optional[int],
    region_min: Optional[int],
    output: Path,
) -> None:
    """Find regions with low average mapping quality."""
    from regionforge.scan.pileup import find_low_mapq_regions

    quiet = ctx.obj.get("quiet", False)
    configured = _config(ctx).low_mapq
    config = LowMapqConfig(
        threshold=_pick(threshold, configured.threshold),
        min_length=_pick(region_min, configured.min_length),
    )
    files = _view_files(view, viewlist)

    try:
        summary, _ = find_low_mapq_regions(files, output, config)
    except (ValueError, OSError) as e:
        _fail(ctx, e)
        return

    if not quiet:
        if summary.short_lines:
            console.print(f"[yellow]Short lines skipped:[/yellow] {summary.short_lines:,}")
        console.print(f"[green]Wrote {summary.regions:,} low-mapq regions:[/green] {output}")


@qpileup.command("read-depth")
@_view_option
@_viewlist_option
@click.option(
    "--bam-count",
    type=click.IntRange(min=1),
    default=None,
    help="Number of BAM files in the pileup; read depth is judged per BAM.  [default: 1]",
)
@click.option(
    "--threshold",
    type=click.FloatRange(min=0),
    default=None,
    help="Read depth per BAM compared against.",
)
@click.option("--above", "direction", flag_value="above", help="Report depth above threshold.")
@click.option("--below", "direction", flag_value="below", help="Report depth below threshold.")
@_region_min_option
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path),
    required=True,
    help="Output GFF3 file of read depth regions.",
)
@click.pass_context
def qpileup_read_depth(
    ctx: click.Context,
    view: tuple[Path, ...],
    viewlist: Optional[Path],
    bam_count: Optional[int],
    threshold: Optional[float],
    direction: Optional[str],
    region_min: Optional[int],
    output: Path,
) -> None:
    """Find regions of unusually low or high read depth."""
    from regionforge.scan.pileup import find_read_depth_regions

    quiet = ctx.obj.get("quiet", False)
    configured = _config(ctx).read_depth

    if direction is None and configured.direction is None:
        console.print("[red]Error:[/red] One of --above or --below must be specified")
        raise SystemExit(1)

    try:
        config = ReadDepthConfig(
            threshold=_pick(threshold, configured.threshold),
            direction=_pick(direction, configured.direction),
            divisor=_pick(bam_count, configured.divisor),
            min_length=_pick(region_min, configured.min_length),
        )
    except ValueError as e:
        _fail(ctx, e)
        return
    files = _view_files(view, viewlist)

    try:
        summary = find_read_depth_regions(files, output, config)
    except (ValueError, OSError) as e:
        _fail(ctx, e)
        return

    if not quiet:
        if summary.short_lines:
            console.print(f"[yellow]Short lines skipped:[/yellow] {summary.short_lines:,}")
        console.print(f"[green]Wrote {summary.regions:,} read-depth regions:[/green] {output}")


if __name__ == "__main__":
    main()
