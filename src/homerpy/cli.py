import argparse
import json
import logging
import os
import sys
from typing import Any, Dict

from homerpy.api import create_options, run_find_motifs
from homerpy.execute import HomerInstallation
from homerpy.io import read_regions, read_results
from homerpy.results import MotifTable


def setup_logging(verbose: bool):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


def create_arg_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        description="homerpy: run HOMER motif enrichment and read its results as tables",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
 Examples:
   # Known and de novo search with 8 and 10 bp motifs on 4 threads
   homerpy find peaks.bed hg38 results/ --len 8 10 --cores 4

   # Known motifs only, custom background, drop HTML reports afterwards
   homerpy find peaks.bed mm10 results/ --only-known \\
     --background background.bed --keep-minimal

   # Print parsed tables
   homerpy known results/
   homerpy denovo results/homerMotifs.all.motifs --json
   homerpy instances instances.txt
         """,
    )

    subparsers = parser.add_subparsers(dest="mode", help="Operation mode", required=True)

    find_parser = subparsers.add_parser("find", help="Run findMotifsGenome.pl on a BED file of regions.")
    find_parser.add_argument("regions", help="BED file of target regions (chrom, start, end, ...).")
    find_parser.add_argument("genome", help="HOMER genome identifier (e.g. hg38) or a genome FASTA path.")
    find_parser.add_argument("output_dir", help="Directory HOMER writes its results into.")

    search_group = find_parser.add_argument_group("Search Options")
    search_group.add_argument(
        "--len",
        dest="motif_length",
        type=int,
        nargs="+",
        default=[8, 10, 12],
        help="Motif length(s) for the de novo search. (default: %(default)s)",
    )
    search_group.add_argument(
        "--size",
        default="200",
        help="Region size used for motif finding, or 'given' to use the regions as is. (default: %(default)s)",
    )
    search_group.add_argument(
        "--optimize-count",
        type=int,
        default=25,
        help="Number of motifs to optimise per length. (default: %(default)s)",
    )
    search_group.add_argument(
        "--background",
        help="BED file of background regions. If omitted, HOMER selects GC-matched genomic background.",
    )
    search_group.add_argument(
        "--local-background",
        type=int,
        help="Number of local background regions per target region.",
    )
    exclusive = search_group.add_mutually_exclusive_group()
    exclusive.add_argument("--only-known", action="store_true", help="Skip the de novo motif search.")
    exclusive.add_argument("--only-denovo", action="store_true", help="Skip the known motif search.")
    search_group.add_argument(
        "--fdr",
        type=int,
        default=0,
        help="Number of randomisations used to estimate FDR; 0 disables. (default: %(default)s)",
    )

    find_output_group = find_parser.add_argument_group("Output Options")
    find_output_group.add_argument(
        "--overwrite",
        action="store_true",
        help="Allow writing into a non-empty output directory.",
    )
    find_output_group.add_argument(
        "--keep-minimal",
        action="store_true",
        help="Delete HTML reports and images after the run, keeping only text results.",
    )

    find_technical_group = find_parser.add_argument_group("Technical Options")
    find_technical_group.add_argument(
        "--cores",
        type=int,
        default=1,
        help="Number of threads HOMER may use. (default: %(default)s)",
    )
    find_technical_group.add_argument(
        "--cache",
        type=int,
        help="Memory cache size for HOMER in MB.",
    )
    find_technical_group.add_argument(
        "--homer-bin",
        help="Directory containing the HOMER executables. Defaults to searching PATH.",
    )
    find_technical_group.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging and stream HOMER's progress output.",
    )

    for mode, help_text in (
        ("known", "Print knownResults.txt as a table."),
        ("denovo", "Print a de novo motif file (homerMotifs.all.motifs) as a table."),
        ("instances", "Print the output of findMotifsGenome.pl -find as a table."),
    ):
        read_parser = subparsers.add_parser(mode, help=help_text)
        read_parser.add_argument("path", help="HOMER output directory or result file.")
        read_parser.add_argument("--json", action="store_true", help="Print JSON records instead of TSV.")
        read_parser.add_argument(
            "-v",
            "--verbose",
            action="store_true",
            help="Enable verbose logging to standard error.",
        )

    return parser


def validate_inputs(args) -> None:
    """Validate input files and parameters."""
    logger = logging.getLogger(__name__)
    if args.mode == "find":
        if not os.path.exists(args.regions):
            logger.error(f"Regions file not found: {args.regions}")
            sys.exit(1)
        if args.background and not os.path.exists(args.background):
            logger.error(f"Background file not found: {args.background}")
            sys.exit(1)
        if args.size != "given" and not args.size.isdigit():
            logger.error(f"--size must be an integer or 'given', got {args.size}")
            sys.exit(1)
    elif not os.path.exists(args.path):
        logger.error(f"Path not found: {args.path}")
        sys.exit(1)


def map_args_to_options_kwargs(args) -> Dict[str, Any]:
    """Map CLI arguments to create_options keyword arguments."""
    return {
        "motif_length": args.motif_length,
        "scan_size": args.size if args.size == "given" else int(args.size),
        "optimize_count": args.optimize_count,
        "background": read_regions(args.background) if args.background else None,
        "local_background": args.local_background,
        "only_known": args.only_known,
        "only_denovo": args.only_denovo,
        "fdr_num": args.fdr,
        "cores": args.cores,
        "cache": args.cache,
        "overwrite": args.overwrite,
        "keep_minimal": args.keep_minimal,
    }


def table_to_text(table: MotifTable, as_json: bool) -> str:
    """Render a table without its matrices; the consensus column stands in for them."""
    df = table.to_frame()
    if "pwm" in df.columns:
        df = df.drop(columns=["pwm"])
    if as_json:
        return df.to_json(orient="records")
    return df.to_csv(sep="\t", index=False)


def main_cli():
    """Main CLI entry point."""
    parser = create_arg_parser()

    if len(sys.argv) == 1:
        parser.print_help(sys.stderr)
        sys.exit(1)

    args = parser.parse_args()

    setup_logging(args.verbose)

    validate_inputs(args)

    try:
        if args.mode == "find":
            regions = read_regions(args.regions)
            options = create_options(args.output_dir, args.genome, **map_args_to_options_kwargs(args))
            installation = HomerInstallation.detect(args.homer_bin)

            if args.verbose:
                logger = logging.getLogger(__name__)
                logger.info("=" * 60)
                logger.info("homerpy - findMotifsGenome.pl")
                logger.info("=" * 60)
                logger.info(f"Regions: {args.regions} ({len(regions)} rows)")
                logger.info(f"Genome: {args.genome}")
                logger.info(f"Output: {args.output_dir}")
                logger.info("=" * 60)

            results = run_find_motifs(regions, options, installation=installation, verbose=args.verbose)
            summary = {
                "output_dir": str(results.output_dir),
                "known": len(results.known) if results.known is not None else None,
                "denovo": len(results.denovo) if results.denovo is not None else None,
            }
            print(json.dumps(summary))
        else:
            table = read_results(args.path, args.mode)
            sys.stdout.write(table_to_text(table, args.json))
            if args.json:
                sys.stdout.write("\n")

    except Exception as e:
        print(f"ERROR: {e}")
        if args.verbose:
            import traceback

            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main_cli()
