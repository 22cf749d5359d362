"""High-level public API for running HOMER and reading its results."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union

import pandas as pd

from homerpy.execute import HomerInstallation, find_motifs_genome
from homerpy.io import read_denovo_results, read_known_results
from homerpy.models import (
    HOMER_DEFAULT_LENGTHS,
    HOMER_DEFAULT_OPTIMIZE_COUNT,
    HOMER_DEFAULT_SIZE,
    BackgroundRef,
    FindMotifsOptions,
)
from homerpy.results import MotifTable


@dataclass
class HomerResults:
    """Parsed tables of one HOMER run."""

    output_dir: Path
    known: Optional[MotifTable] = None
    denovo: Optional[MotifTable] = None


def create_options(
    output_dir: Union[str, Path],
    genome: str,
    motif_length: Union[int, Sequence[int]] = HOMER_DEFAULT_LENGTHS,
    scan_size: Union[int, str] = HOMER_DEFAULT_SIZE,
    optimize_count: int = HOMER_DEFAULT_OPTIMIZE_COUNT,
    background: BackgroundRef = None,
    local_background: Optional[int] = None,
    only_known: bool = False,
    only_denovo: bool = False,
    fdr_num: int = 0,
    cores: int = 1,
    cache: Optional[int] = None,
    overwrite: bool = False,
    keep_minimal: bool = False,
    mask: bool = False,
    extra_args: Sequence[str] = (),
) -> FindMotifsOptions:
    """Build a validated options object for one ``findMotifsGenome.pl`` run."""

    if isinstance(motif_length, int):
        motif_length = (motif_length,)

    return FindMotifsOptions(
        output_dir=str(output_dir),
        genome=genome,
        motif_length=tuple(motif_length),
        scan_size=scan_size,
        optimize_count=optimize_count,
        background=background,
        local_background=local_background,
        only_known=only_known,
        only_denovo=only_denovo,
        fdr_num=fdr_num,
        cores=cores,
        cache=cache,
        overwrite=overwrite,
        keep_minimal=keep_minimal,
        mask=mask,
        extra_args=tuple(extra_args),
    )


def find_motifs(
    regions: pd.DataFrame,
    output_dir: Union[str, Path],
    genome: str,
    installation: Optional[HomerInstallation] = None,
    verbose: bool = False,
    **option_kwargs,
) -> HomerResults:
    """Single-call entry point: run HOMER and parse what it produced."""

    options = create_options(output_dir, genome, **option_kwargs)
    return run_find_motifs(regions, options, installation=installation, verbose=verbose)


def run_find_motifs(
    regions: pd.DataFrame,
    options: FindMotifsOptions,
    installation: Optional[HomerInstallation] = None,
    verbose: bool = False,
) -> HomerResults:
    """Execute a run described by ``options`` and load its result tables."""

    output_dir = find_motifs_genome(regions, options, installation=installation, verbose=verbose)
    search_known, search_denovo = options.search_known, options.search_denovo
    return load_results(output_dir, known=search_known, denovo=search_denovo)


def load_results(output_dir: Union[str, Path], known: bool = True, denovo: bool = True) -> HomerResults:
    """Read the requested result tables from a finished HOMER output directory.

    A requested table whose file is missing raises
    :class:`~homerpy.errors.ResultFileNotFoundError`.
    """

    output_dir = Path(output_dir)
    results = HomerResults(output_dir=output_dir)
    if known:
        results.known = read_known_results(output_dir)
    if denovo:
        results.denovo = read_denovo_results(output_dir)

    return results
