import logging
import os
import shutil
import subprocess
import sys
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd
from joblib import Parallel, delayed

from homerpy.errors import ConflictError, ExternalToolError, InvalidInputError, ToolNotFoundError
from homerpy.io import read_motif_instances, write_peak_file
from homerpy.models import (
    HOMER_DEFAULT_LENGTHS,
    HOMER_DEFAULT_OPTIMIZE_COUNT,
    HOMER_DEFAULT_SIZE,
    FindMotifsOptions,
)
from homerpy.regions import validate_regions
from homerpy.results import MotifTable

FIND_MOTIFS_GENOME = "findMotifsGenome.pl"
HOMER2 = "homer2"
HOMER_TOOLS = (FIND_MOTIFS_GENOME, HOMER2)

# Report assets that the parsers never read.
AUXILIARY_SUFFIXES = (".html", ".svg", ".png", ".jpg", ".jpeg", ".pdf", ".css", ".js")


@dataclass(frozen=True)
class HomerInstallation:
    """Located HOMER executables.

    Build one with :meth:`detect` once per process and pass it to every
    invocation; it is never re-checked implicitly.
    """

    executables: Dict[str, str] = field(default_factory=dict, hash=False)
    bin_dir: Optional[str] = None

    @classmethod
    def detect(cls, bin_dir: Optional[str] = None) -> "HomerInstallation":
        """Look up the HOMER executables on PATH or in ``bin_dir``."""
        logger = logging.getLogger(__name__)
        found = {}
        for tool in HOMER_TOOLS:
            location = shutil.which(tool, path=bin_dir)
            if location is not None:
                found[tool] = location
                logger.debug(f"Found {tool}: {location}")
            else:
                logger.debug(f"{tool} not found in {bin_dir or 'PATH'}")
        return cls(executables=found, bin_dir=bin_dir)

    @property
    def available(self) -> bool:
        return FIND_MOTIFS_GENOME in self.executables

    def require(self, tool: str = FIND_MOTIFS_GENOME) -> str:
        """Return the absolute path of ``tool`` or raise :class:`ToolNotFoundError`."""
        if tool not in self.executables:
            raise ToolNotFoundError(tool, self.bin_dir)
        return self.executables[tool]


def check_output_dir(path, overwrite: bool) -> Path:
    """Make sure HOMER can write into ``path`` without clobbering earlier results."""
    path = Path(path)
    if path.exists():
        if not path.is_dir():
            raise ConflictError(f"Output path exists and is not a directory: {path}")
        with os.scandir(path) as entries:
            nonempty = any(True for _ in entries)
        if nonempty and not overwrite:
            raise ConflictError(f"Output directory {path} is not empty; set overwrite=True to replace its results")
    else:
        try:
            path.mkdir(parents=True)
        except OSError as e:
            raise InvalidInputError(f"Cannot create output directory {path}: {e}") from e
    if not os.access(path, os.W_OK):
        raise InvalidInputError(f"Output directory is not writable: {path}")
    return path


def build_find_motifs_args(
    peak_file: str,
    options: FindMotifsOptions,
    background_file: Optional[str] = None,
    executable: str = FIND_MOTIFS_GENOME,
) -> List[str]:
    """Translate options into a ``findMotifsGenome.pl`` argument vector."""
    search_known, search_denovo = options.resolved_search_flags()

    args = [executable, str(peak_file), options.genome, options.output_dir]

    if options.scan_size != HOMER_DEFAULT_SIZE:
        args += ["-size", f"{options.scan_size}"]
    if search_denovo:
        if options.motif_length != HOMER_DEFAULT_LENGTHS:
            args += ["-len", ",".join(str(length) for length in options.motif_length)]
        if options.optimize_count != HOMER_DEFAULT_OPTIMIZE_COUNT:
            args += ["-S", f"{options.optimize_count}"]
    if not search_denovo:
        args.append("-nomotif")
    if not search_known:
        args.append("-noknown")
    if background_file is not None:
        args += ["-bg", str(background_file)]
    if options.local_background is not None:
        args += ["-local", f"{options.local_background}"]
    if options.fdr_num > 0:
        args += ["-fdr", f"{options.fdr_num}"]
    if options.cores > 1:
        args += ["-p", f"{options.cores}"]
    if options.cache is not None:
        args += ["-cache", f"{options.cache}"]
    if options.mask:
        args.append("-mask")
    args += list(options.extra_args)

    return args


def run_command(args: Sequence[str], verbose: bool = False, stdout_path: Optional[str] = None) -> str:
    """Run an external command to completion and return its captured stderr.

    With ``verbose`` the tool's progress messages are echoed to this
    process's stderr as they arrive; its standard output joins that stream
    unless ``stdout_path`` redirects it into a file.
    """
    logger = logging.getLogger(__name__)
    logger.debug(" ".join(args))

    stdout_handle = open(stdout_path, "w") if stdout_path is not None else None
    try:
        if stdout_handle is not None:
            stdout_target = stdout_handle
        elif verbose:
            stdout_target = subprocess.STDOUT
        else:
            stdout_target = subprocess.PIPE
        try:
            process = subprocess.Popen(args, shell=False, stdout=stdout_target, stderr=subprocess.PIPE, text=True)
        except FileNotFoundError:
            raise ToolNotFoundError(args[0]) from None

        if verbose:
            lines = []
            for line in process.stderr:
                sys.stderr.write(line)
                lines.append(line)
            process.wait()
            stdout_text = ""
            stderr_text = "".join(lines)
        else:
            stdout_text, stderr_text = process.communicate()
    finally:
        if stdout_handle is not None:
            stdout_handle.close()

    if stdout_text:
        logger.debug(stdout_text)
    if stderr_text:
        logger.debug(stderr_text)

    if process.returncode != 0:
        logger.error(f"{args[0]} exited with status {process.returncode}")
        raise ExternalToolError(args, process.returncode, stderr_text)
    return stderr_text


def prune_output(output_dir) -> List[Path]:
    """Delete HTML reports and images, keeping the text files the parsers read."""
    removed = []
    for path in sorted(Path(output_dir).rglob("*")):
        if path.is_file() and path.suffix.lower() in AUXILIARY_SUFFIXES:
            path.unlink()
            removed.append(path)
    logger = logging.getLogger(__name__)
    logger.info(f"Removed {len(removed)} auxiliary file(s) from {output_dir}")
    return removed


def _prepare_background(options: FindMotifsOptions, tmp_dir: str) -> Optional[str]:
    background = options.background
    if background is None:
        return None
    if isinstance(background, pd.DataFrame):
        background_path = os.path.join(tmp_dir, "background.bed")
        write_peak_file(background, background_path)
        return background_path
    if isinstance(background, (str, Path)):
        if str(background) == "automatic":
            return None
        if not os.path.isfile(background):
            raise InvalidInputError(f"Background file not found: {background}")
        return str(background)
    raise InvalidInputError(f"Unsupported background type: {type(background).__name__}")


def find_motifs_genome(
    regions: pd.DataFrame,
    options: FindMotifsOptions,
    installation: Optional[HomerInstallation] = None,
    verbose: bool = False,
) -> Path:
    """Run ``findMotifsGenome.pl`` on ``regions`` and return the output directory.

    Inputs are validated before anything is spawned: malformed regions raise
    :class:`InvalidInputError` and a non-empty output directory with
    ``overwrite=False`` raises :class:`ConflictError`.
    """
    regions = validate_regions(regions)
    if isinstance(options.background, pd.DataFrame):
        validate_regions(options.background)

    output_dir = check_output_dir(options.output_dir, options.overwrite)

    if installation is None:
        installation = HomerInstallation.detect()
    executable = installation.require(FIND_MOTIFS_GENOME)

    logger = logging.getLogger(__name__)
    logger.info(f"Running HOMER on {len(regions)} region(s), genome {options.genome}, output {output_dir}")

    with tempfile.TemporaryDirectory(prefix="homerpy_") as tmp_dir:
        peak_file = os.path.join(tmp_dir, "regions.bed")
        write_peak_file(regions, peak_file)
        background_file = _prepare_background(options, tmp_dir)
        args = build_find_motifs_args(peak_file, options, background_file, executable=executable)
        run_command(args, verbose=verbose)

    if options.keep_minimal:
        prune_output(output_dir)

    return output_dir


def find_motif_instances(
    regions: pd.DataFrame,
    genome: str,
    motif_file: str,
    output_file: str,
    scan_size: int = HOMER_DEFAULT_SIZE,
    cores: int = 1,
    overwrite: bool = False,
    installation: Optional[HomerInstallation] = None,
    verbose: bool = False,
) -> MotifTable:
    """Locate the motifs of ``motif_file`` in ``regions`` with ``-find``.

    HOMER's table is written to ``output_file`` and returned parsed.
    """
    regions = validate_regions(regions)
    if not os.path.isfile(motif_file):
        raise InvalidInputError(f"Motif file not found: {motif_file}")
    if os.path.exists(output_file) and os.path.getsize(output_file) > 0 and not overwrite:
        raise ConflictError(f"Output file {output_file} already exists; set overwrite=True to replace it")

    if installation is None:
        installation = HomerInstallation.detect()
    executable = installation.require(FIND_MOTIFS_GENOME)

    with tempfile.TemporaryDirectory(prefix="homerpy_") as tmp_dir:
        peak_file = os.path.join(tmp_dir, "regions.bed")
        write_peak_file(regions, peak_file)
        args = [executable, peak_file, genome, os.path.join(tmp_dir, "out"), "-find", str(motif_file)]
        if scan_size != HOMER_DEFAULT_SIZE:
            args += ["-size", f"{scan_size}"]
        if cores > 1:
            args += ["-p", f"{cores}"]
        try:
            run_command(args, verbose=verbose, stdout_path=output_file)
        except ExternalToolError:
            if os.path.exists(output_file):
                os.remove(output_file)
            raise

    return read_motif_instances(output_file)


def find_motifs_batch(
    jobs: Iterable[Tuple[pd.DataFrame, FindMotifsOptions]],
    n_jobs: int = 1,
    installation: Optional[HomerInstallation] = None,
    verbose: bool = False,
) -> List[Path]:
    """Run independent HOMER invocations, returning output directories in input order."""
    jobs = list(jobs)
    output_dirs = [os.path.abspath(options.output_dir) for _, options in jobs]
    if len(set(output_dirs)) != len(output_dirs):
        raise InvalidInputError("Every job in a batch needs its own output directory")

    if installation is None:
        installation = HomerInstallation.detect()

    logger = logging.getLogger(__name__)
    logger.info(f"Running {len(jobs)} HOMER job(s) with n_jobs={n_jobs}")

    return Parallel(n_jobs=n_jobs, prefer="threads")(
        delayed(find_motifs_genome)(regions, options, installation, verbose) for regions, options in jobs
    )
