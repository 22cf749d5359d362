from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from homerpy.errors import (
    InvalidInputError,
    MalformedFieldError,
    MalformedMotifBlockError,
    ResultFileNotFoundError,
    SchemaMismatchError,
)
from homerpy.functions import NUCLEOTIDES, consensus_from_pfm, default_threshold
from homerpy.models import (
    ROW_SUM_TOLERANCE,
    DenovoMotifResult,
    HomerMotif,
    KnownMotifResult,
    MotifInstance,
    PositionWeightMatrix,
)
from homerpy.regions import REQUIRED_COLUMNS, validate_regions
from homerpy.results import MotifTable

PathRef = Union[str, Path]

KNOWN_RESULTS_FILE = "knownResults.txt"
KNOWN_MOTIF_DIR = "knownResults"
DENOVO_RESULTS_FILE = "homerMotifs.all.motifs"

KNOWN_COLUMNS = (
    "Motif Name",
    "Consensus",
    "P-value",
    "Log P-value",
    "q-value (Benjamini)",
    "# of Target Sequences with Motif",
    "% of Target Sequences with Motif",
    "# of Background Sequences with Motif",
    "% of Background Sequences with Motif",
)

INSTANCE_COLUMNS = ("PositionID", "Offset", "Sequence", "Motif Name", "Strand", "MotifScore")

BED_COLUMNS = ("name", "score", "strand")

_STATS_PATTERN = re.compile(
    r"T:(?P<target_count>[^(,]+)\((?P<target_percent>[^%)]+)%\),"
    r"B:(?P<background_count>[^(,]+)\((?P<background_percent>[^%)]+)%\),"
    r"P:(?P<p_value>[^,\s]+)"
)
_TOTAL_PATTERN = re.compile(r"\(of\s+(\d+)\)")


def _require_file(path: PathRef) -> Path:
    path = Path(path)
    if not path.is_file():
        raise ResultFileNotFoundError(path)
    return path


def _resolve(path: PathRef, default_name: str) -> Path:
    """Accept either a HOMER output directory or the result file itself."""
    path = Path(path)
    if path.is_dir():
        path = path / default_name
    return _require_file(path)


def _parse_float(value: str, path: Path, line: int, column: str) -> float:
    text = value.strip().rstrip("%")
    try:
        return float(text)
    except ValueError:
        raise MalformedFieldError(path, line, column, value) from None


def _parse_int(value: str, path: Path, line: int, column: str) -> int:
    number = _parse_float(value, path, line, column)
    if number != int(number):
        raise MalformedFieldError(path, line, column, value)
    return int(number)


# ---------------------------------------------------------------------------
# Region files
# ---------------------------------------------------------------------------


def write_peak_file(regions: pd.DataFrame, path: PathRef) -> None:
    """Write regions as a BED6-like file HOMER accepts as a peak file.

    Columns are ``chrom, start, end, name, score, strand`` followed by any
    remaining extra columns. The header line starts with ``#`` so HOMER treats
    it as a comment.
    """
    df = validate_regions(regions)

    if "name" not in df.columns:
        df["name"] = [f"region_{i + 1}" for i in range(len(df))]
    if "score" not in df.columns:
        df["score"] = 0
    if "strand" not in df.columns:
        df["strand"] = "+"
    df["strand"] = df["strand"].fillna("+").replace({".": "+"})

    ordered = list(REQUIRED_COLUMNS) + list(BED_COLUMNS)
    extras = [column for column in df.columns if column not in ordered]
    df = df[ordered + extras]

    with open(path, "w") as out:
        out.write("#" + "\t".join(str(column) for column in df.columns) + "\n")
        df.to_csv(out, sep="\t", header=False, index=False)


def read_regions(path: PathRef) -> pd.DataFrame:
    """Read a BED file (optionally with a ``#`` header) into a region frame."""
    path = _require_file(path)

    header = None
    with open(path) as handle:
        first = handle.readline()
    if first.startswith("#"):
        header = [name.strip() for name in first.lstrip("#").rstrip("\n").split("\t")]

    df = pd.read_csv(path, sep="\t", header=None, skiprows=0 if header is None else 1, dtype={0: str})
    if header is not None and len(header) == df.shape[1] and tuple(header[:3]) == REQUIRED_COLUMNS:
        df.columns = header
    else:
        names = list(REQUIRED_COLUMNS) + list(BED_COLUMNS)
        extra = [f"extra_{i}" for i in range(max(0, df.shape[1] - len(names)))]
        df.columns = (names + extra)[: df.shape[1]]
    return validate_regions(df)


# ---------------------------------------------------------------------------
# Motif files
# ---------------------------------------------------------------------------


def _parse_motif_header(line: str, path: Path, line_no: int) -> Dict[str, object]:
    fields = line[1:].rstrip("\n").split("\t")
    if len(fields) < 3:
        raise MalformedMotifBlockError(
            f"{path}:{line_no}: motif header needs at least consensus, name and threshold, got {len(fields)} field(s)"
        )
    consensus = fields[0].strip()
    if not consensus:
        raise MalformedMotifBlockError(f"{path}:{line_no}: motif header has an empty consensus")
    log_p_value = None
    if len(fields) > 3 and fields[3].strip():
        log_p_value = _parse_float(fields[3], path, line_no, "log p-value")
    return {
        "consensus": consensus,
        "name": fields[1].strip(),
        "threshold": _parse_float(fields[2], path, line_no, "log odds threshold"),
        "log_p_value": log_p_value,
        "statistics": fields[5].strip() if len(fields) > 5 else "",
        "line": line_no,
    }


def _finish_block(header: Dict[str, object], rows: List[List[float]], path: Path) -> HomerMotif:
    consensus = header["consensus"]
    line_no = header["line"]
    declared = len(consensus)
    if len(rows) != declared:
        raise MalformedMotifBlockError(
            f"{path}:{line_no}: motif '{consensus}' declares length {declared} but has {len(rows)} matrix row(s)"
        )

    matrix = np.array(rows, dtype=np.float64)
    if matrix.min() < 0.0 or matrix.max() > 1.0 + ROW_SUM_TOLERANCE:
        raise MalformedMotifBlockError(f"{path}:{line_no}: motif '{consensus}' has frequencies outside [0, 1]")
    sums = matrix.sum(axis=1)
    deviation = np.abs(sums - 1.0)
    if np.any(deviation > ROW_SUM_TOLERANCE):
        bad = int(np.argmax(deviation))
        raise MalformedMotifBlockError(
            f"{path}:{line_no + bad + 1}: row {bad + 1} of motif '{consensus}' sums to {sums[bad]:.4f}, expected 1.0"
        )

    return HomerMotif(
        consensus=consensus,
        name=header["name"],
        threshold=header["threshold"],
        pwm=PositionWeightMatrix(matrix),
        log_p_value=header["log_p_value"],
        statistics=header["statistics"],
    )


def _iter_motif_blocks(path: Path) -> Iterator[Tuple[int, HomerMotif]]:
    """Yield (header line number, motif) pairs in file order."""

    header: Optional[Dict[str, object]] = None
    rows: List[List[float]] = []

    with open(path) as handle:
        for line_no, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            if line.startswith(">"):
                if header is not None:
                    yield header["line"], _finish_block(header, rows, path)
                header = _parse_motif_header(line, path, line_no)
                rows = []
                continue
            if header is None:
                raise MalformedMotifBlockError(f"{path}:{line_no}: matrix row before any motif header")
            values = line.split()
            if len(values) != 4:
                raise MalformedMotifBlockError(f"{path}:{line_no}: expected 4 frequencies, got {len(values)}")
            rows.append([_parse_float(v, path, line_no, nuc) for v, nuc in zip(values, NUCLEOTIDES)])

    if header is not None:
        yield header["line"], _finish_block(header, rows, path)


def iter_motifs(path: PathRef) -> Iterator[HomerMotif]:
    """Yield the motif blocks of a HOMER motif file in file order."""
    path = _require_file(path)
    for _, motif in _iter_motif_blocks(path):
        yield motif


def read_motifs(path: PathRef) -> List[HomerMotif]:
    """Read every motif block of a HOMER motif file."""
    return list(iter_motifs(path))


def read_motif(path: PathRef, index: int = 0) -> HomerMotif:
    """Read a specific motif from a HOMER motif file."""
    motifs = read_motifs(path)
    if not motifs:
        raise MalformedMotifBlockError(f"No motifs found in {path}")
    if not -len(motifs) <= index < len(motifs):
        raise IndexError(f"Motif index {index} out of range. File contains {len(motifs)} motifs.")
    return motifs[index]


def write_motif(
    pwm: Union[PositionWeightMatrix, np.ndarray],
    path: PathRef,
    name: str,
    *,
    append: bool,
    consensus: Optional[str] = None,
    threshold: Optional[float] = None,
    log_p_value: float = 0.0,
    statistics: str = "",
) -> None:
    """Write one motif block in HOMER's ``.motif`` format.

    ``append`` has no default: ``append=False`` truncates the file and
    ``append=True`` adds an independent block after whatever it already
    holds. Missing consensus and threshold are derived from the matrix.
    """
    if not isinstance(pwm, PositionWeightMatrix):
        pwm = PositionWeightMatrix(pwm)
    if consensus is None:
        consensus = consensus_from_pfm(pwm.matrix)
    if len(consensus) != pwm.length:
        raise InvalidInputError(f"Consensus '{consensus}' has length {len(consensus)}, matrix has {pwm.length} rows")
    if threshold is None:
        threshold = default_threshold(pwm.matrix)

    header = [consensus, name, f"{threshold:.6f}", f"{log_p_value:.6f}", "0"]
    if statistics:
        header.append(statistics)

    with open(path, "a" if append else "w") as out:
        out.write(">" + "\t".join(header) + "\n")
        np.savetxt(out, pwm.matrix, fmt="%.6f", delimiter="\t")


def write_motifs(motifs: Iterable[HomerMotif], path: PathRef, *, append: bool) -> None:
    """Write several motifs to one file, preserving their order."""
    for i, motif in enumerate(motifs):
        write_motif(
            motif.pwm,
            path,
            name=motif.name,
            consensus=motif.consensus,
            threshold=motif.threshold,
            log_p_value=motif.log_p_value or 0.0,
            statistics=motif.statistics,
            append=append or i > 0,
        )


# ---------------------------------------------------------------------------
# Result tables
# ---------------------------------------------------------------------------


def _check_known_header(fields: List[str], path: Path) -> Tuple[Optional[int], Optional[int]]:
    if len(fields) != len(KNOWN_COLUMNS):
        raise SchemaMismatchError(f"{path}:1: expected {len(KNOWN_COLUMNS)} columns, header has {len(fields)}")
    for found, expected in zip(fields, KNOWN_COLUMNS):
        if not found.strip().startswith(expected):
            raise SchemaMismatchError(f"{path}:1: expected column '{expected}', found '{found}'")

    totals = []
    for column in (fields[5], fields[7]):
        match = _TOTAL_PATTERN.search(column)
        totals.append(int(match.group(1)) if match else None)
    return totals[0], totals[1]


def read_known_results(path: PathRef, read_matrices: bool = True) -> MotifTable[KnownMotifResult]:
    """Parse ``knownResults.txt``.

    ``path`` is the HOMER output directory or the file itself. Matrices are
    resolved from ``knownResults/known{rank}.motif`` next to the table; a
    missing matrix file, or one holding a differently named motif, leaves the
    row's ``pwm`` as ``None``.
    """
    path = _resolve(path, KNOWN_RESULTS_FILE)
    motif_dir = path.parent / KNOWN_MOTIF_DIR
    logger = logging.getLogger(__name__)

    records = []
    with open(path) as handle:
        header = handle.readline().rstrip("\n").split("\t")
        target_total, background_total = _check_known_header(header, path)

        for line_no, line in enumerate(handle, start=2):
            if not line.strip():
                continue
            fields = line.rstrip("\n").split("\t")
            if len(fields) != len(KNOWN_COLUMNS):
                raise SchemaMismatchError(f"{path}:{line_no}: expected {len(KNOWN_COLUMNS)} columns, got {len(fields)}")

            rank = len(records) + 1
            pwm = None
            threshold = None
            if read_matrices:
                motif_path = motif_dir / f"known{rank}.motif"
                if motif_path.is_file():
                    motif = read_motif(motif_path)
                    if motif.name == fields[0]:
                        pwm, threshold = motif.pwm, motif.threshold
                    else:
                        logger.debug(f"{motif_path} holds {motif.name!r}, not {fields[0]!r}; matrix left unset")
                else:
                    logger.debug(f"No matrix file for known motif {rank}: {motif_path}")

            records.append(
                KnownMotifResult(
                    rank=rank,
                    motif_name=fields[0],
                    consensus=fields[1],
                    p_value=_parse_float(fields[2], path, line_no, KNOWN_COLUMNS[2]),
                    log_p_value=_parse_float(fields[3], path, line_no, KNOWN_COLUMNS[3]),
                    q_value=_parse_float(fields[4], path, line_no, KNOWN_COLUMNS[4]),
                    target_count=_parse_float(fields[5], path, line_no, KNOWN_COLUMNS[5]),
                    target_percent=_parse_float(fields[6], path, line_no, KNOWN_COLUMNS[6]),
                    background_count=_parse_float(fields[7], path, line_no, KNOWN_COLUMNS[7]),
                    background_percent=_parse_float(fields[8], path, line_no, KNOWN_COLUMNS[8]),
                    target_total=target_total,
                    background_total=background_total,
                    threshold=threshold,
                    pwm=pwm,
                )
            )

    logger.info(f"Read {len(records)} known motif(s) from {path}")
    return MotifTable(records, kind="known", source=str(path))


def _parse_statistics(statistics: str, path: Path, line: int) -> Dict[str, Optional[float]]:
    parsed: Dict[str, Optional[float]] = {
        "target_count": None,
        "target_percent": None,
        "background_count": None,
        "background_percent": None,
        "p_value": None,
    }
    match = _STATS_PATTERN.search(statistics)
    if match is None:
        return parsed
    for key, value in match.groupdict().items():
        parsed[key] = _parse_float(value, path, line, key)
    return parsed


def read_denovo_results(path: PathRef) -> MotifTable[DenovoMotifResult]:
    """Parse a HOMER de novo motif file, by default ``homerMotifs.all.motifs``.

    Rows keep file order, which is HOMER's enrichment rank order, and are
    named ``"{rank}-{consensus}"``.
    """
    path = _resolve(path, DENOVO_RESULTS_FILE)

    records = []
    for rank, (line_no, motif) in enumerate(_iter_motif_blocks(path), start=1):
        homer_name, _, annotation = motif.name.partition(",")
        best_guess = None
        if annotation.startswith("BestGuess:"):
            best_guess = annotation[len("BestGuess:") :]
        stats = _parse_statistics(motif.statistics, path, line_no)

        records.append(
            DenovoMotifResult(
                rank=rank,
                name=f"{rank}-{motif.consensus}",
                consensus=motif.consensus,
                threshold=motif.threshold,
                pwm=motif.pwm,
                log_p_value=motif.log_p_value,
                homer_name=homer_name,
                best_guess=best_guess,
                **stats,
            )
        )

    logger = logging.getLogger(__name__)
    logger.info(f"Read {len(records)} de novo motif(s) from {path}")
    return MotifTable(records, kind="denovo", source=str(path))


def read_motif_instances(path: PathRef) -> MotifTable[MotifInstance]:
    """Parse the tab-separated output of ``findMotifsGenome.pl -find``."""
    path = _require_file(path)

    records = []
    with open(path) as handle:
        header = handle.readline().rstrip("\n").split("\t")
        if tuple(column.strip() for column in header) != INSTANCE_COLUMNS:
            raise SchemaMismatchError(f"{path}:1: expected columns {', '.join(INSTANCE_COLUMNS)}, found {header}")

        for line_no, line in enumerate(handle, start=2):
            if not line.strip():
                continue
            fields = line.rstrip("\n").split("\t")
            if len(fields) != len(INSTANCE_COLUMNS):
                raise SchemaMismatchError(
                    f"{path}:{line_no}: expected {len(INSTANCE_COLUMNS)} columns, got {len(fields)}"
                )
            records.append(
                MotifInstance(
                    region_id=fields[0],
                    offset=_parse_int(fields[1], path, line_no, "Offset"),
                    sequence=fields[2],
                    motif_name=fields[3],
                    strand=fields[4],
                    score=_parse_float(fields[5], path, line_no, "MotifScore"),
                )
            )

    logger = logging.getLogger(__name__)
    logger.info(f"Read {len(records)} motif instance(s) from {path}")
    return MotifTable(records, kind="instances", source=str(path))


class ResultRegistry:
    """Registry of result readers keyed by result kind."""

    def __init__(self):
        """Initialize registry state."""
        self._readers: Dict[str, object] = {}

    def register(self, key: str):
        """Decorator to register a reader function."""

        def decorator(reader):
            """Store a callable in the registry."""
            self._readers[key] = reader
            return reader

        return decorator

    def get(self, key: str):
        """Get reader by result kind."""
        if key not in self._readers:
            available = list(self._readers.keys())
            raise ValueError(f"Result kind '{key}' not found. Available: {available}")
        return self._readers[key]


registry = ResultRegistry()
registry.register("known")(read_known_results)
registry.register("denovo")(read_denovo_results)
registry.register("instances")(read_motif_instances)


def read_results(path: PathRef, kind: str, **kwargs) -> MotifTable:
    """Read a HOMER result of the given kind (``known``, ``denovo`` or ``instances``)."""
    reader = registry.get(kind)
    return reader(path, **kwargs)

