"""
Data Models Module
==================

Immutable records produced by the result parsers and consumed by the
invocation builder.

Key Features:
- Frozen dataclasses for every record type
- A validated :class:`PositionWeightMatrix` value nested inside motif records
- :class:`FindMotifsOptions` describing one ``findMotifsGenome.pl`` run
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from dataclasses import field as dc_field
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
import pandas as pd

from homerpy.errors import InvalidInputError
from homerpy.functions import (
    NUCLEOTIDES,
    consensus_from_pfm,
    normalize_rows,
    reverse_complement_pfm,
)

# HOMER writes three decimals, so a row may be off by a few thousandths.
ROW_SUM_TOLERANCE = 0.01

HOMER_DEFAULT_LENGTHS = (8, 10, 12)
HOMER_DEFAULT_SIZE = 200
HOMER_DEFAULT_OPTIMIZE_COUNT = 25

BackgroundRef = Union[None, str, Path, pd.DataFrame]


@dataclass(frozen=True, eq=False)
class PositionWeightMatrix:
    """Per-position nucleotide frequencies of a motif.

    Attributes
    ----------
    matrix : np.ndarray
        Read-only ``(length, 4)`` array; columns are A, C, G, T and every
        row sums to one.
    """

    matrix: np.ndarray

    def __post_init__(self):
        arr = np.array(self.matrix, dtype=np.float64)
        if arr.ndim != 2 or arr.shape[1] != 4:
            raise InvalidInputError(f"Matrix must have shape (length, 4), got {arr.shape}")
        if arr.shape[0] == 0:
            raise InvalidInputError("Matrix must have at least one position")
        if not np.all(np.isfinite(arr)) or arr.min() < 0.0 or arr.max() > 1.0 + ROW_SUM_TOLERANCE:
            raise InvalidInputError("Matrix values must lie in [0, 1]")
        deviation = np.abs(arr.sum(axis=1) - 1.0)
        if np.any(deviation > ROW_SUM_TOLERANCE):
            bad = int(np.argmax(deviation))
            raise InvalidInputError(f"Row {bad + 1} sums to {arr[bad].sum():.6f}, expected 1.0")
        arr = normalize_rows(arr)
        arr.setflags(write=False)
        object.__setattr__(self, "matrix", arr)

    @property
    def length(self) -> int:
        return int(self.matrix.shape[0])

    def __eq__(self, other):
        if not isinstance(other, PositionWeightMatrix):
            return NotImplemented
        return self.matrix.shape == other.matrix.shape and bool(np.array_equal(self.matrix, other.matrix))

    def __hash__(self):
        return hash(self.matrix.tobytes())

    def __repr__(self):
        return f"PositionWeightMatrix(length={self.length}, consensus={self.consensus()!r})"

    def allclose(self, other: "PositionWeightMatrix", atol: float = 1e-6) -> bool:
        """Return True if both matrices have equal shape and values within ``atol``."""
        return self.matrix.shape == other.matrix.shape and bool(np.allclose(self.matrix, other.matrix, atol=atol))

    def is_normalized(self, atol: float = 1e-6) -> bool:
        return bool(np.all(np.abs(self.matrix.sum(axis=1) - 1.0) <= atol))

    def consensus(self) -> str:
        return consensus_from_pfm(self.matrix)

    def reverse_complement(self) -> "PositionWeightMatrix":
        return PositionWeightMatrix(reverse_complement_pfm(self.matrix))

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.matrix, columns=list(NUCLEOTIDES), index=pd.RangeIndex(1, self.length + 1, name="position"))


@dataclass(frozen=True)
class HomerMotif:
    """One block of a HOMER ``.motif`` file."""

    consensus: str
    name: str
    threshold: float
    pwm: PositionWeightMatrix
    log_p_value: Optional[float] = None
    statistics: str = ""

    @property
    def length(self) -> int:
        return self.pwm.length


@dataclass(frozen=True)
class KnownMotifResult:
    """One row of ``knownResults.txt``."""

    rank: int
    motif_name: str
    consensus: str
    p_value: float
    log_p_value: float
    q_value: float
    target_count: float
    target_percent: float
    background_count: float
    background_percent: float
    target_total: Optional[int] = None
    background_total: Optional[int] = None
    threshold: Optional[float] = None
    pwm: Optional[PositionWeightMatrix] = None

    @property
    def name(self) -> str:
        return self.motif_name

    @property
    def short_name(self) -> str:
        """Motif name without the ``/source/database`` suffix HOMER appends."""
        return self.motif_name.split("/")[0]


@dataclass(frozen=True)
class DenovoMotifResult:
    """One motif block of a de novo result file, ranked by order of appearance."""

    rank: int
    name: str
    consensus: str
    threshold: float
    pwm: PositionWeightMatrix
    log_p_value: Optional[float] = None
    p_value: Optional[float] = None
    target_count: Optional[float] = None
    target_percent: Optional[float] = None
    background_count: Optional[float] = None
    background_percent: Optional[float] = None
    homer_name: str = ""
    best_guess: Optional[str] = None

    @property
    def length(self) -> int:
        return self.pwm.length


@dataclass(frozen=True)
class MotifInstance:
    """One motif occurrence reported by ``findMotifsGenome.pl -find``."""

    region_id: str
    offset: int
    sequence: str
    motif_name: str
    strand: str
    score: float

    @property
    def name(self) -> str:
        return self.motif_name


@dataclass(frozen=True)
class FindMotifsOptions:
    """Configuration of a single ``findMotifsGenome.pl`` run.

    Arguments left at HOMER's own defaults are not passed on the command line.

    Attributes
    ----------
    output_dir : str
        Directory HOMER writes its results into.
    genome : str
        HOMER genome identifier (``hg38``, ``mm10``) or a FASTA path.
    motif_length : tuple of int
        Motif lengths searched de novo (``-len``).
    scan_size : int or "given"
        Region size used for the search (``-size``).
    optimize_count : int
        Number of motifs optimised per length (``-S``).
    background : None, path or DataFrame
        ``None`` lets HOMER pick GC-matched genomic background; otherwise a
        region set or an existing peak file (``-bg``).
    local_background : int, optional
        Number of local background regions per target region (``-local``).
    only_known, only_denovo : bool
        Restrict the search (``-nomotif`` / ``-noknown``). When both are set
        ``only_known`` takes precedence.
    fdr_num : int
        Randomisations used to estimate FDR (``-fdr``); 0 disables.
    cores : int
        Threads used by HOMER (``-p``); passed through unchanged.
    cache : int, optional
        Memory cache size in MB (``-cache``).
    overwrite : bool
        Allow writing into a non-empty output directory.
    keep_minimal : bool
        Remove HTML reports and images after the run.
    mask : bool
        Use the repeat-masked genome (``-mask``).
    extra_args : tuple of str
        Additional arguments appended verbatim.
    """

    output_dir: str
    genome: str
    motif_length: Tuple[int, ...] = HOMER_DEFAULT_LENGTHS
    scan_size: Union[int, str] = HOMER_DEFAULT_SIZE
    optimize_count: int = HOMER_DEFAULT_OPTIMIZE_COUNT
    background: BackgroundRef = dc_field(default=None, compare=False)
    local_background: Optional[int] = None
    only_known: bool = False
    only_denovo: bool = False
    fdr_num: int = 0
    cores: int = 1
    cache: Optional[int] = None
    overwrite: bool = False
    keep_minimal: bool = False
    mask: bool = False
    extra_args: Tuple[str, ...] = ()

    def __post_init__(self):
        if not str(self.output_dir):
            raise InvalidInputError("output_dir must not be empty")
        if not self.genome:
            raise InvalidInputError("genome must not be empty")

        lengths = self.motif_length
        if isinstance(lengths, (int, np.integer)):
            lengths = (lengths,)
        lengths = tuple(int(length) for length in lengths)
        if not lengths or any(length <= 0 for length in lengths):
            raise InvalidInputError(f"motif_length must be positive, got {self.motif_length!r}")
        object.__setattr__(self, "motif_length", lengths)
        object.__setattr__(self, "output_dir", str(self.output_dir))
        object.__setattr__(self, "extra_args", tuple(str(arg) for arg in self.extra_args))

        if isinstance(self.scan_size, str):
            if self.scan_size != "given":
                raise InvalidInputError(f"scan_size must be an integer or 'given', got {self.scan_size!r}")
        elif self.scan_size <= 0:
            raise InvalidInputError(f"scan_size must be positive, got {self.scan_size}")

        for attr in ("optimize_count", "cores"):
            if getattr(self, attr) < 1:
                raise InvalidInputError(f"{attr} must be at least 1, got {getattr(self, attr)}")
        if self.fdr_num < 0:
            raise InvalidInputError(f"fdr_num must not be negative, got {self.fdr_num}")
        if self.cache is not None and self.cache <= 0:
            raise InvalidInputError(f"cache must be positive, got {self.cache}")
        if self.local_background is not None and self.local_background <= 0:
            raise InvalidInputError(f"local_background must be positive, got {self.local_background}")

    @property
    def search_known(self) -> bool:
        return not self.only_denovo or self.only_known

    @property
    def search_denovo(self) -> bool:
        return not self.only_known

    def resolved_search_flags(self) -> Tuple[bool, bool]:
        """Return ``(search_known, search_denovo)`` after resolving conflicting flags."""
        if self.only_known and self.only_denovo:
            logger = logging.getLogger(__name__)
            logger.warning("Both only_known and only_denovo are set; running the known motif search only")
        return self.search_known, self.search_denovo
