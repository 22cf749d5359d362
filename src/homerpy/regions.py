"""Region sets handed to HOMER, carried as pandas DataFrames."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Optional

import numpy as np
import pandas as pd

from homerpy.errors import InvalidInputError

REQUIRED_COLUMNS = ("chrom", "start", "end")


def validate_regions(regions: pd.DataFrame) -> pd.DataFrame:
    """Check a region frame and return a copy with the required columns first.

    Raises :class:`InvalidInputError` when a required column is missing, a
    chromosome is empty, a coordinate is not an integer or ``start >= end``.
    """
    if not isinstance(regions, pd.DataFrame):
        raise InvalidInputError(f"Regions must be a pandas DataFrame, got {type(regions).__name__}")

    missing = [column for column in REQUIRED_COLUMNS if column not in regions.columns]
    if missing:
        raise InvalidInputError(f"Regions are missing required column(s): {', '.join(missing)}")

    df = regions.reset_index(drop=True).copy()

    chrom = df["chrom"].astype("string").str.strip()
    empty = (chrom.isna() | (chrom == "")).fillna(True).astype(bool)
    if empty.any():
        raise InvalidInputError(f"Empty chromosome name in region row(s) {_row_list(empty)}")
    df["chrom"] = chrom.astype(str)

    for column in ("start", "end"):
        values = pd.to_numeric(df[column], errors="coerce")
        bad = values.isna() | (values != np.floor(values))
        if bad.any():
            raise InvalidInputError(f"Non-integer '{column}' in region row(s) {_row_list(bad)}")
        df[column] = values.astype(np.int64)

    negative = df["start"] < 0
    if negative.any():
        raise InvalidInputError(f"Negative start in region row(s) {_row_list(negative)}")
    inverted = df["start"] >= df["end"]
    if inverted.any():
        raise InvalidInputError(f"start >= end in region row(s) {_row_list(inverted)}")

    extras = [column for column in df.columns if column not in REQUIRED_COLUMNS]
    return df[list(REQUIRED_COLUMNS) + extras]


def _row_list(mask: pd.Series, limit: int = 5) -> str:
    rows = [str(i) for i in np.flatnonzero(mask.to_numpy())]
    shown = ", ".join(rows[:limit])
    if len(rows) > limit:
        shown += f", ... ({len(rows)} total)"
    return shown


def regions_from_records(records: Iterable[Any], columns: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """Build and validate a region frame from tuples or mappings."""
    records = list(records)
    if records and isinstance(records[0], Mapping):
        df = pd.DataFrame.from_records(records)
    else:
        names = list(columns) if columns is not None else None
        if names is None and records:
            width = len(records[0])
            names = list(REQUIRED_COLUMNS) + [f"extra_{i}" for i in range(width - len(REQUIRED_COLUMNS))]
        df = pd.DataFrame.from_records(records, columns=names)
    return validate_regions(df)


def simulate_regions(
    num_regions: int,
    chrom_sizes: Dict[str, int],
    width: int = 200,
    seed: int = 127,
) -> pd.DataFrame:
    """Generate random fixed-width regions, e.g. as a background set."""

    if num_regions <= 0:
        raise ValueError(f"num_regions must be positive, got {num_regions}")
    if width <= 0:
        raise ValueError(f"width must be positive, got {width}")

    usable = {chrom: size for chrom, size in chrom_sizes.items() if size > width}
    if not usable:
        raise ValueError(f"No chromosome is longer than the region width {width}")

    rng = np.random.default_rng(seed)
    chroms = np.array(list(usable.keys()))
    sizes = np.array(list(usable.values()), dtype=np.int64)

    picked = rng.choice(len(chroms), size=num_regions, p=sizes / sizes.sum())
    starts = np.array([rng.integers(0, sizes[i] - width) for i in picked], dtype=np.int64)

    df = pd.DataFrame(
        {
            "chrom": chroms[picked],
            "start": starts,
            "end": starts + width,
            "name": [f"sim_{i + 1}" for i in range(num_regions)],
        }
    )
    return validate_regions(df)
