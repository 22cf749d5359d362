"""
results
=======

:class:`MotifTable` is the ordered, read-only collection returned by every
result parser.  Rows are reachable by position and by name.  Name lookups
come in two flavours that must not be confused:

``select``
    Sub-table of every row whose name is among the requested keys.  Absent
    keys are not an error; they simply contribute no rows.

``extract``
    Exactly one row.  Raises :class:`~homerpy.errors.NotFoundError` when the
    name is absent and :class:`~homerpy.errors.AmbiguousKeyError` when it
    matches several rows.
"""

from __future__ import annotations

from dataclasses import fields
from typing import Callable, Generic, Iterable, Iterator, List, Optional, Sequence, TypeVar, Union

import numpy as np
import pandas as pd

from homerpy.errors import AmbiguousKeyError, NotFoundError

R = TypeVar("R")


class MotifTable(Generic[R]):
    """Ordered immutable collection of parsed records."""

    def __init__(self, records: Iterable[R], kind: str = "", source: Optional[str] = None):
        self._records = tuple(records)
        self.kind = kind
        self.source = source

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[R]:
        return iter(self._records)

    def __bool__(self) -> bool:
        return bool(self._records)

    def __eq__(self, other):
        if not isinstance(other, MotifTable):
            return NotImplemented
        return self._records == other._records

    def __repr__(self):
        label = self.kind or "motif"
        return f"MotifTable<{label}>({len(self)} rows)"

    def __getitem__(self, key: Union[int, slice, str, Sequence[str]]):
        """Positional access for integers and slices, selection for names."""
        if isinstance(key, bool):
            raise TypeError("Boolean keys are not supported")
        if isinstance(key, (int, np.integer)):
            return self.row(int(key))
        if isinstance(key, slice):
            return self._derive(self._records[key])
        return self.select(key)

    def _derive(self, records: Iterable[R]) -> "MotifTable[R]":
        return MotifTable(records, kind=self.kind, source=self.source)

    def row(self, index: int) -> R:
        """Return the record at ``index``; negative indices count from the end."""
        try:
            return self._records[index]
        except IndexError:
            raise IndexError(f"Row index {index} out of range for table with {len(self)} rows") from None

    @property
    def names(self) -> List[str]:
        return [record.name for record in self._records]

    def name_at(self, index: int) -> str:
        return self.row(index).name

    def select(self, names: Union[str, Iterable[str]]) -> "MotifTable[R]":
        """Return the rows matching ``names`` in key order; absent names yield nothing."""
        if isinstance(names, str):
            names = [names]
        selected = []
        for name in names:
            selected.extend(record for record in self._records if record.name == name)
        return self._derive(selected)

    def extract(self, name: str) -> R:
        """Return the single row called ``name``."""
        matches = [record for record in self._records if record.name == name]
        if not matches:
            raise NotFoundError(f"No motif named {name!r} in {self!r}")
        if len(matches) > 1:
            raise AmbiguousKeyError(f"{len(matches)} rows named {name!r} in {self!r}; use select() instead")
        return matches[0]

    def filter(self, predicate: Callable[[R], bool]) -> "MotifTable[R]":
        return self._derive(record for record in self._records if predicate(record))

    def to_records(self) -> List[dict]:
        """Shallow field dictionaries; nested matrices stay ``PositionWeightMatrix`` objects."""
        return [{f.name: getattr(record, f.name) for f in fields(record)} for record in self._records]

    def to_frame(self) -> pd.DataFrame:
        """Convert to a DataFrame whose ``pwm`` column holds the matrix objects."""
        if not self._records:
            return pd.DataFrame()
        return pd.DataFrame.from_records(self.to_records())
