"""
homerpy
==================

This package is a thin interface layer over the HOMER motif enrichment
suite.  It builds ``findMotifsGenome.pl`` invocations from Python objects,
runs them, and reads HOMER's result files back into tables of immutable
records.  No motif finding happens here: HOMER must be installed, with its
``bin/`` directory on ``PATH`` and the genomes you use configured.

The top level modules expose the following key components:

``execute``
    :class:`HomerInstallation` (located executables) and the functions that
    assemble argument vectors and run HOMER.

``io``
    Readers for ``knownResults.txt``, de novo motif files and ``-find``
    instance tables, and the ``.motif`` writer.

``models``
    Record types, :class:`PositionWeightMatrix` and :class:`FindMotifsOptions`.

``results``
    :class:`MotifTable`, the ordered collection every reader returns.

``regions``
    Validation and simulation of region sets held in pandas DataFrames.

``api``
    One-call helpers that run HOMER and load its tables.

``cli``
    A command line interface exposing the above.
"""

from homerpy.api import HomerResults, create_options, find_motifs, load_results, run_find_motifs
from homerpy.errors import (
    AmbiguousKeyError,
    ConflictError,
    ExternalToolError,
    HomerError,
    InvalidInputError,
    MalformedFieldError,
    MalformedMotifBlockError,
    NotFoundError,
    ResultFileNotFoundError,
    SchemaMismatchError,
    ToolNotFoundError,
)
from homerpy.execute import HomerInstallation, find_motif_instances, find_motifs_batch, find_motifs_genome
from homerpy.io import (
    read_denovo_results,
    read_known_results,
    read_motif,
    read_motif_instances,
    read_motifs,
    read_results,
    write_motif,
    write_motifs,
)
from homerpy.models import (
    DenovoMotifResult,
    FindMotifsOptions,
    HomerMotif,
    KnownMotifResult,
    MotifInstance,
    PositionWeightMatrix,
)
from homerpy.regions import regions_from_records, simulate_regions, validate_regions
from homerpy.results import MotifTable

__version__ = "0.1.0"
