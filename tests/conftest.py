"""
Pytest configuration and common fixtures for homerpy tests.
"""
import os
import stat
import tempfile
from pathlib import Path

import pandas as pd
import pytest

KNOWN_HEADER = (
    "Motif Name\tConsensus\tP-value\tLog P-value\tq-value (Benjamini)\t"
    "# of Target Sequences with Motif(of 1000)\t% of Target Sequences with Motif\t"
    "# of Background Sequences with Motif(of 48000)\t% of Background Sequences with Motif"
)

KNOWN_ROWS = [
    "PU.1(ETS)/ThioMac-PU.1-ChIP-Seq(GSE21512)/Homer\tAGAGGAAGTG\t1e-120\t-2.765e+02\t0.0000\t412.0\t41.20%\t5280.3\t11.00%",
    "CTCF(Zf)/CD4+-CTCF-ChIP-Seq(Barski_et_al.)/Homer\tAYAGTGCCMYCTRGTGGCCA\t1e-8\t-1.842e+01\t0.0012\t88.0\t8.80%\t2400.1\t5.00%",
]

DENOVO_CONSENSUS = ["TCGCATTG", "ATGACTCA", "GGAAGTGAAA"]

INSTANCES_TEXT = (
    "PositionID\tOffset\tSequence\tMotif Name\tStrand\tMotifScore\n"
    "peak_1\t-12\tTCGCATTG\t1-TCGCATTG\t+\t9.51\n"
    "peak_2\t33\tCAATGCGA\t1-TCGCATTG\t-\t8.02\n"
    "peak_2\t-80\tATGACTCA\t2-ATGACTCA\t+\t7.77\n"
)

_ROWS = {
    "A": "0.970\t0.010\t0.010\t0.010",
    "C": "0.010\t0.970\t0.010\t0.010",
    "G": "0.010\t0.010\t0.970\t0.010",
    "T": "0.010\t0.010\t0.010\t0.970",
}


def motif_block(consensus, name, threshold=6.5, log_p=-120.5, statistics="T:300.0(30.00%),B:1200.0(2.50%),P:1e-52"):
    """Text of one HOMER motif block whose rows follow the consensus."""
    header = f">{consensus}\t{name}\t{threshold}\t{log_p}\t0\t{statistics}\n"
    return header + "".join(_ROWS[base] + "\n" for base in consensus)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def regions():
    """Three valid target regions."""
    return pd.DataFrame(
        {
            "chrom": ["chr1", "chr1", "chr2"],
            "start": [100, 5000, 200],
            "end": [300, 5200, 400],
            "name": ["peak_1", "peak_2", "peak_3"],
            "score": [12.5, 8.0, 3.1],
        }
    )


def write_result_dir(root: Path) -> Path:
    """Populate ``root`` like a finished HOMER run (2 known, 3 de novo motifs)."""
    root.mkdir(parents=True, exist_ok=True)
    (root / "knownResults.txt").write_text(KNOWN_HEADER + "\n" + "\n".join(KNOWN_ROWS) + "\n")

    known_dir = root / "knownResults"
    known_dir.mkdir(exist_ok=True)
    (known_dir / "known1.motif").write_text(
        motif_block("AGAGGAAGTG", "PU.1(ETS)/ThioMac-PU.1-ChIP-Seq(GSE21512)/Homer", threshold=6.668)
    )
    (known_dir / "known1.logo.svg").write_text("<svg></svg>")

    blocks = [
        motif_block(consensus, f"{rank}-{consensus},BestGuess:Motif{rank}(0.9{rank})")
        for rank, consensus in enumerate(DENOVO_CONSENSUS, start=1)
    ]
    (root / "homerMotifs.all.motifs").write_text("".join(blocks))

    (root / "knownResults.html").write_text("<html></html>")
    (root / "homerResults.html").write_text("<html></html>")
    return root


@pytest.fixture
def result_dir(temp_dir):
    """A HOMER output directory with known and de novo results."""
    return write_result_dir(temp_dir / "homer_out")


def _write_script(path: Path, body: str) -> Path:
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def fake_homer(temp_dir, monkeypatch):
    """Put a stand-in ``findMotifsGenome.pl`` on PATH.

    The script logs its arguments, copies a canned result directory into the
    requested output path, and prints an instance table for ``-find``.
    """
    bin_dir = temp_dir / "homer_bin"
    bin_dir.mkdir()
    template = write_result_dir(temp_dir / "template")
    instances = temp_dir / "canned_instances.txt"
    instances.write_text(INSTANCES_TEXT)
    log = temp_dir / "calls.log"

    _write_script(
        bin_dir / "findMotifsGenome.pl",
        f'echo "$@" >> "{log}"\n'
        f'cp "$1" "{temp_dir}/last_peaks.bed"\n'
        'case " $* " in\n'
        f'  *" -find "*) cat "{instances}"; exit 0;;\n'
        "esac\n"
        'mkdir -p "$3"\n'
        f'cp -R "{template}/." "$3/"\n'
        'echo "Scanning peaks"\n'
        'echo "Finding motifs" >&2\n',
    )
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")

    class FakeHomer:
        pass

    fake = FakeHomer()
    fake.bin_dir = bin_dir
    fake.log = log
    fake.peaks = temp_dir / "last_peaks.bed"
    return fake


@pytest.fixture
def failing_homer(temp_dir):
    """A ``findMotifsGenome.pl`` that reports an error and exits non-zero."""
    bin_dir = temp_dir / "broken_bin"
    bin_dir.mkdir()
    _write_script(bin_dir / "findMotifsGenome.pl", 'echo "Genome hg99 not found" >&2\nexit 3\n')
    return bin_dir
