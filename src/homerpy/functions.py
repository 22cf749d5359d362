import numpy as np

NUCLEOTIDES = ("A", "C", "G", "T")

# HOMER prints a degenerate code when the pair of bases covers most of the column.
_IUPAC_PAIRS = {
    frozenset("AC"): "M",
    frozenset("AG"): "R",
    frozenset("AT"): "W",
    frozenset("CG"): "S",
    frozenset("CT"): "Y",
    frozenset("GT"): "K",
}
_IUPAC_TRIPLES = {
    frozenset("ACG"): "V",
    frozenset("ACT"): "H",
    frozenset("AGT"): "D",
    frozenset("CGT"): "B",
}


def pfm_to_pwm(pfm, background=0.25):
    """Convert a (length, 4) Position Frequency Matrix to log-odds weights."""

    pwm = np.log((pfm + 0.0001) / background)
    return pwm


def normalize_rows(matrix):
    """Scale every row to sum to one."""
    row_sums = matrix.sum(axis=1, keepdims=True)
    row_sums[row_sums == 0] = 1.0
    return matrix / row_sums


def consensus_from_pfm(pfm):
    """Derive an IUPAC consensus from a (length, 4) frequency matrix."""
    letters = []
    for row in pfm:
        order = np.argsort(row)[::-1]
        top = row[order]
        if top[0] >= 0.6:
            letters.append(NUCLEOTIDES[order[0]])
        elif top[0] + top[1] >= 0.75:
            letters.append(_IUPAC_PAIRS[frozenset(NUCLEOTIDES[i] for i in order[:2])])
        elif top[0] + top[1] + top[2] >= 0.9:
            letters.append(_IUPAC_TRIPLES[frozenset(NUCLEOTIDES[i] for i in order[:3])])
        else:
            letters.append("N")
    return "".join(letters)


def max_log_odds(pfm, background=0.25):
    """Return the best achievable log-odds score of a frequency matrix."""
    return float(pfm_to_pwm(pfm, background).max(axis=1).sum())


def default_threshold(pfm, fraction=0.75):
    """Detection threshold used when none is given: a fraction of the best score."""
    return fraction * max_log_odds(pfm)


def reverse_complement_pfm(pfm):
    """Reverse complement a (length, 4) matrix; columns are ordered A, C, G, T."""
    return pfm[::-1, ::-1].copy()
