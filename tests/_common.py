import random

import numpy as np

from ggfusion.ligation import LigationData, LigationMatrix
from ggfusion.sequtil import allOverhangs, countGC, hammingDistance, rc
from ggfusion.thermo import PrimerFeatures


def makeLigationMatrix(overhang_length):
    """Deterministic synthetic ligation counts.

    Correct (Watson-Crick) pairs ligate 500-900 times depending on GC
    content, single mismatches 5-15 times and everything else never.
    """
    overhangs = allOverhangs(overhang_length)
    n = len(overhangs)
    freqs = np.zeros((n, n), dtype=np.float64)
    for i, oh in enumerate(overhangs):
        partner = rc(oh)
        for j, other in enumerate(overhangs):
            if other == partner:
                freqs[i, j] = 500 + 100 * countGC(oh)
            elif hammingDistance(other, partner) == 1:
                freqs[i, j] = 5 + 5 * ((i + j) % 3)
    return LigationMatrix(overhang_length, freqs)


MATRIX_4 = makeLigationMatrix(4)
MATRIX_3 = makeLigationMatrix(3)

LIGATION_DATA = LigationData({
    'BsaI-HFv2': MATRIX_4,
    'BbsI-HF': MATRIX_4,
    'BsmBI-v2': MATRIX_4,
    'Esp3I': MATRIX_4,
    'SapI': MATRIX_3,
}, {'source': 'synthetic test data'})

# BsaI only, to exercise the missing-matrix fallback for other enzymes
BSAI_ONLY_DATA = LigationData({'BsaI-HFv2': MATRIX_4})


def randomSequence(length=1000, seed=1234):
    rng = random.Random(seed)
    return ''.join(rng.choice('ACGT') for _ in range(length))


SEQ_1000 = randomSequence(1000)
SEQ_3000 = randomSequence(3000, seed=99)


def stubOracle(seq):
    """Primer-quality oracle with ideal thermodynamics for any window."""
    return PrimerFeatures(tm=58.0, hairpin_dg=-1.0, homodimer_dg=-4.0,
                          terminal_dg=-8.0)


def failingOracle(seq):
    raise RuntimeError('thermodynamic model unavailable')
