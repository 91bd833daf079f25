# Copyright (C) 2014. Ben Pruitt & Nick Conway
# See LICENSE for full GPLv2 license.
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License along
# with this program; if not, write to the Free Software Foundation, Inc.,
# 51 Franklin Street, Fifth Floor, Boston, MA 02110-1301 USA.
"""
ggfusion.primerquality
~~~~~~~~~~~~~~~~~~~~~~

Normalized (0-1) scores for the primer-binding windows on either side of a
junction, and the weighted analysis that combines them.

Range-based scores use a piecewise function: 1.0 inside the optimal band,
a linear decay to 0.7 across the acceptable band and a logistic tail beyond
it. Free-energy scores decay exponentially past a threshold.

"""
import logging
import math
import re

from collections import namedtuple

from .sequtil import countGC, longestRun, normalizeSequence

logger = logging.getLogger(__name__)

MIN_WINDOW_LENGTH = 15
FALLBACK_WINDOW_SCORE = 50

HOMOLOGY_WEIGHTS = {
    'tm': 0.15,
    'gc': 0.10,
    'length': 0.10,
    'gc_clamp': 0.10,
    'homopolymer': 0.05,
    'hairpin': 0.15,
    'homodimer': 0.10,
    'terminal_dg': 0.15,
    'g_quadruplex': 0.10,
}

_G4_RE = re.compile(r'G{3,}[ATGC]{1,7}G{3,}[ATGC]{1,7}G{3,}[ATGC]{1,7}G{3,}')
_GGG_RUN_RE = re.compile(r'GGG+')


def piecewiseLogistic(value, optimal_low, optimal_high, acceptable_low,
                      acceptable_high, steepness=0.5, floor=0.0):
    if optimal_low <= value <= optimal_high:
        return 1.0
    if value < optimal_low:
        if value >= acceptable_low:
            ratio = (value - acceptable_low) / float(optimal_low -
                                                     acceptable_low)
            return 0.7 + 0.3 * ratio
        excess = acceptable_low - value
    else:
        if value <= acceptable_high:
            ratio = (acceptable_high - value) / float(acceptable_high -
                                                      optimal_high)
            return 0.7 + 0.3 * ratio
        excess = value - acceptable_high
    return max(floor, 0.7 / (1 + math.exp(steepness * excess)))


def scoreTm(tm):
    if tm is None or math.isnan(tm):
        return 0.5
    return piecewiseLogistic(tm, 55, 60, 50, 65, steepness=0.5)


def scoreGc(gc):
    """GC content given as a fraction (<= 1) or a percentage."""
    if gc is None or math.isnan(gc):
        return 0.5
    gc_pct = gc * 100 if gc <= 1 else gc
    return piecewiseLogistic(gc_pct, 40, 60, 30, 70, steepness=0.15)


def scoreLength(length):
    return piecewiseLogistic(length, 18, 25, 15, 30, steepness=0.3)


def scoreGcClamp(seq):
    """Score G/C content of the last two 3' bases (one is ideal)."""
    gc_count = countGC(seq[-2:].upper())
    if gc_count == 1:
        return 1.0
    if gc_count == 2:
        return 0.85
    return 0.5


def scoreHomopolymer(seq, max_run=3, penalty_per_base=0.15):
    run = longestRun(seq)
    if run <= max_run:
        return 1.0
    return max(0.3, 1 - (run - max_run) * penalty_per_base)


def scoreHairpin(dg, threshold=-3.0, steepness=0.8):
    if dg >= threshold:
        return 1.0
    return math.exp(-steepness * (threshold - dg))


def scoreHomodimer(dg, threshold=-6.0, steepness=0.5):
    if dg >= threshold:
        return 1.0
    return math.exp(-steepness * (threshold - dg))


def scoreTerminal3DG(dg, optimal_low=-11.0, optimal_high=-6.0,
                     loose_decay=0.3, tight_decay=0.15):
    """Score 3' terminal binding strength (kcal/mol).

    Less negative than ``optimal_high`` binds too loosely to initiate
    efficiently; more negative than ``optimal_low`` still primes but less
    specifically and is penalized more mildly.
    """
    if optimal_low <= dg <= optimal_high:
        return 1.0
    if dg > optimal_high:
        return math.exp(-loose_decay * (dg - optimal_high))
    return math.exp(-tight_decay * (optimal_low - dg))


def scoreGQuadruplex(seq):
    """Score G-quadruplex risk.

    A canonical intramolecular motif scores 0, a GGGG run 0.2 and two or
    more GGG runs 0.6.
    """
    seq = seq.upper()
    if _G4_RE.search(seq):
        return 0.0
    if 'GGGG' in seq:
        return 0.2
    if len(_GGG_RUN_RE.findall(seq)) >= 2:
        return 0.6
    return 1.0


# ~~~~~~~~~~~~~~~~~~~~~~~~~~~~~ Window analysis ~~~~~~~~~~~~~~~~~~~~~~~~~~~~~ #

HomologyAnalysis = namedtuple('HomologyAnalysis',
        ['score',               # 0-100
         'tm',
         'gc',                  # Percent
         'length',
         'gc_clamp',            # True if the GC clamp score is >= 0.9
         'hairpin_dg',
         'homodimer_dg',
         'terminal_dg',
         'has_g4',
         'issues',
         'breakdown',           # {sub-score name: 0-100}
         'window'
         ])


def _fallbackAnalysis(window, issue):
    return HomologyAnalysis(FALLBACK_WINDOW_SCORE, 0.0, 0.0, len(window),
                            False, 0.0, 0.0, 0.0, False, [issue],
                            {key: 0 for key in HOMOLOGY_WEIGHTS}, window)


def analyzeHomologyRegion(window, oracle, min_length=MIN_WINDOW_LENGTH,
                          label='Region'):
    """Score a primer-binding window with the help of ``oracle``.

    Args:
        window (str)        : window sequence in primer orientation
        oracle (callable)   : ``oracle(seq) -> PrimerFeatures``
        min_length (int)    : windows shorter than this get a fixed score
        label (str)         : prefix for the "too short" issue

    Returns:
        ``HomologyAnalysis``. An oracle failure is logged and yields the
        same fixed score as a short window; it never raises.

    """
    window = normalizeSequence(window)
    if len(window) < min_length:
        return _fallbackAnalysis(window,
                                 '%s homology region too short' % label)

    try:
        features = oracle(window)
    except (OSError, ValueError, RuntimeError) as e:
        logger.warning('Primer-quality oracle failed on %s: %s', window, e)
        return _fallbackAnalysis(window, '%s thermodynamic analysis failed: '
                                 '%s' % (label, e))
    tm, hairpin_dg = features.tm, features.hairpin_dg
    homodimer_dg, terminal_dg = features.homodimer_dg, features.terminal_dg
    issues = []
    gc = countGC(window) * 100.0 / len(window)

    sub_scores = {
        'tm': scoreTm(tm),
        'gc': scoreGc(gc / 100.0),
        'length': scoreLength(len(window)),
        'gc_clamp': scoreGcClamp(window),
        'homopolymer': scoreHomopolymer(window),
        'hairpin': scoreHairpin(hairpin_dg),
        'homodimer': scoreHomodimer(homodimer_dg),
        'terminal_dg': scoreTerminal3DG(terminal_dg),
        'g_quadruplex': scoreGQuadruplex(window),
    }
    composite = sum(sub_scores[key] * weight
                    for key, weight in HOMOLOGY_WEIGHTS.items())

    if sub_scores['tm'] < 0.7:
        issues.append('Tm %.1fC outside optimal range' % tm)
    if sub_scores['gc'] < 0.7:
        issues.append('GC content %.0f%% outside optimal range' % gc)
    if sub_scores['hairpin'] < 0.5:
        issues.append('Strong hairpin potential (dG=%.1f)' % hairpin_dg)
    if sub_scores['g_quadruplex'] < 0.5:
        issues.append('G-quadruplex risk detected')
    if sub_scores['terminal_dg'] < 0.5:
        issues.append("Weak 3' binding (dG=%.1f)" % terminal_dg)

    return HomologyAnalysis(
        score=int(round(composite * 100)),
        tm=tm,
        gc=gc,
        length=len(window),
        gc_clamp=sub_scores['gc_clamp'] >= 0.9,
        hairpin_dg=hairpin_dg,
        homodimer_dg=homodimer_dg,
        terminal_dg=terminal_dg,
        has_g4=sub_scores['g_quadruplex'] < 0.8,
        issues=issues,
        breakdown={key: int(round(value * 100))
                   for key, value in sub_scores.items()},
        window=window)
