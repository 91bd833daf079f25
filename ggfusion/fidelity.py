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
ggfusion.fidelity
~~~~~~~~~~~~~~~~~

Ligation fidelity of overhangs and overhang sets.

Per-junction fidelity of an overhang ``o`` within a set ``S`` is the
pairwise competing-frequency ratio::

    correct = m[o][rc(o)]
    total   = sum over x in S of (m[o][x] + m[o][rc(x)])
    fidelity(o, S) = correct / total

When ``total`` is 0 (or no matrix is available for the enzyme) the static
``STATIC_FIDELITY`` table and then a configurable constant are used instead.

Assembly fidelity is the product of the per-junction values. This treats
every junction as competing independently and ignores simultaneous
multi-way competition; the assumption is named by
``ASSEMBLY_FIDELITY_MODEL`` so a different model has to be selected
explicitly.

The four-orientation whole-set formula used by older overhang-set tools is
kept as ``FIDELITY_MODE_LEGACY_FOUR_WAY`` and is only used when asked for.

"""
import logging

from collections import namedtuple

import numpy as np

from .efficiency import calculateSetEfficiency
from .enzymes import getEnzyme
from .ligation import getMatrix
from .params import buildParams
from .sequtil import findCollisions, isPalindrome, rc

logger = logging.getLogger(__name__)


ASSEMBLY_FIDELITY_MODEL = 'independent-junction-product'

FIDELITY_MODE_PAIRWISE = 'pairwise'
FIDELITY_MODE_LEGACY_FOUR_WAY = 'legacy-four-way'
FIDELITY_MODES = (FIDELITY_MODE_PAIRWISE, FIDELITY_MODE_LEGACY_FOUR_WAY)

# Published single-overhang fidelities used when no matrix data applies
STATIC_FIDELITY = {
    'GGAG': 0.99, 'TACT': 0.99,
    'AATG': 0.98, 'AGGT': 0.98, 'GCTT': 0.98, 'CGCT': 0.98, 'TGCC': 0.98,
    'ACTA': 0.98, 'TTCG': 0.98, 'GCTG': 0.98,
    'CAGA': 0.97, 'TCGA': 0.97,
    'GTGC': 0.96, 'CTAC': 0.96, 'GAGT': 0.96,
    'ATCC': 0.95, 'CCGA': 0.95,
    'GAAG': 0.93, 'TGGA': 0.92, 'CAGG': 0.91, 'AGCC': 0.90,
    'TAAA': 0.85, 'TTTA': 0.85,
    'AAAA': 0.75, 'TTTT': 0.75,
}

DEFAULT_FALLBACK_FIDELITY = 0.85


JunctionFidelity = namedtuple('JunctionFidelity',
        ['overhang',
         'partner',             # Watson-Crick partner (reverse complement)
         'fidelity',            # 0-1
         'correct',             # Correct-pair ligation count (matrix only)
         'total',               # Competing ligation count (matrix only)
         'source'               # 'matrix', 'static' or 'default'
         ])


def _staticFidelity(overhang, fallback):
    if overhang in STATIC_FIDELITY:
        return JunctionFidelity(overhang, rc(overhang),
                                STATIC_FIDELITY[overhang], 0.0, 0.0, 'static')
    return JunctionFidelity(overhang, rc(overhang), fallback, 0.0, 0.0,
                            'default')


def junctionFidelity(overhang, overhang_set, matrix=None,
                     fallback=DEFAULT_FALLBACK_FIDELITY,
                     mode=FIDELITY_MODE_PAIRWISE):
    """Fidelity of a single junction competing within ``overhang_set``.

    Args:
        overhang (str)                  : junction overhang
        overhang_set (iterable)         : overhangs present in the assembly;
                                          ``overhang`` is added if missing
        matrix (LigationMatrix)         : ligation data, or ``None`` to use
                                          the static fallback
        fallback (float)                : fidelity used when neither matrix
                                          nor static data exist
        mode (str)                      : ``FIDELITY_MODE_PAIRWISE`` or the
                                          labeled legacy four-way mode

    Returns:
        ``JunctionFidelity``

    Raises:
        ``ValueError`` for an unknown ``mode``

    """
    if mode not in FIDELITY_MODES:
        raise ValueError('Unknown fidelity mode: %r' % mode)
    members = list(overhang_set)
    if overhang not in members:
        members.append(overhang)
    if matrix is None or overhang not in matrix:
        return _staticFidelity(overhang, fallback)

    members = [x for x in members if x in matrix]
    cols = matrix.indices(members)
    rc_cols = matrix.indices([rc(x) for x in members])
    i = matrix.index[overhang]
    freqs = matrix.freqs
    if mode == FIDELITY_MODE_PAIRWISE:
        correct = float(matrix.correct[i])
        total = float(freqs[i, cols].sum() + freqs[i, rc_cols].sum())
    else:
        j = matrix.index[rc(overhang)]
        correct = float(freqs[i, j] + freqs[j, i])
        total = float(freqs[i, cols].sum() + freqs[i, rc_cols].sum() +
                      freqs[j, cols].sum() + freqs[j, rc_cols].sum())
    if total > 0:
        return JunctionFidelity(overhang, rc(overhang), correct / total,
                                correct, total, 'matrix')
    return _staticFidelity(overhang, fallback)


def junctionFidelities(overhangs, matrix=None,
                       fallback=DEFAULT_FALLBACK_FIDELITY,
                       mode=FIDELITY_MODE_PAIRWISE):
    return [junctionFidelity(oh, overhangs, matrix, fallback, mode)
            for oh in overhangs]


def assemblyFidelity(overhangs, matrix=None,
                     fallback=DEFAULT_FALLBACK_FIDELITY,
                     mode=FIDELITY_MODE_PAIRWISE):
    """Product of per-junction fidelities (see ``ASSEMBLY_FIDELITY_MODEL``).

    An empty set has fidelity 1.0.
    """
    fidelity = 1.0
    for jf in junctionFidelities(overhangs, matrix, fallback, mode):
        fidelity *= jf.fidelity
    return fidelity


def overhangBaseFidelity(overhang, matrix=None,
                         fallback=DEFAULT_FALLBACK_FIDELITY):
    """Fidelity of ``overhang`` against the whole overhang library.

    With a matrix this is ``m[o][rc(o)] / sum(m[o][*])`` and 0.0 when the
    correct pairing was never observed. Without a matrix the static table
    (then ``fallback``) is used.
    """
    if matrix is None:
        return STATIC_FIDELITY.get(overhang, fallback)
    if overhang not in matrix:
        return 0.0
    total = matrix.rowTotal(overhang)
    if total <= 0:
        return 0.0
    return matrix.correctFrequency(overhang) / total


# ~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~ G:T wobble risk ~~~~~~~~~~~~~~~~~~~~~~~~~~~~ #

_WATSON_CRICK = {'A': 'T', 'T': 'A', 'G': 'C', 'C': 'G'}
_WOBBLE = (('G', 'T'), ('T', 'G'))

GTRisk = namedtuple('GTRisk',
        ['overhang1',
         'overhang2',
         'rc2',                 # Reverse complement of overhang2
         'wobble_positions',    # 0-based positions of G:T pairs
         'wobble_count',
         'match_count',         # Watson-Crick + wobble pairs
         'position_weight',     # Mean 1-based wobble position
         'risk',                # 'critical', 'high' or 'medium'
         'expected_misligation',
         'description'
         ])


def findGTMismatchRisks(overhangs, wobble_weight=0.20, match_threshold=3):
    """Find overhang pairs that could mis-ligate through G:T wobble pairs.

    Each unordered pair is checked by aligning ``overhang1`` against the
    reverse complement of ``overhang2``; a position pairs if the bases are
    Watson-Crick complementary or form a G:T wobble. A pair is reported when
    the pairing positions reach ``match_threshold`` (capped at the overhang
    length) and at least one of them is a wobble.

    Returns:
        List of ``GTRisk`` tuples

    """
    risks = []
    for i, oh1 in enumerate(overhangs):
        threshold = min(match_threshold, len(oh1))
        for oh2 in overhangs[i + 1:]:
            oh2_rc = rc(oh2)
            wobble_positions = []
            match_count = 0
            for k, (b1, b2) in enumerate(zip(oh1, oh2_rc)):
                if _WATSON_CRICK.get(b1) == b2:
                    match_count += 1
                elif (b1, b2) in _WOBBLE:
                    match_count += 1
                    wobble_positions.append(k)
            if match_count < threshold or not wobble_positions:
                continue
            wobble_count = len(wobble_positions)
            position_weight = (sum(k + 1 for k in wobble_positions) /
                               float(wobble_count))
            if match_count == len(oh1):
                risk = 'critical'
            elif position_weight / len(oh1) > 0.5:
                risk = 'high'
            else:
                risk = 'medium'
            expected = wobble_weight ** wobble_count
            risks.append(GTRisk(
                oh1, oh2, oh2_rc, tuple(wobble_positions), wobble_count,
                match_count, position_weight, risk, expected,
                '%s may mis-ligate with RC(%s)=%s via %d G:T wobble(s)' %
                (oh1, oh2, oh2_rc, wobble_count)))
    return risks


# ~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~ Cross-ligation ~~~~~~~~~~~~~~~~~~~~~~~~~~~~ #

# (minimum cross / correct ratio, severity), checked in order
CROSS_LIGATION_TIERS = ((0.10, 'high'), (0.05, 'medium'), (0.01, 'low'))

CrossLigationRisk = namedtuple('CrossLigationRisk',
        ['source',              # Overhang that mis-ligates
         'target',              # Set member whose partner it ligates with
         'target_rc',
         'correct_frequency',   # m[source][rc(source)]
         'cross_frequency',     # m[source][rc(target)]
         'ratio',               # cross_frequency / correct_frequency
         'severity'             # 'high', 'medium' or 'low'
         ])


def crossLigationMatrix(overhangs, matrix):
    """``m[o_i][rc(o_j)]`` for every ordered pair of ``overhangs``.

    The diagonal holds the correct (Watson-Crick) ligation counts. Overhangs
    missing from ``matrix`` give all-zero rows and columns.

    Returns:
        ``numpy.ndarray`` of shape ``(n, n)``
    """
    n = len(overhangs)
    cross = np.zeros((n, n), dtype=np.float64)
    known = [i for i, oh in enumerate(overhangs) if oh in matrix]
    if known:
        rows = matrix.indices([overhangs[i] for i in known])
        cols = matrix.indices([rc(overhangs[i]) for i in known])
        cross[np.ix_(known, known)] = matrix.freqs[np.ix_(rows, cols)]
    return cross


def crossLigationSeverity(ratio):
    for threshold, severity in CROSS_LIGATION_TIERS:
        if ratio >= threshold:
            return severity
    return None


def findCrossLigationRisks(overhangs, matrix):
    """Off-target ligations of at least 1% of an overhang's correct count.

    Returns:
        List of ``CrossLigationRisk`` tuples, highest ratio first

    """
    overhangs = [oh.upper() for oh in overhangs]
    cross = crossLigationMatrix(overhangs, matrix)
    risks = []
    for i, source in enumerate(overhangs):
        correct = cross[i, i]
        if correct <= 0:
            continue
        for j, target in enumerate(overhangs):
            if i == j or cross[i, j] <= 0:
                continue
            ratio = cross[i, j] / correct
            severity = crossLigationSeverity(ratio)
            if severity is None:
                continue
            risks.append(CrossLigationRisk(source, target, rc(target),
                                           float(correct),
                                           float(cross[i, j]), float(ratio),
                                           severity))
    risks.sort(key=lambda r: r.ratio, reverse=True)
    return risks


def crossLigationRiskLevel(risks):
    """'high', 'medium' or 'low' for the worst risk; 'minimal' for none."""
    severities = set(r.severity for r in risks)
    for severity in ('high', 'medium', 'low'):
        if severity in severities:
            return severity
    return 'minimal'


CrossLigationReport = namedtuple('CrossLigationReport',
        ['enzyme',
         'available',           # False when no matrix exists for the enzyme
         'overhangs',
         'risks',               # List of CrossLigationRisk, worst first
         'high_count',
         'medium_count',
         'overall_risk',        # crossLigationRiskLevel (None if unavailable)
         'worst',               # First risk or None
         'matrix'               # crossLigationMatrix (None if unavailable)
         ])


def predictCrossLigation(overhangs, enzyme='BsaI', ligation_data=None):
    """Cross-ligation risk report for an overhang set.

    Raises:
        ``ValueError`` for an unknown enzyme

    """
    enzyme = getEnzyme(enzyme)
    matrix = getMatrix(ligation_data, enzyme)
    overhangs = [oh.upper() for oh in overhangs]
    if matrix is None:
        logger.info('No ligation matrix for %s; cross-ligation not assessed',
                    enzyme.name)
        return CrossLigationReport(enzyme.name, False, overhangs, [], 0, 0,
                                   None, None, None)
    risks = findCrossLigationRisks(overhangs, matrix)
    return CrossLigationReport(
        enzyme.name, True, overhangs, risks,
        sum(1 for r in risks if r.severity == 'high'),
        sum(1 for r in risks if r.severity == 'medium'),
        crossLigationRiskLevel(risks), risks[0] if risks else None,
        crossLigationMatrix(overhangs, matrix))


# ~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~ Set fidelity report ~~~~~~~~~~~~~~~~~~~~~~~~ #

FidelityReport = namedtuple('FidelityReport',
        ['enzyme',
         'overhangs',
         'model',                   # ASSEMBLY_FIDELITY_MODEL
         'source',                  # 'matrix', 'static' or 'mixed'
         'junctions',               # List of JunctionFidelity
         'assembly_fidelity',       # Product of junction fidelities
         'lowest',                  # Weakest JunctionFidelity (or None)
         'gt_risks',                # List of GTRisk
         'gt_penalty',              # Applied only without matrix data
         'final_fidelity',          # assembly_fidelity * gt_penalty
         'efficiency',              # SetEfficiency
         'efficiency_adjusted',     # final_fidelity * average efficiency
         'warnings'
         ])


def calculateFidelity(overhangs, enzyme, ligation_data=None, params=None):
    """Full fidelity report for an ordered overhang set.

    G:T wobble risks are always reported, but only discount the fidelity
    when no junction used matrix data (the matrix already measures
    mis-pairing). Duplicate or complementary overhangs make the set
    unassemblable and force the fidelity to 0.

    Args:
        overhangs (list)                : overhang strings
        enzyme (str)                    : enzyme identifier
        ligation_data (LigationData)    : ligation data or ``None``
        params (dict or Params)         : parameter overrides

    Returns:
        ``FidelityReport``

    Raises:
        ``ValueError`` for an unknown enzyme

    """
    params = buildParams(params)
    enzyme = getEnzyme(enzyme)
    matrix = getMatrix(ligation_data, enzyme)
    overhangs = [oh.upper() for oh in overhangs]
    warnings = []

    junctions = junctionFidelities(overhangs, matrix,
                                   params.fallback_fidelity)
    fidelity = 1.0 if junctions else 0.0
    for jf in junctions:
        fidelity *= jf.fidelity
    sources = set(jf.source for jf in junctions)
    if sources == set(['matrix']):
        source = 'matrix'
    elif 'matrix' in sources:
        source = 'mixed'
    else:
        source = 'static'
    if matrix is None and overhangs:
        warnings.append('No ligation matrix for %s; using static fidelity' %
                        enzyme.name)

    for i, j in findCollisions(overhangs):
        warnings.append('Overhangs %d (%s) and %d (%s) collide' %
                        (i, overhangs[i], j, overhangs[j]))
        fidelity = 0.0

    gt_risks = findGTMismatchRisks(overhangs, params.gt_wobble_weight,
                                   params.gt_match_threshold)
    gt_penalty = 1.0
    if source != 'matrix':
        for risk in gt_risks:
            gt_penalty *= (1 - risk.expected_misligation)
    for risk in gt_risks:
        if risk.risk in ('critical', 'high'):
            warnings.append(risk.description)

    efficiency = calculateSetEfficiency(overhangs)
    for res in efficiency.individual:
        warnings.extend(res.warnings)

    final = fidelity * gt_penalty
    lowest = min(junctions, key=lambda jf: jf.fidelity) if junctions else None
    return FidelityReport(enzyme.name, overhangs, ASSEMBLY_FIDELITY_MODEL,
                          source, junctions, fidelity, lowest, gt_risks,
                          gt_penalty, final, efficiency,
                          final * efficiency.average, warnings)


RISK_MIN_FIDELITY = 0.90
RISK_MIN_EFFICIENCY = 0.70

RiskAssessment = namedtuple('RiskAssessment',
        ['overhangs',
         'fidelity',            # final_fidelity from calculateFidelity
         'efficiency',          # Combined set efficiency
         'issues',              # Human readable problems
         'is_good',             # No issues found
         'risk_level'           # 'low' (no issues), 'medium' (<= 2), 'high'
         ])


def quickRiskAssessment(overhangs, enzyme='BsaI', ligation_data=None,
                        params=None):
    """Pass / fail summary of an overhang set for interactive use."""
    report = calculateFidelity(overhangs, enzyme, ligation_data, params)
    issues = []
    if report.final_fidelity < RISK_MIN_FIDELITY:
        issues.append('Low fidelity: %.1f%%' % (report.final_fidelity * 100))
    if report.efficiency.combined < RISK_MIN_EFFICIENCY:
        issues.append('Low efficiency: %.1f%%' %
                      (report.efficiency.combined * 100))
    palindromes = [oh for oh in report.overhangs if isPalindrome(oh)]
    if palindromes:
        issues.append('%d palindromic overhang(s)' % len(palindromes))
    if report.gt_risks:
        issues.append('%d G:T mismatch risk(s)' % len(report.gt_risks))
    if not issues:
        level = 'low'
    elif len(issues) <= 2:
        level = 'medium'
    else:
        level = 'high'
    return RiskAssessment(report.overhangs, report.final_fidelity,
                          report.efficiency.combined, issues, not issues,
                          level)
