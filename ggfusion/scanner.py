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
ggfusion.scanner
~~~~~~~~~~~~~~~~

Methods for finding fusion site (junction) candidates in a DNA sequence and
for laying out the target regions that the optimizers search.

The scanner walks the sequence 5' to 3' one base at a time. A position is
hard-rejected if its overhang contains non-ACGT characters, is palindromic,
is a homopolymer or has no ligation data for the enzyme. The candidate cap
stops the scan early, so a capped result is always the position-ascending
prefix of the full scan, never a sample of it.

Candidate indexing information::

    Position            |
    Overhang            ====
    Sequence     ...ACCGATGGAGTTGACC...
    Upstream  ----------              (10 bp context)
    Downstream              ----------

"""
import logging
import math

from collections import namedtuple

import bitarray

from .efficiency import calculateEfficiency
from .enzymes import getEnzyme
from .fidelity import overhangBaseFidelity
from .ligation import getMatrix
from .params import buildParams
from .sequtil import countGC, isHomopolymer, isPalindrome, isValidOverhang, \
                     normalizeSequence, rc

logger = logging.getLogger(__name__)

CONTEXT_LENGTH = 10


Candidate = namedtuple('Candidate',
        ['position',            # 0-based index of the first overhang base
         'overhang',
         'reverse_complement',
         'base_fidelity',       # Fidelity against the whole overhang library
         'gc_count',
         'gc_content',          # gc_count / overhang length
         'is_tnna',
         'is_high_gc',
         'is_low_gc',
         'upstream_context',    # Up to 10 bp 5' of the overhang
         'downstream_context',  # Up to 10 bp 3' of the overhang
         'efficiency',
         'efficiency_warnings',
         'is_optimal_efficiency',
         'is_acceptable_efficiency',
         'score'                # Attached quick / composite score or None
         ])
Candidate.__new__.__defaults__ = (None,)

TargetPosition = namedtuple('TargetPosition',
        ['index',               # 0-based junction index
         'ideal_position',
         'search_start',        # Inclusive search window start
         'search_end',          # Inclusive search window end
         'expected_fragment_size'
         ])


def roundHalfUp(value):
    return int(math.floor(value + 0.5))


def buildAllowedLUT(length, search_windows=None, forbidden_regions=None):
    """Build a binary LUT of positions the scanner may consider.

    Args:
        length (int)                    : sequence length
        search_windows (list, optional) : ``(start, end)`` windows, both ends
                                          inclusive; ``None`` allows every
                                          position
        forbidden_regions (list, optional): ``(start, end)`` regions with an
                                          exclusive end that are never
                                          allowed

    Returns:
        ``bitarray.bitarray`` of ``length`` bits (1 = allowed)

    """
    allowed_lut = bitarray.bitarray(length)
    if search_windows is None:
        allowed_lut.setall(1)
    else:
        allowed_lut.setall(0)
        for start, end in search_windows:
            start, end = max(0, start), min(length, end + 1)
            if start < end:
                allowed_lut[start:end] = 1
    for start, end in forbidden_regions or ():
        start, end = max(0, start), min(length, end)
        if start < end:
            allowed_lut[start:end] = 0
    return allowed_lut


def scanForFusionSites(seq, enzyme='BsaI', ligation_data=None,
                       search_windows=None, forbidden_regions=None,
                       params=None):
    """Scan ``seq`` for fusion site candidates.

    Args:
        seq (str)                           : DNA sequence (any case)
        enzyme (str)                        : enzyme identifier (sets the
                                              overhang length)
        ligation_data (LigationData)        : ligation data, or ``None`` for
                                              the static fallback
        search_windows (list, optional)     : inclusive ``(start, end)``
                                              windows to restrict the scan
        forbidden_regions (list, optional)  : ``(start, end)`` regions
                                              (exclusive end) to skip
        params (dict or Params, optional)   : overrides for
                                              ``min_distance_from_ends`` and
                                              ``max_candidates``

    Returns:
        List of ``Candidate`` tuples in ascending position order; empty if
        the sequence is too short for the end margins.

    Raises:
        ``ValueError`` for an unknown enzyme

    """
    params = buildParams(params)
    enzyme = getEnzyme(enzyme)
    matrix = getMatrix(ligation_data, enzyme)
    seq = normalizeSequence(seq)
    oh_len = enzyme.overhang_length
    min_dist = params.min_distance_from_ends

    if len(seq) < min_dist * 2 + oh_len:
        return []

    allowed_lut = buildAllowedLUT(len(seq), search_windows,
                                  forbidden_regions)
    candidates = []
    for pos in range(min_dist, len(seq) - min_dist - oh_len + 1):
        if not allowed_lut[pos]:
            continue
        overhang = seq[pos:pos + oh_len]
        if not isValidOverhang(overhang):
            continue
        if isPalindrome(overhang) or isHomopolymer(overhang):
            continue
        base_fidelity = overhangBaseFidelity(overhang, matrix,
                                             params.fallback_fidelity)
        if base_fidelity == 0:
            continue
        efficiency = calculateEfficiency(overhang)
        gc_count = countGC(overhang)
        candidates.append(Candidate(
            position=pos,
            overhang=overhang,
            reverse_complement=rc(overhang),
            base_fidelity=base_fidelity,
            gc_count=gc_count,
            gc_content=gc_count / float(oh_len),
            is_tnna=efficiency.is_tnna,
            is_high_gc=gc_count == oh_len,
            is_low_gc=gc_count == 0,
            upstream_context=seq[max(0, pos - CONTEXT_LENGTH):pos],
            downstream_context=seq[pos + oh_len:pos + oh_len +
                                   CONTEXT_LENGTH],
            efficiency=efficiency.efficiency,
            efficiency_warnings=efficiency.warnings,
            is_optimal_efficiency=efficiency.is_optimal,
            is_acceptable_efficiency=efficiency.is_acceptable))
        if len(candidates) >= params.max_candidates:
            logger.info('Candidate cap (%d) reached at position %d',
                        params.max_candidates, pos)
            break
    return candidates


def combinedScore(candidate):
    return candidate.base_fidelity * candidate.efficiency


ScanStatistics = namedtuple('ScanStatistics',
        ['total_candidates', 'average_fidelity', 'average_efficiency',
         'tnna_count', 'high_gc_count', 'low_gc_count', 'optimal_count',
         'acceptable_count'])

ScanRanking = namedtuple('ScanRanking',
        ['candidates',          # Top-N ranked candidates
         'all_candidates',      # Every candidate, ranked
         'stats',               # ScanStatistics
         'sequence_length',
         'coverage'             # Candidates per scannable position
         ])

_SORT_KEYS = {
    'fidelity': lambda c: c.base_fidelity,
    'efficiency': lambda c: c.efficiency,
    'combined': combinedScore,
}


def scanAndRankFusionSites(seq, enzyme='BsaI', ligation_data=None,
                           top_n=100, sort_by='fidelity',
                           search_windows=None, forbidden_regions=None,
                           params=None):
    """Scan ``seq`` and rank the candidates by ``sort_by``.

    ``sort_by`` is one of 'fidelity', 'efficiency' or 'combined'
    (fidelity x efficiency). Raises ``ValueError`` otherwise.
    """
    if sort_by not in _SORT_KEYS:
        raise ValueError('Unknown sort key: %r' % sort_by)
    params = buildParams(params)
    candidates = scanForFusionSites(seq, enzyme, ligation_data,
                                    search_windows, forbidden_regions,
                                    params)
    ranked = sorted(candidates, key=_SORT_KEYS[sort_by], reverse=True)
    n = len(candidates)
    stats = ScanStatistics(
        total_candidates=n,
        average_fidelity=(sum(c.base_fidelity for c in candidates) / n
                          if n else 0.0),
        average_efficiency=(sum(c.efficiency for c in candidates) / n
                            if n else 0.0),
        tnna_count=sum(1 for c in candidates if c.is_tnna),
        high_gc_count=sum(1 for c in candidates if c.is_high_gc),
        low_gc_count=sum(1 for c in candidates if c.is_low_gc),
        optimal_count=sum(1 for c in candidates if c.is_optimal_efficiency),
        acceptable_count=sum(1 for c in candidates
                             if c.is_acceptable_efficiency and
                             not c.is_optimal_efficiency))
    scannable = len(seq) - 2 * params.min_distance_from_ends
    coverage = n / float(scannable) if scannable > 0 else 0.0
    return ScanRanking(ranked[:top_n], ranked, stats, len(seq), coverage)


# ~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~ Target regions ~~~~~~~~~~~~~~~~~~~~~~~~~~~~~ #

def generateTargetPositions(seq_length, num_fragments, params=None,
                            overhang_length=4):
    """Evenly spaced ideal junction positions for ``num_fragments``.

    For ``N`` fragments, ``N - 1`` ideal positions are placed at
    ``d + round(usable / N * i)`` where ``usable = L - 2d``; each gets an
    inclusive search window of ``search_radius`` clipped to the end margins.

    Returns:
        List of ``TargetPosition`` tuples (empty when ``num_fragments < 2``)

    """
    params = buildParams(params)
    min_dist = params.min_distance_from_ends
    radius = params.search_radius
    if num_fragments < 2:
        return []
    usable = seq_length - 2 * min_dist
    ideal_size = usable / float(num_fragments)
    targets = []
    for i in range(1, num_fragments):
        ideal = min_dist + roundHalfUp(ideal_size * i)
        targets.append(TargetPosition(
            index=i - 1,
            ideal_position=ideal,
            search_start=max(min_dist, ideal - radius),
            search_end=min(seq_length - min_dist - overhang_length,
                           ideal + radius),
            expected_fragment_size=ideal_size))
    return targets


RegionResult = namedtuple('RegionResult',
        ['index',
         'target',              # TargetPosition
         'candidates',          # Top candidates by fidelity x efficiency
         'total_found',
         'best'                 # Best candidate or None
         ])

RegionScan = namedtuple('RegionScan',
        ['regions', 'empty_regions', 'all_candidates'])


def scanTargetRegions(seq, targets, enzyme='BsaI', ligation_data=None,
                      forbidden_regions=None, candidates_per_region=None,
                      params=None):
    """Scan each target region and keep its best candidates.

    Candidates are ranked by ``base_fidelity * efficiency``; ties keep
    position order.
    """
    params = buildParams(params)
    if candidates_per_region is None:
        candidates_per_region = params.max_candidates_per_region
    regions = []
    for target in targets:
        found = scanForFusionSites(
            seq, enzyme, ligation_data,
            [(target.search_start, target.search_end)],
            forbidden_regions, params)
        ranked = sorted(found, key=combinedScore, reverse=True)
        regions.append(RegionResult(target.index, target,
                                    ranked[:candidates_per_region],
                                    len(found),
                                    ranked[0] if ranked else None))
    empty = [r.index for r in regions if r.total_found == 0]
    if empty:
        logger.warning('Target regions without candidates: %s', empty)
    all_candidates = [c for r in regions for c in r.candidates]
    return RegionScan(regions, empty, all_candidates)


def filterByDistance(candidates, min_distance, num_to_select):
    """Greedily pick well-spaced candidates, best combined score first.

    Returns:
        Up to ``num_to_select`` candidates, in ascending position order,
        that are pairwise at least ``min_distance`` apart.
    """
    selected = []
    for candidate in sorted(candidates, key=combinedScore, reverse=True):
        if all(abs(sel.position - candidate.position) >= min_distance
               for sel in selected):
            selected.append(candidate)
            if len(selected) >= num_to_select:
                break
    return sorted(selected, key=lambda c: c.position)


FeasibilityAssessment = namedtuple('FeasibilityAssessment',
        ['feasible',
         'reason',              # Why the design is infeasible, or None
         'sequence_length',
         'num_fragments',
         'num_junctions',
         'total_candidates',
         'region_coverage',     # List of (TargetPosition, candidates found)
         'insufficient_regions',
         'recommendation'
         ])


def assessFeasibility(seq, num_fragments, enzyme='BsaI', ligation_data=None,
                      forbidden_regions=None, params=None):
    """Check that a sequence can plausibly be split into ``num_fragments``.

    The sequence must be long enough for the minimum fragment size, and
    every target region must contain at least ``min_candidates_per_region``
    candidates.
    """
    params = buildParams(params)
    enzyme = getEnzyme(enzyme)
    seq = normalizeSequence(seq)
    num_junctions = num_fragments - 1
    if num_fragments < 2 or \
            len(seq) < params.min_fragment_size * num_fragments:
        reason = ('Sequence too short (%dbp) for %d fragments of minimum '
                  '%dbp' % (len(seq), num_fragments,
                            params.min_fragment_size))
        return FeasibilityAssessment(False, reason, len(seq), num_fragments,
                                     num_junctions, 0, [], [], reason)

    targets = generateTargetPositions(len(seq), num_fragments, params,
                                      enzyme.overhang_length)
    region_scan = scanTargetRegions(seq, targets, enzyme, ligation_data,
                                    forbidden_regions, params=params)
    coverage = [(r.target, r.total_found) for r in region_scan.regions]
    insufficient = [r.index for r in region_scan.regions
                    if r.total_found < params.min_candidates_per_region]
    if insufficient:
        recommendation = ('Regions %s have insufficient candidates' %
                          ', '.join(str(i) for i in insufficient))
    else:
        recommendation = ('Sufficient candidates found - proceed with '
                          'optimization')
    return FeasibilityAssessment(
        not insufficient, None if not insufficient else recommendation,
        len(seq), num_fragments, num_junctions,
        sum(r.total_found for r in region_scan.regions), coverage,
        insufficient, recommendation)
