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
ggfusion.pipeline
~~~~~~~~~~~~~~~~~

Main design pipeline: validate the request, pick an algorithm, select the
junctions and assemble the full report (detailed junction scores, fidelity
report, fragment sizes and internal recognition sites).

"""
import logging

from collections import namedtuple

from .enzymes import findInternalSites, getEnzyme
from .fidelity import calculateFidelity
from .offtarget import checkFlankingMispriming
from .optimizer import ALGORITHMS, BRANCH_BOUND, GREEDY, HYBRID, \
                       MONTE_CARLO, OPTIMIZERS, prepareRegions
from .params import buildParams
from .scorer import scoreFusionSite
from .sequtil import normalizeSequence
from .thermo import makeOracle

logger = logging.getLogger(__name__)

AUTO = 'auto'
QUICK_SEARCH_RADIUS = 30


DesignResult = namedtuple('DesignResult',
        ['success',             # result.complete (False for rejected input)
         'algorithm',           # Algorithm actually run
         'enzyme',
         'sequence_length',
         'num_fragments',
         'num_junctions',
         'junctions',           # Junction records, ascending position
         'overhangs',
         'score',               # SetScore
         'detailed_junctions',  # CompositeScore per junction
         'fidelity',            # FidelityReport
         'fragment_sizes',
         'min_fragment_size',
         'max_fragment_size',
         'avg_fragment_size',
         'internal_sites',      # InternalSite list (warning only)
         'warnings',
         'error',
         'suggestion',          # Suggested fragment count on rejection
         'result'               # Underlying OptimizationResult
         ])


def _rejected(enzyme, seq_len, num_fragments, error, suggestion=None):
    return DesignResult(False, None, enzyme.name, seq_len, num_fragments,
                        max(0, num_fragments - 1), [], [], None, [], None, [],
                        0, 0, 0, [], [], error, suggestion, None)


def selectAlgorithm(num_fragments):
    """Default algorithm for a fragment count."""
    if num_fragments <= 5:
        return BRANCH_BOUND
    if num_fragments <= 10:
        return HYBRID
    return MONTE_CARLO


def fragmentSizes(seq_len, positions, overhang_length):
    """Fragment lengths for junctions at ``positions``.

    Each fragment ends after its junction's overhang, so boundaries are
    ``[0, pos_1 + ohl, ..., pos_k + ohl, seq_len]``.
    """
    bounds = [0] + [pos + overhang_length for pos in sorted(positions)] + \
             [seq_len]
    return [bounds[i + 1] - bounds[i] for i in range(len(bounds) - 1)]


def optimizeFusionSites(seq, num_fragments, enzyme='BsaI', ligation_data=None,
                        algorithm=AUTO, params=None, rng=None, oracle=None,
                        forbidden_regions=None):
    """Design the junctions that split ``seq`` into ``num_fragments``.

    Args:
        seq (str)                       : sequence to split
        num_fragments (int)             : number of fragments
        enzyme (str)                    : enzyme identifier
        ligation_data (LigationData)    : ligation data or ``None`` (static
                                          fidelity fallback)
        algorithm (str)                 : 'auto', 'greedy', 'branchBound',
                                          'monteCarlo' or 'hybrid'
        params (dict or Params)         : parameter overrides
        rng (random.Random, optional)   : random source for Monte Carlo
        oracle (callable, optional)     : primer-quality oracle for the
                                          detailed junction scores
        forbidden_regions (list)        : (start, end) spans where no
                                          junction may be placed

    Returns:
        ``DesignResult``. Input that cannot be split (too short, fewer than
        2 fragments or fragments below ``min_fragment_size``) gives
        ``success=False`` with an ``error`` and a ``suggestion``.

    Raises:
        ``ValueError`` for an unknown enzyme or algorithm

    """
    params = buildParams(params)
    enzyme = getEnzyme(enzyme)
    if algorithm != AUTO and algorithm not in ALGORITHMS:
        raise ValueError('Unknown algorithm %r; expected one of %s' %
                         (algorithm, ', '.join((AUTO,) + ALGORITHMS)))
    seq = normalizeSequence(seq)
    seq_len = len(seq)

    max_fragments = seq_len // params.min_fragment_size
    if seq_len < params.min_sequence_length:
        return _rejected(enzyme, seq_len, num_fragments,
                         'Sequence too short (%d bp, minimum %d bp)' %
                         (seq_len, params.min_sequence_length), max_fragments)
    if num_fragments < 2:
        return _rejected(enzyme, seq_len, num_fragments,
                         'At least 2 fragments are required',
                         max_fragments)
    if seq_len / float(num_fragments) < params.min_fragment_size:
        return _rejected(enzyme, seq_len, num_fragments,
                         'Fragments would be smaller than %d bp (%d bp / %d)'
                         % (params.min_fragment_size, seq_len, num_fragments),
                         max_fragments)

    warnings = []
    internal_sites = findInternalSites(seq, enzyme)
    if internal_sites:
        msg = ('Sequence contains %d internal %s site(s); domesticate before '
               'assembly' % (len(internal_sites), enzyme.name))
        logger.warning(msg)
        warnings.append(msg)

    if algorithm == AUTO:
        algorithm = selectAlgorithm(num_fragments)
    logger.info('Designing %d fragments of a %d bp sequence with %s (%s)',
                num_fragments, seq_len, enzyme.name, algorithm)

    regions = prepareRegions(seq, num_fragments, enzyme, ligation_data,
                             params, forbidden_regions)
    result = OPTIMIZERS[algorithm](seq, num_fragments, enzyme, ligation_data,
                                   params, regions, rng)
    return _report(seq, num_fragments, enzyme, ligation_data, params, oracle,
                   result, internal_sites, warnings)


def _report(seq, num_fragments, enzyme, ligation_data, params, oracle,
            result, internal_sites, warnings):
    positions = [j.position for j in result.junctions]
    if oracle is None:
        oracle = makeOracle(params.thermo_params)
    mispriming = checkFlankingMispriming(enzyme.flanking, seq, params)
    detailed = [scoreFusionSite(seq, pos, enzyme, ligation_data, params,
                                oracle, mispriming=mispriming)
                for pos in positions]
    fidelity = calculateFidelity(result.overhangs, enzyme, ligation_data,
                                 params)
    warnings = warnings + fidelity.warnings
    sizes = fragmentSizes(len(seq), positions, enzyme.overhang_length)

    error = None
    if not result.complete:
        error = 'Found %d of %d junctions' % (len(result.junctions),
                                              result.num_expected)
        logger.warning('%s: %s', error, result.failure)
    else:
        logger.info('Selected %d junctions (score %.3f, fidelity %.3f)',
                    len(positions), result.score.composite,
                    fidelity.final_fidelity)
    return DesignResult(
        success=result.complete,
        algorithm=result.algorithm,
        enzyme=enzyme.name,
        sequence_length=len(seq),
        num_fragments=num_fragments,
        num_junctions=result.num_expected,
        junctions=result.junctions,
        overhangs=result.overhangs,
        score=result.score,
        detailed_junctions=detailed,
        fidelity=fidelity,
        fragment_sizes=sizes,
        min_fragment_size=min(sizes),
        max_fragment_size=max(sizes),
        avg_fragment_size=int(round(sum(sizes) / float(len(sizes)))),
        internal_sites=internal_sites,
        warnings=warnings,
        error=error,
        suggestion=None,
        result=result)


def quickOptimize(seq, num_fragments, enzyme='BsaI', ligation_data=None,
                  params=None, oracle=None):
    """Greedy design with a narrower (30 bp) search radius."""
    params = buildParams(params)._replace(search_radius=QUICK_SEARCH_RADIUS)
    return optimizeFusionSites(seq, num_fragments, enzyme, ligation_data,
                               GREEDY, params, oracle=oracle)
