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
ggfusion.optimizer
~~~~~~~~~~~~~~~~~~

Selection of a conflict-free junction set, one junction per target region.

For ``N`` fragments, ``N - 1`` evenly spaced target regions are scanned and
each region's candidates are quick-scored, sorted best first and truncated
to ``max_candidates_per_region``. Every strategy works on these same
truncated lists and scores sets with :func:`scoreJunctionSet`:

    greedy       region by region, the best candidate that keeps the
                 tentative set fidelity above ``greedy_fidelity_floor``
    branchBound  depth-first search over regions using an explicit frame
                 stack
    monteCarlo   simulated annealing from a duplicate-free seed
    hybrid       greedy, branch and bound (small problems only) and Monte
                 Carlo; the best complete result wins

Branch and bound prunes with a projected final score extrapolated from the
branch's average per-junction score. The projection is a heuristic, not an
admissible bound, so ``optimal`` only ever means "best among the truncated
per-region candidate lists", and only when the search was not truncated by
``max_branch_depth`` or ``max_nodes``.

Every strategy is a pure function of its inputs. Monte Carlo draws from an
injected ``random.Random``-compatible ``rng`` (a generator seeded with the
``seed`` parameter is created when none is given).

"""
import logging
import math
import random

from collections import namedtuple

from .efficiency import calculateSetEfficiency
from .enzymes import getEnzyme
from .fidelity import assemblyFidelity
from .ligation import getMatrix
from .params import buildParams
from .scanner import Candidate, combinedScore, generateTargetPositions, \
                     scanForFusionSites
from .sequtil import collides, findCollisions, normalizeSequence

logger = logging.getLogger(__name__)

GREEDY = 'greedy'
BRANCH_BOUND = 'branchBound'
MONTE_CARLO = 'monteCarlo'
HYBRID = 'hybrid'
ALGORITHMS = (GREEDY, BRANCH_BOUND, MONTE_CARLO, HYBRID)

# Primer quality assumed for a candidate without an attached score
DEFAULT_PRIMER_SCORE = 70

# Branch and bound projection constants
PROJECTION_CEILING = 0.95
PROJECTION_OPTIMISM = 0.1


Region = namedtuple('Region',
        ['index',
         'target',              # TargetPosition
         'candidates',          # Scored candidates, best first (top-K)
         'total_found'          # Candidates before truncation
         ])

Junction = namedtuple('Junction', Candidate._fields +
        ('target_index',
         'ideal_position',
         'deviation'            # position - ideal_position
         ))

SetScore = namedtuple('SetScore',
        ['composite',           # Weighted sum (0-1)
         'fidelity',            # Assembly fidelity of the overhangs
         'efficiency',          # Combined (product) efficiency
         'primer_quality',      # Mean candidate score / 100
         'position_quality',    # Closeness to the ideal positions
         'overhangs'
         ])

OptimizationResult = namedtuple('OptimizationResult',
        ['algorithm',
         'junctions',           # Junctions in ascending position order
         'overhangs',           # Overhangs in the same order
         'score',               # SetScore
         'complete',            # len(junctions) == num_expected
         'num_expected',
         'stats',               # Algorithm specific counters
         'optimal',             # Branch and bound only (see module doc)
         'alternatives',        # Hybrid only: (algorithm, composite,
                                # complete) of the results not chosen
         'failure'              # List of (region index, reason)
         ])

EMPTY_SET_SCORE = SetScore(0.0, 0.0, 0.0, 0.0, 0.0, [])


# ~~~~~~~~~~~~~~~~~~~~~~~~~~~~~ Shared plumbing ~~~~~~~~~~~~~~~~~~~~~~~~~~~~~ #

def quickScore(candidate):
    return int(round(combinedScore(candidate) * 100))


def prepareRegions(seq, num_fragments, enzyme='BsaI', ligation_data=None,
                   params=None, forbidden_regions=None):
    """Scan and quick-score the target regions for ``num_fragments``.

    Each returned ``Region`` holds copies of its candidates with the quick
    score attached, sorted by score (ties stay in position order) and
    truncated to ``max_candidates_per_region``.
    """
    params = buildParams(params)
    enzyme = getEnzyme(enzyme)
    seq = normalizeSequence(seq)
    targets = generateTargetPositions(len(seq), num_fragments, params,
                                      enzyme.overhang_length)
    regions = []
    for target in targets:
        found = scanForFusionSites(
            seq, enzyme, ligation_data,
            [(target.search_start, target.search_end)], forbidden_regions,
            params)
        scored = [c._replace(score=quickScore(c)) for c in found]
        scored.sort(key=lambda c: c.score, reverse=True)
        regions.append(Region(target.index, target,
                              scored[:params.max_candidates_per_region],
                              len(found)))
        if not found:
            logger.warning('No candidates in target region %d (%d-%d)',
                           target.index, target.search_start,
                           target.search_end)
    logger.info('Prepared %d target regions for %d fragments', len(regions),
                num_fragments)
    return regions


def _setScore(candidates, matrix, params, targets=None):
    if not candidates:
        return EMPTY_SET_SCORE
    weights = params.set_weights
    overhangs = [c.overhang for c in candidates]
    if findCollisions(overhangs):
        fidelity = 0.0
    else:
        fidelity = assemblyFidelity(overhangs, matrix,
                                    params.fallback_fidelity)
    efficiency = calculateSetEfficiency(overhangs).combined
    primer_quality = sum(DEFAULT_PRIMER_SCORE if c.score is None else c.score
                         for c in candidates) / (100.0 * len(candidates))
    position_quality = 1.0
    if targets is not None and len(targets) == len(candidates):
        deviations = [abs(c.position - t.ideal_position)
                      for c, t in zip(candidates, targets)]
        max_width = max(t.search_end - t.search_start for t in targets)
        avg_deviation = sum(deviations) / float(len(deviations))
        if max_width > 0:
            position_quality = max(0.0, 1 - avg_deviation / max_width)
        elif avg_deviation > 0:
            position_quality = 0.0
    composite = (fidelity * weights['fidelity'] +
                 efficiency * weights['efficiency'] +
                 primer_quality * weights['primer_quality'] +
                 position_quality * weights['position'])
    return SetScore(composite, fidelity, efficiency, primer_quality,
                    position_quality, overhangs)


def scoreJunctionSet(candidates, enzyme='BsaI', ligation_data=None,
                     params=None, targets=None):
    """Score a junction set given in region order.

    Args:
        candidates (list)               : chosen candidates, one per region
        enzyme (str)                    : enzyme identifier
        ligation_data (LigationData)    : ligation data or ``None``
        params (dict or Params)         : ``set_weights`` and fallback
                                          fidelity
        targets (list, optional)        : ``TargetPosition`` per candidate;
                                          position quality is only computed
                                          when the counts agree (otherwise
                                          it is 1.0)

    Returns:
        ``SetScore``. Colliding overhangs give a fidelity of 0.

    """
    params = buildParams(params)
    matrix = getMatrix(ligation_data, getEnzyme(enzyme))
    return _setScore(candidates, matrix, params, targets)


def _fidelityOf(candidates, matrix, params):
    return assemblyFidelity([c.overhang for c in candidates], matrix,
                            params.fallback_fidelity)


def _toJunctions(chosen):
    """``chosen`` is a list of (Region, Candidate) pairs."""
    junctions = [Junction(*(tuple(c) + (r.index, r.target.ideal_position,
                                         c.position -
                                         r.target.ideal_position)))
                 for r, c in chosen]
    junctions.sort(key=lambda j: j.position)
    return junctions


def _result(algorithm, chosen, score, num_expected, stats, optimal=False,
            failure=None):
    junctions = _toJunctions(chosen)
    return OptimizationResult(
        algorithm=algorithm,
        junctions=junctions,
        overhangs=[j.overhang for j in junctions],
        score=score,
        complete=len(junctions) == num_expected and num_expected > 0,
        num_expected=num_expected,
        stats=stats,
        optimal=optimal,
        alternatives=[],
        failure=failure or [])


def _setup(seq, num_fragments, enzyme, ligation_data, params, regions):
    params = buildParams(params)
    enzyme = getEnzyme(enzyme)
    matrix = getMatrix(ligation_data, enzyme)
    if regions is None:
        regions = prepareRegions(seq, num_fragments, enzyme, ligation_data,
                                 params)
    return params, enzyme, matrix, regions


def _tooFewFragments(algorithm, num_fragments):
    return OptimizationResult(algorithm, [], [], EMPTY_SET_SCORE, False,
                              max(0, num_fragments - 1), {}, False, [],
                              [(None, 'fewer than 2 fragments')])


# ~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~ Greedy ~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~ #

def optimizeGreedy(seq, num_fragments, enzyme='BsaI', ligation_data=None,
                   params=None, regions=None, rng=None):
    """Pick the best viable candidate region by region.

    A candidate is viable if its overhang does not collide with one already
    chosen and the tentative set fidelity exceeds ``greedy_fidelity_floor``
    (the first pick is always accepted). Regions without a viable candidate
    are skipped and reported in ``failure``. ``rng`` is accepted for a
    uniform signature and ignored.
    """
    if num_fragments < 2:
        return _tooFewFragments(GREEDY, num_fragments)
    params, enzyme, matrix, regions = _setup(seq, num_fragments, enzyme,
                                             ligation_data, params, regions)
    chosen = []
    failure = []
    used = set()
    for region in regions:
        if not region.candidates:
            failure.append((region.index, 'no candidates'))
            continue
        pick = None
        for candidate in region.candidates:
            if collides(candidate.overhang, used):
                continue
            tentative = [c for _, c in chosen] + [candidate]
            if not chosen or _fidelityOf(tentative, matrix, params) > \
                    params.greedy_fidelity_floor:
                pick = candidate
                break
        if pick is None:
            failure.append((region.index, 'all candidates conflict'))
            continue
        chosen.append((region, pick))
        used.add(pick.overhang)

    score = _setScore([c for _, c in chosen], matrix, params,
                      [r.target for r, _ in chosen])
    logger.info('Greedy chose %d of %d junctions (score %.3f)', len(chosen),
                len(regions), score.composite)
    return _result(GREEDY, chosen, score, num_fragments - 1, {},
                   failure=failure)


# ~~~~~~~~~~~~~~~~~~~~~~~~~~~~~ Branch and bound ~~~~~~~~~~~~~~~~~~~~~~~~~~~~ #

SearchFrame = namedtuple('SearchFrame',
        ['depth',               # Index of the next region to assign
         'chosen',              # Tuple of candidates chosen so far
         'used'                 # Frozenset of committed overhangs
         ])


def projectedScore(partial_composite, num_chosen, num_junctions):
    """Heuristic best-case final score for a partial assignment.

    The remaining regions are assumed to score slightly better than the
    average so far (capped at ``PROJECTION_CEILING``). This is not an
    admissible bound.
    """
    if num_chosen == 0:
        return PROJECTION_CEILING
    average = partial_composite / num_chosen
    remaining = num_junctions - num_chosen
    return (partial_composite * num_chosen +
            min(PROJECTION_CEILING, average + PROJECTION_OPTIMISM) *
            remaining) / num_junctions


def optimizeBranchBound(seq, num_fragments, enzyme='BsaI', ligation_data=None,
                        params=None, regions=None, rng=None):
    """Depth-first search over the truncated per-region candidate lists.

    Children of a node are pruned when their overhang collides with a
    committed one or the partial set fidelity falls below
    ``bb_fidelity_floor``. A node is abandoned when its projected score
    (:func:`projectedScore`) is below ``best * pruning_threshold``.

    Regions at depth ``max_branch_depth`` or deeper are not branched on;
    they take their first viable candidate. Exploration stops after
    ``max_nodes`` nodes. Either cap clears the ``optimal`` flag. A complete
    greedy assignment is the initial incumbent; when no complete assignment
    is found at all the greedy result is returned instead.
    """
    if num_fragments < 2:
        return _tooFewFragments(BRANCH_BOUND, num_fragments)
    params, enzyme, matrix, regions = _setup(seq, num_fragments, enzyme,
                                             ligation_data, params, regions)
    num_junctions = len(regions)
    targets = [r.target for r in regions]

    # A complete greedy assignment is the initial incumbent
    best_chosen = None
    best_score = None
    greedy = optimizeGreedy(seq, num_fragments, enzyme, ligation_data,
                            params, regions)
    if greedy.complete:
        by_region = sorted(greedy.junctions, key=lambda j: j.target_index)
        best_chosen = tuple(Candidate(*j[:len(Candidate._fields)])
                            for j in by_region)
        best_score = greedy.score
    nodes = 0
    max_stack = 0
    depth_truncated = False
    node_truncated = False

    stack = [SearchFrame(0, (), frozenset())]
    while stack:
        if nodes >= params.max_nodes:
            node_truncated = True
            break
        max_stack = max(max_stack, len(stack))
        frame = stack.pop()
        nodes += 1

        if frame.depth == num_junctions:
            score = _setScore(list(frame.chosen), matrix, params, targets)
            if best_score is None or score.composite > best_score.composite:
                best_score = score
                best_chosen = frame.chosen
            continue

        if frame.chosen and best_score is not None:
            partial = _setScore(list(frame.chosen), matrix, params,
                                targets[:len(frame.chosen)])
            projected = projectedScore(partial.composite, len(frame.chosen),
                                       num_junctions)
            if projected < best_score.composite * params.pruning_threshold:
                continue

        children = []
        for candidate in regions[frame.depth].candidates:
            if collides(candidate.overhang, frame.used):
                continue
            test = list(frame.chosen) + [candidate]
            if _fidelityOf(test, matrix, params) < params.bb_fidelity_floor:
                continue
            children.append(SearchFrame(frame.depth + 1,
                                        frame.chosen + (candidate,),
                                        frame.used | {candidate.overhang}))
            if frame.depth >= params.max_branch_depth:
                depth_truncated = True
                break
        # Reversed so the best-ranked child is explored first
        stack.extend(reversed(children))

    stats = {'nodes_explored': nodes, 'max_stack_size': max_stack,
             'depth_truncated': depth_truncated,
             'node_truncated': node_truncated}
    if best_chosen is None:
        logger.info('Branch and bound found no complete assignment after %d '
                    'nodes; falling back to greedy', nodes)
        stats['fallback'] = GREEDY
        return greedy._replace(stats=stats)

    logger.info('Branch and bound explored %d nodes (score %.3f)', nodes,
                best_score.composite)
    chosen = list(zip(regions, best_chosen))
    return _result(BRANCH_BOUND, chosen, best_score, num_fragments - 1, stats,
                   optimal=not (depth_truncated or node_truncated))


# ~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~ Monte Carlo ~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~ #

def _seedAssignment(regions):
    """First unused candidate per region or ``None`` if that is impossible."""
    seed = []
    used = set()
    for region in regions:
        pick = None
        for candidate in region.candidates:
            if not collides(candidate.overhang, used):
                pick = candidate
                break
        if pick is None:
            return None
        seed.append(pick)
        used.add(pick.overhang)
    return seed


def optimizeMonteCarlo(seq, num_fragments, enzyme='BsaI', ligation_data=None,
                       params=None, regions=None, rng=None):
    """Simulated annealing over one-region substitutions.

    Each iteration picks a random region with more than one candidate and
    proposes one of its candidates at a different position. Proposals that
    would duplicate (or complement) another overhang are rejected outright.
    Improvements are always accepted, regressions with probability
    ``exp(delta / T)``; ``T`` starts at ``temperature`` and is multiplied by
    ``cooling_rate`` after every evaluated proposal.

    The best assignment seen is tracked separately from the wandering one
    and only replaced on strict improvement; ``stats['best_trace']`` holds
    its score after every evaluated proposal.
    """
    if num_fragments < 2:
        return _tooFewFragments(MONTE_CARLO, num_fragments)
    params, enzyme, matrix, regions = _setup(seq, num_fragments, enzyme,
                                             ligation_data, params, regions)
    if rng is None:
        rng = random.Random(params.seed)
    targets = [r.target for r in regions]

    current = _seedAssignment(regions)
    if current is None:
        logger.info('No conflict-free Monte Carlo seed; falling back to '
                    'greedy')
        result = optimizeGreedy(seq, num_fragments, enzyme, ligation_data,
                                params, regions)
        return result._replace(stats={'fallback': GREEDY})

    current_score = _setScore(current, matrix, params, targets)
    best = list(current)
    best_score = current_score
    temp = float(params.temperature)
    accepted = 0
    evaluated = 0
    best_trace = [best_score.composite]

    for _ in range(params.iterations):
        idx = rng.randrange(len(regions))
        pool = regions[idx].candidates
        if len(pool) <= 1:
            continue
        alternatives = [c for c in pool
                        if c.position != current[idx].position]
        if not alternatives:
            continue
        proposal = list(current)
        proposal[idx] = rng.choice(alternatives)
        if findCollisions([c.overhang for c in proposal]):
            continue

        evaluated += 1
        new_score = _setScore(proposal, matrix, params, targets)
        delta = new_score.composite - current_score.composite
        if delta > 0 or (temp > 0 and rng.random() < math.exp(delta / temp)):
            current = proposal
            current_score = new_score
            accepted += 1
            if new_score.composite > best_score.composite:
                best = list(proposal)
                best_score = new_score
        best_trace.append(best_score.composite)
        temp *= params.cooling_rate

    logger.info('Monte Carlo: %d proposals evaluated, %d accepted (best '
                '%.3f)', evaluated, accepted, best_score.composite)
    stats = {'iterations': params.iterations, 'evaluated': evaluated,
             'accepted': accepted, 'final_temperature': temp,
             'best_trace': best_trace}
    return _result(MONTE_CARLO, list(zip(regions, best)), best_score,
                   num_fragments - 1, stats)


# ~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~ Hybrid ~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~ #

def optimizeHybrid(seq, num_fragments, enzyme='BsaI', ligation_data=None,
                   params=None, regions=None, rng=None):
    """Run several strategies on the same regions and keep the best.

    Greedy and Monte Carlo always run; branch and bound only for at most
    ``hybrid_bb_max_fragments`` fragments. The highest scoring complete
    result is returned (the best incomplete one if none is complete) with
    the others listed in ``alternatives``.
    """
    if num_fragments < 2:
        return _tooFewFragments(HYBRID, num_fragments)
    params, enzyme, matrix, regions = _setup(seq, num_fragments, enzyme,
                                             ligation_data, params, regions)
    results = [optimizeGreedy(seq, num_fragments, enzyme, ligation_data,
                              params, regions)]
    if num_fragments <= params.hybrid_bb_max_fragments:
        results.append(optimizeBranchBound(seq, num_fragments, enzyme,
                                           ligation_data, params, regions))
    results.append(optimizeMonteCarlo(seq, num_fragments, enzyme,
                                      ligation_data, params, regions, rng))

    complete = [r for r in results if r.complete]
    pool = complete or results
    chosen = max(pool, key=lambda r: r.score.composite)
    alternatives = [(r.algorithm, r.score.composite, r.complete)
                    for r in results if r is not chosen]
    stats = dict(chosen.stats)
    stats['selected'] = chosen.algorithm
    logger.info('Hybrid selected %s (score %.3f)', chosen.algorithm,
                chosen.score.composite)
    return chosen._replace(algorithm=HYBRID, stats=stats,
                           alternatives=alternatives)


OPTIMIZERS = {
    GREEDY: optimizeGreedy,
    BRANCH_BOUND: optimizeBranchBound,
    MONTE_CARLO: optimizeMonteCarlo,
    HYBRID: optimizeHybrid,
}
