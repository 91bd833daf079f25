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
ggfusion.overhangset
~~~~~~~~~~~~~~~~~~~~

Sequence-free overhang set design: choose ``n`` overhangs from the whole
overhang library (a "flat pool") that maximize assembly fidelity.

This follows the data-optimized assembly design approach of Pryor et al.
(2020) PLOS ONE, doi:10.1371/journal.pone.0238592: Monte Carlo simulated
annealing at a fixed temperature ``2**exp``, where ``exp`` is calibrated so
that roughly ``target_acceptance_ratio`` of the proposed moves are accepted.
Regressions are accepted with probability::

    exp(delta / (k_scale * 2**exp)),  k_scale = 1.38064852 / 6.02214085

Set fidelity uses the pairwise competing-frequency model from
:mod:`ggfusion.fidelity` by default. The four-orientation formula used by
the published tool is available as ``FIDELITY_MODE_LEGACY_FOUR_WAY``.

"""
import logging
import math
import random

from collections import namedtuple

import numpy as np

from .enzymes import getEnzyme
from .fidelity import ASSEMBLY_FIDELITY_MODEL, DEFAULT_FALLBACK_FIDELITY, \
                      FIDELITY_MODE_LEGACY_FOUR_WAY, FIDELITY_MODE_PAIRWISE, \
                      junctionFidelity
from .ligation import getMatrix
from .params import buildParams
from .sequtil import collides, countGC, isPalindrome, rc

logger = logging.getLogger(__name__)

# Boltzmann constant over Avogadro's number (mantissas; exponents cancel)
K_SCALE = 1.38064852 / 6.02214085

MIN_JUNCTIONS = 2
MAX_JUNCTIONS = 50
MAX_TEMPERATURE_STEPS = 100
BISECTION_STEPS = 6


def countAT(overhang):
    return overhang.count('A') + overhang.count('T')


def filterOverhangPool(overhangs, matrix=None, excluded=(), max_gc=-1,
                       max_at=-1, min_ligation_efficiency=-1):
    """Remove overhangs that cannot or should not be used.

    Args:
        overhangs (iterable)            : candidate overhangs
        matrix (LigationMatrix)         : needed for the self-ligation filter
        excluded (iterable)             : overhangs to exclude (their reverse
                                          complements are excluded as well)
        max_gc (int)                    : maximum G/C count (-1 disables)
        max_at (int)                    : maximum A/T count (-1 disables)
        min_ligation_efficiency (float) : minimum correct-pair ligation count
                                          ``m[o][rc] + m[rc][o]`` (-1
                                          disables)

    Returns:
        Filtered list in input order; palindromes are always removed.

    """
    excluded_set = set()
    for oh in excluded:
        excluded_set.add(oh.upper())
        excluded_set.add(rc(oh.upper()))
    pool = []
    for oh in overhangs:
        oh = oh.upper()
        oh_rc = rc(oh)
        if oh in excluded_set or oh_rc in excluded_set:
            continue
        if isPalindrome(oh):
            continue
        if max_gc != -1 and countGC(oh) > max_gc:
            continue
        if max_at != -1 and countAT(oh) > max_at:
            continue
        if min_ligation_efficiency != -1:
            self_ligation = 0.0
            if matrix is not None:
                self_ligation = (matrix.frequency(oh, oh_rc) +
                                 matrix.frequency(oh_rc, oh))
            if self_ligation < min_ligation_efficiency:
                continue
        pool.append(oh)
    return pool


def setFidelity(overhangs, matrix, mode=FIDELITY_MODE_PAIRWISE,
                fallback=DEFAULT_FALLBACK_FIDELITY):
    """Vectorized assembly fidelity of ``overhangs`` against ``matrix``.

    Equal to :func:`ggfusion.fidelity.assemblyFidelity` for overhangs in the
    matrix, without the per-junction Python overhead.
    """
    if not overhangs:
        return 1.0
    fwd = matrix.indices(overhangs)
    rev = matrix.indices([rc(oh) for oh in overhangs])
    freqs = matrix.freqs
    if mode == FIDELITY_MODE_PAIRWISE:
        correct = freqs[fwd, rev]
        total = (freqs[np.ix_(fwd, fwd)].sum(axis=1) +
                 freqs[np.ix_(fwd, rev)].sum(axis=1))
    elif mode == FIDELITY_MODE_LEGACY_FOUR_WAY:
        correct = freqs[fwd, rev] + freqs[rev, fwd]
        total = (freqs[np.ix_(fwd, fwd)] + freqs[np.ix_(fwd, rev)] +
                 freqs[np.ix_(rev, fwd)] + freqs[np.ix_(rev, rev)]).sum(axis=1)
    else:
        raise ValueError('Unknown fidelity mode: %r' % mode)
    ratios = np.empty(len(overhangs), dtype=np.float64)
    observed = total > 0
    ratios[observed] = correct[observed] / total[observed]
    for i in np.where(~observed)[0]:
        ratios[i] = junctionFidelity(overhangs[i], overhangs, matrix,
                                     fallback, mode).fidelity
    return float(np.prod(ratios))


def _randomSet(pool, size, rng, start=()):
    """Extend ``start`` with random non-colliding overhangs from ``pool``."""
    chosen = list(start)
    used = set(chosen)
    for oh in rng.sample(pool, len(pool)):
        if len(chosen) >= size:
            break
        if not collides(oh, used):
            chosen.append(oh)
            used.add(oh)
    return chosen


# ~~~~~~~~~~~~~~~~~~~~~~~~~~~~~ Annealing kernel ~~~~~~~~~~~~~~~~~~~~~~~~~~~~ #

MCStep = namedtuple('MCStep', ['accepted', 'overhangs', 'fidelity'])


def acceptanceProbability(delta, exponent):
    if delta > 0:
        return 1.0
    return math.exp(delta / (K_SCALE * 2.0 ** exponent))


def mcStep(current, current_fidelity, pool, matrix, exponent, rng,
           fixed_indices=frozenset(), mode=FIDELITY_MODE_PAIRWISE):
    """Propose replacing one variable overhang with an unused pool member.

    Returns:
        ``MCStep`` with the (possibly unchanged) set and its fidelity

    """
    variable = [i for i in range(len(current)) if i not in fixed_indices]
    if not variable:
        return MCStep(False, current, current_fidelity)
    idx = variable[rng.randrange(len(variable))]
    used = set(current)
    available = [oh for oh in pool if not collides(oh, used)]
    if not available:
        return MCStep(False, current, current_fidelity)
    proposal = list(current)
    proposal[idx] = available[rng.randrange(len(available))]
    new_fidelity = setFidelity(proposal, matrix, mode)
    delta = new_fidelity - current_fidelity
    if delta > 0 or rng.random() < acceptanceProbability(delta, exponent):
        return MCStep(True, proposal, new_fidelity)
    return MCStep(False, current, current_fidelity)


def _acceptanceRatio(start, pool, matrix, exponent, rng, iterations, mode):
    current = list(start)
    fidelity = setFidelity(current, matrix, mode)
    accepted = 0
    for _ in range(iterations):
        step = mcStep(current, fidelity, pool, matrix, exponent, rng,
                      mode=mode)
        if step.accepted:
            accepted += 1
            current, fidelity = step.overhangs, step.fidelity
    return accepted / float(iterations)


def findAnnealingTemperature(target_ar, pool, size, matrix, rng=None,
                             iterations=1000, mode=FIDELITY_MODE_PAIRWISE):
    """Temperature exponent giving an acceptance ratio near ``target_ar``.

    The integer exponent is stepped from 0 (down when too many moves are
    accepted, up when too few) until the measured ratio crosses the target,
    then refined by bisection between the two bracketing exponents. Each
    measurement is a trial annealing run of ``iterations`` steps from the
    same random start.

    Returns:
        Exponent (float); the temperature is ``2 ** exponent``

    """
    if rng is None:
        rng = random.Random()
    iterations = max(1, int(iterations))
    start = _randomSet(pool, size, rng)

    def measure(exponent):
        return _acceptanceRatio(start, pool, matrix, exponent, rng,
                                iterations, mode)

    exponent = 0
    ratio = measure(exponent)
    if ratio == target_ar:
        return float(exponent)
    step = -1 if ratio > target_ar else 1
    previous = exponent
    crossed = False
    for _ in range(MAX_TEMPERATURE_STEPS):
        previous = exponent
        exponent += step
        ratio = measure(exponent)
        if (step < 0 and ratio <= target_ar) or \
                (step > 0 and ratio >= target_ar):
            crossed = True
            break
    if not crossed:
        logger.warning('Acceptance ratio %.3f did not reach the target %.3f',
                       ratio, target_ar)
        return float(exponent)

    # Acceptance grows with the exponent
    low, high = sorted((previous, exponent))
    for _ in range(BISECTION_STEPS):
        mid = (low + high) / 2.0
        if measure(mid) > target_ar:
            high = mid
        else:
            low = mid
    return (low + high) / 2.0


AnnealingResult = namedtuple('AnnealingResult',
        ['overhangs', 'fidelity', 'acceptance_ratio', 'iterations'])


def runMonteCarlo(initial, pool, matrix, exponent, rng, iterations,
                  fixed_indices=frozenset(), mode=FIDELITY_MODE_PAIRWISE):
    """Anneal from ``initial`` and return the best set seen."""
    current = list(initial)
    current_fidelity = setFidelity(current, matrix, mode)
    best, best_fidelity = list(current), current_fidelity
    accepted = 0
    for _ in range(iterations):
        step = mcStep(current, current_fidelity, pool, matrix, exponent, rng,
                      fixed_indices, mode)
        if not step.accepted:
            continue
        accepted += 1
        current, current_fidelity = step.overhangs, step.fidelity
        if current_fidelity > best_fidelity:
            best, best_fidelity = list(current), current_fidelity
    return AnnealingResult(best, best_fidelity,
                           accepted / float(iterations) if iterations else 0.0,
                           iterations)


# ~~~~~~~~~~~~~~~~~~~~~~~~~~~~ Public interface ~~~~~~~~~~~~~~~~~~~~~~~~~~~~ #

PoolJunction = namedtuple('PoolJunction',
        ['index', 'overhang', 'reverse_complement', 'fidelity',
         'is_required', 'gc_count', 'at_count'])

OverhangSetResult = namedtuple('OverhangSetResult',
        ['enzyme',
         'overhangs',
         'fidelity',
         'junctions',           # List of PoolJunction
         'weakest',             # Lowest fidelity PoolJunction
         'strongest',
         'required',
         'excluded',
         'metrics'              # iterations, acceptance ratio, temperature...
         ])


def _requireMatrix(ligation_data, enzyme):
    matrix = getMatrix(ligation_data, enzyme)
    if matrix is None:
        raise ValueError('No ligation data for %s (%s); overhang set design '
                         'requires a ligation matrix' %
                         (enzyme.name, enzyme.data_key))
    return matrix


def _junctionDetails(overhangs, matrix, required, mode):
    details = []
    for i, oh in enumerate(overhangs):
        jf = junctionFidelity(oh, overhangs, matrix, mode=mode)
        details.append(PoolJunction(i, oh, rc(oh), jf.fidelity,
                                    oh in required, countGC(oh),
                                    countAT(oh)))
    return details


def evaluateOverhangSet(overhangs, enzyme='BsaI', ligation_data=None,
                        mode=FIDELITY_MODE_PAIRWISE):
    """Per-junction fidelity breakdown of an existing overhang set.

    Raises:
        ``ValueError`` for an unknown enzyme or missing ligation data

    """
    enzyme = getEnzyme(enzyme)
    matrix = _requireMatrix(ligation_data, enzyme)
    overhangs = [oh.upper() for oh in overhangs]
    details = _junctionDetails(overhangs, matrix, (), mode)
    ordered = sorted(details, key=lambda j: j.fidelity)
    return OverhangSetResult(
        enzyme.name, overhangs, setFidelity(overhangs, matrix, mode), details,
        ordered[0] if ordered else None, ordered[-1] if ordered else None,
        [], [], {'mode': mode, 'model': ASSEMBLY_FIDELITY_MODEL})


Alternative = namedtuple('Alternative',
        ['overhang',
         'reverse_complement',
         'junction_fidelity',   # Fidelity of the replacement within the set
         'assembly_fidelity',   # Set fidelity after the replacement
         'improvement'          # junction_fidelity minus the replaced one's
         ])


def findBetterAlternatives(overhangs, index, enzyme='BsaI', ligation_data=None,
                           top_n=5, excluded=(), mode=FIDELITY_MODE_PAIRWISE):
    """Rank replacements for the overhang at ``index`` of an existing set.

    Candidates are the non-palindromic overhangs with observed correct
    ligation that do not collide with any other member of the set (or with
    ``excluded``).

    Args:
        overhangs (list)                : current overhang set
        index (int)                     : position of the overhang to replace
        enzyme (str)                    : enzyme identifier
        ligation_data (LigationData)    : ligation data
        top_n (int)                     : number of alternatives to return
        excluded (iterable)             : overhangs that may not be used
        mode (str)                      : fidelity mode

    Returns:
        Up to ``top_n`` ``Alternative`` tuples, best assembly fidelity first

    Raises:
        ``ValueError`` for an unknown enzyme, missing ligation data or an
        ``index`` outside the set

    """
    enzyme = getEnzyme(enzyme)
    matrix = _requireMatrix(ligation_data, enzyme)
    overhangs = [oh.upper() for oh in overhangs]
    if not 0 <= index < len(overhangs):
        raise ValueError('Index %d is outside the overhang set (%d members)' %
                         (index, len(overhangs)))
    current = junctionFidelity(overhangs[index], overhangs, matrix,
                               mode=mode).fidelity
    pool = filterOverhangPool(matrix.overhangs, matrix,
                              list(excluded) + overhangs)
    alternatives = []
    for candidate in pool:
        if not matrix.hasData(candidate):
            continue
        trial = list(overhangs)
        trial[index] = candidate
        jf = junctionFidelity(candidate, trial, matrix, mode=mode).fidelity
        alternatives.append(Alternative(candidate, rc(candidate), jf,
                                        setFidelity(trial, matrix, mode),
                                        jf - current))
    alternatives.sort(key=lambda a: a.assembly_fidelity, reverse=True)
    logger.debug('%d replacement candidates for %s at index %d',
                 len(alternatives), overhangs[index], index)
    return alternatives[:top_n]


def optimizeOverhangSet(num_junctions, enzyme='BsaI', ligation_data=None,
                        required=(), excluded=(), max_gc=-1, max_at=-1,
                        min_ligation_efficiency=-1, iterations=None,
                        target_acceptance_ratio=None, params=None, rng=None,
                        mode=FIDELITY_MODE_PAIRWISE):
    """Design a high-fidelity set of ``num_junctions`` overhangs.

    Args:
        num_junctions (int)             : set size (2-50)
        enzyme (str)                    : enzyme identifier
        ligation_data (LigationData)    : must hold a matrix for ``enzyme``
        required (iterable)             : overhangs that must be in the set
                                          (kept at fixed indices)
        excluded (iterable)             : overhangs (and their reverse
                                          complements) that may not be used
        max_gc, max_at (int)            : composition limits (-1 disables)
        min_ligation_efficiency (float) : self-ligation minimum (-1 disables)
        iterations (int, optional)      : annealing iterations (defaults to
                                          the ``pool_iterations`` parameter)
        target_acceptance_ratio (float) : temperature calibration target
                                          (defaults to the parameter)
        params (dict or Params)         : parameter overrides
        rng (random.Random)             : random source; seeded from
                                          ``params.seed`` when omitted
        mode (str)                      : fidelity mode

    Returns:
        ``OverhangSetResult``

    Raises:
        ``ValueError`` for an out-of-range size, unknown enzyme, missing
        ligation data, an excluded or invalid required overhang, or a pool
        too small for the requested size

    """
    params = buildParams(params)
    if not MIN_JUNCTIONS <= num_junctions <= MAX_JUNCTIONS:
        raise ValueError('num_junctions must be between %d and %d' %
                         (MIN_JUNCTIONS, MAX_JUNCTIONS))
    enzyme = getEnzyme(enzyme)
    matrix = _requireMatrix(ligation_data, enzyme)
    if iterations is None:
        iterations = params.pool_iterations
    if target_acceptance_ratio is None:
        target_acceptance_ratio = params.target_acceptance_ratio
    if rng is None:
        rng = random.Random(params.seed)

    excluded = [oh.upper() for oh in excluded]
    pool = filterOverhangPool(matrix.overhangs, matrix, excluded, max_gc,
                              max_at, min_ligation_efficiency)
    pool_set = set(pool)
    required = [oh.upper() for oh in required]
    excluded_set = set(excluded) | set(rc(oh) for oh in excluded)
    for oh in required:
        if oh in excluded_set:
            raise ValueError('Required overhang %s is also excluded' % oh)
        if oh not in pool_set:
            raise ValueError("Required overhang %s is not valid or doesn't "
                             "meet constraints" % oh)
    if len(required) > num_junctions:
        raise ValueError('%d required overhangs exceed the set size %d' %
                         (len(required), num_junctions))
    for i, oh in enumerate(required):
        if collides(oh, set(required[:i])):
            raise ValueError('Required overhangs collide: %s' % oh)
    if len(pool) < num_junctions:
        raise ValueError('Not enough valid overhangs (%d) to create %d '
                         'junctions; try relaxing constraints' %
                         (len(pool), num_junctions))

    initial = _randomSet(pool, num_junctions, rng, required)
    if len(initial) < num_junctions:
        raise ValueError('Could not create an initial set of %d overhangs; '
                         'only %d non-colliding overhangs are available' %
                         (num_junctions, len(initial)))

    exponent = findAnnealingTemperature(
        target_acceptance_ratio, pool, num_junctions, matrix, rng,
        min(iterations // 10, 1000), mode)
    logger.info('Annealing %d overhangs from a pool of %d at 2**%.2f',
                num_junctions, len(pool), exponent)
    fixed = frozenset(range(len(required)))
    result = runMonteCarlo(initial, pool, matrix, exponent, rng, iterations,
                           fixed, mode)

    details = _junctionDetails(result.overhangs, matrix, set(required), mode)
    ordered = sorted(details, key=lambda j: j.fidelity)
    metrics = {
        'iterations': iterations,
        'acceptance_ratio': result.acceptance_ratio,
        'temperature_exponent': exponent,
        'temperature': 2.0 ** exponent,
        'pool_size': len(pool),
        'mode': mode,
        'model': ASSEMBLY_FIDELITY_MODEL,
    }
    return OverhangSetResult(enzyme.name, result.overhangs, result.fidelity,
                             details, ordered[0], ordered[-1], required,
                             excluded, metrics)


MultiRunResult = namedtuple('MultiRunResult',
        ['best',                # OverhangSetResult with the highest fidelity
         'all_fidelities',
         'average_fidelity',
         'best_run_index'])


def optimizeOverhangSetMultiRun(num_junctions, runs=5, **kwargs):
    """Repeat :func:`optimizeOverhangSet` and keep the best run.

    Keyword arguments are passed through; a shared ``rng`` (if given) is
    consumed by the runs in order.
    """
    if runs < 1:
        raise ValueError('runs must be at least 1')
    if kwargs.get('rng') is None:
        kwargs['rng'] = random.Random(buildParams(kwargs.get('params')).seed)
    results = [optimizeOverhangSet(num_junctions, **kwargs)
               for _ in range(runs)]
    fidelities = [r.fidelity for r in results]
    best_idx = int(np.argmax(fidelities))
    return MultiRunResult(results[best_idx], fidelities,
                          float(np.mean(fidelities)), best_idx)


RandomSetStatistics = namedtuple('RandomSetStatistics',
        ['enzyme',
         'num_junctions',
         'num_sets',
         'best',                # (overhangs, fidelity)
         'worst',
         'mean',
         'std',
         'min',
         'max',
         'median',
         'percentiles',         # {90: ..., 75: ..., 50: ..., 25: ..., 10: ...}
         'results'              # All (overhangs, fidelity), best first
         ])


def scoreRandomOverhangSets(num_junctions, enzyme='BsaI', ligation_data=None,
                            num_sets=100, excluded=(), rng=None,
                            mode=FIDELITY_MODE_PAIRWISE):
    """Fidelity distribution of random (non-colliding) overhang sets.

    Useful as a baseline for judging an optimized set.
    """
    enzyme = getEnzyme(enzyme)
    matrix = _requireMatrix(ligation_data, enzyme)
    if rng is None:
        rng = random.Random()
    pool = filterOverhangPool(matrix.overhangs, matrix, excluded)
    results = []
    for _ in range(num_sets):
        overhangs = _randomSet(pool, num_junctions, rng)
        results.append((overhangs, setFidelity(overhangs, matrix, mode)))
    results.sort(key=lambda r: r[1], reverse=True)
    fidelities = np.array([r[1] for r in results], dtype=np.float64)
    if not results:
        return RandomSetStatistics(enzyme.name, num_junctions, 0, None, None,
                                   0.0, 0.0, 0.0, 0.0, 0.0, {}, [])
    percentiles = {p: float(np.percentile(fidelities, p))
                   for p in (90, 75, 50, 25, 10)}
    return RandomSetStatistics(
        enzyme.name, num_junctions, num_sets, results[0], results[-1],
        float(fidelities.mean()), float(fidelities.std()),
        float(fidelities.min()), float(fidelities.max()),
        float(np.median(fidelities)), percentiles, results)
