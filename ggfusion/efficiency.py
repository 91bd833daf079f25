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
ggfusion.efficiency
~~~~~~~~~~~~~~~~~~~

Heuristic ligation-efficiency penalties for individual overhangs.

Penalties are multiplicative factors <= 1 applied on top of ligation
fidelity. A literal lookup table covers overhangs known to ligate poorly;
pattern penalties cover composition classes (TNNA, extreme GC, homopolymer
runs, near-palindromes). When both apply, the pattern factor is damped to
30% of its nominal strength so a single cause is not counted twice.
Palindromic overhangs are excluded outright (efficiency 0).

"""
import re

from collections import namedtuple

from .sequtil import countGC, hammingDistance, isPalindrome, isHomopolymer, rc


# Overhangs with known poor ligation efficiency
SPECIFIC_PENALTIES = {
    'TAAA': 0.65, 'TTTA': 0.65,
    'AAAA': 0.55, 'TTTT': 0.55,
    'CCCC': 0.50, 'GGGG': 0.45,
    'ATAT': 0.50, 'TATA': 0.50,
    'GCGC': 0.45, 'CGCG': 0.45,
    'ACGT': 0.40, 'CATG': 0.35, 'GATC': 0.30,
}

# Pattern penalty factors
PATTERN_PENALTIES = {
    'TNNA': 0.70,
    'HIGH_GC': 0.85,
    'LOW_GC': 0.80,
    'HOMOPOLYMER': 0.65,
    'NEAR_PALINDROME': 0.75,
}

# Fraction of a pattern penalty kept when a specific penalty also applies
PATTERN_DAMPING = 0.3

OPTIMAL_EFFICIENCY = 0.90
ACCEPTABLE_EFFICIENCY = 0.70

_TNNA_RE = re.compile(r'^T..A$')
_HOMOPOLYMER_RUN_RE = re.compile(r'(.)\1{2,}')


EfficiencyResult = namedtuple('EfficiencyResult',
        ['overhang',
         'efficiency',          # Product of all penalty factors (0-1)
         'penalties',           # Tuple of (name, applied factor) pairs
         'warnings',            # Tuple of human readable warnings
         'gc_count',
         'is_palindrome',
         'is_homopolymer',
         'is_tnna',
         'is_optimal',          # efficiency >= OPTIMAL_EFFICIENCY
         'is_acceptable'        # efficiency >= ACCEPTABLE_EFFICIENCY
         ])


def _patternPenalties(overhang, gc_count):
    found = []
    if _TNNA_RE.match(overhang):
        found.append(('TNNA', 'TNNA pattern ligates inefficiently'))
    if gc_count == len(overhang):
        found.append(('HIGH_GC', '100% GC content'))
    elif gc_count == 0:
        found.append(('LOW_GC', '0% GC content'))
    if _HOMOPOLYMER_RUN_RE.search(overhang):
        found.append(('HOMOPOLYMER', 'contains a homopolymer run'))
    if hammingDistance(overhang, rc(overhang)) == 1:
        found.append(('NEAR_PALINDROME', 'one mismatch from palindromic'))
    return found


def calculateEfficiency(overhang):
    """Estimate the relative ligation efficiency of a single overhang.

    Args:
        overhang (str)  : uppercase overhang sequence

    Returns:
        ``EfficiencyResult``

    """
    overhang = overhang.upper()
    gc_count = countGC(overhang)
    palindrome = isPalindrome(overhang)
    homopolymer = isHomopolymer(overhang)
    is_tnna = _TNNA_RE.match(overhang) is not None

    if palindrome:
        return EfficiencyResult(overhang, 0.0, (('PALINDROME', 0.0),),
                                ('%s is palindromic and self-ligates' %
                                 overhang,),
                                gc_count, True, homopolymer, is_tnna,
                                False, False)

    efficiency = 1.0
    penalties = []
    warnings = []
    specific = SPECIFIC_PENALTIES.get(overhang)
    if specific is not None:
        efficiency *= specific
        penalties.append(('SPECIFIC', specific))
        warnings.append('%s has known low ligation efficiency' % overhang)

    for name, message in _patternPenalties(overhang, gc_count):
        factor = PATTERN_PENALTIES[name]
        if specific is not None:
            factor = 1 - (1 - factor) * PATTERN_DAMPING
        efficiency *= factor
        penalties.append((name, factor))
        warnings.append('%s: %s' % (overhang, message))

    return EfficiencyResult(overhang, efficiency, tuple(penalties),
                            tuple(warnings), gc_count, False, homopolymer,
                            is_tnna, efficiency >= OPTIMAL_EFFICIENCY,
                            efficiency >= ACCEPTABLE_EFFICIENCY)


SetEfficiency = namedtuple('SetEfficiency',
        ['individual',          # Tuple of EfficiencyResult
         'combined',            # Product of individual efficiencies
         'average',
         'problems'             # Overhangs that are not acceptable
         ])


def calculateSetEfficiency(overhangs):
    individual = tuple(calculateEfficiency(oh) for oh in overhangs)
    combined = 1.0
    for res in individual:
        combined *= res.efficiency
    average = (sum(res.efficiency for res in individual) / len(individual)
               if individual else 0.0)
    problems = tuple(res.overhang for res in individual
                     if not res.is_acceptable)
    return SetEfficiency(individual, combined, average, problems)
