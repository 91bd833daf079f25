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
ggfusion.sequtil
~~~~~~~~~~~~~~~~

Small sequence helpers shared by the fidelity model, scanner and scorers.
Overhangs are always handled as uppercase ``str`` objects.

"""
import itertools
import re

from Bio.Seq import reverse_complement
from Bio.SeqUtils import gc_fraction

# ~~~~~~~~~~~~~~~~~~~~~ Function aliases for convenience ~~~~~~~~~~~~~~~~~~~~ #

rc = reverse_complement

BASES = 'ACGT'

_VALID_RE = re.compile(r'^[ACGT]+$')


def normalizeSequence(seq):
    """Return an uppercase copy of ``seq`` (``None`` becomes '')."""
    return (seq or '').upper()


def isValidOverhang(overhang):
    return _VALID_RE.match(overhang) is not None


def isPalindrome(overhang):
    """True if the overhang is its own reverse complement (e.g., GATC)."""
    return overhang == rc(overhang)


def isHomopolymer(overhang):
    return len(overhang) > 0 and len(set(overhang)) == 1


def countGC(seq):
    return seq.count('G') + seq.count('C')


def gcFraction(seq):
    """GC fraction (0-1) of ``seq``; ambiguous bases are ignored."""
    if not seq:
        return 0.0
    return gc_fraction(seq, ambiguous='ignore')


def longestRun(seq):
    """Length of the longest single-base run in ``seq``."""
    longest = 0
    for _, group in itertools.groupby(seq):
        longest = max(longest, sum(1 for _ in group))
    return longest


def hammingDistance(seq1, seq2):
    return sum(1 for a, b in zip(seq1, seq2) if a != b)


def allOverhangs(length):
    """Every ACGT string of ``length`` in lexicographic order.

    The ordering doubles as the row/column index of a dense
    :class:`ggfusion.ligation.LigationMatrix`.
    """
    return [''.join(p) for p in itertools.product(BASES, repeat=length)]


def collides(overhang, used):
    """True if ``overhang`` or its reverse complement is in ``used``."""
    return overhang in used or rc(overhang) in used


def findCollisions(overhangs):
    """Index pairs ``(i, j)`` whose overhangs are equal or complementary."""
    collisions = []
    for i, oh1 in enumerate(overhangs):
        oh1_rc = rc(oh1)
        for j in range(i + 1, len(overhangs)):
            if overhangs[j] == oh1 or overhangs[j] == oh1_rc:
                collisions.append((i, j))
    return collisions
