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
ggfusion.context
~~~~~~~~~~~~~~~~

Biological context of a junction: reading-frame alignment, protein domain
integrity and the scar that the overhang leaves in the assembled product.

Scar contexts:

    coding      overhang lies within an open reading frame
    linker      overhang lies in a linker between protein domains
    startCodon  overhang should carry the start codon (MoClo AATG)
    stopCodon   overhang follows the end of a CDS
    nonCoding   promoters, terminators etc. (no preference)

"""
from collections import namedtuple

from Bio.Data import CodonTable

# ~~~~~~~~~~~~~~~~~~~~~~~~~~ Codon table shortcuts ~~~~~~~~~~~~~~~~~~~~~~~~~ #

_STANDARD_TABLE = CodonTable.unambiguous_dna_by_id[1]
STOP_CODONS = tuple(sorted(_STANDARD_TABLE.stop_codons))
CODON_TO_AA = dict(_STANDARD_TABLE.forward_table)
CODON_TO_AA.update((codon, '*') for codon in STOP_CODONS)


ScarPreference = namedtuple('ScarPreference',
        ['preferred', 'avoid', 'avoid_penalty', 'preferred_bonus'])

SCAR_PREFERENCES = {
    'coding': ScarPreference(
        preferred=('GGAG', 'GGTG', 'GCAG', 'AATG', 'GCTT', 'TACT', 'AGGT',
                   'GCTG', 'TCTG'),
        # Stop codons in frame 0 (TGAT, TAAT, TAGT), 1 (ATGA, ATAA, CTAG)
        # and 2 (GTAA, GTAG, GTGA)
        avoid=('TGAT', 'TAAT', 'TAGT', 'ATGA', 'ATAA', 'CTAG', 'GTAA',
               'GTAG', 'GTGA'),
        avoid_penalty=50,
        preferred_bonus=10),
    'linker': ScarPreference(
        preferred=('GGAG', 'GGTG', 'GGCG', 'GCAG', 'TCTG', 'TCAG'),
        avoid=(), avoid_penalty=50, preferred_bonus=15),
    'startCodon': ScarPreference(
        preferred=('AATG', 'CATG', 'GATG', 'TATG'),
        avoid=(), avoid_penalty=50, preferred_bonus=20),
    'stopCodon': ScarPreference(
        preferred=('AGGT', 'GCTT'),
        avoid=(), avoid_penalty=50, preferred_bonus=10),
    'nonCoding': ScarPreference(
        preferred=(), avoid=(), avoid_penalty=0, preferred_bonus=0),
}

SCAR_BASE_SCORE = 80
STOP_CODON_PENALTY = 40


# ~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~ Stop codons ~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~ #

StopCodon = namedtuple('StopCodon',
        ['frame',               # 0, 1 or 2
         'codon',
         'position'             # Start relative to the overhang (-2 for
                                # frame 2, which borrows upstream bases)
         ])


def checkStopCodons(overhang, context_before=''):
    """Stop codons an overhang would place in any reading frame.

    Frames 0 and 1 read codons from within the overhang; frame 2 needs the
    last two upstream bases and is only checked when they are given.

    Returns:
        List of ``StopCodon`` tuples (empty if the scar is safe)

    """
    overhang = overhang.upper()
    before = context_before.upper()
    found = []
    for frame in (0, 1):
        codon = overhang[frame:frame + 3]
        if codon in STOP_CODONS:
            found.append(StopCodon(frame, codon, frame))
    if len(before) >= 2:
        codon = before[-2:] + overhang[:1]
        if codon in STOP_CODONS:
            found.append(StopCodon(2, codon, -2))
    return found


def translateOverhang(overhang, context_before=''):
    """Amino acid encoded by the overhang in each checkable frame.

    Returns:
        ``{frame: (codon, amino acid)}`` using '*' for stops and '?' for
        codons with ambiguous bases
    """
    overhang = overhang.upper()
    before = context_before.upper()
    translations = {}
    for frame in (0, 1):
        codon = overhang[frame:frame + 3]
        if len(codon) == 3:
            translations[frame] = (codon, CODON_TO_AA.get(codon, '?'))
    if len(before) >= 2 and overhang:
        codon = before[-2:] + overhang[0]
        translations[2] = (codon, CODON_TO_AA.get(codon, '?'))
    return translations


# ~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~ Scar scoring ~~~~~~~~~~~~~~~~~~~~~~~~~~~~~ #

ScarNote = namedtuple('ScarNote', ['type', 'message'])

ScarScore = namedtuple('ScarScore',
        ['overhang',
         'context',
         'score',               # 0-100
         'is_preferred',
         'is_avoided',
         'notes',               # List of ScarNote ('info', 'warning', 'error')
         'quality'              # 'excellent', 'good', 'acceptable', 'poor'
         ])


def scarQuality(score):
    if score >= 90:
        return 'excellent'
    if score >= 70:
        return 'good'
    if score >= 50:
        return 'acceptable'
    return 'poor'


def scoreScarSequence(overhang, context='nonCoding'):
    """Score the scar left by ``overhang`` in a given context.

    Unknown contexts are scored as 'nonCoding'.
    """
    prefs = SCAR_PREFERENCES.get(context, SCAR_PREFERENCES['nonCoding'])
    overhang = overhang.upper()
    score = SCAR_BASE_SCORE
    notes = []
    is_avoided = overhang in prefs.avoid
    is_preferred = overhang in prefs.preferred
    if is_avoided:
        score -= prefs.avoid_penalty
        notes.append(ScarNote('warning', 'Overhang %s may create problematic '
                              'scar sequence in %s context' %
                              (overhang, context)))
    if is_preferred:
        score += prefs.preferred_bonus
        notes.append(ScarNote('info', 'Overhang %s creates favorable scar '
                              'sequence for %s' % (overhang, context)))
    if context in ('coding', 'linker'):
        stops = checkStopCodons(overhang)
        if stops:
            score -= STOP_CODON_PENALTY
            notes.append(ScarNote('error', 'Contains stop codon(s) in frame '
                                  '%s' % ', '.join(str(s.frame)
                                                   for s in stops)))
    score = max(0, min(100, score))
    return ScarScore(overhang, context, score, is_preferred, is_avoided,
                     notes, scarQuality(score))


ScarSetScore = namedtuple('ScarSetScore',
        ['context', 'individual', 'average_score', 'worst_score',
         'problematic'])


def scoreScarSet(overhangs, context='nonCoding'):
    individual = [scoreScarSequence(oh, context) for oh in overhangs]
    if not individual:
        return ScarSetScore(context, [], 0, 0, [])
    return ScarSetScore(
        context, individual,
        int(round(sum(s.score for s in individual) / float(len(individual)))),
        min(s.score for s in individual),
        [s.overhang for s in individual if s.score < 70])


def findBestScarCandidate(candidates, context='nonCoding'):
    """Scar scores for ``candidates``, best first (ties keep input order)."""
    return sorted((scoreScarSequence(oh, context) for oh in candidates),
                  key=lambda s: s.score, reverse=True)


def recommendScarContexts(num_junctions, is_coding=False,
                          has_start_codon=False, has_stop_codon=False,
                          is_linker=False):
    """Suggested scar context for each junction of an assembly."""
    contexts = []
    for idx in range(num_junctions):
        if not is_coding:
            contexts.append('nonCoding')
        elif idx == 0 and has_start_codon:
            contexts.append('startCodon')
        elif idx == num_junctions - 1 and has_stop_codon:
            contexts.append('stopCodon')
        elif is_linker:
            contexts.append('linker')
        else:
            contexts.append('coding')
    return contexts


# ~~~~~~~~~~~~~~~~~~~~~~~~~~~ Frame / domain scoring ~~~~~~~~~~~~~~~~~~~~~~~~ #

def scoreCodonBoundary(position, coding_frame=None):
    """100 at a codon boundary, 80 one base in, 60 two bases in."""
    if coding_frame is None:
        return 100
    pos_in_codon = (position - coding_frame) % 3
    if pos_in_codon == 0:
        return 100
    if pos_in_codon == 1:
        return 80
    return 60


def scoreDomainIntegrity(position, protein_domains=()):
    """Penalize junctions that split (30) or crowd (70) a protein domain.

    Domains are checked in order and the first one that applies decides
    the score.
    """
    for domain in protein_domains:
        start, end = domain[0], domain[1]
        if start < position < end:
            return 30
        if abs(position - start) < 10 or abs(position - end) < 10:
            return 70
    return 100
