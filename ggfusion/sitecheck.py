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
ggfusion.sitecheck
~~~~~~~~~~~~~~~~~~

Checks whether a junction (and the primers that build it) would create new
recognition sites for the assembly enzyme. Existing internal sites are
reported separately by :func:`ggfusion.enzymes.findInternalSites`.

Three places are checked around a junction at ``position``:

    1. the sequence immediately around the overhang (a site that does not
       overlap the overhang would be re-cut),
    2. the forward primer tail ``flank + recognition + N * offset + overhang``
       (ignoring the designed site itself),
    3. the assembled product spanning the scar.

"""
from collections import namedtuple

from .enzymes import getEnzyme
from .sequtil import normalizeSequence, rc


SiteRisk = namedtuple('SiteRisk',
        ['type',                # 'junction_context', 'primer_internal_site',
                                # 'upstream_product_site',
                                # 'downstream_product_site' or
                                # 'inter_junction_site'
         'position',            # Sequence (or primer tail) coordinate
         'site',
         'severity',            # 'high' or 'medium'
         'message'
         ])

SiteCreationResult = namedtuple('SiteCreationResult',
        ['enzyme',
         'position',
         'overhang',
         'risks',               # List of SiteRisk
         'high_risk_count',
         'medium_risk_count',
         'severity',            # 'safe', 'warning' or 'critical'
         'error'                # Set when the position is unusable
         ])


def _isSite(window, recognition, recognition_rc):
    return window == recognition or window == recognition_rc


def _severity(risks):
    if any(r.severity == 'high' for r in risks):
        return 'critical'
    if any(r.severity == 'medium' for r in risks):
        return 'warning'
    return 'safe'


def checkSiteCreation(seq, position, enzyme, flanking=None):
    """Check whether a junction at ``position`` creates enzyme sites.

    Args:
        seq (str)                   : full sequence
        position (int)              : 0-based start of the overhang
        enzyme (str)                : enzyme identifier
        flanking (str, optional)    : 5' primer flank; defaults to the
                                      enzyme's recommended flank

    Returns:
        ``SiteCreationResult``

    Raises:
        ``ValueError`` for an unknown enzyme

    """
    enzyme = getEnzyme(enzyme)
    seq = normalizeSequence(seq)
    recog = enzyme.recognition
    recog_rc = rc(recog)
    rl = len(recog)
    ohl = enzyme.overhang_length
    if flanking is None:
        flanking = enzyme.flanking

    overhang = seq[position:position + ohl]
    if position < 0 or len(overhang) != ohl:
        return SiteCreationResult(enzyme.name, position, '', [], 0, 0,
                                  'safe', 'Position too close to sequence '
                                  'end')

    risks = []

    # Sites within one site length of (but not overlapping) the overhang
    ctx_start = max(0, position - rl)
    ctx_end = min(len(seq), position + ohl + rl)
    for i in range(ctx_start, ctx_end - rl + 1):
        window = seq[i:i + rl]
        if not _isSite(window, recog, recog_rc):
            continue
        if i < position + ohl and i + rl > position:
            continue
        risks.append(SiteRisk(
            'junction_context', i, window, 'high',
            'Recognition site %s found near junction at position %d' %
            (window, i)))

    # Sites created inside the forward primer tail
    tail = flanking + recog + 'N' * enzyme.cut_offset + overhang
    designed = len(flanking)
    for i in range(len(tail) - rl + 1):
        if designed <= i < designed + rl:
            continue
        window = tail[i:i + rl]
        if _isSite(window, recog, recog_rc):
            risks.append(SiteRisk(
                'primer_internal_site', i, window, 'medium',
                'Flanking+overhang combination creates internal %s site' %
                enzyme.name))

    # Sites spanning the scar in the assembled product
    if position >= rl:
        start = position + ohl - rl
        window = seq[start:position + ohl]
        if _isSite(window, recog, recog_rc):
            risks.append(SiteRisk(
                'upstream_product_site', start, window, 'high',
                'Assembly product will contain %s site upstream of junction'
                % enzyme.name))
    if position + ohl + rl <= len(seq):
        for i in range(position + 1, position + ohl):
            window = seq[i:i + rl]
            if _isSite(window, recog, recog_rc):
                risks.append(SiteRisk(
                    'downstream_product_site', i, window, 'high',
                    'Assembly product will contain %s site at junction' %
                    enzyme.name))

    return SiteCreationResult(
        enzyme.name, position, overhang, risks,
        sum(1 for r in risks if r.severity == 'high'),
        sum(1 for r in risks if r.severity == 'medium'),
        _severity(risks), None)


SafeJunctionSearch = namedtuple('SafeJunctionSearch',
        ['target_position',
         'target_check',        # SiteCreationResult at the target
         'alternatives',        # List of (position, offset) pairs
         'closest_safe'         # Closest safe position or None
         ])


def findSafeJunctionNear(seq, target_position, enzyme, search_radius=20,
                         max_alternatives=5, flanking=None):
    """Find risk-free junction positions closest to ``target_position``.

    Positions are tried at increasing offsets, downstream before upstream.
    """
    enzyme = getEnzyme(enzyme)
    seq = normalizeSequence(seq)
    alternatives = []
    for offset in range(search_radius + 1):
        for pos in ((target_position,) if offset == 0 else
                    (target_position + offset, target_position - offset)):
            if pos < 0 or pos + enzyme.overhang_length > len(seq):
                continue
            check = checkSiteCreation(seq, pos, enzyme, flanking)
            if check.error is None and not check.risks:
                alternatives.append((pos, pos - target_position))
            if len(alternatives) >= max_alternatives:
                break
        if len(alternatives) >= max_alternatives:
            break
    target_check = checkSiteCreation(seq, target_position, enzyme, flanking)
    return SafeJunctionSearch(target_position, target_check, alternatives,
                              alternatives[0][0] if alternatives else None)


def validateJunctionSet(seq, positions, enzyme):
    """Check every junction plus the sequence between consecutive overhangs.

    Returns:
        ``(junction_results, inter_junction_risks)`` where the first is a
        list of ``SiteCreationResult`` and the second a list of
        ``SiteRisk``; the set is valid when neither reports a risk.

    """
    enzyme = getEnzyme(enzyme)
    seq = normalizeSequence(seq)
    positions = sorted(positions)
    junction_results = [checkSiteCreation(seq, pos, enzyme)
                        for pos in positions]
    recog = enzyme.recognition
    inter_risks = []
    for i in range(len(positions) - 1):
        start = positions[i] + enzyme.overhang_length
        segment = seq[start:positions[i + 1]]
        for site in sorted(set([recog, rc(recog)])):
            idx = segment.find(site)
            while idx != -1:
                inter_risks.append(SiteRisk(
                    'inter_junction_site', start + idx, site, 'high',
                    'Fragment %d contains a %s site' % (i, enzyme.name)))
                idx = segment.find(site, idx + 1)
    return junction_results, inter_risks
