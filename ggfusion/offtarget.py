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
ggfusion.offtarget
~~~~~~~~~~~~~~~~~~

Check the 5' primer flank (the bases ahead of the recognition site, which
are not meant to bind the template) for potential mispriming against the
template sequence.

Under the hood the hamming distance between the flank and every template
window of the same length is computed with numpy for both the flank and
its reverse complement (i.e., both template strands).

"""
from collections import namedtuple

import numpy as np

from .params import buildParams
from .sequtil import normalizeSequence, rc

MISPRIMING_PENALTIES = {'none': 0, 'low': 5, 'medium': 15, 'high': 25}


MisprimingMatch = namedtuple('MisprimingMatch',
        ['type',                # 'direct' or 'reverse_complement'
         'position',            # 0-based template index of the window
         'match_length',        # Matching bases in the window
         'mismatches',
         'template_region'
         ])

MisprimingRisk = namedtuple('MisprimingRisk',
        ['risk',                # 'none', 'low', 'medium' or 'high'
         'matches',             # List of MisprimingMatch
         'best_match',          # Longest MisprimingMatch or None
         'penalty'              # Risk score penalty (MISPRIMING_PENALTIES)
         ])


def _asArray(seq):
    return np.frombuffer(seq.encode('ascii'), dtype=np.uint8)


def rollingHammingDistance(query, template):
    """Hamming distance of ``query`` against every same-length window.

    Returns:
        numpy integer array of length ``len(template) - len(query) + 1``
        (empty when the template is shorter than the query)

    """
    if len(template) < len(query) or not query:
        return np.zeros(0, dtype=np.intp)
    windows = np.lib.stride_tricks.sliding_window_view(_asArray(template),
                                                       len(query))
    return (windows != _asArray(query)).sum(axis=1)


def checkFlankingMispriming(flank, template, params=None):
    """Assess how strongly ``flank`` could prime off ``template``.

    A template window is a hit when it is within ``max_mismatches`` of the
    flank (or of its reverse complement) and the number of matching bases
    is at least ``min_match_length``.

    Args:
        flank (str)                 : 5' primer flank
        template (str)              : template sequence
        params (dict or Params)     : ``min_match_length`` and
                                      ``max_mismatches`` overrides

    Returns:
        ``MisprimingRisk``. The risk is 'high' when the best match covers
        all but at most one base of the flank, 'medium' when it exceeds the
        minimum match length and 'low' otherwise.

    """
    params = buildParams(params)
    min_match = params.min_match_length
    flank = normalizeSequence(flank)
    template = normalizeSequence(template)
    if len(flank) < min_match or not template:
        return MisprimingRisk('none', [], None, 0)

    matches = []
    for query, match_type in ((flank, 'direct'),
                              (rc(flank), 'reverse_complement')):
        hamming_distances = rollingHammingDistance(query, template)
        match_lengths = len(query) - hamming_distances
        hits, = np.where((hamming_distances <= params.max_mismatches) &
                         (match_lengths >= min_match))
        for idx in hits:
            idx = int(idx)
            matches.append(MisprimingMatch(
                match_type, idx, int(match_lengths[idx]),
                int(hamming_distances[idx]),
                template[idx:idx + len(query)]))

    if not matches:
        return MisprimingRisk('none', [], None, 0)
    best = max(matches, key=lambda m: m.match_length)
    if best.match_length >= len(flank) - 1:
        risk = 'high'
    elif best.match_length >= min_match + 1:
        risk = 'medium'
    else:
        risk = 'low'
    return MisprimingRisk(risk, matches, best, MISPRIMING_PENALTIES[risk])
