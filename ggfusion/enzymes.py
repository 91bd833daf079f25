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
ggfusion.enzymes
~~~~~~~~~~~~~~~~

Static table of Type IIS restriction enzymes supported for Golden Gate
junction design, plus helpers for locating their recognition sites.

Enzyme cut geometry (BsaI shown)::

    5'...GGTCTC N|NNNN...3'
    3'...CCAGAG NNNNN|...5'
         recog  ^ cut offset (spacer), then the 4 nt overhang

"""
from collections import namedtuple

from .sequtil import rc


GoldenGateEnzyme = namedtuple('GoldenGateEnzyme',
        ['name',                # Short name used as the primary identifier
         'full_name',           # Commercial name of the enzyme variant
         'aliases',             # Tuple of isoschizomer / alternate names
         'recognition',         # Recognition sequence (top strand)
         'cut_offset',          # Spacer bases between site and overhang
         'overhang_length',     # Length of the sticky end in nt
         'data_key',            # Key into ``LigationData``
         'flanking'             # Default 5' primer flank ahead of the site
         ])


ENZYMES = {
    'BsaI': GoldenGateEnzyme('BsaI', 'BsaI-HFv2', (), 'GGTCTC', 1, 4,
                             'BsaI-HFv2', 'GGTGCG'),
    'BbsI': GoldenGateEnzyme('BbsI', 'BbsI-HF', ('BpiI',), 'GAAGAC', 2, 4,
                             'BbsI-HF', 'GCGTGC'),
    'BsmBI': GoldenGateEnzyme('BsmBI', 'BsmBI-v2', (), 'CGTCTC', 1, 4,
                              'BsmBI-v2', 'GCTGCG'),
    'Esp3I': GoldenGateEnzyme('Esp3I', 'Esp3I', (), 'CGTCTC', 1, 4,
                              'Esp3I', 'GCTGCG'),
    'SapI': GoldenGateEnzyme('SapI', 'SapI', ('BspQI',), 'GCTCTTC', 1, 3,
                             'SapI', 'GCTGCG'),
}


def _buildLookup():
    lookup = {}
    for key, enzyme in ENZYMES.items():
        for ident in (key, enzyme.full_name, enzyme.data_key) + \
                enzyme.aliases:
            lookup[ident.upper()] = enzyme
    return lookup

_LOOKUP = _buildLookup()


def getEnzyme(enzyme):
    """Resolve an enzyme identifier to a :class:`GoldenGateEnzyme`.

    Args:
        enzyme (str or GoldenGateEnzyme): short name, alias, full name or
                                          ligation data key (case
                                          insensitive); an already-resolved
                                          ``GoldenGateEnzyme`` is returned
                                          unchanged

    Returns:
        ``GoldenGateEnzyme``

    Raises:
        ``ValueError`` if the identifier is unknown

    """
    if isinstance(enzyme, GoldenGateEnzyme):
        return enzyme
    try:
        return _LOOKUP[str(enzyme).upper()]
    except KeyError:
        raise ValueError('Unknown enzyme: %r. Supported: %s' %
                         (enzyme, ', '.join(sorted(ENZYMES))))


InternalSite = namedtuple('InternalSite',
        ['position',            # 0-based start of the site
         'sequence',            # Site sequence as it appears on the top strand
         'orientation'          # 'forward' or 'reverse'
         ])


def findInternalSites(seq, enzyme):
    """Find every recognition site of ``enzyme`` on both strands of ``seq``.

    Returns:
        List of ``InternalSite`` tuples ordered by position.
    """
    enzyme = getEnzyme(enzyme)
    seq = seq.upper()
    recog = enzyme.recognition
    recog_rc = rc(recog)
    targets = [(recog, 'forward')]
    if recog_rc != recog:
        targets.append((recog_rc, 'reverse'))
    sites = []
    for site_seq, orientation in targets:
        idx = seq.find(site_seq)
        while idx != -1:
            sites.append(InternalSite(idx, site_seq, orientation))
            idx = seq.find(site_seq, idx + 1)
    sites.sort(key=lambda s: s.position)
    return sites
