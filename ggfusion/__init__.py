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
======================================================================
 ggfusion: Golden Gate junction selection and scoring
======================================================================

``ggfusion`` is a native Python engine for choosing the junctions (fusion
sites) that split a DNA sequence into fragments for Golden Gate assembly.
Candidate overhangs are scored for ligation fidelity, ligation efficiency,
primer quality, cloning risks and biological context, and a conflict-free
high-fidelity junction set is selected with greedy, branch and bound,
Monte Carlo or hybrid search.

Ligation frequency data (e.g. Potapov et al. 2018 / Pryor et al. 2020) is
supplied by the caller; see ``ggfusion.ligation.loadLigationData``.

Python dependencies:

    biopython       https://pypi.python.org/pypi/biopython
    bitarray        https://pypi.python.org/pypi/bitarray/
    numpy           https://pypi.python.org/pypi/numpy
    primer3-py      https://github.com/benpruitt/primer3-py


See README.md for more information.

"""

from . import context, efficiency, enzymes, fidelity, ligation, offtarget, \
              optimizer, overhangset, params, pipeline, primerquality, \
              scanner, scorer, sequtil, sitecheck, thermo

from .enzymes import ENZYMES, getEnzyme
from .ligation import LigationData, LigationMatrix, loadLigationData
from .params import buildParams
from .pipeline import optimizeFusionSites, quickOptimize
from .scanner import scanForFusionSites, scanAndRankFusionSites
from .scorer import scoreFusionSite, scoreMultipleFusionSites
from .fidelity import calculateFidelity, predictCrossLigation
from .overhangset import findBetterAlternatives, optimizeOverhangSet


__all__ = ['context', 'efficiency', 'enzymes', 'fidelity', 'ligation',
           'offtarget', 'optimizer', 'overhangset', 'params', 'pipeline',
           'primerquality', 'scanner', 'scorer', 'sequtil', 'sitecheck',
           'thermo', 'ENZYMES', 'getEnzyme', 'LigationData', 'LigationMatrix',
           'loadLigationData', 'buildParams', 'optimizeFusionSites',
           'quickOptimize', 'scanForFusionSites', 'scanAndRankFusionSites',
           'scoreFusionSite', 'scoreMultipleFusionSites', 'calculateFidelity',
           'predictCrossLigation', 'optimizeOverhangSet',
           'findBetterAlternatives']
