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
ggfusion.thermo
~~~~~~~~~~~~~~~

Primer-quality oracle backed by primer3.

An oracle is any callable ``oracle(seq) -> PrimerFeatures``. The scorer only
consumes the returned features, so tests (or callers with a different
thermodynamic model) can inject their own.

"""
from collections import namedtuple

import primer3

from .sequtil import rc

# ~~~~~~~~~~~~~~~~~~~~~ Function aliases for convenience ~~~~~~~~~~~~~~~~~~~~ #

calcTm = primer3.calc_tm
calcHrp = primer3.calc_hairpin
calcHomo = primer3.calc_homodimer
calcEndStability = primer3.calc_end_stability


PrimerFeatures = namedtuple('PrimerFeatures',
        ['tm',                  # Melting temperature in degrees C
         'hairpin_dg',          # kcal/mol (0.0 when no structure is found)
         'homodimer_dg',        # kcal/mol (0.0 when no structure is found)
         'terminal_dg'          # 3' end stability against the template
         ])


def _kcal(result):
    """primer3 reports dG in cal/mol."""
    if not result.structure_found:
        return 0.0
    return result.dg / 1000.0


def analyzeWindow(seq, thermo_params=None):
    """Thermodynamic features of a primer-binding window.

    Args:
        seq (str)                       : window sequence (5' -> 3')
        thermo_params (dict, optional)  : primer3 conditions (``mv_conc``,
                                          ``dv_conc``, ``dntp_conc``,
                                          ``dna_conc``)

    Returns:
        ``PrimerFeatures``

    Raises:
        ``OSError``, ``ValueError`` or ``RuntimeError`` from primer3 for
        sequences it cannot analyze

    """
    thermo_params = dict(thermo_params or {})
    tm = calcTm(seq, **thermo_params)
    hairpin_dg = _kcal(calcHrp(seq, **thermo_params))
    homodimer_dg = _kcal(calcHomo(seq, **thermo_params))
    end = calcEndStability(seq, rc(seq), **thermo_params)
    return PrimerFeatures(tm, hairpin_dg, homodimer_dg, end.dg / 1000.0)


def makeOracle(thermo_params=None):
    """Bind ``thermo_params`` into a single-argument oracle."""
    thermo_params = dict(thermo_params or {})

    def oracle(seq):
        return analyzeWindow(seq, thermo_params)

    return oracle
