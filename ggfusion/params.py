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
ggfusion.params
~~~~~~~~~~~~~~~

Default parameters for every stage of junction design and the helper that
reconciles them with user-provided overrides.

The reconciled parameters are an immutable ``Params`` namedtuple that is
threaded through the scanner, scorers and optimizers. Nested dictionaries
(score weights, thermodynamic conditions) are exposed as read-only mappings.

"""
import copy
import numbers
import types

from collections import namedtuple


# ~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~#
# Default parameters for various parts of the design process.
#   ** Ranges are inclusive
#
# This dictionary is updated with user provided parameters, so the user does
# not need to provide an exhaustive / equivalent dictionary
# ~~~ #

DEFAULT_PARAMS = {
    # Minimum distance (bp) between a junction and either sequence end
    'min_distance_from_ends': 50,
    # Scanner stops after this many candidates (position-ascending prefix)
    'max_candidates': 1000,
    # Half-width (bp) of the search window around each ideal junction
    'search_radius': 50,
    # Fragment size limits in bp
    'min_fragment_size': 200,
    'max_fragment_size': 5000,
    # Sequences shorter than this are rejected by the design entry point
    'min_sequence_length': 100,
    # Feasibility check: candidates required in every target region
    'min_candidates_per_region': 3,
    # Junction fidelity used when neither matrix nor static data exist
    'fallback_fidelity': 0.85,
    # G:T wobble mis-pairing weight and the matches needed to flag a pair
    'gt_wobble_weight': 0.20,
    'gt_match_threshold': 3,
    # Homology (primer binding) window length on each side of a junction
    'homology_length': 25,
    # Windows shorter than this get the fixed fallback score
    'min_homology_length': 15,
    # Composite fusion-site score weights (normalized by the active sum)
    'weights': {
        'overhang_quality': 0.20,
        'forward_primer': 0.20,
        'reverse_primer': 0.20,
        'risk_factors': 0.25,
        'biological_context': 0.15,
    },
    # Junction-set score weights used by every optimizer
    'set_weights': {
        'fidelity': 0.40,
        'efficiency': 0.20,
        'primer_quality': 0.25,
        'position': 0.15,
    },
    # [greedy] tentative set fidelity must exceed this floor
    'greedy_fidelity_floor': 0.5,
    # [branch and bound] absolute partial-set fidelity floor
    'bb_fidelity_floor': 0.3,
    # [branch and bound] prune when projection < best * pruning_threshold
    'pruning_threshold': 0.7,
    # Per-region candidate lists are truncated to the top-K by quick score
    'max_candidates_per_region': 10,
    # [branch and bound] regions deeper than this are filled greedily
    'max_branch_depth': 8,
    # [branch and bound] hard cap on explored search nodes
    'max_nodes': 200000,
    # [monte carlo] annealing schedule
    'iterations': 2000,
    'temperature': 1.0,
    'cooling_rate': 0.995,
    # [hybrid] branch and bound is only attempted up to this fragment count
    'hybrid_bb_max_fragments': 6,
    # [overhang pool] annealing iterations and target acceptance ratio
    'pool_iterations': 10000,
    'target_acceptance_ratio': 0.05,
    # The following parameters are related to thermodynamic calculations
    'thermo_params': {
        # [thermo] Monovalent cation concentration in mM
        'mv_conc': 50,
        # [thermo] Divalent cation concentration in mM
        'dv_conc': 1.5,
        # [thermo] dNTP concentration in mM
        'dntp_conc': 0.2,
        # [thermo] DNA concentration in nM
        'dna_conc': 200,
    },
    # Flank mispriming: minimum match length and mismatches tolerated
    'min_match_length': 5,
    'max_mismatches': 1,
    # Reading frame offset (0, 1, 2) of the coding sequence, or None
    'coding_frame': None,
    # Protein domains as (start, end) or (start, end, name) entries
    'protein_domains': (),
    # Scar context for overhang preferences (see ``ggfusion.context``)
    'scar_context': 'nonCoding',
    # Seed for the Monte Carlo RNG when the caller does not inject one
    'seed': None,
}

Params = namedtuple('Params', sorted(DEFAULT_PARAMS))

ProteinDomain = namedtuple('ProteinDomain', ['start', 'end', 'name'])


_NON_NEGATIVE_INTS = ('min_distance_from_ends', 'search_radius',
                      'max_fragment_size', 'min_sequence_length',
                      'min_candidates_per_region', 'homology_length',
                      'min_homology_length', 'iterations', 'max_mismatches',
                      'hybrid_bb_max_fragments')
_POSITIVE_INTS = ('max_candidates', 'min_fragment_size',
                  'max_candidates_per_region', 'max_branch_depth',
                  'max_nodes', 'gt_match_threshold', 'min_match_length',
                  'pool_iterations')
_UNIT_FRACTIONS = ('fallback_fidelity', 'gt_wobble_weight',
                   'greedy_fidelity_floor', 'bb_fidelity_floor',
                   'pruning_threshold')


def _checkWeights(name, weights):
    defaults = DEFAULT_PARAMS[name]
    for key, value in weights.items():
        if key not in defaults:
            raise ValueError('Unknown %s key: %r' % (name, key))
        if not isinstance(value, numbers.Real) or value < 0:
            raise ValueError('%s[%r] must be a non-negative number' %
                             (name, key))
    if sum(weights.values()) <= 0:
        raise ValueError('%s must contain at least one positive weight' %
                         name)


def _coerceDomains(domains):
    coerced = []
    for domain in domains or ():
        if isinstance(domain, dict):
            start, end = domain['start'], domain['end']
            name = domain.get('name')
        else:
            start, end = domain[0], domain[1]
            name = domain[2] if len(domain) > 2 else None
        if end < start:
            raise ValueError('Protein domain end precedes start: %r' %
                             (domain,))
        coerced.append(ProteinDomain(int(start), int(end), name))
    return tuple(coerced)


def validateParams(params):
    """Raise ``ValueError`` if any value in the ``params`` dict is invalid."""
    for key in _NON_NEGATIVE_INTS:
        if not isinstance(params[key], numbers.Integral) or params[key] < 0:
            raise ValueError('%s must be a non-negative integer' % key)
    for key in _POSITIVE_INTS:
        if not isinstance(params[key], numbers.Integral) or params[key] < 1:
            raise ValueError('%s must be a positive integer' % key)
    for key in _UNIT_FRACTIONS:
        if not 0 <= params[key] <= 1:
            raise ValueError('%s must be within [0, 1]' % key)
    if not 0 < params['cooling_rate'] <= 1:
        raise ValueError('cooling_rate must be within (0, 1]')
    if params['temperature'] <= 0:
        raise ValueError('temperature must be positive')
    if not 0 < params['target_acceptance_ratio'] < 1:
        raise ValueError('target_acceptance_ratio must be within (0, 1)')
    if params['max_fragment_size'] < params['min_fragment_size']:
        raise ValueError('max_fragment_size must be >= min_fragment_size')
    if params['min_homology_length'] > params['homology_length']:
        raise ValueError('min_homology_length must be <= homology_length')
    if params['coding_frame'] not in (None, 0, 1, 2):
        raise ValueError('coding_frame must be None, 0, 1 or 2')
    _checkWeights('weights', params['weights'])
    _checkWeights('set_weights', params['set_weights'])


def buildParams(params=None):
    """Reconcile user-provided parameters with ``DEFAULT_PARAMS``.

    Nested dictionaries (``weights``, ``set_weights``, ``thermo_params``)
    are merged key-by-key so a caller may override a single weight.

    Args:
        params (dict or Params, optional): parameter overrides; a ``Params``
                                           instance is returned unchanged

    Returns:
        Immutable ``Params`` namedtuple

    Raises:
        ``ValueError`` for unknown keys or out-of-range values

    """
    if isinstance(params, Params):
        return params
    _params = copy.deepcopy(DEFAULT_PARAMS)
    for key, value in (params or {}).items():
        if key not in DEFAULT_PARAMS:
            raise ValueError('Unknown parameter: %r' % key)
        if isinstance(DEFAULT_PARAMS[key], dict):
            _params[key].update(value)
        else:
            _params[key] = value
    validateParams(_params)
    _params['protein_domains'] = _coerceDomains(_params['protein_domains'])
    for key in ('weights', 'set_weights', 'thermo_params'):
        _params[key] = types.MappingProxyType(dict(_params[key]))
    return Params(**_params)
