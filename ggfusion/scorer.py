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
ggfusion.scorer
~~~~~~~~~~~~~~~

Composite 0-100 score for a single junction position.

Five components are scored independently and combined with the
``weights`` parameter, normalized by the sum of the weights of the
components that were actually scored:

    overhang_quality    base fidelity x efficiency of the overhang
    forward_primer      primer window downstream of the overhang
    reverse_primer      primer window upstream of the overhang (as its
                        reverse complement)
    risk_factors        site re-creation and flank mispriming penalties
    biological_context  codon boundary, domain integrity and scar scores

Primer windows are evaluated by an injectable primer-quality oracle
(``oracle(seq) -> PrimerFeatures``). The default oracle uses primer3 with
the ``thermo_params`` parameter.

"""
import logging

from collections import namedtuple

from .context import scoreCodonBoundary, scoreDomainIntegrity, \
                     scoreScarSequence
from .efficiency import calculateEfficiency
from .enzymes import getEnzyme
from .fidelity import overhangBaseFidelity
from .ligation import getMatrix
from .offtarget import checkFlankingMispriming
from .params import buildParams
from .primerquality import analyzeHomologyRegion
from .sitecheck import checkSiteCreation
from .sequtil import isPalindrome, isValidOverhang, normalizeSequence, rc
from .thermo import makeOracle

logger = logging.getLogger(__name__)

COMPONENTS = ('overhang_quality', 'forward_primer', 'reverse_primer',
              'risk_factors', 'biological_context')

QUALITY_TIERS = ((85, 'excellent'), (70, 'good'), (55, 'acceptable'))

HIGH_SITE_RISK_PENALTY = 30
MEDIUM_SITE_RISK_PENALTY = 15


ComponentScore = namedtuple('ComponentScore',
        ['score',               # 0-100
         'weight',
         'warnings',
         'details'              # Component specific record / dict
         ])

CompositeScore = namedtuple('CompositeScore',
        ['position',
         'overhang',
         'reverse_complement',
         'components',          # {component name: ComponentScore}
         'composite',           # Rounded weighted score (0-100)
         'quality',             # 'excellent', 'good', 'acceptable', 'poor'
                                # or 'invalid'
         'warnings',            # De-duplicated, in discovery order
         'enzyme',
         'error'                # Set only for an invalid position
         ])


def qualityTier(composite):
    for threshold, tier in QUALITY_TIERS:
        if composite >= threshold:
            return tier
    return 'poor'


def calculateRiskScore(site_check, mispriming=None):
    """100 minus site re-creation and mispriming penalties, clamped 0-100.

    Args:
        site_check (SiteCreationResult) : from :func:`checkSiteCreation`
        mispriming (MisprimingRisk)     : from :func:`checkFlankingMispriming`

    """
    score = 100
    score -= HIGH_SITE_RISK_PENALTY * site_check.high_risk_count
    score -= MEDIUM_SITE_RISK_PENALTY * site_check.medium_risk_count
    if mispriming is not None:
        score -= mispriming.penalty
    return max(0, min(100, score))


def weightedComposite(components):
    """Weighted mean of component scores over the active weights."""
    total_weight = 0.0
    weighted_sum = 0.0
    for component in components.values():
        if component.score is None or component.weight <= 0:
            continue
        weighted_sum += component.score * component.weight
        total_weight += component.weight
    if total_weight == 0:
        return 0.0
    return weighted_sum / total_weight


def _dedupe(warnings):
    seen = set()
    unique = []
    for warning in warnings:
        if warning not in seen:
            seen.add(warning)
            unique.append(warning)
    return unique


def _invalid(position, enzyme, message):
    return CompositeScore(position, '', '', {}, 0, 'invalid', [],
                          enzyme.name, message)


def scoreFusionSite(seq, position, enzyme='BsaI', ligation_data=None,
                    params=None, oracle=None, template=None,
                    mispriming=None):
    """Score a junction whose overhang starts at ``position``.

    Args:
        seq (str)                       : full sequence
        position (int)                  : 0-based overhang start
        enzyme (str)                    : enzyme identifier
        ligation_data (LigationData)    : ligation data or ``None``
        params (dict or Params)         : ``weights``, ``homology_length``,
                                          ``coding_frame``,
                                          ``protein_domains``,
                                          ``scar_context`` ...
        oracle (callable, optional)     : primer-quality oracle; defaults to
                                          primer3 with ``thermo_params``
        template (str, optional)        : sequence checked for flank
                                          mispriming (defaults to ``seq``)
        mispriming (MisprimingRisk)     : precomputed flank mispriming
                                          result (it does not depend on
                                          ``position``)

    Returns:
        ``CompositeScore``. A position that cannot hold a full ACGT overhang,
        or whose overhang is palindromic, returns quality 'invalid' with a
        score of 0 and an ``error``.

    Raises:
        ``ValueError`` for an unknown enzyme

    """
    params = buildParams(params)
    enzyme = getEnzyme(enzyme)
    if oracle is None:
        oracle = makeOracle(params.thermo_params)
    seq = normalizeSequence(seq)
    ohl = enzyme.overhang_length
    overhang = seq[position:position + ohl] if position >= 0 else ''
    if len(overhang) != ohl:
        return _invalid(position, enzyme, 'Invalid position - cannot extract '
                        '%dbp overhang' % ohl)
    if not isValidOverhang(overhang):
        return _invalid(position, enzyme, 'Invalid position - overhang %s '
                        'contains non-ACGT bases' % overhang)
    if isPalindrome(overhang):
        return _invalid(position, enzyme, 'Invalid position - overhang %s '
                        'is palindromic and would self-ligate' % overhang)

    weights = params.weights
    components = {}
    warnings = []

    # Overhang intrinsic quality
    matrix = getMatrix(ligation_data, enzyme)
    fidelity = overhangBaseFidelity(overhang, matrix, params.fallback_fidelity)
    efficiency = calculateEfficiency(overhang)
    combined = fidelity * efficiency.efficiency
    components['overhang_quality'] = ComponentScore(
        int(round(combined * 100)), weights['overhang_quality'],
        list(efficiency.warnings),
        {'fidelity': fidelity, 'efficiency': efficiency.efficiency,
         'combined': combined})
    warnings.extend(efficiency.warnings)

    # Primer windows on either side of the overhang
    hl = params.homology_length
    fwd_window = seq[position + ohl:position + ohl + hl]
    rev_window = rc(seq[max(0, position - hl):position])
    for name, window, label, prefix in (
            ('forward_primer', fwd_window, 'Forward', 'Fwd primer'),
            ('reverse_primer', rev_window, 'Reverse', 'Rev primer')):
        analysis = analyzeHomologyRegion(window, oracle,
                                         params.min_homology_length, label)
        issues = ['%s: %s' % (prefix, issue) for issue in analysis.issues]
        components[name] = ComponentScore(analysis.score, weights[name],
                                          issues, analysis)
        warnings.extend(issues)

    # Risk factors
    site_check = checkSiteCreation(seq, position, enzyme)
    if mispriming is None:
        mispriming = checkFlankingMispriming(
            enzyme.flanking, seq if template is None else template, params)
    site_warnings = [risk.message for risk in site_check.risks]
    components['risk_factors'] = ComponentScore(
        calculateRiskScore(site_check, mispriming), weights['risk_factors'],
        site_warnings,
        {'site_creation': site_check, 'mispriming': mispriming})
    warnings.extend(site_warnings)

    # Biological context
    codon_score = scoreCodonBoundary(position, params.coding_frame)
    domain_score = scoreDomainIntegrity(position, params.protein_domains)
    scar = scoreScarSequence(overhang, params.scar_context)
    bio_warnings = []
    if codon_score < 80:
        bio_warnings.append('Junction not on codon boundary (frame %s)' %
                            params.coding_frame)
    if domain_score < 50:
        bio_warnings.append('Junction splits a protein domain')
    bio_warnings.extend(note.message for note in scar.notes
                        if note.type == 'warning')
    components['biological_context'] = ComponentScore(
        int(round(codon_score * 0.30 + domain_score * 0.35 +
                  scar.score * 0.35)),
        weights['biological_context'], bio_warnings,
        {'codon_boundary': codon_score, 'domain_integrity': domain_score,
         'scar': scar})
    warnings.extend(bio_warnings)

    composite = weightedComposite(components)
    return CompositeScore(position, overhang, rc(overhang), components,
                          int(round(composite)), qualityTier(composite),
                          _dedupe(warnings), enzyme.name, None)


QuickScore = namedtuple('QuickScore',
        ['position', 'overhang', 'score', 'fidelity', 'efficiency', 'valid'])


def quickScoreFusionSite(seq, position, enzyme='BsaI', ligation_data=None,
                         params=None):
    """Cheap score: ``round(base fidelity x efficiency x 100)``."""
    params = buildParams(params)
    enzyme = getEnzyme(enzyme)
    seq = normalizeSequence(seq)
    ohl = enzyme.overhang_length
    overhang = seq[position:position + ohl] if position >= 0 else ''
    if len(overhang) != ohl or not isValidOverhang(overhang) or \
            isPalindrome(overhang):
        return QuickScore(position, overhang, 0, 0.0, 0.0, False)
    fidelity = overhangBaseFidelity(overhang, getMatrix(ligation_data, enzyme),
                                    params.fallback_fidelity)
    efficiency = calculateEfficiency(overhang).efficiency
    return QuickScore(position, overhang,
                      int(round(fidelity * efficiency * 100)), fidelity,
                      efficiency, True)


MultipleScores = namedtuple('MultipleScores',
        ['enzyme',
         'ranked',              # CompositeScores, best first
         'best',
         'worst',
         'valid_count',
         'average_score',
         'tier_counts'          # {tier: count} over valid positions
         ])


def scoreMultipleFusionSites(seq, positions, enzyme='BsaI',
                             ligation_data=None, params=None, oracle=None):
    """Score and rank several junction positions."""
    params = buildParams(params)
    enzyme = getEnzyme(enzyme)
    if oracle is None:
        oracle = makeOracle(params.thermo_params)
    seq = normalizeSequence(seq)
    mispriming = checkFlankingMispriming(enzyme.flanking, seq, params)
    scored = [scoreFusionSite(seq, pos, enzyme, ligation_data, params,
                              oracle, mispriming=mispriming)
              for pos in positions]
    ranked = sorted(scored, key=lambda s: s.composite, reverse=True)
    valid = [s for s in scored if s.error is None]
    tier_counts = {'excellent': 0, 'good': 0, 'acceptable': 0, 'poor': 0}
    for s in valid:
        tier_counts[s.quality] += 1
    average = (int(round(sum(s.composite for s in valid) /
                         float(len(valid)))) if valid else 0)
    logger.info('Scored %d positions (%d valid) for %s', len(scored),
                len(valid), enzyme.name)
    return MultipleScores(enzyme.name, ranked,
                          ranked[0] if ranked else None,
                          ranked[-1] if ranked else None,
                          len(valid), average, tier_counts)
