import unittest

from ggfusion import scorer, sitecheck
from ggfusion.fidelity import overhangBaseFidelity
from ggfusion.efficiency import calculateEfficiency
from ggfusion.offtarget import checkFlankingMispriming
from ggfusion.sequtil import rc
from ._common import LIGATION_DATA, MATRIX_4, SEQ_1000, failingOracle, \
                     stubOracle

# Known (non-palindromic) overhangs at 5, 350 and 650, GATC at 500
SEQ = (SEQ_1000[:5] + 'GCTT' + SEQ_1000[9:350] + 'GGAG' +
       SEQ_1000[354:500] + 'GATC' + SEQ_1000[504:650] + 'AATG' +
       SEQ_1000[654:])


class TestScoreFusionSite(unittest.TestCase):

    def test_validPosition(self):
        res = scorer.scoreFusionSite(SEQ, 350, 'BsaI', LIGATION_DATA,
                                     oracle=stubOracle)
        overhang = SEQ[350:354]
        self.assertEqual(res.overhang, overhang)
        self.assertEqual(res.reverse_complement, rc(overhang))
        self.assertEqual(set(res.components), set(scorer.COMPONENTS))
        self.assertTrue(0 <= res.composite <= 100)
        self.assertIn(res.quality, ('excellent', 'good', 'acceptable',
                                    'poor'))
        self.assertIsNone(res.error)
        expected = (overhangBaseFidelity(overhang, MATRIX_4) *
                    calculateEfficiency(overhang).efficiency)
        self.assertEqual(res.components['overhang_quality'].score,
                         int(round(expected * 100)))
        self.assertEqual(len(res.warnings), len(set(res.warnings)))

    def test_invalidPosition(self):
        for position in (-1, 998, 2000):
            res = scorer.scoreFusionSite(SEQ, position, 'BsaI',
                                         LIGATION_DATA, oracle=stubOracle)
            self.assertEqual(res.quality, 'invalid')
            self.assertEqual(res.composite, 0)
            self.assertIsNotNone(res.error)
        seq = SEQ[:350] + 'NNNN' + SEQ[354:]
        res = scorer.scoreFusionSite(seq, 350, 'BsaI', LIGATION_DATA,
                                     oracle=stubOracle)
        self.assertEqual(res.quality, 'invalid')

    def test_activeWeights(self):
        params = {'weights': {'forward_primer': 0, 'reverse_primer': 0,
                              'risk_factors': 0, 'biological_context': 0}}
        res = scorer.scoreFusionSite(SEQ, 350, 'BsaI', LIGATION_DATA,
                                     params, oracle=stubOracle)
        self.assertEqual(res.composite,
                         res.components['overhang_quality'].score)

    def test_shortWindow(self):
        res = scorer.scoreFusionSite(SEQ, 5, 'BsaI', LIGATION_DATA,
                                     oracle=stubOracle)
        self.assertEqual(res.components['reverse_primer'].score, 50)
        self.assertIn('Rev primer: Reverse homology region too short',
                      res.warnings)
        self.assertNotEqual(res.quality, 'invalid')

    def test_oracleFailure(self):
        res = scorer.scoreFusionSite(SEQ, 350, 'BsaI', LIGATION_DATA,
                                     oracle=failingOracle)
        self.assertEqual(res.components['forward_primer'].score, 50)
        self.assertEqual(res.components['reverse_primer'].score, 50)

    def test_codingFrame(self):
        # Position 350 is 0, 1 and 2 bases into a codon for frames 2, 1, 0
        for frame, expected in ((2, 100), (1, 80), (0, 60)):
            res = scorer.scoreFusionSite(SEQ, 350, 'BsaI', LIGATION_DATA,
                                         {'coding_frame': frame},
                                         oracle=stubOracle)
            details = res.components['biological_context'].details
            self.assertEqual(details['codon_boundary'], expected)
            warning = 'Junction not on codon boundary (frame %d)' % frame
            if expected < 80:
                self.assertIn(warning, res.warnings)
            else:
                self.assertNotIn(warning, res.warnings)

    def test_palindromicOverhang(self):
        res = scorer.scoreFusionSite(SEQ, 500, 'BsaI', LIGATION_DATA,
                                     oracle=stubOracle)
        self.assertEqual(res.quality, 'invalid')
        self.assertEqual(res.composite, 0)
        self.assertIn('palindromic', res.error)

    def test_unknownEnzyme(self):
        with self.assertRaises(ValueError):
            scorer.scoreFusionSite(SEQ, 350, 'NotAnEnzyme',
                                   oracle=stubOracle)


class TestScoringHelpers(unittest.TestCase):

    def test_calculateRiskScore(self):
        seq = 'A' * 24 + 'GGTCTC' + 'GCTT' + 'A' * 30
        check = sitecheck.checkSiteCreation(seq, 30, 'BsaI')
        self.assertEqual(scorer.calculateRiskScore(check), 70)
        mispriming = checkFlankingMispriming('GGTGCG', 'C' * 10 + 'GGTGCG')
        self.assertEqual(scorer.calculateRiskScore(check, mispriming), 45)

    def test_weightedComposite(self):
        components = {
            'a': scorer.ComponentScore(80, 1.0, [], {}),
            'b': scorer.ComponentScore(40, 0.0, [], {}),
        }
        self.assertEqual(scorer.weightedComposite(components), 80)
        self.assertEqual(scorer.weightedComposite({}), 0.0)

    def test_qualityTier(self):
        self.assertEqual(scorer.qualityTier(85), 'excellent')
        self.assertEqual(scorer.qualityTier(70), 'good')
        self.assertEqual(scorer.qualityTier(55), 'acceptable')
        self.assertEqual(scorer.qualityTier(54.9), 'poor')

    def test_quickScoreFusionSite(self):
        quick = scorer.quickScoreFusionSite(SEQ, 350, 'BsaI',
                                            LIGATION_DATA)
        self.assertTrue(quick.valid)
        self.assertEqual(quick.score,
                         int(round(quick.fidelity * quick.efficiency * 100)))
        self.assertFalse(scorer.quickScoreFusionSite(SEQ, 999).valid)
        palindrome = scorer.quickScoreFusionSite(SEQ, 500, 'BsaI',
                                                 LIGATION_DATA)
        self.assertFalse(palindrome.valid)
        self.assertEqual(palindrome.score, 0)

    def test_scoreMultipleFusionSites(self):
        res = scorer.scoreMultipleFusionSites(SEQ, [350, 500, 650, 998],
                                              'BsaI', LIGATION_DATA,
                                              oracle=stubOracle)
        composites = [s.composite for s in res.ranked]
        self.assertEqual(composites, sorted(composites, reverse=True))
        self.assertEqual(res.valid_count, 2)
        self.assertEqual(len(res.ranked), 4)
        self.assertEqual(sum(res.tier_counts.values()), 2)
        self.assertEqual(res.worst.quality, 'invalid')


if __name__ == '__main__':
    unittest.main()
