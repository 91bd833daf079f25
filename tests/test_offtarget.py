import unittest

import numpy as np

from ggfusion import offtarget


class TestOfftarget(unittest.TestCase):

    def test_rollingHammingDistance(self):
        np.testing.assert_array_equal(
            offtarget.rollingHammingDistance('ACG', 'ACGTACG'),
            [0, 3, 3, 3, 0])
        self.assertEqual(len(offtarget.rollingHammingDistance('ACGT', 'AC')),
                         0)

    def test_highRisk(self):
        template = 'C' * 20 + 'GGTGCG' + 'C' * 20
        risk = offtarget.checkFlankingMispriming('GGTGCG', template)
        self.assertEqual(risk.risk, 'high')
        self.assertEqual(risk.penalty, offtarget.MISPRIMING_PENALTIES['high'])
        self.assertEqual(risk.best_match.position, 20)
        self.assertEqual(risk.best_match.type, 'direct')

    def test_reverseComplementHit(self):
        template = 'A' * 20 + 'CGCACC' + 'A' * 20
        risk = offtarget.checkFlankingMispriming('GGTGCG', template)
        self.assertEqual(risk.best_match.type, 'reverse_complement')

    def test_mediumRisk(self):
        template = 'C' * 20 + 'GGTGCGTT' + 'C' * 20
        risk = offtarget.checkFlankingMispriming('GGTGCGAA', template,
                                                 {'max_mismatches': 3})
        self.assertEqual(risk.risk, 'medium')
        self.assertEqual(risk.best_match.match_length, 6)

    def test_noRisk(self):
        risk = offtarget.checkFlankingMispriming('GGTGCG', 'A' * 50)
        self.assertEqual((risk.risk, risk.penalty), ('none', 0))
        risk = offtarget.checkFlankingMispriming('GGT', 'GGT' * 10)
        self.assertEqual(risk.risk, 'none')


if __name__ == '__main__':
    unittest.main()
