import unittest

from ggfusion import thermo


class TestThermo(unittest.TestCase):

    def test_analyzeWindow(self):
        features = thermo.analyzeWindow('ATGCGTACCGATTGCAGCTAGCTAG',
                                        {'mv_conc': 50, 'dv_conc': 1.5,
                                         'dntp_conc': 0.2, 'dna_conc': 200})
        self.assertTrue(40 < features.tm < 80)
        self.assertLess(features.terminal_dg, 0)
        self.assertIsInstance(features.hairpin_dg, float)
        self.assertIsInstance(features.homodimer_dg, float)

    def test_makeOracle(self):
        oracle = thermo.makeOracle({'mv_conc': 50})
        features = oracle('GGTCTCAAGCTTGCATGCCTGCAGG')
        self.assertIsInstance(features, thermo.PrimerFeatures)


if __name__ == '__main__':
    unittest.main()
