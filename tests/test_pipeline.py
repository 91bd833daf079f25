import random
import unittest

from ggfusion import pipeline
from ggfusion.optimizer import BRANCH_BOUND, GREEDY, HYBRID, MONTE_CARLO
from ggfusion.sequtil import findCollisions
from ._common import LIGATION_DATA, SEQ_1000, SEQ_3000, stubOracle


class TestHelpers(unittest.TestCase):

    def test_selectAlgorithm(self):
        self.assertEqual(pipeline.selectAlgorithm(2), BRANCH_BOUND)
        self.assertEqual(pipeline.selectAlgorithm(5), BRANCH_BOUND)
        self.assertEqual(pipeline.selectAlgorithm(6), HYBRID)
        self.assertEqual(pipeline.selectAlgorithm(10), HYBRID)
        self.assertEqual(pipeline.selectAlgorithm(11), MONTE_CARLO)

    def test_fragmentSizes(self):
        self.assertEqual(pipeline.fragmentSizes(1000, [496, 246], 4),
                         [250, 250, 500])
        self.assertEqual(pipeline.fragmentSizes(1000, [], 4), [1000])


class TestOptimizeFusionSites(unittest.TestCase):

    def test_threeFragments(self):
        res = pipeline.optimizeFusionSites(SEQ_1000, 3, 'BsaI', LIGATION_DATA,
                                           oracle=stubOracle)
        self.assertTrue(res.success)
        self.assertEqual(res.algorithm, BRANCH_BOUND)
        self.assertEqual(res.num_junctions, 2)
        positions = [j.position for j in res.junctions]
        self.assertEqual(len(positions), 2)
        self.assertEqual(positions, sorted(positions))
        self.assertEqual(findCollisions(res.overhangs), [])
        self.assertEqual(sum(res.fragment_sizes), 1000)
        self.assertEqual(len(res.fragment_sizes), 3)
        self.assertEqual(res.min_fragment_size, min(res.fragment_sizes))
        self.assertEqual(res.max_fragment_size, max(res.fragment_sizes))
        self.assertEqual(len(res.detailed_junctions), 2)
        for detail, junction in zip(res.detailed_junctions, res.junctions):
            self.assertEqual(detail.position, junction.position)
            self.assertEqual(detail.overhang, junction.overhang)
            self.assertTrue(0 <= detail.composite <= 100)
        self.assertIsNone(res.error)
        self.assertTrue(0 < res.fidelity.final_fidelity <= 1)

    def test_algorithms(self):
        for algorithm in (GREEDY, MONTE_CARLO, HYBRID):
            res = pipeline.optimizeFusionSites(
                SEQ_3000, 4, 'BsaI', LIGATION_DATA, algorithm,
                {'iterations': 200}, random.Random(3), stubOracle)
            self.assertTrue(res.success)
            self.assertEqual(len(res.junctions), 3)
            self.assertEqual(findCollisions(res.overhangs), [])

    def test_otherEnzymes(self):
        for enzyme in ('BsmBI', 'SapI'):
            res = pipeline.optimizeFusionSites(SEQ_1000, 3, enzyme,
                                               LIGATION_DATA, GREEDY,
                                               oracle=stubOracle)
            self.assertTrue(res.success)
            self.assertEqual(sum(res.fragment_sizes), 1000)

    def test_noLigationData(self):
        res = pipeline.optimizeFusionSites(SEQ_1000, 3, 'BsaI', None, GREEDY,
                                           oracle=stubOracle)
        self.assertTrue(res.success)
        self.assertEqual(len(res.overhangs), 2)

    def test_forbiddenRegions(self):
        res = pipeline.optimizeFusionSites(SEQ_1000, 3, 'BsaI', LIGATION_DATA,
                                           GREEDY, oracle=stubOracle,
                                           forbidden_regions=[(300, 370)])
        self.assertTrue(res.success)
        for junction in res.junctions:
            self.assertFalse(300 <= junction.position < 370)

    def test_internalSites(self):
        seq = SEQ_1000[:500] + 'GGTCTC' + SEQ_1000[506:]
        res = pipeline.optimizeFusionSites(seq, 3, 'BsaI', LIGATION_DATA,
                                           GREEDY, oracle=stubOracle)
        self.assertIn(500, [site.position for site in res.internal_sites])
        self.assertTrue(any('internal BsaI' in w for w in res.warnings))

    def test_rejected(self):
        res = pipeline.optimizeFusionSites(SEQ_1000, 20, 'BsaI',
                                           LIGATION_DATA)
        self.assertFalse(res.success)
        self.assertEqual(res.suggestion, 5)
        self.assertEqual(res.junctions, [])
        self.assertTrue(res.error)

        res = pipeline.optimizeFusionSites('ACGT' * 20, 2, 'BsaI',
                                           LIGATION_DATA)
        self.assertFalse(res.success)
        self.assertIn('too short', res.error)
        self.assertEqual(res.suggestion, 0)

        res = pipeline.optimizeFusionSites(SEQ_1000, 1, 'BsaI',
                                           LIGATION_DATA)
        self.assertFalse(res.success)
        self.assertEqual(res.suggestion, 5)

    def test_invalidArguments(self):
        with self.assertRaises(ValueError):
            pipeline.optimizeFusionSites(SEQ_1000, 3, 'NotAnEnzyme')
        with self.assertRaises(ValueError):
            pipeline.optimizeFusionSites(SEQ_1000, 3, 'BsaI', LIGATION_DATA,
                                         'simulatedQuantum')

    def test_quickOptimize(self):
        res = pipeline.quickOptimize(SEQ_1000, 3, 'BsaI', LIGATION_DATA,
                                     oracle=stubOracle)
        self.assertEqual(res.algorithm, GREEDY)
        self.assertTrue(res.success)
        self.assertEqual(len(res.junctions), 2)


if __name__ == '__main__':
    unittest.main()
