import math
import random
import unittest

from ggfusion import overhangset
from ggfusion.fidelity import FIDELITY_MODE_LEGACY_FOUR_WAY, assemblyFidelity
from ggfusion.sequtil import countGC, findCollisions, isPalindrome
from ._common import LIGATION_DATA, MATRIX_4


class TestPool(unittest.TestCase):

    def test_filterOverhangPool(self):
        pool = overhangset.filterOverhangPool(MATRIX_4.overhangs, MATRIX_4)
        self.assertEqual(len(pool), 256 - 16)
        self.assertFalse(any(isPalindrome(oh) for oh in pool))

        pool = overhangset.filterOverhangPool(MATRIX_4.overhangs, MATRIX_4,
                                              excluded=['ggag'])
        self.assertNotIn('GGAG', pool)
        self.assertNotIn('CTCC', pool)

        pool = overhangset.filterOverhangPool(MATRIX_4.overhangs, MATRIX_4,
                                              max_gc=2, max_at=2)
        self.assertTrue(pool)
        self.assertTrue(all(countGC(oh) == 2 for oh in pool))

        # Correct pairs ligate 2 * (500 + 100 * GC) times in both directions
        pool = overhangset.filterOverhangPool(MATRIX_4.overhangs, MATRIX_4,
                                              min_ligation_efficiency=1500)
        self.assertTrue(all(countGC(oh) >= 3 for oh in pool))
        self.assertEqual(overhangset.filterOverhangPool(
            MATRIX_4.overhangs, None, min_ligation_efficiency=1), [])

    def test_setFidelity(self):
        overhangs = ['GGAG', 'AATG', 'GCTT', 'CGCT', 'TGCC', 'GAGA']
        self.assertAlmostEqual(overhangset.setFidelity(overhangs, MATRIX_4),
                               assemblyFidelity(overhangs, MATRIX_4))
        self.assertAlmostEqual(
            overhangset.setFidelity(overhangs, MATRIX_4,
                                    FIDELITY_MODE_LEGACY_FOUR_WAY),
            assemblyFidelity(overhangs, MATRIX_4,
                             mode=FIDELITY_MODE_LEGACY_FOUR_WAY))
        self.assertEqual(overhangset.setFidelity([], MATRIX_4), 1.0)
        with self.assertRaises(ValueError):
            overhangset.setFidelity(overhangs, MATRIX_4, 'whole-set')


class TestAnnealing(unittest.TestCase):

    def test_acceptanceProbability(self):
        self.assertEqual(overhangset.acceptanceProbability(0.1, 0), 1.0)
        self.assertAlmostEqual(
            overhangset.acceptanceProbability(-0.01, 0),
            math.exp(-0.01 / overhangset.K_SCALE))
        self.assertLess(overhangset.acceptanceProbability(-0.01, -5),
                        overhangset.acceptanceProbability(-0.01, 0))

    def test_mcStepKeepsFixedAndUnique(self):
        rng = random.Random(5)
        pool = overhangset.filterOverhangPool(MATRIX_4.overhangs, MATRIX_4)
        current = ['GGAG', 'AATG', 'GCTT']
        fidelity = overhangset.setFidelity(current, MATRIX_4)
        for _ in range(50):
            step = overhangset.mcStep(current, fidelity, pool, MATRIX_4, 0,
                                      rng, fixed_indices=frozenset([0]))
            current, fidelity = step.overhangs, step.fidelity
            self.assertEqual(current[0], 'GGAG')
            self.assertEqual(findCollisions(current), [])

    def test_findAnnealingTemperature(self):
        pool = overhangset.filterOverhangPool(MATRIX_4.overhangs, MATRIX_4)
        exponent = overhangset.findAnnealingTemperature(
            0.05, pool, 5, MATRIX_4, random.Random(11), iterations=50)
        self.assertIsInstance(exponent, float)
        self.assertLess(exponent, 0)


class TestOptimizeOverhangSet(unittest.TestCase):

    def test_optimizeOverhangSet(self):
        result = overhangset.optimizeOverhangSet(
            6, 'BsaI', LIGATION_DATA, required=['ggag', 'AATG'],
            iterations=300, rng=random.Random(1))
        self.assertEqual(len(result.overhangs), 6)
        self.assertEqual(result.overhangs[:2], ['GGAG', 'AATG'])
        self.assertEqual(findCollisions(result.overhangs), [])
        self.assertAlmostEqual(result.fidelity,
                               overhangset.setFidelity(result.overhangs,
                                                       MATRIX_4))
        self.assertEqual([j.is_required for j in result.junctions],
                         [True, True, False, False, False, False])
        self.assertLessEqual(result.weakest.fidelity,
                             result.strongest.fidelity)
        self.assertEqual(result.metrics['pool_size'], 240)
        self.assertEqual(result.metrics['iterations'], 300)

    def test_threeBaseOverhangs(self):
        result = overhangset.optimizeOverhangSet(
            4, 'SapI', LIGATION_DATA, iterations=100, rng=random.Random(4))
        self.assertTrue(all(len(oh) == 3 for oh in result.overhangs))
        self.assertEqual(findCollisions(result.overhangs), [])

    def test_validation(self):
        bad = [
            dict(num_junctions=1),
            dict(num_junctions=51),
            dict(num_junctions=5, ligation_data=None),
            dict(num_junctions=5, enzyme='NotAnEnzyme'),
            dict(num_junctions=5, required=['GGAG'], excluded=['CTCC']),
            dict(num_junctions=5, required=['GATC']),
            dict(num_junctions=5, required=['GGAG', 'CTCC']),
            dict(num_junctions=5, max_gc=0, max_at=0),
        ]
        for kwargs in bad:
            kwargs.setdefault('ligation_data', LIGATION_DATA)
            kwargs.setdefault('iterations', 10)
            with self.assertRaises(ValueError):
                overhangset.optimizeOverhangSet(**kwargs)

    def test_evaluateOverhangSet(self):
        overhangs = ['GGAG', 'AATG', 'GCTT']
        result = overhangset.evaluateOverhangSet(overhangs, 'BsaI',
                                                 LIGATION_DATA)
        self.assertAlmostEqual(result.fidelity,
                               assemblyFidelity(overhangs, MATRIX_4))
        self.assertEqual([j.overhang for j in result.junctions], overhangs)
        self.assertEqual(result.junctions[0].reverse_complement, 'CTCC')
        with self.assertRaises(ValueError):
            overhangset.evaluateOverhangSet(overhangs, 'BsaI', None)

    def test_findBetterAlternatives(self):
        overhangs = ['GGAG', 'AATG', 'GCTT']
        alternatives = overhangset.findBetterAlternatives(
            overhangs, 1, 'BsaI', LIGATION_DATA, excluded=['TACT'])
        self.assertEqual(len(alternatives), 5)
        fidelities = [a.assembly_fidelity for a in alternatives]
        self.assertEqual(fidelities, sorted(fidelities, reverse=True))
        current = overhangset.evaluateOverhangSet(
            overhangs, 'BsaI', LIGATION_DATA).junctions[1].fidelity
        for alt in alternatives:
            self.assertNotIn(alt.overhang, ('AATG', 'CATT', 'TACT', 'AGTA'))
            self.assertFalse(isPalindrome(alt.overhang))
            trial = ['GGAG', alt.overhang, 'GCTT']
            self.assertEqual(findCollisions(trial), [])
            self.assertAlmostEqual(alt.assembly_fidelity,
                                   assemblyFidelity(trial, MATRIX_4))
            self.assertAlmostEqual(alt.improvement,
                                   alt.junction_fidelity - current)
        self.assertEqual(len(overhangset.findBetterAlternatives(
            overhangs, 0, 'BsaI', LIGATION_DATA, top_n=2)), 2)
        for index in (-1, 3):
            with self.assertRaises(ValueError):
                overhangset.findBetterAlternatives(overhangs, index, 'BsaI',
                                                   LIGATION_DATA)
        with self.assertRaises(ValueError):
            overhangset.findBetterAlternatives(overhangs, 1, 'BsaI', None)

    def test_optimizeOverhangSetMultiRun(self):
        res = overhangset.optimizeOverhangSetMultiRun(
            4, runs=3, enzyme='BsaI', ligation_data=LIGATION_DATA,
            iterations=100, rng=random.Random(2))
        self.assertEqual(len(res.all_fidelities), 3)
        self.assertEqual(res.best.fidelity, max(res.all_fidelities))
        self.assertEqual(res.all_fidelities[res.best_run_index],
                         res.best.fidelity)

    def test_scoreRandomOverhangSets(self):
        stats = overhangset.scoreRandomOverhangSets(
            5, 'BsaI', LIGATION_DATA, num_sets=20, rng=random.Random(8))
        fidelities = [f for _, f in stats.results]
        self.assertEqual(fidelities, sorted(fidelities, reverse=True))
        self.assertEqual(stats.best[1], stats.max)
        self.assertTrue(stats.min <= stats.median <= stats.max)
        self.assertEqual(sorted(stats.percentiles), [10, 25, 50, 75, 90])
        for overhangs, _ in stats.results:
            self.assertEqual(len(overhangs), 5)
            self.assertEqual(findCollisions(overhangs), [])


if __name__ == '__main__':
    unittest.main()
