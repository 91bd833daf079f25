import unittest

from ggfusion import scanner
from ggfusion.enzymes import ENZYMES
from ggfusion.ligation import LigationData
from ggfusion.scanner import combinedScore
from ggfusion.sequtil import isHomopolymer, isPalindrome
from ._common import LIGATION_DATA, SEQ_1000, randomSequence


class TestScanForFusionSites(unittest.TestCase):

    def test_scanInvariants(self):
        for name, enzyme in ENZYMES.items():
            for data in (LIGATION_DATA, None):
                candidates = scanner.scanForFusionSites(SEQ_1000, name, data)
                self.assertTrue(candidates)
                positions = [c.position for c in candidates]
                self.assertEqual(positions, sorted(positions))
                self.assertGreaterEqual(positions[0], 50)
                self.assertLessEqual(positions[-1],
                                     1000 - 50 - enzyme.overhang_length)
                for c in candidates:
                    self.assertFalse(isPalindrome(c.overhang))
                    self.assertFalse(isHomopolymer(c.overhang))
                    self.assertEqual(c.overhang,
                                     SEQ_1000[c.position:c.position +
                                              enzyme.overhang_length])
                    self.assertGreater(c.base_fidelity, 0)

    def test_palindromeNeverScanned(self):
        seq = ('GATC' + randomSequence(20, seed=7)) * 20
        for name in ENZYMES:
            candidates = scanner.scanForFusionSites(seq, name, LIGATION_DATA)
            self.assertNotIn('GATC', [c.overhang for c in candidates])

    def test_shortSequence(self):
        self.assertEqual(scanner.scanForFusionSites('ACGT' * 20, 'BsaI'), [])

    def test_candidateCap(self):
        full = scanner.scanForFusionSites(SEQ_1000, 'BsaI', LIGATION_DATA)
        capped = scanner.scanForFusionSites(SEQ_1000, 'BsaI', LIGATION_DATA,
                                            params={'max_candidates': 5})
        self.assertEqual(capped, full[:5])

    def test_windowsAndForbiddenRegions(self):
        candidates = scanner.scanForFusionSites(
            SEQ_1000, 'BsaI', LIGATION_DATA, search_windows=[(100, 300)],
            forbidden_regions=[(150, 200)])
        for c in candidates:
            self.assertTrue(100 <= c.position <= 300)
            self.assertFalse(150 <= c.position < 200)

    def test_ambiguousBases(self):
        seq = SEQ_1000[:500] + 'N' * 20 + SEQ_1000[520:]
        candidates = scanner.scanForFusionSites(seq, 'BsaI', LIGATION_DATA)
        for c in candidates:
            self.assertNotIn('N', c.overhang)

    def test_zeroFidelityRejected(self):
        data = LigationData.fromMapping({'enzymes': {
            'BsaI-HFv2': {'matrix': {'GGAG': {'CTCC': 100}}}}})
        seq = 'ACGTTGCA' * 10 + 'GGAG' + 'ACGTTGCA' * 10
        candidates = scanner.scanForFusionSites(seq, 'BsaI', data)
        self.assertEqual([c.overhang for c in candidates], ['GGAG'])

    def test_buildAllowedLUT(self):
        lut = scanner.buildAllowedLUT(20, [(2, 5)], [(4, 6)])
        self.assertEqual(lut.to01(), '00110000000000000000')


class TestRanking(unittest.TestCase):

    def test_scanAndRankFusionSites(self):
        ranking = scanner.scanAndRankFusionSites(SEQ_1000, 'BsaI',
                                                 LIGATION_DATA, top_n=10)
        self.assertEqual(len(ranking.candidates), 10)
        fidelities = [c.base_fidelity for c in ranking.all_candidates]
        self.assertEqual(fidelities, sorted(fidelities, reverse=True))
        self.assertEqual(ranking.stats.total_candidates,
                         len(ranking.all_candidates))
        self.assertEqual(ranking.sequence_length, 1000)
        with self.assertRaises(ValueError):
            scanner.scanAndRankFusionSites(SEQ_1000, sort_by='position')


class TestTargetRegions(unittest.TestCase):

    def test_generateTargetPositions(self):
        targets = scanner.generateTargetPositions(1000, 3)
        self.assertEqual([t.ideal_position for t in targets], [350, 650])
        self.assertEqual([(t.search_start, t.search_end) for t in targets],
                         [(300, 400), (600, 700)])
        self.assertEqual(targets[0].expected_fragment_size, 300)
        self.assertEqual(scanner.generateTargetPositions(1000, 1), [])

    def test_scanTargetRegions(self):
        targets = scanner.generateTargetPositions(1000, 3)
        region_scan = scanner.scanTargetRegions(SEQ_1000, targets, 'BsaI',
                                                LIGATION_DATA)
        self.assertEqual(len(region_scan.regions), 2)
        self.assertEqual(region_scan.empty_regions, [])
        for region in region_scan.regions:
            self.assertLessEqual(len(region.candidates), 10)
            scores = [combinedScore(c) for c in region.candidates]
            self.assertEqual(scores, sorted(scores, reverse=True))
            self.assertEqual(region.best, region.candidates[0])

    def test_filterByDistance(self):
        candidates = scanner.scanForFusionSites(SEQ_1000, 'BsaI',
                                                LIGATION_DATA)
        selected = scanner.filterByDistance(candidates, 100, 5)
        self.assertEqual(len(selected), 5)
        positions = [c.position for c in selected]
        self.assertEqual(positions, sorted(positions))
        for a, b in zip(positions, positions[1:]):
            self.assertGreaterEqual(b - a, 100)

    def test_assessFeasibility(self):
        ok = scanner.assessFeasibility(SEQ_1000, 3, 'BsaI', LIGATION_DATA)
        self.assertTrue(ok.feasible)
        self.assertEqual(ok.num_junctions, 2)
        too_many = scanner.assessFeasibility(SEQ_1000, 20, 'BsaI',
                                             LIGATION_DATA)
        self.assertFalse(too_many.feasible)
        self.assertIn('too short', too_many.reason)


if __name__ == '__main__':
    unittest.main()
