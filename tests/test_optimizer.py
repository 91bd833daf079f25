import random
import unittest

from ggfusion import optimizer
from ggfusion.scanner import generateTargetPositions, scanForFusionSites
from ggfusion.sequtil import findCollisions
from ._common import LIGATION_DATA, SEQ_1000, SEQ_3000


def _assertValidSolution(test, result):
    positions = [j.position for j in result.junctions]
    test.assertEqual(positions, sorted(set(positions)))
    test.assertEqual(findCollisions(result.overhangs), [])
    test.assertEqual(result.overhangs, [j.overhang for j in result.junctions])


class TestRegions(unittest.TestCase):

    def test_prepareRegions(self):
        regions = optimizer.prepareRegions(SEQ_1000, 3, 'BsaI',
                                           LIGATION_DATA)
        self.assertEqual(len(regions), 2)
        for region in regions:
            self.assertLessEqual(len(region.candidates), 10)
            self.assertGreaterEqual(region.total_found,
                                    len(region.candidates))
            scores = [c.score for c in region.candidates]
            self.assertEqual(scores, sorted(scores, reverse=True))
            for c in region.candidates:
                self.assertEqual(c.score, optimizer.quickScore(c))
                self.assertTrue(region.target.search_start <= c.position <=
                                region.target.search_end)

    def test_scoreJunctionSet(self):
        candidates = scanForFusionSites(SEQ_1000, 'BsaI', LIGATION_DATA)
        chosen = [candidates[10], candidates[500]]
        score = optimizer.scoreJunctionSet(chosen, 'BsaI', LIGATION_DATA)
        self.assertAlmostEqual(score.primer_quality, 0.70)
        self.assertEqual(score.position_quality, 1.0)
        self.assertTrue(0 < score.composite <= 1)

        collide = chosen[0]._replace(overhang='GGAG')
        twin = chosen[1]._replace(overhang='CTCC')
        score = optimizer.scoreJunctionSet([collide, twin], 'BsaI',
                                           LIGATION_DATA)
        self.assertEqual(score.fidelity, 0.0)
        self.assertEqual(optimizer.scoreJunctionSet([]).composite, 0.0)

    def test_positionQuality(self):
        targets = generateTargetPositions(1000, 3)
        candidates = scanForFusionSites(SEQ_1000, 'BsaI', LIGATION_DATA)
        by_position = {c.position: c for c in candidates}
        near = [min(by_position.values(),
                    key=lambda c: abs(c.position - t.ideal_position))
                for t in targets]
        far = [min(by_position.values(),
                   key=lambda c: abs(c.position - t.search_end))
               for t in targets]
        near_score = optimizer.scoreJunctionSet(near, 'BsaI', LIGATION_DATA,
                                                targets=targets)
        far_score = optimizer.scoreJunctionSet(far, 'BsaI', LIGATION_DATA,
                                               targets=targets)
        self.assertGreater(near_score.position_quality,
                           far_score.position_quality)


class TestStrategies(unittest.TestCase):

    def setUp(self):
        self.regions = optimizer.prepareRegions(SEQ_3000, 5, 'BsaI',
                                                LIGATION_DATA)

    def test_greedy(self):
        result = optimizer.optimizeGreedy(SEQ_3000, 5, 'BsaI', LIGATION_DATA,
                                          regions=self.regions)
        self.assertEqual(result.algorithm, optimizer.GREEDY)
        self.assertTrue(result.complete)
        self.assertEqual(len(result.junctions), 4)
        self.assertEqual(result.failure, [])
        _assertValidSolution(self, result)
        for j in result.junctions:
            self.assertEqual(j.deviation, j.position - j.ideal_position)

    def test_branchBoundBeatsGreedy(self):
        greedy = optimizer.optimizeGreedy(SEQ_3000, 5, 'BsaI', LIGATION_DATA,
                                          regions=self.regions)
        bb = optimizer.optimizeBranchBound(SEQ_3000, 5, 'BsaI',
                                           LIGATION_DATA,
                                           regions=self.regions)
        self.assertTrue(bb.complete)
        self.assertGreaterEqual(bb.score.composite, greedy.score.composite)
        self.assertTrue(bb.optimal)
        self.assertGreater(bb.stats['nodes_explored'], 0)
        _assertValidSolution(self, bb)

    def test_branchBoundTruncation(self):
        bb = optimizer.optimizeBranchBound(SEQ_3000, 5, 'BsaI',
                                           LIGATION_DATA,
                                           {'max_nodes': 3},
                                           regions=self.regions)
        self.assertTrue(bb.stats['node_truncated'])
        self.assertFalse(bb.optimal)
        self.assertTrue(bb.complete)

        bb = optimizer.optimizeBranchBound(SEQ_3000, 5, 'BsaI',
                                           LIGATION_DATA,
                                           {'max_branch_depth': 1},
                                           regions=self.regions)
        self.assertTrue(bb.stats['depth_truncated'])
        self.assertFalse(bb.optimal)

    def test_monteCarlo(self):
        params = {'iterations': 300}
        result = optimizer.optimizeMonteCarlo(
            SEQ_3000, 5, 'BsaI', LIGATION_DATA, params, self.regions,
            random.Random(7))
        self.assertTrue(result.complete)
        _assertValidSolution(self, result)
        trace = result.stats['best_trace']
        self.assertEqual(trace, sorted(trace))
        self.assertEqual(trace[-1], result.score.composite)
        self.assertLessEqual(result.stats['final_temperature'], 1.0)

        again = optimizer.optimizeMonteCarlo(
            SEQ_3000, 5, 'BsaI', LIGATION_DATA, params, self.regions,
            random.Random(7))
        self.assertEqual(again.overhangs, result.overhangs)

    def test_hybrid(self):
        result = optimizer.optimizeHybrid(
            SEQ_3000, 5, 'BsaI', LIGATION_DATA, {'iterations': 200},
            self.regions, random.Random(3))
        self.assertEqual(result.algorithm, optimizer.HYBRID)
        self.assertTrue(result.complete)
        self.assertIn(result.stats['selected'], optimizer.ALGORITHMS)
        self.assertEqual(len(result.alternatives), 2)
        for algorithm, composite, complete in result.alternatives:
            self.assertIn(algorithm, optimizer.ALGORITHMS)
            if complete:
                self.assertLessEqual(composite, result.score.composite)

    def test_staticFallback(self):
        for name, optimize in optimizer.OPTIMIZERS.items():
            result = optimize(SEQ_1000, 3, 'BsaI', None,
                              {'iterations': 100}, rng=random.Random(1))
            self.assertTrue(result.complete, name)
            _assertValidSolution(self, result)


class TestFailures(unittest.TestCase):

    def test_tooFewFragments(self):
        for optimize in optimizer.OPTIMIZERS.values():
            result = optimize(SEQ_1000, 1, 'BsaI', LIGATION_DATA)
            self.assertFalse(result.complete)
            self.assertEqual(result.failure,
                             [(None, 'fewer than 2 fragments')])

    def test_emptyRegion(self):
        regions = optimizer.prepareRegions(SEQ_1000, 3, 'BsaI',
                                           LIGATION_DATA,
                                           forbidden_regions=[(290, 410)])
        self.assertEqual(regions[0].candidates, [])
        greedy = optimizer.optimizeGreedy(SEQ_1000, 3, 'BsaI', LIGATION_DATA,
                                          regions=regions)
        self.assertFalse(greedy.complete)
        self.assertEqual(greedy.failure, [(0, 'no candidates')])
        self.assertEqual(len(greedy.junctions), 1)
        # Position quality covers the junctions that were placed
        targets = [regions[j.target_index].target for j in greedy.junctions]
        rescored = optimizer.scoreJunctionSet(
            [optimizer.Candidate(*j[:len(optimizer.Candidate._fields)])
             for j in greedy.junctions],
            'BsaI', LIGATION_DATA, targets=targets)
        self.assertAlmostEqual(greedy.score.position_quality,
                               rescored.position_quality)
        deviation = abs(greedy.junctions[0].deviation)
        width = targets[0].search_end - targets[0].search_start
        self.assertAlmostEqual(greedy.score.position_quality,
                               max(0.0, 1 - deviation / float(width)))

        bb = optimizer.optimizeBranchBound(SEQ_1000, 3, 'BsaI',
                                           LIGATION_DATA, regions=regions)
        self.assertFalse(bb.complete)
        self.assertEqual(bb.stats['fallback'], optimizer.GREEDY)

        mc = optimizer.optimizeMonteCarlo(SEQ_1000, 3, 'BsaI', LIGATION_DATA,
                                          regions=regions,
                                          rng=random.Random(0))
        self.assertFalse(mc.complete)
        self.assertEqual(mc.failure, [(0, 'no candidates')])

    def test_allCandidatesConflict(self):
        regions = optimizer.prepareRegions(SEQ_1000, 3, 'BsaI',
                                           LIGATION_DATA)
        first = regions[0].candidates[0]._replace(overhang='GGAG')
        second = regions[1].candidates[0]._replace(overhang='CTCC')
        regions = [regions[0]._replace(candidates=[first]),
                   regions[1]._replace(candidates=[second])]
        greedy = optimizer.optimizeGreedy(SEQ_1000, 3, 'BsaI', LIGATION_DATA,
                                          regions=regions)
        self.assertEqual(greedy.failure, [(1, 'all candidates conflict')])
        self.assertEqual(greedy.overhangs, ['GGAG'])


if __name__ == '__main__':
    unittest.main()
