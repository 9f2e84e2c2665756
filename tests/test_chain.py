"""Tests for merging contributions and resolving phase order."""

import unittest

from webops_buildplan.chain import PhaseChain, union, union_pkgs
from webops_buildplan.errors import PlanGraphError
from webops_buildplan.overrides import PhaseOverride, PlanOverrides, StartOverride
from webops_buildplan.phase import PartialPlan, Phase, Pkg, StartPhase
from webops_buildplan.resolver import PhaseResolver


class TestMergeHelpers(unittest.TestCase):

    def test_union_keeps_first_position(self) -> None:
        self.assertEqual(union([['a', 'b'], ['b', 'c', 'a']]), ('a', 'b', 'c'))

    def test_union_pkgs_later_pin_wins_in_place(self) -> None:
        merged = union_pkgs([[Pkg('nodejs', '18'), Pkg('yarn')], [Pkg('python'), Pkg('nodejs', '20')]])
        self.assertEqual([str(pkg) for pkg in merged], ['nodejs@20', 'yarn', 'python'])


class TestPhaseChain(unittest.TestCase):
    """Test cases for PhaseChain."""

    def test_commands_concatenate_in_priority_order(self) -> None:
        chain = PhaseChain()
        chain.add('x', PartialPlan(phases=[Phase('build', cmds=['x1'])]))
        chain.add('y', PartialPlan(phases=[Phase('build', cmds=['y1'])]))

        merged = chain.merge()
        self.assertEqual(merged.phase('build').cmds, ('x1', 'y1'))
        self.assertEqual(merged.providers, ('x', 'y'))

    def test_packages_are_deduplicated(self) -> None:
        chain = PhaseChain()
        chain.add('x', PartialPlan(phases=[Phase('setup', pkgs=['nodejs', 'git'], apt_pkgs=['curl'])]))
        chain.add('y', PartialPlan(phases=[Phase('setup', pkgs=['nodejs', 'python'], apt_pkgs=['curl'])]))

        setup = chain.merge().phase('setup')
        self.assertEqual([pkg.name for pkg in setup.pkgs], ['nodejs', 'git', 'python'])
        self.assertEqual([pkg.name for pkg in setup.apt_pkgs], ['curl'])

    def test_first_provider_wins_scalars(self) -> None:
        chain = PhaseChain()
        chain.add('x', PartialPlan(start=StartPhase('x start'), variables={'A': 'x'}))
        chain.add('y', PartialPlan(start=StartPhase('y start', run_image='y:img'), variables={'A': 'y', 'B': 'y'}))

        merged = chain.merge()
        self.assertEqual(merged.start.cmd, 'x start')
        self.assertEqual(merged.start.run_image, 'y:img')
        self.assertEqual(merged.variables, {'A': 'x', 'B': 'y'})

    def test_override_appends_commands(self) -> None:
        chain = PhaseChain()
        chain.add('x', PartialPlan(phases=[Phase('build', cmds=['make'])]))
        chain.add_overrides(PlanOverrides(phases=[PhaseOverride('build', cmds=['make docs'])]))

        self.assertEqual(chain.merge().phase('build').cmds, ('make', 'make docs'))

    def test_override_replaces_commands(self) -> None:
        chain = PhaseChain()
        chain.add('x', PartialPlan(phases=[Phase('build', cmds=['make'], cache_directories=['target'])]))
        chain.add_overrides(PlanOverrides(phases=[PhaseOverride('build', cmds=['just'], replace_cmds=True)]))

        build = chain.merge().phase('build')
        self.assertEqual(build.cmds, ('just',))
        self.assertEqual(build.cache_directories, ('target',))

    def test_later_overrides_win(self) -> None:
        chain = PhaseChain()
        chain.add('x', PartialPlan(start=StartPhase('x start'), variables={'A': 'x'}))
        chain.add_overrides(PlanOverrides(start=StartOverride(cmd='file start'), variables={'A': 'file'}))
        chain.add_overrides(PlanOverrides(start=StartOverride(cmd='option start'), base_image='alpine'))

        merged = chain.merge()
        self.assertEqual(merged.start.cmd, 'option start')
        self.assertEqual(merged.variables, {'A': 'file'})
        self.assertEqual(merged.base_image, 'alpine')

    def test_override_creates_new_phase(self) -> None:
        chain = PhaseChain()
        chain.add_overrides(PlanOverrides(phases=[PhaseOverride('migrate', cmds=['./migrate'])]))
        self.assertEqual(chain.merge().phase('migrate').cmds, ('./migrate',))

    def test_empty_overrides_are_ignored(self) -> None:
        chain = PhaseChain()
        chain.add_overrides(PlanOverrides())
        self.assertEqual(chain.merge().phases, ())

    def test_libraries_paths_and_archive_merge(self) -> None:
        chain = PhaseChain()
        chain.add('x', PartialPlan(phases=[
            Phase('setup', libraries=['libssl3'], paths=['/opt/venv/bin'], archive='x.tar.gz'),
        ]))
        chain.add('y', PartialPlan(phases=[
            Phase('setup', libraries=['zlib', 'libssl3'], paths=['/root/.cargo/bin'], archive='y.tar.gz'),
        ]))

        setup = chain.merge().phase('setup')
        self.assertEqual(setup.libraries, ('libssl3', 'zlib'))
        self.assertEqual(setup.paths, ('/opt/venv/bin', '/root/.cargo/bin'))
        self.assertEqual(setup.archive, 'x.tar.gz')

    def test_override_archive_wins(self) -> None:
        chain = PhaseChain()
        chain.add('x', PartialPlan(phases=[Phase('setup', libraries=['libssl3'], archive='x.tar.gz')]))
        chain.add_overrides(PlanOverrides(phases=[
            PhaseOverride('setup', libraries=['zlib'], paths=['/usr/local/bin'], archive='pinned.tar.gz'),
        ]))

        setup = chain.merge().phase('setup')
        self.assertEqual(setup.libraries, ('libssl3', 'zlib'))
        self.assertEqual(setup.paths, ('/usr/local/bin',))
        self.assertEqual(setup.archive, 'pinned.tar.gz')


class TestPhaseResolver(unittest.TestCase):
    """Test cases for PhaseResolver."""

    def setUp(self) -> None:
        self.resolver = PhaseResolver()

    def names(self, phases) -> list:
        return [phase.name for phase in self.resolver.resolve(phases)]

    def test_canonical_order(self) -> None:
        phases = [Phase('build'), Phase('setup'), Phase('install')]
        self.assertEqual(self.names(phases), ['setup', 'install', 'build'])

    def test_extra_phases_follow_dependencies(self) -> None:
        phases = [
            Phase('migrate', depends_on=['build']),
            Phase('lint', depends_on=['install']),
            Phase('setup'),
            Phase('install'),
            Phase('build'),
        ]
        order = self.names(phases)
        self.assertEqual(order[:3], ['setup', 'install', 'build'])
        self.assertLess(order.index('build'), order.index('migrate'))
        self.assertLess(order.index('install'), order.index('lint'))

    def test_order_is_deterministic(self) -> None:
        phases = [Phase('b'), Phase('a'), Phase('setup')]
        self.assertEqual(self.names(phases), ['setup', 'b', 'a'])
        self.assertEqual(self.names(phases), self.names(phases))

    def test_cycle_raises(self) -> None:
        phases = [Phase('install', depends_on=['build']), Phase('build', depends_on=['install'])]
        with self.assertRaises(PlanGraphError) as ctx:
            self.resolver.resolve(phases)
        self.assertIn('circular dependency', str(ctx.exception))
        self.assertEqual(ctx.exception.stage, 'resolve')

    def test_unknown_dependency_raises(self) -> None:
        with self.assertRaises(PlanGraphError) as ctx:
            self.resolver.resolve([Phase('build', depends_on=['compile'])])
        self.assertIn('compile', str(ctx.exception))

    def test_duplicate_phase_raises(self) -> None:
        with self.assertRaises(PlanGraphError):
            self.resolver.resolve([Phase('build'), Phase('build')])

    def test_detect_cycles(self) -> None:
        cycles = self.resolver.detect_cycles({'a': ['b'], 'b': ['a'], 'c': []})
        self.assertEqual(len(cycles), 1)
        self.assertEqual(cycles[0][0], cycles[0][-1])

    def test_detect_cycles_on_dense_graph(self) -> None:
        nodes = [f'p{index}' for index in range(20)]
        graph = {node: [other for other in nodes if other != node] for node in nodes}

        cycles = self.resolver.detect_cycles(graph)
        self.assertTrue(cycles)
        self.assertLessEqual(len(cycles), len(nodes) * len(nodes))
        for cycle in cycles:
            self.assertEqual(cycle[0], cycle[-1])
            self.assertEqual(len(set(cycle[:-1])), len(cycle) - 1)

    def test_dense_cycle_is_reported_by_resolve(self) -> None:
        names = [f'p{index}' for index in range(20)]
        phases = [Phase(name, depends_on=[other for other in names if other != name]) for name in names]
        with self.assertRaises(PlanGraphError):
            self.resolver.resolve(phases)
