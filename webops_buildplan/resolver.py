"""
Phase ordering.

Uses a topological sort over declared phase dependencies to determine the
order phases run in and to reject cyclic phase graphs.
"""

import heapq
from typing import Dict, List, Sequence, Tuple

from .errors import PlanGraphError
from .logging_config import get_logger
from .phase import CANONICAL_PHASES, Phase

logger = get_logger(__name__)

# DFS node states
UNVISITED, IN_PROGRESS, DONE = 0, 1, 2


class PhaseResolver:
    """
    Resolves phase dependencies using topological sort.

    Besides the declared ``depends_on`` names, canonical phases that are
    present are chained setup -> install -> build. Ties are broken by
    canonical rank, then by the order phases were first contributed, so the
    same input always yields the same order.
    """

    def resolve(self, phases: Sequence[Phase]) -> Tuple[Phase, ...]:
        """
        Order phases so that every phase comes after its dependencies.

        Args:
            phases: Merged phases in first-contribution order

        Returns:
            Phases in execution order

        Raises:
            PlanGraphError: If a dependency is unknown or the graph has a cycle
        """
        by_name: Dict[str, Phase] = {}
        for phase in phases:
            if phase.name in by_name:
                raise PlanGraphError(f'Phase {phase.name} is defined more than once', stage='resolve')
            by_name[phase.name] = phase

        graph = self.build_graph(phases)
        order = self._topological_sort(graph, list(by_name))

        logger.debug('Resolved phase order', order=order)
        return tuple(by_name[name] for name in order)

    def build_graph(self, phases: Sequence[Phase]) -> Dict[str, List[str]]:
        """
        Build the dependency graph (phase -> phases it depends on).

        Raises:
            PlanGraphError: If a phase depends on a phase that does not exist
        """
        names = {phase.name for phase in phases}
        graph: Dict[str, List[str]] = {}

        for phase in phases:
            deps = []
            for dep in phase.depends_on:
                if dep not in names:
                    raise PlanGraphError(
                        f'Phase {phase.name} depends on unknown phase {dep}',
                        [f'Define a "{dep}" phase or remove it from dependsOn'],
                        stage='resolve',
                    )
                if dep not in deps:
                    deps.append(dep)
            graph[phase.name] = deps

        present = [name for name in CANONICAL_PHASES if name in names]
        for previous, current in zip(present, present[1:]):
            if previous not in graph[current]:
                graph[current].append(previous)

        return graph

    def _topological_sort(self, graph: Dict[str, List[str]], first_seen: List[str]) -> List[str]:
        """Kahn's algorithm with a priority queue for deterministic ties."""
        position = {name: index for index, name in enumerate(first_seen)}

        def priority(name: str) -> Tuple[int, int]:
            if name in CANONICAL_PHASES:
                return CANONICAL_PHASES.index(name), position[name]
            return len(CANONICAL_PHASES), position[name]

        # Number of unresolved dependencies per phase
        in_degree = {name: len(deps) for name, deps in graph.items()}
        dependents: Dict[str, List[str]] = {name: [] for name in graph}
        for name, deps in graph.items():
            for dep in deps:
                dependents[dep].append(name)

        queue = [(priority(name), name) for name, degree in in_degree.items() if degree == 0]
        heapq.heapify(queue)

        sorted_order = []
        while queue:
            _, name = heapq.heappop(queue)
            sorted_order.append(name)

            for dependent in dependents[name]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    heapq.heappush(queue, (priority(dependent), dependent))

        if len(sorted_order) != len(graph):
            cycles = self.detect_cycles(graph)
            description = ', '.join(' -> '.join(cycle) for cycle in cycles) or ', '.join(
                sorted(set(graph) - set(sorted_order))
            )
            raise PlanGraphError(
                f'Invalid phase graph, circular dependency: {description}',
                ['Remove one of the dependsOn entries that form the cycle'],
                stage='resolve',
            )

        return sorted_order

    def detect_cycles(self, graph: Dict[str, List[str]]) -> List[List[str]]:
        """
        Detect circular dependencies in the graph.

        Three-colour DFS: every phase is expanded once, and each edge back
        to a phase still on the stack closes one cycle.

        Returns:
            List of cycles, each starting and ending with the same phase
        """
        cycles: List[List[str]] = []
        state = {name: UNVISITED for name in graph}
        stack: List[str] = []

        def dfs(node: str):
            state[node] = IN_PROGRESS
            stack.append(node)

            for dep in graph.get(node, []):
                if state.get(dep, UNVISITED) == IN_PROGRESS:
                    cycle = stack[stack.index(dep):] + [dep]
                    if not any(set(found) == set(cycle) for found in cycles):
                        cycles.append(cycle)
                elif state.get(dep, UNVISITED) == UNVISITED:
                    dfs(dep)

            stack.pop()
            state[node] = DONE

        for start_node in graph:
            if state[start_node] == UNVISITED:
                dfs(start_node)

        return cycles
