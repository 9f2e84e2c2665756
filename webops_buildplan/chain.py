"""
Field-level merging of provider contributions and user overrides.

Contributions are recorded in provider priority order and only turned into
phases once, when ``PhaseChain.merge`` runs:

* commands concatenate in priority order, overrides append last unless they
  replace,
* package sets union by name, a later version pin wins but keeps the
  position of the first occurrence,
* libraries, cache directories, include lists, paths and dependencies are
  ordered unions,
* scalars (archive, base image, start command, run image) come from the most
  specific contribution: the primary provider first, then later providers
  fill what is still unset, and user overrides win over all of them.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .logging_config import get_logger
from .overrides import PhaseOverride, PlanOverrides, StartOverride
from .phase import PartialPlan, Phase, Pkg, StartPhase, freeze_fields

logger = get_logger(__name__)


@dataclass(frozen=True)
class MergedPlan:
    """Result of the merge stage: one phase per name, not yet ordered."""

    phases: Tuple[Phase, ...] = ()
    start: Optional[StartPhase] = None
    variables: Dict[str, str] = field(default_factory=dict)
    base_image: Optional[str] = None
    providers: Tuple[str, ...] = ()

    def __post_init__(self):
        freeze_fields(self, 'phases', 'providers')
        object.__setattr__(self, 'variables', dict(self.variables or {}))

    def phase(self, name: str) -> Optional[Phase]:
        for phase in self.phases:
            if phase.name == name:
                return phase
        return None


def union(groups: Iterable[Iterable[str]]) -> Tuple[str, ...]:
    """Order-preserving union."""
    seen = {}
    for group in groups:
        for item in group:
            seen.setdefault(item, None)
    return tuple(seen)


def union_pkgs(groups: Iterable[Iterable[Pkg]]) -> Tuple[Pkg, ...]:
    """Union by package name; the last reference seen for a name wins."""
    merged: Dict[str, Pkg] = {}
    for group in groups:
        for pkg in group:
            if pkg.name in merged and not merged[pkg.name].same_as(pkg):
                logger.debug(
                    'Package pin overridden',
                    package=pkg.name,
                    previous=str(merged[pkg.name]),
                    current=str(pkg),
                )
            merged[pkg.name] = pkg
    return tuple(merged.values())


def first_set(values: Iterable[Optional[str]]) -> Optional[str]:
    for value in values:
        if value:
            return value
    return None


def merge_phases(name: str, contributions: Sequence[Phase]) -> Phase:
    """Merge every provider contribution to one phase name, in priority order."""
    return Phase(
        name=name,
        cmds=[cmd for phase in contributions for cmd in phase.cmds],
        pkgs=union_pkgs(phase.pkgs for phase in contributions),
        apt_pkgs=union_pkgs(phase.apt_pkgs for phase in contributions),
        libraries=union(phase.libraries for phase in contributions),
        cache_directories=union(phase.cache_directories for phase in contributions),
        only_include_files=union(phase.only_include_files for phase in contributions),
        paths=union(phase.paths for phase in contributions),
        depends_on=union(phase.depends_on for phase in contributions),
        archive=first_set(phase.archive for phase in contributions),
        base_image=first_set(phase.base_image for phase in contributions),
    )


def apply_phase_override(phase: Optional[Phase], override: PhaseOverride) -> Phase:
    """Apply one user override to a merged phase (or create the phase)."""
    phase = phase or Phase(name=override.name)

    if override.replace_cmds:
        cmds = override.cmds
    else:
        cmds = phase.cmds + override.cmds

    return Phase(
        name=phase.name,
        cmds=cmds,
        pkgs=union_pkgs([phase.pkgs, override.pkgs]),
        apt_pkgs=union_pkgs([phase.apt_pkgs, override.apt_pkgs]),
        libraries=union([phase.libraries, override.libraries]),
        cache_directories=union([phase.cache_directories, override.cache_directories]),
        only_include_files=union([phase.only_include_files, override.only_include_files]),
        paths=union([phase.paths, override.paths]),
        depends_on=union([phase.depends_on, override.depends_on]),
        archive=override.archive or phase.archive,
        base_image=override.base_image or phase.base_image,
    )


def merge_start(contributions: Sequence[StartPhase]) -> Optional[StartPhase]:
    """Merge start phases; the first (most specific) value of each scalar wins."""
    if not contributions:
        return None

    slim_values = [start.use_slim_image for start in contributions if start.use_slim_image is not None]
    return StartPhase(
        cmd=first_set(start.cmd for start in contributions),
        run_image=first_set(start.run_image for start in contributions),
        use_slim_image=slim_values[0] if slim_values else None,
        only_include_files=union(start.only_include_files for start in contributions),
    )


def apply_start_override(start: Optional[StartPhase], override: StartOverride) -> StartPhase:
    start = start or StartPhase()
    return StartPhase(
        cmd=override.cmd or start.cmd,
        run_image=override.run_image or start.run_image,
        use_slim_image=(
            override.use_slim_image if override.use_slim_image is not None else start.use_slim_image
        ),
        only_include_files=union([start.only_include_files, override.only_include_files]),
    )


class PhaseChain:
    """
    Collects contributions in priority order and merges them in one pass.

    Usage:
        chain = PhaseChain()
        chain.add('node', node_partial_plan)
        chain.add('staticfile', static_partial_plan)
        chain.add_overrides(file_overrides)
        merged = chain.merge()
    """

    def __init__(self):
        self._contributions: List[Tuple[str, PartialPlan]] = []
        self._overrides: List[PlanOverrides] = []

    def add(self, provider_name: str, partial: PartialPlan) -> None:
        self._contributions.append((provider_name, partial))

    def add_overrides(self, overrides: PlanOverrides) -> None:
        if not overrides.is_empty:
            self._overrides.append(overrides)

    @property
    def providers(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self._contributions)

    def merge(self) -> MergedPlan:
        phases = self._merge_provider_phases()
        start = merge_start([
            partial.start for _, partial in self._contributions if partial.start is not None
        ])

        variables: Dict[str, str] = {}
        for _, partial in self._contributions:
            for key, value in partial.variables.items():
                variables.setdefault(key, value)

        base_image = None
        for overrides in self._overrides:
            for override in overrides.phases:
                phases[override.name] = apply_phase_override(phases.get(override.name), override)
            if overrides.start is not None:
                start = apply_start_override(start, overrides.start)
            variables.update(overrides.variables)
            base_image = overrides.base_image or base_image

        logger.debug(
            'Merged contributions',
            providers=list(self.providers),
            phases=list(phases),
            override_sources=len(self._overrides),
        )

        return MergedPlan(
            phases=tuple(phases.values()),
            start=start,
            variables=variables,
            base_image=base_image,
            providers=self.providers,
        )

    def _merge_provider_phases(self) -> Dict[str, Phase]:
        # Dicts keep first-contribution order, which resolution uses for ties
        grouped: Dict[str, List[Phase]] = {}
        for _, partial in self._contributions:
            for phase in partial.phases:
                grouped.setdefault(phase.name, []).append(phase)

        return {
            name: merge_phases(name, contributions)
            for name, contributions in grouped.items()
        }
