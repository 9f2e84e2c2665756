"""
Build plan generation.

The generator runs five stages over one source snapshot:

1. detect      - ask every provider, in priority order, whether it applies
2. synthesize  - collect the contributions of the matching providers
3. merge       - combine them (and user overrides) field by field
4. resolve     - order phases by their dependencies
5. freeze      - pick images, apply policies, emit the immutable plan

Any failure aborts the whole generation; there is no partial plan.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from .app import App
from .chain import MergedPlan, PhaseChain, union
from .environment import Environment
from .errors import (
    BuildPlanError,
    ConfigError,
    DetectionError,
    MissingStartCommand,
    NoProviderMatched,
)
from .images import ImageConfig
from .logging_config import correlation_scope, get_logger, log_operation
from .overrides import PhaseOverride, PlanOverrides, StartOverride
from .phase import BUILD, INSTALL, SETUP, PartialPlan, Phase, Pkg, StartPhase
from .plan import BuildPlan
from .providers import Provider, StaticfileProvider, get_providers
from .resolver import PhaseResolver

logger = get_logger(__name__)

NO_MATCH_FAIL = 'fail'
NO_MATCH_FALLBACK = 'fallback'
NO_MATCH_POLICIES = (NO_MATCH_FAIL, NO_MATCH_FALLBACK)


@dataclass(frozen=True)
class GeneratePlanOptions:
    """
    Options for one plan generation.

    Commands given here append to the provider commands unless
    ``replace_cmds`` is set.
    """

    no_match_policy: str = NO_MATCH_FAIL
    require_start: bool = False
    slim_runtime: bool = False
    pin_base_image: Optional[str] = None
    install_cmds: Tuple[str, ...] = ()
    build_cmds: Tuple[str, ...] = ()
    start_cmd: Optional[str] = None
    pkgs: Tuple[str, ...] = ()
    apt_pkgs: Tuple[str, ...] = ()
    replace_cmds: bool = False
    variables: Dict[str, str] = field(default_factory=dict)
    overrides: Tuple[PlanOverrides, ...] = ()
    read_plan_file: bool = True
    parallel_detect: bool = False

    def __post_init__(self):
        if self.no_match_policy not in NO_MATCH_POLICIES:
            raise ConfigError(
                f'Unknown no-match policy "{self.no_match_policy}"',
                [f'Use one of: {", ".join(NO_MATCH_POLICIES)}'],
                stage='config',
            )
        for name in ('install_cmds', 'build_cmds', 'pkgs', 'apt_pkgs', 'overrides'):
            object.__setattr__(self, name, tuple(getattr(self, name) or ()))
        object.__setattr__(self, 'variables', dict(self.variables or {}))

    def to_overrides(self) -> PlanOverrides:
        phases = []
        if self.pkgs or self.apt_pkgs:
            phases.append(PhaseOverride(
                name=SETUP,
                pkgs=[Pkg.parse(pkg) for pkg in self.pkgs],
                apt_pkgs=[Pkg.parse(pkg) for pkg in self.apt_pkgs],
            ))
        if self.install_cmds:
            phases.append(PhaseOverride(name=INSTALL, cmds=self.install_cmds, replace_cmds=self.replace_cmds))
        if self.build_cmds:
            phases.append(PhaseOverride(name=BUILD, cmds=self.build_cmds, replace_cmds=self.replace_cmds))

        start = None
        if self.start_cmd or self.slim_runtime:
            start = StartOverride(cmd=self.start_cmd, use_slim_image=True if self.slim_runtime else None)

        return PlanOverrides(
            phases=phases,
            start=start,
            variables=self.variables,
            base_image=self.pin_base_image,
        )


class BuildPlanGenerator:
    """Turns a source tree into a BuildPlan using an ordered provider list."""

    def __init__(
        self,
        providers: Sequence[Provider],
        options: Optional[GeneratePlanOptions] = None,
        images: Optional[ImageConfig] = None,
        fallback_provider: Optional[Provider] = None,
    ):
        names = [provider.name for provider in providers]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ConfigError(f'Duplicate providers: {", ".join(duplicates)}', stage='config')

        self.providers = list(providers)
        self.options = options or GeneratePlanOptions()
        self.images = images or ImageConfig()
        self.fallback_provider = fallback_provider or StaticfileProvider()
        self.resolver = PhaseResolver()

    def generate_plan(self, app: App, env: Environment) -> BuildPlan:
        """
        Generate the build plan for ``app``.

        Raises:
            BuildPlanError: Any failure, annotated with stage and provider
        """
        with correlation_scope():
            overrides = self.collect_overrides(app, env)
            matched = self.detect(app, env)

            if not matched:
                matched = self._handle_no_match(overrides)

            chain = self.synthesize(app, env, matched)
            merged = self.merge(chain, overrides)
            phases = self.resolve(merged)
            plan = self.freeze(merged, phases)

            logger.info(
                'Generated build plan',
                providers=list(plan.providers),
                phases=list(plan.phase_names),
                fingerprint=plan.fingerprint(),
            )
            return plan

    @log_operation('detect')
    def detect(self, app: App, env: Environment) -> List[Provider]:
        """Providers whose detection matches, in priority order."""
        if self.options.parallel_detect and len(self.providers) > 1:
            with ThreadPoolExecutor(max_workers=min(8, len(self.providers))) as executor:
                results = list(executor.map(lambda provider: self._detect_one(provider, app, env), self.providers))
        else:
            results = [self._detect_one(provider, app, env) for provider in self.providers]

        matched = [provider for provider, detected in zip(self.providers, results) if detected]
        logger.debug('Detected providers', matched=[provider.name for provider in matched])
        return matched

    @log_operation('synthesize')
    def synthesize(self, app: App, env: Environment, providers: Sequence[Provider]) -> PhaseChain:
        chain = PhaseChain()
        for provider in providers:
            partial = self._call(provider, 'synthesize', provider.contribute, app, env)
            if not isinstance(partial, PartialPlan):
                raise DetectionError(
                    f'Provider {provider.name} returned {type(partial).__name__} instead of a partial plan',
                    stage='synthesize',
                    provider=provider.name,
                )
            chain.add(provider.name, partial)
        return chain

    def collect_overrides(self, app: App, env: Environment) -> List[PlanOverrides]:
        """Overrides from the plan file, WEBOPS_* entries and options, weakest first."""
        collected = []
        if self.options.read_plan_file:
            collected.append(PlanOverrides.from_app(app))

        collected.append(PlanOverrides.from_environment(env))
        collected.append(self.options.to_overrides())
        collected.extend(self.options.overrides)
        return collected

    @log_operation('merge')
    def merge(self, chain: PhaseChain, overrides: Sequence[PlanOverrides]) -> MergedPlan:
        for override in overrides:
            chain.add_overrides(override)
        return chain.merge()

    @log_operation('resolve')
    def resolve(self, merged: MergedPlan) -> Tuple[Phase, ...]:
        return self.resolver.resolve(merged.phases)

    @log_operation('freeze')
    def freeze(self, merged: MergedPlan, phases: Sequence[Phase]) -> BuildPlan:
        phases = tuple(self._finalize_phase(phase) for phase in phases)
        base_image = self._select_base_image(merged, phases)

        start = merged.start
        slim_runtime = self.options.slim_runtime
        explicit_run_image = None
        if start is None or not start.cmd:
            if self.options.require_start:
                raise MissingStartCommand(
                    'No start command could be determined',
                    ['Set a start command: --start-cmd "<command>"'],
                    stage='freeze',
                )
            # The start phase is dropped but its image choice still applies
            if start is not None:
                explicit_run_image = start.run_image
                if start.use_slim_image is not None:
                    slim_runtime = start.use_slim_image
            start = None

        if start is not None:
            run_image = self.images.runtime_image(start.run_image, bool(start.use_slim_image))
            start = StartPhase(
                cmd=start.cmd,
                run_image=run_image,
                use_slim_image=start.use_slim_image,
                only_include_files=_normalize_paths(start.only_include_files),
            )
        else:
            run_image = self.images.runtime_image(explicit_run_image, slim_runtime)

        return BuildPlan(
            phases=phases,
            start=start,
            variables=merged.variables,
            base_image=base_image,
            run_image=run_image,
            providers=merged.providers,
        )

    def _handle_no_match(self, overrides: Sequence[PlanOverrides]) -> List[Provider]:
        if self.options.no_match_policy == NO_MATCH_FALLBACK:
            logger.info('No provider matched, using fallback', provider=self.fallback_provider.name)
            return [self.fallback_provider]

        # A user-defined plan needs no provider
        if any(override.phases or (override.start and override.start.cmd) for override in overrides):
            return []

        raise NoProviderMatched(
            'No provider matched the source tree',
            ['Set a start command: --start-cmd "<command>"', 'Serve the directory as static files: --fallback'],
            stage='detect',
        )

    def _detect_one(self, provider: Provider, app: App, env: Environment) -> bool:
        return bool(self._call(provider, 'detect', provider.detect, app, env))

    def _call(self, provider: Provider, stage: str, func, *args):
        try:
            return func(*args)
        except ConfigError as e:
            raise e.with_context(stage, provider.name)
        except DetectionError:
            raise
        except (BuildPlanError, OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            raise DetectionError(
                f'Provider {provider.name} failed during {stage}: {e}',
                stage=stage,
                provider=provider.name,
            ) from e

    def _select_base_image(self, merged: MergedPlan, phases: Sequence[Phase]) -> str:
        """Pinned option, then the merged override, then a phase override, then the default."""
        if self.options.pin_base_image:
            return self.options.pin_base_image
        if merged.base_image:
            return merged.base_image
        for phase in phases:
            if phase.base_image:
                return phase.base_image
        return self.images.default_base_image

    def _finalize_phase(self, phase: Phase) -> Phase:
        return Phase(
            name=phase.name,
            cmds=phase.cmds,
            pkgs=phase.pkgs,
            apt_pkgs=phase.apt_pkgs,
            libraries=phase.libraries,
            cache_directories=_normalize_paths(phase.cache_directories),
            only_include_files=_normalize_paths(phase.only_include_files),
            paths=_normalize_paths(phase.paths),
            depends_on=phase.depends_on,
            archive=phase.archive,
            base_image=phase.base_image,
        )


def _normalize_paths(paths: Sequence[str]) -> Tuple[str, ...]:
    """Drop './' prefixes and trailing slashes, then de-duplicate."""
    normalized = []
    for path in paths:
        if path in ('.', './'):
            normalized.append('.')
            continue
        while path.startswith('./'):
            path = path[2:]
        if len(path) > 1:
            path = path.rstrip('/')
        if path:
            normalized.append(path)
    return union([normalized])


def generate_build_plan(
    path: str,
    envs: Sequence[str] = (),
    options: Optional[GeneratePlanOptions] = None,
    images: Optional[ImageConfig] = None,
) -> BuildPlan:
    """Generate the build plan of the directory at ``path``."""
    app = App(path)
    environment = Environment.from_pairs(envs)
    generator = BuildPlanGenerator(get_providers(), options, images or ImageConfig.from_environ())
    return generator.generate_plan(app, environment)
