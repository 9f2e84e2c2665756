"""
User supplied plan overrides.

Overrides come from three places, applied in this order so the later ones
win: a plan file in the source root (``webops.toml``, ``webops.json`` or
``webops.yaml``), ``WEBOPS_*`` configuration entries and the options passed
to the generator.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .app import App
from .environment import Environment
from .errors import ConfigError
from .phase import BUILD, INSTALL, SETUP, Pkg, freeze_fields
from .logging_config import get_logger

logger = get_logger(__name__)

PLAN_FILES = ('webops.toml', 'webops.json', 'webops.yaml', 'webops.yml')


@dataclass(frozen=True)
class PhaseOverride:
    """Changes to one phase. ``cmds`` append unless ``replace_cmds`` is set."""

    name: str
    cmds: Tuple[str, ...] = ()
    replace_cmds: bool = False
    pkgs: Tuple[Pkg, ...] = ()
    apt_pkgs: Tuple[Pkg, ...] = ()
    libraries: Tuple[str, ...] = ()
    cache_directories: Tuple[str, ...] = ()
    only_include_files: Tuple[str, ...] = ()
    paths: Tuple[str, ...] = ()
    depends_on: Tuple[str, ...] = ()
    archive: Optional[str] = None
    base_image: Optional[str] = None

    def __post_init__(self):
        freeze_fields(self, 'cmds', 'pkgs', 'apt_pkgs', 'libraries', 'cache_directories',
                      'only_include_files', 'paths', 'depends_on')

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> 'PhaseOverride':
        if not isinstance(data, dict):
            raise ConfigError(f'Phase "{name}" must be a table', stage='overrides')
        return cls(
            name=name,
            cmds=_string_list(data, 'cmds', name),
            replace_cmds=bool(data.get('replaceCmds', False)),
            pkgs=_pkg_list(data, 'pkgs', name),
            apt_pkgs=_pkg_list(data, 'aptPkgs', name),
            libraries=_string_list(data, 'libraries', name),
            cache_directories=_string_list(data, 'cacheDirectories', name),
            only_include_files=_string_list(data, 'onlyIncludeFiles', name),
            paths=_string_list(data, 'paths', name),
            depends_on=_string_list(data, 'dependsOn', name),
            archive=data.get('archive'),
            base_image=data.get('baseImage'),
        )


@dataclass(frozen=True)
class StartOverride:
    cmd: Optional[str] = None
    run_image: Optional[str] = None
    use_slim_image: Optional[bool] = None
    only_include_files: Tuple[str, ...] = ()

    def __post_init__(self):
        freeze_fields(self, 'only_include_files')


@dataclass(frozen=True)
class PlanOverrides:
    """A set of overrides from one source."""

    phases: Tuple[PhaseOverride, ...] = ()
    start: Optional[StartOverride] = None
    variables: Dict[str, str] = field(default_factory=dict)
    base_image: Optional[str] = None

    def __post_init__(self):
        freeze_fields(self, 'phases')
        object.__setattr__(self, 'variables', dict(self.variables or {}))

    @property
    def is_empty(self) -> bool:
        return not (self.phases or self.start or self.variables or self.base_image)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PlanOverrides':
        """
        Build overrides from a plan file document.

        ``phases`` is either a table keyed by phase name or a list of tables
        with a ``name`` key.
        """
        if not isinstance(data, dict):
            raise ConfigError('Plan file must contain a table at the top level', stage='overrides')

        raw_phases = data.get('phases') or {}
        if isinstance(raw_phases, dict):
            phases = [PhaseOverride.from_dict(name, value) for name, value in raw_phases.items()]
        elif isinstance(raw_phases, list):
            phases = []
            for value in raw_phases:
                if not isinstance(value, dict) or 'name' not in value:
                    raise ConfigError('Every entry in "phases" needs a name', stage='overrides')
                phases.append(PhaseOverride.from_dict(value['name'], value))
        else:
            raise ConfigError('"phases" must be a table or a list', stage='overrides')

        start = None
        raw_start = data.get('start')
        if raw_start is not None:
            if not isinstance(raw_start, dict):
                raise ConfigError('"start" must be a table', stage='overrides')
            start = StartOverride(
                cmd=raw_start.get('cmd'),
                run_image=raw_start.get('runImage'),
                use_slim_image=raw_start.get('slim'),
                only_include_files=_string_list(raw_start, 'onlyIncludeFiles', 'start'),
            )

        variables = data.get('variables') or {}
        if not isinstance(variables, dict):
            raise ConfigError('"variables" must be a table', stage='overrides')

        return cls(
            phases=phases,
            start=start,
            variables={str(key): str(value) for key, value in variables.items()},
            base_image=data.get('baseImage'),
        )

    @classmethod
    def from_app(cls, app: App) -> 'PlanOverrides':
        """Read the first plan file found in the source root."""
        for name in PLAN_FILES:
            if app.includes_file(name):
                logger.debug('Loading plan file', plan_file=name)
                try:
                    return cls.from_dict(app.read_structured(name) or {})
                except ConfigError as e:
                    raise e.with_context('overrides')
        return cls()

    @classmethod
    def from_environment(cls, env: Environment) -> 'PlanOverrides':
        """Translate ``WEBOPS_*`` configuration entries; other entries pass through as variables."""
        phases = []

        pkgs = _split(env.get_config_variable('PKGS'))
        apt_pkgs = _split(env.get_config_variable('APT_PKGS'))
        if pkgs or apt_pkgs:
            phases.append(PhaseOverride(
                name=SETUP,
                pkgs=[Pkg.parse(pkg) for pkg in pkgs],
                apt_pkgs=[Pkg.parse(pkg) for pkg in apt_pkgs],
            ))

        for phase_name in (INSTALL, BUILD):
            cmd = env.get_config_variable(f'{phase_name}_CMD')
            if cmd:
                phases.append(PhaseOverride(name=phase_name, cmds=[cmd], replace_cmds=True))

        start = None
        start_cmd = env.get_config_variable('START_CMD')
        slim = env.is_config_variable_truthy('SLIM_RUNTIME') or None
        if start_cmd or slim:
            start = StartOverride(cmd=start_cmd, use_slim_image=slim)

        return cls(
            phases=phases,
            start=start,
            variables=env.passthrough_variables(),
            base_image=env.get_config_variable('BASE_IMAGE'),
        )


def _string_list(data: Dict[str, Any], key: str, phase: str) -> List[str]:
    value = data.get(key)
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f'"{key}" of "{phase}" must be a list of strings', stage='overrides')
    return value


def _pkg_list(data: Dict[str, Any], key: str, phase: str) -> List[Pkg]:
    """A package list; a single string or table counts as a list of one."""
    value = data.get(key)
    if value is None:
        return []
    if isinstance(value, (str, dict)):
        value = [value]
    if not isinstance(value, list):
        raise ConfigError(f'"{key}" of "{phase}" must be a list of packages', stage='overrides')
    try:
        return [Pkg.from_value(item) for item in value]
    except ConfigError as e:
        raise e.with_context('overrides')


def _split(value: Optional[str]) -> Iterable[str]:
    if not value:
        return []
    return [item for item in value.replace(',', ' ').split() if item]
