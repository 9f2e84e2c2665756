"""
Phase data model.

Phases are frozen values. List-valued fields are stored as tuples; lists
passed to the constructors are converted.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional, Tuple, Union

from .errors import ConfigError

SETUP = 'setup'
INSTALL = 'install'
BUILD = 'build'
CANONICAL_PHASES = (SETUP, INSTALL, BUILD)


def freeze_fields(obj, *names):
    # frozen dataclasses need object.__setattr__ during __post_init__
    for name in names:
        value = getattr(obj, name)
        object.__setattr__(obj, name, tuple(value) if value is not None else ())


@dataclass(frozen=True, eq=False)
class Pkg:
    """
    Reference to one system or runtime package.

    Two references with the same name are equal regardless of version, so
    sets of packages de-duplicate by name.
    """

    name: str
    version: Optional[str] = None
    overlay: Optional[str] = None

    def __eq__(self, other) -> bool:
        if not isinstance(other, Pkg):
            return NotImplemented
        return self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)

    def __str__(self) -> str:
        if self.version:
            return f'{self.name}@{self.version}'
        return self.name

    def same_as(self, other: 'Pkg') -> bool:
        """Full structural comparison, including version and overlay."""
        return (self.name, self.version, self.overlay) == (other.name, other.version, other.overlay)

    @classmethod
    def parse(cls, value: str) -> 'Pkg':
        """Parse ``name`` or ``name@version``; a leading ``@`` belongs to the name."""
        value = value.strip()
        name, separator, version = value.rpartition('@')
        if not separator or not name:
            return cls(value)
        return cls(name, version or None)

    def to_value(self) -> Union[str, Dict[str, str]]:
        if self.overlay:
            value = {'name': self.name, 'overlay': self.overlay}
            if self.version:
                value['version'] = self.version
            return value
        return str(self)

    @classmethod
    def from_value(cls, value: Union[str, Dict[str, Any]]) -> 'Pkg':
        """
        Read a package written as ``name@version`` or as a table.

        Raises:
            ConfigError: If the entry is neither a non-empty string nor a
                table with a ``name``
        """
        if isinstance(value, dict):
            name = value.get('name')
            if not isinstance(name, str) or not name.strip():
                raise ConfigError(
                    f'Package entry {value!r} needs a "name"',
                    ['Write packages as "name", "name@version" or {name = "...", version = "..."}'],
                )
            version = value.get('version')
            overlay = value.get('overlay')
            return cls(name.strip(), str(version) if version else None, str(overlay) if overlay else None)

        if not isinstance(value, str) or not value.strip():
            raise ConfigError(
                f'Invalid package entry {value!r}',
                ['Write packages as "name", "name@version" or {name = "...", version = "..."}'],
            )
        return cls.parse(value)


@dataclass(frozen=True)
class Phase:
    """
    A named unit of build work.

    ``libraries`` are shared libraries installed next to ``pkgs``,
    ``archive`` pins the package database snapshot they come from and
    ``paths`` are directories added to ``PATH`` for later phases.
    """

    name: str
    cmds: Tuple[str, ...] = ()
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
        freeze_fields(self, 'cmds', 'libraries', 'cache_directories', 'only_include_files',
                      'paths', 'depends_on')
        object.__setattr__(self, 'pkgs', tuple(_as_pkg(pkg) for pkg in self.pkgs or ()))
        object.__setattr__(self, 'apt_pkgs', tuple(_as_pkg(pkg) for pkg in self.apt_pkgs or ()))

    @property
    def is_empty(self) -> bool:
        return not any(getattr(self, f.name) for f in fields(self) if f.name != 'name')

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'name': self.name,
            'cmds': list(self.cmds),
            'pkgs': [pkg.to_value() for pkg in self.pkgs],
            'aptPkgs': [pkg.to_value() for pkg in self.apt_pkgs],
            'libraries': list(self.libraries),
            'cacheDirectories': list(self.cache_directories),
            'onlyIncludeFiles': list(self.only_include_files),
            'paths': list(self.paths),
            'dependsOn': list(self.depends_on),
        }
        if self.archive:
            data['archive'] = self.archive
        if self.base_image:
            data['baseImage'] = self.base_image
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], name: Optional[str] = None) -> 'Phase':
        return cls(
            name=name or data['name'],
            cmds=data.get('cmds') or (),
            pkgs=[Pkg.from_value(pkg) for pkg in data.get('pkgs') or ()],
            apt_pkgs=[Pkg.from_value(pkg) for pkg in data.get('aptPkgs') or ()],
            libraries=data.get('libraries') or (),
            cache_directories=data.get('cacheDirectories') or (),
            only_include_files=data.get('onlyIncludeFiles') or (),
            paths=data.get('paths') or (),
            depends_on=data.get('dependsOn') or (),
            archive=data.get('archive'),
            base_image=data.get('baseImage'),
        )


@dataclass(frozen=True)
class StartPhase:
    """
    The command that runs the application.

    ``run_image`` and ``use_slim_image`` stay ``None`` until someone sets
    them; the runtime image is picked when the plan is frozen.
    """

    cmd: Optional[str] = None
    run_image: Optional[str] = None
    use_slim_image: Optional[bool] = None
    only_include_files: Tuple[str, ...] = ()

    def __post_init__(self):
        freeze_fields(self, 'only_include_files')

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'cmd': self.cmd,
            'onlyIncludeFiles': list(self.only_include_files),
        }
        if self.run_image:
            data['runImage'] = self.run_image
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StartPhase':
        return cls(
            cmd=data.get('cmd'),
            run_image=data.get('runImage'),
            only_include_files=data.get('onlyIncludeFiles') or (),
        )


@dataclass(frozen=True)
class PartialPlan:
    """Everything one provider contributes to a plan."""

    phases: Tuple[Phase, ...] = ()
    start: Optional[StartPhase] = None
    variables: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        freeze_fields(self, 'phases')
        object.__setattr__(self, 'variables', dict(self.variables or {}))

    def phase(self, name: str) -> Optional[Phase]:
        for phase in self.phases:
            if phase.name == name:
                return phase
        return None


def _as_pkg(value: Union[Pkg, str]) -> Pkg:
    return value if isinstance(value, Pkg) else Pkg.parse(value)
