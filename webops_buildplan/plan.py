"""
The frozen build plan handed to the image builder.

The keys produced by ``BuildPlan.to_dict`` are an external contract: builders
parse them, so they must not change between versions.
"""

import hashlib
import json
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from .phase import Phase, StartPhase, freeze_fields

PLAN_KEYS = ('providers', 'baseImage', 'runImage', 'variables', 'phases', 'start')


@dataclass(frozen=True)
class BuildPlan:
    """Immutable, ordered build plan."""

    phases: Tuple[Phase, ...] = ()
    start: Optional[StartPhase] = None
    variables: Mapping[str, str] = field(default_factory=dict)
    base_image: str = ''
    run_image: str = ''
    providers: Tuple[str, ...] = ()

    def __post_init__(self):
        freeze_fields(self, 'phases', 'providers')
        object.__setattr__(
            self, 'variables', MappingProxyType(dict(sorted(dict(self.variables or {}).items())))
        )

    def phase(self, name: str) -> Optional[Phase]:
        for phase in self.phases:
            if phase.name == name:
                return phase
        return None

    @property
    def phase_names(self) -> Tuple[str, ...]:
        return tuple(phase.name for phase in self.phases)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'providers': list(self.providers),
            'baseImage': self.base_image,
            'runImage': self.run_image,
            'variables': dict(self.variables),
            'phases': [phase.to_dict() for phase in self.phases],
            'start': self.start.to_dict() if self.start else None,
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def fingerprint(self) -> str:
        """SHA-256 of the canonical JSON form; equal plans share a fingerprint."""
        canonical = json.dumps(self.to_dict(), sort_keys=True, separators=(',', ':'))
        return hashlib.sha256(canonical.encode('utf-8')).hexdigest()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BuildPlan':
        start = data.get('start')
        return cls(
            phases=tuple(Phase.from_dict(phase) for phase in data.get('phases') or ()),
            start=StartPhase.from_dict(start) if start else None,
            variables=data.get('variables') or {},
            base_image=data.get('baseImage', ''),
            run_image=data.get('runImage', ''),
            providers=tuple(data.get('providers') or ()),
        )

    @classmethod
    def from_json(cls, text: str) -> 'BuildPlan':
        return cls.from_dict(json.loads(text))
