"""
WebOps build plans.

Inspects an application source tree, detects its ecosystem and produces a
declarative build plan (setup, install, build and start phases) that the
WebOps builder turns into a container image.
"""

from .app import App
from .environment import Environment
from .errors import (
    BuildPlanError,
    ConfigError,
    DetectionError,
    ManifestParseError,
    MissingStartCommand,
    NoProviderMatched,
    PlanGraphError,
    SourceError,
)
from .generator import (
    NO_MATCH_FAIL,
    NO_MATCH_FALLBACK,
    BuildPlanGenerator,
    GeneratePlanOptions,
    generate_build_plan,
)
from .images import ImageConfig
from .overrides import PhaseOverride, PlanOverrides, StartOverride
from .phase import PartialPlan, Phase, Pkg, StartPhase
from .plan import BuildPlan
from .providers import get_providers

__version__ = '0.1.0'

__all__ = [
    'App',
    'BuildPlan',
    'BuildPlanError',
    'BuildPlanGenerator',
    'ConfigError',
    'DetectionError',
    'Environment',
    'GeneratePlanOptions',
    'ImageConfig',
    'ManifestParseError',
    'MissingStartCommand',
    'NO_MATCH_FAIL',
    'NO_MATCH_FALLBACK',
    'NoProviderMatched',
    'PartialPlan',
    'Phase',
    'PhaseOverride',
    'PlanGraphError',
    'PlanOverrides',
    'Pkg',
    'SourceError',
    'StartOverride',
    'StartPhase',
    'generate_build_plan',
    'get_providers',
]
