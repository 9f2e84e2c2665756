"""Base provider interface."""

from abc import ABC, abstractmethod
from typing import Dict, Optional

from ..app import App
from ..environment import Environment
from ..phase import PartialPlan, Phase, StartPhase


class Provider(ABC):
    """
    Base provider class.

    A provider detects one ecosystem and contributes phases for it. Providers
    hold no state; every call gets the source handle and configuration.
    """

    name: str = 'base'
    display_name: str = 'Base'

    def identify(self) -> str:
        return self.name

    @abstractmethod
    def detect(self, app: App, env: Environment) -> bool:
        """
        Detect if this provider applies to the project.

        Must only read from ``app``; calling it twice on the same tree gives
        the same answer.
        """
        pass

    @abstractmethod
    def contribute(self, app: App, env: Environment) -> PartialPlan:
        """Everything this provider adds to the plan. Assumes ``detect`` was true."""
        pass

    def __repr__(self) -> str:
        return f'<{type(self).__name__} {self.name}>'


class PhaseProvider(Provider):
    """
    Provider defined phase by phase.

    Override any of ``setup``, ``install``, ``build`` and ``start``; a method
    returning ``None`` contributes nothing for that phase.
    """

    def setup(self, app: App, env: Environment) -> Optional[Phase]:
        return None

    def install(self, app: App, env: Environment) -> Optional[Phase]:
        return None

    def build(self, app: App, env: Environment) -> Optional[Phase]:
        return None

    def start(self, app: App, env: Environment) -> Optional[StartPhase]:
        return None

    def environment_variables(self, app: App, env: Environment) -> Dict[str, str]:
        return {}

    def contribute(self, app: App, env: Environment) -> PartialPlan:
        phases = [
            phase for phase in (
                self.setup(app, env),
                self.install(app, env),
                self.build(app, env),
            )
            if phase is not None
        ]
        return PartialPlan(
            phases=phases,
            start=self.start(app, env),
            variables=self.environment_variables(app, env),
        )


class PlanProvider(Provider):
    """Provider whose phases depend on each other and are produced together."""

    @abstractmethod
    def get_build_plan(self, app: App, env: Environment) -> Optional[PartialPlan]:
        pass

    def contribute(self, app: App, env: Environment) -> PartialPlan:
        return self.get_build_plan(app, env) or PartialPlan()
