"""
Ecosystem providers.

Each provider can detect if a project uses its ecosystem and contribute
phases for it. Providers are consulted in priority order; the first match is
the primary ecosystem and later matches add their phases alongside it.
"""

from typing import List

from .base import Provider, PhaseProvider, PlanProvider
from .deno import DenoProvider
from .django import DjangoProvider
from .elixir import ElixirProvider
from .go import GoProvider
from .java import JavaProvider
from .node import NodeProvider
from .php import PhpProvider
from .python import PythonProvider
from .ruby import RubyProvider
from .rust import RustProvider
from .staticfile import StaticfileProvider

__all__ = [
    'Provider',
    'PhaseProvider',
    'PlanProvider',
    'DenoProvider',
    'DjangoProvider',
    'ElixirProvider',
    'GoProvider',
    'JavaProvider',
    'NodeProvider',
    'PhpProvider',
    'PythonProvider',
    'RubyProvider',
    'RustProvider',
    'StaticfileProvider',
    'get_providers',
]


def get_providers() -> List[Provider]:
    """Providers in priority order (more specific first)."""
    return [
        DenoProvider(),
        DjangoProvider(),       # Django before generic Python
        ElixirProvider(),
        GoProvider(),
        JavaProvider(),
        PhpProvider(),
        RubyProvider(),         # Rails apps often carry a package.json for assets
        NodeProvider(),
        PythonProvider(),
        RustProvider(),
        StaticfileProvider(),   # Lowest priority, also the fallback
    ]
