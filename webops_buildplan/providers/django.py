"""Django provider.

Runs before the generic Python provider and only adds what is specific to
Django: static file collection and the WSGI/ASGI start command. The Python
runtime, dependencies and virtualenv come from the Python provider, whose
contributions are merged with these.
"""

from typing import Dict, Optional

from ..app import App
from ..environment import Environment
from ..phase import BUILD, INSTALL, Phase, StartPhase
from .base import PhaseProvider

REQUIREMENT_FILES = (
    'requirements.txt',
    'requirements/base.txt',
    'requirements/production.txt',
    'pyproject.toml',
    'Pipfile',
)


class DjangoProvider(PhaseProvider):
    """Detect and configure Django projects."""

    name = 'django'
    display_name = 'Django'

    def detect(self, app: App, env: Environment) -> bool:
        if not app.includes_file('manage.py'):
            return False
        return any(
            app.includes_file(name) and 'django' in app.read_file(name).lower()
            for name in REQUIREMENT_FILES
        )

    def build(self, app: App, env: Environment) -> Optional[Phase]:
        return Phase(
            BUILD,
            cmds=['python manage.py collectstatic --noinput'],
            depends_on=[INSTALL],
        )

    def start(self, app: App, env: Environment) -> Optional[StartPhase]:
        project_module = self._detect_project_module(app)
        if self._uses_channels(app) and project_module:
            return StartPhase(
                f'python manage.py migrate && daphne -b 0.0.0.0 -p ${{PORT:-8000}} {project_module}.asgi:application'
            )
        if project_module:
            return StartPhase(
                f'python manage.py migrate && gunicorn {project_module}.wsgi:application --bind 0.0.0.0:${{PORT:-8000}}'
            )
        return StartPhase('python manage.py migrate && python manage.py runserver 0.0.0.0:${PORT:-8000}')

    def environment_variables(self, app: App, env: Environment) -> Dict[str, str]:
        project_module = self._detect_project_module(app)
        if project_module:
            return {'DJANGO_SETTINGS_MODULE': f'{project_module}.settings'}
        return {}

    def _detect_project_module(self, app: App) -> Optional[str]:
        """Dotted module of the directory holding wsgi.py next to settings."""
        for wsgi in app.find_files('**/wsgi.py'):
            module_dir = wsgi.parent
            # A wsgi.py in the root has no importable package name
            if module_dir == app.source:
                continue
            if (module_dir / 'settings.py').is_file() or (module_dir / 'settings').is_dir():
                return app.relativize(module_dir).replace('/', '.')
        return None

    def _uses_channels(self, app: App) -> bool:
        return any(
            app.includes_file(name) and 'channels' in app.read_file(name).lower()
            for name in REQUIREMENT_FILES
        )
