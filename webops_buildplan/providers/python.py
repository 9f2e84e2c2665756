"""Generic Python provider (FastAPI, Flask, etc.)."""

import re
from typing import Dict, Optional

from ..app import App
from ..environment import Environment
from ..errors import ConfigError
from ..logging_config import get_logger
from ..phase import INSTALL, SETUP, Phase, Pkg, StartPhase
from .base import PhaseProvider

logger = get_logger(__name__)

DEFAULT_PYTHON_VERSION = '3.11'
VENV_PATH = '/opt/venv'

REQUIREMENT_FILES = (
    'requirements.txt',
    'requirements/production.txt',
    'requirements/prod.txt',
    'requirements/base.txt',
)

# Requirement name -> system packages needed to build it
APT_REQUIREMENTS = {
    'psycopg2': ('libpq-dev',),
    'mysqlclient': ('default-libmysqlclient-dev', 'pkg-config'),
    'pillow': ('libjpeg-dev', 'zlib1g-dev'),
}


class PythonProvider(PhaseProvider):
    """Detect generic Python projects (FastAPI, Flask, etc.)."""

    name = 'python'
    display_name = 'Python'

    def detect(self, app: App, env: Environment) -> bool:
        return (
            self._requirements_file(app) is not None
            or app.includes_file('pyproject.toml')
            or app.includes_file('Pipfile')
        )

    def setup(self, app: App, env: Environment) -> Optional[Phase]:
        requirements = self._read_requirements(app).lower()
        apt_pkgs = []
        for requirement, packages in APT_REQUIREMENTS.items():
            if re.search(rf'^{requirement}\b', requirements, re.MULTILINE):
                apt_pkgs.extend(packages)

        pkgs = [Pkg('python', self._detect_python_version(app))]
        dep_manager = self._detect_dependency_manager(app)
        if dep_manager != 'pip':
            pkgs.append(Pkg(dep_manager))

        return Phase(SETUP, pkgs=pkgs, apt_pkgs=apt_pkgs)

    def install(self, app: App, env: Environment) -> Optional[Phase]:
        dep_manager = self._detect_dependency_manager(app)
        requirements_file = self._requirements_file(app)
        create_venv = f'python -m venv {VENV_PATH} && . {VENV_PATH}/bin/activate'

        if dep_manager == 'poetry':
            cmds = [f'{create_venv} && poetry install --no-dev --no-interaction']
            include = ['pyproject.toml', 'poetry.lock']
        elif dep_manager == 'pipenv':
            cmds = ['pipenv install --deploy --system']
            include = ['Pipfile', 'Pipfile.lock']
        elif requirements_file:
            cmds = [f'{create_venv} && pip install -r {requirements_file}']
            # Split requirement files include each other with -r
            include = [requirements_file.split('/')[0]]
        else:
            # pyproject.toml without a lock file; needs the whole package
            cmds = [f'{create_venv} && pip install .']
            include = []

        return Phase(
            INSTALL,
            cmds=cmds,
            cache_directories=['/root/.cache/pip'],
            only_include_files=include,
            paths=[] if dep_manager == 'pipenv' else [f'{VENV_PATH}/bin'],
            depends_on=[SETUP],
        )

    def start(self, app: App, env: Environment) -> Optional[StartPhase]:
        framework = self._detect_framework(app)
        entry = 'main' if app.includes_file('main.py') else 'app'

        if framework == 'fastapi':
            return StartPhase(f'uvicorn {entry}:app --host 0.0.0.0 --port ${{PORT:-8000}}')
        if framework == 'flask':
            return StartPhase(f'gunicorn {entry}:app --bind 0.0.0.0:${{PORT:-8000}}')
        if framework == 'streamlit':
            return StartPhase(f'streamlit run {entry}.py --server.port ${{PORT:-8501}}')
        if app.includes_file('main.py'):
            return StartPhase('python main.py')
        if app.includes_file('app.py'):
            return StartPhase('python app.py')
        return None

    def environment_variables(self, app: App, env: Environment) -> Dict[str, str]:
        variables = {
            'PYTHONUNBUFFERED': '1',
            'PYTHONDONTWRITEBYTECODE': '1',
        }
        if self._detect_dependency_manager(app) != 'pipenv':
            variables['VIRTUAL_ENV'] = VENV_PATH
            variables['PATH'] = f'{VENV_PATH}/bin:$PATH'
        return variables

    def _requirements_file(self, app: App) -> Optional[str]:
        """requirements.txt, or the production or base file of a requirements/ directory."""
        for candidate in REQUIREMENT_FILES:
            if app.includes_file(candidate):
                return candidate
        matches = app.find_files('requirements/*.txt')
        if matches:
            return app.relativize(matches[0])
        return None

    def _read_requirements(self, app: App) -> str:
        requirements_file = self._requirements_file(app)
        if requirements_file:
            return app.read_file(requirements_file)
        return ''

    def _read_pyproject(self, app: App) -> dict:
        """pyproject.toml is optional input here; a broken one is skipped."""
        if not app.includes_file('pyproject.toml'):
            return {}
        try:
            return app.read_toml('pyproject.toml') or {}
        except ConfigError as e:
            logger.warning('Ignoring unreadable pyproject.toml', provider=self.name, error=str(e))
            return {}

    def _detect_framework(self, app: App) -> str:
        """Detect Python web framework."""
        dependencies = self._read_requirements(app).lower()
        project = self._read_pyproject(app).get('project') or {}
        dependencies += '\n'.join(str(dep).lower() for dep in project.get('dependencies') or [])

        for framework in ('fastapi', 'flask', 'streamlit'):
            if framework in dependencies:
                return framework
        return 'python'

    def _detect_python_version(self, app: App) -> str:
        """Detect Python version from .python-version, runtime.txt or pyproject.toml."""
        if app.includes_file('.python-version'):
            version = app.read_file('.python-version').strip()
            if version:
                return version

        # Heroku style: python-3.11.0
        if app.includes_file('runtime.txt'):
            version = app.read_file('runtime.txt').strip().replace('python-', '')
            if version:
                return version

        project = self._read_pyproject(app).get('project') or {}
        match = re.search(r'(\d+\.\d+)', str(project.get('requires-python', '')))
        if match:
            return match.group(1)

        return DEFAULT_PYTHON_VERSION

    def _detect_dependency_manager(self, app: App) -> str:
        if app.includes_file('poetry.lock'):
            return 'poetry'
        if app.includes_file('Pipfile.lock') or app.includes_file('Pipfile'):
            return 'pipenv'
        return 'pip'
