"""PHP provider."""

import re
from typing import Optional

from ..app import App
from ..environment import Environment
from ..phase import INSTALL, SETUP, Phase, Pkg, StartPhase
from .base import PhaseProvider


class PhpProvider(PhaseProvider):
    name = 'php'
    display_name = 'PHP'

    def detect(self, app: App, env: Environment) -> bool:
        return app.includes_file('composer.json') or app.includes_file('index.php')

    def setup(self, app: App, env: Environment) -> Optional[Phase]:
        pkgs = [Pkg('php', self._detect_php_version(app))]
        if app.includes_file('composer.json'):
            pkgs.append(Pkg('composer'))
        return Phase(SETUP, pkgs=pkgs)

    def install(self, app: App, env: Environment) -> Optional[Phase]:
        if not app.includes_file('composer.json'):
            return None
        include = ['composer.json']
        if app.includes_file('composer.lock'):
            include.append('composer.lock')
        return Phase(
            INSTALL,
            cmds=['composer install --no-dev --optimize-autoloader --no-interaction'],
            cache_directories=['/root/.composer/cache'],
            only_include_files=include,
            depends_on=[SETUP],
        )

    def start(self, app: App, env: Environment) -> Optional[StartPhase]:
        framework = self._detect_framework(app)
        if framework == 'laravel':
            return StartPhase('php artisan migrate --force && php -S 0.0.0.0:${PORT:-8080} -t public')
        return StartPhase('php -S 0.0.0.0:${PORT:-8080}')

    def _detect_framework(self, app: App) -> str:
        if app.includes_file('artisan'):
            return 'laravel'
        if app.includes_file('wp-config.php') or app.includes_file('wp-config-sample.php'):
            return 'wordpress'
        return 'php'

    def _detect_php_version(self, app: App) -> Optional[str]:
        if not app.includes_file('composer.json'):
            return None
        composer = app.read_json('composer.json') or {}
        constraint = (composer.get('require') or {}).get('php', '')
        # First version in the constraint: '>=8.1 <9' and '^8.1|^8.2' give 8.1
        match = re.search(r'\d+(\.\d+)*', str(constraint))
        return match.group(0) if match else None
