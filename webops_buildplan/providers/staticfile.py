"""Static site provider.

Matches an explicit ``Staticfile`` or ``WEBOPS_STATIC_ROOT``; it is also the
fallback used when no other provider matches and the policy allows one.
"""

from typing import Optional

from ..app import App
from ..environment import Environment
from ..errors import ConfigError
from ..logging_config import get_logger
from ..phase import StartPhase
from .base import PhaseProvider

logger = get_logger(__name__)

NGINX_IMAGE = 'nginx:alpine'
NGINX_ROOT = '/usr/share/nginx/html'


class StaticfileProvider(PhaseProvider):
    name = 'staticfile'
    display_name = 'Static Site'

    def detect(self, app: App, env: Environment) -> bool:
        return app.includes_file('Staticfile') or env.get_config_variable('STATIC_ROOT') is not None

    def start(self, app: App, env: Environment) -> Optional[StartPhase]:
        root = self._static_root(app, env)
        return StartPhase(
            f"cp -r {root}/. {NGINX_ROOT} && nginx -g 'daemon off;'",
            run_image=NGINX_IMAGE,
            only_include_files=[root],
        )

    def _static_root(self, app: App, env: Environment) -> str:
        configured = env.get_config_variable('STATIC_ROOT')
        if configured:
            return configured.strip('/') or '.'

        if app.includes_file('Staticfile'):
            try:
                staticfile = app.read_yaml('Staticfile')
            except ConfigError as e:
                logger.warning('Ignoring unreadable Staticfile', provider=self.name, error=str(e))
                staticfile = None
            if isinstance(staticfile, dict) and staticfile.get('root'):
                return str(staticfile['root']).strip('/') or '.'

        for candidate in ('public', 'dist', 'build'):
            if app.includes_file(f'{candidate}/index.html'):
                return candidate
        return '.'
