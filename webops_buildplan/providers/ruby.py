"""Ruby provider."""

import re
from typing import Dict, Optional

from ..app import App
from ..environment import Environment
from ..phase import BUILD, INSTALL, SETUP, Phase, Pkg, StartPhase
from .base import PhaseProvider

RUBY_DIRECTIVE = re.compile(r'''^\s*ruby\s+['"]([^'"]+)['"]''', re.MULTILINE)


class RubyProvider(PhaseProvider):
    name = 'ruby'
    display_name = 'Ruby'

    def detect(self, app: App, env: Environment) -> bool:
        return app.includes_file('Gemfile')

    def setup(self, app: App, env: Environment) -> Optional[Phase]:
        apt_pkgs = ['libpq-dev'] if self._has_gem(app, 'pg') else []
        return Phase(SETUP, pkgs=[Pkg('ruby', self._detect_ruby_version(app))], apt_pkgs=apt_pkgs)

    def install(self, app: App, env: Environment) -> Optional[Phase]:
        include = ['Gemfile']
        if app.includes_file('Gemfile.lock'):
            include.append('Gemfile.lock')
        return Phase(
            INSTALL,
            cmds=['bundle install --without development test'],
            cache_directories=['/root/.bundle/cache'],
            only_include_files=include,
            depends_on=[SETUP],
        )

    def build(self, app: App, env: Environment) -> Optional[Phase]:
        if self._detect_framework(app) != 'rails':
            return None
        return Phase(BUILD, cmds=['bundle exec rails assets:precompile'], depends_on=[INSTALL])

    def start(self, app: App, env: Environment) -> Optional[StartPhase]:
        framework = self._detect_framework(app)
        if framework == 'rails':
            return StartPhase('bundle exec rails db:migrate && bundle exec puma -C config/puma.rb')
        if framework == 'rack':
            return StartPhase('bundle exec rackup -o 0.0.0.0 -p ${PORT:-9292}')
        return None

    def environment_variables(self, app: App, env: Environment) -> Dict[str, str]:
        if self._detect_framework(app) == 'rails':
            return {'RAILS_ENV': 'production', 'RAILS_LOG_TO_STDOUT': 'enabled'}
        return {}

    def _detect_framework(self, app: App) -> str:
        if app.includes_file('config/application.rb'):
            return 'rails'
        if app.includes_file('config.ru'):
            return 'rack'
        return 'ruby'

    def _has_gem(self, app: App, gem: str) -> bool:
        return bool(re.search(rf'''^\s*gem\s+['"]{re.escape(gem)}['"]''', app.read_file('Gemfile'), re.MULTILINE))

    def _detect_ruby_version(self, app: App) -> Optional[str]:
        if app.includes_file('.ruby-version'):
            return app.read_file('.ruby-version').strip().replace('ruby-', '') or None
        match = RUBY_DIRECTIVE.search(app.read_file('Gemfile'))
        return match.group(1) if match else None
