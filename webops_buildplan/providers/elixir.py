"""Elixir provider."""

import re
from typing import Dict, Optional

from ..app import App
from ..environment import Environment
from ..phase import BUILD, INSTALL, SETUP, Phase, Pkg, StartPhase
from .base import PhaseProvider


class ElixirProvider(PhaseProvider):
    """Detect and configure Elixir applications."""

    name = 'elixir'
    display_name = 'Elixir'

    def detect(self, app: App, env: Environment) -> bool:
        return app.includes_file('mix.exs')

    def setup(self, app: App, env: Environment) -> Optional[Phase]:
        pkgs = [
            Pkg('elixir', self._tool_version(app, 'elixir')),
            Pkg('erlang', self._tool_version(app, 'erlang')),
        ]
        if self._is_phoenix(app) and app.includes_file('assets/package.json'):
            pkgs.append(Pkg('nodejs'))
        return Phase(SETUP, pkgs=pkgs)

    def install(self, app: App, env: Environment) -> Optional[Phase]:
        cmds = ['mix local.hex --force', 'mix local.rebar --force', 'mix deps.get --only prod']
        include = ['mix.exs']
        if app.includes_file('mix.lock'):
            include.append('mix.lock')
        return Phase(INSTALL, cmds=cmds, only_include_files=include, depends_on=[SETUP])

    def build(self, app: App, env: Environment) -> Optional[Phase]:
        cmds = ['mix compile']
        if self._is_phoenix(app):
            cmds.append('mix assets.deploy')
        return Phase(BUILD, cmds=cmds, cache_directories=['_build', 'deps'], depends_on=[INSTALL])

    def start(self, app: App, env: Environment) -> Optional[StartPhase]:
        if self._is_phoenix(app):
            return StartPhase('mix ecto.migrate && mix phx.server')
        return StartPhase('mix run --no-halt')

    def environment_variables(self, app: App, env: Environment) -> Dict[str, str]:
        return {'MIX_ENV': 'prod'}

    def _is_phoenix(self, app: App) -> bool:
        return ':phoenix,' in app.read_file('mix.exs')

    def _tool_version(self, app: App, tool: str) -> Optional[str]:
        """Version pinned in .tool-versions (asdf) or elixir_buildpack.config."""
        if app.includes_file('.tool-versions'):
            match = re.search(rf'^{tool}\s+([\w.\-]+)', app.read_file('.tool-versions'), re.MULTILINE)
            if match:
                return match.group(1)

        if app.includes_file('elixir_buildpack.config'):
            match = re.search(rf'{tool}_version=([\d.]+)', app.read_file('elixir_buildpack.config'))
            if match:
                return match.group(1)

        return None
