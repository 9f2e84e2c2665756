"""Deno provider."""

import re
from typing import Optional

from ..app import App
from ..environment import Environment
from ..phase import BUILD, SETUP, PartialPlan, Phase, StartPhase
from .base import PlanProvider

DENO_IMPORT = re.compile(r'^import .+ from ["\']https://deno\.land/[^"\']+\.ts["\'];?$', re.MULTILINE)


class DenoProvider(PlanProvider):
    """
    Detect and configure Deno projects.

    The build phase primes the module cache for the same entrypoint the start
    command runs, so both are produced together.
    """

    name = 'deno'
    display_name = 'Deno'

    def detect(self, app: App, env: Environment) -> bool:
        return (
            app.includes_file('deno.json')
            or app.includes_file('deno.jsonc')
            or app.find_match(DENO_IMPORT, '**/*.ts')
        )

    def get_build_plan(self, app: App, env: Environment) -> Optional[PartialPlan]:
        setup = Phase(SETUP, pkgs=['deno'])

        start_file = self._get_start_file(app)
        build = Phase(
            BUILD,
            cmds=[f'deno cache {start_file}'] if start_file else [],
            cache_directories=['/root/.cache/deno'],
            depends_on=[SETUP],
        )

        start_cmd = self._get_start_command(app, start_file)

        return PartialPlan(
            phases=[setup, build],
            start=StartPhase(start_cmd) if start_cmd else None,
            variables={'DENO_DIR': '/root/.cache/deno'},
        )

    def _get_start_command(self, app: App, start_file: Optional[str]) -> Optional[str]:
        """An explicit ``tasks.start`` wins over running the entrypoint."""
        if app.includes_file('deno.json'):
            deno_json = app.read_json('deno.json') or {}
            tasks = deno_json.get('tasks') or {}
            if isinstance(tasks, dict) and tasks.get('start'):
                return tasks['start']

        if start_file:
            return f'deno run --allow-all {start_file}'
        return None

    def _get_start_file(self, app: App) -> Optional[str]:
        """First index.ts or index.js, shallowest first."""
        matches = app.find_files('**/index.[tj]s')
        if not matches:
            return None
        return app.relativize(matches[0])
