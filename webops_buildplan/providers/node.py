"""Node.js provider."""

from typing import Dict, Optional

from ..app import App
from ..environment import Environment
from ..phase import BUILD, INSTALL, SETUP, Phase, Pkg, StartPhase
from .base import PhaseProvider

DEFAULT_NODE_VERSION = '18'

LOCK_FILES = {
    'npm': 'package-lock.json',
    'yarn': 'yarn.lock',
    'pnpm': 'pnpm-lock.yaml',
    'bun': 'bun.lockb',
}

CACHE_DIRECTORIES = {
    'npm': '/root/.npm',
    'yarn': '/usr/local/share/.cache/yarn',
    'pnpm': '/root/.local/share/pnpm/store/v3',
    'bun': '/root/.bun/install/cache',
}

# Frameworks that cannot start without a build step
BUILD_REQUIRED = ('nextjs', 'nuxtjs', 'remix', 'sveltekit', 'astro')


class NodeProvider(PhaseProvider):
    """Detect and configure Node.js projects."""

    name = 'node'
    display_name = 'Node.js'

    def detect(self, app: App, env: Environment) -> bool:
        return app.includes_file('package.json')

    def setup(self, app: App, env: Environment) -> Optional[Phase]:
        package_manager = self._detect_package_manager(app)
        pkgs = [Pkg('nodejs', self._detect_node_version(app))]
        if package_manager != 'npm':
            pkgs.append(Pkg(package_manager))
        return Phase(SETUP, pkgs=pkgs)

    def install(self, app: App, env: Environment) -> Optional[Phase]:
        package_manager = self._detect_package_manager(app)
        lock_file = LOCK_FILES[package_manager]
        include = ['package.json']
        if app.includes_file(lock_file):
            include.append(lock_file)

        return Phase(
            INSTALL,
            cmds=[self._get_install_command(app, package_manager)],
            cache_directories=[CACHE_DIRECTORIES[package_manager]],
            only_include_files=include,
            depends_on=[SETUP],
        )

    def build(self, app: App, env: Environment) -> Optional[Phase]:
        package_data = self._read_package_json(app)
        package_manager = self._detect_package_manager(app)
        framework = self._detect_framework(package_data)
        scripts = package_data.get('scripts') or {}

        if 'build' not in scripts and framework not in BUILD_REQUIRED:
            return None

        cache_directories = ['node_modules/.cache']
        if framework == 'nextjs':
            cache_directories.append('.next/cache')

        return Phase(
            BUILD,
            cmds=[self._run_script(package_manager, 'build')],
            cache_directories=cache_directories,
            depends_on=[INSTALL],
        )

    def start(self, app: App, env: Environment) -> Optional[StartPhase]:
        package_data = self._read_package_json(app)
        package_manager = self._detect_package_manager(app)
        scripts = package_data.get('scripts') or {}

        if 'start' in scripts:
            return StartPhase(self._run_script(package_manager, 'start'))
        if 'serve' in scripts:
            return StartPhase(self._run_script(package_manager, 'serve'))

        main = package_data.get('main')
        if main and app.includes_file(main):
            return StartPhase(f'node {main}')
        for entry_file in ('index.js', 'server.js', 'app.js', 'src/index.js'):
            if app.includes_file(entry_file):
                return StartPhase(f'node {entry_file}')
        return None

    def environment_variables(self, app: App, env: Environment) -> Dict[str, str]:
        return {
            'NODE_ENV': 'production',
            'NPM_CONFIG_PRODUCTION': 'false',  # Install devDependencies for build
        }

    def _read_package_json(self, app: App) -> dict:
        package_data = app.read_json('package.json')
        return package_data if isinstance(package_data, dict) else {}

    def _detect_node_version(self, app: App) -> str:
        engines = self._read_package_json(app).get('engines') or {}
        version = engines.get('node') if isinstance(engines, dict) else None
        if not version and app.includes_file('.nvmrc'):
            version = app.read_file('.nvmrc').strip()
        if not version:
            return DEFAULT_NODE_VERSION

        # Keep the major version of ranges like ">=18.0.0" or "^20"
        digits = version.lstrip('v^~>=< ').split('.')[0]
        return digits if digits.isdigit() else DEFAULT_NODE_VERSION

    def _detect_framework(self, package_data: dict) -> str:
        deps = {**(package_data.get('dependencies') or {}), **(package_data.get('devDependencies') or {})}

        if 'next' in deps:
            return 'nextjs'
        if 'nuxt' in deps or 'nuxt3' in deps:
            return 'nuxtjs'
        if '@remix-run/react' in deps:
            return 'remix'
        if '@sveltejs/kit' in deps:
            return 'sveltekit'
        if 'astro' in deps:
            return 'astro'
        if 'vite' in deps:
            return 'vite'
        if 'express' in deps:
            return 'express'
        return 'nodejs'

    def _detect_package_manager(self, app: App) -> str:
        """Detect package manager (npm, yarn, pnpm, bun)."""
        if app.includes_file('pnpm-lock.yaml'):
            return 'pnpm'
        if app.includes_file('yarn.lock'):
            return 'yarn'
        if app.includes_file('bun.lockb'):
            return 'bun'
        return 'npm'

    def _get_install_command(self, app: App, package_manager: str) -> str:
        has_lock_file = app.includes_file(LOCK_FILES[package_manager])
        if package_manager == 'npm':
            return 'npm ci' if has_lock_file else 'npm install'
        if package_manager == 'yarn':
            return 'yarn install --frozen-lockfile' if has_lock_file else 'yarn install'
        if package_manager == 'pnpm':
            return 'pnpm install --frozen-lockfile' if has_lock_file else 'pnpm install'
        return 'bun install'

    def _run_script(self, package_manager: str, script: str) -> str:
        if package_manager == 'npm':
            return f'npm run {script}'
        if package_manager == 'bun':
            return f'bun run {script}'
        return f'{package_manager} {script}'
