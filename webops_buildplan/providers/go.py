"""Go provider."""

from typing import Optional

from ..app import App
from ..environment import Environment
from ..phase import BUILD, INSTALL, SETUP, Phase, Pkg, StartPhase
from .base import PhaseProvider

DEFAULT_GO_VERSION = '1.21'
BINARY = 'out'


class GoProvider(PhaseProvider):
    """Detect and configure Go projects."""

    name = 'go'
    display_name = 'Go'

    def detect(self, app: App, env: Environment) -> bool:
        return app.includes_file('go.mod') or app.includes_file('main.go')

    def setup(self, app: App, env: Environment) -> Optional[Phase]:
        return Phase(SETUP, pkgs=[Pkg('go', self._extract_go_version(app))])

    def install(self, app: App, env: Environment) -> Optional[Phase]:
        if not app.includes_file('go.mod'):
            return None

        include = ['go.mod']
        if app.includes_file('go.sum'):
            include.append('go.sum')

        return Phase(
            INSTALL,
            cmds=['go mod download'],
            cache_directories=['/root/go/pkg/mod'],
            only_include_files=include,
            depends_on=[SETUP],
        )

    def build(self, app: App, env: Environment) -> Optional[Phase]:
        main_package = self._find_main_package(app)
        target = f'./{main_package}' if main_package else '.'
        return Phase(
            BUILD,
            cmds=[f'go build -o {BINARY} {target}'],
            cache_directories=['/root/.cache/go-build'],
            depends_on=[SETUP],
        )

    def start(self, app: App, env: Environment) -> Optional[StartPhase]:
        # Static binary; unless cgo is requested the slim image is enough
        return StartPhase(
            f'./{BINARY}',
            use_slim_image=not env.is_config_variable_truthy('GO_CGO'),
            only_include_files=[BINARY],
        )

    def _extract_go_version(self, app: App) -> str:
        """Extract Go version from go.mod."""
        if not app.includes_file('go.mod'):
            return DEFAULT_GO_VERSION
        for line in app.read_file('go.mod').splitlines():
            if line.strip().startswith('go '):
                return line.strip().replace('go ', '', 1).strip()
        return DEFAULT_GO_VERSION

    def _find_main_package(self, app: App) -> str:
        """Directory of the main package, relative to the root ('' for the root)."""
        if app.includes_file('main.go'):
            return ''
        for candidate in ('cmd/main.go', 'cmd/server/main.go'):
            if app.includes_file(candidate):
                return candidate.rsplit('/', 1)[0]
        return ''
