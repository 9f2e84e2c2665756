"""Rust provider."""

from typing import Optional

from ..app import App
from ..environment import Environment
from ..phase import BUILD, SETUP, Phase, Pkg, StartPhase
from .base import PhaseProvider


class RustProvider(PhaseProvider):
    name = 'rust'
    display_name = 'Rust'

    def detect(self, app: App, env: Environment) -> bool:
        return app.includes_file('Cargo.toml')

    def setup(self, app: App, env: Environment) -> Optional[Phase]:
        return Phase(SETUP, pkgs=[Pkg('rust', self._detect_rust_version(app))])

    def build(self, app: App, env: Environment) -> Optional[Phase]:
        return Phase(
            BUILD,
            cmds=['cargo build --release'],
            cache_directories=['/root/.cargo/git', '/root/.cargo/registry', 'target'],
            depends_on=[SETUP],
        )

    def start(self, app: App, env: Environment) -> Optional[StartPhase]:
        name = self._get_package_name(app)
        if not name:
            return None
        binary = f'target/release/{name}'
        return StartPhase(f'./{binary}', use_slim_image=True, only_include_files=[binary])

    def _cargo_toml(self, app: App) -> dict:
        return app.read_toml('Cargo.toml') or {}

    def _get_package_name(self, app: App) -> Optional[str]:
        # Workspaces have no [package]; the binary cannot be guessed
        package = self._cargo_toml(app).get('package') or {}
        return package.get('name')

    def _detect_rust_version(self, app: App) -> Optional[str]:
        if app.includes_file('rust-toolchain'):
            return app.read_file('rust-toolchain').strip() or None
        package = self._cargo_toml(app).get('package') or {}
        version = package.get('rust-version')
        return str(version) if version else None
