"""Read-only view of an application source tree."""

import json
import re
import tomllib
from pathlib import Path
from typing import Any, List, Pattern, Union

import yaml

from .errors import ManifestParseError, SourceError

# Directories that never hold application sources worth inspecting
EXCLUDED_DIRS = frozenset({
    '.git', 'node_modules', 'venv', '.venv', 'env', '__pycache__', '.tox',
})

GLOB_CHARS = ('*', '?', '[')


class App:
    """
    Source handle over the project directory.

    Every method only reads from disk; nothing in this class writes to the
    source tree.
    """

    def __init__(self, path: Union[str, Path]):
        source = Path(path).resolve()
        if not source.is_dir():
            raise SourceError(
                f'Source directory {path} does not exist',
                ['Pass the path of the application root directory'],
                stage='load',
            )
        self.source = source

    def includes_file(self, pattern: str) -> bool:
        """Check whether a file (or any file matching a glob) exists."""
        if any(char in pattern for char in GLOB_CHARS):
            return bool(self.find_files(pattern))
        return (self.source / pattern).is_file()

    def includes_directory(self, name: str) -> bool:
        return (self.source / name).is_dir()

    def find_files(self, pattern: str) -> List[Path]:
        """
        Find files matching a glob relative to the source root.

        Args:
            pattern: Glob pattern, ``**`` recurses

        Returns:
            Absolute paths ordered by depth then name, skipping vendored
            directories
        """
        results = []
        try:
            for file in self.source.glob(pattern):
                relative = file.relative_to(self.source)
                if any(part in EXCLUDED_DIRS for part in relative.parts[:-1]):
                    continue
                if file.is_file():
                    results.append(file)
        except OSError as e:
            raise SourceError(f'Failed to search {pattern}: {e}') from e

        # Shallowest first so top-level entrypoints win
        return sorted(results, key=lambda file: (len(file.relative_to(self.source).parts), file))

    def find_match(self, regex: Union[str, Pattern], pattern: str) -> bool:
        """Check whether any file matching ``pattern`` contains ``regex``."""
        if isinstance(regex, str):
            regex = re.compile(regex, re.MULTILINE)

        for file in self.find_files(pattern):
            if regex.search(self._read_path(file)):
                return True
        return False

    def read_file(self, name: str) -> str:
        return self._read_path(self.source / name)

    def read_structured(self, name: str) -> Any:
        """
        Parse a JSON, TOML or YAML manifest, chosen by file extension.

        Raises:
            ManifestParseError: If the content is malformed
            SourceError: If the file cannot be read
        """
        suffix = Path(name).suffix.lower()
        if suffix in ('.json', '.jsonc'):
            return self.read_json(name)
        if suffix == '.toml':
            return self.read_toml(name)
        if suffix in ('.yaml', '.yml'):
            return self.read_yaml(name)
        raise ManifestParseError(name, f'unsupported manifest format "{suffix}"')

    def read_json(self, name: str) -> Any:
        try:
            return json.loads(self.read_file(name))
        except json.JSONDecodeError as e:
            raise ManifestParseError(name, str(e)) from e

    def read_toml(self, name: str) -> Any:
        try:
            return tomllib.loads(self.read_file(name))
        except tomllib.TOMLDecodeError as e:
            raise ManifestParseError(name, str(e)) from e

    def read_yaml(self, name: str) -> Any:
        try:
            return yaml.safe_load(self.read_file(name))
        except yaml.YAMLError as e:
            raise ManifestParseError(name, str(e)) from e

    def relativize(self, path: Union[str, Path]) -> str:
        """Return ``path`` relative to the source root, with forward slashes."""
        path = Path(path)
        if not path.is_absolute():
            path = self.source / path
        try:
            return path.relative_to(self.source).as_posix()
        except ValueError as e:
            raise SourceError(f'{path} is outside of {self.source}') from e

    def _read_path(self, path: Path) -> str:
        try:
            return path.read_text(encoding='utf-8', errors='replace')
        except OSError as e:
            raise SourceError(f'Failed to read {self.relativize(path)}: {e}') from e
