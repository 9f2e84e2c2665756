"""Error types and error display for build plan generation.

Every failure raised while generating a plan derives from BuildPlanError and
carries the stage and provider it happened in, so the caller gets exactly one
descriptive error and never a partially generated plan.
"""

import sys
from typing import Any, Dict, List, Optional, Self

from rich.console import Console
from rich.panel import Panel

console = Console(stderr=True)


class BuildPlanError(Exception):
    """Base exception class for build plan errors."""

    def __init__(
        self: Self,
        message: str,
        suggestions: Optional[List[str]] = None,
        stage: Optional[str] = None,
        provider: Optional[str] = None
    ) -> None:
        """Initialize build plan error.

        Args:
            message: The error message to display.
            suggestions: Optional list of recovery suggestions.
            stage: Generation stage the error was raised in.
            provider: Name of the provider that failed, if any.
        """
        super().__init__(message)
        self.message = message
        self.suggestions = suggestions or []
        self.stage = stage
        self.provider = provider

    def with_context(self: Self, stage: str, provider: Optional[str] = None) -> Self:
        """Attach stage/provider context without overwriting an existing one."""
        if self.stage is None:
            self.stage = stage
        if self.provider is None:
            self.provider = provider
        return self

    def __str__(self: Self) -> str:
        location = []
        if self.stage:
            location.append(f"stage={self.stage}")
        if self.provider:
            location.append(f"provider={self.provider}")
        if location:
            return f"{self.message} ({', '.join(location)})"
        return self.message


class SourceError(BuildPlanError):
    """Raised when the source directory cannot be read."""
    pass


class ConfigError(BuildPlanError):
    """Raised for malformed configuration or manifests."""
    pass


class ManifestParseError(ConfigError):
    """Raised when a structured manifest file cannot be parsed."""

    def __init__(self: Self, path: str, reason: str) -> None:
        super().__init__(
            f"Failed to parse {path}: {reason}",
            [f"Check that {path} is valid and not truncated"]
        )
        self.path = path


class MissingStartCommand(ConfigError):
    """Raised when a start command is required but none could be determined."""
    pass


class DetectionError(BuildPlanError):
    """Raised when a provider fails while detecting or synthesizing phases."""
    pass


class PlanGraphError(BuildPlanError):
    """Raised when the phase dependency graph is cyclic or unresolvable."""
    pass


class NoProviderMatched(BuildPlanError):
    """Raised when no provider matches and the policy is fail-closed."""
    pass


class ErrorHandler:
    """Displays build plan errors with recovery suggestions."""

    def __init__(self: Self) -> None:
        """Initialize the error handler."""
        self.error_patterns: Dict[str, Dict[str, Any]] = {
            "no_provider": {
                "types": (NoProviderMatched,),
                "suggestions": [
                    "Make sure the path points at the application root",
                    "Add a start command: --start-cmd '<command>'",
                    "Serve the directory as static files: --fallback",
                ]
            },
            "phase_graph": {
                "types": (PlanGraphError,),
                "suggestions": [
                    "Check dependsOn entries in webops.toml for cycles",
                    "Make sure every dependsOn entry names an existing phase",
                ]
            },
            "missing_start": {
                "types": (MissingStartCommand,),
                "suggestions": [
                    "Set a start command: --start-cmd '<command>'",
                    "Or set WEBOPS_START_CMD=<command> with --env",
                ]
            },
            "config": {
                "types": (ConfigError,),
                "suggestions": [
                    "Environment entries must look like KEY=VALUE",
                    "Validate JSON/TOML/YAML manifests in the repository",
                ]
            },
            "detection": {
                "types": (DetectionError, SourceError),
                "suggestions": [
                    "Check that the source directory is readable",
                    "Run with --verbose to see which provider failed",
                ]
            },
        }

    def identify_error_type(self: Self, error: Exception) -> Optional[str]:
        """Identify the type of error.

        Args:
            error: The exception to classify.

        Returns:
            The error type key if identified, None otherwise.
        """
        for error_type, pattern_data in self.error_patterns.items():
            if isinstance(error, pattern_data["types"]):
                return error_type
        return None

    def get_suggestions(self: Self, error: Exception) -> List[str]:
        """Get recovery suggestions for an error.

        Args:
            error: The exception to analyze.

        Returns:
            List of recovery suggestions.
        """
        if isinstance(error, BuildPlanError) and error.suggestions:
            return error.suggestions

        error_type = self.identify_error_type(error)
        if error_type:
            return self.error_patterns[error_type]["suggestions"]

        return [
            "Run with --verbose for more details",
            "List available providers: webops-plan providers",
        ]

    def display_error(
        self: Self,
        error: Exception,
        context: Optional[str] = None,
        show_suggestions: bool = True
    ) -> None:
        """Display an error with formatting and suggestions.

        Args:
            error: The exception that occurred.
            context: Optional context about what was being attempted.
            show_suggestions: Whether to show recovery suggestions.
        """
        content = []

        if context:
            content.append(f"[bold]Context:[/bold] {context}")
            content.append("")

        content.append(f"[bold red]Error:[/bold red] {error}")

        if show_suggestions:
            suggestions = self.get_suggestions(error)
            if suggestions:
                content.append("")
                content.append("[bold blue]Suggested solutions:[/bold blue]")
                for i, suggestion in enumerate(suggestions, 1):
                    content.append(f"  {i}. {suggestion}")

        console.print(Panel(
            "\n".join(content),
            title="[bold red]Build Plan Error[/bold red]",
            border_style="red",
            expand=False
        ))


def handle_exception(
    error: Exception,
    context: Optional[str] = None,
    exit_code: int = 1
) -> None:
    """Display an error and terminate with the given exit code.

    Args:
        error: The exception that occurred.
        context: Optional context about what was being attempted.
        exit_code: Exit code to use when terminating.
    """
    ErrorHandler().display_error(error, context)
    sys.exit(exit_code)
