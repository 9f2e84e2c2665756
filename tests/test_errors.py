"""Tests for error types, error display and structured logging."""

import json
import logging
import unittest
from unittest.mock import Mock, patch

import pytest

from webops_buildplan.errors import (
    BuildPlanError,
    ConfigError,
    DetectionError,
    ErrorHandler,
    ManifestParseError,
    MissingStartCommand,
    NoProviderMatched,
    PlanGraphError,
    handle_exception,
)
from webops_buildplan.logging_config import (
    CorrelationIDManager,
    correlation_scope,
    get_logger,
    log_operation,
)


class TestErrorHandler(unittest.TestCase):
    """Test cases for the ErrorHandler class."""

    def setUp(self) -> None:
        """Set up test fixtures."""
        self.error_handler = ErrorHandler()

    def test_identify_error_types(self) -> None:
        """Test classification of plan errors."""
        self.assertEqual(self.error_handler.identify_error_type(NoProviderMatched('x')), 'no_provider')
        self.assertEqual(self.error_handler.identify_error_type(PlanGraphError('x')), 'phase_graph')
        self.assertEqual(self.error_handler.identify_error_type(MissingStartCommand('x')), 'missing_start')
        self.assertEqual(self.error_handler.identify_error_type(ManifestParseError('a.json', 'bad')), 'config')
        self.assertIsNone(self.error_handler.identify_error_type(RuntimeError('x')))

    def test_error_suggestions_take_precedence(self) -> None:
        """Test that suggestions attached to the error are used first."""
        error = ConfigError('bad', ['Fix the thing'])
        self.assertEqual(self.error_handler.get_suggestions(error), ['Fix the thing'])

    def test_generic_suggestions_for_unknown_error(self) -> None:
        """Test getting generic suggestions for unknown errors."""
        suggestions = self.error_handler.get_suggestions(RuntimeError('boom'))
        self.assertIn('Run with --verbose for more details', suggestions)

    @patch('webops_buildplan.errors.console')
    def test_display_error(self, mock_console: Mock) -> None:
        """Test displaying an error with suggestions."""
        self.error_handler.display_error(PlanGraphError('cycle', stage='resolve'), 'Generating plan')
        mock_console.print.assert_called_once()

    @patch('webops_buildplan.errors.console')
    def test_handle_exception_exits(self, mock_console: Mock) -> None:
        """Test that handle_exception terminates with the exit code."""
        with self.assertRaises(SystemExit) as ctx:
            handle_exception(DetectionError('boom'), exit_code=2)
        self.assertEqual(ctx.exception.code, 2)


class TestBuildPlanErrors(unittest.TestCase):
    """Test cases for the exception hierarchy."""

    def test_context_is_only_set_once(self) -> None:
        error = ConfigError('bad').with_context('synthesize', 'node')
        error.with_context('detect', 'deno')

        self.assertEqual(error.stage, 'synthesize')
        self.assertEqual(error.provider, 'node')
        self.assertEqual(str(error), 'bad (stage=synthesize, provider=node)')

    def test_manifest_parse_error_is_config_error(self) -> None:
        error = ManifestParseError('Cargo.toml', 'unexpected end')
        self.assertIsInstance(error, ConfigError)
        self.assertIn('Cargo.toml', error.message)
        self.assertTrue(error.suggestions)


@pytest.mark.parametrize('error_class', [
    ConfigError, DetectionError, PlanGraphError, NoProviderMatched, MissingStartCommand,
])
def test_errors_share_base_class(error_class) -> None:
    assert issubclass(error_class, BuildPlanError)
    assert str(error_class('message')) == 'message'


class TestStructuredLogging(unittest.TestCase):
    """Test cases for structured logging."""

    def test_entries_are_json_with_correlation_id(self) -> None:
        logger = get_logger('webops_buildplan.tests')
        with self.assertLogs('webops_buildplan.tests', level='INFO') as logs:
            with correlation_scope('abc-123'):
                logger.info('Generated build plan', phases=['setup'])

        entry = json.loads(logs.records[0].getMessage())
        self.assertEqual(entry['message'], 'Generated build plan')
        self.assertEqual(entry['correlation_id'], 'abc-123')
        self.assertEqual(entry['extra'], {'phases': ['setup']})
        self.assertNotIn('context', entry)

    def test_correlation_scope_is_cleared(self) -> None:
        with correlation_scope('abc-123'):
            pass
        self.assertIsNone(CorrelationIDManager._current_correlation_id)

    def test_log_operation_reraises(self) -> None:
        @log_operation('explode')
        def explode():
            raise ValueError('boom')

        with self.assertLogs(explode.__module__, level=logging.ERROR) as logs:
            with self.assertRaises(ValueError):
                explode()

        entry = json.loads(logs.records[0].getMessage())
        self.assertEqual(entry['extra']['operation'], 'explode')
        self.assertEqual(entry['exception']['type'], 'ValueError')
