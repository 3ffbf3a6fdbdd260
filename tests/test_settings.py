"""
Tests for application settings, logging, timeouts and error handling
"""

import io
import json
import logging
import os
import tempfile
import unittest
from argparse import Namespace
from pathlib import Path
from unittest.mock import patch

from bcg.utils.config import (
    BCGSettings,
    ConfigManager,
    OutputConfig,
    RegistryConfig,
    get_config,
    get_config_manager,
    reset_config_manager,
)
from bcg.utils.error_handling import (
    CompilationError,
    ConfigurationError,
    EmissionError,
    ErrorFormatter,
    PrefixGeneratorError,
    handle_errors,
)
from bcg.utils.exit_codes import BCGExitCodes, describe_exit_code
from bcg.utils.logging import BCGFormatter, LoggingTimer, setup_logging
from bcg.utils.timeout_config import TimeoutManager, TimeoutType


class TestSettings(unittest.TestCase):
    """Defaults, settings files and environment overrides"""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)
        self.root = Path(self.temp_dir.name)
        reset_config_manager()
        self.addCleanup(reset_config_manager)

    def write_settings(self, data):
        path = self.root / "settings.json"
        path.write_text(json.dumps(data) if isinstance(data, dict) else data)
        return path

    @patch.dict(os.environ, {}, clear=True)
    def test_defaults(self):
        settings = BCGSettings()
        self.assertEqual(settings.registry.url, "https://peeringdb.com/api/net")
        self.assertEqual(settings.bgpq4.mode, "auto")
        self.assertEqual(settings.output.control_socket, "/run/bird/bird.ctl")
        self.assertEqual(settings.output.workers, 1)
        self.assertIsNone(settings.rpki.vrp_path)

    @patch.dict(os.environ, {}, clear=True)
    def test_settings_file(self):
        path = self.write_settings({"output": {"output_dir": "/srv/bird", "workers": 8},
                                    "bgpq4": {"mode": "docker"}})
        settings = ConfigManager(path).get_config()
        self.assertEqual(settings.output.output_dir, "/srv/bird")
        self.assertEqual(settings.output.workers, 8)
        self.assertEqual(settings.bgpq4.mode, "docker")
        self.assertEqual(settings.registry.url, "https://peeringdb.com/api/net")

    @patch.dict(os.environ, {"BCG_WORKERS": "4", "BCG_OUTPUT_DIR": "/var/lib/bird",
                             "BCG_BGPQ4_AGGREGATE": "false"}, clear=True)
    def test_environment_overrides_file(self):
        path = self.write_settings({"output": {"output_dir": "/srv/bird", "workers": 8}})
        settings = ConfigManager(path).get_config()
        self.assertEqual(settings.output.output_dir, "/var/lib/bird")
        self.assertEqual(settings.output.workers, 4)
        self.assertFalse(settings.bgpq4.aggregate_prefixes)

    @patch.dict(os.environ, {"BCG_WORKERS": "many"}, clear=True)
    def test_invalid_environment_value_ignored(self):
        self.assertEqual(OutputConfig().workers, 1)

    def test_missing_explicit_file(self):
        with self.assertRaises(ConfigurationError):
            ConfigManager(self.root / "absent.json")

    def test_unparseable_file(self):
        with self.assertRaises(ConfigurationError):
            ConfigManager(self.write_settings("{not json"))

    def test_unknown_key_in_section(self):
        with self.assertRaises(ConfigurationError) as ctx:
            ConfigManager(self.write_settings({"registry": {"endpoint": "x"}}))
        self.assertIn("'registry'", str(ctx.exception))

    @patch.dict(os.environ, {}, clear=True)
    def test_validate_config(self):
        manager = ConfigManager(self.write_settings({
            "registry": {"url": "ftp://peeringdb.example"},
            "bgpq4": {"mode": "kubernetes"},
            "output": {"workers": 0},
            "rpki": {"vrp_path": str(self.root / "missing.json")},
            "logging": {"level": "LOUD"},
        }))
        issues = manager.validate_config()
        self.assertEqual(len(issues), 5)
        self.assertTrue(any("bgpq4 mode" in issue for issue in issues))

    @patch.dict(os.environ, {"BCG_PEERINGDB_API_KEY": "secret"}, clear=True)
    def test_to_dict_masks_api_key(self):
        data = ConfigManager(self.write_settings({})).to_dict()
        self.assertEqual(data["registry"]["api_key"], "********")
        self.assertEqual(RegistryConfig().api_key, "secret")

    @patch.dict(os.environ, {}, clear=True)
    def test_manager_is_shared(self):
        path = self.write_settings({"output": {"workers": 3}})
        manager = get_config_manager(path)
        self.assertIs(get_config_manager(), manager)
        self.assertEqual(get_config().output.workers, 3)
        reset_config_manager()
        self.assertIsNot(get_config_manager(path), manager)


class TestLogging(unittest.TestCase):

    def setUp(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level

        def restore():
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

        self.addCleanup(restore)

    @patch.dict(os.environ, {}, clear=True)
    def test_console_handler(self):
        handlers = setup_logging(level="DEBUG", console_colors=False)
        self.assertEqual(list(handlers), ["console"])
        self.assertEqual(logging.getLogger().level, logging.DEBUG)

    @patch.dict(os.environ, {}, clear=True)
    def test_file_handler(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            log_file = Path(temp_dir) / "logs" / "bcg.log"
            handlers = setup_logging(level="INFO", log_to_file=True, log_file=str(log_file))
            logging.getLogger("bcg.test").info("hello")
            handlers["file"].close()
            self.assertIn("bcg.test - INFO - hello", log_file.read_text())

    def test_formatter_duration(self):
        record = logging.LogRecord("bcg", logging.INFO, __file__, 1, "done", None, None)
        record.duration = 1.5
        formatted = BCGFormatter(use_colors=False).format(record)
        self.assertTrue(formatted.endswith("done [took 1.500s]"))

    def test_logging_timer(self):
        logger = logging.getLogger("bcg.test.timer")
        with self.assertLogs(logger, level="INFO") as logs:
            with LoggingTimer(logger, "peer enrichment"):
                pass
        self.assertIn("Completed peer enrichment", logs.output[-1])

    def test_logging_timer_failure(self):
        logger = logging.getLogger("bcg.test.timer")
        with self.assertLogs(logger, level="ERROR") as logs:
            with self.assertRaises(ValueError):
                with LoggingTimer(logger, "policy compilation"):
                    raise ValueError("bad peer")
        self.assertIn("Failed policy compilation", logs.output[0])


class TestTimeouts(unittest.TestCase):

    @patch.dict(os.environ, {}, clear=True)
    def test_defaults(self):
        manager = TimeoutManager()
        self.assertEqual(manager.get_timeout(TimeoutType.REGISTRY_QUERY), 5.0)
        self.assertEqual(manager.get_timeout(TimeoutType.PREFIX_GENERATION), 30.0)

    @patch.dict(os.environ, {"BCG_DAEMON_CONTROL_TIMEOUT": "500"}, clear=True)
    def test_clamped_to_maximum(self):
        self.assertEqual(TimeoutManager().get_timeout(TimeoutType.DAEMON_CONTROL), 120.0)

    @patch.dict(os.environ, {"BCG_REGISTRY_TIMEOUT": "soon"}, clear=True)
    def test_invalid_value_uses_default(self):
        self.assertEqual(TimeoutManager().get_timeout(TimeoutType.REGISTRY_QUERY), 5.0)

    def test_reset(self):
        manager = TimeoutManager()
        with patch.dict(os.environ, {"BCG_REGISTRY_TIMEOUT": "2"}):
            self.assertEqual(manager.get_timeout(TimeoutType.REGISTRY_QUERY), 2.0)
        with patch.dict(os.environ, {"BCG_REGISTRY_TIMEOUT": "3"}):
            self.assertEqual(manager.get_timeout(TimeoutType.REGISTRY_QUERY), 2.0)
            manager.reset()
            self.assertEqual(manager.get_timeout(TimeoutType.REGISTRY_QUERY), 3.0)


class TestErrorHandling(unittest.TestCase):
    """Error formatting and exit code mapping"""

    def run_command(self, error):
        @handle_errors('bcg.test')
        def command():
            raise error

        with patch('sys.stdout', new_callable=io.StringIO) as stdout:
            with self.assertLogs('bcg.test', level='ERROR'):
                code = command()
        return code, stdout.getvalue()

    def test_exit_codes_per_stage(self):
        self.assertEqual(self.run_command(ConfigurationError("bad"))[0],
                         BCGExitCodes.CONFIGURATION_ERROR)
        self.assertEqual(self.run_command(PrefixGeneratorError("bgpq4 failed"))[0],
                         BCGExitCodes.BGPQ4_EXECUTION_FAILED)
        self.assertEqual(self.run_command(CompilationError("cone without prefixes"))[0],
                         BCGExitCodes.COMPILATION_FAILED)
        self.assertEqual(self.run_command(EmissionError("socket gone"))[0],
                         BCGExitCodes.EMISSION_FAILED)

    def test_peer_in_message(self):
        code, output = self.run_command(
            CompilationError("import limit is zero", peer="cloudflare", guidance="Set import-limit4"))
        self.assertIn("compile failed: [cloudflare] import limit is zero", output)
        self.assertIn("Suggestion: Set import-limit4", output)

    def test_unexpected_error(self):
        code, output = self.run_command(KeyError("x"))
        self.assertEqual(code, BCGExitCodes.UNEXPECTED_ERROR)
        self.assertIn("Unexpected error occurred", output)

    def test_technical_details_shown_on_request(self):
        error = EmissionError("BIRD rejected 'configure'", technical_details="8002 syntax error")
        self.assertNotIn("8002", ErrorFormatter.format_error(error))
        self.assertIn("Technical: 8002 syntax error",
                      ErrorFormatter.format_error(error, hide_technical=False))

    def test_success_passthrough(self):
        @handle_errors('bcg.test')
        def command():
            return BCGExitCodes.SUCCESS

        self.assertEqual(command(), 0)

    def test_verbose_args_show_technical_details(self):
        @handle_errors('bcg.test')
        def command(args):
            raise PrefixGeneratorError("bgpq4 failed", technical_details="ERROR: no such as-set")

        for verbose, shown in ((True, True), (False, False)):
            with patch('sys.stdout', new_callable=io.StringIO) as stdout:
                with self.assertLogs('bcg.test', level='ERROR') as logs:
                    command(Namespace(verbose=verbose))
            self.assertEqual("Technical: ERROR: no such as-set" in stdout.getvalue(), shown)
            self.assertTrue(any("no such as-set" in line for line in logs.output))

    def test_describe_exit_code(self):
        self.assertEqual(describe_exit_code(4), "enrichment-failed")
        self.assertEqual(describe_exit_code(99), "exit-99")

    def test_exit_codes_in_use(self):
        self.assertEqual(sorted(int(code) for code in BCGExitCodes),
                         [0, 1, 2, 3, 4, 5, 6, 17, 22, 130])


if __name__ == '__main__':
    unittest.main()
