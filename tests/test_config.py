import unittest
from unittest.mock import patch, mock_open
import os
import sys
import logging
import tempfile
import shutil

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import config as config_module  # noqa: E402
from config import Config, CONFIG_KEYS  # noqa: E402


class TestConfig(unittest.TestCase):

    def setUp(self):
        """Setup method to run before each test."""
        # Store original environment and clear it for tests to avoid interference
        self.original_environ = dict(os.environ)
        os.environ.clear()
        self.config_instance = Config()
        logging.disable(logging.CRITICAL)

    def tearDown(self):
        os.environ.clear()
        os.environ.update(self.original_environ)
        logging.disable(logging.NOTSET)

    def test_config_map_initialization(self):
        for key_path, rule in CONFIG_KEYS:
            self.assertEqual(self.config_instance.CONFIG_MAP[key_path], rule)

    def test_get_returns_default_when_unset(self):
        self.assertIsNone(self.config_instance.get(('fixtures', 'dir')))
        self.assertEqual(self.config_instance.get(('fixtures', 'dir'), 'fixtures'), 'fixtures')

    def test_env_fallback_and_int_cast(self):
        os.environ['HTTP_TIMEOUT'] = '30'
        os.environ['FIXTURES_DIR'] = 'recorded'
        self.assertEqual(self.config_instance.get(('http', 'timeout')), 30)
        self.assertEqual(self.config_instance.get(('fixtures', 'dir')), 'recorded')

    def test_env_int_cast_failure_returns_string(self):
        os.environ['HTTP_TIMEOUT'] = 'soon'
        self.assertEqual(self.config_instance.get(('http', 'timeout')), 'soon')
        self.assertFalse(self.config_instance.validate_config())

    def test_yaml_takes_priority_over_env(self):
        os.environ['HTTP_USER_AGENT'] = 'from-env'
        self.config_instance._config = {'http': {'user_agent': 'from-yaml'}}
        self.assertEqual(self.config_instance.get(('http', 'user_agent')), 'from-yaml')

    def test_ensure_loaded_loads_only_once(self):
        with patch.object(self.config_instance, 'load', return_value=True) as mock_load:
            self.config_instance.ensure_loaded()
            self.config_instance.ensure_loaded()
        mock_load.assert_called_once_with()

    @patch('config.load_dotenv')
    @patch('builtins.open', new_callable=mock_open, read_data="http:\n  user_agent: from-yaml/1\n")
    @patch('os.path.exists')
    def test_ensure_loaded_reads_yaml_before_first_get(self, mock_exists, _mock_file_open, _mock_load_dotenv):
        mock_exists.side_effect = lambda path: path == 'config.yaml'
        os.environ['HTTP_USER_AGENT'] = 'from-env'

        self.assertTrue(self.config_instance.ensure_loaded())
        self.assertEqual(self.config_instance.get(('http', 'user_agent')), 'from-yaml/1')

    @patch('config.load_dotenv')
    @patch('builtins.open', new_callable=mock_open, read_data="fixtures:\n  dir: recorded\nhttp:\n  timeout: 15\n")
    @patch('os.path.exists')
    def test_load_yaml_only_success(self, mock_exists, mock_file_open, mock_load_dotenv):
        mock_exists.side_effect = lambda path: path == 'config.yaml'

        self.assertTrue(self.config_instance.load())

        mock_load_dotenv.assert_not_called()
        mock_file_open.assert_called_once_with('config.yaml', 'r', encoding='utf-8')
        self.assertEqual(self.config_instance.get(('fixtures', 'dir')), 'recorded')
        self.assertEqual(self.config_instance.get(('http', 'timeout')), 15)

    @patch('config.load_dotenv', return_value=True)
    @patch('os.path.exists')
    def test_load_env_file_when_present(self, mock_exists, mock_load_dotenv):
        mock_exists.side_effect = lambda path: path == '.env'
        self.assertTrue(self.config_instance.load())
        mock_load_dotenv.assert_called_once_with('.env', override=True)
        self.assertTrue(self.config_instance._env_file_loaded)

    @patch('os.path.exists', return_value=False)
    def test_explicit_missing_config_fails(self, _mock_exists):
        os.environ['NETSTUB_CONFIG'] = 'custom.yaml'
        self.assertFalse(self.config_instance.load())

    def test_invalid_values_fail_validation(self):
        self.config_instance._config = {'http': {'timeout': -1}, 'logging': {'level': 'LOUD'}}
        self.assertFalse(self.config_instance.validate_config())

    def test_valid_values_pass_validation(self):
        self.config_instance._config = {
            'fixtures': {'dir': 'fixtures'},
            'http': {'timeout': 60, 'user_agent': 'netstub/0.1'},
            'logging': {'level': 'debug', 'dir': 'logs'},
        }
        self.assertTrue(self.config_instance.validate_config())


class TestSetupLogging(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.root = logging.getLogger()
        self.saved_handlers = list(self.root.handlers)
        self.saved_level = self.root.level

    def tearDown(self):
        for handler in list(self.root.handlers):
            self.root.removeHandler(handler)
            handler.close()
        for handler in self.saved_handlers:
            self.root.addHandler(handler)
        self.root.setLevel(self.saved_level)
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_setup_logging_is_idempotent(self):
        config_module.setup_logging(log_level="debug", log_dir=self.tmpdir)
        config_module.setup_logging(log_level=logging.WARNING, log_dir=self.tmpdir)
        self.assertEqual(len(self.root.handlers), 2)
        self.assertEqual(self.root.level, logging.WARNING)
        self.assertTrue(os.path.exists(os.path.join(self.tmpdir, "netstub.log")))


if __name__ == "__main__":
    unittest.main()
