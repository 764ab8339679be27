import importlib
import os
import unittest
from configparser import NoOptionError
from unittest.mock import patch

from resourcegate import config

DATA_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "data"))
CONFIG_DIR = os.path.abspath(os.path.join(DATA_DIR, "config"))


class TestConfig(unittest.TestCase):
    def setUp(self):
        """Start from a freshly loaded config module, other test modules may have cached configuration."""
        importlib.reload(config)

    def tearDown(self):
        """The config module should be reloaded."""
        # Because we can alter global state, we should reload the
        # config module after every test
        importlib.reload(config)

    def use_test_config(self, snippets=False):
        config.CONFIG_FILES = {"resourcegate": [os.path.join(CONFIG_DIR, "resourcegate.conf")]}
        config.CONFIG_ENV = {"resourcegate": ""}
        config.CONFIG_SNIPPETS_DIRS = {
            "resourcegate": [os.path.join(CONFIG_DIR, "resourcegate.conf.d")] if snippets else []
        }

    def test_default_config_files(self):
        """Test default config file list."""
        self.assertEqual(
            config.CONFIG_FILES,
            {
                "resourcegate": ["/etc/resourcegate/resourcegate.conf", "/usr/etc/resourcegate/resourcegate.conf"],
                "logging": ["/etc/resourcegate/logging.conf", "/usr/etc/resourcegate/logging.conf"],
            },
        )

    def test_no_component(self):
        """Test that no component causes exception"""
        self.assertRaises(Exception, config.get_config, "")

    def test_invalid_env(self):
        """Test that invalid CONFIG_ENV causes exception"""
        config.CONFIG_ENV = []
        self.assertRaises(Exception, config.get_config, "test")

    def test_invalid_files(self):
        """Test that invalid CONFIG_FILES causes exception"""
        config.CONFIG_ENV = {"test": ""}
        config.CONFIG_FILES = []
        self.assertRaises(Exception, config.get_config, "test")

    def test_invalid_component(self):
        """Test that invalid component causes exception"""
        self.assertRaises(Exception, config.get_config, "test")

    def test_missing_files_give_empty_config(self):
        """Test that a component without any configuration file falls back on defaults."""
        config.CONFIG_FILES = {"test": [os.path.join(CONFIG_DIR, "non-existent.conf")]}
        config.CONFIG_ENV = {"test": ""}
        config.CONFIG_SNIPPETS_DIRS = {"test": []}
        self.assertEqual(config.get_config("test").sections(), [])
        self.assertEqual(config.get("test", "attribute", fallback="fallback"), "fallback")

    def test_first_base_file_used(self):
        """Test giving multiple possibilities for base file."""
        config.CONFIG_FILES = {
            "test": [
                os.path.join(CONFIG_DIR, "gate-1.conf"),
                os.path.join(CONFIG_DIR, "gate-2.conf"),
            ]
        }
        config.CONFIG_ENV = {"test": ""}
        config.CONFIG_SNIPPETS_DIRS = {"test": []}
        c = config.get_config("test")
        self.assertEqual(c.get("default", "attribute_1"), "value_1")
        # Assert that if the first file is found, the second is ignored
        self.assertRaises(NoOptionError, c.get, "default", "attribute_2")

    def test_missing_base_file_ignored(self):
        """Test that if a file is missing, it tries the next."""
        config.CONFIG_FILES = {
            "test": [
                os.path.join(CONFIG_DIR, "non-existent.conf"),
                os.path.join(CONFIG_DIR, "gate-2.conf"),
            ]
        }
        config.CONFIG_ENV = {"test": ""}
        config.CONFIG_SNIPPETS_DIRS = {"test": []}
        c = config.get_config("test")
        self.assertRaises(NoOptionError, c.get, "default", "attribute_1")
        self.assertEqual(c.get("default", "attribute_2"), "value_2")

    def test_merge_config(self):
        """Test reading multiple config files and merging them."""
        self.use_test_config(snippets=True)
        c = config.get_config("resourcegate")
        self.assertEqual(c.get("resourcegate", "attribute_1"), "value_1_3")
        self.assertEqual(c.get("resourcegate", "attribute_2"), "value_2")
        self.assertEqual(c.get("resourcegate", "attribute_3"), "value_3")

    def test_cache_config(self):
        """Test the config is properly cached between calls."""
        self.use_test_config()
        c = config.get_config("resourcegate")
        self.assertEqual(c.get("resourcegate", "attribute", fallback=None), None)

        c.set("resourcegate", "attribute", "value")
        self.assertEqual(c.get("resourcegate", "attribute"), "value")

        c_copy = config.get_config("resourcegate")
        self.assertEqual(c_copy.get("resourcegate", "attribute"), "value")

    def test_env_overrides_all(self):
        """Test that using an env var to set config ignore other files"""
        with patch.dict(os.environ, {"RESOURCEGATE_CONFIG": os.path.join(CONFIG_DIR, "resourcegate.conf")}):
            # Reload the configuration to use the set environment variable on setup
            importlib.reload(config)
            config.CONFIG_SNIPPETS_DIRS = {"resourcegate": [os.path.join(CONFIG_DIR, "resourcegate.conf.d")]}
            c = config.get_config("resourcegate")
            self.assertEqual(c.get("resourcegate", "attribute_1"), "value_1")
            self.assertRaises(Exception, c.get, "resourcegate", "attribute_2")

    def test_get(self):
        """Sanity test for config.get()"""
        self.use_test_config()

        # Check that non-existing option will fallback
        self.assertEqual(config.get("resourcegate", "attribute", fallback="fallback"), "fallback")

        # Check that existing option is properly obtained
        self.assertEqual(config.get("resourcegate", "attribute_1", fallback="fallback"), "value_1")

        # Check that quoted option is unquoted
        self.assertEqual(config.get("resourcegate", "quoted"), "unquoted")

        # Check that quotes and trailing spaces are properly removed
        self.assertEqual(config.get("resourcegate", "quotes_spaces"), "unquoted")

        # Check that options are read from other sections
        self.assertEqual(config.get("resourcegate", "class_resolution", section="engine"), "strict")

    def test_getlist(self):
        """Test that lists are parsed and their string items stripped."""
        self.use_test_config()
        self.assertEqual(config.getlist("resourcegate", "actions"), ["index", "show"])
        self.assertEqual(config.getlist("resourcegate", "missing", fallback=["new"]), ["new"])

    def test_option_env_override(self):
        """Test that an option can be overridden by its own environment variable."""
        self.use_test_config()

        with patch.dict(os.environ, {"RESOURCEGATE_RESOURCEGATE_ENGINE_CLASS_RESOLUTION": "lenient"}):
            self.assertEqual(config.get("resourcegate", "class_resolution", section="engine"), "lenient")
            self.assertTrue(config.has_option("resourcegate", "class_resolution", section="engine"))

        with patch.dict(os.environ, {"RESOURCEGATE_RESOURCEGATE_WEB_PORT": "9000"}):
            self.assertEqual(config.getint("resourcegate", "port", section="web", fallback=8880), 9000)

        with patch.dict(os.environ, {"RESOURCEGATE_RESOURCEGATE_DATABASE_ECHO": "yes"}):
            self.assertTrue(config.getboolean("resourcegate", "echo", section="database"))

    def test_environ_bool(self):
        with patch.dict(os.environ, {"RESOURCEGATE_TEST_FLAG": "on"}):
            self.assertTrue(config.environ_bool("RESOURCEGATE_TEST_FLAG", False))

        with patch.dict(os.environ, {"RESOURCEGATE_TEST_FLAG": "maybe"}):
            self.assertRaises(ValueError, config.environ_bool, "RESOURCEGATE_TEST_FLAG", False)

        self.assertTrue(config.environ_bool("RESOURCEGATE_UNSET_FLAG", True))


if __name__ == "__main__":
    unittest.main()
