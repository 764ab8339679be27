"""Configuration of resourcegate.

Each component ("resourcegate" and "logging") is configured by an INI file. The file named by the component's
environment variable (``RESOURCEGATE_CONFIG``, ``RESOURCEGATE_LOGGING_CONFIG``) is used on its own if it exists.
Otherwise, the first file found in ``CONFIG_FILES`` is read and the snippets found in ``CONFIG_SNIPPETS_DIRS`` are
applied on top of it, in lexical order. A component without any file is left empty, so that every option takes its
default value.

Options are read with ``get``, ``getint``, ``getboolean`` and ``getlist``. Any option can be overridden by an
environment variable named ``RESOURCEGATE_<COMPONENT>[_<SECTION>]_<OPTION>``, e.g.
``RESOURCEGATE_RESOURCEGATE_ENGINE_CLASS_RESOLUTION=strict``.
"""

import ast
import logging
import os
import os.path
from configparser import RawConfigParser
from typing import Any, Dict, List, Optional, Tuple

logging.basicConfig(level=logging.INFO)
base_logger = logging.getLogger("resourcegate.config")


def environ_bool(env_name: str, default: bool) -> bool:
    val = os.getenv(env_name, "default").lower()
    if val in ["on", "true", "1"]:
        return True
    if val in ["off", "false", "0"]:
        return False
    if val == "default":
        return default
    raise ValueError(f"Environment variable {env_name} set to invalid value {val} (use either on/true/1 or off/false/0)")


# Candidate base files, of which the first found is used
CONFIG_FILES = {
    "resourcegate": ["/etc/resourcegate/resourcegate.conf", "/usr/etc/resourcegate/resourcegate.conf"],
    "logging": ["/etc/resourcegate/logging.conf", "/usr/etc/resourcegate/logging.conf"],
}

# Directories of snippets overriding the base file, applied in this order
CONFIG_SNIPPETS_DIRS = {
    "resourcegate": ["/usr/etc/resourcegate/resourcegate.conf.d", "/etc/resourcegate/resourcegate.conf.d"],
    "logging": ["/usr/etc/resourcegate/logging.conf.d", "/etc/resourcegate/logging.conf.d"],
}

CONFIG_ENV = {
    "resourcegate": os.environ.get("RESOURCEGATE_CONFIG", ""),
    "logging": os.environ.get("RESOURCEGATE_LOGGING_CONFIG", ""),
}

# Parsed configuration, by component
_config: Optional[Dict[str, RawConfigParser]] = None


def _report_unread(component: str, file_paths: List[str], files_read: List[str]) -> None:
    """Logs an error for every file which exists but could not be read or parsed."""
    for file_path in file_paths:
        if file_path in files_read or not os.path.exists(file_path):
            continue

        if not os.access(file_path, os.R_OK):
            base_logger.error("Config file %s for %s exists but is not readable", file_path, component)
        else:
            base_logger.error(
                "Config file %s for %s exists but failed to parse (check for duplicate keys or invalid syntax)",
                file_path,
                component,
            )


def _snippets(component: str) -> List[Tuple[str, List[str]]]:
    found = []

    for snippets_dir in CONFIG_SNIPPETS_DIRS.get(component, []):
        if not os.path.isdir(snippets_dir):
            continue

        paths = (os.path.join(snippets_dir, name) for name in os.listdir(snippets_dir))
        found.append((snippets_dir, sorted(path for path in paths if os.path.isfile(path))))

    return found


def _read_component(component: str) -> RawConfigParser:
    """
    :raises: :class:`Exception`: ``CONFIG_ENV`` or ``CONFIG_FILES`` is malformed or does not list ``component``
    """
    # RawConfigParser, so that the "logging" component can be given percent-style format strings
    parser = RawConfigParser()

    if not CONFIG_ENV or not isinstance(CONFIG_ENV, dict):
        raise Exception("Invalid CONFIG_ENV")

    if component not in CONFIG_ENV:
        raise Exception(f"Invalid component '{component}'")

    env_file = CONFIG_ENV[component]

    if env_file and os.path.isfile(env_file):
        base_logger.info("Reading configuration from %s", parser.read(env_file))
        return parser

    if env_file:
        base_logger.info(
            "Configuration file %s for %s set through environment variable not found, using installed configuration",
            env_file,
            component,
        )

    if not CONFIG_FILES or not isinstance(CONFIG_FILES, dict):
        raise Exception("Invalid CONFIG_FILES")

    if component not in CONFIG_FILES:
        raise Exception(f"Invalid component {component}")

    for base_file in CONFIG_FILES[component]:
        files_read = parser.read(base_file)
        _report_unread(component, [base_file], files_read)

        if files_read:
            base_logger.info("Reading configuration from %s", files_read)
            break
    else:
        return parser

    for snippets_dir, snippet_files in _snippets(component):
        applied = parser.read(snippet_files)
        _report_unread(component, snippet_files, applied)

        if applied:
            base_logger.info("Applied configuration snippets from %s", snippets_dir)

    return parser


def get_config(component: str) -> RawConfigParser:
    """Returns the configuration of ``component``, read on first use and cached afterwards."""
    global _config

    if not component:
        raise Exception("No component provided to get_config")

    if _config is None:
        _config = {}

    if component not in _config:
        _config[component] = _read_component(component)

    return _config[component]


def _get_env(component: str, option: str, section: Optional[str]) -> Optional[str]:
    parts = ["RESOURCEGATE", component, section, option]
    env_name = "_".join(part.upper() for part in parts if part)
    env_value = os.environ.get(env_name)

    if env_value is not None:
        base_logger.info(
            "Option '%s' of component %s (section %s) overridden by environment variable %s",
            option,
            component,
            section or component,
            env_name,
        )

    return env_value


def _section(component: str, section: Optional[str]) -> str:
    return section or component


def get(component: str, option: str, section: Optional[str] = None, fallback: str = "") -> str:
    env_value = _get_env(component, option, section)

    if env_value is None:
        env_value = get_config(component).get(_section(component, section), option, fallback=fallback)

    return env_value.strip('" ')


def getint(component: str, option: str, section: Optional[str] = None, fallback: int = -1) -> int:
    env_value = _get_env(component, option, section)

    if env_value is not None:
        return int(env_value)

    return get_config(component).getint(_section(component, section), option, fallback=fallback)


def getboolean(component: str, option: str, section: Optional[str] = None, fallback: bool = False) -> bool:
    env_value = _get_env(component, option, section)

    if env_value is not None:
        return RawConfigParser.BOOLEAN_STATES.get(env_value.lower().strip('" '), fallback)

    return get_config(component).getboolean(_section(component, section), option, fallback=fallback)


def getlist(
    component: str, option: str, section: Optional[str] = None, fallback: Optional[List[Any]] = None
) -> List[Any]:
    """Reads an option holding a Python list literal, e.g. ``["index", "show"]``. String items are stripped."""
    read = get(component, option, section=section)

    if not read:
        return list(fallback or [])

    try:
        value = ast.literal_eval(read)
    except (ValueError, SyntaxError) as e:
        raise Exception(
            f"Failed to get list from config for component '{component}', section '{_section(component, section)}', "
            f"option '{option}'"
        ) from e

    if not isinstance(value, list):
        raise Exception(f"Config option '{option}' of component {component} should be a list")

    return [item.strip() if isinstance(item, str) else item for item in value]


def has_option(component: str, option: str, section: Optional[str] = None) -> bool:
    if _get_env(component, option, section) is not None:
        return True

    return get_config(component).has_option(_section(component, section), option)
