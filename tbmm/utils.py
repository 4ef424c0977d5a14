"""
Utility functions for the TorBox media manager
"""

import copy
import yaml
import logging
import os
from typing import Dict, Any

DEFAULT_CONFIG: Dict[str, Any] = {
    'api': {
        'torbox_base_url': 'https://api.torbox.app/v1/api',
        'torbox_api_key': None,
        'tmdb_base_url': 'https://api.themoviedb.org/3',
        'tmdb_image_base': 'https://image.tmdb.org/t/p',
        'tmdb_api_key': None,
        'rpdb_base_url': 'https://api.ratingposterdb.com',
        'timeout': 30,
    },
    'storage': {
        'dir': os.path.join(os.path.expanduser('~'), '.config', 'tbmm'),
        'file': 'storage.yaml',
    },
    'logging': {
        'dir': 'logs',
        'file': 'tbmm.log',
        'http_file': 'http.log',
    },
}

# (environment variable, config section, config key)
ENV_OVERRIDES = (
    ('TMDB_API_KEY', 'api', 'tmdb_api_key'),
    ('TORBOX_API_KEY', 'api', 'torbox_api_key'),
    ('TORBOX_API_URL', 'api', 'torbox_base_url'),
    ('TBMM_HOME', 'storage', 'dir'),
)

HTTP_LOGGERS = ('tbmm.torbox', 'tbmm.tmdb', 'tbmm.rpdb')

def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base

def load_config(config_path: str = "config/settings.yaml") -> Dict[str, Any]:
    """Load configuration from YAML file over the built-in defaults"""
    config = copy.deepcopy(DEFAULT_CONFIG)
    try:
        if os.path.exists(config_path):
            with open(config_path, 'r', encoding='utf-8') as f:
                _merge(config, yaml.safe_load(f) or {})
        else:
            logging.warning(f"Config file not found, using defaults: {config_path}")

        # Override with environment variables
        for env_name, section, key in ENV_OVERRIDES:
            if os.environ.get(env_name):
                config.setdefault(section, {})[key] = os.environ[env_name]

        return config

    except Exception as e:
        logging.error(f"Failed to load config: {e}")
        raise

def setup_logging(verbose: bool = False, log_dir: str = 'logs') -> None:
    """Setup logging configuration"""
    os.makedirs(log_dir, exist_ok=True)

    level = logging.DEBUG if verbose else logging.INFO

    detailed_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    simple_formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Clear existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(simple_formatter)
    root_logger.addHandler(console_handler)

    file_handler = logging.FileHandler(os.path.join(log_dir, DEFAULT_CONFIG['logging']['file']), encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(detailed_formatter)
    root_logger.addHandler(file_handler)

    # Separate file for API traffic
    http_handler = logging.FileHandler(os.path.join(log_dir, DEFAULT_CONFIG['logging']['http_file']), encoding='utf-8')
    http_handler.setLevel(logging.DEBUG)
    http_handler.setFormatter(detailed_formatter)
    for name in HTTP_LOGGERS:
        http_logger = logging.getLogger(name)
        for handler in http_logger.handlers[:]:
            http_logger.removeHandler(handler)
            handler.close()
        http_logger.addHandler(http_handler)

def format_file_size(size: int) -> str:
    """Human readable size, e.g. 1.5 GB"""
    if not size or size <= 0:
        return '0 B'
    units = ['B', 'KB', 'MB', 'GB', 'TB']
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {units[i]}"
