from .config import (
    default_config_toml,
    ensure_default_config_file,
    get_config_path,
    load_config,
    parse_config,
)

__all__ = [
    "default_config_toml",
    "ensure_default_config_file",
    "get_config_path",
    "load_config",
    "parse_config",
]
