"""
Configuration management for dbview.

Provides a hierarchical configuration with sensible defaults. Supports both
global (~/.config/dbview/config.toml) and local (dbview.toml) configurations.
"""
import os
import tomli
import tomli_w
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass, field, asdict


@dataclass
class DbviewConfig:
    """
    dbview configuration with sensible defaults.

    Configuration hierarchy (highest to lowest priority):
    1. Command-line arguments
    2. Environment variables (DBVIEW_*)
    3. Explicit config file (--config)
    4. Local config file (./dbview.toml or ./.dbviewrc)
    5. User config file (~/.config/dbview/config.toml)
    6. System defaults
    """

    # Caches
    view_cache_size: int = field(default=128)  # build_view results kept
    formula_cache_size: int = field(default=256)  # parsed formulas kept

    # Display settings
    date_format: str = field(default="%Y-%m-%d")
    output_format: str = field(default="table")  # table, json
    color_output: bool = field(default=True)

    # Workspace
    workspace_file: Optional[str] = field(default=None)

    # Advanced
    log_level: str = field(default="INFO")

    @classmethod
    def load(cls, config_file: Optional[Path] = None) -> "DbviewConfig":
        """
        Load configuration from files and environment.

        Args:
            config_file: Specific config file to load (on top of the search)

        Returns:
            Merged configuration object
        """
        config = cls()

        user_config_path = Path.home() / ".config" / "dbview" / "config.toml"
        if user_config_path.exists():
            config._merge(cls._load_toml(user_config_path))

        local_paths = [
            Path.cwd() / "dbview.toml",
            Path.cwd() / ".dbviewrc",
        ]

        for path in local_paths:
            if path.exists():
                config._merge(cls._load_toml(path))
                break

        if config_file:
            config_file = Path(config_file)
            if config_file.exists():
                config._merge(cls._load_toml(config_file))

        config._apply_env_vars()
        config._expand_paths()

        return config

    @staticmethod
    def _load_toml(path: Path) -> Dict[str, Any]:
        """Load TOML configuration file."""
        with open(path, "rb") as f:
            return tomli.load(f)

    def _merge(self, data: Dict[str, Any]):
        """Merge configuration data into this instance."""
        for key, value in data.items():
            if hasattr(self, key):
                setattr(self, key, value)

    def _apply_env_vars(self):
        """Apply environment variables with DBVIEW_ prefix."""
        prefix = "DBVIEW_"
        for key, value in os.environ.items():
            if key.startswith(prefix):
                config_key = key[len(prefix):].lower()
                if hasattr(self, config_key):
                    current_value = getattr(self, config_key)
                    if isinstance(current_value, bool):
                        setattr(self, config_key, value.lower() in ("true", "1", "yes"))
                    elif isinstance(current_value, int):
                        setattr(self, config_key, int(value))
                    else:
                        setattr(self, config_key, value)

    def _expand_paths(self):
        """Expand ~ and environment variables in paths."""
        value = self.workspace_file
        if isinstance(value, str):
            self.workspace_file = os.path.expanduser(os.path.expandvars(value))

    def save(self, path: Optional[Path] = None):
        """
        Save current configuration to TOML file.

        Args:
            path: Path to save to (defaults to user config)
        """
        if path is None:
            path = Path.home() / ".config" / "dbview" / "config.toml"

        path.parent.mkdir(parents=True, exist_ok=True)

        # TOML has no null
        data = {k: v for k, v in asdict(self).items() if v is not None}
        with open(path, "wb") as f:
            tomli_w.dump(data, f)


# Global configuration instance
_config: Optional[DbviewConfig] = None


def get_config(reload: bool = False, config_file: Optional[Path] = None) -> DbviewConfig:
    """
    Get the global configuration instance.

    Args:
        reload: Force reload configuration from files
        config_file: Specific config file to load

    Returns:
        Global configuration instance
    """
    global _config
    if _config is None or reload:
        _config = DbviewConfig.load(config_file)
    return _config


def init_config(**kwargs) -> DbviewConfig:
    """
    Initialize configuration with command-line overrides.

    Args:
        **kwargs: Configuration overrides; None values are ignored

    Returns:
        Configured instance
    """
    config = get_config()

    for key, value in kwargs.items():
        if hasattr(config, key) and value is not None:
            setattr(config, key, value)

    return config
