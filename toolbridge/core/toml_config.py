"""
TOML Configuration Loader for ToolBridge

Reads the optional dispatch settings (token header, catalog defaults, audit and
status limits) from a TOML file. Supports a custom config path via the
TOOLBRIDGE_CONFIG_PATH environment variable.
"""

import os
import toml
import logging
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)

DEFAULTS: Dict[str, Dict[str, Any]] = {
    "auth": {"token_header": "X-Prompt-Token"},
    "catalog": {"include_system_by_default": False},
    "audit": {"response_max_chars": 5000},
    "status": {"reason_max_chars": 500},
}


class TOMLConfig:
    """TOML configuration loader with built-in defaults"""

    def __init__(self):
        self.default_config_path = os.path.join(
            os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
            "toolbridge.toml"
        )
        self._config: Optional[Dict[str, Any]] = None
        self._loaded_config_path: Optional[str] = None

    def _determine_config_path(self) -> tuple[str, str]:
        """
        Determine which config file to use

        Returns:
            tuple: (config_path, config_type)
            config_type: 'default' or 'custom'
        """
        custom_config_path = os.getenv("TOOLBRIDGE_CONFIG_PATH")

        if custom_config_path and custom_config_path.strip():
            custom_config_path = custom_config_path.strip()

            if os.path.exists(custom_config_path):
                if custom_config_path.endswith('.toml'):
                    return custom_config_path, "custom"
                else:
                    logger.warning(f"TOOLBRIDGE_CONFIG_PATH file is not a .toml file: {custom_config_path}")
            else:
                logger.warning(f"TOOLBRIDGE_CONFIG_PATH file does not exist: {custom_config_path}")

        return self.default_config_path, "default"

    def _load(self) -> Dict[str, Any]:
        if self._config is not None:
            return self._config

        config = {section: dict(values) for section, values in DEFAULTS.items()}
        config_path, config_type = self._determine_config_path()
        self._loaded_config_path = None

        if os.path.exists(config_path):
            try:
                loaded = toml.load(config_path)
                for section, values in loaded.items():
                    if isinstance(values, dict):
                        config.setdefault(section, {}).update(values)
                self._loaded_config_path = config_path
                logger.info(f"Loaded {config_type} config: {config_path}")
            except (toml.TomlDecodeError, OSError) as e:
                logger.error(f"Error loading {config_type} config from {config_path}: {e}")
        else:
            logger.debug(f"No config file at {config_path}, using defaults")

        self._config = config
        return config

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """Get a single setting, falling back to the built-in default"""
        return self._load().get(section, {}).get(key, default)

    def get_token_header(self) -> str:
        return self.get("auth", "token_header", "X-Prompt-Token")

    def include_system_by_default(self) -> bool:
        return bool(self.get("catalog", "include_system_by_default", False))

    def get_audit_response_max_chars(self) -> int:
        return int(self.get("audit", "response_max_chars", 5000))

    def get_reason_max_chars(self) -> int:
        return int(self.get("status", "reason_max_chars", 500))

    def get_config_info(self) -> Dict[str, Any]:
        """Get information about configuration paths and status"""
        custom_config_path = os.getenv("TOOLBRIDGE_CONFIG_PATH")
        config_path, config_type = self._determine_config_path()

        return {
            "environment_variable": {
                "TOOLBRIDGE_CONFIG_PATH": custom_config_path,
                "is_set": bool(custom_config_path and custom_config_path.strip()),
            },
            "default_config": {
                "path": self.default_config_path,
                "exists": os.path.exists(self.default_config_path)
            },
            "active_config": {
                "path": config_path,
                "type": config_type,
                "exists": os.path.exists(config_path)
            },
            "values": self._load(),
        }

    def reload(self) -> None:
        """Reload configuration from files"""
        logger.info("Reloading TOML configuration...")
        self._config = None
        self._loaded_config_path = None

    def get_loaded_config_path(self) -> Optional[str]:
        """Get the path of the currently loaded config file"""
        self._load()
        return self._loaded_config_path


# Global instance
toml_config = TOMLConfig()
