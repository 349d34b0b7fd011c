"""
Configuration management for the Family Calendar Assistant
Handles loading and saving system settings and assistant tuning values
"""

import json
import os
from pathlib import Path
from typing import Dict, Any, Optional


# Environment variables that override file settings: (env var, section, key)
ENV_OVERRIDES = [
    ("OPENAI_MODEL", "assistant", "openai_model"),
    ("CALENDAR_DATABASE_PATH", "settings", "database_path"),
    ("CALENDAR_TIMEZONE", "settings", "timezone"),
]


class Config:
    """Configuration manager for the calendar assistant"""

    def __init__(self, config_dir: Optional[Path] = None):
        """
        Initialize configuration manager

        Args:
            config_dir: Path to configuration directory (defaults to ./config)
        """
        if config_dir is None:
            config_dir = os.environ.get("CALENDAR_CONFIG_DIR") or \
                Path(__file__).parent.parent.parent / "config"

        self.config_dir = Path(config_dir)
        self.config_dir.mkdir(parents=True, exist_ok=True)

        self.settings_file = self.config_dir / "settings.json"
        self.assistant_file = self.config_dir / "assistant.json"

        # Load configurations
        self.settings = self._load_json(self.settings_file, self._default_settings())
        self.assistant = self._load_json(self.assistant_file, self._default_assistant())

        self._apply_env_overrides()

    def _load_json(self, file_path: Path, default: Dict[str, Any]) -> Dict[str, Any]:
        """Load JSON file merged over defaults, creating it if missing"""
        if file_path.exists():
            with open(file_path, 'r') as f:
                loaded = json.load(f)
            merged = dict(default)
            merged.update(loaded)
            return merged
        else:
            # Create file with defaults
            self._save_json(file_path, default)
            return dict(default)

    def _save_json(self, file_path: Path, data: Dict[str, Any]) -> None:
        """Save data to JSON file"""
        with open(file_path, 'w') as f:
            json.dump(data, f, indent=2)

    def _apply_env_overrides(self) -> None:
        section_map = self._section_map()
        for env_var, section, key in ENV_OVERRIDES:
            value = os.environ.get(env_var)
            if value:
                section_map[section][key] = value

    def _default_settings(self) -> Dict[str, Any]:
        """Default system settings"""
        return {
            "database_path": "data/database/calendar.db",
            "timezone": "America/Los_Angeles",
            "date_format": "%Y-%m-%d",
            "time_format": "%H:%M",
            "display_date_format": "%B %d, %Y",
        }

    def _default_assistant(self) -> Dict[str, Any]:
        """Default resolver and completion-service tuning"""
        return {
            "openai_model": "gpt-4o-mini",
            "temperature": 0.2,
            "context_window": 10,
            "search_result_limit": 5,
            "min_title_length": 2,
            "default_date_policy": "tomorrow",
            "default_event_duration_minutes": 60,
            "max_scan_chars": 20000,
        }

    def _section_map(self) -> Dict[str, Dict[str, Any]]:
        return {
            "settings": self.settings,
            "assistant": self.assistant,
        }

    def get(self, key: str, section: str = "settings", default: Any = None) -> Any:
        """
        Get configuration value

        Args:
            key: Configuration key
            section: Configuration section ('settings', 'assistant')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        return self._section_map().get(section, {}).get(key, default)

    def set(self, key: str, value: Any, section: str = "settings") -> None:
        """
        Set configuration value and save to disk

        Args:
            key: Configuration key
            value: Value to set
            section: Configuration section ('settings', 'assistant')
        """
        section_map = {
            "settings": (self.settings, self.settings_file),
            "assistant": (self.assistant, self.assistant_file),
        }

        if section in section_map:
            config_dict, file_path = section_map[section]
            config_dict[key] = value
            self._save_json(file_path, config_dict)

    def get_database_path(self) -> Path:
        """Get full path to database file"""
        database_path = Path(self.settings["database_path"])
        if database_path.is_absolute():
            return database_path
        base_path = Path(__file__).parent.parent.parent
        return base_path / database_path

    @property
    def openai_api_key(self) -> Optional[str]:
        return os.environ.get("OPENAI_API_KEY")
