import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional

class Settings:
    """
    Application settings management.
    
    Settings are resolved from built-in defaults, then YAML configuration
    files, then ``HH42_*`` environment variables.
    """
    # Default settings
    DEFAULTS = {
        # Application settings
        "APP_NAME": "HH42 Thermometer Reader",
        "APP_VERSION": "0.1.0",
        "DEBUG": False,
        
        # Logging settings
        "LOG_DIR": "logs",
        "LOG_LEVEL": "INFO",
        "LOG_FORMAT": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        "LOG_FORMAT_EXTRAS": [],
        "LOG_TO_CONSOLE": True,
        "LOG_TO_FILE": True,
        
        # Serial port defaults
        "DEFAULT_PORT": None,
        "DEFAULT_BAUDRATE": 9600,
        "DEFAULT_DATA_BITS": 8,
        "DEFAULT_STOP_BITS": 1,
        "DEFAULT_PARITY": "none",
        "SERIAL_TIMEOUT": 0.1,  # s
        "READ_IDLE_SLEEP": 0.01,  # s
        "THREAD_JOIN_TIMEOUT": 1.0,  # s
        
        # File paths
        "CONFIG_PROFILES_DIR": "config/profiles",
    }
    
    def __init__(self):
        """Initialize settings with defaults, then override from files and environment."""
        self._settings = self.DEFAULTS.copy()
        self._load_from_yaml()
        self._load_from_env()
    
    def _load_from_yaml(self):
        """Load settings from YAML configuration files."""
        config_paths = [
            Path(__file__).parent / "default_config.yaml",  # Packaged defaults
            Path.home() / ".hh42" / "config.yaml",  # User config
            Path("hh42.yaml")  # Project-level config
        ]
        
        for config_path in config_paths:
            if config_path.exists():
                try:
                    with open(config_path, 'r') as f:
                        yaml_settings = yaml.safe_load(f)
                        if yaml_settings:
                            self._settings.update(yaml_settings)
                except Exception as e:
                    print(f"Warning: Could not load configuration from {config_path}: {str(e)}")
    
    def _load_from_env(self):
        """Override settings from environment variables."""
        for key in self._settings.keys():
            env_value = os.environ.get(f"HH42_{key}")
            if env_value is not None:
                # Convert to the same type as the default
                default_type = type(self._settings[key])
                if default_type == bool:
                    self._settings[key] = env_value.lower() in ('true', 'yes', '1', 'y')
                elif default_type == list:
                    self._settings[key] = [item.strip() for item in env_value.split(',') if item.strip()]
                else:
                    try:
                        self._settings[key] = default_type(env_value)
                    except (ValueError, TypeError):
                        # If conversion fails, use string value
                        self._settings[key] = env_value
    
    def __getattr__(self, name: str) -> Any:
        """Allow attribute-style access to settings."""
        if name.startswith('_'):
            raise AttributeError(name)
        if name in self._settings:
            return self._settings[name]
        raise AttributeError(f"Setting '{name}' not found")
    
    def get(self, name: str, default: Any = None) -> Any:
        """Dictionary-style access to settings with default value."""
        return self._settings.get(name, default)
    
    def as_dict(self) -> Dict[str, Any]:
        """Return all settings as a dictionary."""
        return self._settings.copy()
    
    def update(self, settings_dict: Dict[str, Any]) -> None:
        """Update settings from a dictionary."""
        self._settings.update(settings_dict)
    
    def load_profile(self, profile_name: str) -> bool:
        """
        Load a specific configuration profile.
        
        Args:
            profile_name: Name of the profile to load
            
        Returns:
            bool: True if profile was loaded successfully
        """
        profile_path = Path(self._settings["CONFIG_PROFILES_DIR"]) / f"{profile_name}.yaml"
        
        if not profile_path.exists():
            return False
            
        try:
            with open(profile_path, 'r') as f:
                profile_settings = yaml.safe_load(f)
                if profile_settings:
                    self._settings.update(profile_settings)
            return True
        except (OSError, yaml.YAMLError):
            return False
    
    def save_profile(self, profile_name: str, settings: Optional[Dict[str, Any]] = None) -> bool:
        """
        Save current or provided settings to a profile.
        
        Args:
            profile_name: Name to save the profile as
            settings: Specific settings to save, or None for all current settings
            
        Returns:
            bool: True if profile was saved successfully
        """
        profile_dir = Path(self._settings["CONFIG_PROFILES_DIR"])
        
        try:
            profile_dir.mkdir(exist_ok=True, parents=True)
            profile_path = profile_dir / f"{profile_name}.yaml"
            
            with open(profile_path, 'w') as f:
                yaml.safe_dump(settings or self._settings, f, default_flow_style=False)
            return True
        except (OSError, yaml.YAMLError):
            return False

# Create a singleton instance
settings = Settings()
