import yaml
from pathlib import Path
from .models import AppConfig

# camelCase keys accepted in the defaults section, matching the HTTP form names
_DEFAULTS_ALIASES = {
    "targetMB": "target_mb",
    "audioKbps": "audio_kbps",
    "autoQuality": "auto_quality",
}

def load_config(config_path: Path) -> AppConfig:
    """Loads YAML config and parses it into AppConfig Pydantic model."""
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r') as f:
        data = yaml.safe_load(f) or {}

    defaults = data.get("defaults")
    if isinstance(defaults, dict):
        normalized = {_DEFAULTS_ALIASES.get(k, k): v for k, v in defaults.items()}
        # YAML 'off'/'on' parse as booleans already; plain strings still need mapping
        if isinstance(normalized.get("auto_quality"), str):
            normalized["auto_quality"] = normalized["auto_quality"].strip().lower() != "off"
        data["defaults"] = normalized

    return AppConfig(**data)
