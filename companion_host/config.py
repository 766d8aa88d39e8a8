import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env if present
here = Path(__file__).resolve()
candidates = [
    here.parent.parent / ".env",  # project root when running from repo
    here.parent / ".env",          # companion_host/.env fallback
    Path.cwd() / ".env",           # current working directory
]
for env_path in candidates:
    if env_path.exists():
        load_dotenv(env_path)
        break


def _env(name: str, default: str) -> str:
    return os.getenv(name, default)


PLUGINS = [
    {"module": "orfast_ndi", "path": "plugins.orfast_ndi.plugin:OrfastNDIPlugin", "settings": {
        "host": _env("ORFAST_HOST", "127.0.0.1"),
        "port": int(_env("ORFAST_PORT", "4242")),
        # milliseconds; 0 disables polling
        "polling_rate": int(_env("ORFAST_POLLING_RATE", "10000")),
    }},
]

# Empty MQTT_HOST runs the host without the command bus
MQTT = {
    "host": _env("MQTT_HOST", ""),
    "port": int(_env("MQTT_PORT", "1883")),
    "username": _env("MQTT_USERNAME", ""),
    "password": _env("MQTT_PASSWORD", ""),
}

REST = {
    "timeout_s": float(_env("REST_TIMEOUT_S", "5")),
}

LOG_LEVEL = _env("LOG_LEVEL", "INFO")
