import getpass
import logging
import os
import yaml
from peer.discovery import SERVICE_TYPE
from protocol.errors import ChatError

DEFAULTS = {
    "peer_name": None,
    "listen_host": "0.0.0.0",
    "listen_port": 6000,
    "key_file": None,
    "download_dir": None,
    "log_level": "INFO",
    "service_type": SERVICE_TYPE,
}


class ConfigError(ChatError):
    pass


def default_name():
    try:
        return getpass.getuser()
    except (OSError, KeyError):
        return "anonymous"


def load_config(path="config.yaml"):
    """
    Read the YAML config at `path` on top of DEFAULTS. A missing file just
    means defaults; a broken one is an error.
    """
    config = dict(DEFAULTS)
    if path and os.path.exists(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Could not read config {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config {path} must be a mapping")
        unknown = set(data) - set(DEFAULTS)
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        config.update({k: v for k, v in data.items() if v is not None})
    return validate(config)


def validate(config):
    if not config["peer_name"]:
        config["peer_name"] = default_name()
    if not isinstance(config["peer_name"], str) or not config["peer_name"].strip():
        raise ConfigError("peer_name must be a non-empty string")
    config["peer_name"] = config["peer_name"].strip()

    port = config["listen_port"]
    if isinstance(port, bool) or not isinstance(port, int) or not 0 <= port <= 65535:
        raise ConfigError(f"listen_port must be an integer in 0-65535, got {port!r}")

    level = str(config["log_level"]).upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigError(f"Unknown log_level: {config['log_level']}")
    config["log_level"] = level

    if not str(config["service_type"]).endswith("._tcp.local."):
        raise ConfigError("service_type must look like '_name._tcp.local.'")
    return config
