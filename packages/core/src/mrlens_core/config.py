import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG: dict = {
    "provider": "anthropic",
    "api_url": "https://github.com/api/v4",
    # Accounts whose email ends in this domain skip the group membership check.
    # Set to null in .mrlens.yml to force the check for everyone.
    "trusted_email_domain": "github.com",
    "org_group_id": 9970,
    "max_chars_per_file": 20000,
    "max_workers": 8,
    "notifier": "noop",  # "noop" | "sqlite"
    "notifier_path": ".mrlens.db",
    "session_path": "~/.mrlens/session.json",
    "session_max_age": 2 * 60 * 60,
    "session_update_age": 10 * 60,
}


def load_config(config_path: str = ".mrlens.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .mrlens.yml in the current directory
      3. CLI argument overrides
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # Resolve LLM keys and the session secret from environment variables
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")
    config["session_secret"] = os.environ.get("MRLENS_SESSION_SECRET")

    return config
