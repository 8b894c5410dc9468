import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG: dict = {
    "model": "anthropic",
    "llm_model": None,  # None = provider default
    "max_chars_per_file": 20000,
    "max_workers": 4,
    "exclude": [],  # fnmatch patterns or directory names to skip (e.g. "migrations/", "*.min.js")
    "generate_diagrams": False,
    "style_guide_rules": None,
    "jira_host": None,
    "jira_username": None,
    "jira_api_token": None,
    "jira_projects": [],
    "jira_default_project": None,
    "jira_user_map": {},  # GitHub login -> Jira email
}

# config key -> (action input name, environment variable)
_ENV_KEYS = {
    "github_token": ("github-token", "GITHUB_TOKEN"),
    "llm_api_key": ("llm-api-key", "LLM_API_KEY"),
    "llm_model": ("llm-model", "LLM_MODEL"),
    "anthropic_api_key": (None, "ANTHROPIC_API_KEY"),
    "openai_api_key": (None, "OPENAI_API_KEY"),
    "jira_host": ("jira-host", "JIRA_HOST"),
    "jira_username": ("jira-username", "JIRA_USERNAME"),
    "jira_api_token": ("jira-api-token", "JIRA_API_TOKEN"),
    "jira_projects": ("jira-projects", "JIRA_PROJECTS"),
    "jira_default_project": ("jira-default-project", "JIRA_DEFAULT_PROJECT"),
    "style_guide_rules": ("style_guide_rules", "STYLE_GUIDE_RULES"),
}


def _input(name: str) -> Optional[str]:
    """Read a GitHub Action input the way the Actions runtime exposes it."""
    value = os.environ.get(f"INPUT_{name.replace(' ', '_').upper()}")
    return value.strip() if value and value.strip() else None


def _split_projects(value) -> list:
    if isinstance(value, str):
        return [p.strip() for p in value.split(",") if p.strip()]
    return list(value or [])


def load_config(config_path: str = ".presubmit.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .presubmit.yml in the current directory
      3. Action inputs / environment variables
      4. CLI argument overrides
    """
    config = {
        **DEFAULT_CONFIG,
        "exclude": list(DEFAULT_CONFIG["exclude"]),
        "jira_projects": list(DEFAULT_CONFIG["jira_projects"]),
        "jira_user_map": dict(DEFAULT_CONFIG["jira_user_map"]),
    }

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    for key, (input_name, env_var) in _ENV_KEYS.items():
        value = (_input(input_name) if input_name else None) or os.environ.get(env_var)
        if value:
            config[key] = value
        else:
            config.setdefault(key, None)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    config["jira_projects"] = _split_projects(config.get("jira_projects"))
    return config


def provider_api_key(config: dict) -> Optional[str]:
    """API key for the configured provider, falling back to LLM_API_KEY."""
    return config.get(f"{config['model']}_api_key") or config.get("llm_api_key")


def jira_enabled(config: dict) -> bool:
    return bool(config.get("jira_host") and config.get("jira_username") and config.get("jira_api_token"))
