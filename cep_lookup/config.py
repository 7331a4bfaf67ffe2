"""Configuration for the CEP lookup race."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

FIRST_SUCCESS = "first_success"  # first success wins; failures only if all fail
FIRST_SIGNAL = "first_signal"  # any success or failure ends the race
RACE_MODES = (FIRST_SUCCESS, FIRST_SIGNAL)


@dataclass
class Config:
    # Race deadline (seconds) shared by all providers
    timeout: float = 1.0
    race_mode: str = FIRST_SUCCESS

    # Providers, by name, in the order they are started
    providers: list = field(default_factory=lambda: ["brasilapi", "viacep"])

    # URL templates, {cep} is replaced by the path-encoded key
    brasilapi_url: str = "https://brasilapi.com.br/api/cep/v1/{cep}"
    viacep_url: str = "https://viacep.com.br/ws/{cep}/json/"

    # Added to transport timeouts so the race deadline always fires first
    cancel_grace: float = 0.25
    user_agent: str = "cep-lookup/1.0"

    # CLI default when no CEP is given
    default_cep: str = "01153000"

    def __post_init__(self):
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.race_mode not in RACE_MODES:
            raise ValueError(f"Unknown race mode: {self.race_mode} (expected one of {RACE_MODES})")
        if not self.providers:
            raise ValueError("At least one provider is required")

    @classmethod
    def from_env(cls, env: Optional[dict] = None, **overrides) -> "Config":
        """Build a Config from CEP_LOOKUP_* environment variables.

        Explicit keyword overrides win over the environment.
        """
        env = os.environ if env is None else env
        kwargs = {}
        if env.get("CEP_LOOKUP_TIMEOUT"):
            try:
                kwargs["timeout"] = float(env["CEP_LOOKUP_TIMEOUT"])
            except ValueError:
                raise ValueError(f"CEP_LOOKUP_TIMEOUT is not a number: {env['CEP_LOOKUP_TIMEOUT']!r}")
        if env.get("CEP_LOOKUP_MODE"):
            kwargs["race_mode"] = env["CEP_LOOKUP_MODE"].strip().lower()
        if env.get("CEP_LOOKUP_PROVIDERS"):
            kwargs["providers"] = parse_provider_list(env["CEP_LOOKUP_PROVIDERS"])
        if env.get("CEP_LOOKUP_BRASILAPI_URL"):
            kwargs["brasilapi_url"] = env["CEP_LOOKUP_BRASILAPI_URL"]
        if env.get("CEP_LOOKUP_VIACEP_URL"):
            kwargs["viacep_url"] = env["CEP_LOOKUP_VIACEP_URL"]
        kwargs.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**kwargs)


def parse_provider_list(value: str) -> list:
    return [name.strip().lower() for name in value.split(",") if name.strip()]


def load_env_file(path: Union[str, Path]) -> int:
    """Load KEY=VALUE lines from a .env file without overriding the environment.

    Returns the number of lines read; a missing file loads nothing.
    """
    env_path = Path(path)
    if not env_path.exists():
        return 0
    loaded = 0
    for line in env_path.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#") and "=" in line:
            key, val = line.split("=", 1)
            os.environ.setdefault(key.strip(), val.strip().strip('"').strip("'"))
            loaded += 1
    return loaded
