# Maven configuration
# Values come from maven.yaml, then environment variables override them.

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

CONFIG_PATH = Path("maven.yaml")

# env var -> Config field
ENV_OVERRIDES = {
    "MAVEN_DB": "db_path",
    "MAVEN_BACKEND": "backend",
    "MAVEN_REST_URL": "rest_url",
    "MAVEN_REST_KEY": "rest_key",
    "MAVEN_SECRET_KEY": "secret_key",
    "MAVEN_AVATAR_DIR": "avatar_dir",
    "MAVEN_PUBLIC_URL": "public_url",
    "STRIPE_SECRET_KEY": "stripe_secret_key",
    "STRIPE_PRICE_ID": "stripe_price_id",
}

BACKENDS = ("sqlite", "rest")


class ConfigError(Exception):
    """Raised when configuration is invalid or incomplete."""
    pass


@dataclass
class Config:
    """Runtime configuration for the web app."""

    # Storage
    backend: str = "sqlite"
    db_path: str = "~/.local/share/maven/maven.db"

    # Hosted database (backend: rest)
    rest_url: str = ""
    rest_key: str = ""
    rest_timeout: float = 10.0

    # Flask session signing
    secret_key: str = ""

    # Avatars
    avatar_dir: str = "~/.local/share/maven/avatars"
    public_url: str = ""  # Prefix for avatar URLs, empty = same origin

    # Checkout (read per request, may be unset)
    stripe_secret_key: str = ""
    stripe_price_id: str = ""

    def resolve_paths(self):
        """Expand ~ in local paths."""
        self.db_path = str(Path(self.db_path).expanduser())
        self.avatar_dir = str(Path(self.avatar_dir).expanduser())

    def validate(self):
        if self.backend not in BACKENDS:
            raise ConfigError(f"Unknown backend '{self.backend}'. Available: {list(BACKENDS)}")
        if self.backend == "rest" and not (self.rest_url and self.rest_key):
            raise ConfigError(
                "backend 'rest' needs rest_url and rest_key.\n"
                "Set them in maven.yaml or export MAVEN_REST_URL / MAVEN_REST_KEY."
            )

    @classmethod
    def load(cls, path: Optional[str] = None) -> "Config":
        """Load config from YAML file, falling back to defaults."""
        cfg_path = Path(path or os.environ.get("MAVEN_CONFIG") or CONFIG_PATH)
        known = {f.name for f in fields(cls)}
        data = {}
        if cfg_path.exists():
            with open(cfg_path, "r") as f:
                try:
                    data = yaml.safe_load(f) or {}
                except yaml.YAMLError as e:
                    raise ConfigError(f"Invalid YAML in {cfg_path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"{cfg_path} must contain a mapping")
        elif path:
            raise ConfigError(f"Config file not found: {cfg_path}")

        cfg = cls(**{k: v for k, v in data.items() if k in known})

        for env_name, attr in ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value:
                setattr(cfg, attr, value)

        cfg.resolve_paths()
        cfg.validate()
        return cfg
