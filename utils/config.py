import os
from pathlib import Path
import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

from models.connection import ConnectionInfo

BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
YAML_PATH = BASE_DIR / "config.yaml"


class EnvSettings(BaseSettings):
    RAVEN_HOST: str = "localhost"
    RAVEN_PORT: int = 8080
    RAVEN_DATABASE: str = "Default"
    RAVEN_USER_AGENT: str = "raven-session/0.1"

    LOG_LEVEL: str = "INFO"

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    model_config = SettingsConfigDict(
        env_file=ENV_PATH,
        case_sensitive=True,
        extra="allow"
    )


def load_yaml_with_env(path):
    if not Path(path).exists():
        return {}
    with open(path, "r") as f:
        raw_yaml = f.read()
    # interpolate ${VAR} with os.environ
    for key, value in os.environ.items():
        raw_yaml = raw_yaml.replace(f"${{{key}}}", value)
    return yaml.safe_load(raw_yaml) or {}


class Settings:
    def __init__(self, yaml_path=YAML_PATH):
        self.env = EnvSettings()
        self.yaml = load_yaml_with_env(yaml_path)

    @property
    def CONNECTION(self) -> ConnectionInfo:
        """Connection info, config.yaml values win over the environment."""
        connection = self.yaml.get("connection", {}) or {}
        return ConnectionInfo(
            host=connection.get("host", self.env.RAVEN_HOST),
            port=connection.get("port", self.env.RAVEN_PORT),
            database=connection.get("database", self.env.RAVEN_DATABASE),
        )

    @property
    def USER_AGENT(self) -> str:
        return self.yaml.get("user_agent", self.env.RAVEN_USER_AGENT)

settings = Settings()
