"""Configuration management for the k1space application."""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()

class Config:
    """Application configuration with sensible defaults."""

    # Base directory holding index.yaml, clouds.yaml and generated configs
    K1SPACE_HOME: str = os.getenv("K1SPACE_HOME", "~/.ssot/k1space")

    # Timeouts (in seconds)
    API_TIMEOUT: int = int(os.getenv("API_TIMEOUT", "30"))
    COMMAND_TIMEOUT: int = int(os.getenv("COMMAND_TIMEOUT", "60"))

    # Cloud provider API endpoints
    CIVO_API_URL: str = os.getenv("CIVO_API_URL", "https://api.civo.com/v2")
    DIGITALOCEAN_API_URL: str = os.getenv("DIGITALOCEAN_API_URL", "https://api.digitalocean.com/v2")

    # Configuration defaults
    DEFAULT_PREFIX: str = os.getenv("K1SPACE_DEFAULT_PREFIX", "K1")
    SECRETS_WRAPPER: str = os.getenv("K1SPACE_SECRETS_WRAPPER", "op run")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT: str = os.getenv(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Security
    REDACT_KEYS: tuple = ("token", "password", "secret", "api_key", "authorization")

    @classmethod
    def home(cls) -> Path:
        """Resolve the k1space base directory; K1SPACE_HOME is read at call time."""
        return Path(os.path.expanduser(os.getenv("K1SPACE_HOME", cls.K1SPACE_HOME)))

    @classmethod
    def clouds_path(cls) -> Path:
        return cls.home() / "clouds.yaml"
