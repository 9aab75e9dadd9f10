"""Environment-based credentials for milestonesuite.

Reads the Backlog API key, space URL and project key from environment
variables, optionally seeded from a ``.env`` file via python-dotenv.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .logging import get_logger

DOTENV_LOCATIONS = (".env", ".env.local")


@dataclass
class EnvAuthConfig:
    """Configuration for environment-based authentication."""

    load_dotenv: bool = True
    dotenv_path: str | None = None
    api_key_var: str = "BACKLOG_API_KEY"
    space_url_var: str = "BACKLOG_SPACE_URL"
    project_key_var: str = "BACKLOG_PROJECT_KEY"


@dataclass(frozen=True)
class BacklogCredentials:
    api_key: str | None
    space_url: str | None
    project_key: str | None

    def missing(self) -> list[str]:
        names = {
            "BACKLOG_API_KEY": self.api_key,
            "BACKLOG_SPACE_URL": self.space_url,
            "BACKLOG_PROJECT_KEY": self.project_key,
        }
        return [name for name, value in names.items() if not value]


class EnvironmentAuthManager:
    """Loads ``.env`` files and resolves Backlog credentials from the environment."""

    def __init__(self, config: EnvAuthConfig):
        self.config = config
        self.logger = get_logger()
        self.dotenv_file: Path | None = None
        if config.load_dotenv:
            self._load_dotenv()

    def _load_dotenv(self) -> None:
        """Load the first ``.env`` file found; existing variables win."""
        candidates = (
            [self.config.dotenv_path] if self.config.dotenv_path else list(DOTENV_LOCATIONS)
        )
        for location in candidates:
            env_path = Path(location)
            if env_path.exists():
                load_dotenv(str(env_path), override=False)
                self.dotenv_file = env_path
                self.logger.debug(f"Loaded environment variables from {env_path}")
                return

    def get_api_key(self) -> str | None:
        return os.getenv(self.config.api_key_var) or None

    def get_credentials(self) -> BacklogCredentials:
        space_url = (os.getenv(self.config.space_url_var) or "").strip()
        project_key = (os.getenv(self.config.project_key_var) or "").strip()
        return BacklogCredentials(
            api_key=self.get_api_key(),
            space_url=space_url.rstrip("/") or None,
            project_key=project_key or None,
        )


def create_env_auth_manager(config: EnvAuthConfig | None = None) -> EnvironmentAuthManager:
    """Factory function to create environment authentication manager."""
    if config is None:
        config = EnvAuthConfig()
    return EnvironmentAuthManager(config)


__all__ = [
    "BacklogCredentials",
    "EnvAuthConfig",
    "EnvironmentAuthManager",
    "create_env_auth_manager",
]
