"""Environment-based authentication for issuecanon.

Tokens come from an explicit value, the usual GitHub environment variables
(including the Actions ``INPUT_TOKEN`` input), or a ``.env`` file.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .logging import get_logger

TOKEN_ALTERNATIVES = ("GH_TOKEN", "INPUT_TOKEN", "GITHUB_ACCESS_TOKEN", "GITHUB_PAT")


class AuthError(RuntimeError):
    pass


@dataclass
class EnvAuthConfig:
    """Configuration for environment-based authentication."""

    load_dotenv: bool = True
    dotenv_path: str | None = None
    github_token_var: str = "GITHUB_TOKEN"


class EnvironmentAuthManager:
    """Resolves the GitHub token through environment variables and .env files."""

    def __init__(self, config: EnvAuthConfig):
        self.config = config
        self.logger = get_logger()
        self._dotenv_loaded = False
        if config.load_dotenv:
            self._load_dotenv()

    def _load_dotenv(self) -> None:
        """Load .env file if available."""
        candidates = [self.config.dotenv_path] if self.config.dotenv_path else [".env", ".env.local"]
        for location in candidates:
            env_path = Path(location)
            if env_path.exists():
                # Values already present in the environment win over the file
                load_dotenv(str(env_path), override=False)
                self._dotenv_loaded = True
                self.logger.debug(f"Loaded environment variables from {env_path}")
                break

    @property
    def dotenv_loaded(self) -> bool:
        return self._dotenv_loaded

    def get_github_token(self) -> str | None:
        """Get GitHub token from environment variables."""
        token = os.getenv(self.config.github_token_var)
        if token:
            self.logger.debug("Found GitHub token in environment variables")
            return token
        for alt_var in TOKEN_ALTERNATIVES:
            token = os.getenv(alt_var)
            if token:
                self.logger.debug(f"Found GitHub token in {alt_var}")
                return token
        return None

    def require_github_token(self, explicit: str | None = None) -> str:
        if explicit:
            return explicit
        token = self.get_github_token()
        if not token:
            raise AuthError(
                "GitHub token is required. Set GITHUB_TOKEN (or GH_TOKEN) or pass --token."
            )
        return token


def create_env_auth_manager(
    use_dotenv: bool = True, dotenv_path: str | None = None
) -> EnvironmentAuthManager:
    return EnvironmentAuthManager(EnvAuthConfig(load_dotenv=use_dotenv, dotenv_path=dotenv_path))


__all__ = [
    "AuthError",
    "EnvAuthConfig",
    "EnvironmentAuthManager",
    "create_env_auth_manager",
]
