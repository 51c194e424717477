from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from .exceptions import ConfigurationError


class Environment(str, Enum):
    SANDBOX = "sandbox"
    PRODUCTION = "production"


_DEFAULT_HOSTS = {
    Environment.SANDBOX: "api.sandbox.irembopay.com",
    Environment.PRODUCTION: "api.irembopay.com",
}

DEFAULT_API_VERSION = "2"
DEFAULT_TIMEOUT_SECONDS = 30.0


def _parse_environment(value: Union[Environment, str]) -> Environment:
    if isinstance(value, Environment):
        return value
    normalized = str(value or "").strip().lower()
    try:
        return Environment(normalized)
    except ValueError as exc:
        raise ConfigurationError(f"invalid environment: {value}") from exc


@dataclass(frozen=True)
class IremboPayConfig:
    secret_key: str = field(repr=False)
    environment: Union[Environment, str] = Environment.SANDBOX
    api_version: str = DEFAULT_API_VERSION
    host: Optional[str] = None
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        environment = _parse_environment(self.environment)
        object.__setattr__(self, "environment", environment)
        if self.host is None:
            object.__setattr__(self, "host", _DEFAULT_HOSTS[environment])
        if not self.secret_key:
            raise ConfigurationError("secret key is required")
        if not self.api_version:
            raise ConfigurationError("API version is required")
        if not self.host:
            raise ConfigurationError("host is required")
        if self.timeout_seconds <= 0:
            raise ConfigurationError("timeout_seconds must be positive")

    @classmethod
    def sandbox(
        cls,
        secret_key: str,
        *,
        api_version: str = DEFAULT_API_VERSION,
        host: Optional[str] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> "IremboPayConfig":
        return cls(
            secret_key=secret_key,
            environment=Environment.SANDBOX,
            api_version=api_version,
            host=host,
            timeout_seconds=timeout_seconds,
        )

    @classmethod
    def production(
        cls,
        secret_key: str,
        *,
        api_version: str = DEFAULT_API_VERSION,
        host: Optional[str] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> "IremboPayConfig":
        return cls(
            secret_key=secret_key,
            environment=Environment.PRODUCTION,
            api_version=api_version,
            host=host,
            timeout_seconds=timeout_seconds,
        )
