"""
Configuration management using Pydantic Settings.
Supports multiple environments: development, staging, production.
"""

import os
import re
from dataclasses import dataclass
from typing import Optional, List, Mapping

from pydantic import validator
from pydantic_settings import BaseSettings
import structlog

from claimbot.core.exceptions import InvalidKeyError
from claimbot.eosio.keys import PrivateKey


logger = structlog.get_logger(__name__)


DEFAULT_WAX_ENDPOINTS = [
    "https://api.wax.greeneosio.com",
    "https://api.waxsweden.org",
    "https://wax.cryptolions.io",
    "https://wax.eu.eosamsterdam.net",
    "https://wax.greymass.com",
    "https://wax.pink.gg",
]


class GameConfig:
    """R-Planet contracts and chain constants."""

    TOKEN_CONTRACT = "e.rplanet"
    GAME_CONTRACT = "s.rplanet"

    LIMITS_TABLE = "claimlimits"
    LIMITS_INDEX_POSITION = 1
    LIMITS_KEY_TYPE = "i64"
    TABLE_ROW_LIMIT = 100

    SYMBOL = "AETHER"
    SYMBOL_PRECISION = 4

    INCREASE_MEMO = "extend claim limit"
    PERMISSION = "active"

    MIN_LIMIT = 10_000
    MAX_LIMIT = 50_000_000
    LIMIT_SCALE = 10_000
    HOURLY_DECAY = 0.99

    EXPIRATION_SECONDS = 3600


class Settings(BaseSettings):
    """Application settings with environment-based configuration."""

    # Application
    app_name: str = "R-Planet Bot"
    environment: str = "development"

    # WAX RPC
    wax_endpoints: List[str] = list(DEFAULT_WAX_ENDPOINTS)
    request_timeout: float = 5.0  # seconds, per attempt
    user_agent: str = "rplanetbot/1.0.0"

    # Game API
    collected_api_url: str = "https://rplanet.io/api/get_collected"
    collected_max_attempts: int = 4

    # Decision thresholds
    delay_min: float = 4.0  # seconds
    delay_max: float = 10.0  # seconds
    min_claim: float = 50_000
    max_waste: float = 1_000
    max_claim_limit: float = 100_000

    # Scheduler settings
    check_interval: int = 15  # minutes

    # Dry run: decisions are logged but nothing is pushed
    dev_mode: bool = False

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"  # json or console
    log_file: Optional[str] = None

    @validator("environment")
    def validate_environment(cls, v: str) -> str:
        allowed = ["development", "staging", "production"]
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v

    @validator("log_level")
    def validate_log_level(cls, v: str) -> str:
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    @validator("wax_endpoints")
    def validate_wax_endpoints(cls, v: List[str]) -> List[str]:
        endpoints = [url.strip().rstrip("/") for url in v if url.strip()]
        if not endpoints:
            raise ValueError("At least one WAX endpoint is required")
        return endpoints

    @validator("delay_min", "min_claim", "max_waste")
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Value must be non-negative")
        return v

    @validator("max_claim_limit")
    def validate_max_claim_limit(cls, v: float) -> float:
        if v <= GameConfig.MIN_LIMIT:
            raise ValueError(f"max_claim_limit must be above {GameConfig.MIN_LIMIT}")
        return v

    @validator("delay_max")
    def validate_delay_max(cls, v: float, values) -> float:
        delay_min = values.get("delay_min")
        if delay_min is not None and v < delay_min:
            raise ValueError("delay_max must be greater than or equal to delay_min")
        return v

    @validator("check_interval", "collected_max_attempts")
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Value must be at least 1")
        return v

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


# Global settings instance
settings = Settings()


@dataclass(frozen=True)
class AccountConfig:
    """A game account and the key it signs with."""
    name: str
    private_key: str

    def __repr__(self) -> str:
        return f"AccountConfig(name={self.name!r})"


_ACCOUNT_NAME_RE = re.compile(r"^ACCOUNT_NAME(.*)$")


def load_accounts(environ: Optional[Mapping[str, str]] = None) -> List[AccountConfig]:
    """
    Collect ACCOUNT_NAME<id> / PRIVATE_KEY<id> pairs from the environment.

    Accounts with a missing or unparsable key are logged and skipped.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        Accounts in environment order
    """
    environ = os.environ if environ is None else environ
    accounts: List[AccountConfig] = []

    for key, account_name in environ.items():
        match = _ACCOUNT_NAME_RE.match(key)
        if not match:
            continue

        suffix = match.group(1)
        key_var = f"PRIVATE_KEY{suffix}"
        private_key = environ.get(key_var)

        if not private_key:
            logger.error(
                f"Account {account_name} does not have a {key_var} in .env",
                account=account_name
            )
            continue

        try:
            PrivateKey.from_string(private_key)
        except InvalidKeyError:
            logger.error(f"{key_var} is not a valid EOS key", account=account_name)
            continue

        accounts.append(AccountConfig(name=account_name, private_key=private_key))

    return accounts
