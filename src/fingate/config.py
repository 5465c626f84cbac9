"""Gateway configuration.

Settings are read once at startup from the environment (prefix ``FINGATE_``)
and an optional ``.env`` file, then treated as immutable.
"""

from typing import Dict, List, Optional

from pydantic import ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings

from fingate.errors import ConfigurationError


KNOWN_PROVIDERS = {"ollama", "gemini", "simulated"}


class GatewaySettings(BaseSettings):
    """Configuration for the orchestration gateway."""

    model_config = ConfigDict(
        env_prefix="FINGATE_",
        env_file=".env",
        extra="ignore",  # Ignore unrelated keys in .env
        frozen=True,
    )

    # Rate limiting
    rate_limit: int = Field(default=60, gt=0)
    rate_window_seconds: float = Field(default=60.0, gt=0)

    # Response cache
    cache_ttl_seconds: float = Field(default=300.0, gt=0)
    single_flight_wait_seconds: float = Field(default=30.0, gt=0)
    cache_sweep_interval_seconds: float = Field(default=60.0, gt=0)

    # Fraud scoring
    fraud_confidence_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    fraud_series_length: int = Field(default=50, ge=2)
    fraud_min_history: int = Field(default=5, ge=1)
    fraud_z_threshold: float = Field(default=3.0, gt=0)

    # Providers, highest priority first
    provider_priority: List[str] = Field(default_factory=lambda: ["ollama", "simulated"])
    provider_timeouts: Dict[str, float] = Field(default_factory=dict)
    default_provider_timeout: float = Field(default=20.0, gt=0)
    provider_cooldown_seconds: float = Field(default=30.0, ge=0)
    max_tokens: int = Field(default=1024, gt=0)

    ollama_url: str = "http://localhost:11434/api/generate"
    ollama_model: str = "llama3.1:8b"
    gemini_model: str = "gemini-2.0-flash"
    google_api_key: Optional[str] = None
    simulated_failure_rate: float = Field(default=0.0, ge=0.0, le=1.0)

    # Compliance ruleset; built-in defaults when unset
    policy_rules_path: Optional[str] = None

    # Reference data
    refresh_interval_seconds: float = Field(default=60.0, gt=0)
    reference_url: Optional[str] = None

    # Audit ledger; in-memory when unset
    ledger_path: Optional[str] = None

    # HTTP ingress
    host: str = "127.0.0.1"
    port: int = 8080

    def timeout_for(self, provider: str) -> float:
        """Per-call timeout for a provider."""
        return self.provider_timeouts.get(provider, self.default_provider_timeout)


def load_settings(**overrides) -> GatewaySettings:
    """
    Load and cross-check gateway settings.

    Raises:
        ConfigurationError: If any value is invalid. The gateway must not start.
    """
    try:
        settings = GatewaySettings(**overrides)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(f"Invalid settings: {problems}") from e

    if not settings.provider_priority:
        raise ConfigurationError("provider_priority must name at least one provider")

    unknown = [p for p in settings.provider_priority if p not in KNOWN_PROVIDERS]
    if unknown:
        raise ConfigurationError(f"Unknown providers in provider_priority: {unknown}")

    if len(set(settings.provider_priority)) != len(settings.provider_priority):
        raise ConfigurationError("provider_priority contains duplicates")

    if "gemini" in settings.provider_priority and not settings.google_api_key:
        raise ConfigurationError("gemini provider requires FINGATE_GOOGLE_API_KEY")

    if settings.fraud_min_history > settings.fraud_series_length:
        raise ConfigurationError("fraud_min_history cannot exceed fraud_series_length")

    bad_timeouts = {k: v for k, v in settings.provider_timeouts.items() if v <= 0}
    if bad_timeouts:
        raise ConfigurationError(f"Provider timeouts must be positive: {bad_timeouts}")

    return settings
