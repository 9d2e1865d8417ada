"""Engine configuration.

An EngineConfig is built once at process start (from code, environment
variables or a YAML file) and passed explicitly to the Executor. It is
immutable; nothing in the pipeline reads configuration from a global.
"""

import os
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError

from agentgate.errors import ConfigurationError
from agentgate.metrics.costs import DEFAULT_PRICING, ModelPricing
from agentgate.models import EnforcementMode

# =============================================================================
# Environment defaults
# =============================================================================

ENV_PREFIX = "AGENTGATE_"

# Counter/cache store
REDIS_URL = os.environ.get("AGENTGATE_REDIS_URL", os.environ.get("REDIS_URL", "redis://localhost:6379/0"))

# Execution history store
DATABASE_URL = os.environ.get(
    "AGENTGATE_DATABASE_URL",
    os.environ.get("DATABASE_URL", "sqlite:///./agentgate.db"),
)

DEFAULT_SENSITIVE_FIELDS = [
    "password",
    "token",
    "api_key",
    "secret",
    "credential",
    "auth",
    "authorization",
    "access_token",
    "refresh_token",
    "private_key",
    "secret_key",
]


class BudgetDefaults(BaseModel):
    """Global budget defaults; tenants inherit these unless they opt out."""

    model_config = ConfigDict(frozen=True)

    enforcement: EnforcementMode = EnforcementMode.NONE
    global_daily: Optional[float] = Field(default=None, ge=0)
    global_monthly: Optional[float] = Field(default=None, ge=0)
    per_agent_daily: dict[str, float] = Field(default_factory=dict)
    per_agent_monthly: dict[str, float] = Field(default_factory=dict)
    global_daily_tokens: Optional[int] = Field(default=None, ge=0)
    global_monthly_tokens: Optional[int] = Field(default=None, ge=0)
    global_daily_executions: Optional[int] = Field(default=None, ge=0)
    global_monthly_executions: Optional[int] = Field(default=None, ge=0)

    @property
    def enabled(self) -> bool:
        return self.enforcement != EnforcementMode.NONE


class AlertSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    on_events: list[str] = Field(default_factory=list)
    webhook_url: Optional[str] = None
    slack_webhook_url: Optional[str] = None
    timeout_seconds: float = 5.0


class RedactionSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    fields: list[str] = Field(default_factory=lambda: list(DEFAULT_SENSITIVE_FIELDS))
    patterns: list[str] = Field(default_factory=list)
    placeholder: str = "[REDACTED]"
    max_value_length: Optional[int] = 5000


class EngineConfig(BaseModel):
    """Immutable configuration for an Executor and its services."""

    model_config = ConfigDict(frozen=True)

    namespace: str = "agentgate"
    budgets: BudgetDefaults = Field(default_factory=BudgetDefaults)
    alerts: AlertSettings = Field(default_factory=AlertSettings)
    redaction: RedactionSettings = Field(default_factory=RedactionSettings)
    pricing: dict[str, ModelPricing] = Field(default_factory=lambda: dict(DEFAULT_PRICING))

    multi_tenancy_enabled: bool = True
    track_executions: bool = True
    track_cache_hits: bool = False
    async_logging: bool = False
    persist_responses: bool = True

    default_cache_ttl: int = Field(default=3600, gt=0)
    anomaly_cost_threshold: float = 5.00
    anomaly_duration_threshold_ms: int = 10_000

    @property
    def budgets_enabled(self) -> bool:
        return self.budgets.enabled

    def pricing_for(self, model_id: Optional[str]) -> Optional[ModelPricing]:
        if not model_id:
            return None
        return self.pricing.get(model_id)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "EngineConfig":
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid engine configuration: {e}") from e

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "EngineConfig":
        """Load configuration from a YAML mapping.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ConfigurationError: If the file isn't a valid configuration
        """
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config not found: {config_path}")

        with open(config_path) as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config root must be a mapping: {config_path}")
        return cls.from_mapping(data)

    @classmethod
    def from_env(cls, environ: Optional[dict[str, str]] = None) -> "EngineConfig":
        """Build configuration from AGENTGATE_* environment variables."""
        env = os.environ if environ is None else environ

        def _get(name: str) -> Optional[str]:
            value = env.get(ENV_PREFIX + name)
            return value if value not in (None, "") else None

        budgets: dict[str, Any] = {}
        try:
            budgets.update(_numeric_budgets(_get))
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric budget setting: {e}") from e
        if _get("BUDGET_ENFORCEMENT"):
            budgets["enforcement"] = _get("BUDGET_ENFORCEMENT").lower()

        alerts: dict[str, Any] = {}
        if _get("ALERT_WEBHOOK_URL"):
            alerts["webhook_url"] = _get("ALERT_WEBHOOK_URL")
        if _get("SLACK_WEBHOOK_URL"):
            alerts["slack_webhook_url"] = _get("SLACK_WEBHOOK_URL")
        if _get("ALERT_EVENTS"):
            alerts["on_events"] = [e.strip() for e in _get("ALERT_EVENTS").split(",") if e.strip()]

        data: dict[str, Any] = {"budgets": budgets, "alerts": alerts}
        if _get("NAMESPACE"):
            data["namespace"] = _get("NAMESPACE")
        if _get("ASYNC_LOGGING"):
            data["async_logging"] = _get("ASYNC_LOGGING").lower() == "true"
        if _get("TRACK_CACHE_HITS"):
            data["track_cache_hits"] = _get("TRACK_CACHE_HITS").lower() == "true"
        if _get("MULTI_TENANCY"):
            data["multi_tenancy_enabled"] = _get("MULTI_TENANCY").lower() == "true"

        return cls.from_mapping(data)


# Logging settings read by the embedding application
LOG_JSON = os.environ.get("AGENTGATE_LOG_JSON", "false").lower() == "true"
LOG_LEVEL = os.environ.get("AGENTGATE_LOG_LEVEL", "INFO")


def _numeric_budgets(get) -> dict[str, Any]:
    budgets: dict[str, Any] = {}
    for env_name, field_name, cast in (
        ("DAILY_BUDGET", "global_daily", float),
        ("MONTHLY_BUDGET", "global_monthly", float),
        ("DAILY_TOKEN_BUDGET", "global_daily_tokens", int),
        ("MONTHLY_TOKEN_BUDGET", "global_monthly_tokens", int),
    ):
        raw = get(env_name)
        if raw is not None:
            budgets[field_name] = cast(raw)
    return budgets
