"""Tests for engine configuration loading."""

import pydantic
import pytest

from agentgate.config import EngineConfig
from agentgate.errors import ConfigurationError
from agentgate.models import EnforcementMode


class TestEngineConfig:
    def test_defaults(self):
        config = EngineConfig()

        assert config.namespace == "agentgate"
        assert config.budgets_enabled is False
        assert config.multi_tenancy_enabled is True
        assert config.pricing_for("gpt-4o").input == 2.5
        assert config.pricing_for("unknown") is None
        assert config.pricing_for(None) is None

    def test_immutable(self):
        config = EngineConfig()

        with pytest.raises(pydantic.ValidationError):
            config.namespace = "other"

    def test_from_mapping(self):
        config = EngineConfig.from_mapping(
            {
                "budgets": {"enforcement": "hard", "global_daily": 25, "per_agent_daily": {"SummaryAgent": 5}},
                "pricing": {"local-llm": {"input": 0.1, "output": 0.2}},
            }
        )

        assert config.budgets.enforcement == EnforcementMode.HARD
        assert config.budgets.global_daily == 25.0
        assert config.budgets.per_agent_daily == {"SummaryAgent": 5.0}
        assert config.pricing_for("local-llm").output == 0.2

    @pytest.mark.parametrize(
        "data",
        [
            {"budgets": {"enforcement": "strict"}},
            {"budgets": {"global_daily": -1}},
            {"default_cache_ttl": 0},
        ],
    )
    def test_invalid_mapping(self, data):
        with pytest.raises(ConfigurationError):
            EngineConfig.from_mapping(data)


class TestFromYaml:
    def test_load(self, tmp_path):
        path = tmp_path / "agentgate.yaml"
        path.write_text(
            "namespace: billing\n"
            "budgets:\n"
            "  enforcement: soft\n"
            "  global_monthly: 500\n"
            "alerts:\n"
            "  on_events: [budget_soft_cap]\n"
        )

        config = EngineConfig.from_yaml(path)

        assert config.namespace == "billing"
        assert config.budgets.global_monthly == 500.0
        assert config.alerts.on_events == ["budget_soft_cap"]

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert EngineConfig.from_yaml(path) == EngineConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            EngineConfig.from_yaml(tmp_path / "missing.yaml")

    @pytest.mark.parametrize("content", ["- a list\n- of items\n", "budgets: [unclosed\n"])
    def test_invalid_file(self, tmp_path, content):
        path = tmp_path / "bad.yaml"
        path.write_text(content)

        with pytest.raises(ConfigurationError):
            EngineConfig.from_yaml(path)


class TestFromEnv:
    def test_reads_prefixed_variables(self):
        config = EngineConfig.from_env(
            {
                "AGENTGATE_DAILY_BUDGET": "12.5",
                "AGENTGATE_MONTHLY_TOKEN_BUDGET": "1000000",
                "AGENTGATE_BUDGET_ENFORCEMENT": "HARD",
                "AGENTGATE_ALERT_EVENTS": "budget_hard_cap, breaker_open",
                "AGENTGATE_SLACK_WEBHOOK_URL": "https://hooks.slack.example/T000",
                "AGENTGATE_ASYNC_LOGGING": "true",
                "AGENTGATE_MULTI_TENANCY": "false",
                "AGENTGATE_NAMESPACE": "",
            }
        )

        assert config.budgets.global_daily == 12.5
        assert config.budgets.global_monthly_tokens == 1_000_000
        assert config.budgets.enforcement == EnforcementMode.HARD
        assert config.alerts.on_events == ["budget_hard_cap", "breaker_open"]
        assert config.alerts.slack_webhook_url == "https://hooks.slack.example/T000"
        assert config.async_logging is True
        assert config.multi_tenancy_enabled is False
        assert config.namespace == "agentgate"

    def test_empty_environment(self):
        assert EngineConfig.from_env({}) == EngineConfig()

    def test_bad_number(self):
        with pytest.raises(ConfigurationError):
            EngineConfig.from_env({"AGENTGATE_DAILY_BUDGET": "lots"})
