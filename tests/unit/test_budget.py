"""Tests for budget keys, spend recording, queries, resolution and checks."""

import math
from concurrent.futures import ThreadPoolExecutor

import pytest

from agentgate.alerts import AlertManager
from agentgate.budget import (
    AGENT,
    DAILY,
    GLOBAL,
    MONTHLY,
    UNLIMITED,
    BudgetConfig,
    BudgetKeys,
    BudgetQuery,
    BudgetTracker,
    ConfigResolver,
    InMemoryTenantBudgetStore,
    SpendRecorder,
    TenantBudget,
)
from agentgate.budget.query import percentage
from agentgate.config import AlertSettings, BudgetDefaults, EngineConfig
from agentgate.errors import BudgetExceededError, ConfigurationError
from agentgate.models import EnforcementMode

HARD = EnforcementMode.HARD
SOFT = EnforcementMode.SOFT


def hard_config(**limits) -> BudgetConfig:
    return BudgetConfig(enabled=True, enforcement=HARD, **limits)


def soft_config(**limits) -> BudgetConfig:
    return BudgetConfig(enabled=True, enforcement=SOFT, **limits)


@pytest.fixture
def keys(clock):
    return BudgetKeys("agentgate", clock)


@pytest.fixture
def query(store, keys):
    return BudgetQuery(store, keys)


@pytest.fixture
def recorder(store, keys, alert_manager):
    return SpendRecorder(store, keys, alert_manager)


def make_tracker(store, keys, alert_manager, config=None, **resolver_kwargs):
    resolver = ConfigResolver(config or EngineConfig(), **resolver_kwargs)
    return BudgetTracker(resolver, SpendRecorder(store, keys, alert_manager), BudgetQuery(store, keys))


class TestBudgetKeys:
    def test_daily_and_monthly_spend_keys(self, keys):
        assert keys.spend(GLOBAL, DAILY, tenant_id="acme") == "agentgate:budget:tenant:acme:2026-03-15"
        assert keys.spend(GLOBAL, MONTHLY) == "agentgate:budget:global:2026-03"

    def test_agent_spend_key(self, keys):
        assert (
            keys.spend(AGENT, DAILY, agent_type="SummaryAgent", tenant_id="acme")
            == "agentgate:budget:tenant:acme:agent:SummaryAgent:2026-03-15"
        )

    def test_agent_scope_requires_agent(self, keys):
        with pytest.raises(ValueError):
            keys.spend(AGENT, DAILY)

    def test_token_execution_and_alert_keys(self, keys):
        assert keys.tokens(DAILY) == "agentgate:tokens:global:2026-03-15"
        assert keys.executions(MONTHLY, "acme") == "agentgate:executions:tenant:acme:2026-03"
        assert (
            keys.alert("budget_alert", "global_daily", "acme")
            == "agentgate:budget_alert:tenant:acme:global_daily:2026-03-15"
        )


class TestSpendRecorder:
    def test_spend_increments_four_counters(self, recorder, query):
        recorder.record_spend("SummaryAgent", 1.25, "acme", hard_config())
        recorder.record_spend("SummaryAgent", 0.75, "acme", hard_config())

        assert query.current_spend(GLOBAL, DAILY, tenant_id="acme") == 2.0
        assert query.current_spend(GLOBAL, MONTHLY, tenant_id="acme") == 2.0
        assert query.current_spend(AGENT, DAILY, "SummaryAgent", "acme") == 2.0
        assert query.current_spend(AGENT, MONTHLY, "SummaryAgent", "acme") == 2.0

    def test_non_positive_amounts_are_ignored(self, recorder, store):
        recorder.record_spend("SummaryAgent", 0, "acme", hard_config())
        recorder.record_spend("SummaryAgent", -3, "acme", hard_config())
        recorder.record_tokens("SummaryAgent", None, "acme", hard_config())

        assert store._data == {}

    def test_tokens_are_global_only(self, recorder, query, store):
        recorder.record_tokens("SummaryAgent", 1500, "acme", hard_config())

        assert query.current_tokens(DAILY, "acme") == 1500
        assert query.current_tokens(MONTHLY, "acme") == 1500
        assert not [k for k in store._data if ":agent:" in k]

    def test_tenants_are_isolated(self, recorder, query):
        recorder.record_spend("SummaryAgent", 3.0, "acme", hard_config())

        assert query.current_spend(GLOBAL, DAILY, tenant_id="globex") == 0.0
        assert query.current_spend(GLOBAL, DAILY) == 0.0

    def test_daily_rollover(self, recorder, query, clock):
        recorder.record_spend("SummaryAgent", 4.0, "acme", hard_config())

        clock.advance(24 * 60 * 60)

        assert query.current_spend(GLOBAL, DAILY, tenant_id="acme") == 0.0
        assert query.current_spend(GLOBAL, MONTHLY, tenant_id="acme") == 4.0

    def test_breach_sends_one_alert_with_payload(self, recorder, sink):
        config = soft_config(global_daily=5.0)

        recorder.record_spend("SummaryAgent", 6.0, "acme", config)
        recorder.record_spend("SummaryAgent", 1.0, "acme", config)

        alerts = sink.of("budget_soft_cap")
        assert len(alerts) == 1
        payload = alerts[0]
        assert payload["scope"] == "global_daily"
        assert payload["limit"] == 5.0
        assert payload["total"] == 6.0
        assert payload["agent_type"] == "SummaryAgent"
        assert payload["tenant_id"] == "acme"
        assert payload["timestamp"].startswith("2026-03-15T12:00")

    def test_hard_enforcement_uses_hard_cap_event(self, recorder, sink):
        recorder.record_spend("SummaryAgent", 6.0, "acme", hard_config(global_daily=5.0))

        assert len(sink.of("budget_hard_cap")) == 1
        assert sink.of("budget_soft_cap") == []

    def test_first_breached_scope_wins(self, recorder, sink):
        config = soft_config(global_monthly=1.0, per_agent_daily={"SummaryAgent": 1.0})

        recorder.record_spend("SummaryAgent", 2.0, "acme", config)

        assert [p["scope"] for p in sink.of("budget_soft_cap")] == ["global_monthly"]

    def test_no_alerts_when_disabled(self, recorder, sink, query):
        recorder.record_spend("SummaryAgent", 50.0, "acme", BudgetConfig(global_daily=1.0))

        assert sink.events == []
        assert query.current_spend(GLOBAL, DAILY, tenant_id="acme") == 50.0

    def test_token_alert(self, recorder, sink):
        recorder.record_tokens("SummaryAgent", 2000, "acme", soft_config(global_daily_tokens=1000))

        assert sink.of("token_soft_cap")[0]["scope"] == "global_daily_tokens"

    def test_execution_alert(self, recorder, sink):
        config = hard_config(global_daily_executions=2)
        for _ in range(3):
            recorder.record_execution("SummaryAgent", "acme", config)

        assert len(sink.of("execution_hard_cap")) == 1

    def test_concurrent_breaches_alert_exactly_once(self, recorder, sink):
        config = soft_config(global_daily=1.0)

        with ThreadPoolExecutor(max_workers=8) as pool:
            for _ in range(40):
                pool.submit(recorder.record_spend, "SummaryAgent", 0.5, "acme", config)

        assert len(sink.of("budget_soft_cap")) == 1

    def test_alert_again_next_day(self, recorder, sink, clock):
        config = soft_config(global_daily=1.0)
        recorder.record_spend("SummaryAgent", 2.0, "acme", config)

        clock.advance(24 * 60 * 60)
        recorder.record_spend("SummaryAgent", 2.0, "acme", config)

        assert len(sink.of("budget_soft_cap")) == 2

    def test_alert_filter_by_event(self, store, keys, sink):
        manager = AlertManager(AlertSettings(on_events=["budget_hard_cap"]), sinks=[sink])
        recorder = SpendRecorder(store, keys, manager)

        recorder.record_spend("SummaryAgent", 2.0, "acme", soft_config(global_daily=1.0))

        assert sink.events == []


class TestBudgetQuery:
    def test_percentage(self):
        assert percentage(5, 10) == 50.0
        assert percentage(1, 3) == 33.33
        assert percentage(1, 0) == 100.0
        assert percentage(0, 0) == 0.0

    def test_remaining_never_negative(self, recorder, query):
        config = hard_config(global_daily=10.0)
        recorder.record_spend("SummaryAgent", 15.0, "acme", BudgetConfig())

        assert query.remaining_budget(GLOBAL, DAILY, config, tenant_id="acme") == 0

    def test_remaining_subtracts_current(self, recorder, query):
        recorder.record_spend("SummaryAgent", 4.0, "acme", BudgetConfig())

        assert query.remaining_budget(GLOBAL, DAILY, hard_config(global_daily=10.0), tenant_id="acme") == 6.0

    def test_missing_limit_is_unlimited(self, query):
        config = hard_config()

        assert query.remaining_budget(GLOBAL, DAILY, config) == UNLIMITED
        assert math.isinf(query.remaining_budget(AGENT, MONTHLY, config, agent_type="SummaryAgent"))
        assert query.remaining_token_budget(DAILY, config) == UNLIMITED
        assert query.remaining_execution_budget(DAILY, config) == UNLIMITED

    def test_remaining_token_budget(self, recorder, query):
        recorder.record_tokens("SummaryAgent", 400, None, BudgetConfig())

        assert query.remaining_token_budget(DAILY, hard_config(global_daily_tokens=1000)) == 600

    def test_status_omits_unconfigured_dimensions(self, recorder, query):
        config = hard_config(global_daily=10.0, per_agent_daily={"SummaryAgent": 2.0})
        recorder.record_spend("SummaryAgent", 1.0, "acme", BudgetConfig())

        status = query.status(config, agent_type="SummaryAgent", tenant_id="acme")

        assert set(status.dimensions) == {"global_daily", "per_agent_daily"}
        daily = status.dimensions["global_daily"]
        assert (daily.limit, daily.current, daily.remaining, daily.percentage_used) == (10.0, 1.0, 9.0, 10.0)
        assert status.dimensions["per_agent_daily"].percentage_used == 50.0

    def test_status_to_dict(self, query):
        data = query.status(hard_config(global_daily_tokens=100), tenant_id="acme").to_dict()

        assert data["tenant_id"] == "acme"
        assert data["enforcement"] == "hard"
        assert data["global_daily_tokens"]["remaining"] == 100
        assert "global_daily" not in data


class TestForecast:
    def test_projects_daily_and_monthly(self, recorder, query):
        config = soft_config(global_daily=20.0, global_monthly=10.0)
        recorder.record_spend("SummaryAgent", 6.0, None, BudgetConfig())

        forecast = query.forecaster.forecast(config)

        # 12:00 on the 15th: 12 hours into the day, 14.5 days into a 31-day month
        assert forecast["daily"]["projected"] == 12.0
        assert forecast["daily"]["on_track"] is True
        assert forecast["daily"]["hours_remaining"] == 12.0
        assert forecast["monthly"]["projected"] == pytest.approx(12.8276, abs=1e-4)
        assert forecast["monthly"]["on_track"] is False
        assert forecast["monthly"]["days_remaining"] == 16

    def test_no_forecast_without_limits_or_when_disabled(self, query):
        assert query.forecaster.forecast(soft_config()) is None
        assert query.forecaster.forecast(BudgetConfig(global_daily=5.0)) is None


class TestConfigResolver:
    def defaults(self):
        return BudgetDefaults(enforcement=SOFT, global_daily=25.0, global_monthly=500.0)

    def test_global_defaults_without_tenant(self):
        resolver = ConfigResolver(EngineConfig(budgets=self.defaults()))

        config = resolver.resolve(None)

        assert (config.enabled, config.enforcement, config.global_daily) == (True, SOFT, 25.0)

    def test_tenant_ids_ignored_when_multi_tenancy_off(self):
        resolver = ConfigResolver(EngineConfig(multi_tenancy_enabled=False))

        assert resolver.resolve_tenant_id("acme") is None
        assert ConfigResolver(EngineConfig()).resolve_tenant_id(42) == "42"

    def test_tenant_record_inherits_unset_dimensions(self):
        store = InMemoryTenantBudgetStore([TenantBudget(tenant_id="acme", daily_limit=5.0, enforcement=HARD)])
        resolver = ConfigResolver(EngineConfig(budgets=self.defaults()), tenant_store=store)

        config = resolver.resolve("acme")

        assert (config.global_daily, config.global_monthly, config.enforcement) == (5.0, 500.0, HARD)

    def test_no_inheritance_means_unlimited_and_soft(self):
        store = InMemoryTenantBudgetStore(
            [TenantBudget(tenant_id="acme", daily_limit=5.0, inherit_global_defaults=False)]
        )
        defaults = BudgetDefaults(enforcement=HARD, global_monthly=500.0)
        resolver = ConfigResolver(EngineConfig(budgets=defaults), tenant_store=store)

        config = resolver.resolve("acme")

        assert config.global_monthly is None
        assert config.enforcement == SOFT

    def test_resolution_priority(self):
        store = InMemoryTenantBudgetStore([TenantBudget(tenant_id="acme", daily_limit=1.0)])
        resolver = ConfigResolver(
            EngineConfig(budgets=self.defaults()),
            tenant_store=store,
            tenant_config_resolver=lambda tenant_id: {"daily_limit": 2.0},
        )

        assert resolver.resolve("acme").global_daily == 2.0
        assert resolver.resolve("acme", {"daily_budget_limit": 3.0}).global_daily == 3.0

    def test_resolver_returning_nothing_falls_through_to_store(self):
        store = InMemoryTenantBudgetStore([TenantBudget(tenant_id="acme", daily_limit=1.0)])
        resolver = ConfigResolver(EngineConfig(), tenant_store=store, tenant_config_resolver=lambda _: None)

        assert resolver.resolve("acme").global_daily == 1.0

    def test_broken_tenant_store_falls_back_to_global(self):
        class BrokenStore:
            def get(self, tenant_id):
                raise RuntimeError("db down")

        resolver = ConfigResolver(EngineConfig(budgets=self.defaults()), tenant_store=BrokenStore())

        assert resolver.resolve("acme").global_daily == 25.0

    def test_invalid_override_type(self):
        with pytest.raises(ConfigurationError):
            ConfigResolver(EngineConfig()).resolve("acme", ["daily_limit", 5])

    def test_budget_config_is_immutable(self):
        config = hard_config(per_agent_daily={"SummaryAgent": 1.0})

        with pytest.raises(TypeError):
            config.per_agent_daily["SummaryAgent"] = 99.0


class TestBudgetTracker:
    def test_hard_breach_raises_and_alerts(self, store, keys, alert_manager, sink):
        tracker = make_tracker(store, keys, alert_manager)
        override = {"enforcement": "hard", "daily_limit": 10.0}
        tracker.record_usage("SummaryAgent", "acme", BudgetConfig(), cost=10.0)

        with pytest.raises(BudgetExceededError) as exc_info:
            tracker.check_budget("SummaryAgent", "acme", override)

        error = exc_info.value
        assert (error.scope, error.limit, error.current, error.tenant_id) == ("global_daily", 10.0, 10.0, "acme")
        assert len(sink.of("budget_hard_cap")) == 1

    def test_soft_breach_allows_call(self, store, keys, alert_manager, sink):
        tracker = make_tracker(store, keys, alert_manager)
        tracker.record_usage("SummaryAgent", "acme", BudgetConfig(), cost=10.0)

        config = tracker.check_budget("SummaryAgent", "acme", {"enforcement": "soft", "daily_limit": 5.0})

        assert config.enforcement == SOFT
        assert len(sink.of("budget_soft_cap")) == 1

    def test_under_limit_passes(self, store, keys, alert_manager, sink):
        tracker = make_tracker(store, keys, alert_manager)
        tracker.record_usage("SummaryAgent", "acme", BudgetConfig(), cost=4.0)

        tracker.check_budget("SummaryAgent", "acme", {"enforcement": "hard", "daily_limit": 10.0})

        assert sink.events == []

    def test_estimate_pushing_over_limit_is_rejected(self, store, keys, alert_manager):
        tracker = make_tracker(store, keys, alert_manager)
        tracker.record_usage("SummaryAgent", "acme", BudgetConfig(), cost=4.0)
        override = {"enforcement": "hard", "daily_limit": 10.0}

        tracker.check_budget("SummaryAgent", "acme", override, estimated_cost=6.0)
        with pytest.raises(BudgetExceededError):
            tracker.check_budget("SummaryAgent", "acme", override, estimated_cost=7.0)

    def test_per_agent_limit(self, store, keys, alert_manager):
        tracker = make_tracker(store, keys, alert_manager)
        tracker.record_usage("SummaryAgent", None, BudgetConfig(), cost=3.0)
        override = {"enforcement": "hard", "per_agent_daily": {"SummaryAgent": 3.0}}

        tracker.check_budget("OtherAgent", None, override)
        with pytest.raises(BudgetExceededError) as exc_info:
            tracker.check_budget("SummaryAgent", None, override)

        assert exc_info.value.scope == "per_agent_daily"

    def test_token_and_execution_limits(self, store, keys, alert_manager):
        tracker = make_tracker(store, keys, alert_manager)
        tracker.record_usage("SummaryAgent", "acme", BudgetConfig(), cost=0.0, tokens=1000)

        with pytest.raises(BudgetExceededError) as tokens_exc:
            tracker.check_budget("SummaryAgent", "acme", {"enforcement": "hard", "daily_token_limit": 1000})
        with pytest.raises(BudgetExceededError) as executions_exc:
            tracker.check_budget("SummaryAgent", "acme", {"enforcement": "hard", "daily_execution_limit": 1})

        assert tokens_exc.value.scope == "global_daily_tokens"
        assert executions_exc.value.scope == "global_daily_executions"

    def test_no_limits_always_pass(self, store, keys, alert_manager):
        tracker = make_tracker(store, keys, alert_manager)
        tracker.record_usage("SummaryAgent", "acme", BudgetConfig(), cost=1_000_000.0, tokens=10**9)

        tracker.check_budget("SummaryAgent", "acme", {"enforcement": "hard"})

    def test_enforcement_none_skips_checks(self, store, keys, alert_manager):
        tracker = make_tracker(store, keys, alert_manager)
        tracker.record_usage("SummaryAgent", "acme", BudgetConfig(), cost=100.0)

        config = tracker.check_budget("SummaryAgent", "acme", {"enforcement": "none", "daily_limit": 1.0})

        assert config.enabled is False

    def test_record_usage_counts_execution_without_cost(self, store, keys, alert_manager):
        tracker = make_tracker(store, keys, alert_manager)

        tracker.record_usage("SummaryAgent", "acme", BudgetConfig(), cost=0.0, tokens=0)

        assert tracker.query.current_executions(DAILY, "acme") == 1
        assert tracker.query.current_spend(GLOBAL, DAILY, tenant_id="acme") == 0.0

    def test_status_uses_resolved_tenant_config(self, store, keys, alert_manager):
        store_ = InMemoryTenantBudgetStore([TenantBudget(tenant_id="acme", daily_limit=8.0, enforcement=HARD)])
        tracker = make_tracker(store, keys, alert_manager, tenant_store=store_)
        tracker.record_usage("SummaryAgent", "acme", BudgetConfig(), cost=2.0)

        status = tracker.status("SummaryAgent", "acme")

        assert status.dimensions["global_daily"].remaining == 6.0
        assert status.forecast["daily"]["current"] == 2.0
