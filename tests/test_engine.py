"""
Tests for the decision engine.
"""

import gc
import weakref

import pytest

from policy_store.pdp.conditions import ClauseMatcher
from policy_store.pdp.engine import DecisionEngine, NO_MATCH_EXPLANATION
from policy_store.pdp.models import Decision, DecisionContext, parse_amount


def approve(amount, role="manager"):
    return {
        "user_id": "u-1",
        "user_role": role,
        "action": "approve",
        "resource_owner": "u-1",
        "amount": amount,
    }


@pytest.fixture
def finance_rule(registry, store, approval_policy):
    registry.create("loan_approval", "finance")
    return store.create_version(
        "loan_approval", approval_policy, created_by="alice", activate=True
    )


class TestDecisionContext:
    """Test cases for DecisionContext."""

    def test_ownership_derived_from_owner(self):
        own = DecisionContext(user_id="u-1", user_role="operator", action="edit", resource_owner="u-1")
        other = DecisionContext(user_id="u-1", user_role="operator", action="edit", resource_owner="u-2")
        unowned = DecisionContext(user_id="u-1", user_role="operator", action="edit")

        assert own.is_own_resource is True
        assert other.is_own_resource is False
        assert unowned.is_own_resource is True

    def test_amount_only_kept_for_approve(self):
        view = DecisionContext(user_id="u-1", user_role="manager", action="view", amount=100)
        approval = DecisionContext(user_id="u-1", user_role="manager", action="approve", amount="100")

        assert view.amount is None
        assert approval.amount == 100.0

    @pytest.mark.parametrize("value,expected", [
        (1500, 1500.0),
        ("2500.5", 2500.5),
        (" 10 ", 10.0),
        (0, 0.0),
        (None, None),
        ("", None),
        ("lots", None),
        (-5, None),
        (True, None),
        (float("nan"), None),
        (float("inf"), None),
        (10 ** 400, None),
    ])
    def test_parse_amount(self, value, expected):
        assert parse_amount(value) == expected


class TestDecisionEngine:
    """Test cases for DecisionEngine.evaluate."""

    def test_threshold_allows_within_limit(self, engine, finance_rule):
        result = engine.evaluate(approve(1500))

        assert result.decision == Decision.ALLOWED
        assert result.allowed
        assert result.matched_clause == "manager_limit"
        assert result.matched_rule_id == "loan_approval"
        assert result.matched_version == 1
        assert result.explanations[0] == "manager_limit: Managers approve up to 2000"

    def test_threshold_denies_above_limit(self, engine, finance_rule):
        result = engine.evaluate(approve(2500))

        assert result.decision == Decision.DENIED
        assert result.explanations[0] == NO_MATCH_EXPLANATION

    def test_threshold_is_inclusive(self, engine, finance_rule):
        assert engine.evaluate(approve(2000)).allowed

    def test_exclusive_threshold(self, registry, store, engine):
        registry.create("loan_approval", "finance")
        store.create_version(
            "loan_approval",
            {"clauses": [{
                "role": "manager",
                "action": "approve",
                "amount_max": 2000,
                "amount_inclusive": False,
                "effect": "allow",
            }]},
            created_by="alice",
            activate=True,
        )

        assert not engine.evaluate(approve(2000)).allowed
        assert engine.evaluate(approve(1999.99)).allowed

    @pytest.mark.parametrize("amount", [None, "", "a lot", -1, True])
    def test_unusable_amount_fails_threshold(self, engine, finance_rule, amount):
        assert engine.evaluate(approve(amount)).decision == Decision.DENIED

    def test_default_deny_without_active_versions(self, registry, store, engine, approval_policy):
        registry.create("loan_approval", "finance")
        store.create_version("loan_approval", approval_policy, created_by="alice")

        result = engine.evaluate(approve(100))

        assert result.decision == Decision.DENIED
        assert result.explanations
        assert result.explanations[0] == NO_MATCH_EXPLANATION

    def test_default_deny_on_no_match(self, engine, finance_rule):
        result = engine.evaluate(approve(100, role="viewer"))

        assert result.decision == Decision.DENIED
        assert result.explanations == [
            NO_MATCH_EXPLANATION,
            "Checked 1 clause(s) in 1 rule version(s)",
        ]

    def test_first_match_decides(self, registry, store, engine):
        registry.create("loan_approval", "finance")
        store.create_version(
            "loan_approval",
            {"clauses": [
                {"id": "deny_all", "role": "manager", "effect": "deny"},
                {"id": "allow_all", "role": "manager", "effect": "allow"},
            ]},
            created_by="alice",
            activate=True,
        )

        result = engine.evaluate(approve(10))

        assert result.decision == Decision.DENIED
        assert result.matched_clause == "deny_all"

    def test_free_form_content_contributes_nothing(self, registry, store, engine):
        registry.create("loan_approval", "finance")
        store.create_version("loan_approval", {"threshold": 1000}, created_by="alice", activate=True)

        assert engine.evaluate(approve(10)).decision == Decision.DENIED

    def test_inactive_rule_ignored(self, registry, engine, finance_rule):
        registry.set_status("loan_approval", "inactive")

        assert engine.evaluate(approve(10)).decision == Decision.DENIED

    def test_malformed_context(self, engine, finance_rule):
        result = engine.evaluate(None)

        assert result.decision == Decision.DENIED
        assert result.explanations == ["Malformed context: default deny"]

    def test_wrongly_typed_fields_do_not_match(self, engine, finance_rule):
        context = approve(100)
        context["user_role"] = ["manager"]

        assert engine.evaluate(context).decision == Decision.DENIED

    def test_store_failure_denies(self, registry, store, settings):
        def resolver(context):
            raise RuntimeError("store is down")

        engine = DecisionEngine(registry, store, resolver=resolver, settings=settings)

        result = engine.evaluate(approve(10))

        assert result.decision == Decision.DENIED
        assert result.explanations == ["Policy store unavailable: default deny"]

    def test_resolver_selects_rulesets(self, registry, store, settings, approval_policy):
        registry.create("loan_approval", "finance")
        store.create_version("loan_approval", approval_policy, created_by="alice", activate=True)
        engine = DecisionEngine(
            registry, store,
            resolver=lambda context: ["ops"] if context.action == "view" else ["finance"],
            settings=settings,
        )

        assert engine.evaluate(approve(10)).allowed
        assert engine._resolve_rulesets(DecisionContext("u", "manager", "view")) == ["ops"]

    def test_custom_matcher(self, registry, store, settings, finance_rule):
        class DenyingMatcher(ClauseMatcher):
            def matches(self, clause, context):
                return False

        engine = DecisionEngine(
            registry, store, rulesets=["finance"], matcher=DenyingMatcher(), settings=settings
        )

        assert engine.evaluate(approve(10)).decision == Decision.DENIED


class TestPolicyCache:
    """Cached documents follow activations."""

    def test_activation_invalidates_cache(self, store, engine, finance_rule, approval_policy):
        assert engine.evaluate(approve(1500)).allowed

        approval_policy["clauses"][0]["amount_max"] = 1000
        store.create_version("loan_approval", approval_policy, created_by="alice", activate=True)

        result = engine.evaluate(approve(1500))
        assert result.decision == Decision.DENIED

    def test_cache_keyed_by_active_version(self, store, engine, finance_rule, approval_policy):
        engine.evaluate(approve(1500))
        assert engine._cache["loan_approval"][0] == finance_rule.id

        engine.invalidate("loan_approval")
        assert "loan_approval" not in engine._cache

    def test_stale_entry_not_served(self, store, engine, finance_rule, approval_policy, session_factory):
        # another process activates a version without notifying this engine
        engine.evaluate(approve(1500))
        other = type(store)(session_factory, lock_timeout=5)
        approval_policy["clauses"][0]["amount_max"] = 1000
        other.create_version("loan_approval", approval_policy, created_by="bob", activate=True)

        assert engine.evaluate(approve(1500)).decision == Decision.DENIED


class TestBatchEvaluation:
    """Test cases for DecisionEngine.evaluate_batch."""

    @pytest.mark.parametrize("parallel", [False, True])
    def test_batch_preserves_order(self, engine, finance_rule, parallel):
        contexts = [approve(1500), approve(2500), approve(100), approve(None)]

        batch = engine.evaluate_batch(contexts, parallel=parallel, max_workers=4)

        assert [r.allowed for r in batch.results] == [True, False, True, False]
        assert batch.allowed == 2
        assert batch.denied == 2
        assert batch.duration_ms >= 0

    def test_empty_batch(self, engine):
        batch = engine.evaluate_batch([])

        assert batch.results == []
        assert batch.allowed == 0


class TestPinnedEvaluation:
    """Evaluating one chosen version instead of the active set."""

    @pytest.fixture
    def draft(self, store, finance_rule, approval_policy):
        approval_policy["clauses"][0]["amount_max"] = 1000
        return store.create_version("loan_approval", approval_policy, created_by="bob")

    def test_pin_by_version_id(self, engine, draft):
        assert engine.evaluate(approve(1500)).allowed

        result = engine.evaluate(approve(1500), version_id=draft.id)

        assert result.decision == Decision.DENIED
        assert result.explanations == [
            NO_MATCH_EXPLANATION,
            "Checked 1 clause(s) in 1 rule version(s)",
        ]
        assert engine.evaluate(approve(900), version_id=str(draft.id)).matched_version == 2

    def test_pin_by_version_number(self, engine, draft):
        active = engine.evaluate(approve(1500), rule_id="loan_approval", version_number=1)
        pinned_draft = engine.evaluate(approve(1500), rule_id="loan_approval", version_number=2)

        assert active.allowed
        assert active.matched_version == 1
        assert not pinned_draft.allowed

    def test_pin_rule_uses_its_active_version(self, registry, store, settings, draft):
        engine = DecisionEngine(registry, store, rulesets=["unrelated"], settings=settings)

        result = engine.evaluate(approve(1500), rule_id="loan_approval")

        assert result.allowed
        assert result.explanations[1] == "Rule loan_approval v1 in ruleset finance"

    def test_pin_rule_without_active_version(self, registry, engine):
        registry.create("empty_rule", "finance")

        result = engine.evaluate(approve(10), rule_id="empty_rule")

        assert result.decision == Decision.DENIED
        assert result.explanations[1] == "Checked 0 clause(s) in 0 rule version(s)"

    @pytest.mark.parametrize("pin", [
        {"version_id": "00000000-0000-0000-0000-000000000000"},
        {"version_id": "not-a-uuid"},
        {"rule_id": "loan_approval", "version_number": 9},
        {"rule_id": "missing"},
    ])
    def test_unknown_pin_denies(self, engine, finance_rule, pin):
        result = engine.evaluate(approve(10), **pin)

        assert result.decision == Decision.DENIED
        assert result.explanations[0] == "Pinned version not found: default deny"

    def test_pin_must_belong_to_rule(self, registry, store, engine, draft):
        registry.create("card_limits", "finance")

        result = engine.evaluate(approve(10), version_id=draft.id, rule_id="card_limits")

        assert result.decision == Decision.DENIED
        assert result.explanations[0] == "Pinned version not found: default deny"

    def test_pinned_draft_does_not_replace_cached_active(self, engine, finance_rule, draft):
        engine.evaluate(approve(1500))
        engine.evaluate(approve(1500), version_id=draft.id)

        assert engine._cache["loan_approval"][0] == finance_rule.id

    @pytest.mark.parametrize("parallel", [False, True])
    def test_pinned_batch(self, engine, draft, parallel):
        batch = engine.evaluate_batch(
            [approve(500), approve(1500)],
            parallel=parallel,
            version_id=draft.id,
        )

        assert [r.allowed for r in batch.results] == [True, False]
        assert all(r.matched_version in (None, 2) for r in batch.results)


class TestActivationListeners:
    """Engines subscribe to activations without being kept alive by the store."""

    def test_dropped_engines_are_released(self, registry, store, settings):
        engines = [DecisionEngine(registry, store, settings=settings) for _ in range(50)]
        refs = [weakref.ref(e) for e in engines]

        del engines
        gc.collect()

        assert all(ref() is None for ref in refs)
        assert store.activation_listeners() == []

    def test_close_unsubscribes(self, store, engine, finance_rule):
        engine.evaluate(approve(1500))
        assert store.activation_listeners() == [engine.invalidate]

        engine.close()

        assert store.activation_listeners() == []
        assert engine._cache == {}
