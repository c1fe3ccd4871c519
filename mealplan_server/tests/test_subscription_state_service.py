"""
Subscription state machine tests
"""

from datetime import date, timedelta

import pytest

from ..core.exceptions import (
    BusinessRuleViolationError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from ..models.subscription import Actor, PaymentMethod, SubscriptionStatus
from ..services.subscription_state_service import (
    VALID_TRANSITIONS,
    determine_initial_state,
    is_valid_transition,
)

S = SubscriptionStatus


class TestInitialState:
    """Initial status derivation at creation"""

    def test_credit_card_with_auto_renewal_is_new_joiner(self, make_plan, make_subscription):
        subscription = make_subscription(make_plan())
        assert subscription.status == S.NEW_JOINER
        assert subscription.completed_cycles == 0

    def test_credit_card_without_auto_renewal_is_curious(self, make_plan, make_subscription):
        subscription = make_subscription(make_plan(), auto_renewal=False)
        assert subscription.status == S.CURIOUS

    @pytest.mark.parametrize("auto_renewal", [True, False])
    def test_wire_transfer_waits_for_approval(self, make_plan, make_subscription, auto_renewal):
        subscription = make_subscription(make_plan(), payment_method=PaymentMethod.WIRE_TRANSFER,
                                         auto_renewal=auto_renewal)
        assert subscription.status == S.PENDING_APPROVAL

    def test_never_created_active(self):
        for method in PaymentMethod:
            for auto_renewal in (True, False):
                assert determine_initial_state(method, auto_renewal) != S.ACTIVE

    def test_creation_writes_one_history_entry(self, services, make_plan, make_subscription):
        subscription = make_subscription(make_plan())
        history = services.subscriptions.get_state_history(subscription.id)

        assert len(history) == 1
        assert history[0].previous_state is None
        assert history[0].new_state == S.NEW_JOINER
        assert history[0].reason == "Subscription created"
        assert history[0].changed_by == "system"

    def test_unknown_plan_rejected(self, make_subscription, make_plan):
        plan = make_plan()
        ghost = plan.model_copy(update={"id": 9999})
        with pytest.raises(ValidationError):
            make_subscription(ghost)

    def test_end_before_start_rejected(self, make_plan, make_subscription):
        with pytest.raises(ValidationError):
            make_subscription(make_plan(), start_date=date(2024, 6, 1), end_date=date(2024, 5, 1))

    def test_non_positive_price_rejected(self, make_plan, make_subscription):
        with pytest.raises(ValidationError):
            make_subscription(make_plan(), price_charged_cents=0)


class TestTransitions:
    """execute_transition validation pipeline"""

    def test_transition_table_closure(self, services, make_plan, make_subscription):
        """Every edge outside the table is rejected and leaves no trace"""
        plan = make_plan()
        for current in S:
            for target in S:
                if is_valid_transition(current, target):
                    continue
                subscription = make_subscription(plan, status=current)
                with pytest.raises(InvalidTransitionError) as exc_info:
                    services.subscriptions.execute_transition(subscription.id, target)

                assert exc_info.value.message == (
                    f"Invalid transition from {current.value} to {target.value}"
                )
                assert services.subscriptions.get_subscription(subscription.id).status == current
                assert len(services.subscriptions.get_state_history(subscription.id)) == 1

    def test_terminal_states_have_no_exits(self):
        assert VALID_TRANSITIONS[S.CANCELLED] == frozenset()
        assert VALID_TRANSITIONS[S.EXPIRED] == frozenset()
        assert S.CANCELLED.is_terminal and S.EXPIRED.is_terminal

    def test_successful_transition_records_history(self, services, make_plan, make_subscription, clock):
        subscription = make_subscription(make_plan(), status=S.ACTIVE)

        result = services.subscriptions.execute_transition(
            subscription.id, S.FROZEN, "Customer travelling", Actor.user("ops-7")
        )

        assert result.success is True
        assert result.subscription.status == S.FROZEN
        assert result.subscription.updated_at == clock.now()
        assert result.history_entry.previous_state == S.ACTIVE
        assert result.history_entry.new_state == S.FROZEN
        assert result.history_entry.changed_by == "ops-7"
        assert result.history_entry.reason == "Customer travelling"

    def test_unknown_subscription(self, services):
        with pytest.raises(NotFoundError) as exc_info:
            services.subscriptions.execute_transition(424242, S.ACTIVE)
        assert exc_info.value.message == "Subscription not found"

    def test_new_joiner_needs_two_cycles(self, services, make_plan, make_subscription):
        subscription = make_subscription(make_plan())

        with pytest.raises(BusinessRuleViolationError) as exc_info:
            services.subscriptions.execute_transition(subscription.id, S.ACTIVE)

        assert exc_info.value.message == "Business rule not satisfied for New_Joiner->Active"
        assert services.subscriptions.get_subscription(subscription.id).status == S.NEW_JOINER

    def test_pending_approval_activation_needs_non_card_payment(self, services, make_plan,
                                                                make_subscription):
        plan = make_plan()
        wire = make_subscription(plan, payment_method=PaymentMethod.WIRE_TRANSFER)
        services.subscriptions.execute_transition(wire.id, S.ACTIVE, "Transfer received")
        assert services.subscriptions.get_subscription(wire.id).status == S.ACTIVE

        card = make_subscription(plan, status=S.PENDING_APPROVAL)
        with pytest.raises(BusinessRuleViolationError):
            services.subscriptions.execute_transition(card.id, S.ACTIVE)

    def test_history_completeness(self, services, make_plan, make_subscription):
        """1 creation entry plus one per successful transition; newest first"""
        subscription = make_subscription(make_plan(), auto_renewal=False)
        service = services.subscriptions

        service.execute_transition(subscription.id, S.FROZEN)
        with pytest.raises(InvalidTransitionError):
            service.execute_transition(subscription.id, S.EXITING)
        service.execute_transition(subscription.id, S.CANCELLED)

        history = service.get_state_history(subscription.id)
        assert [h.new_state for h in history] == [S.CANCELLED, S.FROZEN, S.CURIOUS]
        assert history[0].new_state == service.get_subscription(subscription.id).status

    def test_history_order_survives_clock_stepping_back(self, services, make_plan, make_subscription,
                                                         clock):
        subscription = make_subscription(make_plan())
        clock.advance(timedelta(seconds=-5))

        services.subscriptions.execute_transition(subscription.id, S.FROZEN)

        history = services.subscriptions.get_state_history(subscription.id)
        assert [h.new_state for h in history] == [S.FROZEN, S.NEW_JOINER]
        assert history[0].new_state == services.subscriptions.get_subscription(subscription.id).status

    def test_history_for_unknown_subscription(self, services):
        with pytest.raises(NotFoundError):
            services.subscriptions.get_state_history(31337)


class TestPayments:
    """Payment success and failure handling"""

    def test_two_payments_activate_once(self, services, make_plan, make_subscription):
        subscription = make_subscription(make_plan())

        assert services.subscriptions.process_payment_success(subscription.id) is True
        assert services.subscriptions.get_subscription(subscription.id).status == S.NEW_JOINER
        assert services.subscriptions.process_payment_success(subscription.id) is True

        stored = services.subscriptions.get_subscription(subscription.id)
        assert stored.completed_cycles == 2
        assert stored.status == S.ACTIVE

        activations = [h for h in services.subscriptions.get_state_history(subscription.id)
                       if h.new_state == S.ACTIVE]
        assert len(activations) == 1
        assert activations[0].reason == "Completed required payment cycles"

    def test_payment_increments_regardless_of_status(self, services, make_plan, make_subscription):
        subscription = make_subscription(make_plan(), status=S.FROZEN)
        assert services.subscriptions.process_payment_success(subscription.id) is True
        stored = services.subscriptions.get_subscription(subscription.id)
        assert stored.completed_cycles == 1
        assert stored.status == S.FROZEN

    def test_payment_on_active_subscription_is_recorded(self, services, make_plan, make_subscription):
        subscription = make_subscription(make_plan(), status=S.ACTIVE)

        assert services.subscriptions.process_payment_success(subscription.id) is True

        stored = services.subscriptions.get_subscription(subscription.id)
        assert stored.completed_cycles == 1
        assert stored.status == S.ACTIVE
        assert len(services.subscriptions.get_state_history(subscription.id)) == 1

    def test_payment_success_unknown_subscription(self, services):
        with pytest.raises(NotFoundError):
            services.subscriptions.process_payment_success(999)

    def test_payment_failure_cancels(self, services, make_plan, make_subscription):
        subscription = make_subscription(make_plan(), status=S.ACTIVE)

        assert services.subscriptions.process_payment_failure(subscription.id) is True

        history = services.subscriptions.get_state_history(subscription.id)
        assert history[0].new_state == S.CANCELLED
        assert history[0].reason == "Payment failure"

    def test_payment_failure_on_terminal_subscription(self, services, make_plan, make_subscription):
        subscription = make_subscription(make_plan(), status=S.CANCELLED)
        with pytest.raises(InvalidTransitionError):
            services.subscriptions.process_payment_failure(subscription.id)

    def test_payment_events_are_logged(self, services, make_plan, make_subscription):
        subscription = make_subscription(make_plan())
        services.subscriptions.process_payment_success(subscription.id)

        rows = services.operation_log.list_by_action("payment_success")
        assert len(rows) == 1
        assert rows[0]["detail"]["subscription_id"] == subscription.id
        assert rows[0]["user_id"] == "user-1"


class TestSweeps:
    """Caller-driven lifecycle sweeps"""

    def test_activate_new_joiners(self, services, make_plan, make_subscription, test_db):
        plan = make_plan()
        ready = make_subscription(plan, user_id="ready")
        waiting = make_subscription(plan, user_id="waiting")
        test_db.execute("UPDATE subscriptions SET completed_cycles=2 WHERE id=?", [ready.id])

        assert services.subscriptions.check_and_activate_new_joiners() == 1
        assert services.subscriptions.get_subscription(ready.id).status == S.ACTIVE
        assert services.subscriptions.get_subscription(waiting.id).status == S.NEW_JOINER

        history = services.subscriptions.get_state_history(ready.id)
        assert history[0].reason == "Completed 2 successful payment cycles"

    def test_cancel_exiting_past_end_date(self, services, make_plan, make_subscription, clock):
        plan = make_plan()
        today = clock.today()
        ended = make_subscription(plan, status=S.EXITING, end_date=today - timedelta(days=1))
        ends_today = make_subscription(plan, status=S.EXITING, end_date=today)

        assert services.subscriptions.check_and_cancel_exiting_subscriptions() == 1
        assert services.subscriptions.get_subscription(ended.id).status == S.CANCELLED
        assert services.subscriptions.get_subscription(ends_today.id).status == S.EXITING

    def test_exiting_cancelled_once_end_date_passes(self, services, make_plan, make_subscription,
                                                    clock):
        subscription = make_subscription(make_plan(), status=S.EXITING, end_date=clock.today())
        assert services.subscriptions.check_and_cancel_exiting_subscriptions() == 0

        clock.advance(timedelta(days=1))

        assert services.subscriptions.check_and_cancel_exiting_subscriptions() == 1
        history = services.subscriptions.get_state_history(subscription.id)
        assert history[0].reason == "Subscription period ended"
        assert history[0].created_at == clock.now()

    def test_sweep_skips_failed_items(self, services, make_plan, make_subscription, test_db,
                                      monkeypatch):
        plan = make_plan()
        first = make_subscription(plan)
        second = make_subscription(plan)
        test_db.execute("UPDATE subscriptions SET completed_cycles=2")

        original = services.subscriptions.execute_transition

        def flaky(subscription_id, *args, **kwargs):
            if subscription_id == first.id:
                raise NotFoundError("Subscription", subscription_id)
            return original(subscription_id, *args, **kwargs)

        monkeypatch.setattr(services.subscriptions, "execute_transition", flaky)

        assert services.subscriptions.check_and_activate_new_joiners() == 1
        assert services.subscriptions.get_subscription(second.id).status == S.ACTIVE

        rows = services.operation_log.list_by_action("sweep_activate_new_joiners")
        assert rows[-1]["detail"] == {"candidates": 2, "succeeded": 1, "failed_ids": [first.id]}


class TestBulkTransitions:
    """transition_many collects per-item errors"""

    def test_mixed_results(self, services, make_plan, make_subscription):
        plan = make_plan()
        active = make_subscription(plan, status=S.ACTIVE)
        cancelled = make_subscription(plan, status=S.CANCELLED)

        result = services.subscriptions.transition_many(
            [active.id, cancelled.id, 5555], S.FROZEN, "Ramadan pause", Actor.user("ops-1")
        )

        assert [s.id for s in result.updated] == [active.id]
        assert [(e.subscription_id, e.error_code) for e in result.errors] == [
            (cancelled.id, "INVALID_TRANSITION"),
            (5555, "RESOURCE_NOT_FOUND"),
        ]
