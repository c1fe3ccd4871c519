"""
Subscription state machine.
Owns every subscription status change: validation against the transition
table, business rule predicates, history logging and persistence.

Every mutation runs inside DatabaseManager.transaction(), so a status is never
visible without its history row and concurrent transitions on one
subscription cannot interleave.
"""

import logging
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple

from ..core.clock import Clock
from ..core.database import DatabaseManager
from ..core.exceptions import (
    BaseApplicationError,
    BusinessRuleViolationError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from ..models.subscription import (
    Actor,
    BulkTransitionError,
    BulkTransitionResult,
    PaymentMethod,
    StateHistoryEntry,
    Subscription,
    SubscriptionCreate,
    SubscriptionStatus,
    TransitionResult,
)
from ..stores.log_store import OperationLogStore
from ..stores.subscription_store import HistoryStore, SubscriptionStore
from .plan_catalog import PlanCatalog

logger = logging.getLogger(__name__)

S = SubscriptionStatus

VALID_TRANSITIONS: Dict[SubscriptionStatus, FrozenSet[SubscriptionStatus]] = {
    S.PENDING_PAYMENT: frozenset({S.NEW_JOINER, S.CURIOUS, S.CANCELLED}),
    S.PENDING_APPROVAL: frozenset({S.ACTIVE, S.CANCELLED}),
    S.NEW_JOINER: frozenset({S.ACTIVE, S.FROZEN, S.EXITING, S.CANCELLED}),
    S.CURIOUS: frozenset({S.EXITING, S.FROZEN, S.CANCELLED}),
    S.ACTIVE: frozenset({S.FROZEN, S.EXITING, S.CANCELLED}),
    S.FROZEN: frozenset({S.ACTIVE, S.CANCELLED}),
    S.EXITING: frozenset({S.CANCELLED, S.FROZEN}),
    S.CANCELLED: frozenset(),
    S.EXPIRED: frozenset(),
}

# Paid cycles a New_Joiner needs before becoming Active
REQUIRED_PAYMENT_CYCLES = 2

BusinessRule = Callable[[Subscription], bool]

BUSINESS_RULES: Dict[Tuple[SubscriptionStatus, SubscriptionStatus], BusinessRule] = {
    (S.NEW_JOINER, S.ACTIVE): lambda sub: sub.completed_cycles >= REQUIRED_PAYMENT_CYCLES,
    (S.PENDING_APPROVAL, S.ACTIVE): lambda sub: sub.payment_method != PaymentMethod.CREDIT_CARD,
}

REASON_CREATED = "Subscription created"
REASON_PAYMENT_CYCLES = "Completed required payment cycles"
REASON_PAYMENT_FAILURE = "Payment failure"
REASON_SWEEP_ACTIVATE = "Completed 2 successful payment cycles"
REASON_SWEEP_EXIT = "Subscription period ended"


def determine_initial_state(payment_method: PaymentMethod, auto_renewal: bool) -> SubscriptionStatus:
    """Card payers start as New_Joiner (auto renewal) or Curious; everyone else waits for approval"""
    if payment_method == PaymentMethod.CREDIT_CARD:
        return S.NEW_JOINER if auto_renewal else S.CURIOUS
    return S.PENDING_APPROVAL


def is_valid_transition(current: SubscriptionStatus, target: SubscriptionStatus) -> bool:
    return target in VALID_TRANSITIONS.get(current, frozenset())


class SubscriptionStateService:
    """Validated subscription lifecycle operations"""

    def __init__(self, db: DatabaseManager, subscription_store: SubscriptionStore,
                 history_store: HistoryStore, log_store: OperationLogStore,
                 plan_catalog: PlanCatalog, clock: Clock):
        self.db = db
        self.subscriptions = subscription_store
        self.history = history_store
        self.operation_log = log_store
        self.plans = plan_catalog
        self.clock = clock

    # queries

    def get_subscription(self, subscription_id: int) -> Subscription:
        subscription = self.subscriptions.get(subscription_id)
        if subscription is None:
            raise NotFoundError("Subscription", subscription_id)
        return subscription

    def list_subscriptions(self, status: Optional[SubscriptionStatus] = None,
                           user_id: Optional[str] = None) -> List[Subscription]:
        statuses = [status] if status is not None else None
        return self.subscriptions.list(statuses=statuses, user_id=user_id)

    def get_state_history(self, subscription_id: int) -> List[StateHistoryEntry]:
        """Transition log, newest first"""
        with self.db.snapshot():
            self.get_subscription(subscription_id)
            return self.history.list_by_subscription(subscription_id)

    def can_transition(self, subscription: Subscription, target: SubscriptionStatus):
        """
        Check an edge without changing anything.

        Raises:
            InvalidTransitionError: the edge is not in the table
            BusinessRuleViolationError: the edge's predicate failed
        """
        current = subscription.status
        if not is_valid_transition(current, target):
            raise InvalidTransitionError(current.value, target.value)

        rule = BUSINESS_RULES.get((current, target))
        if rule is not None and not rule(subscription):
            raise BusinessRuleViolationError(current.value, target.value)

    # mutations

    def create_subscription_with_state(self, data: SubscriptionCreate,
                                       actor: Optional[Actor] = None) -> Subscription:
        """
        Create a subscription in its derived initial state.

        The insert and the initial history entry (previous_state None) are
        written in one transaction.

        Raises:
            ValidationError: unknown or archived plan, end before start,
                or a non-positive charged price
        """
        actor = actor or Actor.system()
        if data.end_date < data.start_date:
            raise ValidationError("end_date must not be before start_date",
                                  details={"start_date": str(data.start_date),
                                           "end_date": str(data.end_date)})
        if data.price_charged_cents <= 0:
            raise ValidationError("price_charged_cents must be positive",
                                  details={"price_charged_cents": data.price_charged_cents})

        initial_state = determine_initial_state(data.payment_method, data.auto_renewal)
        now = self.clock.now()

        with self.db.transaction():
            self.plans.require_active_plan(data.plan_id)
            subscription = self.subscriptions.create(data, initial_state, now)
            self.history.append(StateHistoryEntry(
                subscription_id=subscription.id,
                previous_state=None,
                new_state=initial_state,
                reason=REASON_CREATED,
                changed_by=actor.audit_label,
                created_at=now,
            ))

        logger.info("Created subscription %s for user %s in state %s",
                    subscription.id, subscription.user_id, initial_state.value)
        return subscription

    def execute_transition(self, subscription_id: int, target_state: SubscriptionStatus,
                           reason: Optional[str] = None,
                           actor: Optional[Actor] = None) -> TransitionResult:
        """
        Move a subscription to target_state.

        Raises:
            NotFoundError: unknown subscription
            InvalidTransitionError: edge not in the table
            BusinessRuleViolationError: edge predicate failed
        """
        actor = actor or Actor.system()
        target_state = SubscriptionStatus(target_state)

        with self.db.transaction():
            subscription = self.get_subscription(subscription_id)
            self.can_transition(subscription, target_state)

            now = self.clock.now()
            entry = self.history.append(StateHistoryEntry(
                subscription_id=subscription_id,
                previous_state=subscription.status,
                new_state=target_state,
                reason=reason,
                changed_by=actor.audit_label,
                created_at=now,
            ))
            self.subscriptions.update_status(subscription_id, target_state, now)
            updated = self.get_subscription(subscription_id)

        logger.info("Subscription %s: %s -> %s by %s",
                    subscription_id, subscription.status.value, target_state.value, actor.audit_label)
        return TransitionResult(subscription=updated, history_entry=entry)

    def process_payment_success(self, subscription_id: int) -> bool:
        """
        Record one successful payment.

        Returns:
            bool: True once the payment is recorded; a New_Joiner reaching the
            required cycle count is activated in the same transaction
        """
        with self.db.transaction():
            subscription = self.get_subscription(subscription_id)
            completed = self.subscriptions.increment_completed_cycles(subscription_id, self.clock.now())

            activated = (subscription.status == S.NEW_JOINER
                         and completed >= REQUIRED_PAYMENT_CYCLES)
            if activated:
                self.execute_transition(subscription_id, S.ACTIVE,
                                        REASON_PAYMENT_CYCLES, Actor.system())

            self.operation_log.append(
                "payment_success",
                {"subscription_id": subscription_id, "completed_cycles": completed,
                 "activated": activated},
                created_at=self.clock.now(),
                user_id=subscription.user_id,
                actor_id=Actor.system().audit_label,
            )

        logger.info("Payment success for subscription %s (completed_cycles=%s)",
                    subscription_id, completed)
        return True

    def process_payment_failure(self, subscription_id: int) -> bool:
        """Cancel after a failed payment; errors propagate"""
        with self.db.transaction():
            result = self.execute_transition(subscription_id, S.CANCELLED,
                                             REASON_PAYMENT_FAILURE, Actor.system())
            self.operation_log.append(
                "payment_failure",
                {"subscription_id": subscription_id},
                created_at=self.clock.now(),
                user_id=result.subscription.user_id,
                actor_id=Actor.system().audit_label,
            )
        logger.warning("Payment failure cancelled subscription %s", subscription_id)
        return True

    def transition_many(self, subscription_ids: Iterable[int], target_state: SubscriptionStatus,
                        reason: Optional[str] = None,
                        actor: Optional[Actor] = None) -> BulkTransitionResult:
        """Apply one transition to many subscriptions, collecting per-item errors"""
        result = BulkTransitionResult()
        for subscription_id in subscription_ids:
            try:
                outcome = self.execute_transition(subscription_id, target_state, reason, actor)
            except BaseApplicationError as e:
                logger.warning("Bulk transition of subscription %s failed: %s", subscription_id, e.message)
                result.errors.append(BulkTransitionError(
                    subscription_id=subscription_id, error_code=e.error_code, message=e.message
                ))
            else:
                result.updated.append(outcome.subscription)
        return result

    # sweeps

    def check_and_activate_new_joiners(self) -> int:
        """Activate every New_Joiner that has completed the required payment cycles"""
        ready = self.subscriptions.list_new_joiners_ready(REQUIRED_PAYMENT_CYCLES)
        return self._sweep("sweep_activate_new_joiners", ready, S.ACTIVE, REASON_SWEEP_ACTIVATE)

    def check_and_cancel_exiting_subscriptions(self) -> int:
        """Cancel every Exiting subscription whose end date has passed"""
        ended = self.subscriptions.list_exiting_ended(self.clock.today())
        return self._sweep("sweep_cancel_exiting", ended, S.CANCELLED, REASON_SWEEP_EXIT)

    def _sweep(self, action: str, candidates: List[Subscription],
               target_state: SubscriptionStatus, reason: str) -> int:
        succeeded = 0
        failed = []
        for subscription in candidates:
            try:
                self.execute_transition(subscription.id, target_state, reason, Actor.system())
            except BaseApplicationError as e:
                logger.warning("%s: subscription %s skipped: %s", action, subscription.id, e.message)
                failed.append(subscription.id)
            else:
                succeeded += 1

        self.operation_log.append(
            action,
            {"candidates": len(candidates), "succeeded": succeeded, "failed_ids": failed},
            created_at=self.clock.now(),
            actor_id=Actor.system().audit_label,
        )
        logger.info("%s: %d of %d subscriptions moved to %s",
                    action, succeeded, len(candidates), target_state.value)
        return succeeded
