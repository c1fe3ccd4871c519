"""
Customer pipeline summary tests
"""

from datetime import timedelta

from ..models.subscription import PaymentMethod, SubscriptionStatus

S = SubscriptionStatus


class TestPipelineSummary:

    def test_counts_and_revenue(self, services, make_plan, make_subscription):
        focus = make_plan(code="FOCUS", base_price_cents=100000)
        lite = make_plan(code="LITE", meals_per_day=1, base_price_cents=60000)
        make_subscription(focus, status=S.ACTIVE, price_charged_cents=90000)
        make_subscription(focus, status=S.ACTIVE, price_charged_cents=95000)
        make_subscription(lite, status=S.ACTIVE, price_charged_cents=60000)
        make_subscription(lite, payment_method=PaymentMethod.WIRE_TRANSFER)

        summary = services.pipeline.summarize()

        assert [stage.status for stage in summary.stages] == [
            S.PENDING_APPROVAL, S.NEW_JOINER, S.CURIOUS, S.ACTIVE, S.FROZEN, S.EXITING, S.CANCELLED
        ]
        active = summary.stage(S.ACTIVE)
        assert (active.count, active.revenue_cents) == (3, 245000)
        assert [(p.plan_code, p.count, p.revenue_cents) for p in active.by_plan] == [
            ("FOCUS", 2, 185000), ("LITE", 1, 60000)
        ]
        assert summary.stage(S.PENDING_APPROVAL).count == 1
        assert summary.stage(S.FROZEN).count == 0

    def test_unpriced_subscription_uses_plan_price(self, services, make_plan, make_subscription,
                                                   test_db):
        plan = make_plan(base_price_cents=100000)
        subscription = make_subscription(plan, status=S.FROZEN)
        test_db.execute("UPDATE subscriptions SET price_charged_cents=0 WHERE id=?", [subscription.id])

        assert services.pipeline.summarize().stage(S.FROZEN).revenue_cents == 100000

    def test_cancelled_lookback(self, services, make_plan, make_subscription, clock):
        plan = make_plan()
        today = clock.today()
        recent_start = today - timedelta(days=60)
        make_subscription(plan, status=S.CANCELLED, start_date=recent_start,
                          end_date=today - timedelta(days=30))
        make_subscription(plan, status=S.CANCELLED, start_date=recent_start,
                          end_date=today - timedelta(days=31))

        assert services.pipeline.summarize().stage(S.CANCELLED).count == 1
