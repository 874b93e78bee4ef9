from decimal import Decimal


def test_empty_dashboard(ctx, engine, make_user):
    user_id = make_user()
    summary = engine.dashboard_summary(user_id)

    assert summary["wallet_balance"] == "0.00"
    assert summary["total_earnings"] == "0.00"
    assert summary["recent"] == []


def test_dashboard_settles_before_reporting(ctx, engine, make_user, clock):
    referrer = make_user("alice")
    user_id = make_user("bob", referrer="alice")

    deposit = engine.request_deposit(user_id, "1000", "card", "TX-1")
    engine.admin_decide(deposit.id, "approve", caller_is_staff=True)
    engine.request_deposit(user_id, "5", "card", "TX-2")  # stays pending
    withdrawal = engine.request_withdraw(user_id, "100")
    engine.admin_decide(withdrawal.id, "approve", caller_is_staff=True)
    engine.request_investment(user_id, "500", "Test Plan")

    clock.advance(hours=30)
    summary = engine.dashboard_summary(user_id)

    assert summary["wallet_balance"] == "950.00"
    assert summary["profit_balance"] == "50.00"
    assert summary["total_deposits"] == "1000.00"
    assert summary["total_withdrawals"] == "100.00"
    assert summary["total_investments"] == "500.00"
    assert summary["total_payouts"] == "550.00"
    assert summary["total_earnings"] == "50.00"
    assert summary["recent"][0]["type"] == "payout"

    referrer_summary = engine.dashboard_summary(referrer)
    assert referrer_summary["wallet_balance"] == "50.00"
    assert referrer_summary["total_earnings"] == "50.00"


def test_recent_is_capped_at_ten(ctx, engine, make_user, clock):
    user_id = make_user()
    for i in range(12):
        engine.request_deposit(user_id, Decimal(i + 1), "card", f"TX-{i}")
        clock.advance(seconds=1)

    recent = engine.dashboard_summary(user_id)["recent"]
    assert len(recent) == 10
    assert recent[0]["amount"] == "12.00"
