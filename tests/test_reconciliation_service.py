import threading

import pytest

from conftest import seed_pending_payment
from learnx.errors import ConfigurationError, GatewayError, ValidationError
from learnx.services import payment_state, reconciliation_service


def test_paid_order_marks_success_and_grants_item(ctx, db, gateway):
    seed_pending_payment(db, "order_1")
    gateway.add_order("order_1", "PAID")

    result = reconciliation_service.reconcile_order(ctx, "order_1", "webhook")

    assert result.status == payment_state.SUCCESS
    assert result.outcome == payment_state.OUTCOME_GRANTED
    assert result.granted is True
    payment = db.data("payments/order_1")
    assert payment["status"] == "SUCCESS"
    assert payment["gatewayStatus"] == "PAID"
    assert payment["source"] == "webhook"
    assert payment["createdAt"] == 1_700_000_000
    assert db.data("users/u1")["purchasedItems"] == ["pdf1"]


@pytest.mark.parametrize("gateway_status", ["EXPIRED", "TERMINATED", "TERMINATION_REQUESTED", "FAILED", "CANCELLED"])
def test_failed_gateway_statuses_mark_failed_without_entitlement(ctx, db, gateway, gateway_status):
    seed_pending_payment(db, "order_2")
    gateway.add_order("order_2", gateway_status)

    result = reconciliation_service.reconcile_order(ctx, "order_2", "redirect")

    assert result.status == payment_state.FAILED
    assert result.outcome == payment_state.OUTCOME_FAILED
    payment = db.data("payments/order_2")
    assert payment["status"] == "FAILED"
    assert payment["error"]
    assert db.data("users/u1") is None


def test_active_order_stays_pending(ctx, db, gateway):
    seed_pending_payment(db, "order_3")
    gateway.add_order("order_3", "ACTIVE")

    result = reconciliation_service.reconcile_order(ctx, "order_3", "poll")

    assert result.status == payment_state.PENDING
    assert result.outcome == payment_state.OUTCOME_PENDING
    assert db.data("payments/order_3")["status"] == "PENDING"
    assert db.commits == 1


def test_second_reconcile_is_a_no_op(ctx, db, gateway, clock):
    seed_pending_payment(db, "order_4")
    gateway.add_order("order_4", "PAID")
    reconciliation_service.reconcile_order(ctx, "order_4", "webhook")
    first = db.data("payments/order_4")
    clock.advance(60)

    result = reconciliation_service.reconcile_order(ctx, "order_4", "redirect")

    assert result.status == payment_state.SUCCESS
    assert result.outcome == payment_state.OUTCOME_ALREADY_PROCESSED
    assert db.data("payments/order_4") == first
    assert db.data("users/u1")["purchasedItems"] == ["pdf1"]


def test_grant_keeps_existing_purchases(ctx, db, gateway):
    db.seed("users/u1", {"email": "u1@example.com", "purchasedItems": ["combo9"]})
    seed_pending_payment(db, "order_5")
    gateway.add_order("order_5", "PAID")

    reconciliation_service.reconcile_order(ctx, "order_5", "webhook")

    user = db.data("users/u1")
    assert user["purchasedItems"] == ["combo9", "pdf1"]
    assert user["email"] == "u1@example.com"


def test_failed_payment_never_becomes_success(ctx, db, gateway):
    seed_pending_payment(db, "order_6")
    gateway.add_order("order_6", "EXPIRED")
    reconciliation_service.reconcile_order(ctx, "order_6", "webhook")
    gateway.set_status("order_6", "PAID")

    result = reconciliation_service.reconcile_order(ctx, "order_6", "sweep")

    assert result.status == payment_state.FAILED
    assert result.outcome == payment_state.OUTCOME_ALREADY_PROCESSED
    assert db.data("payments/order_6")["status"] == "FAILED"
    assert db.data("users/u1") is None


def test_success_never_becomes_failed_or_pending(ctx, db, gateway):
    seed_pending_payment(db, "order_7")
    gateway.add_order("order_7", "PAID")
    reconciliation_service.reconcile_order(ctx, "order_7", "webhook")

    for later_status in ("TERMINATED", "ACTIVE"):
        gateway.set_status("order_7", later_status)
        result = reconciliation_service.reconcile_order(ctx, "order_7", "poll")
        assert result.status == payment_state.SUCCESS
        assert result.outcome == payment_state.OUTCOME_ALREADY_PROCESSED

    assert db.data("payments/order_7")["status"] == "SUCCESS"
    assert db.data("users/u1")["purchasedItems"] == ["pdf1"]


def test_missing_local_record_is_rebuilt_from_order_tags(ctx, db, gateway):
    gateway.add_order("order_8", "PAID", user_id="u5", item_id="combo2", item_type="combo", amount=249)

    result = reconciliation_service.reconcile_order(ctx, "order_8", "sync")

    assert result.granted is True
    payment = db.data("payments/order_8")
    assert payment["status"] == "SUCCESS"
    assert payment["userId"] == "u5"
    assert payment["itemId"] == "combo2"
    assert payment["itemType"] == "combo"
    assert payment["amount"] == 249
    assert payment["reconstructed"] is True
    assert db.data("users/u5")["purchasedItems"] == ["combo2"]


def test_paid_order_without_tags_or_record_is_rejected(ctx, db, gateway):
    gateway.add_order("order_9", "PAID", tags=False)

    with pytest.raises(ValidationError):
        reconciliation_service.reconcile_order(ctx, "order_9", "sync")

    assert db.data("payments/order_9") is None


def test_failed_order_without_record_is_still_recorded(ctx, db, gateway):
    gateway.add_order("order_10", "CANCELLED", tags=False)

    result = reconciliation_service.reconcile_order(ctx, "order_10", "webhook")

    assert result.outcome == payment_state.OUTCOME_FAILED
    assert db.data("payments/order_10")["status"] == "FAILED"


def test_gateway_failure_leaves_payment_pending(ctx, db, gateway):
    seed_pending_payment(db, "order_11")
    gateway.error = GatewayError("Payment gateway is unreachable.", status_code=502, transient=True)

    with pytest.raises(GatewayError):
        reconciliation_service.reconcile_order(ctx, "order_11", "webhook")

    assert db.data("payments/order_11")["status"] == "PENDING"
    assert db.commits == 0


def test_reconcile_requires_order_id(ctx):
    with pytest.raises(ValidationError):
        reconciliation_service.reconcile_order(ctx, "  ", "poll")


def test_reconcile_without_gateway_is_configuration_error(ctx):
    ctx.gateway = None

    with pytest.raises(ConfigurationError):
        reconciliation_service.reconcile_order(ctx, "order_1", "poll")


def test_gateway_returning_another_order_is_rejected(ctx, db, gateway):
    seed_pending_payment(db, "order_12")
    gateway.orders["order_12"] = {"order_id": "order_13", "order_status": "PAID"}

    with pytest.raises(ValidationError):
        reconciliation_service.reconcile_order(ctx, "order_12", "poll")

    assert db.data("payments/order_12")["status"] == "PENDING"


def test_concurrent_reconciles_grant_exactly_once(ctx, db, gateway):
    seed_pending_payment(db, "order_race")
    gateway.add_order("order_race", "PAID")
    sources = ["webhook", "redirect", "poll", "sync", "sweep", "webhook", "redirect", "poll"]
    barrier = threading.Barrier(len(sources))
    results = []
    results_lock = threading.Lock()

    def worker(source):
        barrier.wait()
        result = reconciliation_service.reconcile_order(ctx, "order_race", source)
        with results_lock:
            results.append(result)

    threads = [threading.Thread(target=worker, args=(source,)) for source in sources]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(5)

    outcomes = [result.outcome for result in results]
    assert len(results) == len(sources)
    assert outcomes.count(payment_state.OUTCOME_GRANTED) == 1
    assert outcomes.count(payment_state.OUTCOME_ALREADY_PROCESSED) == len(sources) - 1
    assert {result.status for result in results} == {payment_state.SUCCESS}
    assert db.data("users/u1")["purchasedItems"] == ["pdf1"]


def test_status_mapping():
    assert payment_state.status_for_gateway("PAID") == "SUCCESS"
    assert payment_state.status_for_gateway("paid") == "SUCCESS"
    assert payment_state.status_for_gateway("EXPIRED") == "FAILED"
    assert payment_state.status_for_gateway("ACTIVE") == "PENDING"
    assert payment_state.status_for_gateway("") == "PENDING"
    assert payment_state.can_transition("PENDING", "SUCCESS") is True
    assert payment_state.can_transition("SUCCESS", "FAILED") is False
    assert payment_state.can_transition("FAILED", "SUCCESS") is False
    assert payment_state.can_transition("PENDING", "PENDING") is False
