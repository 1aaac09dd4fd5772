import asyncio
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from conftest import ADMIN_ID, auth_header, run, seed_admin, seed_order

import washop.api.deps as deps
from washop.main import app
from washop.models.order import Order, OrderPaymentStatus
from washop.models.payment import Payment, PaymentState
from washop.models.payment_proof import PaymentProof, ProofStatus
from washop.models.shop import Shop
from washop.models.subscription import Subscription
from washop.providers.base import ProviderTransaction
from washop.services import payment_proof_service, reconciliation_service, subscription_service, wallet_service


def _setup(monkeypatch, session_factory, **kwargs):
    monkeypatch.setattr(deps, "SessionLocal", session_factory)
    seed_admin(session_factory)
    return seed_order(session_factory, with_payment=False, **kwargs)


def _submit(client, ids, payment_type="order", reference_id=None, amount="10000"):
    return client.post(
        "/api/payment-proofs",
        json={
            "payment_type": payment_type,
            "reference_id": reference_id or ids["order_id"],
            "shop_id": ids["shop_id"],
            "amount": amount,
            "proof_image_url": "https://cdn.example.com/receipt.jpg",
            "customer_name": "Ada",
        },
    )


def test_submit_validates_reference(monkeypatch, session_factory):
    ids = _setup(monkeypatch, session_factory)

    with TestClient(app) as client:
        wrong_type = _submit(client, ids, payment_type="refund")
        missing = _submit(client, ids, reference_id="no-such-order")
        ok = _submit(client, ids)

    assert wrong_type.status_code == 400
    assert missing.status_code == 404
    assert ok.status_code == 200
    assert ok.json()["proof"]["status"] == "pending"


def test_approve_order_proof_pays_and_credits(monkeypatch, session_factory):
    ids = _setup(monkeypatch, session_factory)

    with TestClient(app) as client:
        proof_id = _submit(client, ids).json()["proof"]["id"]
        listed = client.get("/api/admin/payment-proofs?status=pending", headers=auth_header(ADMIN_ID))
        review = client.post(
            f"/api/admin/payment-proofs/{proof_id}/review",
            json={"approve": True, "admin_notes": "GTBank transfer seen"},
            headers=auth_header(ADMIN_ID),
        )
        again = client.post(
            f"/api/admin/payment-proofs/{proof_id}/review",
            json={"approve": True},
            headers=auth_header(ADMIN_ID),
        )

    assert [p["id"] for p in listed.json()["proofs"]] == [proof_id]
    assert review.status_code == 200
    assert review.json()["proof"]["status"] == "approved"
    assert review.json()["proof"]["reviewed_by"] == ADMIN_ID
    assert again.status_code == 400

    payment = run(
        session_factory, lambda db: db.scalar(select(Payment).filter_by(order_id=ids["order_id"]))
    )
    assert payment.provider == "bank_transfer"
    assert payment.provider_reference == f"BANK-{proof_id[:8]}"
    assert payment.status == PaymentState.SUCCESS
    assert payment.credited_to_seller is True

    order = run(session_factory, lambda db: db.get(Order, ids["order_id"]))
    assert order.payment_status == OrderPaymentStatus.PAID
    assert order.redemption_code_id is not None
    assert run(session_factory, wallet_service.get_wallet, ids["shop_id"]).balance == Decimal("9500")


def test_reject_proof_changes_nothing(monkeypatch, session_factory):
    ids = _setup(monkeypatch, session_factory)

    with TestClient(app) as client:
        proof_id = _submit(client, ids).json()["proof"]["id"]
        review = client.post(
            f"/api/admin/payment-proofs/{proof_id}/review",
            json={"approve": False, "admin_notes": "blurry"},
            headers=auth_header(ADMIN_ID),
        )

    assert review.json()["proof"]["status"] == "rejected"
    order = run(session_factory, lambda db: db.get(Order, ids["order_id"]))
    assert order.payment_status == OrderPaymentStatus.PENDING
    assert run(session_factory, wallet_service.get_wallet, ids["shop_id"]) is None


def test_approve_subscription_proof_activates_shop(monkeypatch, session_factory):
    ids = _setup(monkeypatch, session_factory)

    async def trial_subscription():
        async with session_factory() as db:
            subscription = Subscription(shop_id=ids["shop_id"], plan="business", status="trial")
            db.add(subscription)
            await db.commit()
            return subscription.id

    subscription_id = asyncio.run(trial_subscription())

    with TestClient(app) as client:
        proof_id = _submit(client, ids, payment_type="subscription", reference_id=subscription_id).json()["proof"]["id"]
        review = client.post(
            f"/api/admin/payment-proofs/{proof_id}/review",
            json={"approve": True},
            headers=auth_header(ADMIN_ID),
        )

    assert review.status_code == 200
    subscription = run(session_factory, lambda db: db.get(Subscription, subscription_id))
    assert subscription.status == "active"
    assert subscription.plan == "business"
    assert run(session_factory, lambda db: db.get(Shop, ids["shop_id"])).is_active is True


def test_admin_routes_require_admin(monkeypatch, session_factory):
    ids = _setup(monkeypatch, session_factory)

    with TestClient(app) as client:
        proof_id = _submit(client, ids).json()["proof"]["id"]
        listed = client.get("/api/admin/payment-proofs", headers=auth_header("seller-9"))
        review = client.post(
            f"/api/admin/payment-proofs/{proof_id}/review",
            json={"approve": True},
            headers=auth_header("seller-9"),
        )
        unknown = client.post(
            "/api/admin/payment-proofs/nope/review", json={"approve": True}, headers=auth_header(ADMIN_ID)
        )

    assert listed.status_code == 403
    assert review.status_code == 403
    assert unknown.status_code == 404


def test_proof_for_order_paid_online_is_refused(monkeypatch, session_factory):
    ids = _setup(monkeypatch, session_factory)

    with TestClient(app) as client:
        proof_id = _submit(client, ids).json()["proof"]["id"]

    # пока админ не смотрел, покупатель оплатил заказ через Paystack
    run(
        session_factory,
        reconciliation_service.reconcile,
        ProviderTransaction(
            reference="WASHOP_online_1700000000000_beef0003",
            status="success",
            amount=Decimal("10000"),
            currency="NGN",
            metadata={"order_id": ids["order_id"], "shop_id": ids["shop_id"]},
        ),
        "paystack",
    )

    with TestClient(app) as client:
        review = client.post(
            f"/api/admin/payment-proofs/{proof_id}/review",
            json={"approve": True},
            headers=auth_header(ADMIN_ID),
        )
        late = _submit(client, ids)
        rejected = client.post(
            f"/api/admin/payment-proofs/{proof_id}/review",
            json={"approve": False, "admin_notes": "paid online"},
            headers=auth_header(ADMIN_ID),
        )

    assert review.status_code == 400
    assert review.json()["error"] == "Order is already paid"
    assert late.status_code == 400
    assert rejected.json()["proof"]["status"] == "rejected"

    payments = run(
        session_factory,
        lambda db: db.scalar(select(func.count()).select_from(Payment).filter_by(order_id=ids["order_id"])),
    )
    assert payments == 1
    assert run(session_factory, wallet_service.get_wallet, ids["shop_id"]).balance == Decimal("9500")


def test_failed_approval_leaves_proof_pending(monkeypatch, session_factory):
    ids = _setup(monkeypatch, session_factory)
    activate = subscription_service.activate_subscription

    async def trial_subscription():
        async with session_factory() as db:
            subscription = Subscription(shop_id=ids["shop_id"], plan="business", status="trial")
            db.add(subscription)
            await db.commit()
            return subscription.id

    subscription_id = asyncio.run(trial_subscription())
    with TestClient(app) as client:
        proof_id = _submit(client, ids, payment_type="subscription", reference_id=subscription_id).json()["proof"]["id"]

    async def broken(*args, **kwargs):
        raise SQLAlchemyError("database is locked")

    monkeypatch.setattr(subscription_service, "activate_subscription", broken)
    with pytest.raises(SQLAlchemyError):
        run(session_factory, payment_proof_service.review_proof, proof_id, True, ADMIN_ID)

    proof = run(session_factory, lambda db: db.get(PaymentProof, proof_id))
    assert proof.status == ProofStatus.PENDING
    assert proof.reviewed_by is None

    # повторное одобрение после сбоя проходит
    monkeypatch.setattr(subscription_service, "activate_subscription", activate)
    proof = run(session_factory, payment_proof_service.review_proof, proof_id, True, ADMIN_ID)
    assert proof.status == ProofStatus.APPROVED
    assert run(session_factory, lambda db: db.get(Shop, ids["shop_id"])).is_active is True
