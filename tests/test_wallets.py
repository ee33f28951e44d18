from decimal import Decimal

from sqlalchemy import select

from famsplit.models.entities import Transaction, Wallet
from famsplit.services.wallets import signed_amount


def _balances(client, family_id, headers):
    items = client.get(f"/v1/families/{family_id}/wallets/balances", headers=headers).json()["items"]
    return {item["family_member_id"]: Decimal(item["balance"]) for item in items}


def _groceries(client, household, headers):
    members = household["members"]
    response = client.post(
        f"/v1/families/{household['family_id']}/expenses",
        json={"title": "Groceries", "amount": 100, "paid_by_member_id": members["alice"], "split_type": "equal"},
        headers=headers,
    )
    assert response.status_code == 201


def _settle(client, family_id, headers, **payload):
    return client.post(f"/v1/families/{family_id}/wallets/settle", json=payload, headers=headers)


def test_new_members_start_at_zero(client, household, as_bob):
    balances = client.get(f"/v1/families/{household['family_id']}/wallets/balances", headers=as_bob).json()["items"]
    assert [item["member_name"] for item in balances] == ["alice", "bob", "carol"]
    assert all(Decimal(item["balance"]) == 0 for item in balances)


def test_settlement_moves_balances_and_records_both_sides(client, household, as_alice, as_bob):
    family_id = household["family_id"]
    alice, bob, carol = (household["members"][name] for name in ("alice", "bob", "carol"))
    _groceries(client, household, as_alice)

    response = _settle(client, family_id, as_bob, payer_member_id=bob, receiver_member_id=alice, amount=33.33)
    assert response.status_code == 200
    body = response.json()
    assert Decimal(body["amount"]) == Decimal("33.33")
    assert Decimal(body["payer_balance"]) == Decimal("0.00")
    assert Decimal(body["receiver_balance"]) == Decimal("33.33")

    assert _balances(client, family_id, as_alice) == {
        alice: Decimal("33.33"), bob: Decimal("0.00"), carol: Decimal("-33.33")
    }

    bob_history = client.get(f"/v1/families/{family_id}/wallets/{bob}/transactions", headers=as_bob).json()["items"]
    assert [item["type"] for item in bob_history] == ["settlement_sent", "expense_owed"]
    assert bob_history[0]["description"] == "Payment to alice"
    assert bob_history[0]["related_member_id"] == alice
    assert bob_history[0]["related_member_name"] == "alice"
    assert bob_history[1]["expense_title"] == "Groceries"

    alice_history = client.get(
        f"/v1/families/{family_id}/wallets/{alice}/transactions", headers=as_alice
    ).json()["items"]
    assert alice_history[0]["type"] == "settlement_received"
    assert alice_history[0]["description"] == "Payment from bob"
    assert alice_history[0]["id"] == body["received_transaction_id"]


def test_self_settlement_is_rejected_without_side_effects(client, household, as_alice, as_bob):
    family_id = household["family_id"]
    bob = household["members"]["bob"]

    response = _settle(client, family_id, as_bob, payer_member_id=bob, receiver_member_id=bob, amount=10)
    assert response.status_code == 400
    assert response.json()["detail"] == "payer and receiver must be different members"
    assert client.get(f"/v1/families/{family_id}/wallets/{bob}/transactions", headers=as_bob).json()["items"] == []
    assert _balances(client, family_id, as_alice)[bob] == 0


def test_settlement_requires_complete_positive_input(client, household, as_bob):
    family_id = household["family_id"]
    alice, bob = household["members"]["alice"], household["members"]["bob"]

    assert _settle(client, family_id, as_bob, payer_member_id=bob, receiver_member_id=alice).status_code == 400
    assert _settle(client, family_id, as_bob, payer_member_id=bob, amount=5).status_code == 400
    negative = _settle(client, family_id, as_bob, payer_member_id=bob, receiver_member_id=alice, amount=-5)
    assert negative.status_code == 400
    assert negative.json()["detail"] == "payer, receiver and a positive amount are required"


def test_settlement_requires_active_members_of_the_family(client, household, as_alice):
    family_id = household["family_id"]
    alice = household["members"]["alice"]
    invite = client.post(
        f"/v1/families/{family_id}/members/invite", json={"email": "dave@example.com"}, headers=as_alice
    ).json()

    pending = _settle(client, family_id, as_alice, payer_member_id=invite["id"], receiver_member_id=alice, amount=5)
    assert pending.status_code == 400
    assert pending.json()["detail"] == "one or both members are not active in this family"

    unknown = _settle(client, family_id, as_alice, payer_member_id=9999, receiver_member_id=alice, amount=5)
    assert unknown.status_code == 400


def test_only_parties_or_admins_record_settlements(client, household, as_alice, as_carol, as_dave):
    family_id = household["family_id"]
    alice, bob, carol = (household["members"][name] for name in ("alice", "bob", "carol"))

    outsider = _settle(client, family_id, as_carol, payer_member_id=bob, receiver_member_id=alice, amount=5)
    assert outsider.status_code == 403

    by_receiver = _settle(client, family_id, as_alice, payer_member_id=bob, receiver_member_id=alice, amount=5)
    assert by_receiver.status_code == 200

    by_admin = _settle(client, family_id, as_alice, payer_member_id=bob, receiver_member_id=carol, amount=2.5)
    assert by_admin.status_code == 200

    assert _balances(client, family_id, as_alice) == {
        alice: Decimal("-5.00"), bob: Decimal("7.50"), carol: Decimal("-2.50")
    }

    not_in_family = _settle(client, family_id, as_dave, payer_member_id=bob, receiver_member_id=alice, amount=5)
    assert not_in_family.status_code == 403


def test_wallet_reads_are_scoped_to_owner_or_admin(client, household, as_alice, as_bob):
    family_id = household["family_id"]
    alice, bob = household["members"]["alice"], household["members"]["bob"]

    own = client.get(f"/v1/families/{family_id}/wallets/{bob}/balance", headers=as_bob)
    assert own.status_code == 200
    assert own.json()["member_email"] == "bob@example.com"
    assert own.json()["role"] == "member"

    assert client.get(f"/v1/families/{family_id}/wallets/{alice}/balance", headers=as_bob).status_code == 403
    assert client.get(f"/v1/families/{family_id}/wallets/{alice}/transactions", headers=as_bob).status_code == 403
    assert client.get(f"/v1/families/{family_id}/wallets/{bob}/balance", headers=as_alice).status_code == 200
    assert client.get(f"/v1/families/{family_id}/wallets/9999/balance", headers=as_alice).status_code == 404


def test_listing_balances_is_read_only(client, household, as_alice):
    family_id = household["family_id"]
    _groceries(client, household, as_alice)

    first = client.get(f"/v1/families/{family_id}/wallets/balances", headers=as_alice).json()
    second = client.get(f"/v1/families/{family_id}/wallets/balances", headers=as_alice).json()
    assert first == second


def test_balances_equal_their_transaction_history(client, household, db_session, as_alice, as_bob, as_carol):
    family_id = household["family_id"]
    alice, bob, carol = (household["members"][name] for name in ("alice", "bob", "carol"))
    _groceries(client, household, as_alice)
    client.post(
        f"/v1/families/{family_id}/expenses",
        json={
            "title": "Train",
            "amount": "47.10",
            "paid_by_member_id": carol,
            "split_type": "percentage",
            "split_details": [{"member_id": bob, "percentage": 40}, {"member_id": carol, "percentage": 60}],
        },
        headers=as_carol,
    )
    _settle(client, family_id, as_bob, payer_member_id=bob, receiver_member_id=alice, amount="12.34")
    _settle(client, family_id, as_carol, payer_member_id=carol, receiver_member_id=alice, amount="3.21")

    balances = _balances(client, family_id, as_alice)
    assert sum(balances.values()) == 0

    for member_id in (alice, bob, carol):
        wallet = db_session.execute(select(Wallet).where(Wallet.family_member_id == member_id)).scalar_one()
        txns = db_session.execute(select(Transaction).where(Transaction.wallet_id == wallet.id)).scalars().all()
        total = sum((signed_amount(txn.type, txn.amount) for txn in txns), Decimal("0"))
        assert total == balances[member_id]
