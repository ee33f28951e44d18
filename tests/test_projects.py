from decimal import Decimal


def test_project_crud_and_spending(client, household, as_alice, as_bob):
    family_id = household["family_id"]
    alice = household["members"]["alice"]

    created = client.post(
        f"/v1/families/{family_id}/projects",
        json={"name": "Summer trip", "budget": 1500, "description": "Lake house"},
        headers=as_alice,
    )
    assert created.status_code == 201
    project = created.json()
    assert Decimal(project["budget"]) == Decimal("1500")
    assert Decimal(project["total_spent"]) == 0

    for title, amount in (("Cabin", "900.00"), ("Fuel", "75.50")):
        response = client.post(
            f"/v1/families/{family_id}/expenses",
            json={
                "title": title,
                "amount": amount,
                "paid_by_member_id": alice,
                "split_type": "equal",
                "project_id": project["id"],
            },
            headers=as_alice,
        )
        assert response.status_code == 201

    fetched = client.get(f"/v1/families/{family_id}/projects/{project['id']}", headers=as_bob)
    assert fetched.status_code == 200
    assert Decimal(fetched.json()["total_spent"]) == Decimal("975.50")

    updated = client.patch(
        f"/v1/families/{family_id}/projects/{project['id']}",
        json={"budget": "2000.00"},
        headers=as_alice,
    )
    assert updated.status_code == 200
    assert Decimal(updated.json()["budget"]) == Decimal("2000")
    assert updated.json()["name"] == "Summer trip"

    listed = client.get(f"/v1/families/{family_id}/projects", headers=as_bob).json()["items"]
    assert [item["id"] for item in listed] == [project["id"]]

    by_project = client.get(
        f"/v1/families/{family_id}/expenses", params={"project_id": project["id"]}, headers=as_alice
    ).json()["items"]
    assert len(by_project) == 2

    deleted = client.delete(f"/v1/families/{family_id}/projects/{project['id']}", headers=as_alice)
    assert deleted.status_code == 204
    assert client.get(f"/v1/families/{family_id}/projects/{project['id']}", headers=as_alice).status_code == 404

    # Expenses outlive the project.
    remaining = client.get(f"/v1/families/{family_id}/expenses", headers=as_alice).json()["items"]
    assert len(remaining) == 2
    assert all(item["project_id"] is None for item in remaining)


def test_projects_are_admin_managed(client, household, as_alice, as_bob):
    family_id = household["family_id"]

    assert client.post(f"/v1/families/{family_id}/projects", json={"name": "Garden"}, headers=as_bob).status_code == 403

    project = client.post(f"/v1/families/{family_id}/projects", json={"name": "Garden"}, headers=as_alice).json()
    assert client.patch(
        f"/v1/families/{family_id}/projects/{project['id']}", json={"name": "Yard"}, headers=as_bob
    ).status_code == 403
    assert client.delete(f"/v1/families/{family_id}/projects/{project['id']}", headers=as_bob).status_code == 403


def test_project_validation(client, household, as_alice, as_bob):
    family_id = household["family_id"]

    negative = client.post(f"/v1/families/{family_id}/projects", json={"name": "Boat", "budget": -1}, headers=as_alice)
    assert negative.status_code == 400

    project = client.post(f"/v1/families/{family_id}/projects", json={"name": "Boat"}, headers=as_alice).json()
    empty = client.patch(f"/v1/families/{family_id}/projects/{project['id']}", json={}, headers=as_alice)
    assert empty.status_code == 400

    other = client.post("/v1/families", json={"name": "Neighbours"}, headers=as_bob).json()
    foreign = client.get(f"/v1/families/{other['family']['id']}/projects/{project['id']}", headers=as_bob)
    assert foreign.status_code == 404


def test_expense_cannot_reference_another_familys_project(client, household, as_bob):
    family_id = household["family_id"]
    bob = household["members"]["bob"]
    other = client.post("/v1/families", json={"name": "Neighbours"}, headers=as_bob).json()
    foreign_project = client.post(
        f"/v1/families/{other['family']['id']}/projects", json={"name": "Fence"}, headers=as_bob
    ).json()

    response = client.post(
        f"/v1/families/{family_id}/expenses",
        json={
            "title": "Paint",
            "amount": 20,
            "paid_by_member_id": bob,
            "split_type": "equal",
            "project_id": foreign_project["id"],
        },
        headers=as_bob,
    )
    assert response.status_code == 404
