def _member_payload(**overrides):
    payload = {"first_name": "Ada", "last_name": "Lovelace", "email": "ada@example.com", "category": "Software"}
    payload.update(overrides)
    return payload


def test_create_member_defaults(client, auth_headers, admin):
    response = client.post("/members", json=_member_payload(phone="  "), headers=auth_headers(admin))

    assert response.status_code == 201
    data = response.json()
    assert data["membership_type"] == "PENDING"
    assert data["phone"] is None
    assert data["category"] == "Software"


def test_create_member_requires_names_and_email(client, auth_headers, admin):
    response = client.post("/members", json={"first_name": "Ada"}, headers=auth_headers(admin))
    assert response.status_code == 400
    assert response.json()["detail"] == "First name, last name, and email are required"


def test_search_and_status_filter(client, auth_headers, admin, make_member):
    make_member(first_name="Grace", company="Navy", membership_type="ACTIVE")
    make_member(first_name="Linus", company="Kernel Co", membership_type="INACTIVE")

    found = client.get("/members?search=kern", headers=auth_headers(admin)).json()
    assert [m["first_name"] for m in found] == ["Linus"]

    active = client.get("/members?status=ACTIVE", headers=auth_headers(admin)).json()
    assert [m["first_name"] for m in active] == ["Grace"]


def test_update_member(client, auth_headers, admin, make_member):
    member = make_member(category="Legal")

    response = client.patch(
        f"/members/{member.id}", json={"company": "Firm LLP", "category": " "}, headers=auth_headers(admin)
    )
    assert response.status_code == 200
    assert response.json()["company"] == "Firm LLP"
    assert response.json()["category"] is None

    empty = client.patch(f"/members/{member.id}", json={"first_name": "  "}, headers=auth_headers(admin))
    assert empty.status_code == 400


def test_update_member_category_conflict(client, auth_headers, admin, make_member, make_group):
    member = make_member(category="Design")
    holder = make_member(category="Legal")
    make_group(admin, members=[member, holder])

    response = client.patch(f"/members/{member.id}", json={"category": "LEGAL"}, headers=auth_headers(admin))

    assert response.status_code == 409
    assert response.json()["conflictingMember"]["id"] == holder.id


def test_delete_member_and_missing(client, auth_headers, admin, make_member, make_group):
    member = make_member()
    group = make_group(admin, members=[member])

    assert client.delete(f"/members/{member.id}", headers=auth_headers(admin)).status_code == 200
    assert client.get(f"/members/{member.id}", headers=auth_headers(admin)).status_code == 404
    assert client.get(f"/groups/{group.id}/members", headers=auth_headers(admin)).json() == []


def test_member_history(client, auth_headers, admin, make_member, make_group):
    member = make_member()
    group = make_group(admin, name="Breakfast", members=[member])
    client.post(
        "/meetings",
        json={"group_id": group.id, "title": "Kickoff", "date": "2030-02-01T08:00:00"},
        headers=auth_headers(admin),
    )

    history = client.get(f"/members/{member.id}/history", headers=auth_headers(admin)).json()

    assert [g["group_name"] for g in history["groups"]] == ["Breakfast"]
    assert history["attendance"][0]["meeting"]["title"] == "Kickoff"
    assert history["attendance"][0]["status"] == "UNRECORDED"


def test_notes_lifecycle(client, auth_headers, admin, other_admin, super_admin, make_member):
    member = make_member()
    url = f"/members/{member.id}/notes"

    blank = client.post(url, json={"note": "   "}, headers=auth_headers(admin))
    assert blank.status_code == 400

    created = client.post(url, json={"note": " Met at expo "}, headers=auth_headers(admin))
    assert created.status_code == 201
    note = created.json()
    assert note["note"] == "Met at expo"
    assert note["author"]["username"] == "alice"

    listing = client.get(url, headers=auth_headers(other_admin)).json()
    assert [n["id"] for n in listing] == [note["id"]]

    denied = client.delete(f"{url}/{note['id']}", headers=auth_headers(other_admin))
    assert denied.status_code == 403

    removed = client.delete(f"{url}/{note['id']}", headers=auth_headers(super_admin))
    assert removed.status_code == 200
    assert client.delete(f"{url}/{note['id']}", headers=auth_headers(admin)).status_code == 404
