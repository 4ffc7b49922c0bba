from crm.models.attendance import Attendance


def _create_meeting(client, headers, group_id, **extra):
    payload = {"group_id": group_id, "title": "Weekly", "date": "2030-01-15T08:00:00Z", **extra}
    return client.post("/meetings", json=payload, headers=headers)


def test_create_meeting_seeds_unrecorded_attendance(client, auth_headers, admin, make_member, make_group):
    m1, m2 = make_member(category="Legal"), make_member(category="Travel")
    group = make_group(admin, members=[m1, m2])

    response = _create_meeting(client, auth_headers(admin), group.id)

    assert response.status_code == 201
    data = response.json()
    assert data["group"]["name"] == "Tuesday Breakfast"
    assert data["date"].startswith("2030-01-15T08:00:00")
    assert sorted(a["member_id"] for a in data["attendance"]) == sorted([m1.id, m2.id])
    assert {a["status"] for a in data["attendance"]} == {"UNRECORDED"}
    assert all(a["checked_in_at"] is None for a in data["attendance"])


def test_create_meeting_validation(client, auth_headers, admin, other_admin, make_group):
    group = make_group(admin)

    missing = client.post("/meetings", json={"group_id": group.id}, headers=auth_headers(admin))
    assert missing.status_code == 400
    assert missing.json()["detail"] == "Group, title, and date are required"

    assert _create_meeting(client, auth_headers(admin), 999).status_code == 404
    assert _create_meeting(client, auth_headers(other_admin), group.id).status_code == 403


def test_list_meetings_filters(client, auth_headers, admin, make_group):
    first = make_group(admin, name="First")
    second = make_group(admin, name="Second")
    _create_meeting(client, auth_headers(admin), first.id)
    _create_meeting(client, auth_headers(admin), second.id, date="2001-01-01T08:00:00")

    everything = client.get("/meetings", headers=auth_headers(admin)).json()
    assert len(everything) == 2

    by_group = client.get(f"/meetings?group_id={second.id}", headers=auth_headers(admin)).json()
    assert [m["group_id"] for m in by_group] == [second.id]

    upcoming = client.get("/meetings?upcoming=true", headers=auth_headers(admin)).json()
    assert [m["group_id"] for m in upcoming] == [first.id]


def test_update_and_delete_meeting(client, auth_headers, admin, other_admin, make_group):
    group = make_group(admin)
    meeting_id = _create_meeting(client, auth_headers(admin), group.id).json()["id"]

    denied = client.patch(f"/meetings/{meeting_id}", json={"title": "x"}, headers=auth_headers(other_admin))
    assert denied.status_code == 403

    blank = client.patch(f"/meetings/{meeting_id}", json={"title": "  "}, headers=auth_headers(admin))
    assert blank.status_code == 400

    ok = client.patch(f"/meetings/{meeting_id}", json={"location": "Hotel"}, headers=auth_headers(admin))
    assert ok.json()["location"] == "Hotel"

    deleted = client.delete(f"/meetings/{meeting_id}", headers=auth_headers(admin))
    assert deleted.json() == {"success": True}
    assert client.get(f"/meetings/{meeting_id}", headers=auth_headers(admin)).status_code == 404


def test_single_attendance_update(client, auth_headers, admin, make_member, make_group):
    member = make_member()
    group = make_group(admin, members=[member])
    meeting_id = _create_meeting(client, auth_headers(admin), group.id).json()["id"]
    url = f"/meetings/{meeting_id}/attendance"

    attended = client.patch(url, json={"member_id": member.id, "status": "ATTENDED"}, headers=auth_headers(admin))
    assert attended.status_code == 200
    assert attended.json()["status"] == "ATTENDED"
    assert attended.json()["checked_in_at"] is not None

    excused = client.patch(url, json={"member_id": member.id, "status": "EXCUSED"}, headers=auth_headers(admin))
    assert excused.json()["checked_in_at"] is None


def test_attendance_update_validation(client, auth_headers, admin, other_admin, make_member, make_group):
    member = make_member()
    group = make_group(admin, members=[member])
    meeting_id = _create_meeting(client, auth_headers(admin), group.id).json()["id"]
    url = f"/meetings/{meeting_id}/attendance"

    missing = client.patch(url, json={"member_id": member.id}, headers=auth_headers(admin))
    assert missing.status_code == 400

    invalid = client.patch(url, json={"member_id": member.id, "status": "MAYBE"}, headers=auth_headers(admin))
    assert invalid.status_code == 400
    assert invalid.json()["message"] == "Invalid status"

    unrecorded = client.patch(
        url, json={"member_id": member.id, "status": "UNRECORDED"}, headers=auth_headers(admin)
    )
    assert unrecorded.status_code == 400

    stranger = client.patch(url, json={"member_id": 999, "status": "ATTENDED"}, headers=auth_headers(admin))
    assert stranger.status_code == 404

    denied = client.patch(url, json={"member_id": member.id, "status": "ATTENDED"}, headers=auth_headers(other_admin))
    assert denied.status_code == 403


def test_bulk_attendance_is_all_or_nothing(client, db, auth_headers, admin, make_member, make_group):
    m1, m2 = make_member(), make_member()
    group = make_group(admin, members=[m1, m2])
    meeting_id = _create_meeting(client, auth_headers(admin), group.id).json()["id"]
    url = f"/meetings/{meeting_id}/attendance"

    bad = client.post(
        url,
        json={"updates": [
            {"member_id": m1.id, "status": "ATTENDED"},
            {"member_id": m2.id, "status": "BOGUS"},
        ]},
        headers=auth_headers(admin),
    )
    assert bad.status_code == 400
    statuses = {a.status.value for a in db.query(Attendance).filter_by(meeting_id=meeting_id)}
    assert statuses == {"UNRECORDED"}

    good = client.post(
        url,
        json={"updates": [
            {"member_id": m1.id, "status": "ATTENDED"},
            {"member_id": m2.id, "status": "NO_SHOW"},
        ]},
        headers=auth_headers(admin),
    )
    assert good.status_code == 200
    by_member = {a["member_id"]: a["status"] for a in good.json()["attendance"]}
    assert by_member == {m1.id: "ATTENDED", m2.id: "NO_SHOW"}


def test_bulk_attendance_requires_updates(client, auth_headers, admin, make_group):
    group = make_group(admin)
    meeting_id = _create_meeting(client, auth_headers(admin), group.id).json()["id"]

    response = client.post(f"/meetings/{meeting_id}/attendance", json={}, headers=auth_headers(admin))
    assert response.status_code == 400
    assert response.json()["detail"] == "Updates array is required"


def test_removed_member_keeps_attendance_history(client, auth_headers, admin, make_member, make_group):
    member = make_member()
    group = make_group(admin, members=[member])
    meeting_id = _create_meeting(client, auth_headers(admin), group.id).json()["id"]

    client.delete(f"/groups/{group.id}/members/{member.id}", headers=auth_headers(admin))

    meeting = client.get(f"/meetings/{meeting_id}", headers=auth_headers(admin)).json()
    assert [a["member_id"] for a in meeting["attendance"]] == [member.id]
