import asyncio

from crm.realtime import sse
from crm.realtime.sse import CrmEvent, broadcast


def test_broadcast_drops_full_queues(mocker):
    healthy = asyncio.Queue(maxsize=10)
    full = asyncio.Queue(maxsize=1)
    full.put_nowait({"event": "old", "data": {}})
    mocker.patch.object(sse, "_subscribers", {healthy, full})

    asyncio.run(broadcast(CrmEvent.MEETING_DELETED, {"meeting_id": 3}))

    assert healthy.get_nowait() == {"event": "MEETING_DELETED", "data": {"meeting_id": 3}}
    assert sse._subscribers == {healthy}


def test_membership_changes_are_published(client, auth_headers, admin, make_member, make_group, mocker):
    publish = mocker.patch("crm.api.routes.groups.publish")
    member = make_member()
    group = make_group(admin)

    client.post(f"/groups/{group.id}/members", json={"memberId": member.id}, headers=auth_headers(admin))
    client.delete(f"/groups/{group.id}/members/{member.id}", headers=auth_headers(admin))

    assert [c.args[0] for c in publish.call_args_list] == [
        CrmEvent.GROUP_MEMBER_ADDED,
        CrmEvent.GROUP_MEMBER_REMOVED,
    ]
    assert publish.call_args_list[0].args[1] == {"group_id": group.id, "member_id": member.id}


def test_failed_add_publishes_nothing(client, auth_headers, admin, other_admin, make_member, make_group, mocker):
    publish = mocker.patch("crm.api.routes.groups.publish")
    group = make_group(admin)

    client.post(f"/groups/{group.id}/members", json={"memberId": make_member().id}, headers=auth_headers(other_admin))

    publish.assert_not_called()


def test_health(client):
    assert client.get("/health").json() == {"ok": True}
    assert client.get("/").json()["status"] == "ok"
