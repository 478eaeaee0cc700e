"""End-to-end access properties: global override, dedup, counts, symmetry, round trip."""

from __future__ import annotations

import pytest

from sharegate.access.forward import ForwardResolver
from sharegate.access.reverse import ReverseResolver
from sharegate.access.types import AccessType


@pytest.fixture
def forward() -> ForwardResolver:
    return ForwardResolver()


@pytest.fixture
def reverse() -> ReverseResolver:
    return ReverseResolver()


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------


class TestScenarios:
    async def test_a_group_grant_expands_members(self, forward, store, seed):
        await seed(
            users=["u1", "u2"],
            groups=["g1"],
            members=[("u1", "g1"), ("u2", "g1")],
            resources=["r1"],
            grants=[("r1", "group", "g1")],
        )
        access = await forward.resolve(store, "r1")
        assert access.access_type is AccessType.SPECIFIC
        assert access.total_users == 2
        assert [(e.user_id, e.access_type, e.group_id) for e in access.entries] == [
            ("u1", AccessType.GROUP, "g1"),
            ("u2", AccessType.GROUP, "g1"),
        ]

    async def test_b_global_resource_reaches_all_users(self, forward, store, seed):
        await seed(
            users=["u1", "u2", "u3", "u4", "u5"],
            resources=["r3"],
            grants=[("r3", "global", "global")],
        )
        assert await store.has_global_grant("r3") is True
        access = await forward.resolve(store, "r3")
        assert access.total_users == 5
        assert access.access_type is AccessType.GLOBAL

    async def test_c_group_plus_global(self, reverse, store, seed):
        await seed(
            users=["u4"],
            groups=["g2", "g3"],
            members=[("u4", "g2"), ("u4", "g3")],
            resources=["r2", "r3"],
            grants=[("r2", "group", "g2"), ("r3", "global", "global")],
        )
        rl = await reverse.resolve(store, "u4")
        assert rl.total_resources == 2
        by_id = {r.resource.resource_id: r for r in rl.resources}
        assert by_id["r2"].access_type is AccessType.GROUP
        assert by_id["r2"].group_id == "g2"
        assert by_id["r3"].access_type is AccessType.GLOBAL

    async def test_d_direct_then_group_counts_once(self, forward, store, seed):
        await seed(
            users=["u5"],
            groups=["g1"],
            members=[("u5", "g1")],
            resources=["r1"],
            grants=[("r1", "user", "u5"), ("r1", "group", "g1")],
        )
        access = await forward.resolve(store, "r1")
        matches = [e for e in access.entries if e.user_id == "u5"]
        assert len(matches) == 1
        assert matches[0].access_type is AccessType.DIRECT


# ---------------------------------------------------------------------------
# Invariants
# ---------------------------------------------------------------------------


class TestGlobalOverride:
    async def test_global_ignores_other_grants(self, forward, store, seed):
        await seed(
            users=["u1", "u2", "u3"],
            groups=["g1"],
            members=[("u1", "g1")],
            resources=["r1"],
            grants=[("r1", "group", "g1"), ("r1", "user", "u2"), ("r1", "global", "global")],
        )
        access = await forward.resolve(store, "r1")
        assert access.access_type is AccessType.GLOBAL
        assert access.total_users == 3
        assert {e.access_type for e in access.entries} == {AccessType.GLOBAL}


class TestCountCorrectness:
    async def test_total_is_union_not_sum(self, forward, store, seed):
        await seed(
            users=["u1", "u2", "u3", "u4"],
            groups=["g1", "g2"],
            members=[("u1", "g1"), ("u2", "g1"), ("u2", "g2"), ("u3", "g2")],
            resources=["r1"],
            grants=[
                ("r1", "user", "u1"),
                ("r1", "user", "u4"),
                ("r1", "group", "g1"),
                ("r1", "group", "g2"),
            ],
        )
        access = await forward.resolve(store, "r1")
        # 2 user grants + 2 + 2 members would be 6; the union is 4
        assert access.total_users == 4
        assert len(access.entries) == 4
        assert len(set(access.user_ids)) == 4


class TestSymmetry:
    async def test_forward_and_reverse_agree(self, forward, reverse, store, seed):
        await seed(
            users=["u1", "u2", "u3", "u4"],
            groups=["g1", "g2", "g3"],
            members=[("u1", "g1"), ("u2", "g1"), ("u2", "g2"), ("u3", "g3"), ("u4", "g3")],
            resources=["r1", "r2", "r3", "r4", "r5"],
            grants=[
                ("r1", "user", "u1"),
                ("r1", "group", "g2"),
                ("r2", "group", "g1"),
                ("r3", "global", "global"),
                ("r4", "group", "g3"),
                ("r4", "user", "u4"),
                ("r5", "user", "u3"),
            ],
        )
        # Dangling references on both sides
        await store.delete_group("g3")
        await store.delete_user("u3")

        users = [u.user_id for u in await store.list_users()]
        resources = [r.resource_id for r in await store.list_resources()]

        forward_pairs = set()
        for rid in resources:
            access = await forward.resolve(store, rid)
            forward_pairs |= {(uid, rid) for uid in access.user_ids}

        reverse_pairs = set()
        for uid in users:
            rl = await reverse.resolve(store, uid)
            reverse_pairs |= {(uid, rid) for rid in rl.resource_ids}

        assert forward_pairs == reverse_pairs
        assert ("u4", "r4") in forward_pairs
        assert ("u3", "r5") not in forward_pairs


# ---------------------------------------------------------------------------
# Share / unshare round trip (through the facade)
# ---------------------------------------------------------------------------


class TestRoundTrip:
    async def test_user_share_round_trip(self, sharegate):
        await sharegate.create_user("u1")
        await sharegate.create_resource("r1", "owner")
        before = await sharegate.resolve_resource_access("r1")

        await sharegate.share_resource("r1", "user", "u1", shared_by="owner")
        shared = await sharegate.resolve_resource_access("r1")
        assert shared.user_ids == ["u1"]

        assert await sharegate.unshare_resource("r1", "user", "u1") is True
        after = await sharegate.resolve_resource_access("r1")
        assert after == before

    async def test_global_share_round_trip(self, sharegate):
        await sharegate.create_user("u1")
        await sharegate.create_user("u2")
        await sharegate.create_resource("r1", "owner")

        await sharegate.share_resource("r1", "global", None, shared_by="owner")
        assert (await sharegate.get_resource("r1")).is_global is True
        assert (await sharegate.resolve_resource_access("r1")).total_users == 2

        assert await sharegate.unshare_resource("r1", "global") is True
        assert (await sharegate.get_resource("r1")).is_global is False
        access = await sharegate.resolve_resource_access("r1")
        assert access.access_type is AccessType.SPECIFIC
        assert access.total_users == 0
