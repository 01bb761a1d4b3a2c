"""
Tests for audience resolution: tag intersection, requester exclusion and the online filter.
"""

import pytest

from tagask.models.domain.directory_domain import AudienceMember
from tagask.services.graph.gateway import GraphAPIError
from tagask.services.questions.audience_resolver import AudienceResolver, intersect_members

ALICE = AudienceMember("u-alice", "Alice")
BOB = AudienceMember("u-bob", "Bob")
CAROL = AudienceMember("u-carol", "Carol")
REQUESTER = AudienceMember("user-123", "Requester")


def test_intersect_keeps_only_members_of_every_tag():
    audience = intersect_members([[ALICE, BOB, CAROL], [CAROL, BOB]], requester_id="user-123")

    assert audience == [BOB, CAROL]


def test_intersect_removes_requester_even_when_in_every_tag():
    audience = intersect_members([[REQUESTER, ALICE], [ALICE, REQUESTER]], "user-123")

    assert audience == [ALICE]


def test_intersect_deduplicates_within_one_tag():
    audience = intersect_members([[ALICE, ALICE, BOB]], "user-123")

    assert audience == [ALICE, BOB]


def test_intersect_with_an_empty_tag_is_empty():
    assert intersect_members([[ALICE, BOB], []], "user-123") == []
    assert intersect_members([], "user-123") == []


@pytest.mark.asyncio
async def test_resolve_single_tag_is_identity_minus_requester(fake_gateway):
    fake_gateway.tag_members = {"t1": [ALICE, REQUESTER, BOB]}
    resolver = AudienceResolver(fake_gateway)

    audience = await resolver.resolve("token", "team-1", ["t1"], "user-123")

    assert audience == [ALICE, BOB]


@pytest.mark.asyncio
async def test_resolve_is_idempotent(fake_gateway):
    fake_gateway.tag_members = {"t1": [ALICE, BOB, CAROL], "t2": [CAROL, ALICE]}
    resolver = AudienceResolver(fake_gateway)

    first = await resolver.resolve("token", "team-1", ["t1", "t2"], "user-123")
    second = await resolver.resolve("token", "team-1", ["t1", "t2"], "user-123")

    assert first == second == [ALICE, CAROL]


@pytest.mark.asyncio
async def test_online_filter_keeps_only_confirmed_available(fake_gateway):
    fake_gateway.tag_members = {"t1": [ALICE, BOB, CAROL]}
    fake_gateway.presence = {"u-alice": "Available", "u-bob": "Busy"}  # Carol has no presence
    resolver = AudienceResolver(fake_gateway)

    audience = await resolver.resolve("token", "team-1", ["t1"], "user-123", only_online=True)

    assert audience == [ALICE]


@pytest.mark.asyncio
async def test_online_filter_fails_closed_on_lookup_error(fake_gateway):
    fake_gateway.tag_members = {"t1": [ALICE, BOB]}
    fake_gateway.presence = {"u-alice": "Available", "u-bob": "Available"}
    fake_gateway.fail_presence = {"u-bob"}
    resolver = AudienceResolver(fake_gateway)

    audience = await resolver.resolve("token", "team-1", ["t1"], "user-123", only_online=True)

    assert audience == [ALICE]


@pytest.mark.asyncio
async def test_online_filter_skipped_for_empty_intersection(fake_gateway):
    fake_gateway.tag_members = {"t1": [ALICE], "t2": [BOB]}
    resolver = AudienceResolver(fake_gateway)

    audience = await resolver.resolve("token", "team-1", ["t1", "t2"], "user-123", only_online=True)

    assert audience == []
    assert not any(call[0] == "get_presence" for call in fake_gateway.calls)


@pytest.mark.asyncio
async def test_membership_failure_propagates(fake_gateway):
    fake_gateway.tag_members = {"t1": [ALICE]}
    fake_gateway.fail_tags = {"t2"}
    resolver = AudienceResolver(fake_gateway)

    with pytest.raises(GraphAPIError):
        await resolver.resolve("token", "team-1", ["t1", "t2"], "user-123")
