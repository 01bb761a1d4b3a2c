"""
Tests for the email, group chat and random one-on-one delivery strategies.
"""

import random
from collections import Counter

import pytest

from tagask.models.domain.directory_domain import AudienceMember
from tagask.models.domain.question_domain import (
    DeliveryMode,
    DispatchIntent,
    TargetCardinality,
)
from tagask.services.questions.channel_dispatcher import (
    ChannelDispatcher,
    DispatchError,
    PartialDispatchError,
    build_email_subject,
)

ALICE = AudienceMember("u-alice", "Alice")
BOB = AudienceMember("u-bob", "Bob")
CAROL = AudienceMember("u-carol", "")

GROUP = DispatchIntent(DeliveryMode.TEAMS, TargetCardinality.ALL, ("t1",))
DIRECT = DispatchIntent(DeliveryMode.TEAMS, TargetCardinality.ONE_RANDOM, ("t1",))
EMAIL = DispatchIntent(DeliveryMode.EMAIL, TargetCardinality.ALL, ("t1", "t2"))


def test_email_subject_lists_tag_ids():
    assert build_email_subject("Deploys", ("t1", "t2")) == "Call for aid - Deploys - t1, t2"


@pytest.mark.asyncio
async def test_group_chat_includes_requester_and_posts_body(fake_gateway):
    dispatcher = ChannelDispatcher(fake_gateway)

    receipt = await dispatcher.dispatch(
        "token", GROUP, [ALICE, BOB], "user-123", "Deploys", "Help?"
    )

    assert fake_gateway.calls[0] == (
        "create_group_conversation",
        "Deploys",
        ("u-alice", "u-bob"),
        "user-123",
    )
    assert fake_gateway.calls[1] == ("post_message", receipt.conversation_id, "Help?")
    assert receipt.recipients == ["Alice", "Bob"]
    assert receipt.conversation_url.startswith("https://teams.microsoft.com/")
    assert not receipt.is_email


@pytest.mark.asyncio
async def test_direct_chat_contacts_exactly_one_member(fake_gateway):
    dispatcher = ChannelDispatcher(fake_gateway, rng=random.Random(7))

    receipt = await dispatcher.dispatch(
        "token", DIRECT, [ALICE, BOB], "user-123", "Deploys", "Help?"
    )

    assert len(receipt.contacted) == 1
    chosen = receipt.contacted[0]
    assert ("create_direct_conversation", chosen.user_id, "user-123") in fake_gateway.calls


def test_choose_one_is_roughly_uniform(fake_gateway):
    dispatcher = ChannelDispatcher(fake_gateway, rng=random.Random(42))
    audience = [ALICE, BOB, CAROL]

    counts = Counter(dispatcher.choose_one(audience).user_id for _ in range(3000))

    assert set(counts) == {"u-alice", "u-bob", "u-carol"}
    for count in counts.values():
        assert 850 < count < 1150


@pytest.mark.asyncio
async def test_email_skips_members_without_address(fake_gateway):
    fake_gateway.addresses = {"u-alice": "alice@contoso.com", "u-carol": "carol@contoso.com"}
    fake_gateway.fail_address = {"u-carol"}
    dispatcher = ChannelDispatcher(fake_gateway)

    receipt = await dispatcher.dispatch(
        "token", EMAIL, [ALICE, BOB, CAROL], "user-123", "Deploys", "Help?"
    )

    sends = [call for call in fake_gateway.calls if call[0] == "send_email"]
    assert sends == [
        ("send_email", "Call for aid - Deploys - t1, t2", "Help?", ("alice@contoso.com",))
    ]
    assert receipt.is_email
    assert receipt.conversation_id is None
    assert receipt.contacted == [ALICE]


@pytest.mark.asyncio
async def test_email_with_no_addresses_fails_without_sending(fake_gateway):
    dispatcher = ChannelDispatcher(fake_gateway)

    with pytest.raises(DispatchError):
        await dispatcher.dispatch("token", EMAIL, [ALICE, BOB], "user-123", "Deploys", "Help?")

    assert not any(call[0] == "send_email" for call in fake_gateway.calls)


@pytest.mark.asyncio
async def test_chat_creation_failure_is_dispatch_error(fake_gateway):
    fake_gateway.fail_create_chat = True
    dispatcher = ChannelDispatcher(fake_gateway)

    with pytest.raises(DispatchError) as exc:
        await dispatcher.dispatch("token", GROUP, [ALICE], "user-123", "Deploys", "Help?")

    assert not isinstance(exc.value, PartialDispatchError)


@pytest.mark.asyncio
async def test_post_failure_is_partial_and_carries_conversation(fake_gateway):
    fake_gateway.fail_post_message = True
    dispatcher = ChannelDispatcher(fake_gateway)

    with pytest.raises(PartialDispatchError) as exc:
        await dispatcher.dispatch("token", GROUP, [ALICE], "user-123", "Deploys", "Help?")

    assert exc.value.conversation is not None
    assert exc.value.conversation.id.startswith("19:chat-")


@pytest.mark.asyncio
async def test_empty_audience_is_a_programming_error(fake_gateway):
    dispatcher = ChannelDispatcher(fake_gateway)

    with pytest.raises(ValueError):
        await dispatcher.dispatch("token", GROUP, [], "user-123", "Deploys", "Help?")
