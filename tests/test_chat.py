"""Tests for ticket chat messages, read receipts, reactions and typing."""

import asyncio

import pytest

from quixdesk.accounts.infrastructure.repositories import SQLAlchemyUserRepository
from quixdesk.chat.application.dto import MessageCreateRequest
from quixdesk.chat.application.services import ChatService
from quixdesk.chat.application.typing import TypingTracker
from quixdesk.chat.infrastructure.repositories import SQLAlchemyMessageRepository
from quixdesk.config import Reaction, Role
from quixdesk.core import (
    DomainException,
    InvalidTransitionException,
    PermissionDeniedException,
    ValidationException,
)
from quixdesk.realtime.events import EventType
from quixdesk.tickets.application.dto import TicketCreateDTO
from quixdesk.tickets.application.services import TicketService
from quixdesk.tickets.infrastructure.repositories import (
    SQLAlchemyAssignmentRepository,
    SQLAlchemyTicketRepository,
)


@pytest.fixture
def tickets(session, publisher):
    return TicketService(
        SQLAlchemyTicketRepository(session),
        SQLAlchemyAssignmentRepository(session),
        SQLAlchemyUserRepository(session),
        publisher=publisher,
    )


@pytest.fixture
def typing_tracker(publisher):
    return TypingTracker(publisher, timeout_seconds=0.05)


@pytest.fixture
def chat(session, publisher, uploader, typing_tracker):
    return ChatService(
        SQLAlchemyMessageRepository(session),
        SQLAlchemyTicketRepository(session),
        SQLAlchemyAssignmentRepository(session),
        SQLAlchemyUserRepository(session),
        publisher=publisher,
        media=uploader,
        typing=typing_tracker,
    )


@pytest.fixture
async def setup(make_user, tickets):
    user = await make_user(Role.USER, name="Ada")
    employee = await make_user(Role.EMPLOYEE, name="Grace")
    admin = await make_user(Role.ADMIN, name="Root")
    ticket = await tickets.submit(user, TicketCreateDTO(
        name="Ada", email="ada@example.com", title="VPN drops", description="Every hour"
    ))
    await tickets.assign(ticket.id, str(employee.id), admin)
    return {"user": user, "employee": employee, "admin": admin, "ticket": ticket}


def _text(content):
    return MessageCreateRequest(content=content)


class TestMessages:

    async def test_send_and_list(self, chat, setup, publisher):
        ticket_id = setup["ticket"].id
        first = await chat.send(ticket_id, setup["user"], _text("Hello?"))
        await chat.send(ticket_id, setup["employee"], _text("Hi, looking now"))

        messages = await chat.list_messages(ticket_id, setup["employee"])
        assert [m.content for m in messages] == ["Hello?", "Hi, looking now"]
        assert first.sender_id == str(setup["user"].id)

        created = publisher.of_type(EventType.MESSAGE_CREATED)
        assert [e["ticket_id"] for e in created] == [ticket_id, ticket_id]

    async def test_staff_message_stamps_first_response(self, chat, tickets, setup):
        ticket_id = setup["ticket"].id
        await chat.send(ticket_id, setup["user"], _text("Anyone there?"))
        assert (await tickets.get(ticket_id, setup["user"])).first_response_at is None

        reply = await chat.send(ticket_id, setup["employee"], _text("Yes"))
        stamped = (await tickets.get(ticket_id, setup["user"])).first_response_at
        assert stamped == reply.created_at

        await chat.send(ticket_id, setup["employee"], _text("Still here"))
        assert (await tickets.get(ticket_id, setup["user"])).first_response_at == stamped

    async def test_empty_message_rejected(self, chat, setup):
        with pytest.raises(ValidationException):
            await chat.send(setup["ticket"].id, setup["user"], _text("   "))

    async def test_image_only_message(self, chat, setup):
        ticket_id = setup["ticket"].id
        url = await chat.upload_image(ticket_id, setup["user"], "err.png", b"\x89PNG", "image/png")
        message = await chat.send(ticket_id, setup["user"], MessageCreateRequest(image_url=url))
        assert message.content is None
        assert message.image_url == "https://cdn.example.com/err.png"

    async def test_outsider_cannot_post(self, chat, setup, make_user):
        outsider = await make_user(Role.USER)
        with pytest.raises(PermissionDeniedException):
            await chat.send(setup["ticket"].id, outsider, _text("hi"))

    async def test_closed_ticket_is_read_only(self, chat, tickets, setup):
        ticket_id = setup["ticket"].id
        await chat.send(ticket_id, setup["user"], _text("Thanks"))
        await tickets.close(ticket_id, setup["employee"])

        with pytest.raises(InvalidTransitionException):
            await chat.send(ticket_id, setup["user"], _text("One more thing"))
        assert len(await chat.list_messages(ticket_id, setup["user"])) == 1


class TestReadReceipts:

    async def test_mark_read_counts_only_incoming_unread(self, chat, setup, publisher):
        ticket_id = setup["ticket"].id
        await chat.send(ticket_id, setup["employee"], _text("one"))
        await chat.send(ticket_id, setup["employee"], _text("two"))
        await chat.send(ticket_id, setup["user"], _text("mine"))

        assert await chat.mark_read(ticket_id, setup["user"]) == 2
        assert await chat.mark_read(ticket_id, setup["user"]) == 0

        receipts = publisher.of_type(EventType.MESSAGE_READ)
        assert len(receipts) == 1
        assert receipts[0]["data"]["count"] == 2

        messages = await chat.list_messages(ticket_id, setup["user"])
        own = [m for m in messages if m.content == "mine"][0]
        assert own.read_at is None


class TestReactions:

    async def test_set_and_clear(self, chat, setup, publisher):
        message = await chat.send(setup["ticket"].id, setup["employee"], _text("Fixed it"))

        reacted = await chat.react(message.id, setup["user"], Reaction.HEART)
        assert reacted.reaction == Reaction.HEART
        assert publisher.of_type(EventType.MESSAGE_UPDATED)[0]["data"]["reaction"] == Reaction.HEART

        cleared = await chat.react(message.id, setup["user"], None)
        assert cleared.reaction is None

    async def test_unknown_reaction_rejected(self, chat, setup):
        message = await chat.send(setup["ticket"].id, setup["employee"], _text("Fixed it"))
        with pytest.raises(DomainException) as exc:
            await chat.react(message.id, setup["user"], "🦄")
        assert Reaction.THUMBS_UP in exc.value.details["allowed"]


class TestTypingAndCounterpart:

    async def test_typing_expires(self, chat, setup, publisher, typing_tracker):
        ticket_id = setup["ticket"].id
        user_id = str(setup["user"].id)

        await chat.typing(ticket_id, setup["user"], True)
        assert typing_tracker.is_typing(ticket_id, user_id)

        await asyncio.sleep(0.15)
        assert not typing_tracker.is_typing(ticket_id, user_id)
        states = [e["data"]["is_typing"] for e in publisher.of_type(EventType.TYPING)]
        assert states == [True, False]

    async def test_sending_clears_typing(self, chat, setup, publisher, typing_tracker):
        ticket_id = setup["ticket"].id
        await chat.typing(ticket_id, setup["user"], True)
        await chat.send(ticket_id, setup["user"], _text("done typing"))

        assert not typing_tracker.is_typing(ticket_id, str(setup["user"].id))
        states = [e["data"]["is_typing"] for e in publisher.of_type(EventType.TYPING)]
        assert states == [True, False]
        await typing_tracker.close()

    async def test_counterpart(self, chat, setup):
        ticket_id = setup["ticket"].id
        assert (await chat.counterpart(ticket_id, setup["user"])).id == setup["employee"].id
        assert (await chat.counterpart(ticket_id, setup["employee"])).id == setup["user"].id
