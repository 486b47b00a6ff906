"""Tests for ticket submission, assignment, closure and chat handshake."""

import asyncio
from datetime import timedelta

import httpx
import pytest

from quixdesk.accounts.infrastructure.repositories import SQLAlchemyUserRepository
from quixdesk.config import Role, TicketStatus
from quixdesk.core import (
    ConflictException,
    InvalidTransitionException,
    PermissionDeniedException,
    ResourceNotFoundException,
)
from quixdesk.infrastructure.database import utcnow
from quixdesk.infrastructure.mail import EmailNotifier, NotificationDispatcher
from quixdesk.realtime.events import EventType
from quixdesk.tickets.application.dto import TicketCreateDTO, TicketListQuery
from quixdesk.tickets.application.monitor import FirstResponseMonitor
from quixdesk.tickets.application.services import TicketService
from quixdesk.tickets.infrastructure.repositories import (
    SQLAlchemyAssignmentRepository,
    SQLAlchemyTicketRepository,
)
from quixdesk.tickets.infrastructure.scheduler import ResponseWatchScheduler

from conftest import FakeUploader


def _form(title="Printer on fire", priority="high", **overrides):
    data = dict(
        name="Ada",
        email="ada@example.com",
        category="technical",
        priority=priority,
        title=title,
        description="Smoke everywhere",
    )
    data.update(overrides)
    return TicketCreateDTO(**data)


@pytest.fixture
def service(session, publisher, dispatcher, uploader):
    return TicketService(
        SQLAlchemyTicketRepository(session),
        SQLAlchemyAssignmentRepository(session),
        SQLAlchemyUserRepository(session),
        publisher=publisher,
        notifier=dispatcher,
        media=uploader,
    )


@pytest.fixture
async def people(make_user):
    return {
        "user": await make_user(Role.USER, name="Ada"),
        "other": await make_user(Role.USER, name="Bob"),
        "employee": await make_user(Role.EMPLOYEE, name="Grace"),
        "admin": await make_user(Role.ADMIN, name="Root"),
    }


@pytest.fixture
async def assigned(service, people):
    """A ticket owned by user and assigned to employee."""
    ticket = await service.submit(people["user"], _form())
    await service.assign(ticket.id, str(people["employee"].id), people["admin"])
    return ticket


class TestSubmission:

    async def test_submit_creates_open_ticket(self, service, people, publisher, dispatcher, notifier):
        ticket = await service.submit(people["user"], _form())
        await dispatcher.drain()

        assert ticket.status == TicketStatus.OPEN
        assert ticket.user_id == str(people["user"].id)
        assert ticket.assignments == []
        assert notifier.sent == [{"kind": "submitted", "email": "ada@example.com", "title": "Printer on fire"}]

        created = publisher.of_type(EventType.TICKET_CREATED)
        assert len(created) == 1
        assert created[0]["roles"] == [Role.ADMIN]

    async def test_submit_with_image(self, service, people):
        ticket = await service.submit(people["user"], _form(), ("shot.png", b"\x89PNG", "image/png"))
        assert ticket.image_url == "https://cdn.example.com/shot.png"

    async def test_failed_upload_still_creates_ticket(self, session, publisher, people):
        service = TicketService(
            SQLAlchemyTicketRepository(session),
            SQLAlchemyAssignmentRepository(session),
            SQLAlchemyUserRepository(session),
            publisher=publisher,
            media=FakeUploader(fail=True),
        )
        ticket = await service.submit(people["user"], _form(), ("shot.png", b"\x89PNG", "image/png"))
        assert ticket.image_url is None
        assert ticket.status == TicketStatus.OPEN

    async def test_unsupported_image_type_still_creates_ticket(self, service, people):
        ticket = await service.submit(people["user"], _form(), ("notes.txt", b"hello", "text/plain"))
        assert ticket.image_url is None


class TestReads:

    async def test_only_participants_can_read(self, service, people, assigned):
        assert (await service.get(assigned.id, people["employee"])).id == assigned.id
        assert (await service.get(assigned.id, people["admin"])).id == assigned.id
        with pytest.raises(PermissionDeniedException):
            await service.get(assigned.id, people["other"])

    async def test_unknown_ticket(self, service, people):
        with pytest.raises(ResourceNotFoundException):
            await service.get("not-a-uuid", people["admin"])

    async def test_owner_list_filters_and_search(self, service, people, assigned):
        await service.submit(people["user"], _form(title="Mouse broken", priority="low"))
        await service.submit(people["other"], _form(title="Not mine"))

        mine = await service.list_for_user(people["user"], TicketListQuery())
        assert {t.title for t in mine} == {"Printer on fire", "Mouse broken"}

        low = await service.list_for_user(people["user"], TicketListQuery(priority="low"))
        assert [t.title for t in low] == ["Mouse broken"]

        by_employee = await service.list_for_user(people["user"], TicketListQuery(search="grace"))
        assert [t.title for t in by_employee] == ["Printer on fire"]

    async def test_admin_board_splits_by_assignment(self, service, people, assigned):
        await service.submit(people["user"], _form(title="Unassigned one"))
        board = await service.admin_board()
        assert [t.title for t in board.assigned] == ["Printer on fire"]
        assert [t.title for t in board.unassigned] == ["Unassigned one"]
        assert board.assigned[0].assignments[0].employee_name == "Grace"

    async def test_assigned_page(self, service, people, assigned):
        page = await service.list_assigned(people["employee"], page=1, page_size=10)
        assert page.total == 1
        assert page.items[0].id == assigned.id

        empty = await service.list_assigned(people["employee"], status=TicketStatus.CLOSED)
        assert empty.total == 0 and empty.items == []

    async def test_assigned_pages(self, session, service, people):
        repo = SQLAlchemyTicketRepository(session)
        for age, title in enumerate(["Third", "Second", "First"]):
            ticket = await service.submit(people["user"], _form(title=title))
            await service.assign(ticket.id, str(people["employee"].id), people["admin"])
            row = await repo.get_by_id(ticket.id)
            row.created_at = utcnow() - timedelta(minutes=age)
            await repo.save(row)

        first = await service.list_assigned(people["employee"], page=1, page_size=2)
        second = await service.list_assigned(people["employee"], page=2, page_size=2)

        assert (first.total, second.total) == (3, 3)
        assert [t.title for t in first.items] == ["Third", "Second"]
        assert [t.title for t in second.items] == ["First"]
        assert (second.page, second.page_size) == (2, 2)

        beyond = await service.list_assigned(people["employee"], page=3, page_size=2)
        assert beyond.items == [] and beyond.total == 3

    async def test_search_by_title_and_id(self, service, people, assigned):
        assert [t.title for t in await service.search("printer")] == ["Printer on fire"]
        assert [str(t.id) for t in await service.search(assigned.id)] == [assigned.id]
        assert await service.search("   ") == []


class TestAssignment:

    async def test_assign_notifies_and_publishes(self, service, people, publisher, dispatcher, notifier):
        ticket = await service.submit(people["user"], _form())
        result = await service.assign(ticket.id, str(people["employee"].id), people["admin"])
        await dispatcher.drain()

        assert [a.employee_name for a in result.assignments] == ["Grace"]
        assert notifier.sent[-1] == {"kind": "assigned", "email": "ada@example.com", "employee": "Grace"}

        assigned_event = publisher.of_type(EventType.TICKET_ASSIGNED)[0]
        assert assigned_event["user_ids"] == [str(people["employee"].id)]
        updated_event = publisher.of_type(EventType.TICKET_UPDATED)[-1]
        assert updated_event["user_ids"] == [str(people["user"].id)]

    async def test_duplicate_assignment_conflicts(self, service, people, assigned):
        with pytest.raises(ConflictException, match="already assigned to Grace"):
            await service.assign(assigned.id, str(people["employee"].id), people["admin"])

    async def test_assign_requires_active_employee(self, service, people):
        ticket = await service.submit(people["user"], _form())
        with pytest.raises(ResourceNotFoundException):
            await service.assign(ticket.id, str(people["other"].id), people["admin"])

    async def test_cannot_assign_closed_ticket(self, service, people, assigned, make_user):
        await service.close(assigned.id, people["employee"])
        second = await make_user(Role.EMPLOYEE)
        with pytest.raises(InvalidTransitionException):
            await service.assign(assigned.id, str(second.id), people["admin"])


class TestClosure:

    async def test_request_then_confirm(self, service, people, assigned, dispatcher, notifier):
        requested = await service.request_closure(assigned.id, people["employee"])
        assert requested.status == TicketStatus.REQUESTED

        closed = await service.confirm_closure(assigned.id, people["user"])
        assert closed.status == TicketStatus.CLOSED
        assert closed.closed_at is not None
        assert closed.closed_by == str(people["employee"].id)
        assert closed.closed_by_name == "Grace"
        await dispatcher.drain()
        assert notifier.sent[-1]["kind"] == "closed"

    async def test_only_owner_confirms(self, service, people, assigned):
        await service.request_closure(assigned.id, people["employee"])
        with pytest.raises(PermissionDeniedException):
            await service.confirm_closure(assigned.id, people["employee"])

    async def test_confirm_without_request(self, service, people, assigned):
        with pytest.raises(InvalidTransitionException):
            await service.confirm_closure(assigned.id, people["user"])

    async def test_unassigned_employee_cannot_close(self, service, people, assigned, make_user):
        stranger = await make_user(Role.EMPLOYEE)
        with pytest.raises(PermissionDeniedException):
            await service.close(assigned.id, stranger)

    async def test_admin_closes_directly(self, service, people, assigned):
        closed = await service.close(assigned.id, people["admin"])
        assert closed.status == TicketStatus.CLOSED
        assert closed.closed_by_name == "Root"

    async def test_closed_is_terminal(self, service, people, assigned):
        await service.close(assigned.id, people["employee"])
        with pytest.raises(InvalidTransitionException):
            await service.close(assigned.id, people["employee"])
        with pytest.raises(InvalidTransitionException):
            await service.request_closure(assigned.id, people["employee"])


class TestChatHandshake:

    async def test_handshake(self, service, people, assigned, publisher):
        ticket = await service.request_chat(assigned.id, people["user"])
        assert ticket.user_waiting

        ticket = await service.connect_employee(assigned.id, people["employee"])
        assert ticket.status == TicketStatus.ANSWERED
        assert ticket.employee_connected and ticket.employee_waiting
        assert not ticket.user_waiting
        assert ticket.first_response_at is not None

        ticket = await service.join_chat(assigned.id, people["user"])
        assert ticket.user_connected and not ticket.employee_waiting

        ticket = await service.end_chat(assigned.id, people["employee"])
        assert not ticket.chat_initiated and not ticket.user_connected

        update = publisher.of_type(EventType.TICKET_UPDATED)[-1]
        assert update["ticket_id"] == assigned.id
        assert set(update["user_ids"]) == {str(people["user"].id), str(people["employee"].id)}

    async def test_cancel_request(self, service, people, assigned):
        await service.request_chat(assigned.id, people["user"])
        ticket = await service.cancel_chat_request(assigned.id, people["user"])
        assert not ticket.user_waiting

    async def test_only_owner_requests_chat(self, service, people, assigned):
        with pytest.raises(PermissionDeniedException):
            await service.request_chat(assigned.id, people["employee"])

    async def test_closed_ticket_rejects_chat_changes(self, service, people, assigned):
        await service.close(assigned.id, people["employee"])
        with pytest.raises(InvalidTransitionException):
            await service.request_chat(assigned.id, people["user"])

    async def test_chat_requests_queue(self, service, people, assigned):
        await service.request_chat(assigned.id, people["user"])
        queue = await service.list_chat_requests(people["employee"])
        assert [t.id for t in queue] == [assigned.id]
        assert queue[0].user_waiting


class TestDeletion:

    async def test_owner_deletes(self, service, people, assigned, publisher):
        await service.delete(assigned.id, people["user"])
        with pytest.raises(ResourceNotFoundException):
            await service.get(assigned.id, people["admin"])

        deleted = publisher.of_type(EventType.TICKET_DELETED)[0]
        assert deleted["data"] == {"ticket_id": assigned.id}
        assert str(people["employee"].id) in deleted["user_ids"]

    async def test_admin_deletes_any_ticket(self, service, people, assigned):
        await service.delete(assigned.id, people["admin"])
        with pytest.raises(ResourceNotFoundException):
            await service.get(assigned.id, people["admin"])

    async def test_others_cannot_delete(self, service, people, assigned):
        with pytest.raises(PermissionDeniedException):
            await service.delete(assigned.id, people["other"])
        with pytest.raises(PermissionDeniedException):
            await service.delete(assigned.id, people["employee"])


class TestModeration:

    async def test_submit_flags_matching_content(self, service, people):
        flagged = await service.submit(people["user"], _form(title="SPAM offer", description="Buy now"))
        assert flagged.is_flagged
        assert flagged.flag_reason == 'Contains inappropriate content: "spam"'
        assert flagged.analyzed_at is not None

        clean = await service.submit(people["user"], _form(title="Latest update broke login"))
        assert not clean.is_flagged
        assert clean.flag_reason is None

        assert [t.id for t in await service.list_flagged()] == [flagged.id]

    async def test_pass_covers_only_unanalyzed_tickets(self, session, service, people):
        repo = SQLAlchemyTicketRepository(session)
        legacy = await service.submit(people["user"], _form(title="asdf asdf"))
        row = await repo.get_by_id(legacy.id)
        row.is_flagged, row.flag_reason, row.analyzed_at = False, None, None
        await repo.save(row)
        await service.submit(people["user"], _form(title="Keyboard missing keys"))

        summary = await service.moderate_pending(people["admin"])
        assert (summary.analyzed, summary.flagged) == (1, 1)
        assert summary.flagged_ids == [legacy.id]
        assert (await repo.get_by_id(legacy.id)).flag_reason == 'Contains inappropriate content: "asdf"'

        assert (await service.moderate_pending(people["admin"])).analyzed == 0


class TestBackgroundNotifications:

    async def test_submit_does_not_wait_for_the_relay(self, session, publisher, people):
        release = asyncio.Event()

        async def relay(request):
            await release.wait()
            return httpx.Response(503)

        notifier = EmailNotifier(
            endpoint="http://relay/send", transport=httpx.MockTransport(relay), max_retries=1
        )
        dispatcher = NotificationDispatcher(notifier)
        service = TicketService(
            SQLAlchemyTicketRepository(session),
            SQLAlchemyAssignmentRepository(session),
            SQLAlchemyUserRepository(session),
            publisher=publisher,
            notifier=dispatcher,
        )

        ticket = await service.submit(people["user"], _form())
        assert ticket.status == TicketStatus.OPEN
        assert dispatcher.pending == 1

        release.set()
        await dispatcher.drain()
        assert dispatcher.pending == 0
        await dispatcher.close()

    async def test_failing_send_is_contained(self):
        class BrokenNotifier:
            async def ticket_submitted(self, name, email, title):
                raise RuntimeError("relay exploded")

            async def close(self):
                pass

        dispatcher = NotificationDispatcher(BrokenNotifier())
        task = dispatcher.ticket_submitted("Ada", "ada@example.com", "VPN")
        await dispatcher.drain()

        assert isinstance(task.exception(), RuntimeError)
        assert dispatcher.pending == 0


class TestFirstResponseMonitor:

    async def test_alerts_once_per_overdue_ticket(self, session, service, people, publisher):
        repo = SQLAlchemyTicketRepository(session)
        stale = await service.submit(people["user"], _form(title="Stale"))
        await service.submit(people["user"], _form(title="Fresh"))

        stale_row = await repo.get_by_id(stale.id)
        stale_row.created_at = utcnow() - timedelta(minutes=45)
        await repo.save(stale_row)

        monitor = FirstResponseMonitor(repo, publisher, target_minutes=30)
        assert await monitor.run() == {"overdue": 1}

        alert = publisher.of_type(EventType.TICKET_RESPONSE_OVERDUE)[0]
        assert alert["data"]["ticket_id"] == stale.id
        assert alert["data"]["minutes_waiting"] >= 45
        assert alert["data"]["target_minutes"] == 30
        assert alert["roles"] == [Role.ADMIN]

        assert await monitor.run() == {"overdue": 0}

    async def test_answered_tickets_are_not_overdue(self, session, service, people, assigned, publisher):
        repo = SQLAlchemyTicketRepository(session)
        await service.connect_employee(assigned.id, people["employee"])
        row = await repo.get_by_id(assigned.id)
        row.created_at = utcnow() - timedelta(hours=2)
        await repo.save(row)

        monitor = FirstResponseMonitor(repo, publisher, target_minutes=30)
        assert await monitor.run() == {"overdue": 0}


async def test_scheduler_runs_first_pass_immediately():
    ran = asyncio.Event()

    async def job():
        ran.set()

    scheduler = ResponseWatchScheduler(interval_seconds=3600)
    assert scheduler.next_run_at is None

    await scheduler.start(job)
    try:
        assert scheduler.is_running
        await asyncio.wait_for(ran.wait(), timeout=2)
    finally:
        await scheduler.stop()
    assert not scheduler.is_running
