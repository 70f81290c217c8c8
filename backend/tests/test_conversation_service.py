from __future__ import annotations

import asyncio

import pytest

from app.agents.agent_bridge import TurnResult
from app.core.errors import AgentTransportError, NotFoundError
from app.models.conversation_models import Role
from app.models.metadata_models import MultipleChoiceMetadata, TemplateProposalMetadata
from app.services.conversation_service import title_from_message

LEG_DAY = {
    "type": "template_proposal",
    "name": "Leg Day",
    "exercises": [{"name": "Squat", "sets": 3, "reps": "8-12", "muscleGroup": "Legs"}],
}


def test_send_message_stores_both_sides_and_session(service, store, fake_bridge):
    store.create_conversation("c1")
    fake_bridge.result = TurnResult(
        response_text="Here's a plan",
        metadata_items=[LEG_DAY],
        new_session_id="abc",
    )

    reply = asyncio.run(service.send_message("c1", "Build me a leg day"))

    messages = store.list_messages("c1")
    assert [(m.role, m.content) for m in messages] == [
        (Role.USER, "Build me a leg day"),
        (Role.ASSISTANT, "Here's a plan"),
    ]
    assert messages[0].metadata is None
    assert isinstance(messages[1].metadata, TemplateProposalMetadata)
    assert messages[1].metadata.exercises[0].muscle_group == "Legs"
    assert reply == messages[1]
    assert store.get_conversation("c1").agent_session_id == "abc"


def test_existing_session_id_is_passed_to_the_bridge(service, store, fake_bridge):
    store.create_conversation("c1")
    store.update_agent_session_id("c1", "sess-1")

    asyncio.run(service.send_message("c1", "Next question"))

    assert fake_bridge.calls == [("c1", "Next question", "sess-1")]


def test_session_id_kept_when_bridge_reports_none(service, store, fake_bridge):
    store.create_conversation("c1")
    store.update_agent_session_id("c1", "sess-1")
    fake_bridge.result = TurnResult(response_text="ok", new_session_id=None)

    asyncio.run(service.send_message("c1", "hi"))

    assert store.get_conversation("c1").agent_session_id == "sess-1"


def test_only_first_metadata_item_is_stored(service, store, fake_bridge):
    store.create_conversation("c1")
    fake_bridge.result = TurnResult(
        response_text="Pick one",
        metadata_items=[
            {"type": "multiple_choice", "question": "Goal?", "options": [{"id": "a", "label": "Strength"}]},
            LEG_DAY,
        ],
    )

    reply = asyncio.run(service.send_message("c1", "help"))

    assert isinstance(reply.metadata, MultipleChoiceMetadata)
    assert len(store.list_messages("c1")) == 2


def test_transport_failure_leaves_user_message_without_reply(service, store, fake_bridge):
    store.create_conversation("c1")
    fake_bridge.error = AgentTransportError("Agent runtime stream failed")

    with pytest.raises(AgentTransportError):
        asyncio.run(service.send_message("c1", "Build me a leg day"))

    messages = store.list_messages("c1")
    assert [(m.role, m.content) for m in messages] == [(Role.USER, "Build me a leg day")]
    assert store.get_conversation("c1").agent_session_id is None


def test_retry_after_failure_creates_a_new_user_message(service, store, fake_bridge):
    store.create_conversation("c1")
    fake_bridge.error = AgentTransportError("down")
    with pytest.raises(AgentTransportError):
        asyncio.run(service.send_message("c1", "hello"))

    fake_bridge.error = None
    asyncio.run(service.send_message("c1", "hello"))

    roles = [m.role for m in store.list_messages("c1")]
    assert roles == [Role.USER, Role.USER, Role.ASSISTANT]


def test_unknown_conversation_raises_not_found_and_writes_nothing(service, store, fake_bridge):
    with pytest.raises(NotFoundError):
        asyncio.run(service.send_message("ghost", "hello"))

    assert fake_bridge.calls == []
    assert store.list_messages("ghost") == []


def test_first_message_sets_title(service, store):
    store.create_conversation("c1")

    asyncio.run(service.send_message("c1", "  Build me a leg day  "))

    assert store.get_conversation("c1").title == "Build me a leg day"
    assert store.list_messages("c1")[0].content == "Build me a leg day"


def test_existing_title_is_not_replaced(service, store):
    store.create_conversation("c1", "My plan")

    asyncio.run(service.send_message("c1", "Build me a leg day"))

    assert store.get_conversation("c1").title == "My plan"


def test_title_from_long_message_is_truncated():
    title = title_from_message("x" * 100)

    assert len(title) == 60
    assert title.endswith("...")
    assert title_from_message("short") == "short"


def test_create_conversation_generates_id(service):
    conv = service.create_conversation()

    assert conv.id
    assert service.get_conversation(conv.id) == conv


def test_delete_and_list_messages_of_missing_conversation(service):
    with pytest.raises(NotFoundError):
        service.delete_conversation("ghost")
    with pytest.raises(NotFoundError):
        service.list_messages("ghost")


def test_rename_conversation(service, store):
    store.create_conversation("c1")

    assert service.rename_conversation("c1", "Pull day").title == "Pull day"
    with pytest.raises(NotFoundError):
        service.rename_conversation("ghost", "x")
