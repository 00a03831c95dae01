from __future__ import annotations

import asyncio

import pytest

from assistant import Assistant, FlowState, SubmitRejected
from gemini_service import InitializationError
from system_prompt import CHAT_ERROR_TEXT, INSPIRATION_ERROR_TEXT, INSPIRATION_PLACEHOLDER, WELCOME_MESSAGE
from conftest import FakeGateway, FakeSession


def started(gateway) -> Assistant:
    return Assistant.start(lambda: gateway)


def test_start_adds_welcome_message(gateway) -> None:
    assistant = started(gateway)

    assert assistant.available
    assert [m.text for m in assistant.store] == [WELCOME_MESSAGE]
    assert assistant.error is None


def test_start_without_credential_disables_chat(monkeypatch, run) -> None:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)

    assistant = Assistant.start()

    assert not assistant.available
    assert len(assistant.store) == 0
    assert assistant.error.startswith("Initialization failed:")
    assert isinstance(assistant.last_failure, InitializationError)
    assert assistant.last_failure.kind == "init"

    with pytest.raises(SubmitRejected) as exc:
        run(assistant.send_message("hello"))
    assert exc.value.reason == "unavailable"


def test_send_appends_user_then_model_message(gateway, run) -> None:
    assistant = started(gateway)

    reply = run(assistant.send_message("  Where can I see gorillas?  "))

    assert reply.text == "Murakaza neza!"
    roles_and_text = [(m.role, m.text) for m in assistant.store][1:]
    assert roles_and_text == [
        ("user", "Where can I see gorillas?"),
        ("model", "Murakaza neza!"),
    ]
    assert gateway.session.sent == ["Where can I see gorillas?"]
    assert assistant.chat_state is FlowState.IDLE


def test_send_failure_substitutes_error_message(run) -> None:
    gateway = FakeGateway(session=FakeSession(error="boom"))
    assistant = started(gateway)

    reply = run(assistant.send_message("hello"))

    assert reply.role == "model"
    assert reply.text == CHAT_ERROR_TEXT
    assert assistant.error == CHAT_ERROR_TEXT
    assert assistant.last_failure.kind == "chat"
    assert len(assistant.store) == 3


@pytest.mark.parametrize("text", ["", "   ", "\n\t"])
def test_empty_submit_is_rejected(gateway, run, text) -> None:
    assistant = started(gateway)

    with pytest.raises(SubmitRejected) as exc:
        run(assistant.send_message(text))

    assert exc.value.reason == "empty"
    assert len(assistant.store) == 1
    assert gateway.session.sent == []


def test_submit_while_sending_is_rejected(gateway, run) -> None:
    assistant = started(gateway)

    async def scenario():
        gateway.session.gate = asyncio.Event()
        first = asyncio.ensure_future(assistant.send_message("first"))
        await asyncio.sleep(0)
        assert assistant.chat_state is FlowState.SENDING

        with pytest.raises(SubmitRejected) as exc:
            await assistant.send_message("second")
        assert exc.value.reason == "busy"
        count_while_busy = len(assistant.store)

        gateway.session.gate.set()
        await first
        return count_while_busy

    count_while_busy = run(scenario())

    assert count_while_busy == 2
    assert gateway.session.sent == ["first"]
    assert len(assistant.store) == 3


def test_inspiration_updates_placeholder_in_place(gateway, run) -> None:
    assistant = started(gateway)

    async def scenario():
        gateway.image_gate = asyncio.Event()
        placeholder_id = await assistant.start_inspiration()
        assert assistant.store.get(placeholder_id).text == INSPIRATION_PLACEHOLDER
        assert assistant.store.get(placeholder_id).is_loading_image is None

        while not gateway.image_prompts:
            await asyncio.sleep(0)
        midway = assistant.store.get(placeholder_id)
        state = assistant.inspiration_state

        gateway.image_gate.set()
        await asyncio.gather(*assistant._tasks)
        return placeholder_id, midway, state

    placeholder_id, midway, state = run(scenario())

    assert midway.text == "**Lake Kivu**\n\nCalm waters and island sunsets."
    assert midway.is_loading_image is True
    assert midway.image_url is None
    assert state is FlowState.IMAGE_PENDING

    final = assistant.store.get(placeholder_id)
    assert final.image_url == "data:image/jpeg;base64,AAAA"
    assert final.is_loading_image is False
    assert final.text == midway.text
    assert gateway.image_prompts == ["Sunset over Lake Kivu"]
    assert assistant.inspiration_state is FlowState.IDLE
    assert not assistant.store.is_held(placeholder_id)
    assert [m.role for m in assistant.store] == ["model", "user", "model"]


def test_idea_failure_leaves_error_text_without_image(run) -> None:
    gateway = FakeGateway(idea_error="bad json")
    assistant = started(gateway)

    final = run(assistant.inspire())

    assert final.text == INSPIRATION_ERROR_TEXT
    assert final.image_url is None
    assert not final.is_loading_image
    assert gateway.image_prompts == []
    assert assistant.error == INSPIRATION_ERROR_TEXT
    assert assistant.last_failure.kind == "idea"


def test_image_failure_overwrites_idea_text(run) -> None:
    gateway = FakeGateway(image_error="No image was generated.")
    assistant = started(gateway)

    final = run(assistant.inspire())

    assert final.text == INSPIRATION_ERROR_TEXT
    assert final.is_loading_image is False
    assert final.image_url is None
    assert assistant.last_failure.kind == "image"


def test_second_inspiration_while_pending_is_rejected(gateway, run) -> None:
    assistant = started(gateway)

    async def scenario():
        gateway.image_gate = asyncio.Event()
        await assistant.start_inspiration()
        with pytest.raises(SubmitRejected) as exc:
            await assistant.start_inspiration()
        gateway.image_gate.set()
        await asyncio.gather(*assistant._tasks)
        return exc.value.reason

    assert run(scenario()) == "busy"
    assert gateway.idea_calls == 1
    assert len(assistant.store) == 3


def test_chat_may_overlap_inspiration(gateway, run) -> None:
    assistant = started(gateway)

    async def scenario():
        gateway.image_gate = asyncio.Event()
        await assistant.start_inspiration()
        assert assistant.busy
        reply = await assistant.send_message("Any tips for Kigali?")
        gateway.image_gate.set()
        await asyncio.gather(*assistant._tasks)
        return reply

    reply = run(scenario())

    assert reply.text == "Murakaza neza!"
    assert not assistant.busy
    assert len(assistant.store) == 5


def test_snapshot_renders_markup(gateway, run) -> None:
    assistant = started(gateway)
    run(assistant.inspire())

    snap = assistant.snapshot()

    placeholder = snap["messages"][-1]
    assert placeholder["html"].startswith("<strong>Lake Kivu</strong>")
    assert placeholder["imageUrl"].startswith("data:image/jpeg;base64,")
    assert placeholder["isLoadingImage"] is False
    assert "imageUrl" not in snap["messages"][0]
    assert snap["chatState"] == "idle"
    assert snap["inspirationState"] == "idle"
    assert snap["busy"] is False
    assert snap["chatEnabled"] is True
    assert snap["error"] is None
