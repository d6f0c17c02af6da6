from __future__ import annotations

import asyncio

import pytest

from gofer.notify.prompts import PromptBroker


@pytest.mark.anyio
async def test_reply_resolves_the_prompt_it_answers() -> None:
    broker = PromptBroker()
    first = broker.open("42", correlation_id="100")
    second = broker.open("42", correlation_id="101")

    assert broker.deliver("42", "second answer", reply_to="101") is True
    assert broker.deliver("42", "first answer") is True

    assert (await broker.wait(second, timeout=1)).response == "second answer"
    assert (await broker.wait(first, timeout=1)).response == "first answer"
    assert len(broker) == 0


@pytest.mark.anyio
async def test_plain_message_resolves_oldest_prompt() -> None:
    broker = PromptBroker()
    oldest = broker.open("42")
    newest = broker.open("42")

    broker.deliver("42", "hello")

    assert oldest.future.result() == "hello"
    assert not newest.future.done()
    broker.cancel_all()


@pytest.mark.anyio
async def test_messages_from_other_chats_are_ignored() -> None:
    broker = PromptBroker()
    pending = broker.open("42")

    assert broker.deliver("99", "not for you") is False
    assert not pending.future.done()
    broker.cancel_all()
    assert len(broker) == 0


@pytest.mark.anyio
async def test_timeout_removes_entry() -> None:
    broker = PromptBroker()
    pending = broker.open("42")

    response = await broker.wait(pending, timeout=0.01)

    assert response.success is False
    assert response.response == "Timeout: No response received"
    assert len(broker) == 0
    assert broker.deliver("42", "too late") is False


@pytest.mark.anyio
async def test_duplicate_correlation_id_rejected() -> None:
    broker = PromptBroker()
    broker.open("42", correlation_id="7")
    with pytest.raises(ValueError):
        broker.open("42", correlation_id="7")
    broker.cancel_all()


@pytest.mark.anyio
async def test_answer_arriving_while_waiting() -> None:
    broker = PromptBroker()
    pending = broker.open("42")

    loop = asyncio.get_running_loop()
    loop.call_later(0.01, broker.deliver, "42", "later")

    response = await broker.wait(pending, timeout=1)
    assert response.success is True
    assert response.response == "later"


@pytest.mark.anyio
async def test_rekey_routes_replies_to_the_new_id() -> None:
    broker = PromptBroker()
    first = broker.open("42")
    second = broker.open("42")

    broker.rekey(second, "555")

    assert second.correlation_id == "555"
    assert broker.deliver("42", "answer", reply_to="555") is True
    assert (await broker.wait(second, timeout=1)).response == "answer"
    assert not first.future.done()
    broker.cancel_all()


@pytest.mark.anyio
async def test_rekey_after_answer_is_a_no_op() -> None:
    broker = PromptBroker()
    pending = broker.open("42")
    broker.deliver("42", "early")

    broker.rekey(pending, "556")

    assert len(broker) == 0
    assert (await broker.wait(pending, timeout=1)).response == "early"


@pytest.mark.anyio
async def test_discard_drops_and_cancels() -> None:
    broker = PromptBroker()
    pending = broker.open("42")

    broker.discard(pending)

    assert len(broker) == 0
    assert pending.future.cancelled()
    assert broker.deliver("42", "late") is False
