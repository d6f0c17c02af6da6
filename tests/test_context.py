from __future__ import annotations

import pytest

from gofer.core.context import ExecutionContext, TaskContext
from tests.helpers.fakes import RecordingSink, StaticPrompter, make_context


@pytest.mark.anyio
async def test_post_is_delivered_on_flush() -> None:
    sink = RecordingSink()
    context = make_context(sink)

    context.post("one")
    context.post("two")
    await context.flush()

    assert sink.messages == ["one", "two"]


@pytest.mark.anyio
async def test_failed_delivery_is_swallowed() -> None:
    context = make_context(RecordingSink(fail=True))

    context.post("lost")
    await context.flush()

    assert await context.notify("also lost") is False


@pytest.mark.anyio
async def test_contexts_are_independent() -> None:
    first, second = RecordingSink(), RecordingSink()
    a = TaskContext(channel=ExecutionContext.TELEGRAM, sink=first)
    b = TaskContext(channel=ExecutionContext.REPL, sink=second)

    await a.notify("for a")
    await b.notify("for b")

    assert first.messages == ["for a"]
    assert second.messages == ["for b"]
    assert a.task_id != b.task_id


@pytest.mark.anyio
async def test_ask_without_prompter() -> None:
    response = await make_context().ask("anyone?")
    assert response.success is False


@pytest.mark.anyio
async def test_ask_uses_prompter() -> None:
    prompter = StaticPrompter("blue")
    response = await make_context(prompter=prompter).ask("favourite colour?")
    assert response.response == "blue"
    assert prompter.prompts == ["favourite colour?"]
