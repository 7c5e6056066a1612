"""
Part records and the in-memory stores.
"""

import pytest

from reloop.domain import (
    DataProgressPart,
    Message,
    MessageRole,
    ReasoningPart,
    RunRecord,
    RunStatus,
    SourceUrlPart,
    StepStartChunk,
    TextDeltaChunk,
    TextPart,
    ToolApproval,
    ToolPart,
    ToolState,
)
from reloop.storage import (
    DEFAULT_CHAT_TITLE,
    PartRecordType,
    PersistenceError,
    part_to_record,
    record_to_part,
)
from reloop.storage.records import InvalidPartError


def test_tool_part_record_shape():
    part = ToolPart(
        tool_call_id="call_1",
        tool_name="count_characters",
        state=ToolState.OUTPUT_AVAILABLE,
        input={"text": "hi"},
        output={"characterCount": 2},
    )

    record = part_to_record(part, "chat_1", "msg_1", 3)

    assert record.type == PartRecordType.TOOL
    assert record.state == "output-available"
    assert record.tool_type == "tool-count_characters"
    assert record.position == 3
    assert record_to_part(record) == part


def test_denied_tool_part_keeps_its_approval():
    part = ToolPart(
        tool_call_id="call_1",
        tool_name="delete_draft",
        state=ToolState.OUTPUT_DENIED,
        input={"draft_id": "d1"},
        approval=ToolApproval(id="a1", approved=False, reason="not now"),
    )

    restored = record_to_part(part_to_record(part, "chat_1", "msg_1", 0))

    assert restored.approval == ToolApproval(id="a1", approved=False, reason="not now")


def test_non_terminal_tool_part_is_rejected():
    part = ToolPart(tool_call_id="call_1", tool_name="echo", state=ToolState.INPUT_AVAILABLE)

    with pytest.raises(InvalidPartError):
        part_to_record(part, "chat_1", "msg_1", 0)


def test_denied_part_without_approval_is_rejected():
    part = ToolPart(tool_call_id="call_1", tool_name="echo", state=ToolState.OUTPUT_DENIED)

    with pytest.raises(InvalidPartError):
        part_to_record(part, "chat_1", "msg_1", 0)


def test_streaming_text_state_survives_storage():
    part = TextPart(text="partial", state="streaming")

    record = part_to_record(part, "chat_1", "msg_1", 0)

    assert record.type == PartRecordType.TEXT
    assert record.state == "streaming"
    assert record_to_part(record) == part


@pytest.mark.asyncio
async def test_parts_are_appended_in_production_order(message_store):
    await message_store.ensure_chat("chat_1", "user_1")
    await message_store.create_message("chat_1", "msg_1", run_id="run_1")

    await message_store.insert_parts(
        "chat_1", "msg_1", [ReasoningPart(text="hm", state="done"), TextPart(text="a", state="done")]
    )
    await message_store.insert_parts(
        "chat_1",
        "msg_1",
        [
            SourceUrlPart(source_id="s1", url="https://example.com"),
            DataProgressPart(data={"text": "note"}),
        ],
    )

    [message] = await message_store.get_chat_messages("chat_1")
    assert message.run_id == "run_1"
    assert [p.type for p in message.parts] == ["reasoning", "text", "source-url", "data-progress"]
    assert [r.position for r in message_store.parts["msg_1"]] == [0, 1, 2, 3]


@pytest.mark.asyncio
async def test_empty_assistant_placeholder_reads_back_as_interrupted(message_store):
    await message_store.persist_message(
        "chat_1", Message(role=MessageRole.USER, parts=[TextPart(text="hi", state="done")])
    )
    await message_store.create_message("chat_1", "msg_2", run_id="run_1")

    user, placeholder = await message_store.get_chat_messages("chat_1")

    assert not user.is_interrupted
    assert placeholder.is_interrupted


@pytest.mark.asyncio
async def test_chat_ownership(message_store):
    assert await message_store.ensure_chat("chat_1", "alice") is True
    assert await message_store.ensure_chat("chat_1", "bob") is False
    assert await message_store.verify_chat_ownership("chat_1", "alice") is True
    assert await message_store.verify_chat_ownership("chat_1", "bob") is False
    assert await message_store.verify_chat_ownership("chat_2", "alice") is False


@pytest.mark.asyncio
async def test_parts_for_unknown_message_are_rejected(message_store):
    with pytest.raises(PersistenceError):
        await message_store.insert_parts("chat_1", "missing", [TextPart(text="x")])


@pytest.mark.asyncio
async def test_event_log_accepts_only_the_next_index(run_store):
    run = RunRecord(chat_id="chat_1")
    await run_store.create_run(run)

    await run_store.append_event(run.id, 0, StepStartChunk())
    await run_store.append_event(run.id, 1, TextDeltaChunk(id="t1", delta="hi"))

    with pytest.raises(PersistenceError):
        await run_store.append_event(run.id, 1, TextDeltaChunk(id="t1", delta="dup"))
    with pytest.raises(PersistenceError):
        await run_store.append_event(run.id, 5, TextDeltaChunk(id="t1", delta="gap"))

    assert await run_store.count_events(run.id) == 2
    assert await run_store.get_events(run.id, 1) == [TextDeltaChunk(id="t1", delta="hi")]


@pytest.mark.asyncio
async def test_run_status_update(run_store):
    run = RunRecord()
    await run_store.create_run(run)

    await run_store.update_run(run.id, RunStatus.FAILED, error="boom")

    stored = await run_store.get_run(run.id)
    assert stored.status == RunStatus.FAILED
    assert stored.error == "boom"
    assert stored.completed is False
    assert run.status == RunStatus.RUNNING

    with pytest.raises(PersistenceError):
        await run_store.update_run("run_missing", RunStatus.COMPLETED)


@pytest.mark.asyncio
async def test_message_with_unstorable_part_leaves_no_row(message_store):
    pending = ToolPart(tool_call_id="call_1", tool_name="echo", state=ToolState.INPUT_AVAILABLE)
    message = Message(role=MessageRole.ASSISTANT, parts=[TextPart(text="a"), pending])

    with pytest.raises(InvalidPartError):
        await message_store.persist_message("chat_1", message, run_id="run_1")

    assert await message_store.get_chat_messages("chat_1") == []
    assert message.id not in message_store.parts


@pytest.mark.asyncio
async def test_chat_title(message_store):
    assert await message_store.get_chat_title("chat_1") is None

    await message_store.ensure_chat("chat_1", "alice")
    assert await message_store.get_chat_title("chat_1") == DEFAULT_CHAT_TITLE

    await message_store.set_chat_title("chat_1", "Launch Tweet")
    assert await message_store.get_chat_title("chat_1") == "Launch Tweet"

    with pytest.raises(PersistenceError):
        await message_store.set_chat_title("chat_2", "Nope")
