"""Tests for commitstream.streaming.consumer — state reducer and HTTP client."""

from __future__ import annotations

import json
from contextlib import aclosing

import httpx
import pytest

from commitstream.schemas.frames import DoneFrame, ErrorFrame, ReasoningDelta, TextDelta
from commitstream.schemas.generation import StepResult, UsageStats
from commitstream.schemas.streaming import ClientStreamState
from commitstream.streaming.consumer import StreamConsumer, reduce_state
from commitstream.streaming.protocol import SSE_HEADERS, encode_frame

_STEP = StepResult(
    model="openai/gpt-4.1-mini",
    output="feat: add x",
    usage=UsageStats(prompt_tokens=100, completion_tokens=50, total_tokens=150),
)


def _done_record(message: str = "feat: add x") -> dict:
    return DoneFrame(commit_message=message, step=_STEP).to_wire()


def _fold(records: list[dict]) -> ClientStreamState:
    state = ClientStreamState.started()
    for record in records:
        state = reduce_state(state, record)
    return state


def _stream_body(*frames) -> bytes:
    return b"".join(encode_frame(f) for f in frames)


class _TrackedStream(httpx.AsyncByteStream):
    """Response body that hands out one chunk per read and records closing."""

    def __init__(self, chunks: list[bytes]) -> None:
        self._chunks = chunks
        self.sent = 0
        self.closed = False

    async def __aiter__(self):
        for chunk in self._chunks:
            self.sent += 1
            yield chunk

    async def aclose(self) -> None:
        self.closed = True


def _consumer(handler, **kwargs) -> tuple[StreamConsumer, httpx.AsyncClient]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return StreamConsumer("http://testserver", client=client, **kwargs), client


# ══════════════════════════════════════════════════════════════════
# reduce_state
# ══════════════════════════════════════════════════════════════════


class TestReduceState:
    def test_started_state(self):
        state = ClientStreamState.started()
        assert state.loading is True
        assert state.error == ""
        assert state.result is None
        assert state.streaming_reasoning == ""
        assert state.streaming_text == ""

    def test_deltas_concatenate_in_arrival_order(self):
        state = _fold([
            {"type": "reasoning-delta", "text": "Look"},
            {"type": "text-delta", "text": "feat"},
            {"type": "reasoning-delta", "text": "ing"},
            {"type": "text-delta", "text": ": add"},
            {"type": "text-delta", "text": " x"},
        ])
        assert state.streaming_reasoning == "Looking"
        assert state.streaming_text == "feat: add x"

    def test_done_sets_result_and_clears_accumulators(self):
        before = _fold([
            {"type": "reasoning-delta", "text": "r"},
            {"type": "text-delta", "text": "t"},
        ])
        after = reduce_state(before, _done_record())

        assert after.result is not None
        assert after.result.commit_message == "feat: add x"
        assert after.result.step == _STEP
        assert after.streaming_reasoning == ""
        assert after.streaming_text == ""

    def test_frames_after_done_are_ignored(self):
        state = _fold([
            _done_record(),
            {"type": "text-delta", "text": "late"},
            {"type": "error", "message": "late error"},
        ])
        assert state.streaming_text == ""
        assert state.error == ""
        assert state.result is not None

    def test_error_sets_message_only(self):
        state = _fold([
            {"type": "text-delta", "text": "partial"},
            {"type": "error", "message": "Rate limited"},
        ])
        assert state.error == "Rate limited"
        assert state.streaming_text == "partial"
        assert state.loading is True

    def test_unknown_type_is_ignored(self):
        before = ClientStreamState.started()
        assert reduce_state(before, {"type": "ping"}) is before
        assert reduce_state(before, {"no": "type"}) is before

    def test_invalid_known_frame_is_ignored(self):
        before = ClientStreamState.started()
        assert reduce_state(before, {"type": "text-delta"}) is before
        assert reduce_state(before, {"type": "done", "commitMessage": "x"}) is before

    def test_reducer_does_not_mutate_input(self):
        before = ClientStreamState.started()
        reduce_state(before, {"type": "text-delta", "text": "x"})
        assert before.streaming_text == ""


# ══════════════════════════════════════════════════════════════════
# StreamConsumer
# ══════════════════════════════════════════════════════════════════


class TestStreamConsumer:
    @pytest.mark.asyncio
    async def test_successful_stream(self):
        body = _stream_body(
            ReasoningDelta(text="thinking"),
            TextDelta(text="feat: "),
            TextDelta(text="add x"),
            DoneFrame(commit_message="feat: add x", step=_STEP),
        )

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, headers=SSE_HEADERS, content=body)

        consumer, client = _consumer(handler)
        async with client:
            states = [s async for s in consumer.request("diff --git a b", "openai/gpt-4.1-mini")]

        assert states[0].loading is True
        assert states[0].result is None
        assert any(s.streaming_text == "feat: " for s in states)
        assert any(s.streaming_reasoning == "thinking" for s in states)

        final = states[-1]
        assert final.loading is False
        assert final.error == ""
        assert final.result is not None
        assert final.result.commit_message == "feat: add x"
        assert final.streaming_text == ""
        assert final.streaming_reasoning == ""
        assert consumer.state == final

    @pytest.mark.asyncio
    async def test_sends_diff_and_model(self):
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, content=_stream_body(ErrorFrame(message="x")))

        consumer, client = _consumer(handler)
        async with client:
            await consumer.generate("the diff", "anthropic/claude-haiku-4.5")

        assert len(captured) == 1
        assert captured[0].method == "POST"
        assert captured[0].url.path == "/api/generate"
        assert json.loads(captured[0].content) == {
            "diff": "the diff", "model": "anthropic/claude-haiku-4.5",
        }

    @pytest.mark.asyncio
    async def test_server_error_frame(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, content=_stream_body(ErrorFrame(message="No diff provided")),
            )

        consumer, client = _consumer(handler)
        async with client:
            final = await consumer.generate("", "m")

        assert final.error == "No diff provided"
        assert final.loading is False
        assert final.result is None

    @pytest.mark.asyncio
    async def test_non_success_status_surfaces_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="upstream exploded")

        consumer, client = _consumer(handler)
        async with client:
            final = await consumer.generate("d", "m")

        assert final.error == "upstream exploded"
        assert final.loading is False

    @pytest.mark.asyncio
    async def test_non_success_empty_body_falls_back(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        consumer, client = _consumer(handler)
        async with client:
            final = await consumer.generate("d", "m")

        assert final.error == "Request failed"
        assert final.loading is False

    @pytest.mark.asyncio
    async def test_network_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused")

        consumer, client = _consumer(handler)
        async with client:
            final = await consumer.generate("d", "m")

        assert final.error == "connection refused"
        assert final.loading is False

    @pytest.mark.asyncio
    async def test_stops_after_done(self):
        body = _stream_body(
            DoneFrame(commit_message="feat: add x", step=_STEP),
            TextDelta(text="trailing"),
        )

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=body)

        consumer, client = _consumer(handler)
        async with client:
            states = [s async for s in consumer.request("d", "m")]

        assert all(s.streaming_text != "trailing" for s in states)
        assert states[-1].result is not None

    @pytest.mark.asyncio
    async def test_stops_after_error(self):
        body = _stream_body(
            TextDelta(text="partial"),
            ErrorFrame(message="Rate limited"),
            TextDelta(text=" trailing"),
        )

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=body)

        consumer, client = _consumer(handler)
        async with client:
            final = await consumer.generate("d", "m")

        assert final.error == "Rate limited"
        assert final.streaming_text == "partial"
        assert final.loading is False

    @pytest.mark.asyncio
    async def test_closing_early_closes_response(self):
        stream = _TrackedStream([
            encode_frame(TextDelta(text="feat")),
            encode_frame(TextDelta(text=": add x")),
            encode_frame(DoneFrame(commit_message="feat: add x", step=_STEP)),
        ])

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, headers=SSE_HEADERS, stream=stream)

        consumer, client = _consumer(handler)
        async with client:
            async with aclosing(consumer.request("d", "m")) as states:
                async for state in states:
                    if state.streaming_text:
                        break

        assert stream.closed is True
        assert stream.sent == 1
        assert consumer.state.streaming_text == "feat"
        assert consumer.state.result is None

    @pytest.mark.asyncio
    async def test_malformed_frame_between_good_frames(self):
        body = (
            encode_frame(TextDelta(text="a"))
            + b"data: {not json\n\n"
            + encode_frame(TextDelta(text="b"))
            + encode_frame(ErrorFrame(message="stop"))
        )

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=body)

        seen: list[ClientStreamState] = []
        consumer, client = _consumer(handler, on_state=seen.append)
        async with client:
            final = await consumer.generate("d", "m")

        assert final.streaming_text == "ab"
        assert final.error == "stop"
        assert seen[0].loading is True
        assert seen[-1] == final

    @pytest.mark.asyncio
    async def test_every_exit_path_ends_not_loading(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"")

        consumer, client = _consumer(handler)
        async with client:
            final = await consumer.generate("d", "m")

        assert final.loading is False
        assert final.result is None
        assert final.error == ""
