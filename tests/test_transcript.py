from __future__ import annotations

import asyncio

from bridge.transcript import TranscriptRecorder


def test_transcript_follows_receipt_order():
    recorder = TranscriptRecorder()
    recorder.add_user("I need a refill")
    recorder.add_agent("I can help with that")

    assert recorder.text() == "User: I need a refill\nAgent: I can help with that\n"


def test_user_text_is_stripped():
    recorder = TranscriptRecorder()
    recorder.add_user("  hello there \n")
    assert recorder.lines == [("User", "hello there")]


def test_flush_persists_once(fake_repository, patient):
    recorder = TranscriptRecorder()
    recorder.add_user("I need a refill")

    async def _run():
        first = await recorder.flush(fake_repository, patient)
        second = await recorder.flush(fake_repository, patient)
        return first, second

    first, second = asyncio.run(_run())
    assert (first, second) == (True, False)
    assert fake_repository.calls == [(patient.id, "User: I need a refill\n")]

    recorder.add_agent("late")
    assert recorder.text() == "User: I need a refill\n"


def test_flush_without_profile_is_skipped(fake_repository):
    recorder = TranscriptRecorder()
    recorder.add_agent("Hello")

    assert asyncio.run(recorder.flush(fake_repository, None)) is False
    assert fake_repository.calls == []
    assert recorder.flushed


def test_flush_swallows_storage_errors(fake_repository, patient):
    fake_repository.fail = True
    recorder = TranscriptRecorder()
    recorder.add_agent("Hello")

    assert asyncio.run(recorder.flush(fake_repository, patient)) is False
