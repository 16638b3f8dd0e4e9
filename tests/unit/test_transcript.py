"""Unit tests for the conversation Transcript."""

import pytest

from ollachat.core.transcript import Transcript
from ollachat.infra.llm.base import Message, RawImage, Role
from ollachat.infra.llm.errors import InvariantViolation


class TestTranscript:
    def test_append_keeps_order(self):
        t = Transcript()
        t.append(Message(Role.USER, "a"))
        t.append(Message(Role.ASSISTANT, "b"))
        assert [m.content for m in t] == ["a", "b"]
        assert len(t) == 2
        assert t.last.role is Role.ASSISTANT

    def test_turn_lifecycle(self, transcript):
        placeholder = transcript.begin_turn()
        assert placeholder.role is Role.ASSISTANT and placeholder.content == ""
        assert transcript.in_flight
        transcript.amend("A")
        transcript.amend("AB")
        assert len(transcript) == 2
        assert [m.role for m in transcript] == [Role.USER, Role.ASSISTANT]
        assert transcript.last.content == "AB"
        transcript.finish_turn()
        assert not transcript.in_flight

    def test_extend_accumulates_deltas(self, transcript):
        transcript.begin_turn()
        for delta in ("Hel", "lo", " there"):
            transcript.extend(delta)
        assert transcript.last.content == "Hello there"
        transcript.extend("!")
        assert transcript[-1].content == "Hello there!"
        transcript.amend("Reset")
        transcript.extend(".")
        transcript.finish_turn()
        assert transcript.last.content == "Reset."
        with pytest.raises(InvariantViolation):
            transcript.extend("late")

    def test_amend_requires_in_flight_turn(self, transcript):
        with pytest.raises(InvariantViolation):
            transcript.amend("nope")
        transcript.append(Message(Role.ASSISTANT, "done"))
        with pytest.raises(InvariantViolation):
            transcript.amend("still no")

    def test_amend_after_finish_is_refused(self, transcript):
        transcript.begin_turn()
        transcript.finish_turn()
        with pytest.raises(InvariantViolation):
            transcript.amend("late")

    def test_only_one_turn_in_flight(self, transcript):
        transcript.begin_turn()
        with pytest.raises(InvariantViolation):
            transcript.begin_turn()
        with pytest.raises(InvariantViolation):
            transcript.append(Message(Role.USER, "interleaved"))
        with pytest.raises(InvariantViolation):
            transcript.clear()
        assert len(transcript) == 2

    def test_snapshot_prefixes_system_and_drops_placeholders(self, transcript):
        transcript.begin_turn()
        snap = transcript.snapshot_for_request("Be terse.")
        assert [(m.role, m.content) for m in snap] == [
            (Role.SYSTEM, "Be terse."),
            (Role.USER, "Hi there"),
        ]

    def test_snapshot_keeps_image_only_messages(self):
        t = Transcript([Message(Role.USER, "", (RawImage(b"\xff\xd8"),)),
                        Message(Role.ASSISTANT, "")])
        snap = t.snapshot_for_request("sys")
        assert len(snap) == 2
        assert snap[1].images == (RawImage(b"\xff\xd8"),)

    def test_snapshot_is_a_copy(self, transcript):
        snap = transcript.snapshot_for_request("sys")
        snap.append(Message(Role.USER, "extra"))
        assert len(transcript) == 1

    def test_clear(self, transcript):
        transcript.clear()
        assert len(transcript) == 0
        assert transcript.last is None
