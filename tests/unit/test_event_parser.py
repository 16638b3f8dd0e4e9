"""Unit tests for reading NDJSON chat frames."""

import logging

from ollachat.infra.llm.event_parser import EventParser


class TestParse:
    def test_content_delta(self):
        assert EventParser().parse('{"message":{"role":"assistant","content":"hi"}}') == "hi"

    def test_non_json_frame_is_skipped(self):
        parser = EventParser()
        frames = ["not json", '{"message":{"content":"hi"}}']
        deltas = [d for d in map(parser.parse, frames) if d is not None]
        assert deltas == ["hi"]
        assert parser.skipped == 1

    def test_frames_without_content_are_noops(self):
        parser = EventParser()
        for frame in ('{"done":false}', '[1,2]', '"text"', '{"message":"hi"}',
                      '{"message":{"content":5}}', '{"message":{"content":""}}'):
            assert parser.parse(frame) is None
        assert parser.skipped == 6

    def test_skips_are_logged_not_raised(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="stream"):
            assert EventParser().parse("{broken") is None
        assert "Skipped frame" in caplog.text


class TestDecode:
    def test_delta_event(self):
        events = EventParser().decode('{"message":{"content":"Hel"},"done":false}')
        assert [(e.type, e.text) for e in events] == [("delta", "Hel")]

    def test_done_frame_carries_reason_and_usage(self):
        events = EventParser().decode(
            '{"message":{"content":""},"done":true,"done_reason":"stop",'
            '"prompt_eval_count":12,"eval_count":34,"total_duration":99}'
        )
        assert len(events) == 1
        end = events[0]
        assert end.type == "end"
        assert end.finish_reason == "stop"
        assert end.usage == {"prompt_eval_count": 12, "eval_count": 34, "total_duration": 99}

    def test_last_delta_and_done_in_one_frame(self):
        events = EventParser().decode('{"message":{"content":"!"},"done":true}')
        assert [e.type for e in events] == ["delta", "end"]
        assert events[1].finish_reason is None

    def test_backend_error_frame(self):
        events = EventParser().decode('{"error":"model \\"x\\" not found"}')
        assert events[0].type == "error"
        assert events[0].error == 'model "x" not found'

    def test_heartbeat_is_skipped(self):
        parser = EventParser()
        assert parser.decode('{"status":"alive"}') == []
        assert parser.decode("garbage") == []
        assert parser.skipped == 2
