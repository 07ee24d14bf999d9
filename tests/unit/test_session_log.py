"""Tests for nodebanana.core.session_log - structured run logs."""

from __future__ import annotations

import json
import os
import time

from nodebanana.core.session_log import (
    FileLogSink,
    SessionLogger,
    new_session_id,
    sanitize_context,
)


class TestSanitizeContext:
    def test_long_prompt_truncated(self):
        result = sanitize_context({"prompt": "x" * 250})

        assert result["prompt"] == "x" * 200 + "...[truncated]"

    def test_short_prompt_kept(self):
        assert sanitize_context({"prompt": "short"}) == {"prompt": "short"}

    def test_image_summarised(self):
        result = sanitize_context({"image": "data:image/png;base64," + "A" * 4096})

        assert result["image"] == {"format": "png", "sizeKB": 3, "isDataURI": True}

    def test_image_list_summarised(self):
        result = sanitize_context({"images": ["data:image/jpeg;base64,AAAA", "plain"]})

        assert result["images"][0]["format"] == "jpeg"
        assert result["images"][1] == "plain"

    def test_nested_dicts(self):
        result = sanitize_context({"request": {"prompt": "y" * 300, "count": 2}})

        assert result["request"]["prompt"].endswith("...[truncated]")
        assert result["request"]["count"] == 2


class TestSessionLogger:
    def test_session_id_format(self):
        assert new_session_id().startswith("exec-")

    def test_entries_collected(self):
        session_log = SessionLogger()
        session_log.start_session()

        session_log.info("workflow.start", "started", {"nodeCount": 2})
        session_log.error("node.error", "broke", {"nodeId": "n"}, RuntimeError("boom"))
        session = session_log.end_session()

        messages = [entry.message for entry in session.entries]
        assert "started" in messages
        error_entry = next(entry for entry in session.entries if entry.level == "error")
        assert error_entry.error["message"] == "boom"
        assert error_entry.error["name"] == "RuntimeError"
        assert session.end_time is not None
        assert session_log.current_session is None
        assert session_log.last_session is session

    def test_log_without_session_is_not_recorded(self):
        session_log = SessionLogger()

        session_log.info("system", "nobody listening")

        assert session_log.current_session is None

    def test_end_without_session(self):
        assert SessionLogger().end_session() is None

    def test_starting_flushes_open_session(self, temp_dir):
        session_log = SessionLogger(FileLogSink(temp_dir))
        first = session_log.start_session()

        session_log.start_session()

        assert (temp_dir / f"{first}.json").exists()


class TestFileLogSink:
    def test_written_with_camel_case_keys(self, temp_dir):
        session_log = SessionLogger(FileLogSink(temp_dir))
        session_id = session_log.start_session()
        session_log.info("api.gemini", "calling", {"prompt": "p"})
        session_log.end_session()

        payload = json.loads((temp_dir / f"{session_id}.json").read_text())

        assert payload["sessionId"] == session_id
        assert payload["startTime"] and payload["endTime"]
        assert any(entry["category"] == "api.gemini" for entry in payload["entries"])

    def test_rotation_keeps_newest(self, temp_dir):
        for index in range(5):
            path = temp_dir / f"exec-old-{index}.json"
            path.write_text("{}")
            stamp = time.time() - 1000 + index
            os.utime(path, (stamp, stamp))

        FileLogSink(temp_dir, max_sessions=3).rotate()

        remaining = sorted(path.name for path in temp_dir.glob("exec-*.json"))
        assert remaining == ["exec-old-2.json", "exec-old-3.json", "exec-old-4.json"]
