"""Tests for the wire message envelope."""

import json

import pytest

from devoupsagent.models.message import (
    Message,
    MessageDecodeError,
    decode_message,
    encode_message,
    make_heartbeat,
    now_ms,
)


class TestMessage:
    def test_create(self):
        msg = Message(type="command", payload={"command": "ls"})
        assert msg.type == "command"
        assert msg.get("command") == "ls"
        assert msg.get("missing", "dflt") == "dflt"

    def test_empty_type_raises(self):
        with pytest.raises(ValueError, match="must have a type"):
            Message(type="")

    def test_frozen(self):
        msg = Message(type="ping")
        with pytest.raises(AttributeError):
            msg.type = "pong"

    def test_to_dict_flattens_payload(self):
        msg = Message(type="command_result", payload={"requestId": "r1", "error": False})
        assert msg.to_dict() == {"type": "command_result", "requestId": "r1", "error": False}

    def test_type_wins_over_payload_key(self):
        msg = Message(type="pong", payload={"type": "spoofed"})
        assert msg.to_dict()["type"] == "pong"

    def test_from_dict(self):
        msg = Message.from_dict({"type": "command", "command": "uptime", "requestId": 7})
        assert msg.type == "command"
        assert msg.payload == {"command": "uptime", "requestId": 7}

    @pytest.mark.parametrize("data", [{}, {"type": 3}, {"type": ""}, {"type": None}])
    def test_from_dict_requires_string_type(self, data):
        with pytest.raises(MessageDecodeError):
            Message.from_dict(data)


class TestDecode:
    def test_text_frame(self):
        msg = decode_message('{"type": "ping", "requestId": "a"}')
        assert msg == Message(type="ping", payload={"requestId": "a"})

    def test_binary_frame(self):
        msg = decode_message(b'{"type": "ping"}')
        assert msg.type == "ping"

    def test_invalid_utf8(self):
        with pytest.raises(MessageDecodeError, match="UTF-8"):
            decode_message(b"\xff\xfe")

    def test_invalid_json(self):
        with pytest.raises(MessageDecodeError, match="JSON"):
            decode_message("{nope")

    def test_non_object(self):
        with pytest.raises(MessageDecodeError, match="list"):
            decode_message("[1, 2, 3]")

    def test_decode_error_is_value_error(self):
        assert issubclass(MessageDecodeError, ValueError)


class TestEncode:
    def test_encode_is_single_json_object(self):
        text = encode_message(Message(type="status", payload={"load": 0.5}))
        assert json.loads(text) == {"type": "status", "load": 0.5}

    def test_encode_non_json_values_as_str(self):
        text = encode_message(Message(type="status", payload={"obj": object}))
        assert "class" in json.loads(text)["obj"]


class TestHeartbeat:
    def test_shape(self):
        before = now_ms()
        beat = make_heartbeat("web-1", "srv-9")
        assert beat.type == "heartbeat"
        assert beat.get("hostname") == "web-1"
        assert beat.get("serverId") == "srv-9"
        assert before <= beat.get("timestamp") <= now_ms()

    def test_missing_server_id_is_null(self):
        beat = make_heartbeat("web-1", "")
        assert json.loads(encode_message(beat))["serverId"] is None
