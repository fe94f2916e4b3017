"""Tests for MessageDispatcher."""

import asyncio
import logging
from unittest.mock import AsyncMock

import pytest

from devoupsagent.infra.backend.dispatcher import MessageDispatcher
from devoupsagent.models.message import Message


class TestMessageDispatcher:
    @pytest.mark.asyncio
    async def test_passes_message_and_respond(self):
        handler = AsyncMock()
        respond = AsyncMock()
        msg = Message(type="ping")

        await MessageDispatcher(handler).dispatch(msg, respond)

        handler.assert_awaited_once_with(msg, respond)

    @pytest.mark.asyncio
    async def test_handler_error_logged(self, caplog):
        handler = AsyncMock(side_effect=RuntimeError("bad"))

        with caplog.at_level(logging.ERROR):
            await MessageDispatcher(handler).dispatch(Message(type="command"), AsyncMock())

        assert "Handler failed for command message" in caplog.text

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        handler = AsyncMock(side_effect=asyncio.CancelledError())
        with pytest.raises(asyncio.CancelledError):
            await MessageDispatcher(handler).dispatch(Message(type="x"), AsyncMock())
