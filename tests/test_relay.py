from __future__ import annotations

import asyncio
import logging
from typing import Optional

import pytest

from core.bridges import Bridge
from core.models import Attachment, CrossMessage, RenderedPayload
from core.ports import TELEGRAM_TO_DISCORD
from core.relay import RelayExecutor, chunk_text, file_too_large_notice
from fakes import FakeDestination, FakeStore, make_bridge


def _payload(text: str, bridge: Optional[Bridge] = None, attachment: Optional[Attachment] = None) -> RenderedPayload:
    return RenderedPayload(
        bridge=bridge or make_bridge(),
        header="**Alice**",
        sender_name="Alice",
        text=text,
        attachment=attachment,
    )


def test_chunk_text_splits_into_ceil_pieces() -> None:
    text = "x" * 4500
    chunks = chunk_text(text, 2000)

    assert [len(chunk) for chunk in chunks] == [2000, 2000, 500]
    assert "".join(chunks) == text
    assert chunk_text("", 2000) == []
    assert chunk_text("exact", 5) == ["exact"]


def test_chunk_text_rejects_non_positive_limit() -> None:
    with pytest.raises(ValueError):
        chunk_text("text", 0)


def test_hello_is_sent_once_and_recorded() -> None:
    destination = FakeDestination()
    store = FakeStore()
    executor = RelayExecutor(destination, store, message_limit=2000)

    asyncio.run(executor.relay(CrossMessage(message_id=1), [_payload("hello")]))

    assert destination.sent == [("555", "**Alice**\nhello", None)]
    assert store.entries == {(TELEGRAM_TO_DISCORD, "general", 1): ["101"]}


def test_long_message_is_chunked_in_order_with_watermark_last() -> None:
    destination = FakeDestination()
    store = FakeStore()
    executor = RelayExecutor(destination, store, message_limit=2000, watermark="\n-- wm")
    payload = _payload("y" * 4500)

    sent = asyncio.run(executor.relay_one(CrossMessage(message_id=9), payload))

    texts = [text for _, text, _ in destination.sent]
    assert len(texts) == 3
    assert "".join(texts) == payload.message_text + "\n-- wm"
    assert texts[-1].endswith("\n-- wm")
    assert not any(text.endswith("\n-- wm") for text in texts[:-1])
    assert sent == ["101", "102", "103"]
    assert store.lookup(TELEGRAM_TO_DISCORD, "general", 9) == sent


def test_attachment_goes_with_first_chunk() -> None:
    destination = FakeDestination()
    executor = RelayExecutor(destination, FakeStore(), message_limit=2000)
    attachment = Attachment("photo.jpg", "https://files/p1")

    asyncio.run(executor.relay_one(CrossMessage(message_id=2), _payload("look", attachment=attachment)))

    assert destination.sent == [("555", "**Alice**\nlook", attachment)]


def test_too_large_attachment_is_replaced_by_notice() -> None:
    destination = FakeDestination(attachment_too_large=True)
    store = FakeStore()
    executor = RelayExecutor(destination, store, message_limit=2000)
    attachment = Attachment("huge.iso", "https://files/d1")

    asyncio.run(executor.relay_one(CrossMessage(message_id=2), _payload("see file", attachment=attachment)))

    assert destination.sent == [
        ("555", file_too_large_notice("Alice"), None),
        ("555", "**Alice**\nsee file", None),
    ]
    assert store.lookup(TELEGRAM_TO_DISCORD, "general", 2) == ["101", "102"]


def test_failure_on_one_bridge_does_not_block_others(caplog) -> None:
    destination = FakeDestination(failing_channels=["bad"])
    store = FakeStore()
    executor = RelayExecutor(destination, store, message_limit=2000)
    broken = make_bridge("broken", channel_id="bad")
    healthy = make_bridge("healthy", channel_id="good")

    with caplog.at_level(logging.ERROR):
        asyncio.run(executor.relay(CrossMessage(message_id=4), [_payload("hi", broken), _payload("hi", healthy)]))

    assert destination.sent == [("good", "**Alice**\nhi", None)]
    assert list(store.entries) == [(TELEGRAM_TO_DISCORD, "healthy", 4)]
    assert "broken" in caplog.text
