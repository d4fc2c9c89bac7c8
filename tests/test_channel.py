import pytest

from core.uploads.channel import ProgressChannel, SubscriberRegistry

from conftest import FailingSubscriber, RecordingSubscriber


def test_registry_register_and_unregister():
    reg = SubscriberRegistry()
    sub = RecordingSubscriber()
    reg.register("A", sub)
    reg.register("A", sub)
    assert "A" in reg and len(reg) == 1
    assert reg.subscribers("A") == [sub]

    assert reg.unregister("A", sub) is True
    assert reg.unregister("A", sub) is False
    assert "A" not in reg and reg.sessions() == []


@pytest.mark.asyncio
async def test_event_reaches_only_its_session():
    reg = SubscriberRegistry()
    a1, a2, b = RecordingSubscriber(), RecordingSubscriber(), RecordingSubscriber()
    reg.register("A", a1)
    reg.register("A", a2)
    reg.register("B", b)
    channel = ProgressChannel(reg)

    n = await channel.broadcast_to_session("A", "file-uploaded", {"processedAlready": 5, "filename": "x"})

    assert n == 2
    assert a1.events == a2.events == [("file-uploaded", {"processedAlready": 5, "filename": "x"})]
    assert b.events == []


@pytest.mark.asyncio
async def test_no_subscriber_drops_silently():
    channel = ProgressChannel(SubscriberRegistry())
    assert await channel.broadcast_to_session("nobody", "file-uploaded", {}) == 0


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_block_others():
    reg = SubscriberRegistry()
    ok = RecordingSubscriber()
    reg.register("A", FailingSubscriber())
    reg.register("A", ok)

    n = await ProgressChannel(reg).broadcast_to_session("A", "file-uploaded", {"processedAlready": 1, "filename": "f"})

    assert n == 1
    assert len(ok.events) == 1
