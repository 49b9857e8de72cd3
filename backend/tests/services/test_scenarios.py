"""End-to-end flows across the channel directory and the message ledger."""

from datetime import timedelta

import pytest

from greycat.core.exceptions import ForbiddenException
from greycat.models.types import utcnow
from greycat.repositories.message_repository import MessageRepository


def test_history_pagination_covers_every_message_once(message_service, public_channel, alice, db):
    repo = MessageRepository(db)
    start = utcnow() - timedelta(hours=1)
    for i in range(120):
        repo.create_message(
            public_channel["id"], alice.id, f"msg-{i:03d}", created_at=start + timedelta(seconds=i)
        )
    db.commit()

    pages = [message_service.list_messages(public_channel["id"], page=p, limit=50) for p in range(3)]

    assert [len(page) for page in pages] == [50, 50, 20]
    combined = [m["text"] for page in reversed(pages) for m in page]
    assert combined == [f"msg-{i:03d}" for i in range(120)]
    assert message_service.list_messages(public_channel["id"], page=3, limit=50) == []


def test_team_chat_flow(channel_service, message_service, public_channel, alice, bob, listen, drain):
    channel_service.join(public_channel["id"], bob.id)
    conn = listen(public_channel["id"])

    sent = message_service.send(public_channel["id"], alice.id, "hello")
    message_service.toggle_reaction(sent["id"], bob.id, "🔥")

    history = message_service.list_messages(public_channel["id"])
    assert len(history) == 1
    assert history[0]["text"] == "hello"
    assert history[0]["reactions"] == [{"emoji": "🔥", "user": bob.id}]

    listed = next(c for c in channel_service.list_public() if c["id"] == public_channel["id"])
    assert listed["lastActivity"] == sent["createdAt"]

    assert [f["event"] for f in drain(conn)] == ["new_message", "reaction_updated"]


def test_private_channel_reads_are_open_but_posts_are_not(
    message_service, private_channel, alice, carol
):
    message_service.send(private_channel["id"], alice.id, "members only")

    history = message_service.list_messages(private_channel["id"])
    assert [m["text"] for m in history] == ["members only"]

    with pytest.raises(ForbiddenException):
        message_service.send(private_channel["id"], carol.id, "can I join?")
    assert len(message_service.list_messages(private_channel["id"])) == 1
