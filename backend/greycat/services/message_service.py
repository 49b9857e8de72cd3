# backend/greycat/services/message_service.py
"""
Message Ledger service.

Handles message lifecycle within channels:
- Sending (user and system messages) and paginated history
- Hard delete (author or moderator) and soft delete (tombstone)
- Reaction toggling, edits, pins and thread replies

Every mutation follows the same sequence:
    authorize → commit → touch activity (send only) → broadcast

Broadcasting happens strictly after the commit and is best-effort: a
broadcast failure is logged and never turns a committed mutation into
a reported failure.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    ForbiddenException,
    MessageTombstonedException,
    NotFoundException,
    ValidationException,
)
from ..models.channel import Channel
from ..models.message import Message
from ..repositories.message_repository import MessageRepository
from .activity_service import ActivityTracker
from .base import BaseService
from .channel_service import ChannelService
from .messaging.events import (
    build_message_deleted_event,
    build_message_edited_event,
    build_message_pinned_event,
    build_new_message_event,
    build_reaction_updated_event,
    build_reply_added_event,
    serialize_message,
)
from .messaging.hub import BroadcastHub
from .user_directory import UserDirectory

logger = logging.getLogger(__name__)

EMOJI_MAX_LENGTH = 32
MAX_ATTACHMENTS = 10


class MessageService(BaseService):
    """
    Service layer for channel messages.

    The broadcast hub is injected; without one, mutations still persist
    and simply publish nothing.
    """

    def __init__(
        self,
        db: Session,
        hub: Optional[BroadcastHub] = None,
        users: Optional[UserDirectory] = None,
        channels: Optional[ChannelService] = None,
        activity: Optional[ActivityTracker] = None,
        message_repository: Optional[MessageRepository] = None,
    ):
        super().__init__(db)
        self.hub = hub
        self.users = users or UserDirectory(db)
        self.channels = channels or ChannelService(db, users=self.users)
        self.activity = activity or ActivityTracker(db)
        self.message_repository = message_repository or MessageRepository(db)

    # Sending

    @BaseService.measure_operation("send_message")
    def send(
        self,
        channel_id: str,
        author_id: str,
        text: Optional[str] = "",
        attachments: Optional[Sequence[str]] = None,
    ) -> Dict[str, Any]:
        """
        Post a message to a channel.

        Empty text with no attachments is accepted.

        Raises:
            NotFoundException: If the channel does not exist
            ForbiddenException: If the channel is private and the author
                is not a member
            ValidationException: If the text or attachments are too large
        """
        body = (text or "").strip()
        files = self._validate_content(body, attachments)

        channel = self.channels.get_channel_or_raise(channel_id)
        if channel.is_private and not self.channels.is_member(channel.id, author_id):
            raise ForbiddenException("Private channel: join first", code="NOT_A_MEMBER")

        with self.transaction():
            message = self.message_repository.create_message(
                channel_id=channel.id,
                user_id=author_id,
                text=body,
                attachments=files,
            )

        self.activity.touch(channel.id, at=message.created_at)

        payload = self._present(message.id)
        self._publish(channel.id, build_new_message_event(payload))
        self.log_operation("send_message", channel_id=channel.id, message_id=message.id)
        return payload

    @BaseService.measure_operation("post_system_message")
    def post_system_message(self, channel_id: str, text: str) -> Dict[str, Any]:
        """Post an authorless system message (e.g. announcements)."""
        channel = self.channels.get_channel_or_raise(channel_id)
        self._validate_content(text, None)

        with self.transaction():
            message = self.message_repository.create_message(
                channel_id=channel.id, user_id=None, text=text, system=True
            )

        self.activity.touch(channel.id, at=message.created_at)

        payload = self._present(message.id)
        self._publish(channel.id, build_new_message_event(payload))
        return payload

    # Reading

    @BaseService.measure_operation("list_messages")
    def list_messages(
        self, channel_id: str, page: int = 0, limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        One page of a channel's history, oldest to newest.

        Page 0 holds the newest ``limit`` messages. Reading is not
        restricted to members, even for private channels, and an unknown
        channel simply has no messages.
        """
        page_size = settings.message_page_size_default if limit is None else limit
        if page < 0 or page_size < 0:
            raise ValidationException("page and limit must not be negative", code="INVALID_PAGE")

        messages = self.message_repository.find_by_channel(
            channel_id, skip=page * page_size, limit=page_size
        )
        messages.reverse()
        return self._serialize_many(messages)

    @BaseService.measure_operation("get_message")
    def get_message(self, message_id: str) -> Dict[str, Any]:
        """Resolve one message; tombstoned messages stay resolvable."""
        return self._present(message_id)

    # Deletion

    @BaseService.measure_operation("delete_message")
    def delete(self, message_id: str, requester_id: str) -> str:
        """
        Hard-delete a message. Allowed for its author or a channel moderator.

        Returns:
            The id of the removed message
        """
        message = self._get_message_or_raise(message_id)
        channel = self.channels.get_channel_or_raise(message.channel_id)
        self._require_author_or_moderator(message, channel, requester_id)

        with self.transaction():
            self.message_repository.delete(message.id)

        self._publish(channel.id, build_message_deleted_event(channel.id, message.id))
        self.log_operation("delete_message", message_id=message.id, deleted_by=requester_id)
        return message.id

    @BaseService.measure_operation("soft_delete_message")
    def soft_delete(self, message_id: str, requester_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Tombstone a message: clear its text, attachments and reactions.

        When ``requester_id`` is given it must be the author or a moderator;
        internal callers may omit it. Soft-deleting an already tombstoned
        message is a no-op.
        """
        message = self._get_message_or_raise(message_id)
        channel = self.channels.get_channel_or_raise(message.channel_id)
        if requester_id is not None:
            self._require_author_or_moderator(message, channel, requester_id)

        with self.transaction():
            changed = self.message_repository.soft_delete_message(message.id)

        payload = self._present(message.id)
        if changed:
            self._publish(
                channel.id, build_message_deleted_event(channel.id, message.id, soft=True)
            )
            self.log_operation("soft_delete_message", message_id=message.id)
        return payload

    # Reactions

    @BaseService.measure_operation("toggle_reaction")
    def toggle_reaction(self, message_id: str, user_id: str, emoji: Optional[str]) -> Dict[str, Any]:
        """
        Toggle the (emoji, user) reaction on an active message.

        A second identical call always undoes the first.

        Raises:
            ValidationException: If the emoji is missing
            NotFoundException: If the message does not exist
            MessageTombstonedException: If the message was soft-deleted
            ForbiddenException: If the channel is private and the user is
                not a member
        """
        glyph = (emoji or "").strip()
        if not glyph:
            raise ValidationException("Missing emoji", code="MISSING_EMOJI")
        if len(glyph) > EMOJI_MAX_LENGTH:
            raise ValidationException("Emoji is too long", code="INVALID_EMOJI")

        message = self._get_active_message_or_raise(message_id)
        self._require_post_access(message.channel_id, user_id)

        with self.transaction():
            action = self.message_repository.toggle_reaction(message.id, user_id, glyph)
            self._ensure_still_active(message.id)

        payload = self._present(message.id)
        self._publish(message.channel_id, build_reaction_updated_event(payload))
        self.logger.info(
            f"Reaction {glyph} {action} by {user_id} on message {message.id}",
            extra={"message_id": message.id, "action": action},
        )
        return payload

    # Edits and pins

    @BaseService.measure_operation("edit_message")
    def edit(self, message_id: str, user_id: str, text: str) -> Dict[str, Any]:
        """Replace the text of an active message. Author only."""
        body = (text or "").strip()
        message = self._get_active_message_or_raise(message_id)
        if message.user_id != user_id:
            raise ForbiddenException("Only the author can edit this message", code="NOT_AUTHOR")
        self._validate_content(body, message.attachments)
        if not body and not message.attachments:
            raise ValidationException("Message cannot be empty", code="EMPTY_MESSAGE")

        with self.transaction():
            if not self.message_repository.apply_message_edit(message.id, body):
                raise MessageTombstonedException(message.id)

        payload = self._present(message.id)
        self._publish(message.channel_id, build_message_edited_event(payload))
        return payload

    @BaseService.measure_operation("toggle_pin")
    def toggle_pin(self, message_id: str, user_id: str) -> Dict[str, Any]:
        """Pin or unpin an active message. Moderators only."""
        message = self._get_active_message_or_raise(message_id)
        if not self.channels.is_moderator(message.channel_id, user_id):
            raise ForbiddenException("Only moderators can pin messages", code="NOT_MODERATOR")

        with self.transaction():
            if not self.message_repository.toggle_pinned(message.id):
                raise MessageTombstonedException(message.id)

        payload = self._present(message.id)
        self._publish(message.channel_id, build_message_pinned_event(payload))
        return payload

    # Replies

    @BaseService.measure_operation("add_reply")
    def add_reply(self, message_id: str, user_id: str, text: str) -> Dict[str, Any]:
        """
        Append a thread reply to an active message and broadcast the
        updated message as ``reply_added``.
        """
        body = (text or "").strip()
        if not body:
            raise ValidationException("Reply cannot be empty", code="EMPTY_REPLY")
        self._validate_content(body, None)

        message = self._get_active_message_or_raise(message_id)
        self._require_post_access(message.channel_id, user_id)

        with self.transaction():
            self.message_repository.add_reply(message.id, user_id, body)
            self._ensure_still_active(message.id)

        payload = self._present(message.id)
        self._publish(message.channel_id, build_reply_added_event(payload))
        return payload

    # Helpers

    def _validate_content(self, text: str, attachments: Optional[Sequence[str]]) -> List[str]:
        if len(text) > settings.message_max_length:
            raise ValidationException(
                f"Message must be at most {settings.message_max_length} characters",
                code="MESSAGE_TOO_LONG",
            )
        files = [str(item) for item in (attachments or []) if item]
        if len(files) > MAX_ATTACHMENTS:
            raise ValidationException(
                f"At most {MAX_ATTACHMENTS} attachments are allowed", code="TOO_MANY_ATTACHMENTS"
            )
        return files

    def _get_message_or_raise(self, message_id: str) -> Message:
        message = self.message_repository.get_by_id(message_id, load_relationships=False)
        if not message:
            raise NotFoundException("Message not found", code="MESSAGE_NOT_FOUND")
        return message

    def _get_active_message_or_raise(self, message_id: str) -> Message:
        message = self._get_message_or_raise(message_id)
        if message.is_tombstoned:
            raise MessageTombstonedException(message.id)
        return message

    def _ensure_still_active(self, message_id: str) -> None:
        # A soft delete may have landed between the check and the write
        fresh = self.message_repository.get_fresh(message_id)
        if fresh is None:
            raise NotFoundException("Message not found", code="MESSAGE_NOT_FOUND")
        if fresh.is_tombstoned:
            raise MessageTombstonedException(message_id)

    def _require_post_access(self, channel_id: str, user_id: str) -> None:
        channel = self.channels.get_channel_or_raise(channel_id)
        if channel.is_private and not self.channels.is_member(channel.id, user_id):
            raise ForbiddenException("Private channel: join first", code="NOT_A_MEMBER")

    def _require_author_or_moderator(
        self, message: Message, channel: Channel, requester_id: str
    ) -> None:
        is_author = message.user_id is not None and message.user_id == requester_id
        if is_author or self.channels.is_moderator(channel.id, requester_id):
            return
        raise ForbiddenException("Unauthorized", code="NOT_AUTHOR_OR_MODERATOR")

    def _present(self, message_id: str) -> Dict[str, Any]:
        message = self.message_repository.get_fresh(message_id)
        if message is None:
            raise NotFoundException("Message not found", code="MESSAGE_NOT_FOUND")
        return self._serialize_many([message])[0]

    def _serialize_many(self, messages: Sequence[Message]) -> List[Dict[str, Any]]:
        user_ids: List[str] = []
        for message in messages:
            if message.user_id:
                user_ids.append(message.user_id)
            user_ids.extend(reply.user_id for reply in message.replies)
        summaries = self.users.get_summaries(user_ids)
        return [serialize_message(message, summaries) for message in messages]

    def _publish(self, channel_id: str, frame: Dict[str, Any]) -> None:
        """Fire-and-forget broadcast; failures are logged, never raised."""
        if self.hub is None:
            return
        try:
            self.hub.publish(channel_id, frame["event"], frame["data"])
        except Exception as e:
            self.logger.error(
                f"[BROADCAST] Failed to publish {frame.get('event')} to channel {channel_id}: {str(e)}",
                exc_info=True,
            )
