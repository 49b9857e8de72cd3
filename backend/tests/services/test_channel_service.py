import pytest

from greycat.core.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)


class TestCreateChannel:
    def test_slug_is_trimmed_and_lowercased(self, channel_service, alice):
        created = channel_service.create(name="  Team-Chat ", creator_id=alice.id)

        detail = channel_service.get_detail(created["id"])
        assert detail["name"] == "team-chat"
        assert detail["title"] == "team-chat"

    @pytest.mark.parametrize("name", ["general", "dev_ops", "a-b-c", "x1", "_", "2024"])
    def test_valid_slugs_round_trip(self, channel_service, alice, name):
        created = channel_service.create(name=name, creator_id=alice.id)
        assert channel_service.get_detail(created["id"])["name"] == name

    @pytest.mark.parametrize("name", ["", "   ", "has space", "émoji", "dots.not.ok", "a/b"])
    def test_invalid_slugs_are_rejected(self, channel_service, alice, name):
        with pytest.raises(ValidationException):
            channel_service.create(name=name, creator_id=alice.id)

    def test_duplicate_slug_conflicts_case_insensitively(self, channel_service, alice, bob):
        first = channel_service.create(name="dupe", creator_id=alice.id, description="original")

        with pytest.raises(ConflictException) as exc_info:
            channel_service.create(name="DUPE", creator_id=bob.id)

        assert exc_info.value.message == "Channel name taken"
        detail = channel_service.get_detail(first["id"])
        assert detail["description"] == "original"
        assert [m["id"] for m in detail["members"]] == [alice.id]

    def test_creator_is_sole_member_and_moderator(self, channel_service, alice):
        created = channel_service.create(name="mine", creator_id=alice.id, is_private=True)

        detail = channel_service.get_detail(created["id"])
        assert detail["isPrivate"] is True
        assert [m["id"] for m in detail["members"]] == [alice.id]
        assert [m["id"] for m in detail["moderators"]] == [alice.id]
        assert detail["createdBy"]["handle"] == "alice"
        assert channel_service.is_moderator(created["id"], alice.id)


class TestDetail:
    def test_members_are_resolved_to_summaries(self, channel_service, public_channel, bob):
        channel_service.join(public_channel["id"], bob.id)

        members = channel_service.get_detail(public_channel["id"])["members"]

        assert members[1] == {
            "id": bob.id,
            "displayName": "Bob Marley",
            "handle": "bob",
            "avatarUrl": "https://cdn.greycat.test/avatars/bob.png",
        }

    def test_missing_channel_is_not_found(self, channel_service):
        with pytest.raises(NotFoundException):
            channel_service.get_detail("01HXXXXXXXXXXXXXXXXXXXXXXX")


class TestMembership:
    def test_join_twice_yields_one_membership(self, channel_service, public_channel, bob):
        assert channel_service.join(public_channel["id"], bob.id) is True
        assert channel_service.join(public_channel["id"], bob.id) is False

        ids = [m["id"] for m in channel_service.get_detail(public_channel["id"])["members"]]
        assert ids.count(bob.id) == 1

    def test_join_missing_channel_is_not_found(self, channel_service, bob):
        with pytest.raises(NotFoundException):
            channel_service.join("missing", bob.id)

    def test_leave_is_idempotent(self, channel_service, public_channel, bob):
        channel_service.join(public_channel["id"], bob.id)

        assert channel_service.leave(public_channel["id"], bob.id) is True
        assert channel_service.leave(public_channel["id"], bob.id) is False
        assert not channel_service.is_member(public_channel["id"], bob.id)


class TestListing:
    def test_private_channels_are_hidden(self, channel_service, public_channel, private_channel):
        names = [c["name"] for c in channel_service.list_public()]
        assert names == ["team-chat"]

    def test_member_count_is_reported(self, channel_service, public_channel, bob, carol):
        channel_service.join(public_channel["id"], bob.id)
        channel_service.join(public_channel["id"], carol.id)

        listed = channel_service.list_public()[0]
        assert listed["memberCount"] == 3


class TestModerators:
    def test_moderator_can_grant_and_revoke(self, channel_service, public_channel, alice, bob):
        channel_service.add_moderator(public_channel["id"], alice.id, bob.id)
        assert channel_service.is_moderator(public_channel["id"], bob.id)
        assert channel_service.is_member(public_channel["id"], bob.id)

        channel_service.remove_moderator(public_channel["id"], alice.id, bob.id)
        assert not channel_service.is_moderator(public_channel["id"], bob.id)

    def test_non_moderator_cannot_grant(self, channel_service, public_channel, bob, carol):
        with pytest.raises(ForbiddenException):
            channel_service.add_moderator(public_channel["id"], bob.id, carol.id)

    def test_creator_cannot_be_removed(self, channel_service, public_channel, alice, bob):
        channel_service.add_moderator(public_channel["id"], alice.id, bob.id)

        with pytest.raises(ForbiddenException):
            channel_service.remove_moderator(public_channel["id"], bob.id, alice.id)
        assert channel_service.is_moderator(public_channel["id"], alice.id)


class TestPrivateMembership:
    def test_outsider_cannot_join_private_channel(
        self, channel_service, message_service, private_channel, carol
    ):
        with pytest.raises(ForbiddenException) as exc_info:
            channel_service.join(private_channel["id"], carol.id)

        assert exc_info.value.code == "NOT_INVITED"
        assert not channel_service.is_member(private_channel["id"], carol.id)
        with pytest.raises(ForbiddenException):
            message_service.send(private_channel["id"], carol.id, "let me in")

    def test_existing_member_rejoining_private_channel_is_a_no_op(
        self, channel_service, private_channel, alice
    ):
        assert channel_service.join(private_channel["id"], alice.id) is False

    def test_moderator_adds_member_to_private_channel(
        self, channel_service, private_channel, alice, bob
    ):
        assert channel_service.add_member(private_channel["id"], alice.id, bob.id) is True
        assert channel_service.add_member(private_channel["id"], alice.id, bob.id) is False
        assert channel_service.is_member(private_channel["id"], bob.id)

    def test_only_moderators_add_members(self, channel_service, private_channel, alice, bob, carol):
        channel_service.add_member(private_channel["id"], alice.id, bob.id)

        with pytest.raises(ForbiddenException):
            channel_service.add_member(private_channel["id"], bob.id, carol.id)
        assert not channel_service.is_member(private_channel["id"], carol.id)
