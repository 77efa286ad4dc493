"""Tests for building message snapshots from py-cord messages."""

from conftest import FakeGuild, FakeMember

from modshield.automod.snapshot import MessageSnapshot


class TestFromMessage:

    def test_extracts_plain_data(self, make_message):
        message = make_message(
            "hello",
            attachments=("a.png", "b.exe"),
            mentions=(1, 2, 2),
            role_mentions=(9,),
            author=FakeMember(user_id=55, roles=(7, 8)),
        )
        snapshot = MessageSnapshot.from_message(message)

        assert snapshot.content == "hello"
        assert snapshot.guild_id == 100
        assert snapshot.channel_id == 300
        assert snapshot.author_id == 55
        assert snapshot.message_id == message.id
        assert snapshot.attachment_names == ("a.png", "b.exe")
        assert snapshot.user_mention_ids == frozenset({1, 2})
        assert snapshot.role_mention_ids == frozenset({9})
        assert snapshot.author_role_ids == frozenset({7, 8})
        assert snapshot.mention_count == 3
        assert snapshot.has_bypass_permission is False

    def test_bypass_permission(self, make_message):
        message = make_message(author=FakeMember(manage_messages=True))
        assert MessageSnapshot.from_message(message).has_bypass_permission is True

    def test_vanity_code_is_own_invite(self, make_message):
        message = make_message(guild=FakeGuild(vanity_url_code="MyServer"))
        assert MessageSnapshot.from_message(message).own_invite_codes == frozenset({"myserver"})

    def test_explicit_invite_codes(self, make_message):
        snapshot = MessageSnapshot.from_message(make_message(), own_invite_codes=frozenset({"AbC"}))
        assert snapshot.own_invite_codes == frozenset({"abc"})

    def test_missing_content(self, make_message):
        message = make_message(None)
        assert MessageSnapshot.from_message(message).content == ""
