"""Tests for the automod engine pipeline."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import FakeChannel, FakeMember

from modshield.automod.config import GuildAutomodConfig
from modshield.automod.engine import AutomodEngine
from modshield.automod.message_tracker import MessageTracker
from modshield.automod.punishment import PunishmentTier
from modshield.automod.violations import ViolationType
from modshield.datatypes.action_datatypes import ActionType

BLACKLIST = {"blacklistedWords": {"words": ["badword"]}}


def past(severity, violation_type="blacklisted_words"):
    return SimpleNamespace(severity=severity, violation_type=violation_type)


@pytest.fixture
def clock():
    now = [1_700_000_000_000]

    def _clock():
        return now[0]

    _clock.now = now
    return _clock


@pytest.fixture
def config_store():
    store = MagicMock()
    store.get_config = AsyncMock(return_value=GuildAutomodConfig.from_dict(BLACKLIST))
    return store


@pytest.fixture
def engine(config_store, violation_store, clock):
    return AutomodEngine(config_store, violation_store, tracker=MessageTracker(), clock=clock)


def use_config(config_store, document):
    config_store.get_config.return_value = GuildAutomodConfig.from_dict(document)


class TestSkipping:

    @pytest.mark.asyncio
    async def test_bot_messages_ignored(self, engine, make_message, violation_store):
        message = make_message("badword", author=FakeMember(bot=True))
        assert await engine.process_message(message) == []
        violation_store.track_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_direct_messages_ignored(self, engine, make_message, config_store):
        message = make_message("badword", guild=None)
        assert await engine.process_message(message) == []
        config_store.get_config.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_system_messages_ignored(self, engine, make_message, violation_store):
        assert await engine.process_message(make_message("badword", system=True)) == []
        violation_store.track_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_disabled_guild(self, engine, make_message, config_store, violation_store):
        use_config(config_store, {"enabled": False, **BLACKLIST})
        assert await engine.process_message(make_message("badword")) == []
        violation_store.track_message.assert_not_awaited()
        assert len(engine.tracker) == 0


class TestExemptions:

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "document",
        [
            {"exemptUsers": ["200"]},
            {"exemptChannels": ["300"]},
            {"exemptRoles": ["77"]},
        ],
    )
    async def test_exempt_messages_are_not_tracked(self, engine, make_message, config_store, violation_store, document):
        use_config(config_store, {**BLACKLIST, **document})
        message = make_message("badword", author=FakeMember(user_id=200, roles=(77,)))

        assert await engine.process_message(message) == []
        violation_store.track_message.assert_not_awaited()
        violation_store.log_violation.assert_not_awaited()
        message.delete.assert_not_awaited()
        assert len(engine.tracker) == 0

    @pytest.mark.asyncio
    async def test_manage_messages_bypass(self, engine, make_message, violation_store):
        message = make_message("badword", author=FakeMember(manage_messages=True))
        assert await engine.process_message(message) == []
        violation_store.log_violation.assert_not_awaited()


class TestTracking:

    @pytest.mark.asyncio
    async def test_clean_message_is_tracked(self, engine, make_message, violation_store):
        message = make_message("just a normal chat message")
        assert await engine.process_message(message) == []

        violation_store.track_message.assert_awaited_once()
        args = violation_store.track_message.await_args.args
        assert args[:4] == (100, 200, "just a normal chat message", 300)
        assert len(engine.tracker.recent_for(100, 200, 10_000, engine._clock())) == 1

    @pytest.mark.asyncio
    async def test_track_failure_does_not_stop_detection(self, engine, make_message, violation_store):
        violation_store.track_message.side_effect = RuntimeError("disk full")
        violations = await engine.process_message(make_message("you badword"))
        assert [v.type for v in violations] == [ViolationType.BLACKLISTED_WORDS]

    @pytest.mark.asyncio
    async def test_frequency_spam_across_messages(self, engine, make_message, clock):
        contents = [
            "the weather is nice today",
            "did you see the game last night",
            "my cat knocked over a plant",
            "thinking about lunch options",
            "anyone here play chess",
        ]
        results = []
        for content in contents:
            results.append(await engine.process_message(make_message(content)))
            clock.now[0] += 1000

        assert results[:4] == [[], [], [], []]
        assert [v.type for v in results[4]] == [ViolationType.SPAM_FREQUENCY]


class TestViolationHandling:

    @pytest.mark.asyncio
    async def test_first_violation_warns(self, engine, make_message, violation_store, channel):
        message = make_message("you are a badword")
        violations = await engine.process_message(message)

        assert [v.type for v in violations] == [ViolationType.BLACKLISTED_WORDS]
        message.delete.assert_awaited_once()

        args = violation_store.log_violation.await_args.args
        assert args == (100, 200, 300, message.id, "blacklisted_words",
                        "Contains blacklisted words: badword", "delete_warn", 2)

        violation_store.get_violations.assert_awaited_once()
        assert violation_store.get_violations.await_args.kwargs["exclude_id"] == 1

        warning = channel.send.await_args.args[0]
        assert "Automod Warning" in warning
        assert "Contains blacklisted words: badword" in warning

        action_args = violation_store.log_moderation_action.await_args.args
        assert action_args[:4] == (100, 200, 999, ActionType.WARN)

    @pytest.mark.asyncio
    async def test_history_escalates_to_timeout(self, engine, make_message, violation_store, member, channel):
        violation_store.get_violations.return_value = [past(2), past(1)]
        await engine.process_message(make_message("badword again"))

        member.timeout.assert_awaited_once()
        assert member.timeout.await_args.kwargs["reason"].startswith("Automod:")
        assert "timed out for 5m" in channel.send.await_args.args[0]

        action_args = violation_store.log_moderation_action.await_args.args
        assert action_args[3] is ActionType.TIMEOUT
        assert action_args[5] == 300_000

    @pytest.mark.asyncio
    async def test_kick_notifies_before_removal(self, engine, make_message, violation_store, member):
        order = []
        member.send = AsyncMock(side_effect=lambda *args, **kwargs: order.append("dm"))
        member.kick = AsyncMock(side_effect=lambda *args, **kwargs: order.append("kick"))
        violation_store.get_violations.return_value = [past(23)]

        await engine.process_message(make_message("badword"))

        assert order == ["dm", "kick"]
        assert "kicked from **Test Guild**" in member.send.await_args.args[0]

    @pytest.mark.asyncio
    async def test_ban_deletes_a_day_of_messages(self, engine, make_message, violation_store, member):
        violation_store.get_violations.return_value = [past(40)]
        await engine.process_message(make_message("badword"))

        member.ban.assert_awaited_once()
        assert member.ban.await_args.kwargs["delete_message_seconds"] == 86400
        member.send.assert_awaited()
        assert violation_store.log_moderation_action.await_args.args[3] is ActionType.BAN

    @pytest.mark.asyncio
    async def test_punishment_failure_falls_back_to_warning(self, engine, make_message, violation_store, member, channel):
        member.timeout.side_effect = RuntimeError("missing permissions")
        violation_store.get_violations.return_value = [past(3)]

        await engine.process_message(make_message("badword"))

        member.timeout.assert_awaited_once()
        channel.send.assert_awaited_once()
        assert "Contains blacklisted words" in channel.send.await_args.args[0]
        violation_store.log_moderation_action.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_log_failure_still_resolves_from_current_severity(self, engine, make_message, violation_store, member):
        violation_store.log_violation.side_effect = RuntimeError("database is locked")

        await engine.process_message(make_message("badword"))

        assert violation_store.get_violations.await_args.kwargs["exclude_id"] is None
        assert violation_store.log_moderation_action.await_args.args[3] is ActionType.WARN
        member.timeout.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_history_failure_uses_current_severity(self, engine, make_message, violation_store, member):
        violation_store.get_violations.side_effect = RuntimeError("database is locked")
        await engine.process_message(make_message("badword"))

        member.timeout.assert_not_awaited()
        assert violation_store.log_moderation_action.await_args.args[3] is ActionType.WARN

    @pytest.mark.asyncio
    async def test_non_progressive_only_warns(self, engine, make_message, config_store, violation_store, member, channel):
        use_config(config_store, {**BLACKLIST, "punishments": {"progressive": False}})
        violation_store.get_violations.return_value = [past(40)]

        await engine.process_message(make_message("badword"))

        member.ban.assert_not_awaited()
        violation_store.log_moderation_action.assert_not_awaited()
        channel.send.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_total_below_lowest_tier_warns(self, engine, make_message, config_store, violation_store, channel):
        use_config(config_store, {**BLACKLIST, "punishments": {"severityLevels": {"10": {"action": "kick"}}}})
        await engine.process_message(make_message("badword"))

        violation_store.log_moderation_action.assert_not_awaited()
        channel.send.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_warning_falls_back_to_dm(self, engine, make_message, member, channel):
        channel.send.side_effect = RuntimeError("cannot post here")
        await engine.process_message(make_message("badword"))

        member.send.assert_awaited()
        assert "Automod Warning from Test Guild" in member.send.await_args.args[0]

    @pytest.mark.asyncio
    async def test_warn_action_keeps_message(self, engine, make_message, config_store):
        use_config(config_store, {"blacklistedWords": {"words": ["badword"], "action": "warn"}})
        message = make_message("badword")
        await engine.process_message(message)
        message.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_violations_handled_in_detection_order(self, engine, make_message, violation_store):
        await engine.process_message(make_message("BADWORD BADWORD BADWORD"))

        logged = [call.args[4] for call in violation_store.log_violation.await_args_list]
        assert logged == ["blacklisted_words", "excessive_caps"]


class TestResilience:

    @pytest.mark.asyncio
    async def test_config_failure_uses_defaults(self, engine, make_message, config_store, violation_store):
        config_store.get_config.side_effect = RuntimeError("database is locked")
        violations = await engine.process_message(make_message("THIS IS VERY LOUD"))
        assert [v.type for v in violations] == [ViolationType.EXCESSIVE_CAPS]

    @pytest.mark.asyncio
    async def test_never_raises(self, engine, make_message, monkeypatch):
        from modshield.automod import engine as engine_module

        def explode(message):
            raise RuntimeError("unexpected")

        monkeypatch.setattr(engine_module.MessageSnapshot, "from_message", explode)
        assert await engine.process_message(make_message("badword")) == []

    @pytest.mark.asyncio
    async def test_handling_error_does_not_skip_next_violation(self, engine, make_message, violation_store, monkeypatch):
        calls = []

        async def flaky_delete(message):
            calls.append(message.id)
            if len(calls) == 1:
                raise RuntimeError("boom")
            return True

        monkeypatch.setattr("modshield.util.discord_utils.safe_delete_message", flaky_delete)
        await engine.process_message(make_message("BADWORD BADWORD BADWORD"))

        logged = [call.args[4] for call in violation_store.log_violation.await_args_list]
        assert logged == ["excessive_caps"]


class TestSlowmode:

    @pytest.mark.asyncio
    async def test_trigger_enables_slowmode(self, engine, make_message, config_store, channel):
        use_config(config_store, {"slowmode": {"enabled": True, "triggers": ["excessive_caps"], "duration": 45}})
        await engine.process_message(make_message("THIS IS VERY LOUD"))

        channel.edit.assert_awaited_once()
        assert channel.edit.await_args.kwargs["slowmode_delay"] == 45

    @pytest.mark.asyncio
    async def test_existing_slowmode_kept(self, engine, make_message, config_store):
        use_config(config_store, {"slowmode": {"enabled": True, "triggers": ["excessive_caps"]}})
        channel = FakeChannel(slowmode_delay=60)
        await engine.process_message(make_message("THIS IS VERY LOUD", channel=channel))
        channel.edit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_untriggered_type(self, engine, make_message, config_store, channel):
        use_config(config_store, {**BLACKLIST, "slowmode": {"enabled": True, "triggers": ["spam_frequency"]}})
        await engine.process_message(make_message("badword"))
        channel.edit.assert_not_awaited()


class TestApplyPunishment:

    @pytest.mark.asyncio
    async def test_returns_false_on_failure(self, engine, make_message, member):
        member.kick.side_effect = RuntimeError("no")
        applied = await engine.apply_punishment(make_message("x"), PunishmentTier(25, ActionType.KICK), "reason", 25)
        assert applied is False

    @pytest.mark.asyncio
    async def test_returns_true_on_success(self, engine, make_message, violation_store):
        applied = await engine.apply_punishment(make_message("x"), PunishmentTier(1, ActionType.WARN), "reason", 1)
        assert applied is True
        violation_store.log_moderation_action.assert_awaited_once()


class TestUserStats:

    @pytest.mark.asyncio
    async def test_summarizes_history(self, engine, violation_store):
        history = [past(2), past(3, "excessive_caps"), past(2), past(1, "repeated_chars"),
                   past(2), past(4, "phishing_link")]
        violation_store.get_violations.return_value = history

        stats = await engine.get_user_stats(100, 200)

        assert stats.total_violations == 6
        assert stats.total_severity == 14
        assert stats.violations_by_type == {
            "blacklisted_words": 3, "excessive_caps": 1, "repeated_chars": 1, "phishing_link": 1,
        }
        assert stats.recent_violations == history[:5]

    @pytest.mark.asyncio
    async def test_store_failure(self, engine, violation_store):
        violation_store.get_violations.side_effect = RuntimeError("gone")
        assert await engine.get_user_stats(100, 200) is None


class TestWindowExpiry:

    @pytest.mark.asyncio
    async def test_expired_messages_do_not_count(self, engine, make_message, clock):
        contents = [
            "the weather is nice today",
            "did you see the game last night",
            "my cat knocked over a plant",
            "thinking about lunch options",
        ]
        for content in contents:
            await engine.process_message(make_message(content))
            clock.now[0] += 1000

        clock.now[0] += 10_000
        assert await engine.process_message(make_message("anyone here play chess")) == []

    @pytest.mark.asyncio
    async def test_exempt_user_spam_produces_nothing(self, engine, make_message, config_store, clock):
        use_config(config_store, {"exemptUsers": ["200"]})
        for _ in range(6):
            assert await engine.process_message(make_message("FREE MONEY CLICK HERE NOW!!!")) == []
            clock.now[0] += 500


class TestConcurrentMessages:

    @pytest.mark.asyncio
    async def test_simultaneous_messages_only_see_earlier_ones(self, engine, make_message, violation_store, clock):
        contents = [
            "the weather is nice today",
            "did you see the game last night",
            "my cat knocked over a plant",
            "thinking about lunch options",
            "anyone here play chess",
        ]
        started = []
        release = asyncio.Event()

        async def slow_track(*args, **kwargs):
            started.append(args)
            clock.now[0] += 1000
            if len(started) == len(contents):
                release.set()
            await release.wait()

        violation_store.track_message.side_effect = slow_track

        results = await asyncio.gather(*(engine.process_message(make_message(text)) for text in contents))

        assert [[v.type for v in result] for result in results] == [[], [], [], [], [ViolationType.SPAM_FREQUENCY]]
        violation_store.log_violation.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_tracker_smaller_than_frequency_limit(self, config_store, violation_store, make_message, clock):
        engine = AutomodEngine(config_store, violation_store, tracker=MessageTracker(max_history=3), clock=clock)
        contents = [
            "the weather is nice today",
            "did you see the game last night",
            "my cat knocked over a plant",
            "thinking about lunch options",
            "anyone here play chess",
        ]
        results = []
        for content in contents:
            results.append(await engine.process_message(make_message(content)))
            clock.now[0] += 1000

        assert [v.type for v in results[4]] == [ViolationType.SPAM_FREQUENCY]
