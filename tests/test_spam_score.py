"""Tests for the composite spam score signals."""

from modshield.automod.message_tracker import MessageRecord
from modshield.automod.snapshot import MessageSnapshot
from modshield.automod.spam_score import (
    ADVANCED_SPAM_THRESHOLD,
    SpamScore,
    calculate_spam_score,
    cross_channel_points,
    frequency_points,
    largest_similarity_cluster,
    pattern_points,
    rapid_element_points,
    similarity_points,
    temporal_points,
)


def record(content="hello there", timestamp_ms=0, channel_id=1):
    return MessageRecord(content=content, timestamp_ms=timestamp_ms, channel_id=channel_id)


class TestSignals:

    def test_frequency_points(self):
        assert frequency_points(3, 5) == 0
        assert frequency_points(5, 5) == 0
        assert frequency_points(7, 5) == 2
        assert frequency_points(20, 5) == 5

    def test_similarity_cluster(self):
        contents = ["Buy now", "buy now", "BUY NOW", "something else entirely"]
        assert largest_similarity_cluster(contents) == 3
        assert largest_similarity_cluster([]) == 0

    def test_similarity_points(self):
        assert similarity_points(2) == 0
        assert similarity_points(3) == 1
        assert similarity_points(10) == 4

    def test_pattern_points(self):
        assert pattern_points("ordinary sentence here") == 0
        assert pattern_points("heyyyyy") == 1
        assert pattern_points("THIS IS A VERY LONG SHOUTED LINE") == 2
        assert pattern_points("what??? why!!!") == 2
        assert pattern_points("urgent: free money") == 3

    def test_caps_needs_letters(self):
        assert pattern_points("1234567890 1234567890 123") == 0

    def test_cross_channel_points(self):
        recent = [record(channel_id=1), record(channel_id=2)]
        assert cross_channel_points(recent, 1) == 0
        assert cross_channel_points(recent, 3) == 1
        recent += [record(channel_id=4), record(channel_id=5), record(channel_id=6), record(channel_id=7)]
        assert cross_channel_points(recent, 8) == 4

    def test_rapid_elements(self):
        mentions = MessageSnapshot("hey everyone", 1, 1, 1, user_mention_ids=frozenset(range(5)))
        assert rapid_element_points(mentions, 1) == 2

        short = MessageSnapshot("hi", 1, 1, 1)
        assert rapid_element_points(short, 4) == 2
        assert rapid_element_points(short, 3) == 0

    def test_temporal_points(self):
        regular = [record(timestamp_ms=t) for t in (0, 1000, 2000, 3000)]
        assert temporal_points(regular) == 3

        irregular = [record(timestamp_ms=t) for t in (0, 200, 4000)]
        assert temporal_points(irregular) == 0

        slow = [record(timestamp_ms=t) for t in (0, 3000, 6000)]
        assert temporal_points(slow) == 0

        assert temporal_points(regular[:2]) == 0


class TestSpamScore:

    def test_add_records_breakdown_and_reasons(self):
        score = SpamScore()
        score.add("frequency", 0, "ignored")
        score.add("patterns", 4, "suspicious patterns")
        assert score.total == 4
        assert score.reasons == ["suspicious patterns"]
        assert score.breakdown == {"frequency": 0, "patterns": 4}
        assert not score.is_spam

    def test_threshold(self):
        score = SpamScore(total=ADVANCED_SPAM_THRESHOLD)
        assert score.is_spam

    def test_calculate_quiet_user(self):
        snapshot = MessageSnapshot("just chatting", 1, 1, 1)
        score = calculate_spam_score(snapshot, [record("just chatting")], 5)
        assert score.total == 0
        assert set(score.breakdown) == {
            "frequency", "similarity", "patterns", "cross_channel", "rapid_elements", "temporal",
        }
