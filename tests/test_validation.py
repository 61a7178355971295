"""
Unit tests for payload normalization.
"""
import pytest

from sentiment_agent.services.validation import SentimentRecord, normalize_sentiment, looks_like_sentiment


class TestNormalizeSentiment:
    """Field-by-field schema checks with safe defaults."""

    def test_conformant_payload_is_unchanged(self, valid_payload):
        assert normalize_sentiment(valid_payload).to_payload() == valid_payload

    def test_idempotent(self, valid_payload):
        once = normalize_sentiment(valid_payload)
        twice = normalize_sentiment(once.to_payload())
        assert once == twice

    def test_case_insensitive_enums(self):
        rec = normalize_sentiment({"sentiment": "bearish", "risk_level": "High"})
        assert rec.sentiment == "BEARISH"
        assert rec.risk_level == "HIGH"

    @pytest.mark.parametrize("value", [None, "", "UP", 5, ["BULLISH"], "N/A"])
    def test_unrecognized_sentiment_defaults_to_neutral(self, value):
        assert normalize_sentiment({"sentiment": value}).sentiment == "NEUTRAL"

    def test_missing_sentiment_defaults_to_neutral(self):
        assert normalize_sentiment({}).sentiment == "NEUTRAL"

    @pytest.mark.parametrize("value", [150, -101, "60", True, float("nan"), None])
    def test_invalid_score_defaults_to_zero(self, value):
        assert normalize_sentiment({"score": value}).score == 0

    def test_boundary_scores_accepted(self):
        assert normalize_sentiment({"score": 100}).score == 100
        assert normalize_sentiment({"score": -100}).score == -100

    def test_float_score_rounded(self):
        assert normalize_sentiment({"score": 42.6}).score == 43

    def test_invalid_risk_defaults_to_medium(self):
        assert normalize_sentiment({"risk_level": "EXTREME"}).risk_level == "MEDIUM"

    def test_camel_case_risk_level_alias(self):
        assert normalize_sentiment({"riskLevel": "low"}).risk_level == "LOW"

    def test_catalysts_filtered_and_truncated(self):
        rec = normalize_sentiment({"catalysts": ["a", 1, None, "b", "c", "d", "e", "f", {"x": 1}]})
        assert rec.catalysts == ["a", "b", "c", "d", "e"]

    def test_catalysts_not_a_list(self):
        assert normalize_sentiment({"catalysts": "Fed cut"}).catalysts == []

    def test_summary_placeholder(self):
        assert normalize_sentiment({"summary": 12}).summary == "No analysis available"

    @pytest.mark.parametrize("obj", [None, "BULLISH", 42, ["a"]])
    def test_non_object_never_fails(self, obj):
        rec = normalize_sentiment(obj)
        assert rec.sentiment == "NEUTRAL"
        assert rec.score == 0
        assert rec.risk_level == "MEDIUM"


class TestSentimentRecord:

    def test_not_available_sentinel(self):
        rec = SentimentRecord.not_available("No news data from any source")
        assert rec.sentiment == "NOT_AVAILABLE"
        assert rec.risk_level == "NOT_AVAILABLE"
        assert rec.score is None
        assert rec.catalysts == []
        assert rec.summary == "Analysis not available: No news data from any source"
        assert not rec.available

    def test_record_is_frozen(self, valid_payload):
        rec = normalize_sentiment(valid_payload)
        with pytest.raises(Exception):
            rec.sentiment = "BEARISH"

    def test_looks_like_sentiment(self):
        assert looks_like_sentiment({"sentiment": "BULLISH"})
        assert looks_like_sentiment({"score": 0})
        assert not looks_like_sentiment({"tokens": 120})
        assert not looks_like_sentiment("sentiment")
