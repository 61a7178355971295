"""
Unit tests for the keyword fallback and TOON tables.
"""
from sentiment_agent.services.heuristic import analyze_headlines_heuristic
from sentiment_agent.services.toon import to_toon


class TestHeuristic:

    def test_bullish_majority(self, sample_headlines):
        rec = analyze_headlines_heuristic(sample_headlines)
        assert rec.sentiment == "BULLISH"
        assert rec.score == 50  # capped
        assert rec.risk_level == "HIGH"
        assert rec.catalysts == ["Fed Rate Policy", "Cryptocurrency"]
        assert rec.analysis_method == "pattern_based"
        assert rec.summary.startswith("Pattern-based analysis: 2 bullish, 1 bearish, 0 neutral")

    def test_bearish_majority(self):
        rec = analyze_headlines_heuristic([
            {"title": "Stocks fall sharply"},
            {"title": "Markets steady ahead of data"},
            {"title": "Retail sales drop"},
            {"title": "Tech earnings preview"},
            {"title": "Bonds quiet"},
        ])
        assert rec.sentiment == "BEARISH"
        assert rec.score == -40
        assert rec.risk_level == "MEDIUM"

    def test_tie_is_neutral(self):
        rec = analyze_headlines_heuristic([{"title": "Gains in tech"}, {"title": "Losses in energy"}])
        assert rec.sentiment == "NEUTRAL"
        assert rec.score == 0

    def test_quiet_tape_is_low_risk(self):
        rec = analyze_headlines_heuristic([{"title": f"Company {i} holds meeting"} for i in range(4)])
        assert rec.sentiment == "NEUTRAL"
        assert rec.risk_level == "LOW"

    def test_ai_catalyst_needs_spending(self):
        rec = analyze_headlines_heuristic([
            {"title": "AI spending boom continues"},
            {"title": "AI chatbot launched"},
        ])
        assert rec.catalysts == ["AI Market Activity"]

    def test_deterministic(self, sample_headlines):
        assert analyze_headlines_heuristic(sample_headlines) == analyze_headlines_heuristic(sample_headlines)

    def test_empty(self):
        assert analyze_headlines_heuristic([]).sentiment == "NOT_AVAILABLE"


class TestToon:

    def test_header_and_rows(self):
        out = to_toon("headlines", [{"title": "Fed cuts", "src": "CNBC"}, {"title": "Oil up", "src": "ZH"}])
        assert out == "headlines[2]{title,src}:\n  Fed cuts,CNBC\n  Oil up,ZH"

    def test_quoting(self):
        out = to_toon("h", [{"title": 'Stocks rally, "yields" fall', "src": None}])
        assert out.splitlines()[1] == '  "Stocks rally, \\"yields\\" fall",'

    def test_explicit_fields_and_empty(self):
        assert to_toon("h", [{"a": 1, "b": True}], fields=["b"]) == "h[1]{b}:\n  true"
        assert to_toon("h", []) == "h[0]:"
