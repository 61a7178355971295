"""
End-to-end pipeline tests with a fake agent CLI.
"""
import json
import time

import pytest

from sentiment_agent.exceptions import ProcessTimedOut
from sentiment_agent.services.agent_cli import AgentLauncher, Deadline, InvocationRequest, Provenance
from sentiment_agent.services.sentiment import (
    PipelineState, SentimentPipeline, build_sentiment_prompt, headlines_table,
)


def ev(**fields):
    return json.dumps(fields)


@pytest.fixture
def pipeline_for(tmp_path):
    def make(cmd, timeout=20):
        launcher = AgentLauncher(cmd, tmp_dir=str(tmp_path), terminate_grace=1.0)
        return SentimentPipeline(launcher=launcher, timeout=timeout)
    return make


class ExplodingLauncher:
    def run(self, request, deadline):
        raise AssertionError("agent must not be spawned")


class TestSentimentPipeline:

    def test_completion_result_after_reasoning(self, fake_agent, pipeline_for, sample_headlines, valid_payload):
        cmd = fake_agent([
            ev(type="say", say="reasoning", content="Let me think about sentiment: bearish?"),
            ev(type="completion_result", content=json.dumps(valid_payload)),
        ])
        outcome = pipeline_for(cmd).run(sample_headlines)
        assert outcome.record.to_payload() == valid_payload
        assert outcome.record.analysis_method == "agent_cli"
        assert outcome.run.provenance is Provenance.COMPLETION_RESULT
        assert outcome.run.history == [
            PipelineState.IDLE, PipelineState.INVOKING, PipelineState.STREAMING,
            PipelineState.EXTRACTING, PipelineState.VALIDATING, PipelineState.DONE,
        ]

    def test_ask_mid_stream_uses_text_candidate(self, fake_agent, pipeline_for, sample_headlines):
        content = '```json\n{"sentiment": "bearish", "score": -30, "risk_level": "high"}\n```'
        cmd = fake_agent(
            [ev(type="text", content=content), ev(type="ask", ask="completion_result")],
            sleep_after=30,
        )
        record = pipeline_for(cmd).analyze(sample_headlines)
        assert record.sentiment == "BEARISH"
        assert record.score == -30
        assert record.risk_level == "HIGH"
        assert record.catalysts == []
        assert record.summary == "No analysis available"

    def test_zero_headlines_does_not_spawn(self):
        outcome = SentimentPipeline(launcher=ExplodingLauncher(), timeout=5).run([])
        assert outcome.record.sentiment == "NOT_AVAILABLE"
        assert outcome.record.score is None
        assert outcome.record.summary == "Analysis not available: No news data from any source"

    def test_nonzero_exit_with_json_is_used(self, fake_agent, pipeline_for, sample_headlines, valid_payload):
        cmd = fake_agent([json.dumps(valid_payload)], exit_code=1)
        record = pipeline_for(cmd).analyze(sample_headlines)
        assert record.to_payload() == valid_payload
        assert record.analysis_method == "agent_cli"

    def test_timeout_falls_back_to_heuristic(self, fake_agent, pipeline_for, sample_headlines):
        cmd = fake_agent([ev(type="reasoning", content="...")], sleep_after=30)
        outcome = pipeline_for(cmd, timeout=1).run(sample_headlines)
        assert outcome.run.state is PipelineState.TIMED_OUT
        assert outcome.record.analysis_method == "pattern_based"
        assert outcome.record.sentiment == "BULLISH"

    def test_prose_only_falls_back_to_heuristic(self, fake_agent, pipeline_for, sample_headlines):
        cmd = fake_agent([ev(type="completion_result", content="I cannot help with that.")])
        outcome = pipeline_for(cmd).run(sample_headlines)
        assert outcome.record.analysis_method == "pattern_based"
        assert outcome.run.error is not None

    def test_markdown_answer(self, fake_agent, pipeline_for, sample_headlines):
        content = "**SENTIMENT:** Bullish (45/100)\n- Soft CPI\n- AI capex\n**SUMMARY:** Risk-on."
        cmd = fake_agent([ev(type="completion_result", content=content)])
        record = pipeline_for(cmd).analyze(sample_headlines)
        assert record.sentiment == "BULLISH"
        assert record.score == 45
        assert record.catalysts == ["Soft CPI", "AI capex"]
        assert record.analysis_method == "agent_cli"

    def test_missing_agent_falls_back(self, pipeline_for, sample_headlines):
        record = pipeline_for(["/nonexistent/agent-cli", "--json"]).analyze(sample_headlines)
        assert record.analysis_method == "pattern_based"


class TestPrompt:

    def test_prompt_embeds_table(self, sample_headlines):
        table = headlines_table(sample_headlines)
        prompt = build_sentiment_prompt(table)
        assert table in prompt
        assert table.startswith("headlines[3]{title,src}:")
        assert '"risk_level": "LOW" | "MEDIUM" | "HIGH"' in prompt


class TestBoundedFallback:

    def test_deeply_nested_output_falls_back(self, fake_agent, pipeline_for, sample_headlines):
        cmd = fake_agent(["[" * 200000 + "]" * 200000])
        outcome = pipeline_for(cmd).run(sample_headlines)
        assert outcome.record.analysis_method == "pattern_based"
        assert outcome.run.state is PipelineState.DONE

    def test_long_reasoning_stream_stays_within_timeout(self, fake_agent, pipeline_for, sample_headlines):
        lines = [ev(type="say", say="reasoning", content=f"step {i}: weighing {{headline}} tone")
                 for i in range(3000)]
        lines.append(ev(type="completion_result", content="I cannot help with that."))
        started = time.monotonic()
        outcome = pipeline_for(fake_agent(lines), timeout=5).run(sample_headlines)
        assert time.monotonic() - started < 5
        assert outcome.record.analysis_method == "pattern_based"
        assert outcome.run.history[-1] is PipelineState.DONE

    def test_rescan_finds_earlier_text_payload(self, fake_agent, pipeline_for, sample_headlines, valid_payload):
        cmd = fake_agent([
            ev(type="text", content="Here you go: " + json.dumps(valid_payload)),
            ev(type="say", say="text", content="Anything else?"),
            ev(type="completion_result", content="Done."),
        ])
        outcome = pipeline_for(cmd).run(sample_headlines)
        assert outcome.record.to_payload() == valid_payload
        assert outcome.run.provenance is Provenance.COMPLETION_RESULT

    def test_rescan_honours_expired_deadline(self, sample_headlines):
        pipeline = SentimentPipeline(launcher=ExplodingLauncher(), timeout=5)
        raw = ev(type="text", content="no payload here")
        with pytest.raises(ProcessTimedOut):
            pipeline._rescan(raw, InvocationRequest(prompt="p"), Deadline(0))

    def test_timeout_history_ends_timed_out(self, fake_agent, pipeline_for, sample_headlines):
        cmd = fake_agent([ev(type="reasoning", content="...")], sleep_after=30)
        outcome = pipeline_for(cmd, timeout=1).run(sample_headlines)
        assert outcome.run.history[-1] is PipelineState.TIMED_OUT
