"""
Pytest configuration and fixtures.
"""
import pytest
import os
import sys
import textwrap
from datetime import datetime, timezone

# Set test environment before importing sentiment_agent modules
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["LOG_TO_FILE"] = "false"
os.environ["USE_DATABASE"] = "true"


@pytest.fixture(scope="session")
def test_db():
    """Create the in-memory test database."""
    from sentiment_agent.db import engine, Base
    import sentiment_agent.models  # noqa: F401  (register tables)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session(test_db):
    """Provide a database session for each test; tables are emptied afterwards."""
    from sentiment_agent.db import SessionLocal, Base
    session = SessionLocal()
    yield session
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture
def sample_headlines():
    """Sample headlines for testing."""
    now = datetime.now(timezone.utc)
    return [
        {"title": "Stocks rally as Fed signals rate cut", "source": "CNBC",
         "url": "https://example.com/a", "timestamp": now},
        {"title": "Bitcoin surges past record high", "source": "ZeroHedge",
         "url": "https://example.com/b", "timestamp": now},
        {"title": "Oil prices decline on weak demand", "source": "CNBC",
         "url": "https://example.com/c", "timestamp": now},
    ]


VALID_PAYLOAD = {
    "sentiment": "BULLISH",
    "score": 60,
    "catalysts": ["Fed cut"],
    "risk_level": "LOW",
    "summary": "ok",
}


@pytest.fixture
def valid_payload():
    return dict(VALID_PAYLOAD)


@pytest.fixture
def fake_agent(tmp_path):
    """
    Build a fake agent CLI: a Python script that prints the given stdout
    lines, optionally sleeps, and exits with the given code.

    Returns a function -> argv list usable as an agent command.
    """
    def make(lines, exit_code=0, sleep_after=0.0, stderr="", record_stdin=False):
        script = tmp_path / f"agent_{len(list(tmp_path.glob('agent_*.py')))}.py"
        body = f"""
            import sys, time
            if {record_stdin!r}:
                data = sys.stdin.read()
                with open({str(tmp_path / 'stdin.txt')!r}, 'w', encoding='utf-8') as fh:
                    fh.write(data)
                    fh.write('\\n--argv--\\n' + '\\n'.join(sys.argv[1:]))
            if {stderr!r}:
                sys.stderr.write({stderr!r})
                sys.stderr.flush()
            for line in {list(lines)!r}:
                sys.stdout.write(line + '\\n')
                sys.stdout.flush()
            time.sleep({sleep_after!r})
            sys.exit({exit_code!r})
        """
        script.write_text(textwrap.dedent(body), encoding="utf-8")
        return [sys.executable, str(script)]
    return make
