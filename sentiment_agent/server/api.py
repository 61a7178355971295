from fastapi import FastAPI, HTTPException
from dotenv import load_dotenv
load_dotenv()   # loads .env into os.environ

from ..db import get_session, init_db, ping_database
from ..logging_config import setup_logging
from ..repositories.analyses import analysis_stats, latest_sentiment_analysis
from ..repositories.news import news_stats
from ..services.market_sentiment import analyze_market_sentiment

setup_logging()

app = FastAPI(title="Market Sentiment Agent")

@app.get("/")
def root():
    return {"ok": True, "message": "Market Sentiment Agent API. See /sentiment for a fresh verdict."}

@app.get("/sentiment")
def sentiment(force_refresh: bool = False):
    return analyze_market_sentiment(force_refresh=force_refresh)

@app.get("/sentiment/latest")
def sentiment_latest():
    if not ping_database():
        raise HTTPException(status_code=503, detail="Database not connected")
    init_db()
    with get_session() as sess:
        row = latest_sentiment_analysis(sess)
    if row is None:
        raise HTTPException(status_code=404, detail="No analyses stored yet")
    return row

@app.get("/stats")
def stats():
    if not ping_database():
        raise HTTPException(status_code=503, detail="Database not connected")
    init_db()
    with get_session() as sess:
        return {**news_stats(sess), "analyses": analysis_stats(sess)}
