# redditpulse/core/metrics.py
from prometheus_client import Counter, Histogram

posts_ingested = Counter("redditpulse_posts_ingested_total", "Posts inserted by the scraper")
posts_skipped = Counter("redditpulse_posts_skipped_total", "Feed posts already stored")
classifications = Counter(
    "redditpulse_classifications_total",
    "Posts classified, by taxonomy and strategy",
    ["taxonomy", "strategy"],
)
rate_limit_hits = Counter("redditpulse_llm_rate_limited_total", "Rate-limit responses from the LLM provider")
llm_failures = Counter("redditpulse_llm_failures_total", "LLM calls that failed for other reasons")
llm_duration = Histogram("redditpulse_llm_request_duration_seconds", "LLM completion latency")
