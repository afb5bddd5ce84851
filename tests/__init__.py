"""
Test suite for the versus pipeline and dashboard API.

Test Organization:
- test_storage.py: JSONL record store (append, tolerant scan, key sets)
- test_models.py: Record wire formats and validation
- test_tools.py: Tool pair, category groups, eligibility keywords
- test_reddit.py: asyncpraw adapter (listing pages, comment trees)
- test_discovery.py: Subreddit discovery, lookback cutoff, dedup
- test_scraping.py: Thread scraping and reply-tree flattening
- test_thread_context.py: Ancestry chains and eligibility
- test_prompts.py / test_ai_parser.py / test_ai_client.py: Classifier call path
- test_classification.py: Batch classification runs and the run log
- test_aggregation.py: Filters, cascades, preference math, ignore set
- test_clean_dataset.py: Clean-dataset filter
- test_api.py: Dashboard API envelopes, filters, admin gating
- test_config.py / test_errors.py / utils/: Ambient configuration, errors, logging

No test touches the network: Reddit and OpenAI are replaced with fakes from
conftest.py.

Run all tests:
    python -m pytest tests/ -v
"""
