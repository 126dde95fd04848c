"""
Company Research Agent

Collects structured company profiles by searching the web (Tavily),
extracting facts with an LLM (OpenAI), scoring their reliability,
and persisting the results one company at a time.

Components:
    1. gateway.py   - Rate-limited, retrying HTTP gateway with a TTL cache
    2. search/      - Tavily provider, query aggregation, context building
    3. extraction/  - OpenAI provider, tiered response parsing, summaries
    4. scoring.py   - Reliability scoring (0-100)
    5. research.py  - Research one company end to end
    6. batch.py     - Sequential batch processing over a company queue
    7. system.py    - Facade wiring everything together
"""

__version__ = "0.1.0"
