"""Fixed instruction payload sent to every opinion source.

The same user prompt goes to every source so their picks are comparable.
Only the date line changes between runs.
"""

from __future__ import annotations

from datetime import date

SYSTEM_PROMPT = "You are a penny stock expert. Respond ONLY with valid JSON."

# Number of picks per source flagged ``is_top_pick``.
TOP_PICK_COUNT = 5
MIN_PICKS = 5
MAX_PICKS = 20

PICK_PROMPT_TEMPLATE = """\
You are an expert penny stock analyst for Market Oracle's AI Battle. Pick {min_picks}-{max_picks} \
high-potential penny stocks (under $10/share) for the next 7 days.

CRITICAL REQUIREMENTS:
1. Pick MINIMUM {min_picks}, MAXIMUM {max_picks} stocks
2. Only stocks under $10/share with real liquidity
3. Rank ALL picks 1-{max_picks} (1 = highest confidence)
4. Mark your TOP {top_picks} picks with is_top_pick: true
5. Provide entry price, target, stop loss for each
6. Confidence score 1-100 for each pick
7. 2-4 sentence reasoning per stock
8. Include sector and catalyst

Current date: {today}

Respond with ONLY valid JSON (no markdown, no code blocks):
{{
  "market_analysis": {{
    "stocks_reviewed": 100,
    "sectors_analyzed": ["Tech", "Healthcare", "Energy"],
    "market_sentiment": "Bullish",
    "key_trends": ["AI adoption", "Biotech innovation"]
  }},
  "picks": [
    {{
      "symbol": "TICKER",
      "entry_price": 2.50,
      "target_price": 3.25,
      "stop_loss": 2.10,
      "confidence_score": 85,
      "reasoning": "Strong technical setup with upcoming catalyst",
      "timeframe": "7 days",
      "is_top_pick": true,
      "rank": 1,
      "sector": "Technology",
      "catalyst": "Earnings report"
    }}
  ]
}}

Your TOP {top_picks} compete head-to-head. Full portfolio shows complete analysis."""


def build_pick_prompt(today: date | None = None) -> str:
    """Render the pick instruction for ``today`` (defaults to the current date)."""
    return PICK_PROMPT_TEMPLATE.format(
        min_picks=MIN_PICKS,
        max_picks=MAX_PICKS,
        top_picks=TOP_PICK_COUNT,
        today=(today or date.today()).isoformat(),
    )
