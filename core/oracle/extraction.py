"""Pick extraction — recover a structured pick batch from free-form model text.

Opinion sources are asked for bare JSON but routinely wrap it in markdown
fences or surround it with commentary.  ``extract_picks`` tries a strict parse
first, then falls back to the outermost ``{...}`` region, and finally validates
every element of ``picks`` individually.  Invalid elements are dropped and
counted; the extraction only fails when nothing usable remains.

The extractor never raises.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any

from core.oracle.types import (
    PICK_CONFIDENCE_MAX,
    PICK_CONFIDENCE_MIN,
    UNKNOWN_SOURCE,
    ErrorKind,
    Pick,
)

logger = logging.getLogger(__name__)

# Stop loss applied when a source omits one.
DEFAULT_STOP_LOSS_RATIO = 0.9


@dataclass(frozen=True)
class ExtractionResult:
    """Discriminated result: ``ok`` with picks, or an error kind + message."""

    ok: bool
    picks: tuple[Pick, ...] = ()
    dropped: int = 0
    error_kind: ErrorKind | None = None
    message: str = ""
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def malformed(cls, message: str, dropped: int = 0) -> "ExtractionResult":
        return cls(ok=False, dropped=dropped, error_kind=ErrorKind.MALFORMED_RESPONSE, message=message)


def parse_json_object(raw_text: str) -> dict[str, Any] | None:
    """Parse ``raw_text`` as a JSON object, falling back to its outermost braces.

    Returns:
        The decoded object, or None when no JSON object can be recovered.
    """
    if not isinstance(raw_text, str) or not raw_text.strip():
        return None

    try:
        parsed = json.loads(raw_text)
        if isinstance(parsed, dict):
            return parsed
    except (json.JSONDecodeError, TypeError):
        pass

    start = raw_text.find("{")
    end = raw_text.rfind("}")
    if start == -1 or end <= start:
        return None

    try:
        parsed = json.loads(raw_text[start : end + 1])
    except json.JSONDecodeError as exc:
        logger.debug("Embedded JSON region did not parse: %s", exc)
        return None
    return parsed if isinstance(parsed, dict) else None


def _as_price(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(price) or price <= 0:
        return None
    return price


def _as_confidence(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(confidence):
        return None
    if confidence < PICK_CONFIDENCE_MIN or confidence > PICK_CONFIDENCE_MAX:
        return None
    return int(round(confidence))


def parse_flag(value: Any) -> bool | None:
    """Read a JSON flag: a real boolean or the strings "true"/"false"; else None."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return None


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def validate_pick(item: Any, position: int, ai_name: str = UNKNOWN_SOURCE) -> Pick | None:
    """Validate one raw pick element; return None when it breaks its contract.

    Args:
        item: Raw element from the ``picks`` list.
        position: Zero-based index, used to derive a rank when none is given.
        ai_name: Source to attribute the pick to.
    """
    if not isinstance(item, dict):
        return None

    symbol = str(item.get("symbol") or "").strip().upper()
    if not symbol:
        return None

    entry = _as_price(item.get("entry_price"))
    target = _as_price(item.get("target_price"))
    if entry is None or target is None:
        return None

    if item.get("stop_loss") in (None, "", 0):
        stop = entry * DEFAULT_STOP_LOSS_RATIO
    else:
        stop = _as_price(item.get("stop_loss"))
        if stop is None:
            return None

    confidence = _as_confidence(item.get("confidence_score"))
    if confidence is None:
        return None

    reasoning = str(item.get("reasoning") or "").strip()
    if not reasoning:
        return None

    raw_flag = item.get("is_top_pick")
    is_top_pick = False if raw_flag is None else parse_flag(raw_flag)
    if is_top_pick is None:
        return None

    try:
        rank = int(item.get("rank") or position + 1)
    except (TypeError, ValueError):
        rank = position + 1

    return Pick(
        symbol=symbol,
        entry_price=entry,
        target_price=target,
        stop_loss=stop,
        confidence_score=confidence,
        reasoning=reasoning,
        rank=rank,
        is_top_pick=is_top_pick,
        timeframe=str(item.get("timeframe") or "").strip(),
        sector=_optional_text(item.get("sector")),
        catalyst=_optional_text(item.get("catalyst")),
        ai_name=ai_name,
    )


def extract_picks(raw_text: str, ai_name: str = UNKNOWN_SOURCE) -> ExtractionResult:
    """Recover a validated pick batch from ``raw_text``.

    Args:
        raw_text: Raw model output (prose, fences and commentary allowed).
        ai_name: Source name stamped on every recovered pick.

    Returns:
        ``ExtractionResult`` — ``ok=True`` with at least one pick, otherwise
        ``error_kind=MalformedResponse``.
    """
    if not isinstance(raw_text, str):
        return ExtractionResult.malformed(f"Response text is {type(raw_text).__name__}, not a string")

    payload = parse_json_object(raw_text)
    if payload is None:
        return ExtractionResult.malformed("No JSON object found in response")

    raw_picks = payload.get("picks")
    if not isinstance(raw_picks, list):
        return ExtractionResult.malformed("Response has no 'picks' list")
    if not raw_picks:
        return ExtractionResult.malformed("Response 'picks' list is empty")

    picks: list[Pick] = []
    dropped = 0
    for position, item in enumerate(raw_picks):
        pick = validate_pick(item, position, ai_name)
        if pick is None:
            dropped += 1
            continue
        picks.append(pick)

    if dropped:
        logger.warning("%s: dropped %d of %d invalid picks", ai_name, dropped, len(raw_picks))

    if not picks:
        return ExtractionResult.malformed(f"All {dropped} picks failed validation", dropped=dropped)

    return ExtractionResult(ok=True, picks=tuple(picks), dropped=dropped, payload=payload)
