"""Runtime settings read from the environment.

Per-source API keys are read lazily by each adapter (see ``SourceConfig.api_key_env``);
this module only covers the pipeline-wide knobs.  Do not log secret values.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping

from core.oracle.orchestrator import DEFAULT_PER_CALL_TIMEOUT
from core.oracle.reviewer import DEFAULT_REVIEWER_URL

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OracleSettings:
    """Pipeline configuration.

    ``reviewer_api_key`` falls back to ``cron_secret`` when unset.
    ``database_url`` selects the SQL prediction store when present.
    """

    reviewer_api_url: str = DEFAULT_REVIEWER_URL
    reviewer_api_key: str = ""
    cron_secret: str = ""
    per_call_timeout: float = DEFAULT_PER_CALL_TIMEOUT
    database_url: str | None = None


def load_settings(environ: Mapping[str, str] | None = None) -> OracleSettings:
    """Build ``OracleSettings`` from ``environ`` (defaults to ``os.environ``)."""
    env = os.environ if environ is None else environ

    cron_secret = env.get("CRON_SECRET", "")
    raw_timeout = env.get("PICK_CALL_TIMEOUT_SECONDS")
    per_call_timeout = DEFAULT_PER_CALL_TIMEOUT
    if raw_timeout:
        try:
            per_call_timeout = float(raw_timeout)
        except ValueError:
            logger.warning("Ignoring invalid PICK_CALL_TIMEOUT_SECONDS=%r", raw_timeout)

    return OracleSettings(
        reviewer_api_url=env.get("REVIEWER_API_URL") or DEFAULT_REVIEWER_URL,
        reviewer_api_key=env.get("REVIEWER_API_KEY") or cron_secret,
        cron_secret=cron_secret,
        per_call_timeout=per_call_timeout,
        database_url=env.get("DATABASE_URL") or None,
    )
