"""Execution modes and the ``TWENTY_TWENTY`` value parser.

=============================  =============================================
``TWENTY_TWENTY``              Mode
=============================  =============================================
unset / empty                  ``ASSERT``: compare only
``overwrite``                  ``OVERWRITE``: replace the reference
``store-artifact``             ``STORE_ARTIFACT``: compare, always keep actual
``store-artifact-on-mismatch`` ``STORE_ARTIFACT_ON_MISMATCH``: keep on failure
anything else                  ``ASSERT``, with a warning
=============================  =============================================

Matching is case-sensitive.
"""

from __future__ import annotations

import enum
import logging
import os
from typing import Mapping

from twenty_twenty.errors import ENV_VAR

logger = logging.getLogger(__name__)


class Mode(str, enum.Enum):
    """How an assertion treats the reference file."""

    ASSERT = "assert"
    OVERWRITE = "overwrite"
    STORE_ARTIFACT = "store-artifact"
    STORE_ARTIFACT_ON_MISMATCH = "store-artifact-on-mismatch"

    @property
    def stores_artifacts(self) -> bool:
        return self in (Mode.STORE_ARTIFACT, Mode.STORE_ARTIFACT_ON_MISMATCH)


_RECOGNIZED = {
    "overwrite": Mode.OVERWRITE,
    "store-artifact": Mode.STORE_ARTIFACT,
    "store-artifact-on-mismatch": Mode.STORE_ARTIFACT_ON_MISMATCH,
}


def resolve_mode(value: str | None) -> Mode:
    """Map a raw ``TWENTY_TWENTY`` value to a :class:`Mode`.

    Unrecognized non-empty values fall back to ``ASSERT`` and log a
    warning; they never raise.
    """
    if not value:
        return Mode.ASSERT
    mode = _RECOGNIZED.get(value)
    if mode is None:
        logger.warning(
            "Unrecognized %s=%r, falling back to strict assert (expected one of: %s)",
            ENV_VAR,
            value,
            ", ".join(_RECOGNIZED),
        )
        return Mode.ASSERT
    return mode


def mode_from_env(environ: Mapping[str, str] | None = None) -> Mode:
    """Read ``TWENTY_TWENTY`` from ``environ`` (default: the process env)."""
    env = os.environ if environ is None else environ
    return resolve_mode(env.get(ENV_VAR))
