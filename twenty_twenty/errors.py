"""Exception hierarchy for reference comparisons.

``MissingReference`` and ``SimilarityBelowThreshold`` are also
``AssertionError`` so test runners report them as test failures rather
than errors. ``DecodeError``, ``IoError`` and ``ConfigError`` are hard
errors: the comparison never ran.
"""

from __future__ import annotations

from pathlib import Path

#: Environment variable selecting the execution mode.
ENV_VAR = "TWENTY_TWENTY"


class TwentyTwentyError(Exception):
    """Base class for every error raised by this package."""

    pass


class DecodeError(TwentyTwentyError):
    """Raised when an encoded frame cannot be turned into an image."""

    pass


class IoError(TwentyTwentyError):
    """Raised when a reference or artifact cannot be read or written."""

    def __init__(self, path: str | Path, action: str, reason: object) -> None:
        self.path = Path(path)
        self.action = action
        super().__init__(f"unable to {action} {self.path}: {reason}")


class ConfigError(TwentyTwentyError):
    """Raised when configuration values or files fail validation."""

    pass


class MissingReference(TwentyTwentyError, AssertionError):
    """Raised when the reference image does not exist yet."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        super().__init__(
            f"reference image `{self.path}` does not exist; "
            f"run with {ENV_VAR}=overwrite to create it from the actual image"
        )


class SimilarityBelowThreshold(TwentyTwentyError, AssertionError):
    """Raised when the score is lower than the caller's minimum."""

    def __init__(self, path: str | Path, score: float, threshold: float) -> None:
        self.path = Path(path)
        self.score = score
        self.threshold = threshold
        super().__init__(
            f"image (`{self.path}`) score is `{score}` which is less than "
            f"min_permissible_similarity `{threshold}`; "
            f"set {ENV_VAR}=overwrite if these changes are intentional"
        )
