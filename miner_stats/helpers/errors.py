"""Exception hierarchy for miner stats runs.

Structural problems (bad config, bad credential, exhausted retries) surface to
the caller as ``MinerStatsError`` subclasses carrying enough context (label,
height, RPC method, underlying cause) to diagnose a failure without re-running
with verbose logging.
"""

from dataclasses import dataclass


class MinerStatsError(Exception):
    """Base class for all fatal run errors."""


class ConfigurationError(MinerStatsError):
    """Invalid configuration detected before any network access."""


class InvalidCredentialError(ConfigurationError):
    """A viewing key could not be parsed."""

    def __init__(self, label: str, reason: str) -> None:
        super().__init__(f"invalid viewing key for {label!r}: {reason}")
        self.label = label
        self.reason = reason


class DerivationError(MinerStatsError):
    """Address derivation failed for a credential."""


class DerivationOutOfRangeError(DerivationError):
    """Height does not fit the non-hardened child index domain."""

    def __init__(self, label: str, height: int) -> None:
        super().__init__(
            f"height {height} is outside the derivation index range "
            f"for credential {label!r}"
        )
        self.label = label
        self.height = height


class FetchError(MinerStatsError):
    """A chain RPC call failed (network, timeout, error or malformed response)."""

    def __init__(self, method: str, reason: str, *, height: int | None = None) -> None:
        where = f" at height {height}" if height is not None else ""
        super().__init__(f"RPC {method}{where} failed: {reason}")
        self.method = method
        self.reason = reason
        self.height = height


class ScanAbortedError(MinerStatsError):
    """Fetch retries were exhausted; progress up to ``highest_processed`` is cached."""

    def __init__(
        self, highest_processed: int | None, height: int, cause: BaseException
    ) -> None:
        done = (
            f"heights up to {highest_processed} were processed"
            if highest_processed is not None
            else "no heights were processed"
        )
        super().__init__(f"scan aborted at height {height} ({done}): {cause}")
        self.highest_processed = highest_processed
        self.height = height
        self.cause = cause


@dataclass(frozen=True)
class ReorgDetected:
    """Cached hash differs from the canonical chain; not an error."""

    height: int
    cached_hash: str
    canonical_hash: str


__all__ = [
    "ConfigurationError",
    "DerivationError",
    "DerivationOutOfRangeError",
    "FetchError",
    "InvalidCredentialError",
    "MinerStatsError",
    "ReorgDetected",
    "ScanAbortedError",
]
