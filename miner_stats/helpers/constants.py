"""Common configuration constants used across the application."""

# Batch Size Constants
DEFAULT_BATCH_SIZE = 100
"""Default number of heights processed per scan window"""

RPC_BATCH_SIZE = 50
"""Default number of RPC calls per batch request"""

# HTTP and Network Constants
DEFAULT_TIMEOUT = 30.0
"""Default HTTP request timeout in seconds"""

CONNECTION_TIMEOUT = 3.0
"""Timeout for establishing connections"""

# Retry Configuration
MAX_RETRIES = 5
"""Default maximum number of retry attempts"""

RETRY_BASE_DELAY = 1.0
"""Base delay for exponential backoff in seconds"""

RETRY_MAX_DELAY = 60.0
"""Maximum delay between retries in seconds"""

# Concurrency Limits
DEFAULT_PARALLEL_FETCHES = 8
"""Default number of block fetches to run in parallel"""

# HTTP Connection Pooling
MAX_KEEPALIVE_CONNECTIONS = 5
"""Maximum number of keepalive connections in pool"""

MAX_CONNECTIONS = 10
"""Maximum total number of connections"""

# Chain Constants
ZATS_PER_COIN = 100_000_000
"""Number of zatoshis (minor units) per coin"""

MAX_CHILD_INDEX = 2**31 - 1
"""Largest non-hardened BIP32 child index"""

# File Defaults
DEFAULT_CONFIG_FILE = "miner-stats-config.toml"
"""Config file read when --config is not given"""


__all__ = [
    "CONNECTION_TIMEOUT",
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_CONFIG_FILE",
    "DEFAULT_PARALLEL_FETCHES",
    "DEFAULT_TIMEOUT",
    "MAX_CHILD_INDEX",
    "MAX_CONNECTIONS",
    "MAX_KEEPALIVE_CONNECTIONS",
    "MAX_RETRIES",
    "RETRY_BASE_DELAY",
    "RETRY_MAX_DELAY",
    "RPC_BATCH_SIZE",
    "ZATS_PER_COIN",
]
