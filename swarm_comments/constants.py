"""swarm-comments -- Shared defaults."""

# Poll loop (seconds)
DEFAULT_POLL_INTERVAL = 2.0
MINIMUM_POLL_INTERVAL = 0.5

# History page width
COMMENTS_TO_READ = 9

# Initial tip discovery
TIP_RETRY_COUNT = 10
TIP_RETRY_DELAY = 1.0

# Parallel chunk downloads per feed
MAX_CONCURRENT_READS = 8
