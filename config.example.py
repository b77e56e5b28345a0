# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Every variable is optional; durations are seconds.

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "BEADS_APP_NAME": "App display name (default: beads-ops).",
    "BEADS_LOG_LEVEL": "Logging level (default: INFO).",
    "BEADS_DATA_DIR": "Local data directory for logs (default: .local/beads-ops).",
    "BEADS_CONSOLE_ENABLED": "Run the interactive console and print notifications (true/false).",
    # bd CLI
    "BEADS_BD_BINARY": "Name or path of the bd executable (default: bd).",
    "BEADS_BD_TIMEOUT_SECONDS": "Per-command subprocess timeout (default: 30).",
    # Result cache
    "BEADS_CACHE_ENABLED": "Cache ready/show results (default: true).",
    "BEADS_CACHE_TTL_SECONDS": "Cache entry lifetime (default: 30).",
    # Operation scheduler
    "BEADS_MAX_CONCURRENT": "Max queued operations running at once (default: 3).",
    "BEADS_QUEUE_ENABLED": "Drain the operation queue automatically (default: true).",
    "BEADS_DEFAULT_TIMEOUT_SECONDS": "Default /wait timeout (default: 30).",
    "BEADS_RETRY_ENABLED": "Auto-retry failed operations with backoff (default: false).",
    "BEADS_RETRY_MAX_ATTEMPTS": "Retries allowed per operation lineage (default: 3).",
    "BEADS_RETRY_DELAY_SECONDS": "Base auto-retry delay, doubled per attempt (default: 1).",
    "BEADS_NOTIFY_ON_COMPLETE": "Notify when an operation completes (default: true).",
    "BEADS_NOTIFY_ON_ERROR": "Notify when an operation fails (default: true).",
    # Sync
    "BEADS_AUTO_SYNC_INTERVAL_SECONDS": "Background bd sync period; 0 disables it (default: 0).",
}
