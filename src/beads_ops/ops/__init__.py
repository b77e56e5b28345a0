"""
Operation subsystem.

Components:
- models.py: data structures (Operation, OperationStatus, SchedulerConfig)
- progress.py: per-id progress trackers (current/total, messages, elapsed)
- scheduler.py: asyncio scheduler with bounded concurrency, FIFO queue and retries
- api.py: named wrappers that schedule bd client calls
- sync_service.py: sync coordination and the auto-sync loop
"""
