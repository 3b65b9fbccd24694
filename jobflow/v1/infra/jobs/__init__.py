"""
Jobs infrastructure for webhook and scheduled background work.

This package provides the job queue abstraction:
- Database-backed named queues with priority and delayed retries
- Atomic deduplication keys scoped per queue
- Fixed and exponential backoff retry policies
- Read-only status lookups for callers
"""
