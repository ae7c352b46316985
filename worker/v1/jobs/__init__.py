"""
Job dispatch and tracking for the pipeline worker.

This package provides:
- A registry-based dispatcher routing job types to handlers
- A bounded in-memory history of job lifecycle records
- Batch handlers that isolate per-lead failures
"""
