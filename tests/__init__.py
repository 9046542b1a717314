"""
Test suite for plan-dispatch.

- test_store.py: SQLite store, versioning and history atomicity
- test_dispatcher.py: operation table, validation and outcome kinds
- test_web.py: HTTP transport over the dispatcher
"""
