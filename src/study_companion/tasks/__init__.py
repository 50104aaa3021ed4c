"""
Task subsystem.

Components:
- task_models.py: data structures (ActionItem, DeadlineClass, DeadlineIntent)
- task_store.py: SQLite-backed storage + typed row decoding
- task_api.py: create/complete/delete helpers that trigger a reconcile pass
"""
