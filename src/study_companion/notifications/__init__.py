"""
Notification subsystem.

Components:
- intents.py: NotificationIntent / NotificationRecord / PassReport
- deriver.py: tasks + timetable -> desired intents
- reconciler.py: desired intents vs. persisted baseline -> schedule/cancel calls
- baseline_store.py: SQLite baseline
- local_store.py: local notification backend (the NotificationStore port)
- setup.py: one-time handler/channel registration
- runner.py: reconcile and delivery polling loops
"""
