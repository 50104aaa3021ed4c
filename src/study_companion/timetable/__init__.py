"""
Timetable subsystem.

Components:
- timetable_models.py: DayOfWeek, LectureType, LectureSlot, TimetableRecord
- timetable_store.py: locked timetable on SQLite + JSON import
- resolver.py: pure current/next lecture resolution
"""
