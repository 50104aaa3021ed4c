"""study_companion: tasks + weekly timetable with self-healing local notifications."""

__version__ = "0.1.0"
