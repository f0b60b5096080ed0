"""TutorHub assessment lifecycle, grading and analytics."""

__version__ = "1.0.0"
