"""LearnLedger - enrollment, payment and course-access core for a learning platform."""

__version__ = "0.1.0"
