"""Command line interface for the personalization engine."""
