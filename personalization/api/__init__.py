"""HTTP service exposing the personalization engine."""
