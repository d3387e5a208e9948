"""Courses and their scheduled sessions."""
