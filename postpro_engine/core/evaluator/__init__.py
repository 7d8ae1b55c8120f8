"""Dependency conflict evaluation: single-step checks and cascade simulation."""
