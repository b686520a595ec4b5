"""Utility helpers shared by the auditor readers."""
