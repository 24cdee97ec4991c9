"""Verdict cache repositories."""
