"""Resurfacing engine: scoring, candidate selection, events and the daily job."""
