"""Notebook smoke-test harness."""
