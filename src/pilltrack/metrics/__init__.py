"""Prometheus metrics for pilltrack."""
