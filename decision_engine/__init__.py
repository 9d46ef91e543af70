"""Discount decision engine: margin, risk, guardrails, auto-approval and advisory resilience."""

__version__ = "0.1.0"
