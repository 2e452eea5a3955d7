"""
alerts — Threshold alerts and their lifecycle.

Sub-modules:
    generator  — stateless policy: RiskScore → newly-triggered alerts
    lifecycle  — in-memory store: dedup by condition, acknowledge, dismiss
"""
