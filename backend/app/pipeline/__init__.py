"""
pipeline — Assessment orchestration.

Sub-modules:
    assessment  — RiskPipeline: fetch → score → alert → merge → snapshot
    scheduler   — RefreshScheduler: periodic refresh with stale-result guard
"""
