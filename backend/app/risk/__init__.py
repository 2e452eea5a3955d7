"""
risk — Multi-hazard risk scoring.

Sub-modules:
    models   — value types shared by the engine (coordinates, observations,
               risk scores, alerts, snapshots)
    scoring  — pure scoring function: observations → RiskScore
"""
