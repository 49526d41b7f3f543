"""
Prefect flows for the index pipeline.

Flows:
- refresh: Precompute campaign-to-date Chill and GDD snapshots per farm

Usage (local):
    python -m agroclimate.flows.refresh
    agroclimate refresh --force

Usage (Prefect):
    prefect server start  # Optional, for dashboard
    prefect deployment run 'refresh-indices/default'
"""
