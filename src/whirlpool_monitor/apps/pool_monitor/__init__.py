"""Scheduled collection of whirlpool pool and tick snapshots into a SQL store."""
