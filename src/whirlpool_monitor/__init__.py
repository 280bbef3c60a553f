"""Orca Whirlpool pool monitor: periodic collection of Solana pool snapshots."""
