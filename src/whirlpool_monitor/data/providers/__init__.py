"""Pool data source implementations."""

from whirlpool_monitor.data.providers.whirlpool import WhirlpoolDataSource

__all__ = ["WhirlpoolDataSource"]
