"""Storage subsystem — SQLite time-series store."""

from .tsdb import DataPoint, MetricRow, StorageError, TimeSeriesStore
