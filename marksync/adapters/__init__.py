"""Remote store and change feed adapters."""
