"""Error taxonomy and concurrency guards."""
