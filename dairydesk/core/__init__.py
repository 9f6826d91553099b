"""Session state and concurrency guards."""
