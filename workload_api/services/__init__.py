"""Business logic behind the workload endpoints."""
