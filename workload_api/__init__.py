"""FastAPI service exposing coordinator workload analytics."""
