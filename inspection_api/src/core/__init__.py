"""
Core application utilities for settings, logging, errors and FastAPI dependencies.

This package provides:
- Application-level settings and the per-request pipeline configuration
- Structured logging with correlation and inspection ids
- The pipeline exception taxonomy
- Dependency helpers used by the API routes
"""
