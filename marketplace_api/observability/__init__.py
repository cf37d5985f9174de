"""
Observability package for OpenTelemetry tracing and structured logging.
"""
