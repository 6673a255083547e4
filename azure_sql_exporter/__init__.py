"""Prometheus exporter for Azure SQL Database resource statistics."""

__version__ = "0.1.0"

# Prefix of every exported metric name
NAMESPACE = "azure_sql"
