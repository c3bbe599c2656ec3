"""
Infrastructure Module

Adapters to the outside world: persistent object stores, the remote HTTP
API and Prometheus metrics.
"""
