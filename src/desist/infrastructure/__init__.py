"""
DESIST Infrastructure Layer

Settings persistence, audit sinks, emergency adapters, metrics
and error tracking.
"""
