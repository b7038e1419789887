"""
Provider implementations for the companion framework.

Subpackages are imported on demand by ProviderFactory so that optional
audio backends are only loaded when configured.
"""
