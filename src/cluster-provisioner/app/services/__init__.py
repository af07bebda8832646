"""Services used by the pipelines and the API.

Modules are imported directly; this package re-exports nothing so provider
adapters can depend on individual services.
"""
