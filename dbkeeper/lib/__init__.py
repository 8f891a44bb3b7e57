"""
Shared library modules for dbkeeper: logging, event bus, startup helpers,
settings hooks and the core lifecycle components.
"""
