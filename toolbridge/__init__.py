"""
ToolBridge - multi-tenant integration tool registry and dispatch service
"""

__version__ = "0.1.0"
