"""
LLM Relay - relais streaming multi-provider vers un protocole SSE uniforme.
"""

__version__ = "1.0.0"
