"""
Pulse MCP

MCP server exposing Supabase, GitHub and Google Cloud tools, with
credentials resolved from Secret Manager, the gcloud CLI and the
environment.
"""

__version__ = "0.1.0"
