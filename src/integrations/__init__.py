"""
Integrations with remote services.
"""
