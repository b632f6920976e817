"""
Integrations with external services that consume forwarded events.
"""
