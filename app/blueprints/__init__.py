"""
Roofing Workflow Platform
Blueprint registry.
"""
