"""
User-role assignment feature module.
"""
