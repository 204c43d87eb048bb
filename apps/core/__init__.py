"""
Shared plumbing: base model, error taxonomy, logging, request context,
DRF authentication and permission classes.
"""
