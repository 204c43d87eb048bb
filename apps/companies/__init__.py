"""
Companies application.

Holds the Company record that scopes every role, user and audit entry,
plus the owner-only freeze/unfreeze operations.
"""
