"""
Pure booking rules: no I/O, no framework imports.
Used by the services (authoritative) and the client (pre-checks, rendering).
"""
