"""
Shared ledger core: domain models, collaborator interfaces and per-user locks.
"""
