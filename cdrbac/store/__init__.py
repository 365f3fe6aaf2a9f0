"""
Package store holds the active policy generation.
"""

from .policy_store import PolicyStore, PolicySnapshot

__all__ = [
    'PolicyStore',
    'PolicySnapshot',
]
