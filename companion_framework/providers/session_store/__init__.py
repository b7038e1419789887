"""
Session store implementations.
"""

from .memory_store import InMemorySessionStore
from .supabase_store import SupabaseSessionStore

__all__ = ['InMemorySessionStore', 'SupabaseSessionStore']
