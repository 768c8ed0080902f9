"""Storage backends for models and training definitions."""

from .filesystem_store import FileSystemModelRepository
from .supabase_store import SupabaseModelRepository
from .definitions_store import FileSystemDefinitionsProvider, sanitize_name

__all__ = [
    "FileSystemModelRepository",
    "SupabaseModelRepository",
    "FileSystemDefinitionsProvider",
    "sanitize_name",
]
