from .registry import SourceRegistry
from .catalog import DEFAULT_CATALOG

__all__ = ['SourceRegistry', 'DEFAULT_CATALOG']
