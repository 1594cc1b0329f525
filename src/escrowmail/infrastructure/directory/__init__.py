from .http_directory import HttpDirectory
from .memory_directory import InMemoryDirectory

__all__ = ["HttpDirectory", "InMemoryDirectory"]
