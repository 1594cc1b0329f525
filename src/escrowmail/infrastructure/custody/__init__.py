from .http_custody import HttpCustodyAdapter
from .local_custody import LocalCustodyAdapter

__all__ = ["HttpCustodyAdapter", "LocalCustodyAdapter"]
