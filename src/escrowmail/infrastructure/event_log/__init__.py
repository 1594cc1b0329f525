from .composite_event_log import CompositeEventLog
from .logging_event_log import LoggingEventLog
from .memory_event_log import InMemoryEventLog
from .sqlalchemy_event_log import SqlAlchemyEventLog

__all__ = ["CompositeEventLog", "InMemoryEventLog", "LoggingEventLog", "SqlAlchemyEventLog"]
