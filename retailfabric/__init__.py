"""
retailfabric — entity persistence and notification fabric for a retail back office.

    from retailfabric import entities as E   # Partitioned records, etag CAS
    from retailfabric import blobs as B      # Attachments
    from retailfabric import queues as Q     # Notices
    from retailfabric import saga as S       # Compensated steps

    office = await BackOffice.open(Settings.from_env())
"""

from retailfabric import blobs
from retailfabric import entities
from retailfabric import queues
from retailfabric import saga
from retailfabric._logging import setup_logging
from retailfabric.config import Layout, Ordering, Settings
from retailfabric.workflows import (
    BackOffice,
    ErrorKind,
    Fabric,
    WorkflowError,
    open_fabric,
)

__version__ = "0.1.0"

__all__ = (
    "blobs",
    "entities",
    "queues",
    "saga",
    "setup_logging",
    "Layout",
    "Ordering",
    "Settings",
    "BackOffice",
    "ErrorKind",
    "Fabric",
    "WorkflowError",
    "open_fabric",
)
