import enum
from dataclasses import dataclass

from ..crds.prometheus import Prometheus


class EventType(enum.Enum):
    ADDED = "Added"
    UPDATED = "Updated"
    DELETED = "Deleted"


@dataclass(frozen=True)
class ResourceEvent:
    """A change to one Prometheus resource, as delivered by an event source."""

    type: EventType
    resource: Prometheus

    def __str__(self) -> str:
        return f"{self.type.value} {self.resource.metadata.identity}"
