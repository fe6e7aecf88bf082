from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional

DATASOURCE_TYPE_PROMETHEUS = "prometheus"
# Grafana's backend proxies queries, so browsers never need cluster access.
DATASOURCE_ACCESS_PROXY = "proxy"


@dataclass(frozen=True)
class Datasource:
    """A Grafana datasource as sent to the datasource API."""

    name: str
    url: str
    json_data: Dict[str, str] = field(default_factory=dict)
    secure_json_data: Dict[str, str] = field(default_factory=dict)
    type: str = DATASOURCE_TYPE_PROMETHEUS
    access: str = DATASOURCE_ACCESS_PROXY
    id: Optional[int] = None

    def with_id(self, datasource_id: int) -> "Datasource":
        return replace(self, id=datasource_id)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "name": self.name,
            "type": self.type,
            "access": self.access,
            "url": self.url,
            "jsonData": dict(self.json_data),
            "secureJsonData": dict(self.secure_json_data),
        }
        if self.id is not None:
            body["id"] = self.id
        return body
