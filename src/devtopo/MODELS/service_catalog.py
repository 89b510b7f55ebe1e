"""
Defaults for managed service types: the image that backs them, the endpoints
they expose and where they keep their data.
"""
from typing import Dict, List, Optional

from pydantic import BaseModel

from .resource import Endpoint


class ServiceTemplate(BaseModel):
    """
    Defaults applied when a managed service of a given type is declared.
    The first endpoint is the primary one.
    """
    image: str
    endpoints: List[Endpoint]
    data_path: Optional[str] = None
    environment: Dict[str, str] = {}

    @property
    def primary_endpoint(self) -> Endpoint:
        return self.endpoints[0]


SERVICE_CATALOG: Dict[str, ServiceTemplate] = {
    "sqlserver": ServiceTemplate(
        image="mcr.microsoft.com/mssql/server:2022-latest",
        endpoints=[Endpoint(name="tds", target_port=1433, protocol="tcp")],
        data_path="/var/opt/mssql",
        environment={"ACCEPT_EULA": "Y"},
    ),
    "postgres": ServiceTemplate(
        image="postgres:16",
        endpoints=[Endpoint(name="tcp", target_port=5432, protocol="tcp")],
        data_path="/var/lib/postgresql/data",
    ),
    "rabbitmq": ServiceTemplate(
        image="rabbitmq:3-management",
        endpoints=[
            Endpoint(name="amqp", target_port=5672, protocol="amqp"),
            Endpoint(name="management", target_port=15672, protocol="http"),
        ],
        data_path="/var/lib/rabbitmq",
    ),
    "redis": ServiceTemplate(
        image="redis:7",
        endpoints=[Endpoint(name="tcp", target_port=6379, protocol="redis")],
        data_path="/data",
    ),
    "prometheus": ServiceTemplate(
        image="prom/prometheus:latest",
        endpoints=[Endpoint(name="http", target_port=9090, protocol="http")],
        data_path="/prometheus",
    ),
    "grafana": ServiceTemplate(
        image="grafana/grafana:latest",
        endpoints=[Endpoint(name="http", target_port=3000, protocol="http")],
        data_path="/var/lib/grafana",
    ),
    "adminer": ServiceTemplate(
        image="adminer:latest",
        endpoints=[Endpoint(name="http", target_port=8080, protocol="http")],
    ),
}


def get_template(service_type: str) -> ServiceTemplate:
    """
    Looks up the defaults for a managed service type.

    :param service_type: Catalog key, e.g. ``sqlserver``.
    :raises KeyError: If the type is not in the catalog.
    """
    try:
        return SERVICE_CATALOG[service_type]
    except KeyError:
        known = ", ".join(sorted(SERVICE_CATALOG))
        raise KeyError(f"Unknown managed service type '{service_type}' (known: {known})") from None


def image_for(kind_value: str, image: str) -> str:
    """
    Returns the container image that backs a resource.
    Managed services name a catalog type; containers name their image directly.
    """
    if kind_value == "managed-service" and image in SERVICE_CATALOG:
        return SERVICE_CATALOG[image].image
    return image
