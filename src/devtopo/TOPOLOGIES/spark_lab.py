"""
Local Spark development lab: SQL Server, a Spark master and worker, a Jupyter
notebook front-end, a RabbitMQ broker, Prometheus and Grafana for metrics, and
Adminer for database administration.
"""
from typing import Optional

from ..MANAGERS.topology_builder import TopologyBuilder
from ..MODELS.resource import EndpointReference, ReferenceField
from ..UTILS.settings import TopologySettings

SPARK_IMAGE = "bitnami/spark"
MASTER_HOST = "spark-master"
MASTER_PORT = 7077


def declare(builder: TopologyBuilder, settings: Optional[TopologySettings] = None) -> TopologyBuilder:
    """
    Declares the lab on a builder.

    :param builder: The declaration context to populate.
    :param settings: Supplies the Jupyter token and SQL Server password.
    :return: The same builder.
    """
    settings = settings or TopologySettings()

    sql_env = {}
    if settings.sql_password:
        sql_env["MSSQL_SA_PASSWORD"] = settings.sql_password
    builder.add_managed_service("sql", "sqlserver", host_port=1433, environment=sql_env, data_volume=True)

    builder.add_container(MASTER_HOST, SPARK_IMAGE, environment={
        "SPARK_MODE": "master",
        "SPARK_MASTER_HOST": "0.0.0.0",
        "SPARK_MASTER_PORT": str(MASTER_PORT),
    })
    builder.add_endpoint(MASTER_HOST, 8080, host_port=8080, protocol="http", name="web-ui")
    builder.add_endpoint(MASTER_HOST, MASTER_PORT, host_port=7077, protocol="spark", name="spark-master")
    builder.add_endpoint(MASTER_HOST, 4040, host_port=4040, protocol="http", name="spark-app-ui")

    builder.add_container("spark-worker", SPARK_IMAGE, environment={
        "SPARK_MODE": "worker",
        "SPARK_MASTER_URL": EndpointReference(
            resource=MASTER_HOST, endpoint="spark-master", field=ReferenceField.URL,
        ),
    })
    builder.add_endpoint("spark-worker", 8081, host_port=8081, protocol="http")
    builder.set_parent("spark-worker", MASTER_HOST)
    builder.wait_for("spark-worker", [MASTER_HOST])

    builder.add_container("jupyter", "jupyter/pyspark-notebook", environment={
        "JUPYTER_TOKEN": settings.jupyter_token,
        "SPARK_MASTER": EndpointReference(resource=MASTER_HOST, endpoint="spark-master"),
    })
    builder.add_endpoint("jupyter", 8888, host_port=8888, protocol="http")
    builder.add_bind_mount("jupyter", "./notebooks", "/home/jovyan/work")
    builder.add_volume("jupyter", "jupyter-data", "/data")
    builder.add_volume("jupyter", "jupyter-user", "/home/jovyan/.jupyter")
    builder.wait_for("jupyter", [MASTER_HOST, "spark-worker"])

    builder.add_managed_service("broker", "rabbitmq", host_port=5672, data_volume=True)

    builder.add_managed_service("prometheus", "prometheus", host_port=9090, data_volume=True)
    builder.add_managed_service("grafana", "grafana", host_port=3000, data_volume=True, environment={
        "GF_PROMETHEUS_URL": EndpointReference(resource="prometheus", endpoint="http"),
    })
    builder.wait_for("grafana", ["prometheus"])

    builder.add_managed_service("adminer", "adminer", host_port=8088, environment={
        "ADMINER_DEFAULT_SERVER": EndpointReference(
            resource="sql", endpoint="tds", field=ReferenceField.AUTHORITY,
        ),
    })
    builder.wait_for("adminer", ["sql"])
    return builder


def build(settings: Optional[TopologySettings] = None) -> TopologyBuilder:
    """
    Returns a fresh builder with the lab declared.
    """
    return declare(TopologyBuilder(name="spark-lab"), settings)
