import pytest
import yaml

from devtopo.MODELS.errors import (
    CyclicDependencyError,
    DuplicatePortError,
    TopologyParseError,
    UnknownResourceError,
)
from devtopo.MODELS.resource import EndpointReference, ResourceKind, VariableReference, VolumeKind
from devtopo.PARSERS.topology_parser import TopologyParser

TOPOLOGY = """
name: lab
resources:
  sql:
    type: sqlserver
    host_port: 1433
    data_volume: true
    environment:
      MSSQL_SA_PASSWORD: ${SQL_PASSWORD}
  jupyter:
    image: jupyter/pyspark-notebook
    environment:
      JUPYTER_TOKEN: ${JUPYTER_TOKEN:-mynotebook}
      SPARK_MASTER:
        resource: spark-master
        endpoint: spark-master
      MODE:
        resource: spark-master
        variable: SPARK_MODE
    endpoints:
      - "8888:8888/http"
    volumes:
      - ./notebooks:/home/jovyan/work
      - jupyter-data:/data
      - source: jupyter-user
        target: /home/jovyan/.jupyter
        read_only: true
    wait_for: [spark-master, spark-worker]
  spark-master:
    image: bitnami/spark
    environment:
      - SPARK_MODE=master
    endpoints:
      - name: web-ui
        host_port: 8080
        target_port: 8080
        protocol: http
      - name: spark-master
        host_port: 7077
        target_port: 7077
        protocol: spark
  spark-worker:
    image: bitnami/spark
    parent: spark-master
    wait_for: spark-master
    endpoints:
      - 8081
"""


def test_parse(tmp_path):
    topology_file = tmp_path / "lab.yml"
    topology_file.write_text(TOPOLOGY)

    builder = TopologyParser(context={"SQL_PASSWORD": "s3cret"}).parse(str(topology_file))
    assert builder.name == "lab"
    assert builder.registry.names() == ["sql", "jupyter", "spark-master", "spark-worker"]

    sql = builder.registry.lookup("sql")
    assert sql.kind == ResourceKind.MANAGED_SERVICE
    assert sql.environment["MSSQL_SA_PASSWORD"] == "s3cret"
    assert sql.volumes[0].source == "sql-data"

    jupyter = builder.registry.lookup("jupyter")
    assert jupyter.environment["JUPYTER_TOKEN"] == "mynotebook"
    assert isinstance(jupyter.environment["SPARK_MASTER"], EndpointReference)
    assert isinstance(jupyter.environment["MODE"], VariableReference)
    assert jupyter.endpoints[0].name == "http"
    assert jupyter.endpoints[0].host_port == 8888
    assert [v.kind for v in jupyter.volumes] == [VolumeKind.BIND, VolumeKind.VOLUME, VolumeKind.VOLUME]
    assert jupyter.volumes[2].read_only
    assert jupyter.wait_for == ["spark-master", "spark-worker"]

    worker = builder.registry.lookup("spark-worker")
    assert worker.parent == "spark-master"
    assert worker.endpoints[0].target_port == 8081
    assert worker.endpoints[0].host_port is None

    plan = builder.build_plan()
    assert plan.wave_names() == [["spark-master", "sql"], ["spark-worker"], ["jupyter"]]
    assert plan.descriptor("jupyter").environment["SPARK_MASTER"] == "spark://spark-master:7077"
    assert plan.descriptor("jupyter").environment["MODE"] == "master"


def test_default_name_from_file(tmp_path):
    topology_file = tmp_path / "my-stack.yaml"
    topology_file.write_text(yaml.dump({'resources': {'web': {'image': 'nginx'}}}))
    assert TopologyParser(context={}).parse(str(topology_file)).name == "my-stack"


def test_missing_variable():
    with pytest.raises(TopologyParseError):
        TopologyParser(context={}).parse_from_string(TOPOLOGY)


def test_missing_file(tmp_path):
    with pytest.raises(TopologyParseError):
        TopologyParser(context={}).parse(str(tmp_path / "nope.yml"))


@pytest.mark.parametrize("content", ["", "   \n\t  ", "# nothing declared\n"])
def test_empty_document(content):
    builder = TopologyParser(context={}).parse_from_string(content)
    assert builder.build_plan().waves == ()


def test_interpolated_host_port_collides():
    content = """
resources:
  db:
    type: postgres
    host_port: ${PG_PORT}
  app:
    image: nginx
    endpoints: ["5432:80"]
"""
    with pytest.raises(DuplicatePortError):
        TopologyParser(context={"PG_PORT": "5432"}).parse_from_string(content)


def test_interpolated_host_port_out_of_range():
    content = "resources:\n  db:\n    type: postgres\n    host_port: ${PG_PORT}"
    with pytest.raises(TopologyParseError):
        TopologyParser(context={"PG_PORT": "70000"}).parse_from_string(content)


@pytest.mark.parametrize("content", [
    "just a string",
    "resources: [1, 2]",
    "resources:\n  web: nope",
    "resources:\n  web:\n    image: nginx\n    colour: red",
    "resources:\n  web: {}",
    "resources:\n  web:\n    image: nginx\n    endpoints: ['abc']",
    "resources:\n  web:\n    image: nginx\n    volumes: ['a:b:c:d']",
    "resources:\n  web:\n    image: nginx\n    endpoints: [{target_port: 0}]",
    "resources:\n  web:\n    image: nginx\n    environment: [NOEQUALS]",
    "resources: {web: {image: [unclosed",
])
def test_malformed(content):
    with pytest.raises(TopologyParseError):
        TopologyParser(context={}).parse_from_string(content)


def test_unknown_wait_for_target():
    content = "resources:\n  web:\n    image: nginx\n    wait_for: [db]"
    with pytest.raises(UnknownResourceError):
        TopologyParser(context={}).parse_from_string(content)


def test_cycle_in_file():
    content = yaml.dump({'resources': {
        'a': {'image': 'x', 'wait_for': ['b']},
        'b': {'image': 'x', 'wait_for': ['a']},
    }})
    builder = TopologyParser(context={}).parse_from_string(content)
    with pytest.raises(CyclicDependencyError):
        builder.build_plan()
