import shlex

import pytest

from devtopo.CONVERTERS.to_systemd import SystemdConverter
from devtopo.MANAGERS.topology_builder import TopologyBuilder
from devtopo.MODELS.errors import TopologyParseError
from devtopo.PARSERS.topology_parser import TopologyParser


def test_command_injection_in_environment():
    """
    Environment values end up on a docker command line; shell metacharacters
    must stay inside a single argument.
    """
    builder = TopologyBuilder()
    builder.add_container("web", "nginx", environment={"GREETING": "hello; touch /tmp/injected"})
    plan = builder.build_plan()

    unit = SystemdConverter(plan).render_unit(plan.descriptor("web"))
    exec_start = next(line for line in unit.splitlines() if line.startswith("ExecStart="))
    argv = shlex.split(exec_start[len("ExecStart="):])
    assert "GREETING=hello; touch /tmp/injected" in argv
    assert "touch" not in argv


def test_yaml_python_tags_rejected():
    """
    Topology files are loaded with the safe loader, so object tags fail.
    """
    content = "resources:\n  web:\n    image: !!python/object/apply:os.system ['echo pwned']"
    with pytest.raises(TopologyParseError):
        TopologyParser(context={}).parse_from_string(content)


def test_path_traversal_in_volume_name():
    """
    Named volumes are plain tokens; path separators are refused.
    """
    builder = TopologyBuilder()
    builder.add_container("web", "nginx")
    with pytest.raises(ValueError):
        builder.add_volume("web", "../../etc", "/data")
