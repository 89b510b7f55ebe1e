import random
import string

import pytest

from devtopo.MANAGERS.topology_builder import TopologyBuilder
from devtopo.MODELS.errors import CyclicDependencyError, TopologyError
from devtopo.PARSERS.topology_parser import TopologyParser


def random_string(length):
    return ''.join(random.choice(string.printable) for _ in range(length))


def test_fuzz_topology_parser():
    parser = TopologyParser(context={})
    for _ in range(200):
        content = random_string(random.randint(0, 1000))
        try:
            parser.parse_from_string(content)
        except TopologyError:
            # Random junk must fail with a topology error, not crash.
            pass


def test_fuzz_random_graphs():
    rng = random.Random(1234)
    for _ in range(100):
        builder = TopologyBuilder()
        names = [f"r{i}" for i in range(rng.randint(1, 12))]
        for name in names:
            builder.add_container(name, "busybox")
        for _ in range(rng.randint(0, 20)):
            source, target = rng.choice(names), rng.choice(names)
            if source != target:
                builder.wait_for(source, [target])
        try:
            plan = builder.build_plan()
        except CyclicDependencyError as e:
            assert e.members
            continue
        assert sorted(d.name for d in plan.resources()) == sorted(names)


def test_edge_cases_parser():
    parser = TopologyParser(context={})

    # Empty string
    parser.parse_from_string("")

    # Only whitespace
    parser.parse_from_string("   \n\t  ")

    # Very long resource name
    with pytest.raises(TopologyError):
        parser.parse_from_string("resources:\n  " + "a" * 10000 + ":\n    image: x\n    nope: 1")

    # Invalid resource name
    with pytest.raises(TopologyError):
        parser.parse_from_string("resources:\n  'bad name':\n    image: x")
