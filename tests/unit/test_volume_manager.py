# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Unit tests for volume bindings.
"""
import pytest

from devtopo.MANAGERS.resource_registry import ResourceRegistry
from devtopo.MANAGERS.volume_manager import VolumeManager, infer_kind
from devtopo.MODELS.errors import DuplicateMountPathError, FrozenRegistryError
from devtopo.MODELS.resource import Resource, VolumeBinding, VolumeKind


@pytest.fixture
def volumes():
    registry = ResourceRegistry()
    registry.register(Resource(name="jupyter", image="jupyter/pyspark-notebook"))
    registry.register(Resource(name="sql", image="sqlserver"))
    return VolumeManager(registry)


class TestVolumeManager:
    """Tests for VolumeManager."""

    def test_add_volume(self, volumes):
        """Test attaching a named volume."""
        volumes.add_volume("jupyter", VolumeBinding(source="jupyter-data", target_path="/data"))
        assert volumes.registry.lookup("jupyter").volumes[0].source == "jupyter-data"

    def test_duplicate_mount_path(self, volumes):
        """Test that a mount path is used once per resource."""
        volumes.add_volume("jupyter", VolumeBinding(source="jupyter-data", target_path="/data"))
        with pytest.raises(DuplicateMountPathError) as exc:
            volumes.add_volume("jupyter", VolumeBinding(
                kind=VolumeKind.BIND, source="./data", target_path="/data/",
            ))
        assert exc.value.target_path == "/data"

    def test_same_path_on_different_resources(self, volumes):
        """Test that different resources may mount at the same path."""
        volumes.add_volume("jupyter", VolumeBinding(source="one", target_path="/data"))
        volumes.add_volume("sql", VolumeBinding(source="two", target_path="/data"))

    def test_named_volumes_are_listed_once(self, volumes):
        volumes.add_volume("jupyter", VolumeBinding(source="shared", target_path="/a"))
        volumes.add_volume("sql", VolumeBinding(source="shared", target_path="/b", read_only=True))
        volumes.add_volume("sql", VolumeBinding(kind=VolumeKind.BIND, source="./conf", target_path="/conf"))
        assert volumes.named_volumes() == ["shared"]
        assert [(name, b.source) for name, b in volumes.bind_mounts()] == [("sql", "./conf")]

    def test_frozen(self, volumes):
        volumes.registry.freeze()
        with pytest.raises(FrozenRegistryError):
            volumes.add_volume("jupyter", VolumeBinding(source="data", target_path="/data"))


@pytest.mark.parametrize("source, kind", [
    ("./notebooks", VolumeKind.BIND),
    ("/srv/data", VolumeKind.BIND),
    ("~/notebooks", VolumeKind.BIND),
    ("jupyter-data", VolumeKind.VOLUME),
])
def test_infer_kind(source, kind):
    assert infer_kind(source) == kind
