import pytest

from modorder.config_utils import ConfigStore
from modorder.mod_utils import ModRegistry


@pytest.fixture
def config_path(tmp_path):
    return str(tmp_path / "ModOrderTool.ini")


@pytest.fixture
def store(config_path):
    return ConfigStore(config_path)


@pytest.fixture
def registry(store):
    reg = ModRegistry(store)
    reg.reload()
    return reg
