"""
End-to-end property runs against real valkey-server instances

Set VALKEY_NODES to run, e.g.
VALKEY_NODES=node_1=127.0.0.1:7001,node_2=127.0.0.1:7002,node_3=127.0.0.1:7003,node_4=127.0.0.1:7004
"""
import os

import pytest

from model_fuzzer.cli import parse_node_addresses
from model_fuzzer.main import ModelFuzzer
from model_fuzzer.models import FuzzerConfig, Scheduler
from model_fuzzer.utils.valkey_utils import is_node_alive

VALKEY_NODES = os.environ.get('VALKEY_NODES', '')

pytestmark = [
    pytest.mark.slow,
    pytest.mark.valkey,
    pytest.mark.skipif(not VALKEY_NODES, reason="VALKEY_NODES not set"),
]


@pytest.fixture
def config(tmp_path):
    addresses = parse_node_addresses(VALKEY_NODES.split(','))
    down = [node for node, address in addresses.items() if not is_node_alive(address)]
    if down:
        pytest.skip(f"valkey-server not reachable for {down}")
    return FuzzerConfig(
        system_model="replicated_kv",
        cluster_backend="valkey",
        node_addresses=addresses,
        num_tests=5,
        max_commands=15,
        wait_delay=0.1,
        log_dir=str(tmp_path / "logs"),
    )


def test_replicated_kv_on_valkey(config):
    """Test the replicated store passes against live nodes"""
    config.fault_injection = True
    config.scheduler = Scheduler.FINITE_FAULT

    result = ModelFuzzer(config).run_property(seed=1)

    assert result.success is True
    assert result.tests_run == 5


def test_reused_nodes(config):
    config.restart_nodes = False

    result = ModelFuzzer(config).run_property(seed=2)

    assert result.success is True
