from click.testing import CliRunner
from ptc.CLI.main import cli


def test_cli_help():
    runner = CliRunner()
    result = runner.invoke(cli, ['--help'])
    assert result.exit_code == 0
    assert 'Start the cluster' in result.output


def test_cli_up_no_file():
    runner = CliRunner()
    result = runner.invoke(cli, ['-f', 'non_existent.yml', 'up'])
    assert result.exit_code != 0
    assert 'non_existent.yml not found.' in result.output


def test_cli_plan(tmp_path):
    topology = tmp_path / "topology.yml"
    topology.write_text(
        "cluster_name: t1\n"
        "num_bookies: 1\n"
        "num_brokers: 2\n"
        "num_function_workers: 1\n"
        "function_runtime_type: THREAD\n"
    )
    runner = CliRunner()
    result = runner.invoke(cli, ['-f', str(topology), 'plan'])
    assert result.exit_code == 0
    assert 'pulsar-broker-1' in result.output
    assert 'pulsar-functions-worker-0' in result.output
    assert 'PF_threadContainerFactory_threadGroupName=pf-container-group' in result.output


def test_cli_plan_invalid_topology(tmp_path):
    topology = tmp_path / "topology.yml"
    topology.write_text("cluster_name: t1\nnum_brokers: -2\n")
    runner = CliRunner()
    result = runner.invoke(cli, ['-f', str(topology), 'plan'])
    assert result.exit_code != 0
    assert 'invalid topology' in result.output
