"""
Tests for the run_dex_sim.py CLI.
"""

import sys
from pathlib import Path

# Add parent directory to path before imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest  # noqa: E402

import run_dex_sim  # noqa: E402
from dexsim.config import ConfigError, DexSimConfig  # noqa: E402


def config():
    return DexSimConfig({"rpc_url": "https://rpc.example"})


def test_flags_parsed():
    args = run_dex_sim.parse_args(
        ["--arb-threshold=0.2", "--interval=15", "--simulate", "--once", "--quiet"]
    )
    assert args.arb_threshold == 0.2
    assert args.interval == 15
    assert args.simulate and args.once and args.quiet
    assert args.config is None


def test_cli_overrides_applied():
    cfg = config()
    args = run_dex_sim.parse_args(
        [
            "--arb-threshold", "0.5",
            "--interval", "10",
            "--simulate",
            "--starting-balance", "2500",
            "--duration", "60",
            "--dashboard",
        ]
    )

    run_dex_sim.apply_cli_overrides(cfg, args)

    assert cfg.threshold_pct == 0.5
    assert cfg.poll_sec == 10
    assert cfg.simulate is True
    assert cfg.starting_balance == 2500
    assert cfg.duration_sec == 60
    assert cfg.dashboard_enabled is True


@pytest.mark.parametrize(
    "argv",
    [["--arb-threshold=-1"], ["--interval=0"], ["--starting-balance=0"], ["--duration=-5"]],
)
def test_invalid_overrides(argv):
    with pytest.raises(ConfigError):
        run_dex_sim.apply_cli_overrides(config(), run_dex_sim.parse_args(argv))


def test_missing_rpc_url_exits_1(monkeypatch, capsys):
    monkeypatch.delenv("RPC_URL", raising=False)
    monkeypatch.setattr(run_dex_sim, "load_dotenv", lambda: None)

    assert run_dex_sim.main(["--once"]) == 1
    assert "Config error" in capsys.readouterr().err


def test_unreachable_rpc_exits_1(monkeypatch, capsys):
    monkeypatch.setenv("RPC_URL", "http://127.0.0.1:9")
    monkeypatch.setattr(run_dex_sim, "load_dotenv", lambda: None)

    assert run_dex_sim.main(["--once"]) == 1
    assert "Initialization failed" in capsys.readouterr().err


@pytest.mark.parametrize(
    "argv,expected",
    [(["--once"], "setup"), (["--once", "--quiet"], "setup_minimal"), (["--once", "--debug"], "setup_debug")],
)
def test_logging_level_follows_flags(monkeypatch, argv, expected):
    monkeypatch.delenv("RPC_URL", raising=False)
    monkeypatch.delenv("DEX_DEBUG", raising=False)
    monkeypatch.setattr(run_dex_sim, "load_dotenv", lambda: None)
    called = []
    for name in ("setup", "setup_minimal", "setup_debug"):
        monkeypatch.setattr(
            run_dex_sim.logging_config, name, lambda *a, _n=name: called.append(_n)
        )

    run_dex_sim.main(argv)

    assert called == [expected]
