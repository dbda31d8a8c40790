from types import SimpleNamespace

from dispfix.schemas.user import UserConfig
from dispfix.schemas.cli import CLIConfig
from dispfix.schemas.param import ParamConfig
from dispfix.schemas.resolve import resolve_config
from dispfix.schemas.initialization import build_cli_config


def test_cli_overrides_do_not_mutate_user():
    user = UserConfig.model_validate({"SEED": 1, "INPUT_DIR": "/data/a"})

    cli = CLIConfig.model_validate({"seed": 9})

    internal = resolve_config(ParamConfig(), user, cli)

    # CLI should take precedence
    assert internal.correction.seed == 9

    # But the original user model should remain unchanged
    assert user.seed == 1


def test_cli_input_dir_wins_and_user_values_survive():
    """CLI input_dir override keeps the user's other settings."""
    user = UserConfig(input_dir="/data/a", base_dir="/tmp", tolerance=0.002)
    cli = CLIConfig(input_dir="/data/b")

    config = resolve_config(ParamConfig(), user, cli)

    assert config.input_dir == "/data/b"  # CLI wins
    assert config.base_dir == "/tmp"  # User value preserved
    assert config.validation.cumulative_tolerance == 0.002


def test_cli_workers_and_log_level():
    config = resolve_config(ParamConfig(), UserConfig(workers=2), CLIConfig(workers=8, log_level="DEBUG"))

    assert config.processor.workers == 8
    assert config.logging.level == "DEBUG"


def test_build_cli_config_drops_unset_values():
    args = SimpleNamespace(input_dir=None, comparison_dir="/data/cmp", base_dir=None,
                           seed=5, workers=None, verbose=True)

    cli = build_cli_config(args)

    assert cli.to_internal_overrides() == {
        "comparison_dir": "/data/cmp",
        "correction": {"seed": 5},
        "logging": {"level": "DEBUG"},
    }
