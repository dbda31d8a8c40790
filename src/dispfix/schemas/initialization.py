"""Turn parsed command-line arguments into a ready-to-run InternalConfig.

Steps, in order:

1. Load the user's CONFIG dict and merge it with defaults and CLI flags.
2. Remove the previous output tree when ``--rerun`` was given.
3. Create the output directory layout.
4. Assign a run id and save the resolved configuration next to the reports.

The saved JSON snapshot, together with ``correction.seed``, is what a later
run needs to reproduce the same corrections.
"""

import importlib.util
import json
import shutil
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict

from dispfix.schemas.cli import CLIConfig
from dispfix.schemas.internal import InternalConfig
from dispfix.schemas.param import ParamConfig
from dispfix.schemas.resolve import resolve_config
from dispfix.schemas.user import UserConfig
from dispfix.setup_directories import setup_output_directories

__all__ = ['init_runtime_config', 'load_user_config_dict', 'build_cli_config', 'generate_run_id']


def load_user_config_dict(config_path: str) -> dict:
    """Execute a Python config file and return its ``CONFIG`` dict.

    Any module-level dict whose name starts with ``CONFIG`` is accepted, so
    ``CONFIG_SITE_A`` works as well.

    Raises
    ------
    FileNotFoundError
        If ``config_path`` does not exist.
    ValueError
        If the file defines no such dict.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    module_spec = importlib.util.spec_from_file_location("dispfix_user_config", path)
    if module_spec is None or module_spec.loader is None:
        raise ImportError(f"Could not load config module from {path}")
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)

    candidates = [getattr(module, name) for name in sorted(vars(module)) if name.startswith("CONFIG")]
    for candidate in candidates:
        if isinstance(candidate, dict):
            return candidate
    raise ValueError(f"No CONFIG dict found in {path}")


def generate_run_id() -> str:
    """UTC timestamp plus a short random suffix, e.g. ``20250701_120000_1a2b3c``."""
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"{stamp}_{uuid.uuid4().hex[:6]}"


def build_cli_config(args) -> CLIConfig:
    """CLIConfig from an argparse namespace; flags left unset are not overrides."""
    values = {
        "input_dir": getattr(args, 'input_dir', None),
        "comparison_dir": getattr(args, 'comparison_dir', None),
        "base_dir": getattr(args, 'base_dir', None),
        "seed": getattr(args, 'seed', None),
        "workers": getattr(args, 'workers', None),
        "log_level": "DEBUG" if getattr(args, 'verbose', False) else None,
    }
    return CLIConfig.model_validate({k: v for k, v in values.items() if v is not None})


def _clean_output(base_dir: str) -> None:
    base = Path(base_dir)
    if base.exists():
        print(f"--rerun: removing {base}")
        shutil.rmtree(base)


def _save_snapshot(config: InternalConfig, output_dirs: Dict[str, Path]) -> Path:
    reports_dir = Path(output_dirs["reports"])
    reports_dir.mkdir(parents=True, exist_ok=True)
    snapshot = reports_dir / f"runtime_config_{config.run_id}.json"

    payload = config.model_dump()
    payload["created_at"] = datetime.now(timezone.utc).isoformat()
    with open(snapshot, 'w', encoding="utf-8") as f:
        json.dump(payload, f, indent=2, default=str)

    print(f"Runtime config saved: {snapshot}")
    return snapshot


def init_runtime_config(args) -> InternalConfig:
    """Resolve, prepare and persist the configuration for one run.

    Parameters
    ----------
    args : argparse.Namespace
        Needs ``config``; every override flag is optional.

    Returns
    -------
    InternalConfig
        With ``base_dir``, ``output_dirs`` and ``run_id`` filled in.

    Raises
    ------
    FileNotFoundError
        If the config file does not exist.
    ValueError
        If no config path is given or no input directory is configured.
    """
    config_path = getattr(args, 'config', None)
    if not config_path:
        raise ValueError("Config path required in args.config")

    resolved = resolve_config(
        ParamConfig(),
        UserConfig.model_validate(load_user_config_dict(config_path)),
        build_cli_config(args),
    )
    if not resolved.input_dir:
        raise ValueError("input_dir must be set in the user config or with --input-dir")

    base_dir = resolved.base_dir or str(Path.cwd() / "dispfix_output")
    if getattr(args, 'rerun', False):
        _clean_output(base_dir)
    output_dirs = setup_output_directories(base_dir)

    config = InternalConfig.model_validate({
        **resolved.model_dump(),
        "base_dir": base_dir,
        "output_dirs": {k: str(v) for k, v in output_dirs.items()},
        "run_id": generate_run_id(),
    })
    _save_snapshot(config, output_dirs)

    print(f"Runtime initialization complete. Run ID: {config.run_id}")
    return config
