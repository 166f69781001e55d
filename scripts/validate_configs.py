"""Check the supervisor and serving YAML files before deploying them to a board."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))
if str(repo_root / "src") not in sys.path:
    sys.path.insert(0, str(repo_root / "src"))

from firecnc.errors import ConfigError
from firecnc.utils.config import load_supervisor_config
from services.api.config import load_serving_config

KNOWN_SCOPES = {"read", "write"}


def _check_serving(path: Path) -> list[str]:
    problems: list[str] = []
    cfg = load_serving_config.__wrapped__(path)
    keys = cfg.get("security", {}).get("api_keys", {})
    if not keys:
        problems.append("no api_keys configured")
    for key, scopes in keys.items():
        unknown = set(scopes or []) - KNOWN_SCOPES
        if unknown:
            problems.append(f"key {key!r} has unknown scopes {sorted(unknown)}")
    return problems


def main() -> None:
    parser = argparse.ArgumentParser(description="Validate fireCNC supervisor configs")
    parser.add_argument("--config-dir", default="configs")
    args = parser.parse_args()

    cfg_dir = Path(args.config_dir)
    if not cfg_dir.exists():
        raise SystemExit(f"Missing config directory: {cfg_dir}")

    failed = False
    supervisor_path = cfg_dir / "supervisor.yaml"
    try:
        config = load_supervisor_config(supervisor_path)
        target = config.watchdog.icmp_target or "disabled"
        print(f"[config] OK: {supervisor_path} (timeout={config.watchdog.timeout_seconds}s, icmp={target})")
    except ConfigError as exc:
        failed = True
        print(f"[config] FAIL: {exc}")

    serving_path = cfg_dir / "serving.yaml"
    for problem in _check_serving(serving_path):
        failed = True
        print(f"[config] FAIL: {serving_path}: {problem}")

    if failed:
        raise SystemExit("Config validation failed.")
    print("[config] All configs validated.")


if __name__ == "__main__":
    main()
