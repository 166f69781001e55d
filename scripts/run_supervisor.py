"""Boot the supervisor against the wall clock and print a status summary."""
from __future__ import annotations

from pathlib import Path
import argparse
import json
import sys
import time

repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))
if str(repo_root / "src") not in sys.path:
    sys.path.insert(0, str(repo_root / "src"))

from firecnc.supervisor.system import SupervisorRuntime, build_supervisor
from firecnc.utils.logging import setup_logging


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the fireCNC supervisory core")
    parser.add_argument("--config", default="configs/supervisor.yaml")
    parser.add_argument("--db-path", default=None, help="DuckDB state file (default: FIRECNC_STATE_DB_PATH)")
    parser.add_argument("--duration", type=float, default=10.0, help="Seconds to run before printing status")
    parser.add_argument("--log-level", default=None)
    parser.add_argument("--log-format", choices=["text", "json"], default=None)
    parser.add_argument("--hang-after", type=float, default=None, help="Suspend heartbeats after N seconds")
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    setup_logging(log_level=args.log_level, log_format=args.log_format)

    runtime = SupervisorRuntime(build_supervisor(args.config, db_path=args.db_path))
    runtime.start()
    try:
        if args.hang_after is not None and args.hang_after < args.duration:
            time.sleep(args.hang_after)
            runtime.submit(runtime.supervisor.orchestrator.simulate_hang)
            time.sleep(args.duration - args.hang_after)
        else:
            time.sleep(args.duration)
    except KeyboardInterrupt:
        pass
    finally:
        snapshot = runtime.supervisor.snapshot()
        runtime.stop()
    print(json.dumps(snapshot, indent=2))


if __name__ == "__main__":
    main()
