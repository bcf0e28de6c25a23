import os
from datetime import datetime

from .pipeline.config import DEFAULT_CONFIG_PATH, DEFAULT_WORK_DIR, resolve_config, write_default_config
from .pipeline.errors import ConfigurationError
from .pipeline.preflight import write_positions_template
from .pipeline.runner import run_pipeline


def parse_run_date(value: str):
    import argparse

    try:
        return datetime.strptime(value, "%Y%m%d").date()
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected YYYYMMDD, got {value!r}") from exc


def init_files(config_path: str) -> None:
    if write_default_config(config_path):
        print(f"Created default configuration at {config_path}; set mail_to before the first run.")
    else:
        print(f"Configuration file already exists at {config_path}")
    positions_path = os.path.join(DEFAULT_WORK_DIR, "positions.txt")
    if write_positions_template(positions_path):
        print(f"Created sample positions file at {positions_path}")
    else:
        print(f"Positions file already exists at {positions_path}")


def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(description="Check held positions against today's NASDAQ SSR list.")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to config JSON")
    parser.add_argument(
        "--date",
        type=parse_run_date,
        default=None,
        help="Run date as YYYYMMDD (defaults to today in US/Eastern)",
    )
    parser.add_argument(
        "--send-style",
        choices=["attachment", "body"],
        default=None,
        help="Override how hits are emailed",
    )
    parser.add_argument("--init", action="store_true", help="Write default config and positions files, then exit")
    parser.add_argument("--verbose", action="store_true", help="Print detailed run logs")

    args = parser.parse_args()
    config_path = os.path.abspath(os.path.expanduser(args.config))
    if args.init:
        init_files(config_path)
        raise SystemExit(0)

    try:
        config = resolve_config(config_path, overrides={"send_style": args.send_style})
    except ConfigurationError as exc:
        print(f"Configuration error: {exc.message}")
        raise SystemExit(exc.exit_code)
    raise SystemExit(run_pipeline(config, run_date=args.date, verbose=args.verbose))


if __name__ == "__main__":
    main()
