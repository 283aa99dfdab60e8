"""CLI interface for app-metrics."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import time

from . import __version__
from .config import load_config


def _cmd_serve(args: argparse.Namespace) -> None:
    """Run collectors in the background and serve the debug endpoints."""
    cfg = load_config(args.config)
    if args.interval is not None:
        cfg.collector.interval_seconds = args.interval

    import uvicorn

    from .collector.manager import CollectorManager
    from .exporter.expvar import ExpvarExporter
    from .exporter.http_stats import create_app

    exporters = []

    if cfg.expvar.enabled:
        exporters.append(ExpvarExporter(cfg.expvar))

    if cfg.mode == "online":
        from .exporter.otel import OtelExporter
        exporters.append(OtelExporter(cfg.otel))

    manager = CollectorManager(cfg.collector)
    for exp in exporters:
        manager.add_sink(exp.export)

    manager.start()
    print(f"app-metrics collecting (mode={cfg.mode}, interval={cfg.collector.interval_seconds}s)")
    try:
        if cfg.http.enabled:
            print(f"Debug endpoints on http://{cfg.http.host}:{cfg.http.port}/debug/stats/")
            uvicorn.run(create_app(cfg.http), host=cfg.http.host, port=cfg.http.port, log_level="info")
        else:
            stop = False

            def _handle_signal(_sig: int, _frame: object) -> None:
                nonlocal stop
                stop = True

            signal.signal(signal.SIGINT, _handle_signal)
            signal.signal(signal.SIGTERM, _handle_signal)
            print("Press Ctrl+C to stop.\n")
            while not stop:
                time.sleep(0.5)
    finally:
        manager.stop()
        for exp in exporters:
            exp.shutdown()
    print("\nCollection stopped.")


def _cmd_once(args: argparse.Namespace) -> None:
    """Sample once over a window and print the values."""
    cfg = load_config(args.config)

    from .collector.manager import CollectorManager

    manager = CollectorManager(cfg.collector)
    try:
        manager.collect_once()
        time.sleep(max(args.seconds, 0.0))
        snapshots = manager.collect_once()
    finally:
        manager.stop()

    if args.table:
        from rich.console import Console
        from rich.table import Table

        table = Table(title="app-metrics")
        table.add_column("Collector", style="cyan")
        table.add_column("Key")
        table.add_column("Value", justify="right", style="green")
        for snapshot in snapshots:
            for key, value in sorted(snapshot.values().items()):
                table.add_row(snapshot.kind, key, f"{value:.2f}" if isinstance(value, float) else str(value))
        Console().print(table)
        return

    for snapshot in snapshots:
        for key, value in sorted(snapshot.values().items()):
            print(f"{key}={value}")


def _cmd_version(_args: argparse.Namespace) -> None:
    print(f"app-metrics {__version__}")


def main(argv: list[str] | None = None) -> None:
    """Entry point for the app-metrics CLI."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    parser = argparse.ArgumentParser(
        prog="app-metrics",
        description="Collect and publish Python runtime and system metrics",
    )
    parser.add_argument("--config", "-c", default=None, help="Path to app_metrics.yaml")
    sub = parser.add_subparsers(dest="command")

    # serve
    serve_p = sub.add_parser("serve", help="Collect in the background and serve /debug endpoints")
    serve_p.add_argument("--interval", type=float, default=None, help="Collection interval in seconds")
    serve_p.set_defaults(func=_cmd_serve)

    # once
    once_p = sub.add_parser("once", help="Sample once and print key=value lines")
    once_p.add_argument("--seconds", type=float, default=1.0, help="Window for delta-based metrics")
    once_p.add_argument("--table", action="store_true", help="Print a rich table instead of key=value lines")
    once_p.set_defaults(func=_cmd_once)

    # version
    ver_p = sub.add_parser("version", help="Print version")
    ver_p.set_defaults(func=_cmd_version)

    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
