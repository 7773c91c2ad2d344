"""
Command line entry point.

``gardenpi serve`` runs the reconciler and the HTTP API in one process.  The
other commands are thin clients for a running server:

    gardenpi status
    gardenpi mode manual
    gardenpi valve 3 on
    gardenpi schedule set schedule.json
    gardenpi schedule preset --start 06:00 --minutes 20
    gardenpi pause | resume
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import List, Optional

import requests

from .client import DEFAULT_URL, GardenClient
from .config import SINKS, load_config
from .control import GardenController
from .errors import ConfigError, GardenError, RejectedByMode
from .model import Mode, Schedule, Valve, ValveState
from .reconciler import Reconciler
from .schedule import build_sequential_schedule
from .sinks import ConsoleSink, GpioValveSink, ValveSink
from .store import ValveStateStore
from .web import build_app

logger = logging.getLogger("gardenpi")


def make_sink(cfg: dict, mock_gpio: bool = False) -> ValveSink:
    if cfg["sink"] == "gpio":
        pin_factory = None
        if mock_gpio:
            from gpiozero.pins.mock import MockFactory

            pin_factory = MockFactory()
        gpio = cfg["gpio"]
        return GpioValveSink(gpio["pins"], active_high=bool(gpio.get("active_high", True)), pin_factory=pin_factory)
    return ConsoleSink()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gardenpi", description="Eight-valve irrigation controller")
    parser.add_argument("--config", default=None, help="Path to JSON config (default: gardenpi.json)")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--url", default=os.environ.get("GARDENPI_URL", DEFAULT_URL), help="Server URL for client commands")
    sub = parser.add_subparsers(dest="cmd")

    p_serve = sub.add_parser("serve", help="Run the reconciler and HTTP API")
    p_serve.add_argument("--host", default=None)
    p_serve.add_argument("--port", type=int, default=None)
    p_serve.add_argument("--interval", type=float, default=None, help="Seconds between reconciler ticks")
    p_serve.add_argument("--sink", choices=SINKS, default=None)
    p_serve.add_argument("--mock-gpio", action="store_true", help="Use gpiozero's mock pin factory")

    sub.add_parser("status", help="Show mode and valve states")

    p_mode = sub.add_parser("mode", help="Show or set the operating mode")
    p_mode.add_argument("mode", nargs="?", choices=[m.value for m in Mode])

    p_valve = sub.add_parser("valve", help="Show or set a valve (manual mode only)")
    p_valve.add_argument("valve", help="1-8 or valve1..valve8")
    p_valve.add_argument("state", nargs="?", choices=[s.value for s in ValveState])

    p_sch = sub.add_parser("schedule", help="Show or replace the schedule")
    sch_sub = p_sch.add_subparsers(dest="sch_cmd")
    sch_sub.add_parser("show", help="Print the schedule as JSON")
    p_set = sch_sub.add_parser("set", help="Replace the schedule from a JSON file")
    p_set.add_argument("file")
    p_preset = sch_sub.add_parser("preset", help="Run valves one after another")
    p_preset.add_argument("--start", required=True, help="HH:MM 24h")
    p_preset.add_argument("--minutes", type=int, required=True)
    p_preset.add_argument("--valves", default=None, help="Comma separated, e.g. 1,2,5 (default: all)")

    sub.add_parser("pause", help="Pause the reconciler")
    sub.add_parser("resume", help="Resume the reconciler")
    return parser


def _cli_valve(token: str) -> Valve:
    """CLI valves are 1-based; the API is 0-based."""
    token = token.strip().lower()
    if token.isascii() and token.isdecimal():
        return Valve.parse(int(token) - 1)
    return Valve.parse(token)


def serve(args, cfg: dict) -> int:
    web = cfg["web"]
    host = args.host or web["host"]
    port = args.port or web["port"]
    interval = args.interval or cfg["interval"]
    if args.sink:
        cfg["sink"] = args.sink

    store = ValveStateStore()
    sink = make_sink(cfg, mock_gpio=args.mock_gpio)
    reconciler = Reconciler(store, sink, interval=interval)
    controller = GardenController(store, reconciler)
    app = build_app(controller)

    reconciler.start()
    try:
        logger.info("Serving on %s:%s (sink=%s)", host, port, cfg["sink"])
        app.run(host=host, port=port)
    finally:
        reconciler.stop()
        sink.close()
    return 0


def print_status(st: dict) -> None:
    rec = st.get("reconciler", {})
    print(f"Mode: {st['mode'].upper()}    Server time: {st['server_time']}")
    print(f"Reconciler: {'PAUSED' if rec.get('paused') else 'running'}  ticks={rec.get('ticks', 0)}")
    for v in st["valves"]:
        line = f"  {v['valve']:<7} {v['state']:<3}  manual={v['manual']}"
        if v.get("next_change"):
            line += f"  next change {v['next_change']}"
        print(line)


def run_client(args, client: GardenClient) -> int:
    if args.cmd == "status":
        print_status(client.status())
        return 0

    if args.cmd == "mode":
        if args.mode:
            client.set_mode(args.mode)
            print("OK")
        else:
            print(client.get_mode().value)
        return 0

    if args.cmd == "valve":
        valve = _cli_valve(args.valve)
        if args.state is None:
            print(client.get_valve_state(valve).value)
            return 0
        if not client.set_valve_state(valve, args.state):
            print("Rejected: switch to manual mode first (gardenpi mode manual)", file=sys.stderr)
            return 1
        print("OK")
        return 0

    if args.cmd == "schedule":
        if args.sch_cmd == "set":
            with open(args.file, "r") as f:
                schedule = Schedule.from_dict(json.load(f))
            client.set_schedule(schedule)
            print("OK")
            return 0
        if args.sch_cmd == "preset":
            valves = None
            if args.valves:
                valves = [_cli_valve(t) for t in args.valves.split(",") if t.strip()]
            try:
                schedule = build_sequential_schedule(args.start, args.minutes, valves)
            except ValueError as e:
                print(str(e), file=sys.stderr)
                return 1
            client.set_schedule(schedule)
            print(json.dumps(schedule.to_dict(), indent=2))
            return 0
        print(json.dumps(client.get_schedule().to_dict(), indent=2))
        return 0

    if args.cmd == "pause":
        client.pause()
        print("Reconciler paused")
        return 0

    if args.cmd == "resume":
        client.resume()
        print("Reconciler resumed")
        return 0

    return 2


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if args.cmd is None:
        parser.print_help()
        return 0

    if args.cmd == "serve":
        try:
            cfg = load_config(args.config)
        except ConfigError as e:
            print(f"Config error: {e}", file=sys.stderr)
            return 2
        return serve(args, cfg)

    client = GardenClient(args.url)
    try:
        return run_client(args, client)
    except RejectedByMode as e:
        print(f"Rejected: {e}", file=sys.stderr)
        return 1
    except (GardenError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except requests.RequestException as e:
        print(f"Could not reach {args.url}: {e}", file=sys.stderr)
        return 2
    finally:
        client.close()


if __name__ == "__main__":
    sys.exit(main())
