# main.py
# Entry point: interactive loop feeding GPS fixes and safety queries into
# CompanionNavigator. In production, replace the prompt with a real GPS feed.

import logging
import traceback
from typing import List

from sidequest.errors import CoordinateError, ProviderError
from sidequest.navigation.models import Coord, Target
from sidequest.navigation.nav_config import NavConfig
from sidequest.navigation.navigator import CompanionNavigator

# ------------------------------------------------------------------
# Logging setup: configure once here, all modules inherit
# ------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

HELP = """Commands:
  target <name> <lat> <lon> [saved|sidequest]
  start <device> <name> <target_lat> <target_lon> <lat> <lon>
  gps <device> <lat> <lon>
  stop <device>
  compass <lat> <lon> [heading]
  safety <lat> <lon>
  route <from_lat> <from_lon> <to_lat> <to_lon>
  emergency <lat> <lon> [radius] [hospital|police|fire_station|all]
  status
  quit"""


def parse_floats(parts: List[str], count: int) -> List[float]:
    if len(parts) != count:
        raise ValueError(f"expected {count} numbers, got {len(parts)}")
    return [float(x) for x in parts]


def handle(nav: CompanionNavigator, cmd: str, args: List[str]) -> None:
    if cmd == "target":
        lat, lon = parse_floats(args[1:3], 2)
        kind = args[3] if len(args) > 3 else "saved"
        target = nav.set_active_target(args[0], lat, lon, kind)
        print(f"[NAV] Active target: {target.name} ({target.kind})")

    elif cmd == "start":
        device, name = args[0], args[1]
        t_lat, t_lon, lat, lon = parse_floats(args[2:], 4)
        session = nav.start_navigation(device, Target(name, Coord(t_lat, t_lon)), Coord(lat, lon))
        print(f"[NAV] {device} → {name}: {int(session.last_distance_m)} m")

    elif cmd == "gps":
        lat, lon = parse_floats(args[1:], 2)
        result = nav.update_navigation_location(args[0], Coord(lat, lon))
        if result is None:
            print(f"[NAV] No active navigation for {args[0]}.")
        else:
            print(f"[NAV] {result.status.name}: {int(result.current_distance_m)} m "
                  f"(change {result.distance_change_m:+.0f} m)")

    elif cmd == "stop":
        if not nav.stop_navigation(args[0]):
            print(f"[NAV] No active navigation for {args[0]}.")

    elif cmd == "compass":
        lat, lon = parse_floats(args[:2], 2)
        heading = float(args[2]) if len(args) > 2 else None
        reading = nav.compass(lat, lon, heading)
        if reading is None:
            print("[NAV] No active target set.")
            return
        direction = f", {reading.direction}" if reading.direction else ""
        print(f"[NAV] {reading.target_name}: {reading.bearing}° {reading.distance_m} m{direction}")
        for w in reading.safety_warnings:
            print(f"  [{w.severity.value}] {w.message}")

    elif cmd == "safety":
        lat, lon = parse_floats(args, 2)
        result = nav.analyze_location(lat, lon)
        print(f"[SAFETY] risk {result.risk_score}/5")
        for w in result.warnings:
            print(f"  [{w.severity.value}] {w.message}")

    elif cmd == "route":
        result = nav.analyze_route(*parse_floats(args, 4))
        if result.success:
            print(f"[SAFETY] {result.overall.safety_level.value}: {result.overall.message} "
                  f"(avg {result.overall.avg_risk_score}, max {result.overall.max_risk_score})")
        for w in result.warnings:
            print(f"  [{w.severity.value}] {w.message}")
        for r in result.recommendations:
            print(f"  - {r.message}")

    elif cmd == "emergency":
        lat, lon = parse_floats(args[:2], 2)
        radius = float(args[2]) if len(args) > 2 else 1000
        kind = args[3] if len(args) > 3 else "all"
        summary = nav.find_emergency_services(lat, lon, radius, kind)
        print(f"[SAFETY] {summary['count']} services within {summary['search_radius_m']} m")
        for s in summary["services"]:
            print(f"  {s['name']} ({s['type']}), {s['distance_m']} m")

    elif cmd == "status":
        status = nav.get_tracker_status()
        print(f"[NAV] {status['active_count']} active")
        for d in status["devices"]:
            print(f"  {d['device_id']} → {d['target']}: {d['current_distance_m']} m")

    else:
        print("Unknown command.")
        print(HELP)


def main() -> None:
    config = NavConfig(log_dir="logs")
    nav = CompanionNavigator(config)

    print(HELP)
    while True:
        try:
            line = input("> ").strip()
        except EOFError:
            break
        if not line:
            continue
        if line.lower() in ("q", "quit", "exit"):
            break

        parts = line.split()
        try:
            handle(nav, parts[0].lower(), parts[1:])
        except (CoordinateError, ValueError, IndexError) as e:
            print(f"[ERR] {e}")
        except ProviderError as e:
            print(f"[ERR] Map data unavailable: {e}")
        except Exception:
            print(traceback.format_exc())

    nav.announcer.close()


if __name__ == "__main__":
    main()
