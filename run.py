from __future__ import annotations
import os
import sys
import argparse
import asyncio

from hostping.core.models import AppConfig, Packet
from hostping.core.runner import DRIVERS, run
from hostping.utils.errors import PingerError
from hostping.utils.log import setup_logging, parse_level
from hostping.utils.net import is_admin

PROJECT_ROOT = os.path.dirname(__file__)
DATA_DIR = os.path.join(PROJECT_ROOT, "data")


def _print_packet(i: int, pkt: Packet) -> None:
    ttl = f" ttl={pkt.ttl}" if pkt.ttl else ""
    print(f"[{i}] {pkt.size}B from {pkt.address}{ttl} time={pkt.rtt * 1000.0:.3f}ms")


def _print_error(i: int, err: BaseException) -> None:
    print(f"[{i}] failed: {err}")


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="host reachability probe")
    parser.add_argument("target", nargs="?", help="host/IP (icmp) or URL (http)")
    parser.add_argument("--config", default=os.path.join(DATA_DIR, "defaults.yaml"))
    parser.add_argument("--driver", choices=DRIVERS)
    parser.add_argument("-c", "--count", type=int)
    parser.add_argument("-i", "--interval", type=float)
    parser.add_argument("--read-timeout", type=float, dest="read_timeout")
    parser.add_argument("--payload-size", type=int, dest="payload_size")
    parser.add_argument("--method", dest="http_method", choices=["GET", "HEAD"])
    parser.add_argument("--error-chance", type=float, dest="error_chance")
    parser.add_argument("--log-dir", dest="log_dir")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)
    config = AppConfig.load(args.config).merged(
        target=args.target,
        driver=args.driver,
        count=args.count,
        interval=args.interval,
        read_timeout=args.read_timeout,
        payload_size=args.payload_size,
        http_method=args.http_method,
        error_chance=args.error_chance,
        log_dir=args.log_dir,
        log_level="DEBUG" if args.verbose else None,
    )
    setup_logging(config.log_dir, level=parse_level(config.log_level))

    if config.driver == "icmp" and not is_admin():
        print("[!] ICMP 드라이버는 raw 소켓을 사용하므로 root 권한이 필요할 수 있습니다.")

    try:
        report = asyncio.run(run(config, on_packet=_print_packet, on_error=_print_error))
    except PingerError as e:
        print(f"[!] {e}")
        return 2
    except OSError as e:
        print(f"[!] socket error: {e}")
        return 2

    print(
        f"--- {config.target} ---\n"
        f"{report.num_pings} probes, {report.num_successful} ok, {report.num_failed} failed, "
        f"mean rtt {report.mean_rtt * 1000.0:.3f}ms"
    )
    return 1 if report.num_pings and not report.num_successful else 0


if __name__ == "__main__":
    if os.name == 'nt':
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    sys.exit(main())
