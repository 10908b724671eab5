"""
car-audio CLI - relay server launcher and relay debugging commands

`car-audio serve` runs the FastAPI relay under uvicorn. The other
subcommands talk to a running relay the same way the car UI does.
"""

import argparse
import socket
import sys
from typing import Optional

from loguru import logger

from car_audio.core.config import Config, load_config
from car_audio.core.logging import setup_logging
from car_audio.domain.radio.client import RelayClient
from car_audio.domain.radio.exceptions import RadioError
from car_audio.domain.radio.models import Band

APP_PATH = "web.backend.main:app"


def is_port_available(host: str, port: int) -> bool:
    """
    Check if a port is available for binding.

    Args:
        host: Interface to bind
        port: Port number to check

    Returns:
        True if port is available, False if already in use
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        try:
            s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            s.settimeout(1.0)
            s.bind((host, port))
            return True
        except OSError:
            return False


def run_server(config: Config, host: Optional[str], port: Optional[int], reload: bool) -> int:
    """Run the relay in the foreground until interrupted."""
    import uvicorn

    host = host or config.server.host
    port = port or config.server.port

    if not is_port_available(host, port):
        print(f"Port {port} already in use on {host}", file=sys.stderr)
        return 1

    logger.info(f"Starting relay on http://{host}:{port}")
    uvicorn.run(APP_PATH, host=host, port=port, reload=reload)
    return 0


def _client(config: Config, args: argparse.Namespace) -> RelayClient:
    return RelayClient(
        args.relay or config.server.relay_url,
        client_ip=args.ip or "",
        ttl_seconds=config.relay.token_ttl_seconds,
        timeout=config.relay.request_timeout,
    )


def run_auth(client: RelayClient) -> int:
    auth = client.get_auth()
    print(f"token:  {auth.token}")
    print(f"region: {auth.region_code}")
    return 0


def run_stream(client: RelayClient, station_id: str) -> int:
    print(client.fetch_stream_uri(station_id))
    return 0


def run_stations(client: RelayClient, region: Optional[str]) -> int:
    entries = client.fetch_tunable_entries(region)
    if not entries:
        print("No tunable stations")
        return 0
    for entry in entries:
        unit = "MHz" if entry.band is Band.FM else "kHz"
        print(f"{entry.band.value:<2} {entry.frequency:>7g} {unit}  {entry.station_id:<12} {entry.name}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="car-audio - radio relay and tuner tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--relay", help="Relay base URL (default: server.relay_url)")

    subparsers = parser.add_subparsers(dest="subcommand", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Run the relay server")
    serve_parser.add_argument("--host", help="Bind address (default: server.host)")
    serve_parser.add_argument("--port", type=int, help="Port (default: server.port)")
    serve_parser.add_argument(
        "--reload", action="store_true", help="Restart on code changes"
    )

    auth_parser = subparsers.add_parser("auth", help="Fetch a playback token through the relay")
    auth_parser.add_argument("--ip", required=True, help="Client IP to authenticate for")

    stream_parser = subparsers.add_parser("stream", help="Resolve a station's stream URI")
    stream_parser.add_argument("station_id", help="Commercial station id (e.g. TBS)")
    stream_parser.add_argument("--ip", help="Client IP the stream is for")

    stations_parser = subparsers.add_parser("stations", help="List tunable stations")
    stations_parser.add_argument("--region", help="Area code (default: token's region)")
    stations_parser.add_argument("--ip", help="Client IP to authenticate for (needed without --region)")

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point for the car-audio command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.subcommand:
        parser.print_help()
        sys.exit(1)

    if args.subcommand == "stations" and not (args.region or args.ip):
        # The relay rejects /auth without an ip
        parser.error("stations needs --region or --ip")

    config = load_config()
    setup_logging(config.logging)

    if args.subcommand == "serve":
        sys.exit(run_server(config, args.host, args.port, args.reload))

    client = _client(config, args)
    try:
        if args.subcommand == "auth":
            code = run_auth(client)
        elif args.subcommand == "stream":
            code = run_stream(client, args.station_id)
        else:
            code = run_stations(client, args.region)
    except RadioError as e:
        logger.error(f"{args.subcommand} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
