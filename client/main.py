# client/main.py
import argparse
import asyncio
import ssl
import sys

import websockets
from colorama import init

from .api_client import APIClient, APIError
from .connection_manager import ConnectionManager
from .console_view import ConsoleView, brightred, reset
from .progress_aggregator import LocalFile, ProgressAggregator
from .progress_ws_client import ProgressWSClient

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="liveuploader", description="Upload files with live progress.")
    p.add_argument("--api-url", default="http://localhost:3333", help="server base URL")
    p.add_argument("--insecure", action="store_true", help="skip TLS verification (self-signed certs)")
    p.add_argument("files", nargs="*", help="files to upload; none just lists the server")
    return p

async def _run(args) -> int:
    ssl_context = None
    if args.insecure and args.api_url.startswith("https"):
        ssl_context = ssl.create_default_context()
        ssl_context.check_hostname = False
        ssl_context.verify_mode = ssl.CERT_NONE

    api = APIClient(args.api_url, verify=not args.insecure)
    cm = ConnectionManager(api, ProgressWSClient(args.api_url, ssl_context=ssl_context))
    view = ConsoleView()
    aggregator = ProgressAggregator(view, cm)

    await cm.open()
    try:
        await aggregator.initialize()
        if args.files:
            await aggregator.on_file_change([LocalFile.from_path(p) for p in args.files])
            await aggregator.wait_idle()
    finally:
        await cm.close()
    return 0

def main(argv=None) -> int:
    init()
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(_run(args))
    except (APIError, OSError, websockets.WebSocketException) as e:
        print(brightred + f"[!] {e}" + reset, file=sys.stderr)
        return 1

if __name__ == "__main__":
    sys.exit(main())
