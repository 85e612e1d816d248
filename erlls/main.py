"""
Main entry point for the Erlang Language Server.

This file is executed by the ``erlls`` console script.

The server communicates with editors via stdin/stdout using JSON-RPC.
"""
import argparse
import os
import sys

from erlls import __version__
from erlls.lsp.server import create_server


def main():
    """Start the language server on stdin/stdout, or TCP for debugging."""
    parser = argparse.ArgumentParser(prog="erlls", description=__doc__)
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument("--tcp", action="store_true", help="listen on TCP instead of stdio")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=2087)
    args = parser.parse_args()

    # Check if we're in debug mode
    if os.getenv("DEBUG"):
        try:
            import debugpy  # type: ignore

            debugpy.listen(("127.0.0.1", 5678))
            debugpy.wait_for_client()
        except ImportError:
            print("debugpy not available, starting without debugger", file=sys.stderr)

    server = create_server()

    if args.tcp:
        server.start_tcp(args.host, args.port)
    else:
        server.start_io()


if __name__ == "__main__":
    main()
