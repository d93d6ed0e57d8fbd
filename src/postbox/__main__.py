"""Run the Postbox MCP server over stdio for one biosecret account."""

import argparse
import asyncio

from src.postbox.credentials import retrieve_credentials
from src.postbox.server import get_server, logger


def main() -> None:
    parser = argparse.ArgumentParser(prog="postbox-mcp")
    parser.add_argument("account", help="biosecret account id (postbox/<account>)")
    args = parser.parse_args()

    server = get_server()
    server.connect(retrieve_credentials(args.account))
    try:
        asyncio.run(server.run())
    finally:
        server.disconnect()
        logger.info("Server stopped")


if __name__ == "__main__":
    main()
