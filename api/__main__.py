"""Command line interface for running the API server."""
import argparse
import asyncio
import logging

import uvicorn

from config import settings_conf

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

class UvicornServer:
    """Wrapper for running uvicorn with proper lifecycle management."""

    def __init__(self, app_path: str = "api:app", host: str = "0.0.0.0", port: int = 3101):
        self.config = uvicorn.Config(
            app_path,
            host=host,
            port=port,
            log_level="info"
        )
        self.server = uvicorn.Server(self.config)

    async def run(self):
        """Run the server until SIGINT/SIGTERM (handled by uvicorn)."""
        await self.server.serve()

def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="python -m api", description="Run the MapIt API server")
    parser.add_argument("--host", default=settings_conf['api_host'], help="Bind address")
    parser.add_argument("--port", type=int, default=settings_conf['api_port'], help="Bind port")
    return parser.parse_args(argv)

async def main(argv=None):
    """Run the API server until interrupted."""
    args = parse_args(argv)
    server = UvicornServer(host=args.host, port=args.port)

    logger.info(f"Starting API on {args.host}:{args.port}")
    try:
        await server.run()
    finally:
        logger.info("API server stopped.")

if __name__ == "__main__":
    asyncio.run(main())
