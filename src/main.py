"""Main application entry point."""

import argparse
import logging

import uvicorn
from dotenv import load_dotenv

from src.services.logging import setup_server_logging

# Load environment variables
load_dotenv()

# Configure logging (with file logging)
setup_server_logging()
logger = logging.getLogger(__name__)


def main():
    """Run the billing API server."""
    parser = argparse.ArgumentParser(description="PAMSIMAS Billing API")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    args = parser.parse_args()

    from src.api.app import app

    logger.info("Starting Uvicorn server on %s:%d...", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port, log_level="info")


if __name__ == "__main__":
    main()
