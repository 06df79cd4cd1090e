"""
Run script for the newsroom console backend.
Starts the Quart app under hypercorn with configuration from resources/config.yml.
Can be run from project root or src directory.
"""
import os
import sys
import asyncio
import argparse
import logging
from pathlib import Path

# This script is at: <project_root>/src/console/run_console.py
script_path = Path(__file__).resolve()
src_path = script_path.parent.parent  # src/
project_root = src_path.parent  # project root

sys.path.insert(0, str(src_path))

# Relative paths in config.yml resolve against the project root
os.chdir(project_root)

from hypercorn.asyncio import serve
from hypercorn.config import Config as HypercornConfig

from services.config import load_config
from services.database import DocumentStore
from services.logging import setup_logging

logger = logging.getLogger(__name__)


def ensure_db_dir(db_path: str) -> None:
    db_dir = os.path.dirname(db_path)
    if db_dir and not os.path.exists(db_dir):
        os.makedirs(db_dir, exist_ok=True)
        logger.info(f"Created directory: {db_dir}")


def init_database(db_path: str) -> None:
    """Initialize the document store tables."""
    store = DocumentStore(db_path)
    asyncio.run(store.init_tables())
    print(f"Database initialized at: {os.path.abspath(db_path)}")


def run_server(config, host: str, port: int, debug: bool = False) -> None:
    """Run the web server."""
    from console.app import create_app

    app = create_app(config)
    logger.info(f"Starting newsroom console on http://{host}:{port}")

    server_config = HypercornConfig()
    server_config.bind = [f"{host}:{port}"]
    server_config.use_reloader = debug
    server_config.accesslog = '-'
    server_config.errorlog = '-'

    asyncio.run(serve(app, server_config))


def main():
    parser = argparse.ArgumentParser(description='Newsroom console backend')
    parser.add_argument('command', nargs='?', default='run',
                        choices=['run', 'init-db'],
                        help='Command to execute')
    parser.add_argument('--config', default=None,
                        help='Path to config.yml (default: resources/config.yml)')
    parser.add_argument('--host', default=None,
                        help='Host to bind to (default: HOST from config)')
    parser.add_argument('--port', type=int, default=None,
                        help='Port to bind to (default: PORT from config)')
    parser.add_argument('--debug', action='store_true',
                        help='Enable debug mode')

    args = parser.parse_args()

    config = load_config(args.config)
    setup_logging(config.LOG_LEVEL)
    logger.info(f"Project root: {project_root}")

    ensure_db_dir(config.DATABASE_PATH)

    if args.command == 'init-db':
        init_database(config.DATABASE_PATH)
    else:
        run_server(config, host=args.host or config.HOST, port=args.port or config.PORT, debug=args.debug)


if __name__ == '__main__':
    main()
