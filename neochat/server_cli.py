"""
NeoChat Server CLI - Start the NeoChat backend server.

Usage:
    neochat-server                              # Start with defaults
    neochat-server --port 8000                  # Custom port
    neochat-server --env /path/to/.env          # Custom env file
    neochat-server --config-folder /path/to/config  # Custom config folder
"""

import argparse
import os
import sys
from pathlib import Path


def _apply_env_file(env_path: Path) -> None:
    """Load environment variables from a .env file."""
    from dotenv import load_dotenv

    if not env_path.exists():
        print(f"Error: env file not found: {env_path}", file=sys.stderr)
        sys.exit(2)

    load_dotenv(dotenv_path=str(env_path))


def _apply_config_folder(config_folder: Path) -> None:
    """Point APP_CONFIG_DIR at a folder holding models.yml overrides."""
    if not config_folder.exists():
        print(f"Error: config folder not found: {config_folder}", file=sys.stderr)
        sys.exit(2)

    os.environ["APP_CONFIG_DIR"] = str(config_folder.resolve())


def build_parser() -> argparse.ArgumentParser:
    """Build argument parser for neochat-server CLI."""
    parser = argparse.ArgumentParser(
        prog="neochat-server",
        description="Start the NeoChat backend server.",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to run the server on (default: 8000 or PORT env var).",
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Host to bind to (default: 127.0.0.1 or NEOCHAT_HOST env var).",
    )
    parser.add_argument(
        "--env",
        dest="env_file",
        default=None,
        help="Path to .env file (default: .env in current directory or package root).",
    )
    parser.add_argument(
        "--config-folder",
        dest="config_folder",
        default=None,
        help="Path to config folder for overrides (sets APP_CONFIG_DIR).",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development (not recommended for production).",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit.",
    )
    return parser


def run_server(args: argparse.Namespace) -> int:
    """Run the NeoChat server with the given arguments."""
    import uvicorn

    host = args.host or os.getenv("NEOCHAT_HOST", "127.0.0.1")
    port = args.port or int(os.getenv("PORT", "8000"))

    print(f"Starting NeoChat server on {host}:{port}")

    if args.reload:
        print("Warning: --reload is enabled. This is not recommended for production.")
        uvicorn.run("neochat.main:app", host=host, port=port, reload=True)
    else:
        # Single worker: background tasks and cancellation live in this process
        from neochat.main import app
        uvicorn.run(app, host=host, port=port)

    return 0


def main() -> None:
    """Main entry point for neochat-server CLI."""
    parser = build_parser()
    args = parser.parse_args()

    if args.version:
        from neochat.version import VERSION
        print(f"neochat-server version {VERSION}")
        sys.exit(0)

    # Apply env file first (before any other imports that might use env vars)
    if args.env_file:
        _apply_env_file(Path(args.env_file).expanduser())
    else:
        cwd_env = Path.cwd() / ".env"
        if cwd_env.exists():
            _apply_env_file(cwd_env)
        else:
            pkg_root_env = Path(__file__).resolve().parents[1] / ".env"
            if pkg_root_env.exists():
                _apply_env_file(pkg_root_env)

    if args.config_folder:
        _apply_config_folder(Path(args.config_folder).expanduser())

    sys.exit(run_server(args))


if __name__ == "__main__":
    main()
