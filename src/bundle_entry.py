"""Unified entry point for the bundled DriveChat binary.

Dispatches on the first CLI argument:
  serve  Start the FastAPI server (default)
  cli    Typer CLI (ask, repl, chat, threads, providers)

A desktop shell reads ``DRIVECHAT_PORT=<port>`` from stdout to learn
where the server bound.
"""

import argparse
import sys


VALID_COMMANDS = {'serve', 'cli'}


def get_command() -> str:
    """Extract the subcommand from sys.argv, defaulting to 'serve'."""
    if len(sys.argv) < 2:
        return 'serve'
    return sys.argv[1]


def get_cli_args() -> list[str]:
    """Return args after 'cli' subcommand for Typer dispatch."""
    return sys.argv[2:]


def parse_serve_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse serve-mode arguments (host, port, log level)."""
    parser = argparse.ArgumentParser(description='DriveChat server')
    parser.add_argument('--host', default='127.0.0.1', help='Bind address')
    parser.add_argument('--port', type=int, default=0,
                        help='Listen port (0 = OS-assigned)')
    parser.add_argument('--log-level', default='info',
                        choices=['debug', 'info', 'warning', 'error'])
    return parser.parse_args(args)


def serve(host: str, port: int, log_level: str = 'info') -> None:
    """Run the API under uvicorn, printing the bound port once listening."""
    import uvicorn

    class PortReportingServer(uvicorn.Server):
        """Uvicorn server that reports the bound port to stdout."""

        def startup(self, sockets=None):
            result = super().startup(sockets)
            for server in self.servers:
                for sock in server.sockets:
                    print(f"DRIVECHAT_PORT={sock.getsockname()[1]}", flush=True)
            return result

    config = uvicorn.Config(
        "src.api.main:app",
        host=host,
        port=port,
        workers=1,
        log_level=log_level,
    )
    PortReportingServer(config).run()


def main() -> None:
    """Dispatch to the correct subsystem based on the subcommand."""
    command = get_command()

    if command == 'serve':
        serve_args = parse_serve_args(sys.argv[2:])
        serve(serve_args.host, serve_args.port, serve_args.log_level)

    elif command == 'cli':
        sys.argv = ['drivechat'] + get_cli_args()
        from src.cli.main import app as cli_app
        cli_app()

    else:
        print(f"Unknown command: {command}", file=sys.stderr)
        print(f"Valid commands: {', '.join(sorted(VALID_COMMANDS))}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
