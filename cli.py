import argparse
import subprocess

import uvicorn

from src.config import Config

FILES_TO_CLEAN = ["src", "tests", "cli.py"]


def serve(host: str, port: int, reload: bool = False) -> None:
    """Run the relay. Exits non-zero if the port cannot be bound."""
    uvicorn.run("src.main:app", host=host, port=port, reload=reload)


def clean() -> None:
    """Format and type check the codebase"""
    subprocess.run(
        [
            "autoflake",
            "--remove-all-unused-imports",
            "--remove-unused-variables",
            "--recursive",
            *FILES_TO_CLEAN,
            "-i",
            "--exclude=__init__.py",
        ]
    )
    subprocess.run(["isort", *FILES_TO_CLEAN, "--profile", "black"])
    subprocess.run(["black", *FILES_TO_CLEAN])
    subprocess.run(["mypy", "src", "cli.py", "--explicit-package-bases"])


def main():
    parser = argparse.ArgumentParser(description="Caption relay")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the relay server")
    serve_parser.add_argument("--host", default=Config.SERVER.HOST)
    serve_parser.add_argument("--port", type=int, default=Config.SERVER.PORT)
    serve_parser.add_argument("--reload", action="store_true")

    subparsers.add_parser("clean", help="Format and type check the codebase")

    args = parser.parse_args()
    if args.command == "serve":
        serve(args.host, args.port, args.reload)
    elif args.command == "clean":
        clean()


if __name__ == "__main__":
    main()
