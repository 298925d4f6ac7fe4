"""
Guessgame CLI - Command-line interface for the game service.

Usage:
    guessgame serve [--host H] [--port P] [--reload]   Run the HTTP/WebSocket API
    guessgame categories [--name NAME]                 List word categories
    guessgame code [--count N]                         Print fresh game codes
"""

import argparse
import sys

from .config import configure_logging, load_settings


def main(argv=None):
    """Main CLI entry point."""
    settings = load_settings()

    parser = argparse.ArgumentParser(
        description="Guessgame - realtime secret word party game",
        prog="guessgame",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", default=settings.host, help="Bind address")
    serve_parser.add_argument("--port", type=int, default=settings.port, help="Bind port")
    serve_parser.add_argument("--reload", action="store_true", help="Reload on code changes")

    # Categories command
    categories_parser = subparsers.add_parser("categories", help="List word categories")
    categories_parser.add_argument("--name", help="Show one category's words")

    # Code command
    code_parser = subparsers.add_parser("code", help="Generate game codes")
    code_parser.add_argument("--count", type=int, default=1, help="How many codes")

    args = parser.parse_args(argv)

    if args.command == "serve":
        cmd_serve(args, settings)
    elif args.command == "categories":
        cmd_categories(args)
    elif args.command == "code":
        cmd_code(args)
    else:
        parser.print_help()
        sys.exit(1)


def cmd_serve(args, settings):
    """Run the API under uvicorn."""
    import uvicorn

    configure_logging(settings)
    print(f"Serving on http://{args.host}:{args.port} (store: {settings.store_backend})")
    uvicorn.run(
        "guessgame.api.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )


def cmd_categories(args):
    """List categories, or the words of one."""
    from .engine_core.categories import PREDEFINED_CATEGORIES, get_category

    if args.name:
        category = get_category(args.name)
        if category is None:
            print(f"Error: Unknown category: {args.name}")
            sys.exit(1)
        for word in category.suggested_words:
            print(word)
        return

    for category in PREDEFINED_CATEGORIES:
        print(f"{category.name}: {len(category.suggested_words)} words")


def cmd_code(args):
    """Print random game codes."""
    from .session.repository import generate_game_code

    for _ in range(max(1, args.count)):
        print(generate_game_code())


if __name__ == "__main__":
    main()
