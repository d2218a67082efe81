"""Main entry point for the aiknowsys MCP server."""

import argparse
import logging
import sys
from pathlib import Path

from fastmcp import FastMCP

from aiknowsys.config import Config
from aiknowsys.context import select_adapter
from aiknowsys.queries import rebuild_index_core
from aiknowsys.tools import register_tools

logger = logging.getLogger(__name__)


def create_server(target_dir: Path) -> FastMCP:
    """Create the MCP server with every tool bound to ``target_dir``."""
    mcp = FastMCP(
        name="aiknowsys",
        instructions=(
            "aiknowsys exposes a project's knowledge base: implementation plans, "
            "work sessions and learned patterns kept as markdown under .aiknowsys/. "
            "Use query_plans and query_sessions to browse, search_context to find "
            "text, and rebuild_index after editing the markdown files."
        ),
    )

    logger.info("Registering tools...")
    register_tools(mcp, target_dir)

    logger.info("Server configured successfully")
    return mcp


def main() -> None:
    """Main function - starts the MCP server over stdio."""
    parser = argparse.ArgumentParser(description="aiknowsys - MCP server for a project knowledge base")
    parser.add_argument(
        "--dir",
        default=".",
        help="Project directory containing .aiknowsys/ (default: current directory)",
    )
    parser.add_argument(
        "--rebuild",
        action="store_true",
        help="Rebuild the index from the markdown files before starting",
    )
    args = parser.parse_args()

    try:
        config = Config.from_env()
    except ValueError as e:
        # Logging is not configured yet
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    # Configure logging here to avoid side effects on import. stdout carries
    # the MCP stream, so logs go to stderr.
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    target_dir = Path(args.dir).resolve()
    logger.info("=" * 50)
    logger.info("aiknowsys starting...")
    logger.info("  Project:  %s", target_dir)
    logger.info("  Storage:  %s", select_adapter(target_dir))
    logger.info("  DB path:  %s", config.db_path or "(located)")
    logger.info("=" * 50)

    try:
        if args.rebuild:
            logger.info("Rebuild requested...")
            result = rebuild_index_core(target_dir)
            logger.info("Rebuild complete: %d items indexed", result["total"])

        mcp = create_server(target_dir)
        logger.info("Starting MCP server on stdio...")
        mcp.run(transport="stdio")
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
        sys.exit(0)
    except Exception:
        logger.exception("Server error")
        sys.exit(1)


if __name__ == "__main__":
    main()
