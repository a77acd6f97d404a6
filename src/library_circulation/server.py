"""Library Circulation MCP Server - server assembly and entry point.

Tools carry every state change of the loan lifecycle; resources expose the
loan lists and catalog availability. The caller identifies itself with an
``actor_id`` argument (tools) or the id segment of the URI (resources).
"""

import logging
import signal
import sys
from typing import Any

from fastmcp import FastMCP

from library_circulation.config import get_config
from library_circulation.database.session import get_db_manager
from library_circulation.observability import ObservabilityConfig, initialize_observability
from library_circulation.observability.middleware import MCPInstrumentationMiddleware
from library_circulation.resources import all_resources
from library_circulation.tools.circulation import (
    approve_loan_tool,
    circulation_tools,
    mark_overdue_tool,
    reject_loan_tool,
    reject_return_tool,
    request_loan_tool,
    request_return_tool,
    update_book_copies_tool,
    validate_return_tool,
)

# stderr keeps stdout clean for the stdio transport
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)

logger = logging.getLogger(__name__)

config = get_config()
observability_config = ObservabilityConfig()

mcp = FastMCP(
    name=config.server_name,
    version=config.server_version,
    instructions=(
        "Library circulation server. Students request loans and returns; administrators "
        "approve or reject loan requests, validate or reject returns and mark overdue loans. "
        "Pass your user id as actor_id to every tool. Read library://books/{book_id} to check "
        "availability and library://users/{user_id}/loans for a user's loans."
    ),
)

mcp.add_middleware(MCPInstrumentationMiddleware(observability_config))

# =============================================================================
# RESOURCE REGISTRATION
# =============================================================================

for resource in all_resources:
    mcp.resource(
        resource["uri"],
        name=resource["name"],
        description=resource["description"],
        mime_type=resource["mime_type"],
    )(resource["handler"])

logger.info("Registered %d resources", len(all_resources))

# =============================================================================
# TOOL REGISTRATION
# =============================================================================
# FastMCP derives each tool's input schema from the function signature, so
# the dict-based handlers are exposed through typed wrappers. Names and
# descriptions come from the tool metadata in ``tools.circulation``.


@mcp.tool(name=request_loan_tool["name"], description=request_loan_tool["description"])
async def request_loan(actor_id: int, book_id: int) -> dict[str, Any]:
    return await request_loan_tool["handler"]({"actor_id": actor_id, "book_id": book_id})


@mcp.tool(name=request_return_tool["name"], description=request_return_tool["description"])
async def request_return(actor_id: int, loan_id: int) -> dict[str, Any]:
    return await request_return_tool["handler"]({"actor_id": actor_id, "loan_id": loan_id})


@mcp.tool(name=approve_loan_tool["name"], description=approve_loan_tool["description"])
async def approve_loan(actor_id: int, loan_id: int) -> dict[str, Any]:
    return await approve_loan_tool["handler"]({"actor_id": actor_id, "loan_id": loan_id})


@mcp.tool(name=reject_loan_tool["name"], description=reject_loan_tool["description"])
async def reject_loan(actor_id: int, loan_id: int) -> dict[str, Any]:
    return await reject_loan_tool["handler"]({"actor_id": actor_id, "loan_id": loan_id})


@mcp.tool(name=validate_return_tool["name"], description=validate_return_tool["description"])
async def validate_return(actor_id: int, loan_id: int) -> dict[str, Any]:
    return await validate_return_tool["handler"]({"actor_id": actor_id, "loan_id": loan_id})


@mcp.tool(name=reject_return_tool["name"], description=reject_return_tool["description"])
async def reject_return(actor_id: int, loan_id: int) -> dict[str, Any]:
    return await reject_return_tool["handler"]({"actor_id": actor_id, "loan_id": loan_id})


@mcp.tool(name=mark_overdue_tool["name"], description=mark_overdue_tool["description"])
async def mark_overdue(actor_id: int, loan_id: int) -> dict[str, Any]:
    return await mark_overdue_tool["handler"]({"actor_id": actor_id, "loan_id": loan_id})


@mcp.tool(
    name=update_book_copies_tool["name"],
    description=update_book_copies_tool["description"],
)
async def update_book_copies(actor_id: int, book_id: int, total_copies: int) -> dict[str, Any]:
    return await update_book_copies_tool["handler"](
        {"actor_id": actor_id, "book_id": book_id, "total_copies": total_copies}
    )


logger.info("Registered %d tools", len(circulation_tools))


# =============================================================================
# TRANSPORT CONFIGURATION
# =============================================================================


def _configure_logging() -> None:
    if config.debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug mode enabled - verbose protocol logging active")
    else:
        logging.getLogger().setLevel(config.log_level)
        logging.getLogger("fastmcp").setLevel(logging.WARNING)


def _install_signal_handlers() -> None:
    def signal_handler(signum: int, _frame: Any) -> None:
        logger.info("Received signal %s, initiating shutdown...", signum)
        get_db_manager().close()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def run_stdio_server() -> None:
    """Run the MCP server using stdio transport."""
    logger.info("Starting %s v%s on stdio transport", config.server_name, config.server_version)
    mcp.run(transport="stdio")


def run_http_server() -> None:
    """Run the MCP server using the streamable HTTP transport."""
    logger.info(
        "Starting %s v%s on http://%s:%d",
        config.server_name,
        config.server_version,
        config.http_host,
        config.http_port,
    )
    mcp.run(transport="streamable-http", host=config.http_host, port=config.http_port)


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================


def main() -> None:
    """Entry point for ``library-circulation`` and ``python -m library_circulation.server``."""
    try:
        _configure_logging()
        initialize_observability(observability_config)

        logger.info("Library Circulation MCP Server")
        logger.info("Version: %s", config.server_version)
        logger.info("Transport: %s", config.transport)

        db_manager = get_db_manager()
        db_manager.init_database()
        if not db_manager.verify_connection():
            logger.error("Database is not reachable")
            sys.exit(1)

        _install_signal_handlers()

        if config.transport == "stdio":
            run_stdio_server()
        else:
            run_http_server()

    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception:
        logger.exception("Failed to start MCP server")
        sys.exit(1)


if __name__ == "__main__":
    main()
