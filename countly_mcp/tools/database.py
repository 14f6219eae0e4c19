"""Database viewer tools (requires the dbviewer plugin)."""

from typing import Any, Dict, Optional

from countly_mcp.infra.error_handler import ToolValidationError
from countly_mcp.infra.validation import dump_json_param, parse_numeric_param, validate_required_params
from countly_mcp.models.tool import ToolResult
from countly_mcp.tools.base import BaseTools, ToolContext, ToolMetadata, tool


DATABASES = ["countly", "countly_drill", "countly_out", "countly_fs"]
DEFAULT_DATABASE = "countly"
STAT_ENDPOINTS = {
    "mongotop": "/o/db/mongotop",
    "mongostat": "/o/db/mongostat",
}

_DATABASE_PROPERTY = {"type": "string", "enum": DATABASES, "description": "Database name", "default": DEFAULT_DATABASE}
_OPTIONAL_APP = {
    "app_id": {"type": "string", "description": "Application ID to filter results (optional)"},
    "app_name": {"type": "string", "description": "Application name (alternative to app_id)"},
}

DATABASE_TOOL_DEFINITIONS = [
    tool(
        "query_database",
        "Query documents from a database collection with filtering, sorting, and pagination",
        {
            **_OPTIONAL_APP,
            "database": _DATABASE_PROPERTY,
            "collection": {"type": "string", "description": "Collection name to query"},
            "filter": {"type": "string", "description": "MongoDB query filter as JSON string (optional)"},
            "projection": {"type": "string", "description": "MongoDB projection as JSON string (optional)"},
            "sort": {"type": "string", "description": "MongoDB sort criteria as JSON string (optional)"},
            "limit": {
                "type": "number",
                "description": "Maximum number of documents to return (1-1000)",
                "minimum": 1,
                "maximum": 1000,
                "default": 20,
            },
            "skip": {"type": "number", "description": "Number of documents to skip for pagination", "minimum": 0, "default": 0},
            "search": {"type": "string", "description": "Search term for document IDs (optional)"},
        },
        required=["collection"],
    ),
    tool("list_databases", "List all available databases and their collections"),
    tool(
        "get_document",
        "Get a specific document by ID from a collection",
        {
            **_OPTIONAL_APP,
            "database": _DATABASE_PROPERTY,
            "collection": {"type": "string", "description": "Collection name"},
            "document_id": {"type": "string", "description": "Document ID to retrieve"},
        },
        required=["collection", "document_id"],
    ),
    tool(
        "aggregate_collection",
        "Run MongoDB aggregation pipeline on a collection",
        {
            **_OPTIONAL_APP,
            "database": _DATABASE_PROPERTY,
            "collection": {"type": "string", "description": "Collection name"},
            "aggregation": {"type": "string", "description": "MongoDB aggregation pipeline as JSON string"},
        },
        required=["collection", "aggregation"],
    ),
    tool(
        "get_collection_indexes",
        "Get indexes for a specific collection",
        {
            "database": _DATABASE_PROPERTY,
            "collection": {"type": "string", "description": "Collection name"},
        },
        required=["collection"],
    ),
    tool(
        "get_db_statistics",
        "Get MongoDB statistics (mongotop and mongostat)",
        {"stat_type": {"type": "string", "enum": list(STAT_ENDPOINTS), "description": "Type of statistics to retrieve"}},
        required=["stat_type"],
    ),
]


def _database(args: Dict[str, Any]) -> str:
    database = args.get("database") or DEFAULT_DATABASE
    if database not in DATABASES:
        raise ToolValidationError(f"Unknown database: {database}. Use one of: {', '.join(DATABASES)}")
    return database


def _optional_json(args: Dict[str, Any], name: str) -> Optional[str]:
    value = args.get(name)
    return dump_json_param(value, name) if value else None


class DatabaseTools(BaseTools):
    async def _optional_app_id(self, ctx: ToolContext, args: Dict[str, Any]) -> Optional[str]:
        """App filter is optional here, but an app that was named must resolve."""
        if args.get("app_id") or args.get("app_name"):
            return await ctx.resolve_app_id(args)
        return None

    async def query_database(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["collection"])
        database = _database(args)
        collection = args["collection"]
        params = {
            "db": database,
            "collection": collection,
            "limit": int(parse_numeric_param(args.get("limit", 20), "limit", minimum=1, maximum=1000)),
            "skip": int(parse_numeric_param(args.get("skip", 0), "skip", minimum=0)),
            "app_id": await self._optional_app_id(ctx, args),
            "filter": _optional_json(args, "filter"),
            "projection": _optional_json(args, "projection"),
            "sort": _optional_json(args, "sort"),
            "sSearch": args.get("search") or None,
        }
        data = await ctx.client.get("/o/db", params=params, context="Failed to execute request to /o/db")
        return ToolResult.with_data(f"Query results from {database}.{collection}", data)

    async def list_databases(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        data = await ctx.client.get("/o/db", context="Failed to execute request to /o/db")
        return ToolResult.with_data("Available databases and collections", data)

    async def get_document(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["collection", "document_id"])
        database = _database(args)
        collection, document_id = args["collection"], args["document_id"]
        data = await ctx.client.get(
            "/o/db",
            params={
                "db": database,
                "collection": collection,
                "document": document_id,
                "app_id": await self._optional_app_id(ctx, args),
            },
            context="Failed to execute request to /o/db",
        )
        return ToolResult.with_data(f"Document {document_id} from {database}.{collection}", data)

    async def aggregate_collection(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["collection", "aggregation"])
        database = _database(args)
        collection = args["collection"]
        data = await ctx.client.get(
            "/o/db",
            params={
                "db": database,
                "collection": collection,
                "aggregation": dump_json_param(args["aggregation"], "aggregation"),
                "app_id": await self._optional_app_id(ctx, args),
            },
            context="Failed to execute request to /o/db",
        )
        return ToolResult.with_data(f"Aggregation results from {database}.{collection}", data)

    async def get_collection_indexes(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["collection"])
        database = _database(args)
        collection = args["collection"]
        data = await ctx.client.get(
            "/o/db",
            params={"db": database, "collection": collection, "action": "get_indexes"},
            context="Failed to execute request to /o/db",
        )
        return ToolResult.with_data(f"Indexes for {database}.{collection}", data)

    async def get_db_statistics(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["stat_type"])
        stat_type = args["stat_type"]
        endpoint = STAT_ENDPOINTS.get(stat_type)
        if endpoint is None:
            raise ToolValidationError(f"Unknown stat_type: {stat_type}. Use one of: {', '.join(STAT_ENDPOINTS)}")
        data = await ctx.client.get(endpoint, context=f"Failed to get {stat_type} statistics")
        return ToolResult.with_data(f"MongoDB {stat_type} statistics", data)


DATABASE_TOOL_METADATA = ToolMetadata(
    instance_key="database",
    tool_class=DatabaseTools,
    handlers={name: name for name in (
        "query_database",
        "list_databases",
        "get_document",
        "aggregate_collection",
        "get_collection_indexes",
        "get_db_statistics",
    )},
    definitions=DATABASE_TOOL_DEFINITIONS,
)
