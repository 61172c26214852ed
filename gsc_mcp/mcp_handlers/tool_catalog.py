# gsc_mcp/mcp_handlers/tool_catalog.py
from types import MappingProxyType
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple, Type

import mcp.types as mcp_types
from pydantic import BaseModel, ConfigDict, Field, field_validator

Dimension = Literal["date", "query", "page", "country", "device", "searchAppearance"]
DIMENSIONS: Tuple[str, ...] = ("date", "query", "page", "country", "device", "searchAppearance")

DEFAULT_DIMENSIONS: List[str] = ["date"]
DEFAULT_TOP_QUERIES_LIMIT = 10
MAX_ROW_LIMIT = 25000


class ToolArguments(BaseModel):
    """Base for per-tool argument models. Field names are snake_case, wire names camelCase."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class NoArguments(ToolArguments):
    pass


class SiteArguments(ToolArguments):
    site_url: str = Field(alias="siteUrl")


class SearchAnalyticsArguments(SiteArguments):
    start_date: str = Field(alias="startDate")
    end_date: str = Field(alias="endDate")
    dimensions: List[Dimension] = Field(default_factory=lambda: list(DEFAULT_DIMENSIONS))
    dimension_filter_groups: Optional[List[Dict[str, Any]]] = Field(default=None, alias="dimensionFilterGroups")

    @field_validator("dimensions", mode="before")
    @classmethod
    def _default_dimensions(cls, value: Any) -> Any:
        # An explicit null means "not given".
        if value is None:
            return list(DEFAULT_DIMENSIONS)
        return value


class InspectUrlArguments(SiteArguments):
    inspection_url: str = Field(alias="inspectionUrl")


class SubmitSitemapArguments(SiteArguments):
    feedpath: str


class TopQueriesArguments(SiteArguments):
    start_date: str = Field(alias="startDate")
    end_date: str = Field(alias="endDate")
    limit: int = Field(default=DEFAULT_TOP_QUERIES_LIMIT, ge=1, le=MAX_ROW_LIMIT)

    @field_validator("limit", mode="before")
    @classmethod
    def _default_limit(cls, value: Any) -> Any:
        if value is None:
            return DEFAULT_TOP_QUERIES_LIMIT
        return value


class ToolDescriptor(BaseModel):
    """A tool as advertised to MCP clients, plus the model its arguments decode into."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    input_schema: Dict[str, Any]
    arguments_model: Type[ToolArguments]
    action: str = Field(description="Used in failure messages: 'Failed to <action>: ...'")

    def to_mcp_tool(self) -> mcp_types.Tool:
        return mcp_types.Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.input_schema,
        )


_SITE_URL_PROPERTY = {
    "type": "string",
    "description": "The URL of the property as defined in Search Console",
}
_START_DATE_PROPERTY = {"type": "string", "description": "Start date in YYYY-MM-DD format"}
_END_DATE_PROPERTY = {"type": "string", "description": "End date in YYYY-MM-DD format"}


TOOL_CATALOG: Tuple[ToolDescriptor, ...] = (
    ToolDescriptor(
        name="list_sites",
        description="List all sites in the Search Console account",
        input_schema={"type": "object", "properties": {}},
        arguments_model=NoArguments,
        action="list sites",
    ),
    ToolDescriptor(
        name="get_search_analytics",
        description="Query search analytics data",
        input_schema={
            "type": "object",
            "properties": {
                "siteUrl": _SITE_URL_PROPERTY,
                "startDate": _START_DATE_PROPERTY,
                "endDate": _END_DATE_PROPERTY,
                "dimensions": {
                    "type": "array",
                    "items": {"type": "string", "enum": list(DIMENSIONS)},
                    "description": "Dimensions to group results by (defaults to date)",
                },
                "dimensionFilterGroups": {
                    "type": "array",
                    "items": {"type": "object"},
                    "description": "Filter groups as accepted by the Search Analytics query API",
                },
            },
            "required": ["siteUrl", "startDate", "endDate"],
        },
        arguments_model=SearchAnalyticsArguments,
        action="get search analytics",
    ),
    ToolDescriptor(
        name="inspect_url",
        description="Inspect a specific URL",
        input_schema={
            "type": "object",
            "properties": {
                "siteUrl": _SITE_URL_PROPERTY,
                "inspectionUrl": {"type": "string", "description": "The URL to inspect"},
            },
            "required": ["siteUrl", "inspectionUrl"],
        },
        arguments_model=InspectUrlArguments,
        action="inspect URL",
    ),
    ToolDescriptor(
        name="list_sitemaps",
        description="List sitemaps submitted for a site",
        input_schema={
            "type": "object",
            "properties": {"siteUrl": _SITE_URL_PROPERTY},
            "required": ["siteUrl"],
        },
        arguments_model=SiteArguments,
        action="list sitemaps",
    ),
    ToolDescriptor(
        name="submit_sitemap",
        description="Submit a sitemap for a site",
        input_schema={
            "type": "object",
            "properties": {
                "siteUrl": _SITE_URL_PROPERTY,
                "feedpath": {
                    "type": "string",
                    "description": "The URL of the sitemap, e.g. https://example.com/sitemap.xml",
                },
            },
            "required": ["siteUrl", "feedpath"],
        },
        arguments_model=SubmitSitemapArguments,
        action="submit sitemap",
    ),
    ToolDescriptor(
        name="get_top_queries",
        description="Get the top search queries for a site",
        input_schema={
            "type": "object",
            "properties": {
                "siteUrl": _SITE_URL_PROPERTY,
                "startDate": _START_DATE_PROPERTY,
                "endDate": _END_DATE_PROPERTY,
                "limit": {
                    "type": "integer",
                    "minimum": 1,
                    "maximum": MAX_ROW_LIMIT,
                    "default": DEFAULT_TOP_QUERIES_LIMIT,
                    "description": "Maximum number of queries to return",
                },
            },
            "required": ["siteUrl", "startDate", "endDate"],
        },
        arguments_model=TopQueriesArguments,
        action="get top queries",
    ),
)

TOOLS_BY_NAME: Mapping[str, ToolDescriptor] = MappingProxyType({tool.name: tool for tool in TOOL_CATALOG})
