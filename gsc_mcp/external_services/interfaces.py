# gsc_mcp/external_services/interfaces.py
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class AnalyticsOperations(Protocol):
    """The Search Console operations a bound credential can perform."""

    async def list_sites(self) -> List[Dict[str, Any]]:
        ...

    async def get_search_analytics(
        self,
        site_url: str,
        start_date: str,
        end_date: str,
        dimensions: List[str],
        dimension_filter_groups: Optional[List[Dict[str, Any]]] = None,
    ) -> List[Dict[str, Any]]:
        ...

    async def inspect_url(self, site_url: str, inspection_url: str) -> Dict[str, Any]:
        ...

    async def list_sitemaps(self, site_url: str) -> List[Dict[str, Any]]:
        ...

    async def submit_sitemap(self, site_url: str, feedpath: str) -> Dict[str, Any]:
        ...

    async def get_top_queries(
        self, site_url: str, start_date: str, end_date: str, limit: int = 10
    ) -> List[Dict[str, Any]]:
        ...

    async def aclose(self) -> None:
        """Release the HTTP resources held for the bound credential."""
        ...
