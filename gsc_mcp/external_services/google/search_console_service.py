# gsc_mcp/external_services/google/search_console_service.py
import httpx
import logging
import json
from typing import List, Dict, Any, Optional
from urllib.parse import quote

logger = logging.getLogger(__name__)

SEARCH_CONSOLE_API_BASE_URL = "https://searchconsole.googleapis.com"
WEBMASTERS_API_PATH = "/webmasters/v3"
URL_INSPECTION_API_PATH = "/v1/urlInspection/index:inspect"


class SearchConsoleAPIError(Exception):
    """A Search Console API call failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


def _path_param(value: str) -> str:
    # Site URLs such as "https://example.com/" or "sc-domain:example.com" are single path segments.
    return quote(value, safe="")


class SearchConsoleService:
    """Search Console operations, bound to one credential through its HTTP client."""

    def __init__(self, client: httpx.AsyncClient, base_url: str = SEARCH_CONSOLE_API_BASE_URL):
        self.client = client
        self.base_url = base_url.rstrip("/")
        logger.info("SearchConsoleService initialized with authenticated httpx.AsyncClient.")

    def _site_url(self, site_url: str, *suffix: str) -> str:
        parts = [self.base_url + WEBMASTERS_API_PATH, "sites", _path_param(site_url), *suffix]
        return "/".join(parts)

    async def _request(
        self,
        method: str,
        url: str,
        json_payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Make an authenticated request to the Search Console API.

        Returns the decoded JSON body ({} for empty successful responses) and
        raises SearchConsoleAPIError for anything else.
        """
        logger.debug(f"Search Console API Request: {method} {url} | Params: {params} | JSON: {json_payload is not None}")
        try:
            response = await self.client.request(method, url, json=json_payload, params=params)
        except httpx.RequestError as e:
            logger.error(f"Search Console API RequestError: {method} {url} - Error: {e}")
            raise SearchConsoleAPIError(f"Search Console API Connection/Request Error: {e}") from e

        if 200 <= response.status_code < 300:
            if not response.content:
                logger.debug(f"Search Console API Response: {method} {url} -> {response.status_code} No Content")
                return {}
            try:
                json_response = response.json()
            except json.JSONDecodeError as e:
                logger.error(
                    f"Search Console API Response: {method} {url} -> {response.status_code} | "
                    f"Failed to decode JSON. Body: {response.text}"
                )
                raise SearchConsoleAPIError(
                    f"Search Console API Error: Failed to decode JSON response. Status: {response.status_code}",
                    status_code=response.status_code,
                ) from e
            log_body_preview = str(json_response)
            if len(log_body_preview) > 300:
                log_body_preview = log_body_preview[:300] + "..."
            logger.debug(f"Search Console API Response: {method} {url} -> {response.status_code} | Body Preview: {log_body_preview}")
            return json_response

        # Google reports failures as {"error": {"code", "message", "status"}}
        error_text = response.text or "Unknown error"
        if response.content:
            try:
                error_text = response.json().get('error', {}).get('message', response.text)
            except (json.JSONDecodeError, AttributeError):
                error_text = response.text
        logger.error(
            f"Search Console API HTTP Error: {method} {url} - Status {response.status_code} - Response Body: {response.text}"
        )
        raise SearchConsoleAPIError(
            f"Search Console API Error ({response.status_code}): {error_text}",
            status_code=response.status_code,
        )

    async def list_sites(self) -> List[Dict[str, Any]]:
        """List every property the credential can access."""
        response = await self._request("GET", f"{self.base_url}{WEBMASTERS_API_PATH}/sites")
        sites = response.get("siteEntry") or []
        logger.info(f"Retrieved {len(sites)} Search Console properties")
        return sites

    async def get_search_analytics(
        self,
        site_url: str,
        start_date: str,
        end_date: str,
        dimensions: List[str],
        dimension_filter_groups: Optional[List[Dict[str, Any]]] = None,
    ) -> List[Dict[str, Any]]:
        """Query search traffic rows grouped by the given dimensions."""
        body: Dict[str, Any] = {
            "startDate": start_date,
            "endDate": end_date,
            "dimensions": dimensions,
        }
        if dimension_filter_groups:
            body["dimensionFilterGroups"] = dimension_filter_groups
        response = await self._request("POST", self._site_url(site_url, "searchAnalytics", "query"), json_payload=body)
        rows = response.get("rows") or []
        logger.info(f"Search analytics for {site_url} ({start_date}..{end_date}, {dimensions}): {len(rows)} rows")
        return rows

    async def inspect_url(self, site_url: str, inspection_url: str) -> Dict[str, Any]:
        """Return the index status of a URL within a property."""
        body = {"siteUrl": site_url, "inspectionUrl": inspection_url}
        result = await self._request("POST", f"{self.base_url}{URL_INSPECTION_API_PATH}", json_payload=body)
        logger.info(f"Inspected {inspection_url} in {site_url}")
        return result

    async def list_sitemaps(self, site_url: str) -> List[Dict[str, Any]]:
        response = await self._request("GET", self._site_url(site_url, "sitemaps"))
        sitemaps = response.get("sitemap") or []
        logger.info(f"Retrieved {len(sitemaps)} sitemaps for {site_url}")
        return sitemaps

    async def submit_sitemap(self, site_url: str, feedpath: str) -> Dict[str, Any]:
        await self._request("PUT", self._site_url(site_url, "sitemaps", _path_param(feedpath)))
        logger.info(f"Submitted sitemap {feedpath} for {site_url}")
        return {"success": True, "message": f"Sitemap submitted: {feedpath}"}

    async def get_top_queries(
        self, site_url: str, start_date: str, end_date: str, limit: int = 10
    ) -> List[Dict[str, Any]]:
        """Convenience query: rows dimensioned by search query, capped at `limit`."""
        body = {
            "startDate": start_date,
            "endDate": end_date,
            "dimensions": ["query"],
            "rowLimit": limit,
        }
        response = await self._request("POST", self._site_url(site_url, "searchAnalytics", "query"), json_payload=body)
        rows = response.get("rows") or []
        logger.info(f"Top queries for {site_url} ({start_date}..{end_date}): {len(rows)} rows (limit {limit})")
        return rows

    async def aclose(self) -> None:
        await self.client.aclose()
