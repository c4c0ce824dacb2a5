"""Builds registry query strings from SearchOptions."""

from typing import Dict
from urllib.parse import urlencode

from npilookup.domain.models.common import RequestUrl
from npilookup.domain.models.provider import SearchOptions

API_VERSION = "2.1"
DEFAULT_LIMIT = 10
MAX_LIMIT = 200

# Order matches the registry documentation; empty values are skipped.
_FILTER_FIELDS = (
    "number",
    "enumeration_type",
    "first_name",
    "last_name",
    "organization_name",
    "taxonomy_description",
    "address_purpose",
    "city",
    "state",
    "postal_code",
    "country_code",
)


def build_query_params(options: SearchOptions) -> Dict[str, str]:
    """Converts SearchOptions into registry query parameters."""
    params: Dict[str, str] = {"version": API_VERSION}

    for name in _FILTER_FIELDS:
        value = getattr(options, name)
        if value:
            params[name] = value

    limit = options.limit
    if limit <= 0:
        limit = DEFAULT_LIMIT
    elif limit > MAX_LIMIT:
        limit = MAX_LIMIT
    params["limit"] = str(limit)

    if options.skip > 0:
        params["skip"] = str(options.skip)
    if options.pretty:
        params["pretty"] = "true"
    return params


def build_search_url(base_url: str, options: SearchOptions) -> RequestUrl:
    """Assembles the full GET URL for a search."""
    query = urlencode(sorted(build_query_params(options).items()))
    return RequestUrl(f"{base_url.rstrip('/')}/?{query}")
