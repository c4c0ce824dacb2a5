"""Domain models for NPI Registry provider records.

Covers individual (NPI-1) and organizational (NPI-2) providers together with
their addresses, taxonomies, identifiers and electronic endpoints, plus the
search filters accepted by the registry API.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

from npilookup.utils.flex_int import parse_flex_int

T = TypeVar("T")


def _text_fields(cls: Type[T], data: Mapping[str, Any], aliases: Optional[Dict[str, str]] = None) -> T:
    """Builds a flat dataclass of string/bool fields from a JSON mapping.

    Unknown keys are ignored; missing or null keys fall back to the field default.
    """
    aliases = aliases or {}
    kwargs: Dict[str, Any] = {}
    for f in fields(cls):
        value = data.get(aliases.get(f.name, f.name))
        if value is None:
            continue
        if isinstance(f.default, bool):
            kwargs[f.name] = value if isinstance(value, bool) else str(value).lower() == "true"
        else:
            kwargs[f.name] = str(value)
    return cls(**kwargs)


def _list_of(cls: Any, items: Any) -> list:
    if not items:
        return []
    if not isinstance(items, list):
        raise ValueError(f"Expected a list for {cls.__name__} entries, got {type(items).__name__}")
    return [cls.from_dict(item) for item in items]


@dataclass
class BasicInfo:
    """Core name, credential and status information for a provider."""
    first_name: str = ""
    last_name: str = ""
    middle_name: str = ""
    credential: str = ""
    sole_proprietor: str = ""
    gender: str = ""
    enumeration_date: str = ""
    last_updated: str = ""
    status: str = ""
    name: str = ""
    name_prefix: str = ""
    name_suffix: str = ""
    organization_name: str = ""
    organizational_subpart: str = ""
    authorized_official_first_name: str = ""
    authorized_official_last_name: str = ""
    authorized_official_middle_name: str = ""
    authorized_official_telephone_number: str = ""
    authorized_official_title_or_position: str = ""
    authorized_official_credential: str = ""
    certification_date: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BasicInfo":
        return _text_fields(cls, data)


@dataclass
class Address:
    """A mailing (MAILING) or practice (LOCATION) address."""
    country_code: str = ""
    country_name: str = ""
    address_purpose: str = ""
    address_type: str = ""
    address_1: str = ""
    address_2: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    telephone_number: str = ""
    fax_number: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Address":
        return _text_fields(cls, data)


@dataclass
class Taxonomy:
    """A specialty from the Healthcare Provider Taxonomy Code Set (e.g. 207Q00000X)."""
    code: str = ""
    taxonomy_group: str = ""
    desc: str = ""
    state: str = ""
    license: str = ""
    primary: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Taxonomy":
        return _text_fields(cls, data)


@dataclass
class Identifier:
    """An additional identifier such as a state license or Medicaid number."""
    code: str = ""
    desc: str = ""
    identifier: str = ""
    state: str = ""
    issuer: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Identifier":
        return _text_fields(cls, data)


_ENDPOINT_ALIASES = {
    "endpoint_type": "endpointType",
    "endpoint_type_description": "endpointTypeDescription",
    "use_description": "useDescription",
    "content_type": "contentType",
    "content_type_description": "contentTypeDescription",
    "country_name": "countryName",
}


@dataclass
class Endpoint:
    """An electronic exchange endpoint (Direct address, FHIR URL, ...)."""
    endpoint_type: str = ""
    endpoint_type_description: str = ""
    endpoint: str = ""
    affiliation: str = ""
    use_description: str = ""
    content_type: str = ""
    content_type_description: str = ""
    country: str = ""
    country_name: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Endpoint":
        return _text_fields(cls, data, _ENDPOINT_ALIASES)


@dataclass
class PracticeLocation:
    """An additional location where the provider practices."""
    address_1: str = ""
    address_2: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country_code: str = ""
    country_name: str = ""
    telephone_number: str = ""
    fax_number: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PracticeLocation":
        return _text_fields(cls, data)


@dataclass
class OtherName:
    """An alternative (former, doing-business-as, ...) name."""
    type: str = ""
    code: str = ""
    credential: str = ""
    first_name: str = ""
    last_name: str = ""
    middle_name: str = ""
    prefix: str = ""
    suffix: str = ""
    organization_name: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OtherName":
        return _text_fields(cls, data)


@dataclass
class Provider:
    """A healthcare provider record from the NPI Registry.

    ``enumeration_type`` is ``"NPI-1"`` for individuals and ``"NPI-2"`` for
    organizations.
    """
    number: str
    enumeration_type: str = ""
    basic: BasicInfo = field(default_factory=BasicInfo)
    addresses: List[Address] = field(default_factory=list)
    taxonomies: List[Taxonomy] = field(default_factory=list)
    identifiers: List[Identifier] = field(default_factory=list)
    endpoints: List[Endpoint] = field(default_factory=list)
    practice_locations: List[PracticeLocation] = field(default_factory=list)
    other_names: List[OtherName] = field(default_factory=list)
    created_epoch: int = 0
    last_updated: str = ""
    last_updated_epoch: int = 0

    @property
    def display_name(self) -> str:
        """Organization name for NPI-2 records, personal name otherwise."""
        if self.basic.organization_name:
            return self.basic.organization_name
        parts = [self.basic.name_prefix, self.basic.first_name, self.basic.middle_name,
                 self.basic.last_name, self.basic.credential]
        name = " ".join(p for p in parts if p)
        return name or self.basic.name

    @property
    def primary_taxonomy(self) -> Optional[Taxonomy]:
        for taxonomy in self.taxonomies:
            if taxonomy.primary:
                return taxonomy
        return self.taxonomies[0] if self.taxonomies else None

    @property
    def location_address(self) -> Optional[Address]:
        for address in self.addresses:
            if address.address_purpose.upper() == "LOCATION":
                return address
        return self.addresses[0] if self.addresses else None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Provider":
        if not isinstance(data, Mapping):
            raise ValueError(f"Expected an object for provider, got {type(data).__name__}")
        return cls(
            number=str(data.get("number") or ""),
            enumeration_type=str(data.get("enumeration_type") or ""),
            basic=BasicInfo.from_dict(data.get("basic") or {}),
            addresses=_list_of(Address, data.get("addresses")),
            taxonomies=_list_of(Taxonomy, data.get("taxonomies")),
            identifiers=_list_of(Identifier, data.get("identifiers")),
            endpoints=_list_of(Endpoint, data.get("endpoints")),
            practice_locations=_list_of(PracticeLocation, data.get("practice_locations")),
            other_names=_list_of(OtherName, data.get("other_names")),
            created_epoch=parse_flex_int(data.get("created_epoch")),
            last_updated=str(data.get("last_updated") or ""),
            last_updated_epoch=parse_flex_int(data.get("last_updated_epoch")),
        )


@dataclass
class ApiResponse:
    """Envelope returned by the registry search endpoint."""
    result_count: int = 0
    results: List[Provider] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "ApiResponse":
        if not isinstance(data, Mapping):
            raise ValueError(f"Expected a JSON object response, got {type(data).__name__}")
        return cls(
            result_count=parse_flex_int(data.get("result_count")),
            results=_list_of(Provider, data.get("results")),
        )


@dataclass
class SearchOptions:
    """Filters for a registry search. Every field is optional.

    ``limit`` defaults to 10 when left at 0 and is capped at 200; combine it
    with ``skip`` to page through results.
    """
    number: str = ""
    enumeration_type: str = ""  # "NPI-1" (individual) or "NPI-2" (organization)
    first_name: str = ""
    last_name: str = ""
    organization_name: str = ""
    taxonomy_description: str = ""
    address_purpose: str = ""  # "LOCATION" or "MAILING"
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country_code: str = ""
    limit: int = 0
    skip: int = 0
    pretty: bool = False
