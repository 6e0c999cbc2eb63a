"""Source feeds backed by the Power Platform admin APIs and Dataverse.

Each source kind maps to an ordered chain of endpoints; the first endpoint that
answers with a non-empty listing wins. Dataverse rows are reshaped into the
``{"name": ..., "properties": {...}}`` envelope the management APIs use, so
normalization treats every feed alike.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Final, cast

from inventory_sync.domain.errors import FeedFetchError
from inventory_sync.domain.model import OrdinaryScope, SourceKind, SourceRecord

from .client import Endpoint
from .errors import PowerPlatformAPIError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from inventory_sync.domain.model import Payload, Scope

    from .client import PowerPlatformClient, Reshape

log = getLogger(__name__)

POWERPLATFORM_API: Final[str] = "https://api.powerplatform.com"
BAP_API: Final[str] = "https://api.bap.microsoft.com"
POWERAPPS_AUDIENCE: Final[str] = "https://service.powerapps.com"
FLOW_AUDIENCE: Final[str] = "https://service.flow.microsoft.com"

PREVIEW_VERSION: Final[str] = "2022-03-01-preview"
DATAVERSE_API_PATH: Final[str] = "api/data/v9.2"
MODERN_FLOW_CATEGORY: Final[int] = 5


def preview(path: str, *, reshape: Reshape | None = None, **params: str) -> Endpoint:
    return Endpoint(
        audience=POWERPLATFORM_API,
        url=f"{POWERPLATFORM_API}/{path}",
        params={"api-version": PREVIEW_VERSION, **params},
        reshape=reshape,
    )


def bap(path: str, *, api_version: str, **params: str) -> Endpoint:
    return Endpoint(
        audience=BAP_API,
        url=f"{BAP_API}/providers/Microsoft.BusinessAppPlatform/{path}",
        params={"api-version": api_version, **params},
    )


def dataverse(
    instance_url: str,
    entity_set: str,
    *,
    reshape: Reshape | None = None,
    **params: str,
) -> Endpoint:
    base = instance_url.rstrip("/")
    return Endpoint(
        audience=base,
        url=f"{base}/{DATAVERSE_API_PATH}/{entity_set}",
        params=params,
        reshape=reshape,
    )


def instance_url_of(scope: Scope) -> str | None:
    """Dataverse instance linked to ``scope``, when the environment has one."""

    if not isinstance(scope, OrdinaryScope):
        return None
    properties = scope.attributes.get("properties")
    if not isinstance(properties, Mapping):
        return None
    linked = cast("Payload", properties).get("linkedEnvironmentMetadata")
    if not isinstance(linked, Mapping):
        return None
    url = cast("Payload", linked).get("instanceUrl")
    if isinstance(url, str) and url.strip():
        return url.strip()
    return None


# Reshaping of Dataverse rows and Power Pages websites ------------------------


def _envelope(identifier: object, **properties: object) -> Payload:
    return {
        "name": identifier,
        "properties": {key: value for key, value in properties.items() if value is not None},
    }


def _https(domain: object) -> str | None:
    if not isinstance(domain, str) or not domain.strip():
        return None
    domain = domain.strip()
    return domain if domain.startswith("http") else f"https://{domain}"


def reshape_dataverse_solution(row: Payload) -> Payload:
    publisher = row.get("publisherid")
    publisher_name = (
        cast("Payload", publisher).get("friendlyname") if isinstance(publisher, Mapping) else None
    )
    return _envelope(
        row.get("solutionid"),
        displayName=row.get("friendlyname"),
        name=row.get("uniquename"),
        isManaged=row.get("ismanaged"),
        version=row.get("version"),
        createdOn=row.get("createdon"),
        modifiedOn=row.get("modifiedon"),
        publisherDisplayName=publisher_name,
    )


def reshape_dataverse_workflow(row: Payload) -> Payload:
    return _envelope(
        row.get("workflowid"),
        displayName=row.get("name"),
        solutionId=row.get("solutionid"),
        modifiedOn=row.get("modifiedon"),
    )


def reshape_dataverse_canvas_app(row: Payload) -> Payload:
    return _envelope(
        row.get("canvasappid"),
        displayName=row.get("displayname"),
        solutionId=row.get("solutionid"),
    )


def reshape_website(site: Payload) -> Payload:
    portal_id = site.get("dataverseRecordId") or site.get("id")
    return _envelope(
        portal_id,
        displayName=site.get("name") or "Power Page Website",
        portalId=portal_id,
        siteUrl=site.get("websiteUrl"),
        state=f"Active ({site.get('applicationType')})",
        status=site.get("websiteStatus"),
        visibility=site.get("websiteVisibility"),
        provisioningState=site.get("packageInstallationStatus"),
        createdTime=site.get("createdTime"),
        lastModifiedTime=site.get("lastModifiedTime"),
    )


def reshape_adx_website(row: Payload) -> Payload:
    return _envelope(
        row.get("adx_websiteid"),
        displayName=row.get("adx_name") or "Legacy Power Page",
        portalId=row.get("adx_websiteid"),
        siteUrl=_https(row.get("adx_primarydomainname")),
        partialUrl=row.get("adx_partialurl"),
        state="Active (v1)",
        createdTime=row.get("createdon"),
        lastModifiedTime=row.get("modifiedon"),
    )


def reshape_power_page_site(row: Payload) -> Payload:
    return _envelope(
        row.get("powerpagesiteid"),
        displayName=row.get("name") or "Enhanced Power Page",
        portalId=row.get("powerpagesiteid"),
        siteUrl=_https(row.get("powerpagesiteurl") or row.get("hostname")),
        state="Active (v2)",
        createdTime=row.get("createdon"),
        lastModifiedTime=row.get("modifiedon"),
    )


def reshape_mspp_website(row: Payload) -> Payload:
    return _envelope(
        row.get("mspp_websiteid"),
        displayName=row.get("mspp_name") or "Modern Power Page",
        portalId=row.get("mspp_websiteid"),
        siteUrl=_https(row.get("mspp_primarydomainname")),
        state="Active (Modern)",
        createdTime=row.get("createdon"),
        lastModifiedTime=row.get("modifiedon"),
    )


# Endpoint chains --------------------------------------------------------------


def tenant_chain(kind: SourceKind) -> tuple[Endpoint, ...]:
    match kind:
        case SourceKind.CAPACITY:
            return (
                preview("licensing/tenantCapacity"),
                preview("licensing/currencyReports"),
                bap("scopes/admin/environments/capacities", api_version="2020-10-01"),
            )
        case SourceKind.LICENSE:
            return (
                preview("licensing/tenantLicenses"),
                preview("licensing/productInventory"),
                bap("scopes/admin/licensing/tenantLicenses", api_version="2020-10-01"),
            )
        case SourceKind.DLP_POLICY:
            return (preview("governance/ruleBasedPolicies"),)
        case _:
            return ()


def scope_chain(kind: SourceKind, scope: OrdinaryScope) -> tuple[Endpoint, ...]:
    env = scope.id
    instance = instance_url_of(scope)
    match kind:
        case SourceKind.CANVAS_APP:
            return (
                Endpoint(
                    audience=POWERAPPS_AUDIENCE,
                    url=(
                        "https://api.powerapps.com/providers/Microsoft.PowerApps/"
                        f"scopes/admin/environments/{env}/apps"
                    ),
                    params={"api-version": "2021-02-01"},
                ),
            )
        case SourceKind.CLOUD_FLOW:
            return (
                Endpoint(
                    audience=FLOW_AUDIENCE,
                    url=(
                        "https://api.flow.microsoft.com/providers/Microsoft.ProcessSimple/"
                        f"scopes/admin/environments/{env}/v2/flows"
                    ),
                    params={"api-version": "2016-11-01"},
                ),
            )
        case SourceKind.SOLUTION:
            return (preview(f"appmanagement/environments/{env}/applicationPackages"),)
        case SourceKind.USER:
            return (preview(f"usermanagement/environments/{env}/users"),)
        case SourceKind.POWER_PAGE:
            management = preview(f"powerpages/environments/{env}/websites", reshape=reshape_website)
            if instance is None:
                return (management,)
            return (
                management,
                dataverse(
                    instance,
                    "adx_websites",
                    reshape=reshape_adx_website,
                    **{
                        "$select": "adx_name,adx_websiteid,adx_primarydomainname,"
                        "adx_partialurl,createdon,modifiedon"
                    },
                ),
                dataverse(
                    instance,
                    "powerpagesites",
                    reshape=reshape_power_page_site,
                    **{"$select": "name,powerpagesiteid,powerpagesiteurl,hostname,createdon,modifiedon"},
                ),
                dataverse(
                    instance,
                    "mspp_websites",
                    reshape=reshape_mspp_website,
                    **{"$select": "mspp_name,mspp_websiteid,mspp_primarydomainname,createdon,modifiedon"},
                ),
            )
        case SourceKind.DATAVERSE_SOLUTION if instance is not None:
            return (
                dataverse(
                    instance,
                    "solutions",
                    reshape=reshape_dataverse_solution,
                    **{
                        "$select": "uniquename,friendlyname,ismanaged,version,solutionid,"
                        "createdon,modifiedon",
                        "$expand": "publisherid($select=friendlyname)",
                        "$filter": "isvisible eq true",
                    },
                ),
            )
        case SourceKind.DATAVERSE_WORKFLOW if instance is not None:
            return (
                dataverse(
                    instance,
                    "workflows",
                    reshape=reshape_dataverse_workflow,
                    **{
                        "$select": "name,workflowid,solutionid,modifiedon",
                        "$filter": f"category eq {MODERN_FLOW_CATEGORY}",
                    },
                ),
            )
        case SourceKind.DATAVERSE_CANVAS_APP if instance is not None:
            return (
                dataverse(
                    instance,
                    "canvasapps",
                    reshape=reshape_dataverse_canvas_app,
                    **{"$select": "displayname,canvasappid,solutionid"},
                ),
            )
        case _:
            return ()


@dataclass(slots=True)
class PowerPlatformSourceFeed:
    """``SourceFeed`` implementation for every Power Platform source kind."""

    client: PowerPlatformClient

    def __call__(self, scope: Scope, kind: SourceKind) -> Sequence[SourceRecord]:
        if isinstance(scope, OrdinaryScope):
            chain = scope_chain(kind, scope)
        else:
            chain = tenant_chain(kind)
        if not chain:
            log.debug("No endpoints for %s in %s", kind, scope.label)
            return []

        try:
            payloads = self.client.list_first(chain)
        except PowerPlatformAPIError as exc:
            raise FeedFetchError(str(exc), kind=kind.value, scope_key=scope.key) from exc
        log.debug("Fetched %d %s records for %s", len(payloads), kind, scope.label)
        return [SourceRecord.from_payload(payload, kind=kind, scope=scope) for payload in payloads]


def build_feeds(
    client: PowerPlatformClient,
    *,
    skip: Sequence[SourceKind] = (),
) -> dict[SourceKind, PowerPlatformSourceFeed]:
    """One shared feed per fetchable source kind, minus ``skip``."""

    feed = PowerPlatformSourceFeed(client)
    return {
        kind: feed
        for kind in SourceKind
        if kind is not SourceKind.SCOPE_METADATA and kind not in skip
    }
