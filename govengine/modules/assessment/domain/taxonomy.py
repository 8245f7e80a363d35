"""
Static naming taxonomy.

Two process-wide registries, built once at import and never mutated:
- resource type -> ordered abbreviations (first entry is the primary one),
  following the Cloud Adoption Framework abbreviation table;
- service token -> canonical service name, plus equivalence groups used to
  decide whether two tokens name the same service.

Tenant-specific service abbreviations are passed in per call and always take
precedence over the global tables.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from types import MappingProxyType

DEFAULT_ABBREVIATION = "res"

ENVIRONMENT_KEYWORDS: frozenset[str] = frozenset(
    {"dev", "test", "staging", "stage", "prod", "production", "qa", "uat", "shared"}
)

NAME_SEPARATORS = ("-", "_", ".")
_SEPARATOR_SPLIT = re.compile(r"[-_.]+")
_NUMERIC = re.compile(r"^\d+$")
_ALPHA_NUMERIC_SUFFIX = re.compile(r"^[a-z]+\d+$")

RESOURCE_ABBREVIATIONS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        # AI + machine learning
        "microsoft.cognitiveservices/accounts": ("cog",),
        "microsoft.machinelearningservices/workspaces": ("mlw",),
        "microsoft.search/searchservices": ("srch",),
        # Analytics and IoT
        "microsoft.analysisservices/servers": ("as",),
        "microsoft.databricks/workspaces": ("dbw",),
        "microsoft.datafactory/factories": ("adf",),
        "microsoft.datalakeanalytics/accounts": ("dla",),
        "microsoft.datalakestore/accounts": ("dls",),
        "microsoft.devices/iothubs": ("iot",),
        "microsoft.devices/provisioningservices": ("provs",),
        "microsoft.eventhub/namespaces": ("evhns",),
        "microsoft.eventhub/namespaces/eventhubs": ("evh",),
        "microsoft.hdinsight/clusters": ("hdi",),
        "microsoft.kusto/clusters": ("dec",),
        "microsoft.powerbi/workspacecollections": ("pbiw",),
        "microsoft.purview/accounts": ("pview",),
        "microsoft.streamanalytics/streamingjobs": ("asa",),
        "microsoft.synapse/workspaces": ("syn",),
        "microsoft.timeseriesinsights/environments": ("tsi",),
        # Compute and web
        "microsoft.batch/batchaccounts": ("ba",),
        "microsoft.compute/availabilitysets": ("avail",),
        "microsoft.compute/cloudservices": ("cld",),
        "microsoft.compute/disks": ("disk",),
        "microsoft.compute/galleries": ("gal",),
        "microsoft.compute/snapshots": ("snap",),
        "microsoft.compute/virtualmachines": ("vm",),
        "microsoft.compute/virtualmachinescalesets": ("vmss",),
        "microsoft.servicefabric/clusters": ("sf",),
        "microsoft.web/serverfarms": ("plan", "asp", "appplan"),
        "microsoft.web/sites": ("app", "webapp", "web"),
        "microsoft.web/sites/slots": ("slot",),
        "microsoft.web/staticsites": ("stapp",),
        # Containers
        "microsoft.containerinstance/containergroups": ("ci",),
        "microsoft.containerregistry/registries": ("cr", "acr", "registry"),
        "microsoft.containerservice/managedclusters": ("aks", "k8s", "kubernetes"),
        "microsoft.servicefabricmesh/applications": ("sfm",),
        "microsoft.app/containerapps": ("ca", "containerapp", "capp"),
        "microsoft.app/managedenvironments": ("cae",),
        # Databases
        "microsoft.cache/redis": ("redis",),
        "microsoft.dbformariadb/servers": ("mariadb",),
        "microsoft.dbformysql/servers": ("mysql",),
        "microsoft.dbforpostgresql/servers": ("psql",),
        "microsoft.documentdb/databaseaccounts": ("cosmos", "cosmosdb", "docdb"),
        "microsoft.sql/managedinstances": ("sqlmi",),
        "microsoft.sql/servers": ("sql", "sqlsrv", "sqlserver"),
        "microsoft.sql/servers/databases": ("sqldb", "db", "database"),
        "microsoft.sql/servers/elasticpools": ("sqlep",),
        "microsoft.sqlvirtualmachine/sqlvirtualmachines": ("sqlvm",),
        # Developer tools
        "microsoft.appconfiguration/configurationstores": ("appcs",),
        "microsoft.signalrservice/signalr": ("sigr",),
        "microsoft.devtestlab/labs": ("lab",),
        # Integration
        "microsoft.apimanagement/service": ("apim",),
        "microsoft.logic/workflows": ("logic",),
        "microsoft.servicebus/namespaces": ("sbns",),
        "microsoft.servicebus/namespaces/queues": ("sbq",),
        "microsoft.servicebus/namespaces/topics": ("sbt",),
        # Management and governance
        "microsoft.automation/automationaccounts": ("aa",),
        "microsoft.blueprint/blueprints": ("bp",),
        "microsoft.keyvault/vaults": ("kv", "vault", "keyvault"),
        "microsoft.managedidentity/userassignedidentities": ("id",),
        "microsoft.operationalinsights/workspaces": ("log", "logs", "loganalytics", "law"),
        "microsoft.operationsmanagement/solutions": ("sol",),
        "microsoft.portal/dashboards": ("dash",),
        "microsoft.resources/resourcegroups": ("rg",),
        # Monitoring
        "microsoft.insights/actiongroups": ("ag",),
        "microsoft.insights/components": ("appi", "ai", "appinsights"),
        # Networking
        "microsoft.cdn/profiles": ("cdnp",),
        "microsoft.cdn/profiles/endpoints": ("cdne",),
        "microsoft.classicnetwork/reservedips": ("rip",),
        "microsoft.network/applicationgateways": ("agw",),
        "microsoft.network/applicationsecuritygroups": ("asg",),
        "microsoft.network/azurefirewalls": ("afw",),
        "microsoft.network/bastionhosts": ("bas",),
        "microsoft.network/connections": ("con",),
        "microsoft.network/dnsresolvers": ("dnspr",),
        "microsoft.network/dnszones": ("dnsz",),
        "microsoft.network/expressroutecircuits": ("erc",),
        "microsoft.network/firewallpolicies": ("afwp",),
        "microsoft.network/frontdoors": ("fd",),
        "microsoft.network/frontdoorwebapplicationfirewallpolicies": ("fdfp",),
        "microsoft.network/loadbalancers": ("lb", "loadbalancer", "elb"),
        "microsoft.network/loadbalancers/inboundnatrules": ("rule",),
        "microsoft.network/localgateways": ("lgw",),
        "microsoft.network/natgateways": ("ng",),
        "microsoft.network/networkinterfaces": ("nic",),
        "microsoft.network/networksecuritygroups": ("nsg", "securitygroup", "sg"),
        "microsoft.network/networksecuritygroups/securityrules": ("nsgsr",),
        "microsoft.network/networkwatchers": ("nw",),
        "microsoft.network/privatednszones": ("pdnsz",),
        "microsoft.network/privateendpoints": ("pep",),
        "microsoft.network/privatelinkservices": ("pl",),
        "microsoft.network/publicipaddresses": ("pip", "publicip", "ip"),
        "microsoft.network/publicipprefixes": ("ippre",),
        "microsoft.network/routefilters": ("rf",),
        "microsoft.network/routetables": ("rt",),
        "microsoft.network/routetables/routes": ("udr",),
        "microsoft.network/serviceendpointpolicies": ("se",),
        "microsoft.network/trafficmanagerprofiles": ("traf",),
        "microsoft.network/virtualnetworkgateways": ("vgw",),
        "microsoft.network/virtualnetworks": ("vnet", "vn", "virtualnet"),
        "microsoft.network/virtualnetworks/subnets": ("snet", "subnet", "sub"),
        "microsoft.network/virtualnetworks/virtualnetworkpeerings": ("peer",),
        "microsoft.network/virtualwans": ("vwan",),
        "microsoft.network/vpngateways": ("vpng",),
        "microsoft.network/vpnserverconfigurations": ("vpnsc",),
        "microsoft.network/vpnsites": ("vpns",),
        # Security
        "microsoft.aad/domainservices": ("aadds",),
        "microsoft.keyvault/managedhsms": ("kvmhsm",),
        # Storage
        "microsoft.netapp/netappaccounts": ("anf",),
        "microsoft.netapp/netappaccounts/capacitypools": ("anfcp",),
        "microsoft.netapp/netappaccounts/capacitypools/volumes": ("anfv",),
        "microsoft.storage/storageaccounts": ("st", "stg", "stor", "storage"),
        "microsoft.storagesync/storagesyncservices": ("sss",),
        "microsoft.storsimple/managers": ("ssimp",),
        # Web extras
        "microsoft.certificateregistration/certificateorders": ("cert",),
        "microsoft.domainregistration/domains": ("dom",),
        "microsoft.notificationhubs/namespaces": ("ntfns",),
        "microsoft.notificationhubs/namespaces/notificationhubs": ("ntf",),
    }
)

_ALL_ABBREVIATIONS: frozenset[str] = frozenset(
    abbreviation
    for abbreviations in RESOURCE_ABBREVIATIONS.values()
    for abbreviation in abbreviations
)

SERVICE_ABBREVIATIONS: Mapping[str, str] = MappingProxyType(
    {
        # storage and data
        "stg": "storage",
        "stor": "storage",
        "store": "storage",
        "data": "data",
        "blob": "blob",
        "file": "file",
        "queue": "queue",
        "table": "table",
        "backup": "backup",
        "bkp": "backup",
        "bak": "backup",
        "archive": "archive",
        "arch": "archive",
        # web and api
        "web": "web",
        "www": "web",
        "site": "website",
        "website": "website",
        "portal": "portal",
        "app": "application",
        "application": "application",
        "api": "api",
        "svc": "service",
        "service": "service",
        "func": "function",
        "functions": "function",
        "worker": "worker",
        "job": "job",
        "task": "task",
        # database
        "db": "database",
        "database": "database",
        "sql": "sql",
        "nosql": "nosql",
        "mongo": "mongodb",
        "redis": "redis",
        "cache": "cache",
        "elastic": "elasticsearch",
        "search": "search",
        # business applications
        "crm": "crm",
        "erp": "erp",
        "hr": "hr",
        "finance": "finance",
        "accounting": "accounting",
        "inventory": "inventory",
        "warehouse": "warehouse",
        "logistics": "logistics",
        "shipping": "shipping",
        "billing": "billing",
        "payment": "payment",
        "ecommerce": "ecommerce",
        "shop": "shop",
        "cart": "cart",
        # communication
        "email": "email",
        "mail": "email",
        "chat": "chat",
        "teams": "teams",
        "meeting": "meeting",
        "video": "video",
        "voice": "voice",
        "sms": "sms",
        "notification": "notification",
        "notify": "notification",
        # analytics and monitoring
        "analytics": "analytics",
        "reporting": "reporting",
        "dashboard": "dashboard",
        "monitoring": "monitoring",
        "metrics": "metrics",
        "logging": "logging",
        "audit": "audit",
        "tracking": "tracking",
        "telemetry": "telemetry",
        # security
        "auth": "authentication",
        "identity": "identity",
        "security": "security",
        "firewall": "firewall",
        "vpn": "vpn",
        "ssl": "ssl",
        "cert": "certificate",
        "key": "key",
        "vault": "vault",
        "secrets": "secrets",
        # devops
        "ci": "ci",
        "cd": "cd",
        "build": "build",
        "deploy": "deployment",
        "deployment": "deployment",
        "pipeline": "pipeline",
        "automation": "automation",
        "orchestration": "orchestration",
        "config": "configuration",
        "settings": "settings",
        # media and content
        "media": "media",
        "image": "image",
        "audio": "audio",
        "content": "content",
        "cms": "cms",
        "cdn": "cdn",
        "streaming": "streaming",
        # integration
        "integration": "integration",
        "connector": "connector",
        "bridge": "bridge",
        "gateway": "gateway",
        "proxy": "proxy",
        "hub": "hub",
        "broker": "broker",
        "eventbus": "eventbus",
        # ai and machine learning
        "ai": "ai",
        "ml": "machinelearning",
        "bot": "bot",
        "chatbot": "chatbot",
        "vision": "vision",
        "speech": "speech",
        "nlp": "nlp",
        "cognitive": "cognitive",
        # industry specific
        "healthcare": "healthcare",
        "medical": "medical",
        "patient": "patient",
        "claims": "claims",
        "insurance": "insurance",
        "banking": "banking",
        "trading": "trading",
        "portfolio": "portfolio",
        "real-estate": "realestate",
        "property": "property",
        "education": "education",
        "learning": "learning",
        "course": "course",
        "student": "student",
        # business functions
        "admin": "admin",
        "management": "management",
        "support": "support",
        "help": "help",
        "docs": "documentation",
        "documentation": "documentation",
        "wiki": "wiki",
        "knowledge": "knowledge",
        "feedback": "feedback",
        "survey": "survey",
        "review": "review",
        "rating": "rating",
    }
)

TECHNOLOGY_SERVICES: Mapping[str, str] = MappingProxyType(
    {
        "sharepoint": "sharepoint",
        "exchange": "exchange",
        "outlook": "outlook",
        "teams": "teams",
        "onedrive": "onedrive",
        "powerbi": "powerbi",
        "dynamics": "dynamics",
        "azure": "azure",
        "office365": "office365",
        "o365": "office365",
        "dotnet": "dotnet",
        "nodejs": "nodejs",
        "react": "react",
        "angular": "angular",
        "vue": "vue",
        "express": "express",
        "nestjs": "nestjs",
        "spring": "spring",
        "django": "django",
        "flask": "flask",
        "rails": "rails",
        "sqlserver": "sqlserver",
        "mysql": "mysql",
        "postgresql": "postgresql",
        "postgres": "postgresql",
        "mongodb": "mongodb",
        "redis": "redis",
        "elasticsearch": "elasticsearch",
        "solr": "solr",
        "cassandra": "cassandra",
        "dynamodb": "dynamodb",
        "cosmosdb": "cosmosdb",
        "salesforce": "salesforce",
        "hubspot": "hubspot",
        "mailchimp": "mailchimp",
        "stripe": "stripe",
        "paypal": "paypal",
        "twilio": "twilio",
        "sendgrid": "sendgrid",
        "slack": "slack",
        "discord": "discord",
        "zoom": "zoom",
        "compass": "compass",
        "veeam": "veeam",
        "vmware": "vmware",
        "citrix": "citrix",
        "tableau": "tableau",
        "qlikview": "qlikview",
        "splunk": "splunk",
        "newrelic": "newrelic",
        "datadog": "datadog",
    }
)

SERVICE_VARIATIONS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "storage": ("stg", "stor", "store", "storage"),
        "backup": ("bkp", "bak", "backup"),
        "database": ("db", "database"),
        "application": ("app", "application"),
        "function": ("func", "functions", "function"),
        "website": ("web", "www", "site", "website"),
        "api": ("api", "service", "svc"),
        "authentication": ("auth", "identity", "authentication"),
        "configuration": ("config", "settings", "configuration"),
        "documentation": ("docs", "documentation"),
        "notification": ("notify", "notification"),
        "administration": ("admin", "administration"),
        "machinelearning": ("ml", "ai", "machinelearning"),
    }
)


def split_name(name: str) -> list[str]:
    """Split a resource name on every recognised separator, dropping empty parts."""
    return [part for part in _SEPARATOR_SPLIT.split(name or "") if part]


def is_environment(token: str) -> bool:
    return (token or "").lower() in ENVIRONMENT_KEYWORDS


# Resource-type abbreviations


def valid_abbreviations(resource_type: str) -> tuple[str, ...]:
    return RESOURCE_ABBREVIATIONS.get((resource_type or "").lower(), (DEFAULT_ABBREVIATION,))


def primary_abbreviation(resource_type: str) -> str:
    return valid_abbreviations(resource_type)[0]


def is_valid_abbreviation(resource_type: str, abbreviation: str) -> bool:
    candidate = (abbreviation or "").lower()
    return candidate in valid_abbreviations(resource_type)


def is_known_abbreviation(abbreviation: str) -> bool:
    """True when the token is an abbreviation for any registered resource type."""
    return (abbreviation or "").lower() in _ALL_ABBREVIATIONS


def abbreviation_with_kind(resource_type: str, kind: str | None) -> str:
    """Primary abbreviation, refined by resource kind (function apps are web sites)."""
    if (resource_type or "").lower() == "microsoft.web/sites" and kind:
        if "functionapp" in kind.lower():
            return "func"
    return primary_abbreviation(resource_type)


# Service names


def is_known_service(token: str) -> bool:
    key = (token or "").lower()
    return bool(key) and (key in SERVICE_ABBREVIATIONS or key in TECHNOLOGY_SERVICES)


def canonical_service_name(token: str) -> str:
    """Canonical service name for a token; unknown tokens are returned unchanged."""
    if not token or not token.strip():
        return token
    key = token.lower()
    if key in SERVICE_ABBREVIATIONS:
        return SERVICE_ABBREVIATIONS[key]
    if key in TECHNOLOGY_SERVICES:
        return TECHNOLOGY_SERVICES[key]
    return token


def are_equivalent(first: str, second: str) -> bool:
    if not (first and first.strip()) or not (second and second.strip()):
        return False

    normalized_first = canonical_service_name(first.lower())
    normalized_second = canonical_service_name(second.lower())
    if normalized_first.lower() == normalized_second.lower():
        return True

    first_key, second_key = first.lower(), second.lower()
    return any(
        first_key in group and second_key in group
        for group in SERVICE_VARIATIONS.values()
    )


def _matches_company(token: str, accepted_company_names: Iterable[str]) -> bool:
    lowered = token.lower()
    return any(lowered == company.lower() for company in accepted_company_names)


def extract_service(
    name: str,
    accepted_company_names: Iterable[str] = (),
    tenant_overrides: Mapping[str, str] | None = None,
) -> str | None:
    """
    Find the service component of a resource name.

    Tokens are inspected left to right. Company names, environment keywords,
    resource-type abbreviations and instance-like tokens are skipped. The first
    remaining token resolves through, in order: the tenant override table
    (exact match, then case-insensitive), the global service table, and finally
    the token itself when it is longer than two characters.
    """
    if not name or not name.strip():
        return None

    companies = tuple(accepted_company_names)
    overrides = dict(tenant_overrides or {})

    for part in split_name(name):
        lowered = part.lower()
        if _matches_company(part, companies):
            continue
        if lowered in ENVIRONMENT_KEYWORDS:
            continue
        if is_known_abbreviation(lowered):
            continue
        if _NUMERIC.match(lowered) or _ALPHA_NUMERIC_SUFFIX.match(lowered):
            continue

        if part in overrides:
            return overrides[part]
        for abbreviation, full_name in overrides.items():
            if abbreviation.lower() == lowered:
                return full_name

        if is_known_service(lowered):
            return canonical_service_name(lowered)

        if len(lowered) > 2:
            return lowered

    return None


def is_definitely_service_name(token: str, accepted_company_names: Iterable[str] = ()) -> bool:
    if not token or not token.strip():
        return False
    if _matches_company(token, accepted_company_names):
        return False
    return is_known_service(token)
