"""
Dependency graph over a filtered inventory snapshot.

Edges come from resource properties (ARM resource ids referenced by VMs, NICs,
VNets and private endpoints). When a record's properties are missing or do not
reference anything, the builder falls back to name and resource-group
heuristics so that partially collected inventories still produce chains.
"""

from __future__ import annotations

import re
from collections import Counter, defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog

from govengine.modules.assessment.domain.models import (
    DependencyEdge,
    MetricValue,
    ResourceDescriptor,
    Severity,
)
from govengine.modules.assessment.domain.naming_classifier import (
    classify_naming_pattern,
    detect_environment,
)

logger = structlog.get_logger()

VM_TYPE = "microsoft.compute/virtualmachines"
DISK_TYPE = "microsoft.compute/disks"
NIC_TYPE = "microsoft.network/networkinterfaces"
PUBLIC_IP_TYPE = "microsoft.network/publicipaddresses"
NSG_TYPE = "microsoft.network/networksecuritygroups"
VNET_TYPE = "microsoft.network/virtualnetworks"
GATEWAY_TYPE = "microsoft.network/virtualnetworkgateways"
FIREWALL_TYPE = "microsoft.network/azurefirewalls"
PRIVATE_ENDPOINT_TYPE = "microsoft.network/privateendpoints"
STORAGE_TYPE = "microsoft.storage/storageaccounts"
SQL_SERVER_TYPE = "microsoft.sql/servers"
SQL_DATABASE_TYPE = "microsoft.sql/servers/databases"
WEB_TYPES = ("microsoft.web/sites", "microsoft.web/functions")

ATTACHED_NIC = "attached-nic"
ATTACHED_DISK = "attached-disk"
ATTACHED_PUBLIC_IP = "attached-public-ip"
SECURED_BY_NSG = "secured-by-nsg"
MEMBER_OF_SUBNET = "member-of-subnet"
MEMBER_OF_VNET = "member-of-vnet"
SUBNET_OF_VNET = "subnet-of-vnet"
PRIVATE_ENDPOINT = "private-endpoint"

_ENVIRONMENT_ALIASES = {
    "production": "prod",
    "prd": "prod",
    "stage": "staging",
    "stg": "staging",
    "development": "dev",
}
_ENVIRONMENT_TAG_KEYS = ("environment", "env")
_BASE_NAME_SUFFIX = re.compile(
    r"[-_](dev|test|prod|production|staging|development|\d+|nic|nsg|ip|vnet|disk)$",
    re.IGNORECASE,
)


def _normalize_environment(value: str | None) -> str | None:
    if not value or not value.strip():
        return None
    lowered = value.strip().lower()
    return _ENVIRONMENT_ALIASES.get(lowered, lowered)


def resource_environment(resource: ResourceDescriptor) -> str | None:
    """Environment indicator of a resource: an environment tag wins over the name."""
    for key, value in resource.tags.items():
        if key.lower() in _ENVIRONMENT_TAG_KEYS and value:
            return _normalize_environment(value)
    return _normalize_environment(detect_environment(resource.name))


def _get(mapping: Any, *path: str) -> Any:
    current = mapping
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def _items(value: Any) -> list[Any]:
    return list(value) if isinstance(value, list) else []


def _ref(value: Any) -> str | None:
    if isinstance(value, Mapping):
        ref = value.get("id")
        return str(ref) if ref else None
    return None


def _vnet_id_of_subnet(subnet_id: str) -> str | None:
    marker = "/subnets/"
    index = subnet_id.lower().find(marker)
    return subnet_id[:index] if index > 0 else None


def _clean_name(name: str) -> str:
    cleaned = name.lower()
    for token in ("-nic", "-nsg", "-ip", "-vnet", "-disk", "nic", "nsg", "vnet"):
        cleaned = cleaned.replace(token, "")
    return cleaned


def _naming_related(first: str, second: str) -> bool:
    left, right = _clean_name(first), _clean_name(second)
    if not left or not right:
        return False
    if left in right or right in left:
        return True
    return _BASE_NAME_SUFFIX.sub("", left) == _BASE_NAME_SUFFIX.sub("", right)


def _strip_suffix(name: str, *tokens: str) -> str:
    stripped = name.lower()
    for token in tokens:
        stripped = stripped.replace(token, "")
    return stripped


@dataclass(frozen=True)
class VmChain:
    vm_id: str
    vm_name: str
    network_interfaces: tuple[str, ...] = ()
    public_ips: tuple[str, ...] = ()
    network_security_groups: tuple[str, ...] = ()
    virtual_networks: tuple[str, ...] = ()
    disks: tuple[str, ...] = ()
    inferred: bool = False

    def render(self) -> str:
        segments = [self.vm_name]
        for label, names in (
            ("nic", self.network_interfaces),
            ("pip", self.public_ips),
            ("nsg", self.network_security_groups),
            ("vnet", self.virtual_networks),
            ("disk", self.disks),
        ):
            if names:
                segments.append(f"{label}: {', '.join(names)}")
        return " -> ".join(segments)


@dataclass(frozen=True)
class NetworkSummary:
    vnet_id: str
    vnet_name: str
    resource_group: str
    subnets: tuple[str, ...] = ()
    network_security_groups: tuple[str, ...] = ()
    network_interfaces: tuple[str, ...] = ()
    gateways: tuple[str, ...] = ()
    peerings: int = 0
    connected_resource_count: int = 0


@dataclass(frozen=True)
class StorageSummary:
    storage_id: str
    storage_name: str
    virtual_machines: tuple[str, ...] = ()
    disks: tuple[str, ...] = ()
    private_endpoints: tuple[str, ...] = ()


@dataclass(frozen=True)
class DatabaseServerSummary:
    server_id: str
    server_name: str
    databases: tuple[str, ...] = ()
    private_endpoints: tuple[str, ...] = ()
    connected_applications: tuple[str, ...] = ()


@dataclass(frozen=True)
class ResourceGroupStats:
    name: str
    resource_count: int
    resource_types: dict[str, int] = field(default_factory=dict)
    naming_patterns: dict[str, int] = field(default_factory=dict)
    primary_purpose: str = ""


@dataclass(frozen=True)
class NetworkTopology:
    topology_type: str
    virtual_networks: int = 0
    gateways: int = 0
    firewalls: int = 0
    public_ips: int = 0
    peerings: int = 0


@dataclass(frozen=True)
class EnvironmentMixing:
    vnet_id: str
    vnet_name: str
    environments: tuple[str, ...]
    affected_resources: tuple[str, ...]
    severity: Severity


@dataclass(frozen=True)
class DependencyGraph:
    edges: tuple[DependencyEdge, ...] = ()
    vm_chains: tuple[VmChain, ...] = ()
    networks: tuple[NetworkSummary, ...] = ()
    storage_accounts: tuple[StorageSummary, ...] = ()
    database_servers: tuple[DatabaseServerSummary, ...] = ()
    resource_groups: tuple[ResourceGroupStats, ...] = ()
    topology: NetworkTopology = field(default_factory=lambda: NetworkTopology("isolated"))
    environment_mixing: tuple[EnvironmentMixing, ...] = ()
    environment_distribution: dict[str, int] = field(default_factory=dict)

    def edges_from(self, resource_id: str) -> tuple[DependencyEdge, ...]:
        key = resource_id.lower()
        return tuple(edge for edge in self.edges if edge.source_id.lower() == key)

    def to_metrics(self) -> dict[str, MetricValue]:
        total = sum(group.resource_count for group in self.resource_groups)
        metrics: dict[str, MetricValue] = {
            "dependency_edges": len(self.edges),
            "vm_dependency_chains": len(self.vm_chains),
            "virtual_networks": self.topology.virtual_networks,
            "network_gateways": self.topology.gateways,
            "public_ips": self.topology.public_ips,
            "vnet_peerings": self.topology.peerings,
            "topology_type": self.topology.topology_type,
            "resource_groups": len(self.resource_groups),
            "average_resources_per_group": (
                round(total / len(self.resource_groups), 1) if self.resource_groups else 0.0
            ),
            "environment_mixing_vnets": len(self.environment_mixing),
        }
        for group in self.resource_groups:
            metrics[f"resource_group.{group.name}.resources"] = group.resource_count
            metrics[f"resource_group.{group.name}.primary_purpose"] = group.primary_purpose
        for environment, count in self.environment_distribution.items():
            metrics[f"environment.{environment}.vms"] = count
        return metrics


class _GraphBuilder:
    def __init__(self, resources: Iterable[ResourceDescriptor]) -> None:
        self.resources = tuple(resources)
        self.by_id: dict[str, ResourceDescriptor] = {r.id.lower(): r for r in self.resources if r.id}
        self.by_type: dict[str, list[ResourceDescriptor]] = defaultdict(list)
        for resource in self.resources:
            self.by_type[resource.type_lower].append(resource)
        self.properties: dict[str, dict[str, Any] | None] = {
            resource.id.lower(): resource.parsed_properties() for resource in self.resources
        }
        self.edges: list[DependencyEdge] = []
        self._edge_keys: set[tuple[str, str, str]] = set()

    def props(self, resource: ResourceDescriptor) -> dict[str, Any] | None:
        return self.properties.get(resource.id.lower())

    def resolve(self, ref: str | None, expected_type: str | None = None) -> ResourceDescriptor | None:
        if not ref:
            return None
        resource = self.by_id.get(ref.lower())
        if resource is None:
            return None
        if expected_type and resource.type_lower != expected_type:
            return None
        return resource

    def add_edge(self, source_id: str, target_id: str, relation: str) -> None:
        key = (source_id.lower(), target_id.lower(), relation)
        if key in self._edge_keys:
            return
        self._edge_keys.add(key)
        canonical = self.by_id.get(target_id.lower())
        self.edges.append(
            DependencyEdge(
                source_id=source_id,
                target_id=canonical.id if canonical else target_id,
                relation_type=relation,
            )
        )

    def of_type(self, resource_type: str) -> list[ResourceDescriptor]:
        return self.by_type.get(resource_type, [])

    # Property-based edges

    def collect_edges(self) -> None:
        for vm in self.of_type(VM_TYPE):
            props = self.props(vm)
            for nic in _items(_get(props, "networkProfile", "networkInterfaces")):
                if ref := _ref(nic):
                    self.add_edge(vm.id, ref, ATTACHED_NIC)
            if ref := _ref(_get(props, "storageProfile", "osDisk", "managedDisk")):
                self.add_edge(vm.id, ref, ATTACHED_DISK)
            for disk in _items(_get(props, "storageProfile", "dataDisks")):
                if ref := _ref(_get(disk, "managedDisk")):
                    self.add_edge(vm.id, ref, ATTACHED_DISK)

        for nic in self.of_type(NIC_TYPE):
            props = self.props(nic)
            for config in _items(_get(props, "ipConfigurations")):
                if ref := _ref(_get(config, "properties", "publicIPAddress")):
                    self.add_edge(nic.id, ref, ATTACHED_PUBLIC_IP)
                if subnet := _ref(_get(config, "properties", "subnet")):
                    self.add_edge(nic.id, subnet, MEMBER_OF_SUBNET)
                    if vnet := _vnet_id_of_subnet(subnet):
                        self.add_edge(nic.id, vnet, MEMBER_OF_VNET)
                        self.add_edge(subnet, vnet, SUBNET_OF_VNET)
            if ref := _ref(_get(props, "networkSecurityGroup")):
                self.add_edge(nic.id, ref, SECURED_BY_NSG)

        for vnet in self.of_type(VNET_TYPE):
            for subnet in _items(_get(self.props(vnet), "subnets")):
                subnet_id = _ref(subnet)
                if not subnet_id:
                    continue
                self.add_edge(subnet_id, vnet.id, SUBNET_OF_VNET)
                if nsg := _ref(_get(subnet, "properties", "networkSecurityGroup")):
                    self.add_edge(subnet_id, nsg, SECURED_BY_NSG)

        for endpoint in self.of_type(PRIVATE_ENDPOINT_TYPE):
            props = self.props(endpoint)
            for connection in _items(_get(props, "privateLinkServiceConnections")):
                target = _get(connection, "properties", "privateLinkServiceId")
                if target:
                    self.add_edge(endpoint.id, str(target), PRIVATE_ENDPOINT)
            if subnet := _ref(_get(props, "subnet")):
                self.add_edge(endpoint.id, subnet, MEMBER_OF_SUBNET)
                if vnet := _vnet_id_of_subnet(subnet):
                    self.add_edge(endpoint.id, vnet, MEMBER_OF_VNET)

    def targets(self, source: ResourceDescriptor, relation: str, expected_type: str) -> list[ResourceDescriptor]:
        key = source.id.lower()
        found: list[ResourceDescriptor] = []
        for edge in self.edges:
            if edge.source_id.lower() == key and edge.relation_type == relation:
                target = self.resolve(edge.target_id, expected_type)
                if target is not None and target not in found:
                    found.append(target)
        return found

    def sources(self, target_id: str, relation: str, expected_type: str) -> list[ResourceDescriptor]:
        key = target_id.lower()
        found: list[ResourceDescriptor] = []
        for edge in self.edges:
            if edge.target_id.lower() == key and edge.relation_type == relation:
                source = self.resolve(edge.source_id, expected_type)
                if source is not None and source not in found:
                    found.append(source)
        return found

    # Heuristic fallbacks

    def guess_nics(self, vm: ResourceDescriptor) -> list[ResourceDescriptor]:
        vm_name = vm.name.lower()
        return [
            nic
            for nic in self.of_type(NIC_TYPE)
            if nic.resource_group == vm.resource_group
            and (vm_name in nic.name.lower() or _strip_suffix(nic.name, "-nic", "nic") in vm_name)
        ]

    def guess_disks(self, vm: ResourceDescriptor) -> list[ResourceDescriptor]:
        vm_name = vm.name.lower()
        return [
            disk
            for disk in self.of_type(DISK_TYPE)
            if disk.resource_group == vm.resource_group
            and (
                vm_name in disk.name.lower()
                or "osdisk" in disk.name.lower()
                or "datadisk" in disk.name.lower()
            )
        ]

    def guess_public_ips(self, nic: ResourceDescriptor) -> list[ResourceDescriptor]:
        base = _strip_suffix(nic.name, "-nic", "nic")
        return [
            pip
            for pip in self.of_type(PUBLIC_IP_TYPE)
            if pip.resource_group == nic.resource_group
            and base
            and (base in pip.name.lower() or _strip_suffix(pip.name, "-ip", "ip") in base)
        ]

    def guess_nsgs(self, nic: ResourceDescriptor) -> list[ResourceDescriptor]:
        base = _strip_suffix(nic.name, "-nic", "nic")
        return [
            nsg
            for nsg in self.of_type(NSG_TYPE)
            if nsg.resource_group == nic.resource_group
            and base
            and (
                base in nsg.name.lower()
                or ("nsg" in nsg.name.lower() and _strip_suffix(nsg.name, "-nsg", "nsg") in base)
            )
        ]

    def guess_vnets(self, nic: ResourceDescriptor) -> list[ResourceDescriptor]:
        return [
            vnet
            for vnet in self.of_type(VNET_TYPE)
            if vnet.resource_group == nic.resource_group or _naming_related(vnet.name, nic.name)
        ]

    # Aggregations

    def vm_chains(self) -> list[VmChain]:
        chains: list[VmChain] = []
        for vm in self.of_type(VM_TYPE):
            inferred = False
            nics = self.targets(vm, ATTACHED_NIC, NIC_TYPE)
            if not nics:
                nics = self.guess_nics(vm)
                inferred = bool(nics)
            disks = self.targets(vm, ATTACHED_DISK, DISK_TYPE)
            if not disks:
                disks = self.guess_disks(vm)
                inferred = inferred or bool(disks)

            public_ips: list[ResourceDescriptor] = []
            nsgs: list[ResourceDescriptor] = []
            vnets: list[ResourceDescriptor] = []
            for nic in nics:
                nic_props = self.props(nic)
                if nic_props:
                    public_ips += self.targets(nic, ATTACHED_PUBLIC_IP, PUBLIC_IP_TYPE)
                    nsgs += self.targets(nic, SECURED_BY_NSG, NSG_TYPE)
                    vnets += self.targets(nic, MEMBER_OF_VNET, VNET_TYPE)
                else:
                    public_ips += self.guess_public_ips(nic)
                    nsgs += self.guess_nsgs(nic)
                    vnets += self.guess_vnets(nic)
                    inferred = True

            chains.append(
                VmChain(
                    vm_id=vm.id,
                    vm_name=vm.name,
                    network_interfaces=_names(nics),
                    public_ips=_names(public_ips),
                    network_security_groups=_names(nsgs),
                    virtual_networks=_names(vnets),
                    disks=_names(disks),
                    inferred=inferred,
                )
            )
        return chains

    def vnet_subnets(self, vnet: ResourceDescriptor) -> list[Mapping[str, Any]]:
        return [subnet for subnet in _items(_get(self.props(vnet), "subnets")) if isinstance(subnet, Mapping)]

    def attached_to_vnet(self, vnet: ResourceDescriptor, chains: list[VmChain]) -> list[ResourceDescriptor]:
        attached: list[ResourceDescriptor] = []
        for member in (
            self.sources(vnet.id, MEMBER_OF_VNET, NIC_TYPE)
            + self.sources(vnet.id, MEMBER_OF_VNET, PRIVATE_ENDPOINT_TYPE)
        ):
            if member not in attached:
                attached.append(member)
        nic_ids = {nic.id.lower() for nic in attached if nic.type_lower == NIC_TYPE}
        for chain in chains:
            vm = self.by_id.get(chain.vm_id.lower())
            if vm is None or vm in attached:
                continue
            attached_nics = {nic.id.lower() for nic in self.targets(vm, ATTACHED_NIC, NIC_TYPE)}
            if attached_nics & nic_ids or (chain.inferred and vnet.name in chain.virtual_networks):
                attached.append(vm)
        return attached

    def networks(self, chains: list[VmChain]) -> list[NetworkSummary]:
        summaries: list[NetworkSummary] = []
        gateways = self.of_type(GATEWAY_TYPE)
        for vnet in self.of_type(VNET_TYPE):
            subnets = self.vnet_subnets(vnet)
            subnet_names = tuple(str(s.get("name")) for s in subnets if s.get("name"))

            nsgs: list[ResourceDescriptor] = []
            for subnet in subnets:
                nsg = self.resolve(_ref(_get(subnet, "properties", "networkSecurityGroup")), NSG_TYPE)
                if nsg is not None and nsg not in nsgs:
                    nsgs.append(nsg)
            if not nsgs:
                vnet_name = vnet.name.lower()
                nsgs = [
                    nsg
                    for nsg in self.of_type(NSG_TYPE)
                    if nsg.resource_group == vnet.resource_group
                    or vnet_name in nsg.name.lower()
                    or _strip_suffix(nsg.name, "-nsg", "nsg") in vnet_name
                ]

            nics = self.sources(vnet.id, MEMBER_OF_VNET, NIC_TYPE)
            if not nics:
                nics = [
                    nic
                    for nic in self.of_type(NIC_TYPE)
                    if nic.resource_group == vnet.resource_group or _naming_related(nic.name, vnet.name)
                ]

            vnet_gateways = [
                gateway
                for gateway in gateways
                if any(
                    (_vnet_id_of_subnet(ref) or "").lower() == vnet.id.lower()
                    for ref in (
                        _ref(_get(config, "properties", "subnet"))
                        for config in _items(_get(self.props(gateway), "ipConfigurations"))
                    )
                    if ref
                )
                or gateway.resource_group == vnet.resource_group
                or _naming_related(gateway.name, vnet.name)
            ]

            attached = self.attached_to_vnet(vnet, chains)
            connected = len(attached) or sum(
                1
                for resource in self.resources
                if resource.resource_group == vnet.resource_group
                and resource is not vnet
                and ("network" in resource.type_lower or "compute" in resource.type_lower)
            )
            summaries.append(
                NetworkSummary(
                    vnet_id=vnet.id,
                    vnet_name=vnet.name,
                    resource_group=vnet.resource_group,
                    subnets=subnet_names,
                    network_security_groups=_names(nsgs),
                    network_interfaces=_names(nics),
                    gateways=_names(vnet_gateways),
                    peerings=len(_items(_get(self.props(vnet), "virtualNetworkPeerings"))),
                    connected_resource_count=connected,
                )
            )
        return summaries

    def storage_accounts(self) -> list[StorageSummary]:
        summaries: list[StorageSummary] = []
        for account in self.of_type(STORAGE_TYPE):
            endpoints = self.sources(account.id, PRIVATE_ENDPOINT, PRIVATE_ENDPOINT_TYPE)
            if not endpoints:
                endpoints = [
                    pe for pe in self.of_type(PRIVATE_ENDPOINT_TYPE)
                    if pe.resource_group == account.resource_group
                ]
            summaries.append(
                StorageSummary(
                    storage_id=account.id,
                    storage_name=account.name,
                    virtual_machines=_names(
                        vm
                        for vm in self.of_type(VM_TYPE)
                        if vm.resource_group == account.resource_group
                        or _naming_related(vm.name, account.name)
                    ),
                    disks=_names(
                        disk
                        for disk in self.of_type(DISK_TYPE)
                        if disk.resource_group == account.resource_group
                        or _naming_related(disk.name, account.name)
                    ),
                    private_endpoints=_names(endpoints),
                )
            )
        return summaries

    def database_servers(self) -> list[DatabaseServerSummary]:
        summaries: list[DatabaseServerSummary] = []
        for server in self.of_type(SQL_SERVER_TYPE):
            marker = f"/servers/{server.name.lower()}/"
            endpoints = self.sources(server.id, PRIVATE_ENDPOINT, PRIVATE_ENDPOINT_TYPE)
            if not endpoints:
                endpoints = [
                    pe
                    for pe in self.of_type(PRIVATE_ENDPOINT_TYPE)
                    if pe.resource_group == server.resource_group
                    or server.name.lower() in pe.name.lower()
                ]
            summaries.append(
                DatabaseServerSummary(
                    server_id=server.id,
                    server_name=server.name,
                    databases=_names(
                        db for db in self.of_type(SQL_DATABASE_TYPE) if marker in db.id.lower()
                    ),
                    private_endpoints=_names(endpoints),
                    connected_applications=_names(
                        app
                        for web_type in WEB_TYPES
                        for app in self.of_type(web_type)
                        if app.resource_group == server.resource_group
                    ),
                )
            )
        return summaries

    def resource_groups(self) -> list[ResourceGroupStats]:
        grouped: dict[str, list[ResourceDescriptor]] = defaultdict(list)
        for resource in self.resources:
            grouped[resource.resource_group or "Unknown"].append(resource)

        stats: list[ResourceGroupStats] = []
        for name in sorted(grouped):
            members = grouped[name]
            types = Counter(resource.type_lower for resource in members)
            patterns = Counter(classify_naming_pattern(resource.name) for resource in members)
            primary = min(types.items(), key=lambda item: (-item[1], item[0]))[0]
            stats.append(
                ResourceGroupStats(
                    name=name,
                    resource_count=len(members),
                    resource_types=dict(sorted(types.items())),
                    naming_patterns=dict(sorted(patterns.items())),
                    primary_purpose=primary,
                )
            )
        return stats

    def topology(self, networks: list[NetworkSummary]) -> NetworkTopology:
        vnets = len(self.of_type(VNET_TYPE))
        gateways = len(self.of_type(GATEWAY_TYPE))
        firewalls = len(self.of_type(FIREWALL_TYPE))
        peerings = sum(summary.peerings for summary in networks)
        if vnets == 0:
            kind = "isolated"
        elif (gateways + firewalls) >= 1 and (vnets >= 2 or peerings > 0):
            kind = "hub-and-spoke"
        else:
            kind = "flat"
        return NetworkTopology(
            topology_type=kind,
            virtual_networks=vnets,
            gateways=gateways,
            firewalls=firewalls,
            public_ips=len(self.of_type(PUBLIC_IP_TYPE)),
            peerings=peerings,
        )

    def environment_mixing(self, chains: list[VmChain]) -> list[EnvironmentMixing]:
        issues: list[EnvironmentMixing] = []
        for vnet in self.of_type(VNET_TYPE):
            attached = self.attached_to_vnet(vnet, chains)
            environments = {
                env for env in (resource_environment(resource) for resource in attached) if env
            }
            if len(environments) < 2:
                continue
            issues.append(
                EnvironmentMixing(
                    vnet_id=vnet.id,
                    vnet_name=vnet.name,
                    environments=tuple(sorted(environments)),
                    affected_resources=_names(attached),
                    severity=environment_mixing_severity(environments, len(attached)),
                )
            )
        return issues

    def environment_distribution(self) -> dict[str, int]:
        counts = Counter(
            env for env in (resource_environment(vm) for vm in self.of_type(VM_TYPE)) if env
        )
        return dict(sorted(counts.items()))


def _names(resources: Iterable[ResourceDescriptor]) -> tuple[str, ...]:
    seen: list[str] = []
    for resource in resources:
        if resource.name not in seen:
            seen.append(resource.name)
    return tuple(seen)


def environment_mixing_severity(environments: Iterable[str], affected: int) -> Severity:
    envs = set(environments)
    if "prod" in envs and len(envs - {"prod"}) >= 2:
        return "critical"
    if len(envs) >= 3 or affected > 10:
        return "high"
    return "medium"


def build_dependency_graph(resources: Iterable[ResourceDescriptor]) -> DependencyGraph:
    builder = _GraphBuilder(resources)
    builder.collect_edges()
    chains = builder.vm_chains()
    networks = builder.networks(chains)

    graph = DependencyGraph(
        edges=tuple(builder.edges),
        vm_chains=tuple(chains),
        networks=tuple(networks),
        storage_accounts=tuple(builder.storage_accounts()),
        database_servers=tuple(builder.database_servers()),
        resource_groups=tuple(builder.resource_groups()),
        topology=builder.topology(networks),
        environment_mixing=tuple(builder.environment_mixing(chains)),
        environment_distribution=builder.environment_distribution(),
    )
    logger.info(
        "dependency_graph_built",
        resources=len(builder.resources),
        edges=len(graph.edges),
        vm_chains=len(graph.vm_chains),
        topology=graph.topology.topology_type,
    )
    return graph
