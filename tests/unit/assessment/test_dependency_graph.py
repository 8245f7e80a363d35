from __future__ import annotations

import json
from collections.abc import Callable

import pytest

from govengine.modules.assessment.domain.dependency_graph import (
    ATTACHED_NIC,
    MEMBER_OF_VNET,
    build_dependency_graph,
    environment_mixing_severity,
    resource_environment,
)
from govengine.modules.assessment.domain.models import ResourceDescriptor

MakeResource = Callable[..., ResourceDescriptor]

RG = "/subscriptions/00000000-0000-0000-0000-000000000001/resourceGroups/rg-core/providers"
VNET_ID = f"{RG}/Microsoft.Network/virtualNetworks/vnet-shared"
NIC_ID = f"{RG}/Microsoft.Network/networkInterfaces/vm1-nic"
PIP_ID = f"{RG}/Microsoft.Network/publicIPAddresses/vm1-pip"
NSG_ID = f"{RG}/Microsoft.Network/networkSecurityGroups/vm1-nsg"
DISK_ID = f"{RG}/Microsoft.Compute/disks/vm1-osdisk"


def _nic(make_resource: MakeResource, name: str, *, pip: str | None = None) -> ResourceDescriptor:
    config: dict[str, object] = {"subnet": {"id": f"{VNET_ID}/subnets/default"}}
    if pip:
        config["publicIPAddress"] = {"id": pip}
    return make_resource(
        name,
        "Microsoft.Network/networkInterfaces",
        resource_id=f"{RG}/Microsoft.Network/networkInterfaces/{name}",
        properties={
            "ipConfigurations": [{"properties": config}],
            "networkSecurityGroup": {"id": NSG_ID},
        },
    )


def _vm_inventory(make_resource: MakeResource) -> list[ResourceDescriptor]:
    return [
        make_resource(
            "vm1",
            properties=json.dumps(
                {
                    "networkProfile": {"networkInterfaces": [{"id": NIC_ID}]},
                    "storageProfile": {"osDisk": {"managedDisk": {"id": DISK_ID}}},
                }
            ),
        ),
        _nic(make_resource, "vm1-nic", pip=PIP_ID),
        make_resource("vm1-pip", "Microsoft.Network/publicIPAddresses", resource_id=PIP_ID),
        make_resource("vm1-nsg", "Microsoft.Network/networkSecurityGroups", resource_id=NSG_ID),
        make_resource("vnet-shared", "Microsoft.Network/virtualNetworks", resource_id=VNET_ID),
        make_resource("vm1-osdisk", "Microsoft.Compute/disks", resource_id=DISK_ID),
    ]


def test_vm_chain_follows_property_references(make_resource: MakeResource) -> None:
    graph = build_dependency_graph(_vm_inventory(make_resource))

    assert len(graph.vm_chains) == 1
    chain = graph.vm_chains[0]
    assert chain.inferred is False
    assert chain.network_interfaces == ("vm1-nic",)
    assert chain.public_ips == ("vm1-pip",)
    assert chain.network_security_groups == ("vm1-nsg",)
    assert chain.virtual_networks == ("vnet-shared",)
    assert chain.disks == ("vm1-osdisk",)
    assert chain.render() == (
        "vm1 -> nic: vm1-nic -> pip: vm1-pip -> nsg: vm1-nsg -> vnet: vnet-shared "
        "-> disk: vm1-osdisk"
    )


def test_edges_are_deduplicated(make_resource: MakeResource) -> None:
    graph = build_dependency_graph(_vm_inventory(make_resource))

    keys = [(e.source_id.lower(), e.target_id.lower(), e.relation_type) for e in graph.edges]
    assert len(keys) == len(set(keys))
    assert {e.relation_type for e in graph.edges_from(NIC_ID)} >= {MEMBER_OF_VNET}
    assert graph.edges_from(graph.vm_chains[0].vm_id)[0].relation_type == ATTACHED_NIC


def test_vm_chain_falls_back_to_name_heuristics(make_resource: MakeResource) -> None:
    resources = [
        make_resource("web01"),
        make_resource("web01-nic", "Microsoft.Network/networkInterfaces"),
    ]

    chain = build_dependency_graph(resources).vm_chains[0]

    assert chain.network_interfaces == ("web01-nic",)
    assert chain.inferred is True


def test_environment_mixing_detected_on_shared_vnet(make_resource: MakeResource) -> None:
    resources = [
        make_resource("vnet-shared", "Microsoft.Network/virtualNetworks", resource_id=VNET_ID),
        _nic(make_resource, "app-prod-nic"),
        _nic(make_resource, "app-dev-nic"),
    ]

    graph = build_dependency_graph(resources)

    assert len(graph.environment_mixing) == 1
    mixing = graph.environment_mixing[0]
    assert mixing.vnet_name == "vnet-shared"
    assert mixing.environments == ("dev", "prod")
    assert mixing.severity == "medium"
    assert graph.to_metrics()["environment_mixing_vnets"] == 1


def test_single_environment_vnet_is_not_mixed(make_resource: MakeResource) -> None:
    resources = [
        make_resource("vnet-shared", "Microsoft.Network/virtualNetworks", resource_id=VNET_ID),
        _nic(make_resource, "app-prod-nic"),
        _nic(make_resource, "api-prod-nic"),
    ]

    assert build_dependency_graph(resources).environment_mixing == ()


@pytest.mark.parametrize(
    ("environments", "affected", "severity"),
    [
        ({"prod", "dev", "test"}, 3, "critical"),
        ({"dev", "test", "qa"}, 3, "high"),
        ({"dev", "test"}, 11, "high"),
        ({"dev", "prod"}, 2, "medium"),
    ],
)
def test_environment_mixing_severity(
    environments: set[str], affected: int, severity: str
) -> None:
    assert environment_mixing_severity(environments, affected) == severity


def test_environment_tag_wins_over_name(make_resource: MakeResource) -> None:
    tagged = make_resource("app-dev-01", tags={"Environment": "Production"})

    assert resource_environment(tagged) == "prod"
    assert resource_environment(make_resource("app-staging-01")) == "staging"
    assert resource_environment(make_resource("payments")) is None


def test_empty_inventory_is_isolated() -> None:
    graph = build_dependency_graph([])

    assert graph.topology.topology_type == "isolated"
    assert graph.to_metrics()["dependency_edges"] == 0
