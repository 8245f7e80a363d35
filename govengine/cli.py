"""
Command line runner.

    python -m govengine.cli governance_full --inventory resources.json
    python -m govengine.cli identity_full --subscription <id> --directory

Prints the assessment run as JSON on stdout; logs go to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

import structlog

from govengine.core.exceptions import GovEngineException
from govengine.modules.assessment.domain.analyzers.base import AssessmentType
from govengine.modules.assessment.domain.ports import (
    DirectoryDataProvider,
    ResourceInventoryProvider,
)
from govengine.modules.assessment.domain.service import (
    AssessmentRequest,
    AssessmentRun,
    AssessmentService,
)
from govengine.shared.adapters.azure_inventory import AzureResourceInventory
from govengine.shared.adapters.graph_directory import GraphDirectoryProvider
from govengine.shared.adapters.static_inventory import StaticResourceInventory
from govengine.shared.core.config import get_settings
from govengine.shared.core.credentials import AzureCredentials
from govengine.shared.core.logging import setup_logging

logger = structlog.get_logger()


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a governance assessment.")
    parser.add_argument(
        "assessment_type",
        choices=[member.value for member in AssessmentType],
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--inventory", type=Path, help="JSON inventory snapshot")
    source.add_argument(
        "--subscription",
        action="append",
        default=[],
        help="Azure subscription id (repeatable); reads AZURE_* credentials",
    )
    parser.add_argument("--naming-scheme", type=Path, help="JSON naming scheme")
    parser.add_argument(
        "--directory",
        action="store_true",
        help="Query Microsoft Graph for identity data",
    )
    return parser.parse_args(argv)


def _azure_credentials(*, for_graph: bool = False) -> AzureCredentials:
    """Inventory uses AZURE_TENANT_ID; Graph may target GRAPH_TENANT_ID instead."""
    settings = get_settings()
    if not (settings.AZURE_TENANT_ID and settings.AZURE_CLIENT_ID):
        raise GovEngineException(
            "AZURE_TENANT_ID and AZURE_CLIENT_ID must be set", code="missing_credentials"
        )
    return AzureCredentials(
        tenant_id=(for_graph and settings.GRAPH_TENANT_ID) or settings.AZURE_TENANT_ID,
        client_id=settings.AZURE_CLIENT_ID,
        client_secret=settings.AZURE_CLIENT_SECRET,
    )


async def _run(args: argparse.Namespace) -> AssessmentRun:
    inventory: ResourceInventoryProvider
    if args.inventory is not None:
        inventory = StaticResourceInventory.from_json_file(args.inventory)
    else:
        inventory = AzureResourceInventory(_azure_credentials())

    directory: DirectoryDataProvider | None = None
    graph: GraphDirectoryProvider | None = None
    if args.directory:
        graph = GraphDirectoryProvider(_azure_credentials(for_graph=True).build_credential())
        directory = graph

    scheme = (
        args.naming_scheme.read_text(encoding="utf-8") if args.naming_scheme else None
    )
    try:
        return await AssessmentService(inventory, directory).run(
            AssessmentRequest(
                assessment_type=args.assessment_type,
                subscription_ids=tuple(args.subscription),
                naming_scheme=scheme,
            )
        )
    finally:
        if graph is not None:
            await graph.aclose()
        if isinstance(inventory, AzureResourceInventory):
            await inventory.close()


def main(argv: list[str] | None = None) -> int:
    setup_logging()
    args = _parse_args(argv)
    try:
        run = asyncio.run(_run(args))
    except GovEngineException as exc:
        logger.error("assessment_run_rejected", code=exc.code, error=exc.message)
        return 2
    json.dump(run.to_dict(), sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
