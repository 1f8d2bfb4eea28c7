"""Command-line entry point.

    poolwright run --namespace batch
    poolwright reconcile batch/trainer-0 --dry-run
    poolwright render payments
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from collections.abc import Sequence
from dataclasses import asdict, replace
from pathlib import Path

from loguru import logger
from rich.console import Console

from poolwright import __version__
from poolwright.api.model import Pool, Workload, WorkloadRef
from poolwright.api.store import ResourceStore
from poolwright.config import Settings, load_settings
from poolwright.controller import Controller, wait_until_ready
from poolwright.core.exceptions import PoolwrightError
from poolwright.engine.provisioner import PoolProvisioner
from poolwright.engine.reconciler import Reconciler
from poolwright.kube.codec import encode_pool
from poolwright.kube.store import KubeStore
from poolwright.observability.logging import setup_logging, teardown_logging
from poolwright.store.memory import InMemoryStore

console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="poolwright",
        description="Create a Karpenter NodePool for every team a pending pod asks for",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config", type=Path, default=None,
        help="TOML config file (default: ./poolwright.toml merged over ~/.poolwright/defaults.toml)",
    )
    parser.add_argument(
        "--log-level", default=None,
        choices=["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"],
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run the controller loop")
    run.add_argument("--namespace", default=None, help="Only watch this namespace (default: all)")
    run.add_argument("--resync-interval", type=float, default=None, help="Seconds between pending-pod resyncs")
    run.add_argument("--workers", type=int, default=None)
    run.add_argument("--dry-run", action="store_true", help="Read the cluster, create pools in memory only")

    rec = sub.add_parser("reconcile", help="Run a single pass for one pod")
    rec.add_argument("workload", type=WorkloadRef.parse, help="NAMESPACE/NAME")
    rec.add_argument("--dry-run", action="store_true", help="Do not create anything, report what would happen")

    render = sub.add_parser("render", help="Print the NodePool that would be created")
    render.add_argument("identifier", help="Demand identifier, e.g. a team name")

    return parser


def _apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    if args.log_level:
        settings = replace(settings, logging=replace(settings.logging, level=args.log_level))
    if args.command == "run":
        overrides = {
            k: v for k, v in {
                "namespace": args.namespace,
                "resync_interval": args.resync_interval,
                "workers": args.workers,
            }.items()
            if v is not None
        }
        settings = replace(settings, controller=replace(settings.controller, **overrides))
    return settings


class _DryRunStore:
    """Reads from the cluster, keeps created pools in memory."""

    def __init__(self, inner: KubeStore) -> None:
        self._inner = inner
        self._created = InMemoryStore()

    async def get_workload(self, ref: WorkloadRef) -> Workload:
        return await self._inner.get_workload(ref)

    async def list_pending_workloads(self, namespace: str | None = None) -> Sequence[Workload]:
        return await self._inner.list_pending_workloads(namespace)

    async def list_pools(self) -> Sequence[Pool]:
        return [*await self._inner.list_pools(), *await self._created.list_pools()]

    async def create_pool(self, pool: Pool) -> None:
        logger.bind(component="dry-run").info("Would create pool {name}", name=pool.name)
        await self._created.create_pool(pool)


async def _run(settings: Settings, dry_run: bool) -> None:
    async with KubeStore.from_config(settings.cluster) as kube:
        await wait_until_ready(kube.ready, settings.controller.readiness_timeout)
        store: ResourceStore = _DryRunStore(kube) if dry_run else kube
        reconciler = Reconciler(store, settings.engine, settings.pool)
        controller = Controller(store, reconciler, settings.controller)

        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)
        await controller.run(stop)


async def _reconcile(settings: Settings, ref: WorkloadRef, dry_run: bool) -> None:
    async with KubeStore.from_config(settings.cluster) as kube:
        store: ResourceStore = _DryRunStore(kube) if dry_run else kube
        result = await Reconciler(store, settings.engine, settings.pool).reconcile(ref)
    console.print_json(data={"workload": str(ref), **asdict(result)})


def _render(settings: Settings, identifier: str) -> None:
    pool = PoolProvisioner(InMemoryStore(), settings.pool, settings.engine).build(identifier)
    console.print_json(data=dict(encode_pool(pool)))


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = _apply_overrides(load_settings(path=args.config), args)
    except PoolwrightError as e:
        console.print(f"[red]error:[/red] {e}")
        return 1

    handler_ids = setup_logging(settings.logging)
    try:
        match args.command:
            case "run":
                asyncio.run(_run(settings, args.dry_run))
            case "reconcile":
                asyncio.run(_reconcile(settings, args.workload, args.dry_run))
            case "render":
                _render(settings, args.identifier)
    except PoolwrightError as e:
        logger.error("{err}", err=e)
        return 1
    finally:
        teardown_logging(handler_ids)
    return 0


if __name__ == "__main__":
    sys.exit(main())
