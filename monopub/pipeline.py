"""Publish pipeline: discover → collect updates → plan → verify → publish.

This module orchestrates one ``monopub publish`` run:
1. Validate settings (fails before any work)
2. Discover all packages in the workspace
3. Ask the versioning collaborator which packages to publish
4. Build the dependency graph, resolve cycles and schedule batches
5. Pre-flight the registry: identity, access, two-factor
6. Publish batch by batch: pack → upload → dist-tag, per package

Steps 1-5 are all-or-nothing: any error aborts the run before the first
upload. In step 6 failures are isolated per package; whether later batches
still run after a failure is controlled by ``batch_failure``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import click

from .access import verify_access
from .config import PublishSettings, check_settings
from .content import ensure_content_path, resolve_content_path
from .cycles import resolve_cycles
from .errors import OtpError, PackageStepError
from .graph import PackageGraph, build_graph
from .models import Package, PackageState, PublishPlan, PublishReport, PublishResult
from .npm import NpmClient, PublishOptions, RegistryClient
from .registry import PromptFn, RegistrySession, prompt_otp
from .scheduler import schedule
from .shell import info, step, success, warn
from .versioning import CollectUpdates, updates_collector
from .versions import LATEST, resolve_dist_tag
from .workspace import discover_packages

CONFIRM_MESSAGE = "Are you sure you want to publish these packages?"

ConfirmFn = Callable[[str], bool]


def confirm_publish(message: str) -> bool:
    return click.confirm(message, default=False)


class PublishCommand:
    """Drives one publish run.

    Args:
        settings: Run configuration.
        client: Registry operations backend (defaults to the npm CLI).
        collect_updates: Versioning collaborator; defaults to the one
                         selected by ``settings.bump``.
        prompt: Asks the user for a one-time password.
        confirm: Asks the user to confirm the publish (skipped by ``yes``).
    """

    def __init__(
        self,
        settings: PublishSettings,
        client: RegistryClient | None = None,
        *,
        collect_updates: CollectUpdates | None = None,
        prompt: PromptFn = prompt_otp,
        confirm: ConfirmFn = confirm_publish,
    ) -> None:
        self.settings = settings
        self.client: RegistryClient = client or NpmClient()
        self.session = RegistrySession(
            self.client, settings.registry, otp=settings.otp, prompt=prompt
        )
        self._collect_updates = collect_updates
        self._confirm = confirm

    async def run(self) -> PublishReport:
        """Execute the run and return its report.

        Raises:
            MonopubError: For any run-level failure (configuration, cycles,
                          access, rejected OTP). Per-package failures are
                          recorded in the report instead.
        """
        settings = self.settings
        check_settings(settings)

        if settings.skip_npm:
            warn("Instead of --skip-npm, call your versioning tool directly")
            return PublishReport(handed_off=True)

        packages = discover_packages(settings.root)
        collect = self._collect_updates or updates_collector(
            settings.bump, settings.root, self.client, self.session.registry
        )
        updates = await asyncio.to_thread(collect, packages)

        to_publish = [
            packages[name]
            for name in updates
            if name in packages and not packages[name].private
        ]
        if not to_publish:
            success("No changed packages to publish")
            return PublishReport(nothing_to_publish=True)

        graph = resolve_cycles(
            build_graph(to_publish, settings.graph_type),
            reject=settings.reject_cycles,
        )
        plan = schedule(graph)
        self._show_plan(graph, plan)

        if not settings.yes and not self._confirm(CONFIRM_MESSAGE):
            warn("Publish cancelled")
            return PublishReport(cancelled=True)

        await self._preflight(to_publish)
        report = await self._publish_batches(graph, plan)
        self._show_summary(report)
        return report

    def _dist_tag(self, package: Package) -> str:
        return resolve_dist_tag(
            package,
            dist_tag=self.settings.dist_tag,
            pre_dist_tag=self.settings.pre_dist_tag,
        )

    def _show_plan(self, graph: PackageGraph, plan: PublishPlan) -> None:
        step(f"Publishing {len(graph)} packages in {len(plan.batches)} batches")
        for index, batch in enumerate(plan.batches, start=1):
            info(f"batch {index}:")
            for name in batch:
                pkg = graph[name]
                info(f"  {name} => {pkg.version} ({self._dist_tag(pkg)})")

    async def _preflight(self, packages: list[Package]) -> None:
        """Resolve registry identity, verify access and two-factor up front."""
        step(f"Verifying registry {self.session.registry}")
        if not self.session.should_validate():
            return

        username = await self.session.resolve_identity()
        await verify_access(
            packages, username, self.session, enabled=self.settings.verify_access
        )
        if await self.session.requires_two_factor():
            info("Two-factor authentication is required for publishing")

    async def _publish_batches(
        self, graph: PackageGraph, plan: PublishPlan
    ) -> PublishReport:
        report = PublishReport()
        semaphore = asyncio.Semaphore(self.settings.concurrency)

        for index, batch in enumerate(plan.batches):
            if report.failed and self.settings.batch_failure == "abort":
                remaining = [n for later in plan.batches[index:] for n in later]
                report.skipped.extend(remaining)
                warn(f"Not publishing {len(remaining)} packages after earlier failures")
                break

            outcomes = await asyncio.gather(
                *(self._publish_one(graph[name], semaphore, report) for name in batch),
                return_exceptions=True,
            )
            # Anything other than a recorded package failure aborts the run
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    raise outcome

        return report

    async def _publish_one(
        self, package: Package, semaphore: asyncio.Semaphore, report: PublishReport
    ) -> None:
        """pack → upload → dist-tag for one package; records a PublishResult."""
        settings = self.settings
        tag = self._dist_tag(package)
        state = PackageState.PENDING

        async with semaphore:
            try:
                content = ensure_content_path(
                    resolve_content_path(package, settings.contents), package
                )
                archive = await asyncio.to_thread(
                    self.client.pack, package, content, git_head=settings.git_head
                )
                state = PackageState.PACKED

                # Non-latest tags upload under a temporary tag, then move
                upload_tag = tag if tag == LATEST else settings.temp_tag
                await self._with_otp(
                    lambda otp: self.client.publish(
                        package, archive, self._options(package, otp, upload_tag)
                    )
                )
                state = PackageState.UPLOADED

                if tag != LATEST:
                    await self._with_otp(
                        lambda otp: self.client.dist_tag_add(
                            package, tag, self._options(package, otp, tag)
                        )
                    )
                    await self._with_otp(
                        lambda otp: self.client.dist_tag_remove(
                            package, settings.temp_tag, self._options(package, otp, tag)
                        )
                    )
                state = PackageState.TAG_APPLIED

                result = PublishResult(
                    name=package.name,
                    version=package.version,
                    state=PackageState.DONE,
                    tag=tag,
                )
                info(f"+ {package.name}@{package.version} ({tag})")
            except PackageStepError as exc:
                result = PublishResult(
                    name=package.name,
                    version=package.version,
                    state=PackageState.FAILED,
                    tag=tag,
                    failed_at=state,
                    error=str(exc),
                )
                warn(f"{package.name}: {exc}")

        report.results.append(result)

    def _options(self, package: Package, otp: str | None, tag: str) -> PublishOptions:
        return PublishOptions(
            registry=package.publish_config.registry or self.session.registry,
            otp=otp,
            access=package.publish_config.access or self.settings.access,
            tag=tag,
        )

    async def _with_otp(self, call: Callable[[str | None], None]) -> None:
        """Run a registry write with the run's OTP, re-prompting once if rejected."""
        otp = await self.session.acquire_otp()
        try:
            await asyncio.to_thread(call, otp)
        except OtpError:
            otp = await self.session.refresh_otp(otp)
            await asyncio.to_thread(call, otp)

    def _show_summary(self, report: PublishReport) -> None:
        step("Summary")
        if report.published:
            success(f"published {len(report.published)} packages")
            for result in report.results:
                if result.ok:
                    info(f"- {result.name}@{result.version}")
        for name, error in report.failed.items():
            warn(f"failed: {name}: {error}")
        for name in report.skipped:
            warn(f"skipped: {name}")

