"""
Publishing local modules to their real registry.

A module is published when it changed since its last publish, or when its
current version is missing from the registry. Afterwards every local module
that depends on it installs the new version through the proxy.

npm view, version and publish run with the user's own registry settings:
the proxy answers local modules itself and cannot accept uploads.
"""

from __future__ import annotations

import json
import logging
import shutil
from dataclasses import dataclass, field
from typing import Any

from norman.core.build import build_if_changed
from norman.core.context import ServiceContext
from norman.core.exceptions import ProcessError, PublishError
from norman.core.modules.manifest import manifest_version
from norman.core.modules.models import LocalModule
from norman.core.modules.subsets import PUBLISH_SUBSET
from norman.core.npm import NpmRunner

logger = logging.getLogger(__name__)

NOT_FOUND_CODE = "E404"


@dataclass
class NpmViewInfo:
    """Registry state of a module as reported by ``npm view --json``."""

    current_version: str
    is_on_registry: bool
    versions: list[str] = field(default_factory=list)
    latest_version: str | None = None

    @property
    def is_current_version_published(self) -> bool:
        return self.current_version in self.versions


def _parse_view_output(output: str) -> dict[str, Any]:
    # npm may print warnings around the JSON document
    start, end = output.find("{"), output.rfind("}")
    if start < 0 or end < start:
        raise PublishError("Failed to get package information: npm view printed no JSON")
    try:
        data = json.loads(output[start : end + 1])
    except json.JSONDecodeError as e:
        raise PublishError(f"Failed to get package information: {e}") from e
    if not isinstance(data, dict):
        raise PublishError("Failed to get package information: unexpected npm view output")
    return data


@dataclass
class PublishOutcome:
    """What ``publish_if_changed`` did for one module."""

    module: LocalModule
    version: str | None = None
    updated: list[LocalModule] = field(default_factory=list)

    @property
    def published(self) -> bool:
        return self.version is not None


class Publisher:
    """
    Publishes changed modules and moves their dependants to the new version.

    Installs of dependants go through the proxy, so it must be running.

    Example:
        >>> publisher = Publisher(ctx)
        >>> outcome = publisher.publish_if_changed(module)
    """

    def __init__(self, ctx: ServiceContext, npm: NpmRunner | None = None) -> None:
        self.ctx = ctx
        self.npm = npm or NpmRunner(ctx)

    def view(self, module: LocalModule) -> NpmViewInfo:
        """
        Ask the real registry about the module.

        Raises:
            PublishError: If npm reports anything but a missing package
        """
        current = manifest_version(module.path)
        try:
            output = self.npm.run_upstream(module, ["view", "--json"], capture=True)
        except ProcessError as e:
            output = e.output
        data = _parse_view_output(output)

        error = data.get("error")
        if isinstance(error, dict):
            if error.get("code") == NOT_FOUND_CODE:
                logger.debug("%s is not on the registry yet", module.name)
                return NpmViewInfo(current_version=current, is_on_registry=False)
            summary = error.get("summary") or error.get("code") or "unknown error"
            raise PublishError(f"Failed to get package information: {summary}", module=module.name.name)

        versions = data.get("versions") or []
        if isinstance(versions, str):
            versions = [versions]
        dist_tags = data.get("dist-tags") or {}
        return NpmViewInfo(
            current_version=current,
            is_on_registry=True,
            versions=[str(v) for v in versions],
            latest_version=dist_tags.get("latest") if isinstance(dist_tags, dict) else None,
        )

    def needs_publish(self, module: LocalModule) -> bool:
        """
        True if the module was rebuilt, its published files changed since the
        last publish, or its current version is not on the registry.
        """
        if build_if_changed(self.ctx, module):
            logger.info("%s was rebuilt", module.name)
            return True
        if self.ctx.state_manager.has_changed(module, PUBLISH_SUBSET):
            logger.info("Published files of %s changed", module.name)
            return True
        info = self.view(module)
        if not info.is_current_version_published:
            logger.info("%s@%s is not published yet", module.name, info.current_version)
            return True
        return False

    def publish(self, module: LocalModule, bump: str = "patch") -> str:
        """
        Publish the module, bumping its version first if it is taken.

        Returns:
            The published version

        Raises:
            ProcessError: If npm version or npm publish fails
            PublishError: If the registry state cannot be determined
        """
        info = self.view(module)
        if info.is_current_version_published:
            logger.info("%s@%s is already published, bumping %s", module.name, info.current_version, bump)
            self.npm.run_upstream(module, ["version", bump, "--no-git-tag-version"])
        version = manifest_version(module.path)

        inside = module.path / ".npmignore"
        outside = module.npm_ignore_path
        copy_ignore = outside is not None and outside.resolve() != inside.resolve()
        previous = inside.read_bytes() if copy_ignore and inside.exists() else None
        if copy_ignore:
            shutil.copyfile(outside, inside)
        try:
            self.npm.run_upstream(module, ["publish"])
        finally:
            if copy_ignore:
                if previous is None:
                    inside.unlink(missing_ok=True)
                else:
                    inside.write_bytes(previous)

        self.ctx.state_manager.save_actual(module, PUBLISH_SUBSET)
        return version

    def update_dependants(self, module: LocalModule, version: str) -> list[LocalModule]:
        """Install ``module@version`` in every module that depends on it directly."""
        updated = []
        for dependant in self.ctx.graph().dependants(module):
            logger.info("Updating %s in %s", module.name, dependant.name)
            self.npm.run(dependant, ["install", f"{module.name.name}@{version}"])
            updated.append(dependant)
        return updated

    def publish_if_changed(self, module: LocalModule, bump: str = "patch") -> PublishOutcome:
        """Publish the module when needed and update its dependants."""
        outcome = PublishOutcome(module)
        if not self.needs_publish(module):
            logger.info("%s is up to date on the registry", module.name)
            return outcome
        outcome.version = self.publish(module, bump)
        outcome.updated = self.update_dependants(module, outcome.version)
        return outcome
