"""Build Configuration - resolution of the frozen swift build arguments.

This module defines:
- ConfigurationMode: debug/release, chosen by the session type
- BuildConfig: The immutable argument set reused by every rebuild
- BuildConfigResolver: Derives a BuildConfig from options plus toolchain queries

Design:
    Resolution runs once, on the first load of the virtual module. The
    resulting BuildConfig is captured by the rebuild coordinator and never
    recomputed, even if the environment changes later in the session.

    Only two steps touch the toolchain: the SDK identifier (compiler tag
    query, cached on the resolver) and the artifact output path. Product
    selection lists executables on every call because edits to the package
    manifest can change the set.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from swbuild.errors import AmbiguousTargetError, ConfigurationError, ToolOutputError
from swbuild.toolsets import EMBEDDED_UNICODE_TOOLSET, REACTOR_TOOLSET, toolset_path

from .invoker import BuildInvoker
from .session import SessionContext

logger = logging.getLogger(__name__)

ARTIFACT_EXTENSION = "wasm"
VIRTUAL_PREFIX = "virtual:swift-wasm?init"
NO_COMPILER_TAG_MESSAGE = (
    "Could not detect compiler tag for Swift SDK ID. Verify the Swift toolchain "
    "version or set the SWIFT_SDK_ID environment variable manually."
)


class ConfigurationMode(Enum):
    """SwiftPM build configuration."""

    DEBUG = "debug"
    RELEASE = "release"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class BuildConfig:
    """Frozen arguments for ``swift build``.

    Attributes:
        sdk_identifier: Swift SDK passed to --swift-sdk
        product_name: Executable product to build
        configuration: debug or release
        toolset_flags: Ordered --toolset arguments (reactor toolset last)
        extra_args: User-supplied extra build arguments
        package_path: Path to the Swift package
    """

    sdk_identifier: str
    product_name: str
    configuration: ConfigurationMode
    toolset_flags: tuple[str, ...]
    extra_args: tuple[str, ...]
    package_path: str

    def build_args(self) -> list[str]:
        """Full argument list following ``swift build``."""
        return [
            "--package-path",
            self.package_path,
            "--swift-sdk",
            self.sdk_identifier,
            "--configuration",
            self.configuration.value,
            "--product",
            self.product_name,
            *self.toolset_flags,
            *self.extra_args,
        ]


def toolset_build_args(use_embedded: bool, link_unicode_tables: bool) -> tuple[str, ...]:
    """Ordered --toolset arguments.

    The embedded Unicode toolset comes first so that the reactor toolset,
    which is always present, is applied last.
    """
    args: list[str] = []
    if use_embedded and link_unicode_tables:
        args += ["--toolset", toolset_path(EMBEDDED_UNICODE_TOOLSET)]
    args += ["--toolset", toolset_path(REACTOR_TOOLSET)]
    return tuple(args)


def missing_product_message() -> str:
    return (
        "Main executable product could not be determined, please use "
        f'"import myApp from "{VIRTUAL_PREFIX}&product=<target-name>".'
    )


class BuildConfigResolver:
    """Resolves BuildConfig values against the toolchain for one session."""

    def __init__(self, context: SessionContext, invoker: BuildInvoker):
        self.context = context
        self.invoker = invoker
        self._sdk_identifier: Optional[str] = None

    async def resolve_sdk_identifier(self, use_embedded: bool) -> str:
        """Return the Swift SDK identifier, querying the toolchain at most once.

        An SDK_ID override is returned verbatim and the embedded flag is
        ignored. The first resolved value is kept for the rest of the session.
        """
        if self.context.sdk_id_override:
            return self.context.sdk_id_override
        if self._sdk_identifier is not None:
            return self._sdk_identifier

        try:
            tag = await self.invoker.compiler_tag()
        except ToolOutputError as e:
            logger.debug(f"Unreadable target info: {e}")
            raise ConfigurationError(f"{NO_COMPILER_TAG_MESSAGE} ({e})") from e
        if not tag:
            raise ConfigurationError(NO_COMPILER_TAG_MESSAGE)

        sdk_identifier = f"{tag}_wasm"
        if use_embedded:
            sdk_identifier += "-embedded"
        logger.debug(f"Resolved Swift SDK identifier: {sdk_identifier}")
        self._sdk_identifier = sdk_identifier
        return sdk_identifier

    async def resolve_product(self, package_path: str, requested: Optional[str] = None) -> str:
        """Return the requested product, or the package's single local executable."""
        if requested:
            return requested

        executables = await self.invoker.list_executables(package_path)
        local = [e for e in executables if not e.get("package")]
        names = [e.get("name") or "" for e in local]
        if len(local) != 1 or not names[0]:
            logger.debug(f"Local executables in {package_path}: {names}")
            raise AmbiguousTargetError(missing_product_message(), candidates=names)
        return names[0]

    async def resolve(
        self,
        package_path: str,
        configuration: ConfigurationMode,
        use_embedded: bool = False,
        link_unicode_tables: bool = True,
        extra_args: Sequence[str] = (),
        product: Optional[str] = None,
    ) -> BuildConfig:
        """Produce the frozen BuildConfig for a session."""
        sdk_identifier = await self.resolve_sdk_identifier(use_embedded)
        product_name = await self.resolve_product(package_path, product)
        return BuildConfig(
            sdk_identifier=sdk_identifier,
            product_name=product_name,
            configuration=configuration,
            toolset_flags=toolset_build_args(use_embedded, link_unicode_tables),
            extra_args=tuple(extra_args),
            package_path=package_path,
        )

    async def resolve_artifact_path(self, config: BuildConfig) -> str:
        """``<bin-path>/<product>.wasm`` as reported by the toolchain."""
        bin_path = await self.invoker.bin_path(config.build_args())
        return os.path.join(bin_path, f"{config.product_name}.{ARTIFACT_EXTENSION}")
