"""Registry session: one per publish run.

Holds every registry decision the run needs and resolves each of them at
most once:

- which registry URL to talk to (with the Yarn proxy rewrite)
- whether to validate users and access at all (third-party registries: no)
- who the authenticated user is (may be nobody)
- whether the account requires two-factor auth
- the one-time password, prompted for once and shared by every package

Lazy values are guarded by :class:`Once`, an asyncio lock plus a cached
result, so concurrent publish workers racing for the OTP wait for a single
prompt instead of each prompting.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar
from urllib.parse import urlparse

import click

from .errors import OtpError
from .npm import RegistryClient
from .shell import notice, warn

T = TypeVar("T")

CANONICAL_REGISTRY = "https://registry.npmjs.org/"
YARN_PROXY_HOST = "registry.yarnpkg.com"
OTP_PROMPT = "Enter OTP:"

PromptFn = Callable[[str], str]


def prompt_otp(message: str) -> str:
    """Ask the user for a one-time password on the terminal."""
    return str(click.prompt(message, prompt_suffix=" ")).strip()


def normalize_registry(url: str) -> str:
    """Registry URLs compare equal with or without a trailing slash."""
    return url if url.endswith("/") else url + "/"


def is_yarn_proxy(url: str) -> bool:
    return urlparse(url).hostname == YARN_PROXY_HOST


class Once(Generic[T]):
    """Single-flight memoized value.

    The first caller computes the value while holding the lock; everyone
    arriving meanwhile waits on the lock and then reads the cached result.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._resolved = False
        self._value: T | None = None

    @property
    def lock(self) -> asyncio.Lock:
        return self._lock

    def peek(self) -> T | None:
        return self._value

    def set(self, value: T) -> None:
        self._value = value
        self._resolved = True

    async def get(self, compute: Callable[[], Awaitable[T]]) -> T:
        if not self._resolved:
            async with self._lock:
                if not self._resolved:
                    self.set(await compute())
        return self._value  # type: ignore[return-value]


class RegistrySession:
    """Per-run registry state shared by every component that talks to npm.

    Args:
        client: Registry operations backend.
        configured_registry: ``--registry`` value (None means the public
                             npm registry).
        otp: ``--otp`` value. When given, the session never prompts and a
             rejected code is fatal.
        prompt: Callable used to ask for a one-time password.
    """

    def __init__(
        self,
        client: RegistryClient,
        configured_registry: str | None = None,
        *,
        otp: str | None = None,
        prompt: PromptFn = prompt_otp,
    ) -> None:
        self.client = client
        self.configured_registry = configured_registry or CANONICAL_REGISTRY
        self.cli_otp = otp
        self._prompt = prompt

        self._registry: str | None = None
        self._should_validate: bool | None = None
        self._identity: Once[str | None] = Once()
        self._two_factor: Once[bool] = Once()
        self._otp: Once[str | None] = Once()
        self._reprompted = False

    def resolve_registry(self) -> str:
        """Return the registry URL to use, rewriting the broken Yarn proxy.

        Yarn's registry mirror cannot accept publishes, so it is replaced
        by the public npm registry (with a warning). Any other URL passes
        through unchanged.
        """
        if self._registry is None:
            url = self.configured_registry
            if is_yarn_proxy(url):
                warn("Yarn's registry proxy is broken, replacing with public npm registry")
                warn("If you don't have an npm token, you should exit and run `npm login`")
                url = CANONICAL_REGISTRY
            self._registry = url
        return self._registry

    @property
    def registry(self) -> str:
        return self.resolve_registry()

    def should_validate(self) -> bool:
        """False for third-party registries: no user or access checks there."""
        if self._should_validate is None:
            canonical = normalize_registry(self.registry) == CANONICAL_REGISTRY
            if not canonical:
                notice("Skipping all user and access validation due to third-party registry")
            self._should_validate = canonical
        return self._should_validate

    async def resolve_identity(self) -> str | None:
        """The authenticated username, or None for an anonymous session."""

        async def lookup() -> str | None:
            return await asyncio.to_thread(self.client.whoami, self.registry)

        return await self._identity.get(lookup)

    async def requires_two_factor(self) -> bool:
        """Whether the account requires an OTP for writes. Queried once."""

        async def lookup() -> bool:
            if not self.should_validate():
                return False
            if await self.resolve_identity() is None:
                return False
            mode = await asyncio.to_thread(self.client.two_factor_mode, self.registry)
            return mode == "auth-and-writes"

        return await self._two_factor.get(lookup)

    async def acquire_otp(self) -> str | None:
        """The one-time password for this run.

        A CLI-supplied OTP is returned as-is. Otherwise, if two-factor auth
        is required, the user is prompted once and the answer is reused by
        every later caller. Without two-factor auth, returns None.
        """
        if self.cli_otp:
            return self.cli_otp

        async def obtain() -> str | None:
            if not await self.requires_two_factor():
                return None
            return await self._ask()

        return await self._otp.get(obtain)

    async def refresh_otp(self, rejected: str | None) -> str:
        """Replace an OTP the registry rejected.

        Allows one re-prompt per run. Workers that hit the same stale code
        concurrently share that single re-prompt.

        Raises:
            OtpError: The OTP came from the command line, or the run has
                      already used its re-prompt.
        """
        if self.cli_otp:
            raise OtpError("The one-time password passed with --otp was rejected")

        async with self._otp.lock:
            current = self._otp.peek()
            if current is not None and current != rejected:
                return current
            if self._reprompted:
                raise OtpError("One-time password rejected again; giving up")
            self._reprompted = True
            if rejected is not None:
                warn("One-time password rejected or expired")
            answer = await self._ask()
            self._otp.set(answer)
            return answer

    async def _ask(self) -> str:
        return await asyncio.to_thread(self._prompt, OTP_PROMPT)
