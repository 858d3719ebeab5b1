"""
Exceptions raised by norman.

Exception Hierarchy:
    NormanError (base)
    ├── ConfigError (invalid workspace/npm configuration, bad manifests)
    ├── DependencyCycleError (local dependency graph contains a cycle)
    ├── ProcessError (git/npm/build command exited with non-zero code)
    ├── PackagingError (tarball could not be produced)
    ├── LockfileError (package-lock.json is unreadable or unsupported)
    ├── RegistryError (registry proxy failures)
    └── PublishError (npm view/publish against the real registry failed)

Example:
    >>> from norman.core.exceptions import ProcessError
    >>> try:
    ...     raise ProcessError(["npm", "pack"], 1, output="npm ERR! ...")
    ... except ProcessError as e:
    ...     print(e.returncode, e.output)
"""

from __future__ import annotations


class NormanError(Exception):
    """
    Base exception for all norman errors.

    Attributes:
        message: Human-readable error message
        context: Additional context as keyword arguments
    """

    def __init__(self, message: str, **context: object) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        return self.message


class ConfigError(NormanError):
    """Raised when configuration, npmrc or a module manifest is invalid."""


class DependencyCycleError(NormanError):
    """
    Raised when the local dependency graph contains a cycle.

    Attributes:
        module: Name of the module that closes the cycle
        path: Ancestor chain leading to the offending edge
    """

    def __init__(self, module: str, path: list[str]) -> None:
        chain = " -> ".join([*path, module])
        super().__init__(
            f"Recursive dependency: {module}, required by {' -> '.join(path)} ({chain})",
            module=module,
            path=path,
        )
        self.module = module
        self.path = path

    @property
    def participants(self) -> list[str]:
        """Modules that form the cycle, starting from the repeated one."""
        start = self.path.index(self.module)
        return self.path[start:]


class ProcessError(NormanError):
    """
    Raised when a child process exits with a non-zero code.

    Attributes:
        command: Full command line that was executed
        returncode: Exit code of the process
        output: Captured output, if output was captured
    """

    def __init__(self, command: list[str], returncode: int, output: str = "") -> None:
        super().__init__(
            f"Command failed with exit code {returncode}: {' '.join(command)}",
            command=command,
            returncode=returncode,
        )
        self.command = command
        self.returncode = returncode
        self.output = output


class PackagingError(NormanError):
    """Raised when a module cannot be packed into a tarball."""


class LockfileError(NormanError):
    """Raised when a lockfile cannot be read or has an unsupported format."""


class RegistryError(NormanError):
    """Raised by the registry proxy, e.g. when no upstream registry is configured."""


class PublishError(NormanError):
    """Raised when the registry state of a module cannot be determined or published."""
