"""
Configuration data models for norman.

These models define the structure of .norman.json and
~/.config/norman/config.json files, with validation via Pydantic.
Keys are camelCase on disk and snake_case in Python.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

class ModuleConfig(BaseModel):
    """
    A single locally-managed module as declared in the workspace config.

    A module entry can be written as a bare repository URL string, which is
    expanded to ``{"repository": <url>}``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: Optional[str] = Field(
        default=None,
        description="npm package name; derived from repository or package.json if omitted",
    )
    repository: Optional[str] = Field(
        default=None,
        description="Git repository URL used by `norman fetch`",
    )
    path: Optional[str] = Field(
        default=None,
        description="Module directory, relative to the config file directory",
    )
    branch: Optional[str] = Field(
        default=None,
        description="Branch to clone (defaults to defaultBranch)",
    )
    npm_install: Optional[bool] = Field(
        default=None,
        alias="npmInstall",
        description="Whether dependencies of this module are installed with npm",
    )
    build_commands: list[str] = Field(
        default_factory=list,
        alias="buildCommands",
        description="npm scripts or shell commands that build the module",
    )
    build_triggers: Optional[list[str]] = Field(
        default=None,
        alias="buildTriggers",
        description="Glob patterns of files whose change triggers a rebuild",
    )
    npm_ignore: Optional[Union[str, bool]] = Field(
        default=None,
        alias="npmIgnore",
        description="Path to a custom ignore file, or true to use the module's .npmignore",
    )
    lockfile: Optional[bool] = Field(
        default=None,
        description="Force lockfile policy; auto-detected from package-lock.json when omitted",
    )
    ignore_scope: Optional[bool] = Field(
        default=None,
        alias="ignoreScope",
        description="Drop the @scope part when deriving the default module directory",
    )


class NormanConfig(BaseModel):
    """
    Main configuration model for norman.

    Combines workspace defaults and the list of local modules. Validated
    after layering defaults, user config, workspace config and env vars.

    Example:
        >>> config = NormanConfig(modules=["git@github.com:acme/lib-a.git"])
        >>> config.modules[0].repository
        'git@github.com:acme/lib-a.git'
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    modules_directory: Optional[str] = Field(
        default=None,
        alias="modulesDirectory",
        description="Directory where fetched modules are cloned",
    )
    default_branch: str = Field(default="master", alias="defaultBranch")
    default_npm_install: bool = Field(default=True, alias="defaultNpmInstall")
    default_build_triggers: list[str] = Field(
        default_factory=list, alias="defaultBuildTriggers"
    )
    default_npm_ignore: Optional[Union[str, bool]] = Field(
        default=None, alias="defaultNpmIgnore"
    )
    default_ignore_scope: bool = Field(default=False, alias="defaultIgnoreScope")
    include_dev: bool = Field(
        default=True,
        alias="includeDev",
        description="Whether devDependencies of sync roots take part in the dependency graph",
    )
    npm_registry: Optional[str] = Field(
        default=None,
        alias="npmRegistry",
        description="Fallback default registry when no .npmrc declares one",
    )
    state_dir: Optional[str] = Field(default=None, alias="stateDir")
    cache_dir: Optional[str] = Field(default=None, alias="cacheDir")
    temp_dir: Optional[str] = Field(default=None, alias="tempDir")
    modules: list[ModuleConfig] = Field(default_factory=list)

    @field_validator("modules", mode="before")
    @classmethod
    def expand_module_shorthand(cls, v: Any) -> Any:
        """Convert bare repository URL strings to module entries."""
        if not isinstance(v, list):
            return v
        return [{"repository": item} if isinstance(item, str) else item for item in v]
