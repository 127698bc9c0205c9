"""Data models for librarian.

These Pydantic models represent the manifest (librarian.toml), the per-library
release state stored alongside it, and the commits flowing through the
generation and release pipelines.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field

PIPER_ORIGIN_REV_ID = "PiperOrigin-RevId"
LIBRARY_IDS = "Library-IDs"


class API(BaseModel):
    """A source specification location a library is generated from.

    Attributes:
        path: Directory of the API in the source repository,
              e.g. "google/cloud/secretmanager/v1".
        service_config: Path of the service config file, relative to the
                        source repository root.
    """

    path: str = ""
    service_config: str = ""


class RustPackageDependency(BaseModel):
    """A proto package mapped to an external Rust crate.

    Attributes:
        name: Unique key used when merging defaults into a crate.
        package: Crate name the package maps to.
        ignore: Keep references as `crate::` instead of mapping them.
    """

    name: str
    package: str = ""
    source: str = ""
    feature: str = ""
    force_used: bool = False
    used_if: str = ""
    ignore: bool = False


class RustModule(BaseModel):
    """A single generation target inside a (usually veneer) Rust crate.

    Toggles left as None inherit the crate-level value during defaults
    resolution.
    """

    source: str = ""
    output: str = ""
    template: str = ""
    disabled_rustdoc_warnings: list[str] | None = None
    generate_setter_samples: bool | None = None


class RustDefault(BaseModel):
    """Rust defaults applied to every crate in the manifest."""

    package_dependencies: list[RustPackageDependency] = Field(default_factory=list)
    disabled_rustdoc_warnings: list[str] = Field(default_factory=list)
    generate_setter_samples: str = ""


class RustCrate(RustDefault):
    """Rust-specific configuration of a single library."""

    modules: list[RustModule] = Field(default_factory=list)
    per_service_features: bool = False
    module_path: str = ""
    title_override: str = ""
    package_name_override: str = ""


class Default(BaseModel):
    """Layered defaults applied to libraries that leave a field empty."""

    output: str = ""
    release_level: str = ""
    transport: str = ""
    rust: RustDefault | None = None


class Library(BaseModel):
    """One client library entry in the manifest.

    Attributes:
        name: Unique key within the manifest.
        output: Directory of the generated code. Derived when empty.
        veneer: Hand-written wrapper; never derived, needs an explicit output.
        apis: Ordered API/channel entries the library is generated from.
    """

    name: str
    version: str = ""
    output: str = ""
    release_level: str = ""
    transport: str = ""
    copyright_year: str = ""
    veneer: bool = False
    skip_generate: bool = False
    skip_publish: bool = False
    apis: list[API] = Field(default_factory=list)
    rust: RustCrate | None = None


class Commit(BaseModel):
    """A raw commit as read from a git repository."""

    hash: str
    message: str = ""
    when: datetime = Field(default_factory=lambda: datetime.fromtimestamp(0, timezone.utc))


class ConventionalCommit(BaseModel):
    """A parsed conventional commit tagged with the library it applies to.

    Attributes:
        footers: Ordered footer map. PiperOrigin-RevId and Library-IDs are
                 the keys the note engine cares about.
        is_nested: Came from a BEGIN_NESTED_COMMIT block.
        is_bulk: Touches many libraries at once; rendered once per release.
    """

    type: str
    subject: str
    body: str = ""
    scope: str = ""
    commit_hash: str = ""
    when: datetime = Field(default_factory=lambda: datetime.fromtimestamp(0, timezone.utc))
    footers: dict[str, str] = Field(default_factory=dict)
    library_id: str = ""
    is_breaking: bool = False
    is_nested: bool = False
    is_bulk: bool = False

    @property
    def piper_id(self) -> str:
        return self.footers.get(PIPER_ORIGIN_REV_ID, "")


class LibraryState(BaseModel):
    """Release and generation state of one library.

    Attributes:
        version: Current version; after release preparation, the new version.
        source_roots: Paths in the language repository owned by the library.
        release_exclude_paths: Paths under source_roots ignored for releases.
        changes: Commits accumulated since the last release.
        tag_format: Overrides the language tag format, e.g. "{id}/v{version}".
    """

    id: str
    version: str = ""
    next_version: str = ""
    previous_version: str = ""
    last_generated_commit: str = ""
    last_released_commit: str = ""
    release_timestamp: datetime | None = None
    apis: list[API] = Field(default_factory=list)
    source_roots: list[str] = Field(default_factory=list)
    release_exclude_paths: list[str] = Field(default_factory=list)
    changes: list[ConventionalCommit] = Field(default_factory=list)
    release_triggered: bool = False
    tag_format: str = ""


class LibrarianState(BaseModel):
    """State of every library plus the language container image in use."""

    image: str = ""
    language: str = ""
    libraries: list[LibraryState] = Field(default_factory=list)

    def library(self, library_id: str) -> LibraryState | None:
        for library in self.libraries:
            if library.id == library_id:
                return library
        return None


class Config(BaseModel):
    """The whole librarian.toml manifest."""

    language: str = ""
    repo: str = ""
    image: str = ""
    default: Default = Field(default_factory=Default)
    libraries: list[Library] = Field(default_factory=list)
    state: LibrarianState = Field(default_factory=LibrarianState)


class GitHubRepository(BaseModel):
    """Owner and name of a GitHub repository, used to build links."""

    owner: str
    name: str

    @classmethod
    def parse(cls, owner_name: str) -> GitHubRepository:
        """Parse an "owner/name" string."""
        owner, _, name = owner_name.partition("/")
        return cls(owner=owner, name=name)


class VersionBump(BaseModel):
    """Records a version change for a library.

    Attributes:
        old: The version before bumping.
        new: The version after bumping.
    """

    old: str
    new: str
