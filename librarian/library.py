"""Defaults resolution for library records.

A library in the manifest may leave most fields empty. Before generating or
releasing, resolve_library() fills them in from, in order of precedence:

1. the library's own explicit values
2. the library's language-specific sub-config
3. the manifest-wide [default] bundle and the language derivation rules

All functions return an updated copy; the record passed in is never mutated.
"""

from __future__ import annotations

from pathlib import Path

from .errors import MissingOutputError
from .languages import default_output, derive_api_path
from .models import (
    API,
    Default,
    Library,
    RustCrate,
    RustDefault,
    RustPackageDependency,
)

SERVICE_CONFIG_MARKER = "type: google.api.Service"


def merge_package_dependencies(
    defaults: list[RustPackageDependency],
    lib: list[RustPackageDependency],
) -> list[RustPackageDependency]:
    """Merge default and library dependencies by name.

    Library entries come first and win over defaults with the same name;
    remaining defaults are appended in their original order.
    """
    seen = {dep.name for dep in lib}
    result = [dep.model_copy() for dep in lib]
    for dep in defaults:
        if dep.name in seen:
            continue
        seen.add(dep.name)
        result.append(dep.model_copy())
    return result


def fill_rust(library: Library, defaults: RustDefault) -> Library:
    """Fill empty Rust crate settings from the Rust defaults.

    Crate-level toggles are then pushed down to modules that leave them unset.
    """
    lib = library.model_copy(deep=True)
    if lib.rust is None:
        lib.rust = RustCrate()
    crate = lib.rust
    crate.package_dependencies = merge_package_dependencies(
        defaults.package_dependencies, crate.package_dependencies
    )
    if not crate.disabled_rustdoc_warnings:
        crate.disabled_rustdoc_warnings = list(defaults.disabled_rustdoc_warnings)
    if not crate.generate_setter_samples:
        crate.generate_setter_samples = defaults.generate_setter_samples

    for module in crate.modules:
        if module.disabled_rustdoc_warnings is None:
            module.disabled_rustdoc_warnings = list(crate.disabled_rustdoc_warnings)
        if module.generate_setter_samples is None and crate.generate_setter_samples:
            module.generate_setter_samples = crate.generate_setter_samples == "true"
    return lib


def fill_defaults(library: Library, defaults: Default | None) -> Library:
    """Populate empty library fields from the default bundle."""
    if defaults is None:
        return library.model_copy(deep=True)
    lib = library.model_copy(deep=True)
    if not lib.output:
        lib.output = defaults.output
    if not lib.release_level:
        lib.release_level = defaults.release_level
    if not lib.transport:
        lib.transport = defaults.transport
    if defaults.rust is not None:
        return fill_rust(lib, defaults.rust)
    return lib


def find_service_config(googleapis_dir: Path, api_path: str) -> str:
    """Locate the service config YAML for an API inside a googleapis checkout.

    Returns the path relative to googleapis_dir, or "" if the API directory
    has no file declaring `type: google.api.Service`.
    """
    api_dir = googleapis_dir / api_path
    if not api_dir.is_dir():
        return ""
    for candidate in sorted(api_dir.glob("*.yaml")):
        if SERVICE_CONFIG_MARKER in candidate.read_text():
            return candidate.relative_to(googleapis_dir).as_posix()
    return ""


def resolve_library(
    language: str,
    library: Library,
    defaults: Default | None,
    *,
    googleapis_dir: Path | None = None,
    fill_in_defaults: bool = True,
) -> Library:
    """Return a fully populated copy of a library record.

    Steps:
    1. Ensure at least one (possibly empty) API entry exists.
    2. For non-veneer libraries, derive empty API paths from the library
       name, and service configs when a googleapis checkout is available.
    3. Derive an empty output from the first API path; veneers must set it.
    4. Optionally layer in the manifest defaults.

    Raises:
        MissingOutputError: If a veneer library has no output.
    """
    lib = library.model_copy(deep=True)
    if not lib.apis:
        lib.apis.append(API())

    # A veneer's source location lives in its language-specific config.
    if not lib.veneer:
        for api in lib.apis:
            if not api.path:
                api.path = derive_api_path(language, lib.name)
            if not api.service_config and googleapis_dir is not None:
                api.service_config = find_service_config(googleapis_dir, api.path)

    if not lib.output:
        if lib.veneer:
            raise MissingOutputError(
                f"veneer {lib.name!r} requires an explicit output path"
            )
        root = defaults.output if defaults is not None else ""
        lib.output = default_output(language, lib.apis[0].path, root)

    if fill_in_defaults:
        return fill_defaults(lib, defaults)
    return lib
