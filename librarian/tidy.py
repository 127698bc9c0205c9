"""Formatting and validation of the manifest.

Tidying removes every value that resolve_library() would derive anyway, so a
manifest only spells out what differs from the conventions. It is the inverse
of path derivation: tidying a library resolved with fill_in_defaults=False
gives the same record as tidying the original.
"""

from __future__ import annotations

from collections import Counter
from pathlib import Path

from .errors import DuplicateLibraryError
from .languages import default_output, derive_api_path
from .library import find_service_config
from .models import API, Config, Library


def validate_libraries(config: Config) -> None:
    """Check that library names and API paths are unique.

    Raises:
        DuplicateLibraryError: Listing every duplicate found, one per line.
    """
    names = Counter(lib.name for lib in config.libraries if lib.name)
    paths = Counter(api.path for lib in config.libraries for api in lib.apis if api.path)

    problems = [
        f"duplicate library name: {name} (appears {count} times)"
        for name, count in sorted(names.items())
        if count > 1
    ]
    problems += [
        f"duplicate api path: {path} (appears {count} times)"
        for path, count in sorted(paths.items())
        if count > 1
    ]
    if problems:
        raise DuplicateLibraryError("\n".join(problems))


def derive_service_config(api_path: str) -> str:
    """Conventional service config location for an API path.

    "google/cloud/speech/v1" → "google/cloud/speech/v1/speech_v1.yaml".
    Returns "" when the last component is not a version.
    """
    parts = api_path.split("/")
    if len(parts) < 2 or not parts[-1].startswith("v"):
        return ""
    service, version = parts[-2], parts[-1]
    return f"{api_path}/{service}_{version}.yaml"


def _resolved_path(language: str, lib: Library, api: API) -> str:
    return api.path or derive_api_path(language, lib.name)


def _is_derivable_path(
    language: str, lib: Library, api: API, googleapis_dir: Path | None
) -> bool:
    derived = derive_api_path(language, lib.name)
    if api.path != derived:
        return False
    if googleapis_dir is not None:
        return (googleapis_dir / derived).is_dir()
    return True


def _is_derivable_service_config(
    language: str, lib: Library, api: API, googleapis_dir: Path | None
) -> bool:
    if not api.service_config:
        return False
    path = _resolved_path(language, lib, api)
    if googleapis_dir is None:
        return api.service_config == derive_service_config(path)
    return api.service_config == find_service_config(googleapis_dir, path)


def tidy_library(
    language: str, lib: Library, default_root: str, googleapis_dir: Path | None = None
) -> Library:
    """Strip derivable values from one library record (returns a copy)."""
    lib = lib.model_copy(deep=True)

    if not lib.veneer and lib.output and len(lib.apis) == 1:
        path = _resolved_path(language, lib, lib.apis[0])
        if lib.output == default_output(language, path, default_root):
            lib.output = ""

    if not lib.veneer:
        for api in lib.apis:
            if googleapis_dir is not None and api.service_config:
                found = find_service_config(
                    googleapis_dir, _resolved_path(language, lib, api)
                )
                # A stale service config is worse than none.
                if found and found != api.service_config:
                    api.service_config = ""
            # Decide on the service config before the path it derives from goes.
            clear_config = _is_derivable_service_config(language, lib, api, googleapis_dir)
            if _is_derivable_path(language, lib, api, googleapis_dir):
                api.path = ""
            if clear_config:
                api.service_config = ""
    lib.apis = [api for api in lib.apis if api.path or api.service_config]
    lib.apis.sort(key=lambda api: api.path)

    if lib.rust is not None:
        lib.rust.modules = [
            module
            for module in lib.rust.modules
            if not (module.source == "none" and not module.template)
        ]
        lib.rust.package_dependencies.sort(key=lambda dep: dep.name)
    return lib


def tidy_config(config: Config, googleapis_dir: Path | None = None) -> Config:
    """Validate a manifest and return a tidied, sorted copy of it.

    Raises:
        DuplicateLibraryError: If names or API paths are not unique.
    """
    validate_libraries(config)
    tidied = config.model_copy(deep=True)
    tidied.libraries = sorted(
        (
            tidy_library(config.language, lib, config.default.output, googleapis_dir)
            for lib in config.libraries
        ),
        key=lambda lib: lib.name,
    )
    if tidied.default.rust is not None:
        tidied.default.rust.package_dependencies.sort(key=lambda dep: dep.name)
    return tidied

