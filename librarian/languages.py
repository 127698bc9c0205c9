"""Per-language naming, output and tag rules.

Each supported language registers a LanguageRules bundle of pure functions:

- library_name: API path → default library name (used by `add`)
- api_path: library name → canonical API path (used when a library omits it)
- default_output: (API path, default output root) → output directory
- tag_format: release tag template with {id} and {version} placeholders

Callers look rules up with rules_for(); unknown languages get the generic
rules. The exact string rules matter: `tidy` compares stored values against
these derivations to decide what can be dropped from the manifest, so they
must round-trip.
"""

from __future__ import annotations

import posixpath
from collections.abc import Callable
from dataclasses import dataclass

DEFAULT_TAG_FORMAT = "{id}-{version}"


@dataclass(frozen=True)
class LanguageRules:
    library_name: Callable[[str], str]
    api_path: Callable[[str], str]
    default_output: Callable[[str, str], str]
    tag_format: str = DEFAULT_TAG_FORMAT


_REGISTRY: dict[str, LanguageRules] = {}


def register_language(language: str, rules: LanguageRules) -> None:
    """Register (or replace) the rules for a language id."""
    _REGISTRY[language] = rules


def rules_for(language: str) -> LanguageRules:
    """Return the rules for a language, falling back to the generic rules."""
    return _REGISTRY.get(language, GENERIC)


def _join(root: str, path: str) -> str:
    if not root:
        return posixpath.normpath(path) if path else ""
    return posixpath.normpath(posixpath.join(root, path))


def _is_version(component: str) -> bool:
    # v1, v1beta2, v2alpha
    return len(component) > 1 and component[0] == "v" and component[1].isdigit()


# Generic


def generic_library_name(api: str) -> str:
    return api.replace("/", "-")


def generic_api_path(name: str) -> str:
    return name.replace("-", "/")


def generic_default_output(api: str, default_output: str) -> str:
    return default_output


GENERIC = LanguageRules(
    library_name=generic_library_name,
    api_path=generic_api_path,
    default_output=generic_default_output,
)


# Rust


def rust_default_output(api: str, default_output: str) -> str:
    """Drop the "google/" prefix.

    google/cloud/secretmanager/v1 under src/generated
    → src/generated/cloud/secretmanager/v1
    """
    return _join(default_output, api.removeprefix("google/"))


# Python


def python_library_name(api: str) -> str:
    """Strip the version suffix and join with dashes.

    google/cloud/secretmanager/v1 → google-cloud-secretmanager
    """
    path = api
    if _is_version(posixpath.basename(api)):
        path = posixpath.dirname(api)
    return path.replace("/", "-")


def python_default_output(api: str, default_output: str) -> str:
    """Each package is a directory directly under the default output root."""
    return _join(default_output, python_library_name(api))


# Dart


def dart_library_name(api: str) -> str:
    """google/cloud/secretmanager/v1 → google_cloud_secretmanager_v1."""
    name = api.removeprefix("google/cloud/")
    if name == api:
        name = api.removeprefix("google/")
    return "google_cloud_" + name.replace("/", "_")


def dart_api_path(name: str) -> str:
    return name.replace("_", "/")


def dart_default_output(api: str, default_output: str) -> str:
    return _join(default_output, dart_library_name(api))


# Fake (used by end-to-end tests of the pipeline)


def fake_default_output(api: str, default_output: str) -> str:
    return _join(default_output, generic_library_name(api))


register_language(
    "rust",
    LanguageRules(
        library_name=generic_library_name,
        api_path=generic_api_path,
        default_output=rust_default_output,
    ),
)
register_language(
    "python",
    LanguageRules(
        library_name=python_library_name,
        api_path=generic_api_path,
        default_output=python_default_output,
    ),
)
register_language(
    "dart",
    LanguageRules(
        library_name=dart_library_name,
        api_path=dart_api_path,
        default_output=dart_default_output,
    ),
)
register_language(
    "go",
    LanguageRules(
        library_name=generic_library_name,
        api_path=generic_api_path,
        default_output=generic_default_output,
        tag_format="{id}/v{version}",
    ),
)
register_language(
    "fake",
    LanguageRules(
        library_name=generic_library_name,
        api_path=generic_api_path,
        default_output=fake_default_output,
    ),
)


def derive_library_name(language: str, api: str) -> str:
    return rules_for(language).library_name(api)


def derive_api_path(language: str, name: str) -> str:
    return rules_for(language).api_path(name)


def default_output(language: str, api: str, root: str) -> str:
    return rules_for(language).default_output(api, root)


def determine_tag_format(language: str, tag_format: str = "") -> str:
    """A library's own tag format wins over the language's."""
    return tag_format or rules_for(language).tag_format


def format_tag(tag_format: str, library_id: str, version: str) -> str:
    """Expand {id} and {version} in a tag format.

    Examples:
        format_tag("{id}-{version}", "lib", "1.2.0") → "lib-1.2.0"
        format_tag("{id}/v{version}", "lib", "1.2.0") → "lib/v1.2.0"
    """
    return tag_format.replace("{id}", library_id).replace("{version}", version)
