"""Tests for librarian.languages."""

from __future__ import annotations

import pytest

from librarian.languages import (
    GENERIC,
    LanguageRules,
    default_output,
    derive_api_path,
    derive_library_name,
    determine_tag_format,
    format_tag,
    register_language,
    rules_for,
)

API = "google/cloud/secretmanager/v1"


class TestLibraryName:
    @pytest.mark.parametrize(
        ("language", "expected"),
        [
            ("rust", "google-cloud-secretmanager-v1"),
            ("python", "google-cloud-secretmanager"),
            ("dart", "google_cloud_secretmanager_v1"),
            ("go", "google-cloud-secretmanager-v1"),
            ("unknown", "google-cloud-secretmanager-v1"),
        ],
    )
    def test_derive(self, language: str, expected: str) -> None:
        assert derive_library_name(language, API) == expected

    def test_python_keeps_unversioned_path(self) -> None:
        assert derive_library_name("python", "google/cloud/vision") == "google-cloud-vision"

    def test_dart_outside_cloud(self) -> None:
        assert derive_library_name("dart", "google/type") == "google_cloud_type"


class TestApiPath:
    def test_generic_reverses_name(self) -> None:
        assert derive_api_path("rust", "google-cloud-secretmanager-v1") == API

    def test_dart(self) -> None:
        assert derive_api_path("dart", "google_cloud_secretmanager_v1") == API


class TestDefaultOutput:
    @pytest.mark.parametrize(
        ("language", "expected"),
        [
            ("rust", "src/generated/cloud/secretmanager/v1"),
            ("python", "src/generated/google-cloud-secretmanager"),
            ("dart", "src/generated/google_cloud_secretmanager_v1"),
            ("fake", "src/generated/google-cloud-secretmanager-v1"),
            ("go", "src/generated/"),
        ],
    )
    def test_per_language(self, language: str, expected: str) -> None:
        assert default_output(language, API, "src/generated/") == expected

    def test_unknown_language_returns_root(self) -> None:
        assert default_output("cobol", API, "out") == "out"

    def test_empty_root(self) -> None:
        assert default_output("rust", API, "") == "cloud/secretmanager/v1"


class TestTags:
    def test_default_format(self) -> None:
        assert determine_tag_format("python") == "{id}-{version}"

    def test_go_format(self) -> None:
        assert determine_tag_format("go") == "{id}/v{version}"

    def test_library_override(self) -> None:
        assert determine_tag_format("go", "v{version}") == "v{version}"

    def test_format_tag(self) -> None:
        assert format_tag("{id}/v{version}", "storage", "1.2.0") == "storage/v1.2.0"


class TestRegistry:
    def test_unknown_falls_back_to_generic(self) -> None:
        assert rules_for("does-not-exist") is GENERIC

    def test_register_new_language(self) -> None:
        rules = LanguageRules(
            library_name=lambda api: api.upper(),
            api_path=lambda name: name.lower(),
            default_output=lambda api, root: f"{root}/{api}",
            tag_format="v{version}",
        )
        register_language("shouty", rules)

        assert derive_library_name("shouty", "a/b") == "A/B"
        assert default_output("shouty", "a/b", "out") == "out/a/b"
        assert determine_tag_format("shouty") == "v{version}"
