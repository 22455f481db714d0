"""Tests for the release lookup engine."""

from __future__ import annotations

import logging
from unittest.mock import ANY, MagicMock

import pytest
from pydantic import ValidationError

from depscout.constants import MSG_CUSTOM_REGISTRIES_IGNORED, MSG_EXCESS_REGISTRY_URLS
from depscout.datasources import DatasourceRegistry
from depscout.exceptions import (
    CacheError,
    ConfigError,
    DigestNotSupportedError,
    ExternalHostError,
    HostErrorKind,
)
from depscout.lookup import ReleaseLookup, cache_key, cache_namespace
from depscout.metadata import ManualMetadata
from depscout.models import (
    CacheConfig,
    DepscoutConfig,
    DigestRequest,
    LookupRequest,
    ReleaseResult,
)

from conftest import (
    PACKAGE_NAME,
    CachingDatasource,
    DigestDatasource,
    DummyDatasource,
    FixedRegistryDatasource,
)


def _request(**fields: object) -> LookupRequest:
    return LookupRequest(
        datasource="dummy", package_name=PACKAGE_NAME, **fields  # type: ignore[arg-type]
    )


def _store() -> MagicMock:
    store = MagicMock(spec=["get", "set"])
    store.get.return_value = None
    return store


def _versions(result: ReleaseResult | None) -> list[str]:
    assert result is not None
    return [release.version for release in result.releases]


class TestInvalidRequests:
    """Tests for requests that never reach a datasource."""

    async def test_missing_package_name(
        self, lookup: ReleaseLookup, dummy: DummyDatasource
    ) -> None:
        dummy.registries = {"https://reg1.com": {"releases": [{"version": "1.0.0"}]}}

        result = await lookup.get_pkg_releases(
            LookupRequest(datasource="dummy", default_registry_urls=["https://reg1.com"])
        )

        assert result is None
        assert dummy.calls == []

    async def test_unknown_datasource(self, lookup: ReleaseLookup, dummy: DummyDatasource) -> None:
        result = await lookup.get_pkg_releases(
            LookupRequest(datasource="gitbucket", package_name=PACKAGE_NAME)
        )

        assert result is None
        assert dummy.calls == []

    async def test_missing_datasource(self, lookup: ReleaseLookup, dummy: DummyDatasource) -> None:
        assert await lookup.get_pkg_releases(LookupRequest(package_name=PACKAGE_NAME)) is None
        assert dummy.calls == []

    async def test_no_candidate_urls(self, lookup: ReleaseLookup, dummy: DummyDatasource) -> None:
        assert await lookup.get_pkg_releases(_request()) is None
        assert dummy.calls == []


class TestRegistryStrategies:
    """Tests for strategy selection and behavior through the engine."""

    async def test_hunt_is_the_default(self, lookup: ReleaseLookup, dummy: DummyDatasource) -> None:
        dummy.registries = {
            "https://reg1.com": None,
            "https://reg2.com": {"releases": [{"version": "0.0.2"}]},
        }

        result = await lookup.get_pkg_releases(
            _request(default_registry_urls=["https://reg1.com", "https://reg2.com"])
        )

        assert _versions(result) == ["0.0.2"]
        assert dummy.calls == ["https://reg1.com", "https://reg2.com"]

    async def test_first_warns_and_queries_one(
        self,
        lookup: ReleaseLookup,
        dummy: DummyDatasource,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        dummy.registries = {
            "https://reg1.com": {"releases": [{"version": "0.0.1"}]},
            "https://reg2.com": {"releases": [{"version": "0.0.2"}]},
        }

        with caplog.at_level(logging.WARNING):
            result = await lookup.get_pkg_releases(
                _request(
                    registry_strategy="first",
                    default_registry_urls=["https://reg1.com", "https://reg2.com"],
                )
            )

        assert _versions(result) == ["0.0.1"]
        assert dummy.calls == ["https://reg1.com"]
        assert MSG_EXCESS_REGISTRY_URLS in caplog.text

    async def test_datasource_strategy_used_when_request_has_none(self) -> None:
        class FirstDatasource(DummyDatasource):
            registry_strategy = "first"

        datasource = FirstDatasource(
            {
                "https://reg1.com": None,
                "https://reg2.com": {"releases": [{"version": "0.0.2"}]},
            }
        )
        lookup = ReleaseLookup(DatasourceRegistry([datasource]))

        result = await lookup.get_pkg_releases(
            _request(default_registry_urls=["https://reg1.com", "https://reg2.com"])
        )

        assert result is None
        assert datasource.calls == ["https://reg1.com"]

    async def test_hunt_stamps_winning_registry(
        self, lookup: ReleaseLookup, dummy: DummyDatasource
    ) -> None:
        dummy.registries = {
            "https://a.com": None,
            "https://b.com": RuntimeError("generic"),
            "https://c.com": {"releases": [{"version": "1.0.0"}]},
            "https://d.com": {"releases": [{"version": "2.0.0"}]},
        }

        result = await lookup.get_pkg_releases(
            _request(
                registry_urls=["https://a.com", "https://b.com", "https://c.com", "https://d.com"]
            )
        )

        assert result is not None
        assert _versions(result) == ["1.0.0"]
        assert result.registry_url == "https://c.com"
        assert "https://d.com" not in dummy.calls

    async def test_hunt_host_disabled_first_candidate(
        self, lookup: ReleaseLookup, dummy: DummyDatasource
    ) -> None:
        dummy.registries = {
            "https://reg1.com": ExternalHostError(
                "Host disabled", kind=HostErrorKind.HOST_DISABLED
            ),
            "https://reg2.com": {"releases": [{"version": "1.0.0"}]},
        }

        result = await lookup.get_pkg_releases(
            _request(registry_urls=["https://reg1.com", "https://reg2.com"])
        )

        assert result is None

    async def test_hunt_hard_failure_propagates(
        self, lookup: ReleaseLookup, dummy: DummyDatasource
    ) -> None:
        dummy.registries = {"https://reg1.com": ExternalHostError("Registry down")}

        with pytest.raises(ExternalHostError):
            await lookup.get_pkg_releases(_request(registry_urls=["https://reg1.com"]))

    async def test_merge_combines_registries(
        self, lookup: ReleaseLookup, dummy: DummyDatasource
    ) -> None:
        dummy.registries = {
            "https://reg1.com": {"releases": [{"version": "1.0.0"}], "tags": {"release": "2.0.0"}},
            "https://reg2.com": {
                "releases": [{"version": "1.1.0"}],
                "tags": {"latest": "1.1.0", "release": "1.1.0"},
            },
        }

        result = await lookup.get_pkg_releases(
            _request(
                registry_strategy="merge",
                registry_urls=["https://reg1.com", "https://reg2.com"],
            )
        )

        assert result is not None
        assert [(r.version, r.registry_url) for r in result.releases] == [
            ("1.0.0", "https://reg1.com"),
            ("1.1.0", "https://reg2.com"),
        ]
        assert result.tags == {"latest": "1.1.0", "release": "2.0.0"}

    async def test_merge_duplicate_release_takes_higher_tag(
        self, lookup: ReleaseLookup, dummy: DummyDatasource
    ) -> None:
        dummy.registries = {
            "https://reg1.com": {"releases": [{"version": "1.0.0"}], "tags": {"release": "2.0.0"}},
            "https://reg7.com": {
                "releases": [{"version": "1.0.0"}],
                "tags": {"latest": "1.2.0.0", "release": "2.1.0"},
            },
        }

        result = await lookup.get_pkg_releases(
            _request(
                registry_strategy="merge",
                registry_urls=["https://reg1.com", "https://reg7.com"],
            )
        )

        assert result is not None
        assert [(r.version, r.registry_url) for r in result.releases] == [
            ("1.0.0", "https://reg1.com"),
        ]
        assert result.tags == {"latest": "1.2.0.0", "release": "2.1.0"}

    async def test_merge_deduplicates_and_skips_failures(
        self, lookup: ReleaseLookup, dummy: DummyDatasource
    ) -> None:
        dummy.registries = {
            "https://reg1.com": {"releases": [{"version": "1.0.0"}]},
            "https://reg2.com": RuntimeError("oops"),
            "https://reg3.com": ExternalHostError("off", kind=HostErrorKind.HOST_DISABLED),
            "https://reg4.com": {"releases": [{"version": "1.0.0"}, {"version": "1.1.0"}]},
        }

        result = await lookup.get_pkg_releases(
            _request(
                registry_strategy="merge",
                registry_urls=[
                    "https://reg1.com",
                    "https://reg2.com",
                    "https://reg3.com",
                    "https://reg4.com",
                ],
            )
        )

        assert result is not None
        assert [(r.version, r.registry_url) for r in result.releases] == [
            ("1.0.0", "https://reg1.com"),
            ("1.1.0", "https://reg4.com"),
        ]

    async def test_merge_aborts_on_hard_failure(
        self, lookup: ReleaseLookup, dummy: DummyDatasource
    ) -> None:
        dummy.registries = {
            "https://reg1.com": {"releases": [{"version": "1.0.0"}]},
            "https://reg2.com": ExternalHostError("Registry down"),
        }

        with pytest.raises(ExternalHostError):
            await lookup.get_pkg_releases(
                _request(
                    registry_strategy="merge",
                    registry_urls=["https://reg1.com", "https://reg2.com"],
                )
            )


class TestCustomRegistries:
    """Tests for datasources that ignore caller registries."""

    async def test_custom_registry_urls_ignored(self, caplog: pytest.LogCaptureFixture) -> None:
        datasource = FixedRegistryDatasource(
            {"https://reg1.com": {"releases": [{"version": "1.0.0"}]}}
        )
        lookup = ReleaseLookup(DatasourceRegistry([datasource]))

        with caplog.at_level(logging.WARNING):
            result = await lookup.get_pkg_releases(
                _request(registry_urls=["https://custom.registry.com"])
            )

        assert _versions(result) == ["1.0.0"]
        assert datasource.calls == ["https://reg1.com"]
        assert MSG_CUSTOM_REGISTRIES_IGNORED in caplog.text


class TestPostProcessing:
    """Tests for what callers see after a lookup."""

    async def test_extract_version(self, lookup: ReleaseLookup, dummy: DummyDatasource) -> None:
        dummy.registries = {
            "https://reg1.com": {"releases": [{"version": "v4.3.143"}, {"version": "rc4.3.143"}]}
        }

        result = await lookup.get_pkg_releases(
            _request(
                registry_urls=["https://reg1.com"],
                extract_version=r"^(?<version>v\d+\.\d+)",
            )
        )

        assert _versions(result) == ["v4.3"]

    async def test_invalid_extract_version(
        self, lookup: ReleaseLookup, dummy: DummyDatasource
    ) -> None:
        dummy.registries = {"https://reg1.com": {"releases": [{"version": "1.0.0"}]}}

        with pytest.raises(ConfigError):
            await lookup.get_pkg_releases(
                _request(registry_urls=["https://reg1.com"], extract_version="(")
            )

    @pytest.mark.parametrize(
        ("source_url", "expected"),
        [
            ("   https://abc.com   ", "https://abc.com"),
            ("scm:git@github.com:Jasig/cas.git", "https://github.com/Jasig/cas"),
        ],
    )
    async def test_source_url_normalized(
        self,
        lookup: ReleaseLookup,
        dummy: DummyDatasource,
        source_url: str,
        expected: str,
    ) -> None:
        dummy.registries = {
            "https://reg1.com": {"releases": [{"version": "1.0.0"}], "source_url": source_url}
        }

        result = await lookup.get_pkg_releases(_request(registry_urls=["https://reg1.com"]))

        assert result is not None
        assert result.source_url == expected

    async def test_manual_metadata_overrides(self, dummy: DummyDatasource) -> None:
        dummy.registries = {
            "https://reg1.com": {
                "releases": [{"version": "1.0.0"}],
                "changelog_url": "https://registry.example.com/changes",
            }
        }
        lookup = ReleaseLookup(
            DatasourceRegistry([dummy]),
            metadata=ManualMetadata(
                changelog_urls={"dummy": {PACKAGE_NAME: "https://example.com/changelog"}},
                source_urls={"dummy": {PACKAGE_NAME: "https://github.com/org/package"}},
            ),
        )

        result = await lookup.get_pkg_releases(_request(registry_urls=["https://reg1.com"]))

        assert result is not None
        assert result.changelog_url == "https://example.com/changelog"
        assert result.source_url == "https://github.com/org/package"

    async def test_replacements_copied(self, lookup: ReleaseLookup, dummy: DummyDatasource) -> None:
        dummy.registries = {"https://reg1.com": {"releases": [{"version": "1.0.0"}]}}

        result = await lookup.get_pkg_releases(
            _request(
                registry_urls=["https://reg1.com"],
                replacement_name="new-package",
                replacement_version="2.0.0",
            )
        )

        assert result is not None
        assert result.replacement_name == "new-package"
        assert result.replacement_version == "2.0.0"

    async def test_strict_constraints_filtering(
        self, lookup: ReleaseLookup, dummy: DummyDatasource
    ) -> None:
        dummy.registries = {
            "https://foo.bar": {
                "releases": [
                    {"version": "0.0.5", "constraints": {"python": [">= 3.0.0, < 4.0"]}},
                    {"version": "0.0.4", "constraints": {"python": [">= 2.7, < 4.0"]}},
                    {"version": "0.0.3", "constraints": {"python": [">= 2.7, < 3.0"]}},
                    {"version": "0.0.2", "constraints": {"python": ["2.7"]}},
                    {"version": "0.0.1", "constraints": {"python": ["1.0"]}},
                ]
            }
        }

        result = await lookup.get_pkg_releases(
            _request(
                default_registry_urls=["https://foo.bar"],
                constraints={"python": ">= 2.7, < 3.0"},
                constraints_filtering="strict",
            )
        )

        assert _versions(result) == ["0.0.3", "0.0.4"]

    async def test_constraints_without_strict_filtering(
        self, lookup: ReleaseLookup, dummy: DummyDatasource
    ) -> None:
        dummy.registries = {
            "https://foo.bar": {
                "releases": [
                    {"version": "0.0.1", "constraints": {"python": ["2.7"]}},
                    {"version": "0.0.2"},
                ]
            }
        }

        result = await lookup.get_pkg_releases(
            _request(default_registry_urls=["https://foo.bar"], constraints={"python": "2.7.0"})
        )

        assert _versions(result) == ["0.0.1", "0.0.2"]

    async def test_plugin_result_is_not_mutated(
        self, lookup: ReleaseLookup, dummy: DummyDatasource
    ) -> None:
        original = ReleaseResult.model_validate(
            {"releases": [{"version": "2.0.0"}, {"version": "1.0.0"}], "source_url": " x "}
        )
        dummy.registries = {"https://reg1.com": original}

        await lookup.get_pkg_releases(_request(registry_urls=["https://reg1.com"]))

        assert original.registry_url is None
        assert original.source_url == " x "
        assert [r.version for r in original.releases] == ["2.0.0", "1.0.0"]


class TestCaching:
    """Tests for the cache gateway."""

    async def test_public_result_cached_once(self) -> None:
        store = _store()
        datasource = CachingDatasource({"https://reg1.com": {"releases": [{"version": "1.0.0"}]}})
        lookup = ReleaseLookup(DatasourceRegistry([datasource]), cache=store)

        await lookup.get_pkg_releases(_request(registry_urls=["https://reg1.com"]))

        store.get.assert_called_once_with("datasource-releases-dummy", "https://reg1.com:package")
        store.set.assert_called_once_with(
            "datasource-releases-dummy", "https://reg1.com:package", ANY, 15
        )
        cached = store.set.call_args.args[2]
        assert cached.registry_url == "https://reg1.com"
        assert [r.version for r in cached.releases] == ["1.0.0"]

    async def test_private_result_not_cached(self) -> None:
        store = _store()
        datasource = CachingDatasource(
            {"https://reg1.com": {"releases": [{"version": "1.0.0"}], "is_private": True}}
        )
        lookup = ReleaseLookup(DatasourceRegistry([datasource]), cache=store)

        result = await lookup.get_pkg_releases(_request(registry_urls=["https://reg1.com"]))

        assert _versions(result) == ["1.0.0"]
        store.set.assert_not_called()

    async def test_private_result_cached_with_override(self) -> None:
        store = _store()
        datasource = CachingDatasource(
            {"https://reg1.com": {"releases": [{"version": "1.0.0"}], "is_private": True}}
        )
        lookup = ReleaseLookup(
            DatasourceRegistry([datasource]),
            config=DepscoutConfig(cache_private_packages=True),
            cache=store,
        )

        await lookup.get_pkg_releases(_request(registry_urls=["https://reg1.com"]))

        store.set.assert_called_once_with(
            "datasource-releases-dummy", "https://reg1.com:package", ANY, 15
        )

    async def test_not_cached_when_datasource_opts_out(
        self, registry: DatasourceRegistry, dummy: DummyDatasource
    ) -> None:
        store = _store()
        dummy.registries = {"https://reg1.com": {"releases": [{"version": "1.0.0"}]}}
        lookup = ReleaseLookup(registry, cache=store)

        await lookup.get_pkg_releases(_request(registry_urls=["https://reg1.com"]))

        store.get.assert_not_called()
        store.set.assert_not_called()

    async def test_not_found_not_cached(self) -> None:
        store = _store()
        lookup = ReleaseLookup(DatasourceRegistry([CachingDatasource()]), cache=store)

        assert await lookup.get_pkg_releases(_request(registry_urls=["https://reg1.com"])) is None
        store.set.assert_not_called()

    async def test_cache_hit_skips_datasource(self) -> None:
        datasource = CachingDatasource({"https://reg1.com": {"releases": [{"version": "1.0.0"}]}})
        lookup = ReleaseLookup(DatasourceRegistry([datasource]))
        request = _request(registry_urls=["https://reg1.com"])

        first = await lookup.get_pkg_releases(request)
        datasource.registries = {}
        second = await lookup.get_pkg_releases(request)

        assert datasource.calls == ["https://reg1.com"]
        assert second == first

    async def test_cached_value_is_per_registry_not_per_request(self) -> None:
        """Test that request-specific processing is redone on a cache hit."""
        datasource = CachingDatasource(
            {"https://reg1.com": {"releases": [{"version": "1.0.0"}, {"version": "2.0.0"}]}}
        )
        lookup = ReleaseLookup(DatasourceRegistry([datasource]))

        await lookup.get_pkg_releases(
            _request(registry_urls=["https://reg1.com"], extract_version=r"^(?<version>1\..*)$")
        )
        result = await lookup.get_pkg_releases(_request(registry_urls=["https://reg1.com"]))

        assert _versions(result) == ["1.0.0", "2.0.0"]

    async def test_cache_disabled_in_config(self) -> None:
        datasource = CachingDatasource({"https://reg1.com": {"releases": [{"version": "1.0.0"}]}})
        lookup = ReleaseLookup(
            DatasourceRegistry([datasource]),
            config=DepscoutConfig(cache=CacheConfig(enabled=False)),
        )
        request = _request(registry_urls=["https://reg1.com"])

        await lookup.get_pkg_releases(request)
        await lookup.get_pkg_releases(request)

        assert datasource.calls == ["https://reg1.com", "https://reg1.com"]

    @pytest.mark.parametrize(
        ("cache_config", "datasource_ttl", "expected"),
        [
            (CacheConfig(), None, 15),
            (CacheConfig(ttl_minutes=5), None, 5),
            (CacheConfig(ttl_days=1), None, 1440),
            (CacheConfig(ttl_minutes=5), 30, 30),
            (CacheConfig(ttl_overrides={"dummy": 60}), 30, 60),
            (CacheConfig(ttl_overrides={"datasource-releases-dummy": 90}), 30, 90),
        ],
    )
    async def test_ttl_precedence(
        self, cache_config: CacheConfig, datasource_ttl: int | None, expected: int
    ) -> None:
        class TtlDatasource(CachingDatasource):
            cache_ttl_minutes = datasource_ttl

        store = _store()
        datasource = TtlDatasource({"https://reg1.com": {"releases": [{"version": "1.0.0"}]}})
        lookup = ReleaseLookup(
            DatasourceRegistry([datasource]),
            config=DepscoutConfig(cache=cache_config),
            cache=store,
        )

        await lookup.get_pkg_releases(_request(registry_urls=["https://reg1.com"]))

        assert store.set.call_args.args[3] == expected

    async def test_cache_write_failure_keeps_result(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        store = _store()
        store.set.side_effect = CacheError("Cache TTL must be positive", {"ttl_minutes": 0})
        datasource = CachingDatasource({"https://reg1.com": {"releases": [{"version": "1.0.0"}]}})
        lookup = ReleaseLookup(DatasourceRegistry([datasource]), cache=store)

        result = await lookup.get_pkg_releases(_request(registry_urls=["https://reg1.com"]))

        assert _versions(result) == ["1.0.0"]
        assert "Cache write failed" in caplog.text

    async def test_cache_read_failure_queries_datasource(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        store = _store()
        store.get.side_effect = CacheError("Cache unavailable")
        datasource = CachingDatasource({"https://reg1.com": {"releases": [{"version": "1.0.0"}]}})
        lookup = ReleaseLookup(DatasourceRegistry([datasource]), cache=store)

        result = await lookup.get_pkg_releases(_request(registry_urls=["https://reg1.com"]))

        assert _versions(result) == ["1.0.0"]
        assert datasource.calls == ["https://reg1.com"]
        assert "Cache read failed" in caplog.text

    def test_ttl_overrides_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            CacheConfig(ttl_overrides={"dummy": 0})

    def test_key_format(self) -> None:
        assert cache_namespace("npm") == "datasource-releases-npm"
        assert cache_key("https://registry.npmjs.org", "react") == (
            "https://registry.npmjs.org:react"
        )


class TestDigests:
    """Tests for digest resolution."""

    @pytest.fixture
    def digest_lookup(self, dummy: DummyDatasource) -> ReleaseLookup:
        return ReleaseLookup(DatasourceRegistry([dummy, DigestDatasource()]))

    def test_supports_digests(self, digest_lookup: ReleaseLookup) -> None:
        assert digest_lookup.supports_digests("dummy-digest") is True
        assert digest_lookup.supports_digests("dummy") is False
        assert digest_lookup.supports_digests("unknown") is False

    async def test_get_digest_uses_replacement_name(self) -> None:
        datasource = DigestDatasource()
        lookup = ReleaseLookup(DatasourceRegistry([datasource]))

        digest = await lookup.get_digest(
            DigestRequest(
                datasource="dummy-digest",
                package_name="old-name",
                replacement_name="new-name",
                registry_urls=["https://reg1.com", "https://reg2.com"],
                current_value="1.0.0",
            ),
            "2.0.0",
        )

        assert digest == "sha256:new-name:2.0.0"
        config, new_value = datasource.digest_calls[0]
        assert config.registry_url == "https://reg1.com"
        assert config.current_value == "1.0.0"
        assert new_value == "2.0.0"

    async def test_get_digest_without_capability(self, digest_lookup: ReleaseLookup) -> None:
        with pytest.raises(DigestNotSupportedError):
            await digest_lookup.get_digest(
                DigestRequest(datasource="dummy", package_name=PACKAGE_NAME)
            )

    async def test_get_digest_unknown_datasource(self, digest_lookup: ReleaseLookup) -> None:
        result = await digest_lookup.get_digest(
            DigestRequest(datasource="unknown", package_name=PACKAGE_NAME)
        )

        assert result is None


class TestIntrospection:
    """Tests for datasource listing."""

    def test_datasource_listing(self, dummy: DummyDatasource) -> None:
        digest = DigestDatasource()
        lookup = ReleaseLookup(DatasourceRegistry([digest, dummy]))

        assert lookup.get_datasource_list() == ["dummy", "dummy-digest"]
        assert lookup.get_datasources() == {"dummy": dummy, "dummy-digest": digest}
