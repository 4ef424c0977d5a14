from datetime import datetime, timezone

import pytest

from tbmm.models import CachedStatus, DebridDownload, DownloadKind, ExternalIds, MediaType, Settings
from tbmm.resolver import MetadataResolver
from tbmm.tmdb import TMDBAPIError

DUNE = {
    "id": 438631,
    "title": "Dune",
    "release_date": "2021-09-15",
    "overview": "Paul Atreides...",
    "poster_path": "/dune.jpg",
}
DARK = {"id": 70523, "name": "Dark", "first_air_date": "2017-12-01", "media_type": "tv"}


@pytest.fixture()
def resolver(config):
    config["api"]["tmdb_api_key"] = "tmdb-key"
    return MetadataResolver(config)


def download(download_id, name):
    return DebridDownload(id=download_id, kind=DownloadKind.TORRENT, name=name,
                          created_at=datetime(2024, 1, 1, tzinfo=timezone.utc))


def test_no_tmdb_key_gives_fallback(config):
    item = MetadataResolver(config).resolve_by_query("Dune", MediaType.MOVIE)
    assert item.id.startswith("fallback-")
    assert item.title == "Dune"
    assert item.type is MediaType.MOVIE


def test_resolve_movie_with_year(resolver, monkeypatch):
    calls = []

    def search_movie(query, year=None):
        calls.append((query, year))
        return {"results": [DUNE]}

    monkeypatch.setattr(resolver.tmdb, "search_movie", search_movie)
    item = resolver.resolve_by_query("Dune (2021)", MediaType.MOVIE)

    assert calls == [("Dune", 2021)]
    assert item.id == "tmdb-438631"
    assert item.year == 2021
    assert item.type is MediaType.MOVIE
    assert item.poster_url == "https://image.tmdb.org/t/p/w500/dune.jpg"
    assert item.external_ids.tmdb == 438631


def test_multi_search_skips_people(resolver, monkeypatch):
    monkeypatch.setattr(resolver.tmdb, "search_multi",
                        lambda query: {"results": [{"id": 1, "name": "Someone", "media_type": "person"}, DARK]})
    item = resolver.resolve_by_query("Dark")
    assert item.title == "Dark"
    assert item.type is MediaType.SHOW
    assert item.year == 2017


def test_tmdb_error_falls_back(resolver, monkeypatch):
    def fail(query, year=None):
        raise TMDBAPIError("TMDB API error: 503", 503)

    monkeypatch.setattr(resolver.tmdb, "search_tv", fail)
    item = resolver.resolve_by_query("Dark", MediaType.SHOW)
    assert item.id.startswith("fallback-")
    assert item.type is MediaType.SHOW


def test_search_propagates_errors(resolver, monkeypatch):
    def fail(query):
        raise TMDBAPIError("TMDB API error: 401", 401)

    monkeypatch.setattr(resolver.tmdb, "search_multi", fail)
    with pytest.raises(TMDBAPIError):
        resolver.search("Dune")


def test_search_limit(resolver, monkeypatch):
    monkeypatch.setattr(resolver.tmdb, "search_multi", lambda query: {"results": [DUNE, DARK]})
    assert [i.title for i in resolver.search("d", limit=1)] == ["Dune"]


def test_resolve_by_imdb(resolver, monkeypatch):
    monkeypatch.setattr(resolver.tmdb, "find_by_imdb", lambda imdb_id: {"movie_results": [DUNE], "tv_results": []})
    item = resolver.resolve_by_imdb("tt1160419")
    assert item.external_ids.imdb == "tt1160419"
    assert item.title == "Dune"


def test_rpdb_poster_preferred_when_enabled(config, monkeypatch):
    resolver = MetadataResolver(config, Settings(rpdb_enabled=True, rpdb_api_key="t0-key"))
    monkeypatch.setattr(resolver.rpdb, "get_poster_by_imdb", lambda imdb_id: f"rpdb/{imdb_id}")
    assert resolver.resolve_poster(ExternalIds(imdb="tt1"), "tmdb.jpg") == "rpdb/tt1"

    monkeypatch.setattr(resolver.rpdb, "get_poster_by_imdb", lambda imdb_id: None)
    monkeypatch.setattr(resolver.rpdb, "get_poster_by_tmdb", lambda tmdb_id, kind: None)
    assert resolver.resolve_poster(ExternalIds(imdb="tt1", tmdb=5), "tmdb.jpg") == "tmdb.jpg"


def test_rpdb_disabled_without_key(config):
    assert MetadataResolver(config, Settings(rpdb_enabled=True)).rpdb is None


def test_build_library_enriches_and_attaches_debrid(resolver, monkeypatch):
    queries = []

    def search_multi(query):
        queries.append(query)
        return {"results": [DUNE]}

    monkeypatch.setattr(resolver.tmdb, "search_multi", search_multi)
    (item,) = resolver.build_library([download(1, "Dune.2021.1080p.WEB-DL")])

    assert queries == ["Dune"]
    assert item.title == "Dune"
    assert item.debrid.id == 1
    assert item.debrid.name == "Dune.2021.1080p.WEB-DL"
    assert item.cached_status is CachedStatus.CACHED


def test_build_library_keeps_download_when_lookup_crashes(resolver, monkeypatch):
    def crash(query):
        raise RuntimeError("unexpected payload")

    monkeypatch.setattr(resolver.tmdb, "search_multi", crash)
    (item,) = resolver.build_library([download(7, "Weird.Release.2020")])

    assert item.id == "torbox-7"
    assert item.title == "Weird.Release.2020"
    assert item.type is MediaType.OTHER
    assert item.debrid.id == 7


def test_build_library_without_metadata(resolver, monkeypatch):
    def unexpected(*args, **kwargs):
        raise AssertionError("no lookups expected")

    monkeypatch.setattr(resolver.tmdb, "search_multi", unexpected)
    monkeypatch.setattr(resolver.tmdb, "search_tv", unexpected)
    movie, show = resolver.build_library(
        [download(1, "Dune.2021.1080p.WEB-DL"), download(2, "Dark.S01E01.720p")],
        enrich=False,
    )

    assert (movie.title, movie.year, movie.type) == ("Dune", 2021, MediaType.OTHER)
    assert (show.title, show.type) == ("Dark", MediaType.SHOW)
