"""Tests for the provider lifecycle (initialization state machine) and queries."""

import asyncio
import random
import threading

import pytest
from raga_catalog.errors import MalformedSource, SourceUnavailable
from raga_catalog.models import SearchField, SongData
from raga_catalog.provider import MusicProvider, State
from raga_catalog.sources import InMemorySource


def make_song(id, time="03-06", instrumental=False, fusion=False, filmi=False,
              jugalbandi=False, artists=None, instrument=None, title=None, raaga="Yaman"):
    return {
        "id": str(id),
        "title": title or f"Song {id}",
        "album": f"Album {id}",
        "raaga": raaga,
        "time": time,
        "url": f"https://example.invalid/{id}?dl=0",
        "duration": 300000,
        "artists": artists or [],
        "instrument": instrument,
        "isInstrumental": instrumental,
        "isFusion": fusion,
        "isFilmi": filmi,
        "isJugalbandi": jugalbandi,
    }


def make_data(*songs, artists=None, instruments=None):
    return SongData.model_validate({
        "artists": artists or [],
        "instruments": instruments or [],
        "songs": list(songs),
    })


def ready_provider(data):
    provider = MusicProvider(source=InMemorySource(data))
    assert provider.ensure_ready().result(timeout=5) is True
    return provider


class GatedSource:
    """Blocks inside load() until released; counts loads."""

    def __init__(self, data, fail_times=0, error=SourceUnavailable):
        self.data = data
        self.fail_times = fail_times
        self.error = error
        self.loads = 0
        self.gate = threading.Event()
        self.gate.set()
        self._lock = threading.Lock()

    def load(self):
        with self._lock:
            self.loads += 1
            attempt = self.loads
        self.gate.wait(timeout=5)
        if attempt <= self.fail_times:
            raise self.error("temporarily unavailable")
        return self.data


@pytest.fixture
def two_song_bucket():
    """Two songs in 03-06: 'a' instrumental, 'b' vocal."""
    return make_data(
        make_song("a", time="03-06", instrumental=True),
        make_song("b", time="03-06", instrumental=False),
    )


@pytest.fixture
def catalog():
    return make_data(
        make_song(1, time="18-21", artists=["Bhimsen Joshi"], title="Evening Raga"),
        make_song(2, time="18-21", instrumental=True, instrument="Bansuri",
                  artists=["Hariprasad Chaurasia"], raaga="Yaman"),
        make_song(3, time="18-21", fusion=True, artists=["Ravi Shankar"], instrument="Sitar"),
        make_song(4, time="06-09", fusion=True, title="Morning Fusion"),
        make_song(5, time="06-09", filmi=True, artists=["Bhimsen Joshi"], raaga="Bhairav"),
        make_song(6, time="18-21", jugalbandi=True, instrumental=True,
                  artists=["Hariprasad Chaurasia", "Shivkumar Sharma"], instrument="Santoor"),
        make_song(7, time=None, title="raga without time", raaga=None),
        artists=["Bhimsen Joshi", "Hariprasad Chaurasia", "Shivkumar Sharma", "Ravi Shankar"],
        instruments=["Sitar", "Bansuri", "Santoor"],
    )


@pytest.fixture
def provider(catalog):
    p = ready_provider(catalog)
    yield p
    p.close()


def ids(tracks):
    return [t.id for t in tracks]


# ---------------------------------------------------------------------------
# Initialization state machine
# ---------------------------------------------------------------------------

class TestInitialization:
    def test_starts_uninitialized(self, catalog):
        p = MusicProvider(source=InMemorySource(catalog))
        assert p.state is State.NOT_INITIALIZED
        assert not p.is_initialized()
        assert p.list_all() == []
        p.close()

    def test_successful_build(self, catalog):
        p = ready_provider(catalog)
        assert p.is_initialized()
        for song in catalog.songs:
            assert p.get_track(song.id) is not None
        p.close()

    def test_initialized_when_completion_reports_success(self, catalog):
        p = MusicProvider(source=InMemorySource(catalog))
        seen = []
        done = threading.Event()

        def on_complete(ok):
            seen.append((ok, p.is_initialized()))
            done.set()

        p.ensure_ready(on_complete)
        assert done.wait(timeout=5)
        assert seen == [(True, True)]
        p.close()

    def test_completion_immediate_when_ready(self, provider):
        results = []
        provider.ensure_ready(results.append)
        # Runs synchronously on the calling thread.
        assert results == [True]

    def test_concurrent_callers_share_one_build(self, catalog):
        source = GatedSource(catalog)
        source.gate.clear()
        p = MusicProvider(source=source)

        results = []
        results_lock = threading.Lock()
        all_reported = threading.Event()

        def record(ok):
            with results_lock:
                results.append(ok)
                if len(results) == 8:
                    all_reported.set()

        futures = []

        def call():
            futures.append(p.ensure_ready(record))

        threads = [threading.Thread(target=call) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        source.gate.set()
        for f in futures:
            assert f.result(timeout=5) is True
        assert source.loads == 1
        assert len(set(id(f) for f in futures)) == 1
        assert all_reported.wait(timeout=5)
        assert results == [True] * 8
        p.close()

    def test_reads_empty_while_building(self, catalog):
        source = GatedSource(catalog)
        source.gate.clear()
        p = MusicProvider(source=source)
        future = p.ensure_ready()

        assert p.list_all() == []
        assert p.search_by_field("title", "raga") == []
        assert p.list_by_time_and_facet("18-21", "*") == []
        assert p.get_track("1") is None

        source.gate.set()
        assert future.result(timeout=5) is True
        assert p.list_by_time_and_facet("18-21", "*") != []
        p.close()

    def test_failure_resets_state_and_retries(self, catalog):
        source = GatedSource(catalog, fail_times=1)
        p = MusicProvider(source=source)

        assert p.ensure_ready().result(timeout=5) is False
        assert p.state is State.NOT_INITIALIZED
        assert p.list_all() == []
        assert len(p.store) == 0

        assert p.ensure_ready().result(timeout=5) is True
        assert source.loads == 2
        assert p.is_initialized()
        p.close()

    def test_malformed_source_reported_not_raised(self, catalog):
        source = GatedSource(catalog, fail_times=1, error=MalformedSource)
        p = MusicProvider(source=source)
        results = []
        done = threading.Event()

        def on_complete(ok):
            results.append(ok)
            done.set()

        p.ensure_ready(on_complete)
        assert done.wait(timeout=5)
        assert results == [False]
        p.close()

    def test_unexpected_error_reported_not_raised(self):
        class BrokenSource:
            def load(self):
                raise RuntimeError("boom")

        p = MusicProvider(source=BrokenSource())
        assert p.ensure_ready().result(timeout=5) is False
        assert p.state is State.NOT_INITIALIZED
        p.close()

    def test_wait_ready(self, catalog):
        p = MusicProvider(source=InMemorySource(catalog))
        assert asyncio.run(p.wait_ready()) is True
        assert p.is_initialized()
        p.close()


# ---------------------------------------------------------------------------
# Facet listing
# ---------------------------------------------------------------------------

class TestListByTimeAndFacet:
    def test_example_partition(self, two_song_bucket):
        p = ready_provider(two_song_bucket)
        assert ids(p.list_by_time_and_facet("03-06", "Instrumental*")) == ["a"]
        assert ids(p.list_by_time_and_facet("03-06", "Vocal*")) == ["b"]
        assert ids(p.list_by_time_and_facet("03-06", "*")) == ["a", "b"]
        p.close()

    def test_all_is_exactly_the_bucket(self, provider):
        assert ids(provider.list_by_time_and_facet("18-21", "*")) == ["1", "2", "3", "6"]

    def test_vocal_and_instrumental_partition_bucket(self, provider):
        everything = set(ids(provider.list_by_time_and_facet("18-21", "*")))
        instrumental = set(ids(provider.list_by_time_and_facet("18-21", "Instrumental*")))
        vocal = set(ids(provider.list_by_time_and_facet("18-21", "Vocal*")))
        assert instrumental.isdisjoint(vocal)
        assert instrumental | vocal == everything
        # Fusion counts as instrumental.
        assert "3" in instrumental

    def test_fusion_ignores_bucket(self, provider):
        assert ids(provider.list_by_time_and_facet("18-21", "Fusion*")) == ["3", "4"]
        assert ids(provider.list_by_time_and_facet("09-12", "Fusion*")) == ["3", "4"]

    def test_filmi_ignores_bucket(self, provider):
        assert ids(provider.list_by_time_and_facet("18-21", "Filmi*")) == ["5"]

    def test_jugalbandi_honors_bucket(self, provider):
        assert ids(provider.list_by_time_and_facet("18-21", "Jugalbandi*")) == ["6"]
        assert provider.list_by_time_and_facet("06-09", "Jugalbandi*") == []

    def test_artist_facet_honors_bucket(self, provider):
        assert ids(provider.list_by_time_and_facet("18-21", "Bhimsen Joshi")) == ["1"]
        assert ids(provider.list_by_time_and_facet("06-09", "Bhimsen Joshi")) == ["5"]
        assert ids(provider.list_by_time_and_facet("18-21", "Hariprasad Chaurasia")) == ["2", "6"]

    def test_instrument_facet(self, provider):
        assert ids(provider.list_by_time_and_facet("18-21", "Sitar")) == ["3"]
        assert provider.list_by_time_and_facet("06-09", "Sitar") == []

    def test_unknown_facet_is_empty(self, provider):
        assert provider.list_by_time_and_facet("18-21", "Nobody") == []


# ---------------------------------------------------------------------------
# Search and listing
# ---------------------------------------------------------------------------

class TestSearch:
    def test_case_insensitive(self, provider):
        assert ids(provider.search_by_field("title", "RAGA")) == ["1", "7"]

    def test_results_follow_catalog_order(self, provider):
        # Catalog order is the order of the source document.
        assert ids(provider.search_by_field(SearchField.ALBUM, "album")) == [str(i) for i in range(1, 8)]

    def test_artist_matches_joined_string(self, provider):
        assert ids(provider.search_by_artist("chaurasia,shiv")) == ["6"]

    def test_genre(self, provider):
        assert ids(provider.search_by_genre("bhairav")) == ["5"]
        assert "7" in ids(provider.search_by_genre("hindustani"))

    def test_title_and_album_helpers(self, provider):
        assert ids(provider.search_by_title("morning")) == ["4"]
        assert ids(provider.search_by_album("album 2")) == ["2"]

    def test_no_match(self, provider):
        assert provider.search_by_field("title", "zzz") == []

    def test_unknown_field(self, provider):
        with pytest.raises(ValueError):
            provider.search_by_field("taal", "x")

    def test_not_initialized(self, catalog):
        p = MusicProvider(source=InMemorySource(catalog))
        assert p.search_by_field("title", "raga") == []
        p.close()


class TestListing:
    def test_list_all(self, provider, catalog):
        assert sorted(ids(provider.list_all())) == sorted(s.id for s in catalog.songs)

    def test_shuffled_is_permutation(self, provider):
        shuffled = provider.shuffled(random.Random(7))
        assert sorted(ids(shuffled)) == sorted(ids(provider.list_all()))

    def test_shuffle_does_not_touch_catalog(self, provider):
        before = ids(provider.list_all())
        provider.shuffled(random.Random(1))
        assert ids(provider.list_all()) == before

    def test_genres(self, provider):
        assert set(provider.genres()) == {"Yaman", "Bhairav", "Hindustani Classical"}
        assert ids(provider.list_by_genre("Bhairav")) == ["5"]
        assert provider.list_by_genre("Malkauns") == []
