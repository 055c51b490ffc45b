"""Unit tests for building tracks from raw songs, and the source preference."""

import pytest
from raga_catalog.models import DEFAULT_GENRE, Song
from raga_catalog.preferences import Preferences, StaticToggle
from raga_catalog.track_builder import LOCAL_URL_TEMPLATE, TrackBuilder


def make_song(id="s1", **kwargs):
    data = {
        "id": id,
        "title": "Evening Raga",
        "album": "Album",
        "url": f"https://www.dropbox.com/s/abc/{id}.mp3?dl=0",
        "duration": 61000,
    }
    data.update(kwargs)
    return Song(**data)


class TestSourceResolution:
    def test_remote_rewrites_share_link(self):
        builder = TrackBuilder(toggle=StaticToggle(remote=True))
        track = builder.build(make_song("s1"))
        assert track.source == "https://www.dropbox.com/s/abc/s1.mp3?dl=1"

    def test_local_uses_network_share(self):
        builder = TrackBuilder(toggle=StaticToggle(remote=False))
        track = builder.build(make_song("s1"))
        assert track.source == LOCAL_URL_TEMPLATE.format(id="s1")
        assert track.source.endswith("/songs/s1.mp3")

    def test_custom_local_template(self):
        builder = TrackBuilder(local_url_template="file:///music/{id}.flac")
        assert builder.build(make_song("s9")).source == "file:///music/s9.flac"

    def test_build_all_reads_toggle_once(self):
        class CountingToggle:
            calls = 0

            def is_music_source_remote(self):
                self.calls += 1
                return True

        toggle = CountingToggle()
        tracks = TrackBuilder(toggle=toggle).build_all([make_song("a"), make_song("b")])
        assert len(tracks) == 2
        assert toggle.calls == 1
        assert all(t.source.endswith("?dl=1") for t in tracks)


class TestFieldMapping:
    def test_artists_joined_without_trailing_comma(self):
        track = TrackBuilder().build(make_song(artists=["Hariprasad Chaurasia", "Shivkumar Sharma"]))
        assert track.artist == "Hariprasad Chaurasia,Shivkumar Sharma"
        assert track.artists == ("Hariprasad Chaurasia", "Shivkumar Sharma")

    def test_missing_artists(self):
        track = TrackBuilder().build(make_song(artists=None))
        assert track.artist == ""
        assert track.artists == ()

    def test_genre_defaults(self):
        assert TrackBuilder().build(make_song(raaga=None)).genre == DEFAULT_GENRE
        assert TrackBuilder().build(make_song(raaga="Yaman")).genre == "Yaman"

    def test_flags_and_duration(self):
        track = TrackBuilder().build(
            make_song(isInstrumental=True, isJugalbandi=True, time="21-24", instrument="Sitar")
        )
        assert track.is_instrumental and track.is_jugalbandi
        assert not track.is_fusion and not track.is_filmi
        assert not track.is_vocal
        assert track.time == "21-24"
        assert track.instrument == "Sitar"
        assert track.duration_ms == 61000
        assert track.duration_formatted() == "1:01"

    def test_track_is_immutable(self):
        track = TrackBuilder().build(make_song())
        with pytest.raises(Exception):
            track.title = "changed"


class TestSongParsing:
    def test_numeric_id_coerced(self):
        assert Song(id=42).id == "42"

    def test_blank_time_is_absent(self):
        assert Song(id="x", time="  ").time is None

    def test_null_strings_become_empty(self):
        song = Song(id="x", title=None, album=None, url=None)
        assert song.title == "" and song.album == "" and song.url == ""


class TestPreferences:
    def test_defaults_to_local(self, tmp_path):
        prefs = Preferences(tmp_path / "prefs.json")
        assert prefs.is_music_source_local()
        assert not prefs.is_music_source_remote()

    def test_toggle_persists(self, tmp_path):
        path = tmp_path / "prefs.json"
        assert Preferences(path).toggle_music_source() is True
        assert Preferences(path).is_music_source_remote()
        assert Preferences(path).toggle_music_source() is False
        assert Preferences(path).is_music_source_local()

    def test_corrupt_file_reads_as_local(self, tmp_path):
        path = tmp_path / "prefs.json"
        path.write_text("{not json", encoding="utf-8")
        assert Preferences(path).is_music_source_local()

    def test_env_path(self, tmp_path, monkeypatch):
        path = tmp_path / "env-prefs.json"
        monkeypatch.setenv("RAGA_PREFS_PATH", str(path))
        Preferences().toggle_music_source()
        assert path.exists()

    def test_builder_follows_preferences(self, tmp_path):
        prefs = Preferences(tmp_path / "prefs.json")
        builder = TrackBuilder(toggle=prefs)
        assert "readyshare" in builder.build(make_song()).source
        prefs.toggle_music_source()
        assert builder.build(make_song()).source.endswith("?dl=1")
