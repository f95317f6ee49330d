"""
Tests for services/filename_arbiter.py
"""
from services.filename_arbiter import sanitize_title, unique_name


class TestSanitizeTitle:

    def test_replaces_forbidden_characters(self):
        assert sanitize_title("a/b:c*d") == "a_b_c_d"

    def test_replaces_every_forbidden_character(self):
        assert sanitize_title('\\/:*?"<>|') == "_" * 9

    def test_leaves_safe_characters_alone(self):
        assert sanitize_title("My Video - Part 1 (Live)") == "My Video - Part 1 (Live)"

    def test_truncates_to_100_characters(self):
        assert len(sanitize_title("x" * 150)) == 100

    def test_truncation_applies_after_replacement(self):
        title = "/" * 150
        assert sanitize_title(title) == "_" * 100


class TestUniqueName:

    def test_returns_plain_name_when_free(self, tmp_path):
        assert unique_name(tmp_path, "title", "mp4") == "title.mp4"

    def test_skips_existing_names(self, tmp_path):
        (tmp_path / "title.mp4").touch()
        (tmp_path / "title (1).mp4").touch()

        assert unique_name(tmp_path, "title", "mp4") == "title (2).mp4"

    def test_other_extensions_do_not_collide(self, tmp_path):
        (tmp_path / "title.mp3").touch()

        assert unique_name(tmp_path, "title", "mp4") == "title.mp4"

    def test_accepts_string_directory(self, tmp_path):
        (tmp_path / "song.mp3").touch()

        assert unique_name(str(tmp_path), "song", "mp3") == "song (1).mp3"
