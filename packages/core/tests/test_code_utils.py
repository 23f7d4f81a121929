"""Tests for file filtering utilities."""

from passreview_core.utils.code import has_extension, is_code_file, is_excluded


class TestIsCodeFile:
    def test_source_files_are_code(self):
        assert is_code_file("app/services/user.py") is True
        assert is_code_file("src/Controllers/HomeController.cs") is True

    def test_image_is_not_code(self):
        assert is_code_file("assets/logo.png") is False

    def test_archive_is_not_code(self):
        assert is_code_file("dist/bundle.tar.gz") is False

    def test_lock_file_is_not_code(self):
        assert is_code_file("poetry.lock") is False

    def test_case_insensitive(self):
        assert is_code_file("image.PNG") is False


class TestHasExtension:
    def test_no_filter_accepts_everything(self):
        assert has_extension("README.md", None) is True
        assert has_extension("README.md", []) is True

    def test_matches_with_or_without_dot(self):
        assert has_extension("src/app.ts", [".ts", "js"]) is True
        assert has_extension("src/app.js", [".ts", "js"]) is True

    def test_rejects_other_extensions(self):
        assert has_extension("src/app.py", [".ts"]) is False

    def test_case_insensitive(self):
        assert has_extension("Program.CS", [".cs"]) is True


class TestIsExcluded:
    def test_glob_basename_match(self):
        assert is_excluded("path/to/bundle.min.js", ["*.min.js"]) is True

    def test_glob_full_path_match(self):
        assert is_excluded("src/generated/schema.py", ["src/generated/*.py"]) is True

    def test_directory_prefix_at_root(self):
        assert is_excluded("migrations/0001_initial.py", ["migrations/"]) is True

    def test_directory_prefix_nested(self):
        assert is_excluded("app/migrations/0001_initial.py", ["migrations"]) is True

    def test_no_false_positive_on_similar_name(self):
        assert is_excluded("test_helpers.py", ["tests/"]) is False

    def test_no_patterns(self):
        assert is_excluded("src/main.py", []) is False
        assert is_excluded("src/main.py", None) is False
