"""Tests for builds/fingerprint.py module.

Tests input hashing order, determinism and error handling.
"""

import hashlib
import logging

import pytest

from ci_image_cache.builds.fingerprint import (
    FINGERPRINT_LENGTH,
    FingerprintError,
    FingerprintInputs,
    collect_digests,
    compute_fingerprint,
    expand_cache_globs,
    resolve_build_arg,
)
from ci_image_cache.config import Settings


def sha1(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


@pytest.fixture
def workspace(tmp_path):
    """Create a build workspace with a Dockerfile and sources."""
    (tmp_path / "Dockerfile").write_bytes(b"FROM alpine\n")
    src = tmp_path / "src"
    src.mkdir()
    (src / "a.txt").write_bytes(b"X")
    (src / "b.txt").write_bytes(b"Y")
    return tmp_path


def make_inputs(**overrides) -> FingerprintInputs:
    values = {
        "dockerfile": "Dockerfile",
        "target": None,
        "architecture": "x86_64",
        "build_args": (),
        "cache_on": (),
    }
    values.update(overrides)
    return FingerprintInputs(**values)


class TestResolveBuildArg:
    """Tests for resolve_build_arg function."""

    def test_key_value_unchanged(self):
        """Should keep KEY=VALUE as given."""
        assert resolve_build_arg("A=1", {"A": "2"}) == "A=1"

    def test_bare_name_from_env(self):
        """Should append the environment value to a bare name."""
        assert resolve_build_arg("A", {"A": "2"}) == "A=2"

    def test_bare_name_unset(self):
        """Should append an empty value for an unset name."""
        assert resolve_build_arg("A", {}) == "A="

    def test_empty_value(self):
        """Should keep an explicit empty value."""
        assert resolve_build_arg("A=", {"A": "2"}) == "A="


class TestExpandCacheGlobs:
    """Tests for expand_cache_globs function."""

    def test_recursive_glob(self, workspace):
        """Should expand ** recursively and skip directories."""
        nested = workspace / "src" / "lib"
        nested.mkdir()
        (nested / "c.txt").write_bytes(b"Z")

        matches = [p.name for _, p in expand_cache_globs(["src/**"], workspace)]
        assert sorted(matches) == ["a.txt", "b.txt", "c.txt"]

    def test_declared_order(self, workspace):
        """Should expand patterns in declared order."""
        matches = [
            p.name
            for _, p in expand_cache_globs(["src/b.txt", "src/a.txt"], workspace)
        ]
        assert matches == ["b.txt", "a.txt"]

    def test_unmatched_pattern_skipped(self, workspace, caplog):
        """Should skip a pattern with no matches and log a warning."""
        with caplog.at_level(logging.WARNING):
            matches = list(expand_cache_globs(["missing/**/*.py"], workspace))
        assert matches == []
        assert "missing/**/*.py" in caplog.text

    def test_missing_recursive_directory_skipped(self, workspace, caplog):
        """Should skip dir/** when dir does not exist."""
        with caplog.at_level(logging.WARNING):
            matches = list(expand_cache_globs(["optional/**"], workspace))
        assert matches == []
        assert "optional/**" in caplog.text

    def test_directory_only_pattern_warns(self, workspace, caplog):
        """Should warn when a pattern matches only directories."""
        with caplog.at_level(logging.WARNING):
            matches = list(expand_cache_globs(["src", "*/"], workspace))
        assert matches == []
        assert "matched no files: src" in caplog.text
        assert "matched no files: */" in caplog.text


class TestCollectDigests:
    """Tests for collect_digests function."""

    def test_order(self, workspace):
        """Should hash Dockerfile, target, architecture, args, then files."""
        inputs = make_inputs(
            target="runtime",
            build_args=("A=1",),
            cache_on=("src/a.txt",),
        )
        digests = collect_digests(inputs, environ={}, base_dir=workspace)
        assert digests == [
            sha1(b"FROM alpine\n"),
            sha1(b"runtime"),
            sha1(b"x86_64"),
            sha1(b"A=1"),
            sha1(b"X"),
        ]

    def test_missing_dockerfile(self, tmp_path):
        """Should fail when the Dockerfile does not exist."""
        with pytest.raises(FingerprintError) as exc_info:
            collect_digests(make_inputs(), base_dir=tmp_path)
        assert exc_info.value.code == "dockerfile_not_found"

    def test_dangling_match(self, workspace):
        """Should fail when a matched file cannot be read."""
        (workspace / "src" / "broken").symlink_to(workspace / "nowhere")
        inputs = make_inputs(cache_on=("src/broken",))
        with pytest.raises(FingerprintError) as exc_info:
            collect_digests(inputs, base_dir=workspace)
        assert exc_info.value.code == "input_unreadable"

    def test_trace_goes_to_log(self, workspace, caplog):
        """Should log each input category and matched file."""
        inputs = make_inputs(build_args=("SECRET=hunter2",), cache_on=("src/a.txt",))
        with caplog.at_level(logging.INFO):
            collect_digests(inputs, environ={}, base_dir=workspace)
        assert "Dockerfile" in caplog.text
        assert "Architecture: x86_64" in caplog.text
        assert "SECRET" in caplog.text
        assert "hunter2" not in caplog.text
        assert "a.txt" in caplog.text


class TestComputeFingerprint:
    """Tests for compute_fingerprint function."""

    def test_reference_value(self, workspace):
        """Should be the truncated sha1 of the concatenated digests."""
        inputs = make_inputs(cache_on=("src/a.txt", "src/b.txt"))
        expected = sha1(
            (
                sha1(b"FROM alpine\n")
                + sha1(b"")
                + sha1(b"x86_64")
                + sha1(b"X")
                + sha1(b"Y")
            ).encode()
        )[:7]

        assert compute_fingerprint(inputs, base_dir=workspace) == expected

    def test_length_and_format(self, workspace):
        """Should return 7 lowercase hex characters."""
        result = compute_fingerprint(make_inputs(), base_dir=workspace)
        assert len(result) == FINGERPRINT_LENGTH
        int(result, 16)
        assert result == result.lower()

    def test_deterministic(self, workspace):
        """Same inputs should produce the same fingerprint."""
        inputs = make_inputs(build_args=("A=1",), cache_on=("src/**",))
        first = compute_fingerprint(inputs, environ={}, base_dir=workspace)
        second = compute_fingerprint(inputs, environ={}, base_dir=workspace)
        assert first == second

    def test_file_content_change(self, workspace):
        """Changing a matched file should change the fingerprint."""
        inputs = make_inputs(cache_on=("src/**",))
        before = compute_fingerprint(inputs, base_dir=workspace)
        (workspace / "src" / "b.txt").write_bytes(b"Y'")
        after = compute_fingerprint(inputs, base_dir=workspace)
        assert before != after

    def test_dockerfile_change(self, workspace):
        """Changing the Dockerfile should change the fingerprint."""
        before = compute_fingerprint(make_inputs(), base_dir=workspace)
        (workspace / "Dockerfile").write_bytes(b"FROM debian\n")
        after = compute_fingerprint(make_inputs(), base_dir=workspace)
        assert before != after

    def test_target_and_architecture(self, workspace):
        """Target and architecture should both affect the fingerprint."""
        base = compute_fingerprint(make_inputs(), base_dir=workspace)
        with_target = compute_fingerprint(
            make_inputs(target="runtime"), base_dir=workspace
        )
        arm = compute_fingerprint(
            make_inputs(architecture="aarch64"), base_dir=workspace
        )
        assert len({base, with_target, arm}) == 3

    def test_build_arg_order(self, workspace):
        """Reordering build args with different values should matter."""
        first = compute_fingerprint(
            make_inputs(build_args=("A=1", "B=2")), environ={}, base_dir=workspace
        )
        second = compute_fingerprint(
            make_inputs(build_args=("B=2", "A=1")), environ={}, base_dir=workspace
        )
        assert first != second

    def test_bare_build_arg_matches_explicit(self, workspace):
        """A bare arg resolved from the environment equals the explicit form."""
        bare = compute_fingerprint(
            make_inputs(build_args=("A",)), environ={"A": "1"}, base_dir=workspace
        )
        explicit = compute_fingerprint(
            make_inputs(build_args=("A=1",)), environ={}, base_dir=workspace
        )
        assert bare == explicit

    def test_bare_build_arg_env_change(self, workspace):
        """A bare arg should follow its environment value."""
        inputs = make_inputs(build_args=("A",))
        one = compute_fingerprint(inputs, environ={"A": "1"}, base_dir=workspace)
        two = compute_fingerprint(inputs, environ={"A": "2"}, base_dir=workspace)
        assert one != two

    def test_glob_order(self, workspace):
        """Matched file order should affect the fingerprint."""
        ab = compute_fingerprint(
            make_inputs(cache_on=("src/a.txt", "src/b.txt")), base_dir=workspace
        )
        ba = compute_fingerprint(
            make_inputs(cache_on=("src/b.txt", "src/a.txt")), base_dir=workspace
        )
        assert ab != ba

    def test_unmatched_glob_is_ignored(self, workspace):
        """A glob matching nothing should not change the fingerprint."""
        without = compute_fingerprint(make_inputs(), base_dir=workspace)
        with_empty = compute_fingerprint(
            make_inputs(cache_on=("nothing/**",)), base_dir=workspace
        )
        assert without == with_empty

    def test_missing_optional_directory(self, workspace, monkeypatch):
        """A recursive glob over a missing directory should be ignored."""
        monkeypatch.chdir(workspace)
        without = compute_fingerprint(make_inputs())
        with_optional = compute_fingerprint(make_inputs(cache_on=("optional/**",)))
        assert without == with_optional


class TestFingerprintInputs:
    """Tests for FingerprintInputs dataclass."""

    def test_from_settings(self):
        """Should copy the fingerprint related settings."""
        settings = Settings(
            dockerfile="app/Dockerfile",
            target="runtime",
            architecture="aarch64",
            build_args=["A=1"],
            cache_on=["src/**"],
        )
        inputs = FingerprintInputs.from_settings(settings)
        assert inputs == FingerprintInputs(
            dockerfile="app/Dockerfile",
            target="runtime",
            architecture="aarch64",
            build_args=("A=1",),
            cache_on=("src/**",),
        )
