"""Tests for the local clone manager, against a real throwaway origin."""

import sys

import pytest

from reporunner.services.commands import CommandError, mask_secrets, run_command
from reporunner.services.git_repository import (
    EMPTY_TREE, GitRepository, RefResolutionError, SynchronizationError,
)

from conftest import commit_file, git, requires_git


@pytest.fixture()
def repo(origin, tmp_path):
    return GitRepository(str(origin), "main", tmp_path / "clone")


class TestCommands:
    @requires_git
    def test_output_lines_are_marked(self, tmp_path):
        lines = []
        run_command(["git", "--version"], cwd=tmp_path, log=lines.append)
        assert lines[0] == "$ git --version"
        assert lines[1].startswith("OUT> git version")

    @requires_git
    def test_failure_raises_with_masked_output(self, tmp_path):
        lines = []
        with pytest.raises(CommandError) as exc_info:
            run_command(["git", "no-such-command-tok123"], cwd=tmp_path, log=lines.append,
                        secrets=["tok123"])
        assert exc_info.value.returncode != 0
        assert "tok123" not in str(exc_info.value)
        assert all("tok123" not in line for line in lines)
        assert any(line.startswith("ERR>") for line in lines)

    def test_stdout_and_stderr_interleave_in_arrival_order(self, tmp_path):
        script = (
            "import sys, time\n"
            "print('first', flush=True)\n"
            "time.sleep(0.3)\n"
            "print('second', file=sys.stderr, flush=True)\n"
            "time.sleep(0.3)\n"
            "print('third', flush=True)\n"
        )
        lines = []
        result = run_command([sys.executable, "-c", script], cwd=tmp_path, log=lines.append)
        assert lines[1:] == ["OUT> first", "ERR> second", "OUT> third"]
        assert result.stdout == "first\nthird\n"
        assert result.stderr == "second\n"

    def test_missing_binary_raises(self, tmp_path):
        with pytest.raises(CommandError) as exc_info:
            run_command(["definitely-not-a-binary-xyz"], cwd=tmp_path, log=lambda _: None)
        assert exc_info.value.returncode == -1

    def test_mask_secrets_ignores_empty(self):
        assert mask_secrets("a b", ["", "b"]) == "a ***"


class TestAuthUri:
    def test_token_embedded_for_https(self, tmp_path):
        repo = GitRepository("https://example.org/o/r.git", "main", tmp_path / "c", token="tok")
        assert repo.auth_uri == "https://tok@example.org/o/r.git"

    def test_no_token(self, tmp_path):
        repo = GitRepository("https://example.org/o/r.git", "main", tmp_path / "c")
        assert repo.auth_uri == "https://example.org/o/r.git"


@requires_git
class TestSynchronize:
    def test_clones_when_missing(self, repo):
        assert not repo.has_clone()
        repo.synchronize(lambda _: None)
        assert repo.has_clone()
        assert (repo.directory / "README.md").read_text() == "hello\n"

    def test_pulls_new_commits(self, repo, origin):
        repo.synchronize(lambda _: None)
        commit_file(origin, "new.txt", "new\n", "Add new file")

        lines = []
        repo.synchronize(lines.append)
        assert (repo.directory / "new.txt").exists()
        assert "git pull successful" in lines

    def test_broken_clone_is_recloned(self, repo):
        repo.synchronize(lambda _: None)
        (repo.directory / ".git" / "HEAD").write_text("garbage\n")
        (repo.directory / "stray.txt").write_text("left over")

        lines = []
        repo.synchronize(lines.append)
        assert "git clone successful" in lines
        assert not (repo.directory / "stray.txt").exists()
        assert (repo.directory / "README.md").exists()

    def test_failed_reclone_raises(self, repo, origin, tmp_path):
        repo.synchronize(lambda _: None)
        (repo.directory / ".git" / "HEAD").write_text("garbage\n")
        origin.rename(tmp_path / "gone")

        with pytest.raises(SynchronizationError):
            repo.synchronize(lambda _: None)


@requires_git
class TestQueries:
    def test_resolve_hash(self, repo, origin):
        repo.synchronize(lambda _: None)
        head = git(origin, "rev-parse", "HEAD")
        assert repo.resolve_hash("HEAD") == head
        assert repo.resolve_hash(head[:8]) == head
        assert repo.resolve_hash("main") == head

    def test_unknown_ref(self, repo):
        repo.synchronize(lambda _: None)
        with pytest.raises(RefResolutionError):
            repo.resolve_hash("does-not-exist")

    def test_diff_between_commits(self, repo, origin):
        first = git(origin, "rev-parse", "HEAD")
        commit_file(origin, "docs/a.md", "a\n", "Add a")
        (origin / "README.md").write_text("changed\n")
        git(origin, "commit", "--quiet", "-am", "Change readme")
        git(origin, "rm", "--quiet", "docs/a.md")
        commit_file(origin, "b.md", "b\n", "Replace a with b")
        repo.synchronize(lambda _: None)

        changes = repo.diff(first, "HEAD")
        assert changes.added == ["b.md"]
        assert changes.modified == ["README.md"]
        assert changes.removed == []
        assert changes.from_ref == first
        assert changes.till == git(origin, "rev-parse", "HEAD")

    def test_symbolic_refs_resolve_to_full_hashes(self, repo, origin):
        commit_file(origin, "x.txt", "1\n", "Add x")
        (origin / "x.txt").write_text("2\n")
        git(origin, "commit", "--quiet", "-am", "Change x")
        git(origin, "rm", "--quiet", "README.md")
        commit_file(origin, "y.txt", "y\n", "Drop readme, add y")
        repo.synchronize(lambda _: None)

        changes = repo.diff("main~3", "main")
        assert changes.from_ref == git(origin, "rev-parse", "HEAD~3")
        assert changes.till == git(origin, "rev-parse", "HEAD")
        assert len(changes.from_ref) == len(changes.till) == 40
        assert (changes.added, changes.modified, changes.removed) == (["x.txt", "y.txt"], [], ["README.md"])
        paths = changes.added + changes.modified + changes.removed
        assert len(paths) == len(set(paths))

    def test_same_ref_diff_is_that_commit(self, repo, origin):
        commit_file(origin, "one.txt", "1\n", "One")
        second = commit_file(origin, "two.txt", "2\n", "Two")
        repo.synchronize(lambda _: None)

        changes = repo.diff(second, second)
        assert changes.added == ["two.txt"]
        assert changes.modified == []

    def test_root_commit_diff(self, repo, origin):
        root = git(origin, "rev-parse", "HEAD")
        repo.synchronize(lambda _: None)
        changes = repo.diff(root, root)
        assert changes.added == ["README.md"]

    def test_non_ascii_and_spaced_paths_are_unquoted(self, repo, origin):
        before = git(origin, "rev-parse", "HEAD")
        commit_file(origin, "café.txt", "au lait\n", "Add café")
        commit_file(origin, "with space.md", "x\n", "Add spaced name")
        repo.synchronize(lambda _: None)

        changes = repo.diff(before, "HEAD")
        assert changes.added == ["café.txt", "with space.md"]
        assert changes.modified == changes.removed == []

    def test_single_commit_adding_non_ascii_path(self, repo, origin):
        added = commit_file(origin, "café.txt", "au lait\n", "Add café")
        repo.synchronize(lambda _: None)
        assert repo.diff(added, added).added == ["café.txt"]

    def test_empty_tree_constant(self, tmp_path):
        git(tmp_path, "init", "--quiet")
        assert git(tmp_path, "hash-object", "-t", "tree", "/dev/null") == EMPTY_TREE

    def test_rename_is_remove_plus_add(self, repo, origin):
        before = git(origin, "rev-parse", "HEAD")
        git(origin, "mv", "README.md", "README.txt")
        git(origin, "commit", "--quiet", "-m", "Rename")
        repo.synchronize(lambda _: None)

        changes = repo.diff(before)
        assert changes.added == ["README.txt"]
        assert changes.removed == ["README.md"]


@requires_git
class TestCommitAndPush:
    def test_commit_and_push(self, repo, origin):
        repo.synchronize(lambda _: None)
        (repo.directory / "generated.txt").write_text("output\n")

        assert repo.commit("Bot", "bot@example.org", "Generate output")
        repo.push()

        assert git(origin, "log", "-1", "--format=%s|%an|%ae", "main") == "Generate output|Bot|bot@example.org"

    def test_nothing_to_commit(self, repo):
        repo.synchronize(lambda _: None)
        lines = []
        assert repo.commit("Bot", "bot@example.org", "Nothing", lines.append) is False
        assert "Nothing to commit" in lines
