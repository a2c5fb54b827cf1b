"""Tests for submodule commit synthesis."""

import pytest
from dulwich.objects import S_IFGITLINK

from conftest import IDENTITY
from supermanifest.errors import ConflictError, InternalError
from supermanifest.git import synthesizer as synthesizer_module
from supermanifest.git.gitmodules import SubmoduleEntry, parse_gitmodules, render_gitmodules
from supermanifest.git.store import RefUpdateResult, RemoteReader, RepoCache
from supermanifest.git.synthesizer import SubmoduleSynthesizer, is_valid_tree_path, write_tree
from supermanifest.manifest.model import ManifestProject

TARGET = "refs/heads/nyc"
PINNED = "0123456789abcdef0123456789abcdef01234567"


def project(name, path, remote, **kw):
    return ManifestProject(name=name, path=path, remote=remote, **kw).with_defaults()


@pytest.fixture
def hosted(host):
    """A superproject and two projects on the host."""
    host.create("superproject")
    tips = {
        "platform/project0": host.commit("platform/project0", {"README": "p0"}),
        "platform/project1": host.commit("platform/project1", {"README": "p1"}),
    }
    return host, tips


def synthesize(host, projects, ref=TARGET):
    with RepoCache(host.store) as cache:
        synth = SubmoduleSynthesizer(RemoteReader(cache), IDENTITY)
        return synth.synthesize(cache.open_by_name("superproject"), "superproject", ref, projects)


class TestSynthesize:
    def test_gitlinks_and_gitmodules(self, hosted):
        host, tips = hosted
        result = synthesize(host, [
            project("project1", "p1", host.url("platform/project1")),
            project("project0", "p0", host.url("platform/project0")),
        ])

        assert result.result is RefUpdateResult.NEW
        assert result.previous is None
        assert result.kept == ["p0", "p1"]
        assert host.tip("superproject", TARGET) == result.commit_id

        tree = host.tree("superproject", TARGET)
        assert tree["p0"] == (S_IFGITLINK, tips["platform/project0"])
        assert tree["p1"] == (S_IFGITLINK, tips["platform/project1"])

        modules = parse_gitmodules(host.read("superproject", TARGET, ".gitmodules"))
        assert modules["p0"] == {
            "branch": "master",
            "path": "p0",
            "url": "../platform/project0",
        }

    def test_commit_metadata(self, hosted):
        host, _ = hosted
        synthesize(host, [project("project0", "p0", host.url("platform/project0"))])
        repo = host.store.open_by_name("superproject")
        try:
            commit = repo[repo.refs[TARGET.encode()]]
            assert commit.author == IDENTITY
            assert commit.committer == IDENTITY
            assert commit.message == b"Added repo manifest.\n"
            assert commit.parents == []
        finally:
            repo.close()

    def test_parent_is_previous_tip(self, hosted):
        host, _ = hosted
        projects = [project("project0", "p0", host.url("platform/project0"))]
        first = synthesize(host, projects)
        second = synthesize(host, projects)
        assert second.previous == first.commit_id
        assert second.result is RefUpdateResult.FAST_FORWARD
        assert host.parents("superproject", TARGET) == [first.commit_id]
        assert second.tree_id == first.tree_id

    def test_external_project_keeps_absolute_url(self, hosted):
        host, _ = hosted
        result = synthesize(host, [
            project("ext", "ext", "https://other.example/ext", revision=PINNED),
        ])
        assert result.kept == ["ext"]
        modules = parse_gitmodules(host.read("superproject", TARGET, ".gitmodules"))
        assert modules["ext"]["url"] == "https://other.example/ext"
        assert modules["ext"]["branch"] == PINNED
        assert host.tree("superproject", TARGET)["ext"] == (S_IFGITLINK, PINNED)

    def test_uppercase_pinned_revision(self, hosted):
        host, _ = hosted
        result = synthesize(host, [
            project("ext", "ext", "https://other.example/ext", revision=PINNED.upper()),
        ])
        assert result.kept == ["ext"]
        assert host.tree("superproject", TARGET)["ext"] == (S_IFGITLINK, PINNED)
        modules = parse_gitmodules(host.read("superproject", TARGET, ".gitmodules"))
        assert modules["ext"]["branch"] == PINNED

    @pytest.mark.parametrize("path", ["", "/", "a//b", "../escape", "a/./b", ".", "a/.."])
    def test_invalid_path_skipped(self, hosted, caplog, path):
        host, tips = hosted
        result = synthesize(host, [
            project("bad", path, "https://other.example/bad", revision=PINNED),
            project("project0", "p0", host.url("platform/project0")),
        ])
        assert result.kept == ["p0"]
        assert result.skipped == [path]
        assert "invalid path" in caplog.text
        tree = host.tree("superproject", TARGET)
        assert tree == {
            "p0": (S_IFGITLINK, tips["platform/project0"]),
            ".gitmodules": tree[".gitmodules"],
        }
        modules = parse_gitmodules(host.read("superproject", TARGET, ".gitmodules"))
        assert list(modules) == ["p0"]

    def test_nested_project_skipped(self, hosted, caplog):
        host, _ = hosted
        result = synthesize(host, [
            project("inner", "a/b", "https://other.example/inner", revision=PINNED),
            project("outer", "a", "https://other.example/outer", revision=PINNED),
            project("sibling", "ab", "https://other.example/sibling", revision=PINNED),
        ])
        assert result.kept == ["a", "ab"]
        assert result.skipped == ["a/b"]
        assert "nested submodules" in caplog.text
        assert set(host.tree("superproject", TARGET)) == {"a", "ab", ".gitmodules"}

    def test_deep_paths_build_subtrees(self, hosted):
        host, tips = hosted
        synthesize(host, [project("project0", "src/lib/p0", host.url("platform/project0"))])
        tree = host.tree("superproject", TARGET)
        assert tree["src/lib/p0"] == (S_IFGITLINK, tips["platform/project0"])

    def test_unresolvable_project_skipped(self, hosted, caplog):
        host, _ = hosted
        result = synthesize(host, [
            project("project0", "p0", host.url("platform/project0")),
            project("gone", "gone", host.url("platform/gone")),
            project("project1", "p1", host.url("platform/project1"), remote_branch="nope"),
        ])
        assert result.kept == ["p0"]
        assert sorted(result.skipped) == ["gone", "p1"]
        assert "skipping" in caplog.text
        modules = parse_gitmodules(host.read("superproject", TARGET, ".gitmodules"))
        assert list(modules) == ["p0"]

    def test_history_depth(self, hosted, caplog):
        host, _ = hosted
        synthesize(host, [
            project("project0", "p0", host.url("platform/project0"), history_depth=1),
            project("project1", "p1", host.url("platform/project1"), history_depth=5),
        ])
        modules = parse_gitmodules(host.read("superproject", TARGET, ".gitmodules"))
        assert modules["p0"]["shallow"] == "true"
        assert modules["p1"]["shallow"] == "true"
        assert "historydepth other than 1" in caplog.text

    def test_empty_project_list(self, hosted):
        host, _ = hosted
        result = synthesize(host, [])
        assert result.kept == []
        assert set(host.tree("superproject", TARGET)) == {".gitmodules"}


class TestRefUpdateFailures:
    def test_concurrent_update_is_a_conflict(self, hosted, monkeypatch):
        host, _ = hosted
        projects = [project("project0", "p0", host.url("platform/project0"))]
        first = synthesize(host, projects)
        synthesize(host, projects)

        # Reads a stale tip, as if another writer moved the branch meanwhile.
        monkeypatch.setattr(synthesizer_module, "current_tip", lambda repo, ref: first.commit_id)
        tip = host.tip("superproject", TARGET)
        with pytest.raises(ConflictError) as exc:
            synthesize(host, projects)
        assert exc.value.ref == TARGET
        assert exc.value.result == "rejected"
        assert host.tip("superproject", TARGET) == tip

    def test_other_failures_are_internal(self, hosted, monkeypatch):
        host, _ = hosted
        monkeypatch.setattr(
            synthesizer_module, "update_ref", lambda *a: RefUpdateResult.IO_FAILURE
        )
        with pytest.raises(InternalError):
            synthesize(host, [])

    def test_lock_failure_is_a_conflict(self, hosted, monkeypatch):
        host, _ = hosted
        monkeypatch.setattr(
            synthesizer_module, "update_ref", lambda *a: RefUpdateResult.LOCK_FAILURE
        )
        with pytest.raises(ConflictError, match="lock-held"):
            synthesize(host, [])


class TestWriteTree:
    @pytest.mark.parametrize("path,valid", [
        ("p0", True),
        ("src/lib/p0", True),
        ("..p", True),
        ("", False),
        ("a//b", False),
        ("../escape", False),
        ("a/./b", False),
    ])
    def test_is_valid_tree_path(self, path, valid):
        assert is_valid_tree_path(path) is valid

    def test_file_and_directory_clash(self, host):
        host.create("x")
        repo = host.store.open_by_name("x")
        try:
            with pytest.raises(InternalError):
                write_tree(repo, [
                    ("a", S_IFGITLINK, PINNED.encode()),
                    ("a/b", S_IFGITLINK, PINNED.encode()),
                ])
        finally:
            repo.close()


class TestGitmodules:
    def test_section_layout(self):
        text = render_gitmodules([
            SubmoduleEntry(path="p0", url="../p0", branch="master", shallow=True),
        ]).decode()
        assert '[submodule "p0"]' in text
        lines = [line.strip() for line in text.splitlines()[1:]]
        assert lines == ["branch = master", "shallow = true", "path = p0", "url = ../p0"]

    def test_empty(self):
        assert render_gitmodules([]) == b""
