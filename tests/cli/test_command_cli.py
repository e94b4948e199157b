import argparse
from unittest import mock

import pytest

from git_refcache.cli.arguments import CLIArgumentNamespace, get_standard_options_parser
from git_refcache.cli.commands import add, add_recursive, ccache, jenkinsfile
from tests.fixtures import clean_env, patch_get_git_config  # noqa: F401


def parse(module, args, parents=None):
    subparsers = argparse.ArgumentParser().add_subparsers()
    if parents is None:
        parents = [get_standard_options_parser()]
    parser = module.add_subparser(subparsers, parents)
    with mock.patch.object(parser, "error") as err_func:
        err_func.side_effect = SystemExit()
        return parser.parse_args(args, namespace=CLIArgumentNamespace())


def test_add_requires_url():
    with pytest.raises(SystemExit):
        parse(add, [])


def test_add_rejects_blank_url():
    with pytest.raises(SystemExit):
        parse(add, ["  "])


@pytest.mark.parametrize(
    ("args", "mode", "urls"),
    [
        (["https://h/a.git"], "new", ["https://h/a.git"]),
        (["new", "https://h/a.git"], "new", ["https://h/a.git"]),
        (["all", "https://h/a.git", "https://h/b.git"], "all", ["https://h/a.git", "https://h/b.git"]),
        (["--mode", "all", "https://h/a.git"], "all", ["https://h/a.git"]),
    ],
)
def test_add_recursive_mode(args, mode, urls):
    parsed_args = parse(add_recursive, args)
    add_recursive.split_mode(parsed_args)
    assert parsed_args.recurse_mode == mode
    assert parsed_args.urls == urls


def test_add_recursive_mode_without_urls(tmp_path):
    parsed_args = parse(add_recursive, ["--root-dir", str(tmp_path), "all"])
    with mock.patch("git_refcache.cli.commands.add_recursive.add_recursive_main") as mocked:
        assert add_recursive.cli_main(parsed_args) == 1
    mocked.assert_not_called()


def test_ccache_default_action():
    assert parse(ccache, [], parents=[]).ccache_action == "clean"
    assert parse(ccache, ["ls-all"], parents=[]).ccache_action == "ls-all"
    with pytest.raises(SystemExit):
        parse(ccache, ["sweep"], parents=[])


def test_ccache_list_exit_code(tmp_path, monkeypatch, capsys):
    (tmp_path / "x.lock").symlink_to("far-away-host:1:1")
    monkeypatch.setenv("CCACHE_DIR", str(tmp_path))
    monkeypatch.setenv("TOO_OLD", "120")

    assert ccache.cli_main(parse(ccache, ["list"], parents=[])) == 42
    assert "far-away-host" in capsys.readouterr().out


def test_ccache_missing_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("CCACHE_DIR", str(tmp_path / "nope"))
    assert ccache.cli_main(parse(ccache, ["ls"], parents=[])) == 1


def test_ccache_clean_other_host(tmp_path, monkeypatch):
    (tmp_path / "x.lock").symlink_to("far-away-host:1:1")
    (tmp_path / "y.lock").symlink_to("elsewhere:1:1")
    monkeypatch.setenv("CCACHE_DIR", str(tmp_path))
    monkeypatch.setenv("CLEANHOST", "far-away")

    assert ccache.cli_main(parse(ccache, ["clean"], parents=[])) == 0
    assert not (tmp_path / "x.lock").is_symlink()
    assert (tmp_path / "y.lock").is_symlink()


@pytest.fixture
def jenkins_workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("pathlib.Path.home", lambda: tmp_path / "home")
    (tmp_path / "Jenkinsfile").write_text("pipeline {}\n")
    return tmp_path


@pytest.mark.parametrize(
    ("output_flag", "text", "expected"),
    [
        ([], '{"data": {"result": "failure", "errors": [{"error": "bad"}]}}', 0),
        (["-j"], '{"data": {"result": "failure", "errors": [{"error": "bad"}]}}', 1),
        (["-j"], '{"data": {"result": "success"}}', 0),
        (["-b"], '{"data": {"result": "failure", "errors": [{"error": "bad"}]}}', 1),
    ],
)
def test_jenkinsfile_outputs(jenkins_workdir, output_flag, text, expected):
    parsed_args = parse(jenkinsfile, output_flag, parents=[])
    with mock.patch("git_refcache.cli.commands.jenkinsfile.JenkinsValidator") as validator, mock.patch(
        "git_refcache.cli.commands.jenkinsfile.commit_script"
    ) as commit:
        validator.return_value.validate.return_value.text = text
        assert jenkinsfile.cli_main(parsed_args) == expected

    validator.return_value.validate.assert_called_once_with("pipeline {}\n")
    commit.assert_not_called()


def test_jenkinsfile_bump(jenkins_workdir):
    parsed_args = parse(jenkinsfile, ["-b", "--file", "Jenkinsfile"], parents=[])
    with mock.patch("git_refcache.cli.commands.jenkinsfile.JenkinsValidator") as validator, mock.patch(
        "git_refcache.cli.commands.jenkinsfile.commit_script"
    ) as commit:
        validator.return_value.validate.return_value.text = '{"data": {"result": "success"}}'
        commit.return_value = None
        assert jenkinsfile.cli_main(parsed_args) == 0
    commit.assert_called_once_with("Jenkinsfile")


def test_jenkinsfile_missing_file(jenkins_workdir):
    parsed_args = parse(jenkinsfile, ["--file", "nope"], parents=[])
    assert jenkinsfile.cli_main(parsed_args) == 1
