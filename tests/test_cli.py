"""Tests for the command-line entry point."""

from unittest.mock import AsyncMock, patch

from portfolio_sync.cli import main, parse_args
from portfolio_sync.fetchers.notion import NotionAPIError, NotionClient


def test_parse_args_defaults():
    args = parse_args(["projects"])
    assert args.pipeline == "projects"
    assert args.root == "."
    assert args.content_format is None
    assert args.concurrent is None


def test_missing_credentials_exit_non_zero(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    assert main(["articles", "--root", str(tmp_path)]) == 1
    assert not (tmp_path / "data").exists()


def test_missing_collection_id(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("NOTION_API_KEY", "token")

    with patch.object(NotionClient, "query_collection") as query:
        assert main(["projects", "--root", str(tmp_path)]) == 1
    query.assert_not_called()


def test_query_failure_exit_non_zero(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("NOTION_API_KEY", "token")
    monkeypatch.setenv("NOTION_DATABASE_ID", "db")

    with patch.object(NotionClient, "query_collection", side_effect=NotionAPIError("unauthorized", status=401)):
        assert main(["articles", "--root", str(tmp_path)]) == 1
    assert not (tmp_path / "data" / "articles.json").exists()


def test_success_exit_zero(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    run_sync = AsyncMock(return_value=tmp_path / "data" / "articles.json")

    with patch("portfolio_sync.cli.run_sync", run_sync):
        assert main(["all", "--root", str(tmp_path), "--format", "blocks", "--concurrent"]) == 0

    assert [c.args[0] for c in run_sync.call_args_list] == ["articles", "projects"]
    assert run_sync.call_args.kwargs["content_format"] == "blocks"
    assert run_sync.call_args.kwargs["concurrent"] is True


def test_all_runs_projects_after_articles_fail(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    async def run_sync(name, config, **kwargs):
        if name == "articles":
            raise NotionAPIError("unauthorized", status=401)
        return tmp_path / "data" / "projects.json"

    with patch("portfolio_sync.cli.run_sync", AsyncMock(side_effect=run_sync)) as mocked:
        assert main(["all", "--root", str(tmp_path)]) == 1

    assert [c.args[0] for c in mocked.call_args_list] == ["articles", "projects"]


def test_all_runs_projects_after_missing_articles_credentials(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("NOTION_API_KEY", "token")
    monkeypatch.setenv("NOTION_PROJECTS_DATABASE_ID", "projects-db")

    with patch.object(NotionClient, "query_collection", return_value=[]) as query:
        assert main(["all", "--root", str(tmp_path)]) == 1

    query.assert_called_once()
    assert (tmp_path / "data" / "projects.json").exists()
    assert not (tmp_path / "data" / "articles.json").exists()
