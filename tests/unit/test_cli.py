"""Tests for the topic-watch CLI."""

import copy
import json
from pathlib import Path
from unittest.mock import patch

from typer.testing import CliRunner

from tests.unit.builders import TALK_PAGE_ITEMS
from tests.unit.fakes import FakeApi
from topic_watch.cli import app
from topic_watch.models.revision import RevisionInfo

runner = CliRunner()

TOPIC = "h-Alice-20220801120000"


def _write_revisions(tmp_path: Path) -> tuple[Path, Path]:
    new_items = copy.deepcopy(TALK_PAGE_ITEMS)
    new_items["discussiontoolspageinfo"]["threaditemshtml"][0]["replies"].append(
        {"type": "comment", "author": "Carol", "timestamp": "20220801130000", "html": "Me too"}
    )
    old = tmp_path / "old.json"
    new = tmp_path / "new.json"
    old.write_text(json.dumps(TALK_PAGE_ITEMS))
    new.write_text(json.dumps(new_items))
    return old, new


def test_diff_lists_new_comments(tmp_path: Path) -> None:
    old, new = _write_revisions(tmp_path)
    result = runner.invoke(app, ["diff", str(old), str(new), "--editor", "Carol"])
    assert result.exit_code == 0, result.output
    assert "1 new comments" in result.output
    assert "[Lunch & plans] Carol: Me too" in result.output


def test_diff_json_output(tmp_path: Path) -> None:
    old, new = _write_revisions(tmp_path)
    result = runner.invoke(app, ["diff", str(old), str(new), "-e", "Carol", "--json"])
    assert result.exit_code == 0, result.output
    (event,) = json.loads(result.output)
    assert event["topic_name"] == TOPIC
    assert event["comment_name"] == "c-Carol-20220801130000"
    assert event["mentioned_users"] == []


def test_diff_with_existing_keys(tmp_path: Path) -> None:
    old, new = _write_revisions(tmp_path)
    keys = tmp_path / "keys.json"
    keys.write_text(json.dumps([{"topic_name": TOPIC, "comment_name": "c-Carol-20220801130000"}]))
    result = runner.invoke(
        app, ["diff", str(old), str(new), "-e", "Carol", "--existing-keys", str(keys)]
    )
    assert result.exit_code == 0, result.output
    assert "0 new comments" in result.output


def test_diff_fails_on_invalid_keys_file(tmp_path: Path) -> None:
    old, new = _write_revisions(tmp_path)
    keys = tmp_path / "keys.json"
    for content in ("not json", json.dumps([{"topic_name": TOPIC}]), json.dumps([3])):
        keys.write_text(content)
        result = runner.invoke(app, ["diff", str(old), str(new), "-e", "Carol", "-k", str(keys)])
        assert result.exit_code == 1
        assert not isinstance(result.exception, (ValueError, KeyError, TypeError))


def test_diff_without_editor_reports_nothing(tmp_path: Path) -> None:
    old, new = _write_revisions(tmp_path)
    result = runner.invoke(app, ["diff", str(old), str(new)])
    assert result.exit_code == 0, result.output
    assert "0 new comments" in result.output


def test_diff_fails_on_invalid_file(tmp_path: Path) -> None:
    old, _new = _write_revisions(tmp_path)
    bad = tmp_path / "bad.json"
    bad.write_text("not json")
    result = runner.invoke(app, ["diff", str(old), str(bad), "-e", "Carol"])
    assert result.exit_code == 1


def test_init_creates_database(tmp_path: Path) -> None:
    data = tmp_path / "data"
    result = runner.invoke(app, ["init", "--data-dir", str(data)])
    assert result.exit_code == 0, result.output
    assert (data / "topic-watch.db").exists()
    assert "schema version 2" in result.output


def test_commands_require_database(tmp_path: Path) -> None:
    result = runner.invoke(app, ["subscribers", TOPIC, "--data-dir", str(tmp_path / "none")])
    assert result.exit_code == 1


def test_subscribe_and_list(data_dir: Path) -> None:
    result = runner.invoke(
        app,
        ["subscribe", "Bob", TOPIC, "--page", "Talk:Food", "--section", "Lunch",
         "--data-dir", str(data_dir)],
    )
    assert result.exit_code == 0, result.output

    result = runner.invoke(app, ["subscribers", TOPIC, "--data-dir", str(data_dir)])
    assert result.exit_code == 0, result.output
    assert "1 subscribers" in result.output
    assert "Bob" in result.output

    result = runner.invoke(app, ["subscriptions", "Bob", "--data-dir", str(data_dir)])
    assert "[Talk:Food] Lunch" in result.output


def test_unsubscribe_mutes(data_dir: Path) -> None:
    runner.invoke(
        app, ["subscribe", "Bob", TOPIC, "--page", "Talk:Food", "--data-dir", str(data_dir)]
    )
    result = runner.invoke(app, ["unsubscribe", "Bob", TOPIC, "--data-dir", str(data_dir)])
    assert result.exit_code == 0, result.output

    result = runner.invoke(app, ["subscriptions", "Bob", "--data-dir", str(data_dir)])
    assert "0 subscriptions" in result.output
    result = runner.invoke(app, ["subscriptions", "Bob", "--all", "--data-dir", str(data_dir)])
    assert "(muted)" in result.output


def test_unsubscribe_unknown(data_dir: Path) -> None:
    result = runner.invoke(app, ["unsubscribe", "Bob", TOPIC, "--data-dir", str(data_dir)])
    assert result.exit_code == 1


def test_persist_and_find(tmp_path: Path, data_dir: Path) -> None:
    old, _new = _write_revisions(tmp_path)
    args = ["persist", "100", "Talk:Food", str(old), "--data-dir", str(data_dir)]
    result = runner.invoke(app, args)
    assert result.exit_code == 0, result.output
    assert "Stored 4 thread items" in result.output

    result = runner.invoke(app, args)
    assert "already stored" in result.output

    result = runner.invoke(app, ["find", TOPIC, "--data-dir", str(data_dir)])
    assert result.exit_code == 0, result.output
    assert "[Talk:Food] revision 100  id=h-Lunch_&_plans-20220801120000" in result.output

    result = runner.invoke(
        app, ["find", "c-Alice-20220801120000-Lunch_&_plans", "--data-dir", str(data_dir)]
    )
    assert result.exit_code == 0, result.output
    assert "revision 100" in result.output


def test_find_unknown(data_dir: Path) -> None:
    result = runner.invoke(app, ["find", "h-nothing", "--data-dir", str(data_dir)])
    assert result.exit_code == 1


def test_events_command_notifies_subscribers(data_dir: Path) -> None:
    fake = FakeApi()
    new_items = copy.deepcopy(TALK_PAGE_ITEMS)
    new_items["discussiontoolspageinfo"]["threaditemshtml"][0]["replies"].append(
        {"type": "comment", "author": "Carol", "timestamp": "20220801130000", "html": "Me too"}
    )
    fake.add_revision(
        RevisionInfo(revision_id=1, page_title="Talk:Food", namespace=1, parent_id=None,
                     user="Alice"),
        TALK_PAGE_ITEMS,
    )
    fake.add_revision(
        RevisionInfo(revision_id=2, page_title="Talk:Food", namespace=1, parent_id=1,
                     user="Carol"),
        new_items,
    )
    for user in ("Bob", "Carol"):
        runner.invoke(
            app, ["subscribe", user, TOPIC, "--page", "Talk:Food", "--data-dir", str(data_dir)]
        )

    with patch("topic_watch.cli.MediaWikiApi", return_value=fake):
        result = runner.invoke(app, ["events", "2", "--notify", "--data-dir", str(data_dir)])

    assert result.exit_code == 0, result.output
    assert "1 new comments" in result.output
    assert "notify Bob" in result.output
    assert "Carol," not in result.output


def test_events_command_fails_for_unknown_revision() -> None:
    with patch("topic_watch.cli.MediaWikiApi", return_value=FakeApi()):
        result = runner.invoke(app, ["events", "5"])
    assert result.exit_code == 1
