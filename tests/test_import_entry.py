"""Tests for the single entry import script."""

import json

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from micropub_site.core.settings import settings
from micropub_site.scripts import import_entry as script
from micropub_site.services.post_service import PostStore

ENTRY = {
    "type": ["h-entry"],
    "properties": {"content": ["Imported"], "mp-slug": ["imported"], "category": ["archive"]},
}


@pytest.fixture(autouse=True)
def script_sessions(engine: Engine, monkeypatch) -> None:
    monkeypatch.setattr(script, "SessionLocal", sessionmaker(bind=engine))


def test_import_entry_stores_post(db_session: Session) -> None:
    slug = script.import_entry(json.dumps(ENTRY).encode())

    post = PostStore(db_session).get_by_slug(slug)
    assert slug == "imported"
    assert post.content == "Imported"
    assert post.category_names == ["archive"]
    assert post.client_id == script.IMPORT_CLIENT_ID


def test_main_reads_file_and_prints_url(tmp_path, capsys) -> None:
    path = tmp_path / "entry.json"
    path.write_text(json.dumps(ENTRY))

    assert script.main([str(path)]) == 0
    assert capsys.readouterr().out.strip() == settings.post_url("imported")


def test_main_reports_invalid_entries(tmp_path, capsys) -> None:
    path = tmp_path / "entry.json"
    path.write_text("{broken")

    assert script.main([str(path)]) == 1
    assert "invalid_request" in capsys.readouterr().err
