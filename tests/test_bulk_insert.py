from datetime import datetime, timezone

from sqlalchemy import func, select

from reqlog.config import get_settings
from reqlog.db.models import Base, RequestLog
from reqlog.db.session import create_db_engine, get_sessionmaker
from reqlog.services.bulk_insert import LoggingBulkInserter, SqlBulkInserter, build_bulk_inserter


def _sqlite_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'logs.db'}"


async def test_sql_inserter_writes_every_entry(tmp_path, make_entry) -> None:
    engine = create_db_engine(_sqlite_url(tmp_path))
    Base.metadata.create_all(engine)
    inserter = SqlBulkInserter(get_sessionmaker(engine))

    entries = [
        make_entry(path="/a", params={"id": "1"}, sessions={"user": "ada"}),
        make_entry(path="/b", error="ECONNRESET", stack_trace="Traceback ...", status_code=500),
    ]
    result = await inserter.insert(entries)

    assert result.ok is True
    assert result.count == 2
    with get_sessionmaker(engine)() as db:
        rows = db.execute(select(RequestLog).order_by(RequestLog.start_time_ms)).scalars().all()
    assert [row.path for row in rows] == ["/a", "/b"]
    assert rows[0].params == {"id": "1"}
    assert rows[0].sessions == {"user": "ada"}
    assert rows[0].timestamp.replace(tzinfo=timezone.utc) == datetime(2026, 10, 17, 9, 0, tzinfo=timezone.utc)
    assert rows[1].error == "ECONNRESET"
    assert rows[1].status_code == 500


async def test_sql_inserter_reports_failure_without_raising(tmp_path, make_entry) -> None:
    # No tables created.
    engine = create_db_engine(_sqlite_url(tmp_path))
    inserter = SqlBulkInserter(get_sessionmaker(engine))

    result = await inserter.insert([make_entry()])

    assert result.ok is False
    assert result.error


async def test_sql_inserter_with_empty_batch_is_a_noop(tmp_path) -> None:
    engine = create_db_engine(_sqlite_url(tmp_path))
    Base.metadata.create_all(engine)

    result = await SqlBulkInserter(get_sessionmaker(engine)).insert([])

    assert result.ok is True
    with get_sessionmaker(engine)() as db:
        assert db.execute(select(func.count()).select_from(RequestLog)).scalar_one() == 0


async def test_placeholder_inserter_reports_success(make_entry) -> None:
    result = await LoggingBulkInserter().insert([make_entry(), make_entry()])
    assert result.ok is True
    assert result.count == 2


def test_build_bulk_inserter_follows_sink_setting(monkeypatch, tmp_path) -> None:
    assert isinstance(build_bulk_inserter(get_settings()), LoggingBulkInserter)

    monkeypatch.setenv("LOG_DB_SINK", "sql")
    monkeypatch.setenv("DATABASE_URL", _sqlite_url(tmp_path))
    get_settings.cache_clear()
    assert isinstance(build_bulk_inserter(get_settings()), SqlBulkInserter)
