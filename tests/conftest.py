import pytest
from sqlalchemy import create_engine, insert
from sqlalchemy.pool import StaticPool

from mixing.models import Base, LotResults, MixingChart, MixingCode, MixingIssue
from mixing.records import LotResult, MixingRow, VarietyWeight


@pytest.fixture
def sqlite_engine():
    """In-memory SQLite database with the four source tables."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def seed(sqlite_engine):
    """Insert rows into the source tables: seed(issues=[...], charts=[...], lots=[...], codes=[...])."""
    def _seed(issues=(), charts=(), lots=(), codes=()):
        with sqlite_engine.begin() as conn:
            for model, rows in (
                (MixingIssue, issues),
                (MixingChart, charts),
                (LotResults, lots),
                (MixingCode, codes),
            ):
                for row in rows:
                    conn.execute(insert(model).values(**row))
        return sqlite_engine
    return _seed


def make_row(mixing_no, lot_no, bales, unit="1", line="A", blend_code="25_31_V1"):
    return MixingRow(
        mixing_no=mixing_no, unit=unit, line=line, blend_code=blend_code,
        lot_no=lot_no, issue_bale=bales,
    )


def make_lot(lot_no, variety="", **metrics):
    return LotResult(lot_no=lot_no, variety=variety, metrics=metrics)


@pytest.fixture
def row_factory():
    return make_row


@pytest.fixture
def lot_factory():
    return make_lot


@pytest.fixture
def varieties():
    return [
        VarietyWeight("V-DCH", "DCH", 1.0),
        VarietyWeight("V-MCU", "MCU5", 1.0),
        VarietyWeight("V-SHK", "Shankar", 1.0),
        VarietyWeight("V-UNNAMED", "", 1.0),
    ]
