from sqlalchemy import Column, Date, Float, Integer, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class MixingIssue(Base):
    """Model for mixing_issue: one row per mixing issued to a line."""

    __tablename__ = "mixing_issue"

    id = Column(Integer, primary_key=True, autoincrement=True)
    unit = Column(String(20))
    line = Column(String(20))
    cotton = Column(String(50))
    mixing_no = Column(String(20), index=True)
    issue_date = Column(Date, index=True)

    def __repr__(self):
        return f"<MixingIssue(mixing_no={self.mixing_no}, cotton={self.cotton}, issue_date={self.issue_date})>"


class MixingChart(Base):
    """Model for mixing_chart: bales of each lot laid down in a mixing."""

    __tablename__ = "mixing_chart"

    id = Column(Integer, primary_key=True, autoincrement=True)
    mixing_no = Column(String(20), index=True)
    unit = Column(String(20))
    line = Column(String(20))
    cotton = Column(String(50))
    lot_no = Column(String(30), index=True)
    issue_bale = Column(Float)

    def __repr__(self):
        return f"<MixingChart(mixing_no={self.mixing_no}, lot_no={self.lot_no}, issue_bale={self.issue_bale})>"


class LotResults(Base):
    """Model for lot_results: HVI test results per cotton lot."""

    __tablename__ = "lot_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    lot_no = Column(String(30), index=True)
    variety = Column(String(50))
    uhml = Column(Float)
    str = Column(Float)
    mic = Column(Float)
    rd = Column(Float)
    plus_b = Column(Float)
    sf = Column(Float)
    ui = Column(Float)
    elong = Column(Float)
    trash = Column(Float)
    moist = Column(Float)
    min_mic = Column(Float)
    min_mic_bale_per_lot = Column(Float)
    no_of_bale = Column(Float)

    def __repr__(self):
        return f"<LotResults(lot_no={self.lot_no}, variety={self.variety})>"


class MixingCode(Base):
    """Model for mixing_code: variety -> cotton name and blend weight."""

    __tablename__ = "mixing_code"

    id = Column(Integer, primary_key=True, autoincrement=True)
    variety = Column(String(50), index=True)
    cotton_name = Column(String(50))
    weight = Column(Float)

    def __repr__(self):
        return f"<MixingCode(variety={self.variety}, cotton_name={self.cotton_name}, weight={self.weight})>"
