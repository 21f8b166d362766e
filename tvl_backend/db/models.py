from sqlalchemy import Column, Integer, BigInteger, String, Float, Numeric, JSON, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Amounts are stored in base units, so they overflow BIGINT for 18-decimal tokens
TokenAmount = Numeric(80, 0)

class ReportRecord(Base):
    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, index=True)
    timestamp = Column(BigInteger, nullable=False)
    project_id = Column(String, nullable=False)
    chain_id = Column(String, nullable=False)
    asset_id = Column(String, nullable=False)
    report_type = Column(String, nullable=False)  # CBV, EBV, NMV
    amount = Column(TokenAmount, nullable=False)
    usd_value = Column(BigInteger, nullable=False)  # cents

    __table_args__ = (
        Index('ix_reports_timestamp', 'timestamp'),
        Index('ix_reports_detailed', 'project_id', 'chain_id', 'asset_id', 'report_type', 'timestamp'),
    )

class AggregatedReportRecord(Base):
    __tablename__ = "aggregated_reports"

    id = Column(Integer, primary_key=True, index=True)
    timestamp = Column(BigInteger, nullable=False, index=True)
    project_id = Column(String, nullable=False)
    report_type = Column(String, nullable=False)
    usd_value = Column(BigInteger, nullable=False)

class AggregatedReportStatusRecord(Base):
    __tablename__ = "aggregated_reports_status"

    id = Column(Integer, primary_key=True, index=True)
    timestamp = Column(BigInteger, nullable=False, index=True)
    config_hash = Column(String, nullable=False)

class BalanceRecord(Base):
    __tablename__ = "balances"

    id = Column(Integer, primary_key=True, index=True)
    timestamp = Column(BigInteger, nullable=False, index=True)
    holder_address = Column(String, nullable=False)
    asset_id = Column(String, nullable=False)
    chain_id = Column(String, nullable=False)
    balance = Column(TokenAmount, nullable=False)

class PriceRecord(Base):
    __tablename__ = "prices"

    id = Column(Integer, primary_key=True, index=True)
    timestamp = Column(BigInteger, nullable=False, index=True)
    asset_id = Column(String, nullable=False)
    price_usd = Column(Float, nullable=False)

class CachedDataRecord(Base):
    __tablename__ = "cached_data"

    # only one row should exist
    id = Column(Integer, primary_key=True)
    unix_timestamp = Column(BigInteger, nullable=False)
    data = Column(JSON, nullable=False)
