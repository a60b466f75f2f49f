# rest_client/models.py
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, Index
import datetime

from rest_client.db import Base


class RequestRecord(Base):
    __tablename__ = "request_history"
    __table_args__ = (
        Index("ix_request_history_method_status", "method", "status"),
    )

    id = Column(Integer, primary_key=True)
    method = Column(String(16), nullable=False)
    url = Column(Text, nullable=False)
    headers = Column(JSON, nullable=False, default=dict)
    body = Column(Text, nullable=True)
    response = Column(Text, nullable=False)
    status = Column(Integer, nullable=False)
    response_time = Column(Integer, nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.datetime.now(datetime.timezone.utc),
        index=True,
        nullable=False,
    )
