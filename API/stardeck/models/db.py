from sqlalchemy import (
    Column, String, Integer, DateTime, ForeignKey, Boolean, Text, UniqueConstraint
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func
from uuid import uuid4

Base = declarative_base()

def gen_uuid():
    return str(uuid4())

class DeployLogDB(Base):
    __tablename__ = "deploy_logs"

    id = Column(String, primary_key=True, default=gen_uuid)
    image = Column(String, nullable=False)
    name = Column(String, nullable=True)
    replace_id = Column(String, nullable=True)     # container replaced in edit mode
    container_id = Column(String, nullable=True)   # engine id of the created container
    outcome = Column(String, default="running")    # running / complete / failed / abandoned
    started_at = Column(DateTime(timezone=True), server_default=func.now())
    finished_at = Column(DateTime(timezone=True), nullable=True)

class DeployLogEntryDB(Base):
    __tablename__ = "deploy_log_entries"
    __table_args__ = (UniqueConstraint("log_id", "seq"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    log_id = Column(String, ForeignKey("deploy_logs.id"), nullable=False, index=True)
    seq = Column(Integer, nullable=False)
    step = Column(String, nullable=False)
    message = Column(Text, nullable=False, default="")
    error = Column(Boolean, default=False, nullable=False)
    complete = Column(Boolean, default=False, nullable=False)
    output = Column(Boolean, default=False, nullable=False)
