#   Copyright 2026 UCP Authors
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.

"""Persistence layer for checkout audit entries.

Checkout sessions themselves are ephemeral and live in memory; the only thing
the service persists is its audit trail. This module holds the schema, the
`DatabaseManager` that owns the async engine and session factory, and the data
access helpers. It uses SQLAlchemy with SQLite (via aiosqlite).
"""

import datetime
import logging
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from sqlalchemy import Column
from sqlalchemy import Integer
from sqlalchemy import JSON
from sqlalchemy import select
from sqlalchemy import String
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker

logger = logging.getLogger(__name__)

AuditBase = declarative_base()


class DatabaseManager:
  """Owns the audit database engine and session factory."""

  def __init__(self) -> None:
    self.engine: Optional[AsyncEngine] = None
    self.session_factory: Optional[sessionmaker] = None

  @property
  def ready(self) -> bool:
    return self.session_factory is not None

  async def init_db(self, path: str) -> None:
    """Creates the engine and the audit tables."""
    url = f"sqlite+aiosqlite:///{path}"
    self.engine = create_async_engine(url, echo=False)

    # WAL lets dump_audit_log read while the server writes.
    async with self.engine.connect() as conn:
      await conn.execute(text("PRAGMA journal_mode=WAL"))

    self.session_factory = sessionmaker(
        self.engine, expire_on_commit=False, class_=AsyncSession
    )

    async with self.engine.begin() as conn:
      await conn.run_sync(AuditBase.metadata.create_all)
    logger.info("Audit database ready at %s", path)

  async def close(self) -> None:
    if self.engine:
      await self.engine.dispose()
    self.engine = None
    self.session_factory = None


class AuditEntry(AuditBase):
  __tablename__ = "audit_entries"

  id = Column(Integer, primary_key=True, autoincrement=True)
  timestamp = Column(String)
  action = Column(String, index=True)
  resource = Column(String)
  resource_id = Column(String, nullable=True, index=True)
  status = Column(String)
  severity = Column(String)
  details = Column(JSON, nullable=True)


async def log_audit_entry(
    session: AsyncSession,
    action: str,
    resource: str,
    resource_id: Optional[str] = None,
    status: str = "success",
    severity: str = "low",
    details: Optional[Dict[str, Any]] = None,
) -> AuditEntry:
  """Adds an audit entry to the session. The caller commits."""
  entry = AuditEntry(
      timestamp=datetime.datetime.now(datetime.timezone.utc).isoformat(),
      action=action,
      resource=resource,
      resource_id=resource_id,
      status=status,
      severity=severity,
      details=details,
  )
  session.add(entry)
  return entry


async def get_audit_entries(
    session: AsyncSession,
    resource_id: Optional[str] = None,
    action: Optional[str] = None,
) -> List[AuditEntry]:
  """Retrieves audit entries in insertion order.

  Args:
    session: The database session.
    resource_id: If set, only entries about this checkout session.
    action: If set, only entries with this action.

  Returns:
    The matching entries.
  """
  query = select(AuditEntry).order_by(AuditEntry.id)
  if resource_id is not None:
    query = query.where(AuditEntry.resource_id == resource_id)
  if action is not None:
    query = query.where(AuditEntry.action == action)
  result = await session.execute(query)
  return list(result.scalars().all())
