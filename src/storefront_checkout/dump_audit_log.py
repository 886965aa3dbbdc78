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

"""Utility script to dump checkout audit entries from the database.

This script reads and displays the audit trail written by the checkout
service: timestamp, action, status and details of each entry. It can be
narrowed to a single checkout session or a single action.

Usage:
  python -m storefront_checkout.dump_audit_log --audit_db_path=... \
      [--checkout_id=...] [--action=payment_failed]
"""

import asyncio
import json
import sys

from absl import app as absl_app
from absl import flags
from storefront_checkout import db

FLAGS = flags.FLAGS
# audit_db_path is shared with the server flags.
try:
  flags.DEFINE_string("audit_db_path", None, "Path to the audit DB")
except flags.DuplicateFlagError:
  pass
flags.DEFINE_string("checkout_id", None, "Only show this checkout session")
flags.DEFINE_string("action", None, "Only show entries with this action")


def format_entry(entry: db.AuditEntry) -> str:
  """Renders one audit entry as a block of text."""
  lines = [
      f"[{entry.timestamp}] {entry.action} ({entry.status},"
      f" {entry.severity})"
  ]
  if entry.resource_id:
    lines.append(f"  {entry.resource.capitalize()} ID: {entry.resource_id}")
  if entry.details:
    lines.append(f"  Details: {json.dumps(entry.details, indent=2)}")
  return "\n".join(lines)


async def dump_entries() -> None:
  """Queries the database and prints audit entries."""
  if not FLAGS.audit_db_path:
    print("Error: --audit_db_path is required.")
    sys.exit(1)

  manager = db.DatabaseManager()
  await manager.init_db(FLAGS.audit_db_path)
  try:
    async with manager.session_factory() as session:
      print("=== AUDIT ENTRIES ===")
      entries = await db.get_audit_entries(
          session, resource_id=FLAGS.checkout_id, action=FLAGS.action
      )
      if not entries:
        print("No audit entries found.")
        return
      for entry in entries:
        print(format_entry(entry))
        print("-" * 40)
  finally:
    await manager.close()


def main(argv):
  """Main entry point for the audit dump script."""
  del argv
  asyncio.run(dump_entries())


def run() -> None:
  absl_app.run(main)


if __name__ == "__main__":
  run()
