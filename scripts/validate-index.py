#!/usr/bin/env python3
"""Check an index.yaml by hand before pointing k1space at it."""
import sys

from k1space.errors import K1spaceError
from k1space.logging import setup_logger
from k1space.registry import RecordStore
from k1space.schema import EXPECTED_FLAGS


def fail(msg):
    print(f"❌ {msg}")
    sys.exit(1)


if len(sys.argv) != 2:
    fail("Usage: validate-index.py <path/to/index.yaml>")

logger = setup_logger("k1space.validate")
store = RecordStore(path=sys.argv[1])
logger.info("Validating %s", store.path)
if not store.path.exists():
    fail(f"{store.path} does not exist")

try:
    store.load()
except K1spaceError as e:
    fail(str(e))

for token, key, record in store.entries():
    if key is None:
        fail(f"Invalid configuration key: {token}")
    if len(record.files) != 3:
        print(f"⚠️  {token} lists {len(record.files)} files, expected 3")
    missing = [flag for flag in EXPECTED_FLAGS if flag not in record.flags]
    if missing:
        print(f"⚠️  {token} is missing baseline flags: {', '.join(missing)} (padded on next update)")

print(f"✅ {store.path} validation passed ({len(store)} configs).")
