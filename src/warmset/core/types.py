"""Type aliases used across warmset."""

from __future__ import annotations

import re

ModelId = str
ChunkId = str

REFERENCE_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._:-]{0,127}$")
