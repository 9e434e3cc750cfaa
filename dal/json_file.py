"""Async helpers for whole-file JSON collections.

Each collection lives in one JSON file that is read once at startup and
rewritten in full on every mutation. Writes go through `aiofiles` so the
event loop is not blocked on disk I/O.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import aiofiles

from services.errors import StoreIOFailure


class JsonFile:
	"""Read and rewrite a single JSON document on disk.

	Usage:
		doc = JsonFile(Path("data/records.json"), default=list)
		items = await doc.read()
		await doc.write(items)
	"""

	def __init__(self, path: Path | str, default=list) -> None:
		self.path = Path(path)
		self._default = default

	async def read(self) -> Any:
		"""Return the parsed document, or the default when the file is missing.

		Raises:
			StoreIOFailure: If the file exists but cannot be read or parsed.
		"""
		if not self.path.exists():
			return self._default()
		try:
			async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
				raw = await f.read()
		except OSError as exc:
			raise StoreIOFailure(f"Failed to read {self.path}: {exc}") from exc
		if not raw.strip():
			return self._default()
		try:
			return json.loads(raw)
		except json.JSONDecodeError as exc:
			raise StoreIOFailure(f"Corrupt JSON in {self.path}: {exc}") from exc

	async def write(self, document: Any) -> None:
		"""Serialize `document` and overwrite the file.

		Raises:
			StoreIOFailure: If serialization or the write fails.
		"""
		try:
			payload = json.dumps(document, ensure_ascii=False, indent=2)
		except (TypeError, ValueError) as exc:
			raise StoreIOFailure(f"Unserializable document for {self.path}: {exc}") from exc
		try:
			self.path.parent.mkdir(parents=True, exist_ok=True)
			async with aiofiles.open(self.path, "w", encoding="utf-8") as f:
				await f.write(payload)
		except OSError as exc:
			raise StoreIOFailure(f"Failed to write {self.path}: {exc}") from exc
