"""Per-run cache of content fingerprints used to skip repeated content."""

import hashlib
import logging
import re
from datetime import UTC, datetime
from typing import Any


logger = logging.getLogger(__name__)


class ContentCache:
    """Tracks which content has already been processed during one batch run.

    A fresh instance is created for every run; nothing is shared between
    independent runs. Call ``clear()`` to reset an instance explicitly.
    """

    def __init__(self) -> None:
        self._entries: dict[str, dict[str, Any]] = {}
        self._fingerprints: dict[str, str] = {}

    @staticmethod
    def fingerprint(text: str) -> str:
        """Hash of the text after lower-casing, collapsing whitespace and stripping punctuation."""
        normalized = re.sub(r"\s+", " ", text.lower())
        normalized = re.sub(r"[^\w\s]", "", normalized).strip()
        return hashlib.md5(normalized.encode("utf-8"), usedforsecurity=False).hexdigest()

    def is_processed(self, key: str, text: str) -> bool:
        """Return True if this key, or identical content under another key, was already seen."""
        if key in self._entries:
            logger.debug("Content already processed by key", extra={"key": key})
            return True

        fingerprint = self.fingerprint(text)
        original_key = self._fingerprints.get(fingerprint)
        if original_key is not None:
            logger.debug(
                "Identical content already processed",
                extra={"key": key, "original_key": original_key, "fingerprint": fingerprint},
            )
            return True
        return False

    def mark_processed(self, key: str, text: str, **metadata: Any) -> None:  # noqa: ANN401
        """Record that the content under ``key`` has been handled in this run."""
        fingerprint = self.fingerprint(text)
        self._entries[key] = {
            "key": key,
            "fingerprint": fingerprint,
            "processed_at": datetime.now(UTC).isoformat(),
            **metadata,
        }
        self._fingerprints.setdefault(fingerprint, key)

    def stats(self) -> dict[str, int]:
        """Counts of processed keys and distinct content blocks."""
        unique = len({entry["fingerprint"] for entry in self._entries.values()})
        return {
            "total_processed": len(self._entries),
            "unique_content_blocks": unique,
            "duplicates_skipped": len(self._entries) - unique,
        }

    def clear(self, doc_id: str | None = None) -> None:
        """Forget everything, or only the entries recorded with the given ``doc_id``."""
        if doc_id is None:
            self._entries.clear()
            self._fingerprints.clear()
            return

        for key in [k for k, entry in self._entries.items() if entry.get("doc_id") == doc_id]:
            del self._entries[key]
        self._fingerprints = {}
        for key, entry in self._entries.items():
            self._fingerprints.setdefault(entry["fingerprint"], key)
