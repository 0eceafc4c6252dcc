"""JSON-file user profile: stable facts plus a capped recent-context list."""

from __future__ import annotations

import json
from pathlib import Path

from models import MAX_DYNAMIC_FACTS, UserProfile
from utils import log, now_iso


class ProfileStore:
    """Read-modify-write of a single profile file.

    Writes are not locked. Concurrent updates can lose each other; the last
    writer's whole file wins.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> UserProfile:
        """Read the profile; a missing or corrupt file is an empty profile."""
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return UserProfile()
        except (OSError, ValueError) as e:
            log.warning("profile at %s unreadable, starting empty: %s", self.path, e)
            return UserProfile()

        if not isinstance(data, dict):
            return UserProfile()
        static = data.get("static")
        dynamic = data.get("dynamic")
        last_updated = data.get("lastUpdated")
        return UserProfile(
            static=[f for f in static if isinstance(f, str)] if isinstance(static, list) else [],
            dynamic=[f for f in dynamic if isinstance(f, str)] if isinstance(dynamic, list) else [],
            last_updated=last_updated if isinstance(last_updated, str) else "",
        )

    def update(
        self,
        static_facts: list[str] | None = None,
        dynamic_facts: list[str] | None = None,
    ) -> UserProfile:
        """Merge facts into the stored profile and write it back.

        Static facts are appended unless an identical string is already stored.
        Dynamic facts replace the recent list, keeping the first 20 given.
        The file is rewritten even when nothing changed.
        """
        profile = self.load()

        if static_facts:
            existing = set(profile.static)
            for fact in static_facts:
                if fact not in existing:
                    profile.static.append(fact)
                    existing.add(fact)

        if dynamic_facts is not None:
            profile.dynamic = list(dynamic_facts[:MAX_DYNAMIC_FACTS])

        profile.last_updated = now_iso()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(profile.to_dict(), indent=2), encoding="utf-8")
        log.debug("profile updated (%d static, %d dynamic)", len(profile.static), len(profile.dynamic))
        return profile
