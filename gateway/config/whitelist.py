"""CORS origin whitelist parsed once at startup."""

from __future__ import annotations

from dataclasses import dataclass

from gateway.errors import ConfigurationError


@dataclass(frozen=True)
class Whitelist:
    """Ordered, immutable set of allowed origins. Matching is exact and case-sensitive."""

    origins: tuple[str, ...]

    def __post_init__(self):
        if not self.origins:
            raise ConfigurationError("CORS whitelist must contain at least one origin.")

    @classmethod
    def parse(cls, raw: str | None) -> Whitelist:
        """Parse a comma-separated origin list, trimming each entry and dropping blanks."""
        if raw is None:
            raise ConfigurationError("CORS_WHITELIST_URLS environment variable is not set.")
        origins: list[str] = []
        for entry in raw.split(","):
            entry = entry.strip()
            if entry and entry not in origins:
                origins.append(entry)
        return cls(tuple(origins))

    def __contains__(self, origin: object) -> bool:
        return origin in self.origins

    def __iter__(self):
        return iter(self.origins)

    def __len__(self) -> int:
        return len(self.origins)
