"""Keyword routing tables for free-text questions."""

from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class KeywordRoute:
    """Send a question to ``target`` when it mentions any of ``keywords``."""

    keywords: tuple[str, ...]
    target: str

    def matches(self, text: str) -> bool:
        lowered = text.lower()
        return any(keyword in lowered for keyword in self.keywords)


class RoutingTable:
    """Ordered routes; the first matching route wins."""

    def __init__(self, routes: Iterable[KeywordRoute] = ()):
        self._routes = tuple(routes)

    @classmethod
    def of(cls, *pairs: tuple[tuple[str, ...], str]) -> "RoutingTable":
        return cls(KeywordRoute(tuple(keywords), target) for keywords, target in pairs)

    @property
    def routes(self) -> tuple[KeywordRoute, ...]:
        return self._routes

    def resolve(self, text: str) -> str | None:
        for route in self._routes:
            if route.matches(text):
                return route.target
        return None

    def __len__(self) -> int:
        return len(self._routes)
