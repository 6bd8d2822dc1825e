from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Sequence, Tuple

import requests

LOGGER = logging.getLogger(__name__)

POKEAPI_BASE = "https://pokeapi.co/api/v2"
PAGE_SIZE = 20
REQUEST_TIMEOUT = 10
MAX_WORKERS = 8
PLACEHOLDER_IMAGE = "https://raw.githubusercontent.com/PokeAPI/sprites/master/sprites/pokemon/1.png"

TYPE_NAMES: Tuple[str, ...] = (
    "normal",
    "fire",
    "water",
    "electric",
    "grass",
    "ice",
    "fighting",
    "poison",
    "ground",
    "flying",
    "psychic",
    "bug",
    "rock",
    "ghost",
    "dragon",
    "dark",
    "steel",
    "fairy",
)


class PokeAPIError(RuntimeError):
    """Raised when PokéAPI cannot be reached or answers with an unusable payload."""


@dataclass(frozen=True)
class PokedexConfig:
    base_url: str = POKEAPI_BASE
    page_size: int = PAGE_SIZE
    timeout: float = REQUEST_TIMEOUT
    max_workers: int = MAX_WORKERS
    placeholder_image: str = PLACEHOLDER_IMAGE


@dataclass(frozen=True)
class PokemonEntry:
    name: str
    url: str
    image: str | None = None
    types: Tuple[str, ...] = field(default_factory=tuple)

    def image_or_placeholder(self, placeholder: str = PLACEHOLDER_IMAGE) -> str:
        return self.image or placeholder


def parse_listing(payload: object) -> List[PokemonEntry]:
    if not isinstance(payload, dict):
        raise PokeAPIError("listing payload is not an object")
    results = payload.get("results")
    if not isinstance(results, list):
        raise PokeAPIError("listing payload has no results list")
    stubs: List[PokemonEntry] = []
    for item in results:
        try:
            stubs.append(PokemonEntry(name=str(item["name"]), url=str(item["url"])))
        except (KeyError, TypeError) as exc:
            raise PokeAPIError(f"malformed listing item: {item!r}") from exc
    return stubs


def parse_details(entry: PokemonEntry, payload: object) -> PokemonEntry:
    """Merge the sprite URL and type names from a ``/pokemon/<id>`` payload into ``entry``."""
    try:
        sprites = payload["sprites"]  # type: ignore[index]
        image = sprites.get("front_default") if isinstance(sprites, dict) else None
        types = tuple(str(slot["type"]["name"]) for slot in payload["types"])  # type: ignore[index]
    except (KeyError, TypeError) as exc:
        raise PokeAPIError(f"malformed detail payload for {entry.name}") from exc
    return replace(entry, image=str(image) if image else None, types=types)


class PokeAPIClient:
    def __init__(
        self,
        config: PokedexConfig | None = None,
        session: requests.Session | None = None,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        self.config = config or PokedexConfig()
        self.session_factory = session_factory
        self.session = session or self.new_session()
        self.session.headers.setdefault("Accept", "application/json")

    def new_session(self) -> requests.Session:
        session = self.session_factory()
        session.headers.setdefault("Accept", "application/json")
        return session

    def _get_json(
        self,
        url: str,
        params: Dict[str, int] | None = None,
        session: requests.Session | None = None,
    ) -> object:
        session = session or self.session
        try:
            resp = session.get(url, params=params, timeout=self.config.timeout)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as exc:
            raise PokeAPIError(f"GET {url} failed: {exc}") from exc
        except ValueError as exc:
            raise PokeAPIError(f"GET {url} returned invalid JSON") from exc

    def fetch_page(self, offset: int, limit: int | None = None) -> List[PokemonEntry]:
        limit = self.config.page_size if limit is None else limit
        url = f"{self.config.base_url.rstrip('/')}/pokemon"
        LOGGER.debug("Fetching listing offset=%s limit=%s", offset, limit)
        payload = self._get_json(url, params={"offset": offset, "limit": limit})
        return parse_listing(payload)

    def fetch_details(self, entry: PokemonEntry, session: requests.Session | None = None) -> PokemonEntry:
        return parse_details(entry, self._get_json(entry.url, session=session))

    def close(self) -> None:
        self.session.close()


def _fetch_details_isolated(client: PokeAPIClient, stub: PokemonEntry) -> PokemonEntry:
    # Sessions are never shared between worker threads.
    session = client.new_session()
    try:
        return client.fetch_details(stub, session=session)
    finally:
        session.close()


def enrich_page(client: PokeAPIClient, stubs: Sequence[PokemonEntry]) -> List[PokemonEntry]:
    """Fetch details for every stub concurrently.

    All requests are joined before returning; the first failure is re-raised
    so the caller drops the whole page. Output order matches ``stubs``.
    """
    if not stubs:
        return []
    workers = max(1, min(client.config.max_workers, len(stubs)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(_fetch_details_isolated, client, stub) for stub in stubs]
        return [future.result() for future in futures]
