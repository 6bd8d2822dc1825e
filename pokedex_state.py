from __future__ import annotations

import logging
from typing import Callable, List, Sequence

from pokeapi_live import (
    PokeAPIClient,
    PokeAPIError,
    PokedexConfig,
    PokemonEntry,
    enrich_page,
)

LOGGER = logging.getLogger(__name__)

PHASE_IDLE = "idle"
PHASE_LOADING = "loading"
PHASE_LOADED = "loaded"
PHASE_EXHAUSTED = "exhausted"

Listener = Callable[["PokedexController"], None]


def filter_entries(entries: Sequence[PokemonEntry], type_filter: str | None) -> List[PokemonEntry]:
    if not type_filter:
        return list(entries)
    return [entry for entry in entries if type_filter in entry.types]


class PokedexController:
    """Session state for one mounted Pokédex view.

    Owns the loaded entries, the type filter, the selected entry and the
    exhaustion flag. Every mutation recomputes ``visible_entries`` and then
    notifies subscribers.
    """

    def __init__(
        self,
        client: PokeAPIClient | None = None,
        config: PokedexConfig | None = None,
    ) -> None:
        self.config = config or (client.config if client else PokedexConfig())
        self.client = client or PokeAPIClient(self.config)
        self._entries: List[PokemonEntry] = []
        self._visible: List[PokemonEntry] = []
        self._type_filter = ""
        self._selected: PokemonEntry | None = None
        self._exhausted = False
        self._loading = False
        self._listeners: List[Listener] = []
        self._closed = False

    @property
    def entries(self) -> List[PokemonEntry]:
        return list(self._entries)

    @property
    def visible_entries(self) -> List[PokemonEntry]:
        return list(self._visible)

    @property
    def type_filter(self) -> str:
        return self._type_filter

    @property
    def selected(self) -> PokemonEntry | None:
        return self._selected

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    @property
    def has_more(self) -> bool:
        return not self._exhausted

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def phase(self) -> str:
        if self._loading:
            return PHASE_LOADING
        if self._exhausted:
            return PHASE_EXHAUSTED
        if self._entries:
            return PHASE_LOADED
        return PHASE_IDLE

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _refresh(self) -> None:
        self._visible = filter_entries(self._entries, self._type_filter)
        for listener in list(self._listeners):
            listener(self)

    def fetch_more(self) -> int:
        """Load the next page and append it; returns how many entries were added."""
        if self._closed:
            LOGGER.debug("Ignoring fetch on closed controller")
            return 0
        if self._exhausted:
            return 0
        if self._loading:
            LOGGER.debug("Page fetch already in flight; ignoring trigger")
            return 0

        offset = len(self._entries)
        try:
            self._loading = True
            self._refresh()
            stubs = self.client.fetch_page(offset, self.config.page_size)
            if not stubs:
                LOGGER.info("Listing exhausted at offset %s", offset)
                self._exhausted = True
                return 0
            batch = enrich_page(self.client, stubs)
            self._entries.extend(batch)
        except PokeAPIError:
            LOGGER.warning("Failed to fetch Pokémon at offset %s", offset, exc_info=True)
            return 0
        finally:
            self._loading = False
            self._refresh()

        LOGGER.info("Loaded %s Pokémon (total %s)", len(batch), len(self._entries))
        return len(batch)

    def set_type_filter(self, type_filter: str | None) -> None:
        self._type_filter = type_filter or ""
        self._refresh()

    def select(self, entry: PokemonEntry) -> None:
        self._selected = entry
        self._refresh()

    def dismiss(self) -> None:
        self._selected = None
        self._refresh()

    def close(self) -> None:
        """Tear down the session. Requests already in flight are not aborted."""
        if self._closed:
            return
        self._closed = True
        self._listeners.clear()
        self.client.close()
