"""
Page-level tests for streamlit_app.main using Streamlit's AppTest harness.
PokéAPI is served from memory by patching requests.Session.get.
"""

import os
import sys
from unittest.mock import MagicMock, patch

import pytest
import requests
from streamlit.testing.v1 import AppTest

ROOT = os.path.dirname(os.path.dirname(__file__))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

APP_PATH = os.path.join(ROOT, "streamlit_app.py")
BASE = "https://pokeapi.co/api/v2"

POKEMON = {
    "bulbasaur": ("grass", "poison"),
    "charmander": ("fire",),
    "squirtle": ("water",),
}


class FakePokeAPI:
    """Answers listing and detail URLs the way PokéAPI does."""

    def __init__(self, listing_error=None):
        self.names = list(POKEMON)
        self.listing_error = listing_error
        self.listing_calls = []

    def _response(self, payload):
        resp = MagicMock()
        resp.json.return_value = payload
        return resp

    def get(self, url, params=None, timeout=None):
        if url == f"{BASE}/pokemon":
            self.listing_calls.append(dict(params or {}))
            if self.listing_error is not None:
                raise self.listing_error
            offset, limit = params["offset"], params["limit"]
            names = self.names[offset:offset + limit]
            return self._response({"results": [{"name": n, "url": f"{BASE}/pokemon/{n}/"} for n in names]})
        name = url.rstrip("/").rsplit("/", 1)[-1]
        return self._response({
            "sprites": {"front_default": f"https://img.test/{name}.png"},
            "types": [{"type": {"name": t}} for t in POKEMON[name]],
        })


@pytest.fixture
def api():
    fake = FakePokeAPI()
    with patch("requests.Session.get", side_effect=fake.get):
        yield fake


def _app():
    return AppTest.from_file(APP_PATH, default_timeout=10)


def _button_keys(at):
    return [b.key for b in at.button]


# ===========================================================================
# Mounting and pagination
# ===========================================================================

class TestMountAndPagination:
    """Tests for the first page fetch and the load-more footer."""

    def test_mount_fetches_first_page_once(self, api):
        at = _app().run()
        assert not at.exception
        controller = at.session_state["pokedex"]
        assert [e.name for e in controller.entries] == ["bulbasaur", "charmander", "squirtle"]
        assert api.listing_calls == [{"offset": 0, "limit": 20}]

        at.run()
        assert api.listing_calls == [{"offset": 0, "limit": 20}]

    def test_cards_are_rendered_for_every_entry(self, api):
        at = _app().run()
        keys = _button_keys(at)
        for name in POKEMON:
            assert f"open_{name}" in keys

    def test_load_more_until_exhausted_shows_end_caption(self, api):
        at = _app().run()
        assert "load_more" in _button_keys(at)

        at.button(key="load_more").click().run()

        controller = at.session_state["pokedex"]
        assert controller.exhausted
        assert api.listing_calls[-1] == {"offset": 3, "limit": 20}
        assert "load_more" not in _button_keys(at)
        assert any("end of the Pokédex" in c.value for c in at.caption)

    def test_no_unbalanced_wrapper_markup(self, api):
        at = _app().run()
        for block in at.markdown:
            assert "dex-filter" not in block.value
            assert block.value.strip() != "</div>"

    def test_listing_failure_is_silent(self):
        fake = FakePokeAPI(listing_error=requests.ConnectionError("offline"))
        with patch("requests.Session.get", side_effect=fake.get):
            at = _app().run()
            assert not at.exception
            assert not at.error
            controller = at.session_state["pokedex"]
            assert controller.entries == []
            assert not controller.exhausted
            assert "load_more" in _button_keys(at)


# ===========================================================================
# Filtering
# ===========================================================================

class TestTypeFilter:
    """Tests for the type select box."""

    def test_selecting_a_type_narrows_the_grid(self, api):
        at = _app().run()
        at.selectbox(key="type_filter").select("fire").run()

        controller = at.session_state["pokedex"]
        assert controller.type_filter == "fire"
        assert [e.name for e in controller.visible_entries] == ["charmander"]
        keys = _button_keys(at)
        assert "open_charmander" in keys
        assert "open_bulbasaur" not in keys

    def test_all_restores_every_entry(self, api):
        at = _app().run()
        at.selectbox(key="type_filter").select("water").run()
        at.selectbox(key="type_filter").select("").run()
        assert len(at.session_state["pokedex"].visible_entries) == 3


# ===========================================================================
# Detail dialog
# ===========================================================================

class TestDetailDialog:
    """Tests for selecting, keeping and closing the detail dialog."""

    def test_view_selects_entry_and_opens_dialog(self, api):
        at = _app().run()
        at.button(key="open_bulbasaur").click().run()

        assert at.session_state["pokedex"].selected.name == "bulbasaur"
        assert "dialog_close" in _button_keys(at)

    def test_selecting_another_entry_replaces_selection(self, api):
        at = _app().run()
        at.button(key="open_bulbasaur").click().run()
        at.button(key="open_squirtle").click().run()
        assert at.session_state["pokedex"].selected.name == "squirtle"

    def test_background_rerun_keeps_selection(self, api):
        at = _app().run()
        at.button(key="open_bulbasaur").click().run()

        at.button(key="load_more").click().run()

        assert at.session_state["pokedex"].selected.name == "bulbasaur"
        assert "dialog_close" in _button_keys(at)

    def test_close_button_clears_selection(self, api):
        at = _app().run()
        at.button(key="open_bulbasaur").click().run()

        at.button(key="dialog_close").click().run()

        assert at.session_state["pokedex"].selected is None
        assert "dialog_close" not in _button_keys(at)


# ===========================================================================
# Lifecycle
# ===========================================================================

class TestStartOver:
    """Tests for tearing down and remounting the session controller."""

    def test_start_over_rebuilds_controller(self, api):
        at = _app().run()
        first = at.session_state["pokedex"]
        at.button(key="open_bulbasaur").click().run()

        at.button(key="start_over").click().run()

        assert not at.exception
        second = at.session_state["pokedex"]
        assert second is not first
        assert first.fetch_more() == 0
        assert second.selected is None
        assert [e.name for e in second.entries] == ["bulbasaur", "charmander", "squirtle"]
        assert api.listing_calls.count({"offset": 0, "limit": 20}) == 2
