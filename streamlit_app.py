from __future__ import annotations

import html
import logging
from typing import Dict, List, Sequence

import streamlit as st

from pokeapi_live import PLACEHOLDER_IMAGE, TYPE_NAMES, PokemonEntry
from pokedex_state import PokedexController

LOGGER = logging.getLogger(__name__)

COLUMNS_PER_ROW = 6
LOAD_MORE_LABEL = "Load more"
CONTROLLER_KEY = "pokedex"
MOUNT_FETCH_KEY = "mount_fetch_done"

COLOR_PALETTE: Dict[str, str] = {
    "red": "#ff0000",
    "blue": "#3b4cca",
    "yellow": "#ffde00",
    "border": "#cccccc",
}

TYPE_COLORS: Dict[str, str] = {
    "normal": "#A8A77A",
    "fire": "#EE8130",
    "water": "#6390F0",
    "electric": "#F7D02C",
    "grass": "#7AC74C",
    "ice": "#96D9D6",
    "fighting": "#C22E28",
    "poison": "#A33EA1",
    "ground": "#E2BF65",
    "flying": "#A98FF3",
    "psychic": "#F95587",
    "bug": "#A6B91A",
    "rock": "#B6A136",
    "ghost": "#735797",
    "dragon": "#6F35FC",
    "dark": "#705746",
    "steel": "#B7B7CE",
    "fairy": "#D685AD",
}

TYPE_FILTER_OPTIONS: List[str] = [""] + list(TYPE_NAMES)


def setup_logging(level: int = logging.INFO) -> None:
    if logging.getLogger().handlers:
        return
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")


def format_type_option(value: str) -> str:
    return value.title() if value else "All"


def build_type_chips_html(types: Sequence[str] | None) -> str:
    spans: List[str] = []
    for t in types or []:
        label = str(t)
        color = TYPE_COLORS.get(label.lower(), "#777777")
        spans.append(
            f'<span class="dex-chip" style="background-color:{color};">{html.escape(label.title())}</span>'
        )
    return "".join(spans)


def build_card_html(entry: PokemonEntry, placeholder: str = PLACEHOLDER_IMAGE) -> str:
    safe_name = html.escape(entry.name)
    src = html.escape(entry.image_or_placeholder(placeholder), quote=True)
    return (
        '<div class="dex-card">'
        f'<div class="dex-image"><img src="{src}" alt="{safe_name}" /></div>'
        f'<div class="dex-name">{safe_name}</div>'
        "</div>"
    )


def set_page_metadata() -> None:
    st.set_page_config(
        page_title="Pokédex",
        page_icon="⚡️",
        layout="wide",
        initial_sidebar_state="collapsed",
    )
    colors = COLOR_PALETTE
    st.markdown(
        f"""
    <style>
      .dex-card {{
        background-color: white;
        border: 1px solid {colors["border"]};
        border-radius: 4px;
        padding: 10px;
        transition: background-color 0.3s ease;
      }}
      .dex-card:hover {{
        background-color: #f9f9f9;
      }}
      .dex-image {{
        display: flex;
        justify-content: center;
        align-items: center;
        height: 100px;
      }}
      .dex-image img {{
        max-height: 100px;
        width: auto;
      }}
      .dex-name {{
        text-align: center;
        margin-top: 10px;
        font-weight: bold;
        text-transform: capitalize;
      }}
      .dex-chips {{
        display: flex;
        flex-wrap: wrap;
        gap: 8px;
        margin: 8px 0 12px 0;
      }}
      .dex-chip {{
        padding: 4px 10px;
        border-radius: 999px;
        font-size: 0.82rem;
        font-weight: 700;
        color: #FFFFFF;
        text-shadow: 0 1px 2px rgba(0,0,0,0.35);
        white-space: nowrap;
      }}
    </style>
    """,
        unsafe_allow_html=True,
    )



def build_infinite_scroll_js(label: str = LOAD_MORE_LABEL) -> str:
    """Script that clicks the load-more button when the user scrolls near the page bottom.

    Scrolling behind an open dialog never triggers a load.
    """
    return f"""
<script>
(function() {{
  const LABEL = {label!r};
  const BOTTOM_THRESHOLD = 240;
  const COOLDOWN_MS = 1500;
  const win = (window.parent && window.parent !== window) ? window.parent : window;
  const doc = (win && win.document) ? win.document : document;
  const globalStore = win || window;

  const findButton = () => {{
    const buttons = doc.querySelectorAll("button");
    for (const btn of buttons) {{
      if ((btn.innerText || "").trim() === LABEL && !btn.disabled) return btn;
    }}
    return null;
  }};

  const dialogOpen = () => !!doc.querySelector('[role="dialog"]');

  const scrollContainer = () => {{
    return doc.querySelector('[data-testid="stAppViewContainer"]') ||
      doc.querySelector('[data-testid="stMain"]') ||
      doc.scrollingElement || doc.documentElement;
  }};

  const nearBottom = (el) => {{
    if (!el) return false;
    return el.scrollHeight - el.scrollTop - el.clientHeight <= BOTTOM_THRESHOLD;
  }};

  const maybeLoad = (event) => {{
    if (dialogOpen()) return;
    const el = (event && event.target && event.target.scrollHeight) ? event.target : scrollContainer();
    if (!nearBottom(el)) return;
    const now = Date.now();
    if (globalStore.pokedexLastTrigger && now - globalStore.pokedexLastTrigger < COOLDOWN_MS) return;
    const btn = findButton();
    if (!btn) return;
    globalStore.pokedexLastTrigger = now;
    btn.click();
  }};

  if (!globalStore.pokedexScrollHooked) {{
    doc.addEventListener("scroll", maybeLoad, {{ capture: true, passive: true }});
    win.addEventListener("scroll", maybeLoad, {{ passive: true }});
    globalStore.pokedexScrollHooked = true;
  }}
}})();
</script>
"""


def inject_infinite_scroll_js() -> None:
    st.iframe(build_infinite_scroll_js(), width=1, height=1)


def ensure_state() -> PokedexController:
    if CONTROLLER_KEY not in st.session_state:
        LOGGER.info("Mounting Pokédex view")
        st.session_state[CONTROLLER_KEY] = PokedexController()
    if MOUNT_FETCH_KEY not in st.session_state:
        st.session_state[MOUNT_FETCH_KEY] = False
    return st.session_state[CONTROLLER_KEY]


def teardown_state() -> None:
    controller = st.session_state.pop(CONTROLLER_KEY, None)
    if controller is not None:
        LOGGER.info("Unmounting Pokédex view")
        controller.close()
    st.session_state.pop(MOUNT_FETCH_KEY, None)


def _open_entry(entry: PokemonEntry) -> None:
    st.session_state[CONTROLLER_KEY].select(entry)


def _close_entry() -> None:
    st.session_state[CONTROLLER_KEY].dismiss()


def render_detail_dialog(controller: PokedexController) -> None:
    """Keep the dialog open for as long as something is selected."""
    entry = controller.selected
    if entry is None:
        return

    def _body() -> None:
        st.image(entry.image_or_placeholder(controller.config.placeholder_image))
        st.markdown(
            f'<div class="dex-chips">{build_type_chips_html(entry.types)}</div>',
            unsafe_allow_html=True,
        )
        if st.button("Close", key="dialog_close", on_click=_close_entry):
            st.rerun()

    st.dialog(entry.name.title(), on_dismiss=_close_entry)(_body)()


def render_grid(controller: PokedexController) -> None:
    visible = controller.visible_entries
    if not visible and controller.entries:
        st.caption("No loaded Pokémon match this type yet. Keep scrolling to load more.")
        return
    placeholder = controller.config.placeholder_image
    for start in range(0, len(visible), COLUMNS_PER_ROW):
        cols = st.columns(COLUMNS_PER_ROW)
        for col, entry in zip(cols, visible[start:start + COLUMNS_PER_ROW]):
            with col:
                st.markdown(build_card_html(entry, placeholder), unsafe_allow_html=True)
                st.button(
                    "View",
                    key=f"open_{entry.name}",
                    on_click=_open_entry,
                    args=(entry,),
                )


def main() -> None:
    setup_logging()
    set_page_metadata()
    controller = ensure_state()

    status = st.empty()

    def _show_status(ctrl: PokedexController) -> None:
        if ctrl.loading:
            status.markdown("### Loading...")
        else:
            status.empty()

    unsubscribe = controller.subscribe(_show_status)
    try:
        # First page on mount only; later pages come from the scroll trigger.
        if not st.session_state[MOUNT_FETCH_KEY]:
            st.session_state[MOUNT_FETCH_KEY] = True
            controller.fetch_more()

        selected_type = st.selectbox(
            "Filter by Type:",
            TYPE_FILTER_OPTIONS,
            index=TYPE_FILTER_OPTIONS.index(controller.type_filter)
            if controller.type_filter in TYPE_FILTER_OPTIONS
            else 0,
            format_func=format_type_option,
            key="type_filter",
        )
        if selected_type != controller.type_filter:
            controller.set_type_filter(selected_type)

        grid = st.container()
        footer = st.container()
        with footer:
            if controller.has_more:
                if st.button(LOAD_MORE_LABEL, key="load_more"):
                    controller.fetch_more()
            else:
                st.caption("You've reached the end of the Pokédex.")
            if st.button("Start over", key="start_over"):
                teardown_state()
                st.rerun()
        with grid:
            render_grid(controller)
    finally:
        unsubscribe()

    inject_infinite_scroll_js()
    render_detail_dialog(controller)


if __name__ == "__main__":
    main()
