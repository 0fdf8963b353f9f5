"""DMS カード構成 Streamlit アプリ.

Thin presentation layer: widgets read from and write to the
:class:`core.configurator.Configurator` kept in ``st.session_state``. All
state changes go through its command methods.

    streamlit run apps/app_configurator.py
"""

from __future__ import annotations

import logging

import streamlit as st

from common.card_schema import PILLARS, Card, Col
from common.exceptions import handle_exceptions
from common.logging_utils import setup_logging
from config.environment import get_env_config
from config.settings import get_settings
from core.catalog import ALL
from core.configurator import CommandResult, Configurator
from core.filter_engine import TRI_OPTIONS, WEBUI_STATUS_LABELS, FacetKind

logger = logging.getLogger(__name__)

STATE_KEY = "configurator"
MAX_CANDIDATES = 200

_ICONS = {"success": "✅", "warning": "⚠️", "error": "❌", "info": "ℹ️"}


def _get_configurator() -> Configurator:
    cfg = st.session_state.get(STATE_KEY)
    if cfg is None:
        settings = get_settings(create_dirs=True)
        setup_logging(settings)
        cfg = Configurator(settings)
        _show(cfg.load_template())
        st.session_state[STATE_KEY] = cfg
    return cfg


def _show(result: CommandResult) -> None:
    if not result.notice:
        return
    if get_env_config().no_emoji:
        st.toast(result.notice)
    else:
        st.toast(result.notice, icon=_ICONS.get(result.level, "ℹ️"))


# ----------------------------------------------------------------------
# sidebar: file I/O + facets
# ----------------------------------------------------------------------


def render_file_controls(cfg: Configurator) -> None:
    st.sidebar.subheader("📂 ファイル")
    uploaded = st.sidebar.file_uploader("Import CSV", type=["csv"])
    if uploaded is not None and st.session_state.get("_last_upload") != uploaded.file_id:
        st.session_state["_last_upload"] = uploaded.file_id
        _show(cfg.import_file(uploaded.getvalue(), uploaded.name))

    filename = st.sidebar.text_input("Export filename", value=cfg.settings.export.default_filename)
    export = cfg.export_selection(filename)
    st.sidebar.download_button(
        "💾 Download selection",
        data=export.data,
        file_name=export.filename,
        mime="text/csv",
        disabled=export.rows == 0,
    )
    if st.sidebar.button("Save to exports", disabled=export.rows == 0):
        _show(cfg.save_export(export))


def render_facets(cfg: Configurator) -> None:
    st.sidebar.subheader("🔎 Filters")
    if st.sidebar.button("Reset filters"):
        cfg.reset_filters()
        for name in cfg.filters.specs:
            st.session_state.pop(f"facet_{name}", None)

    for name, spec in cfg.filters.specs.items():
        key = f"facet_{name}"
        current = cfg.filters.selection(name)
        if spec.kind is FacetKind.SINGLE:
            if spec.aliases:
                options = [ALL, *WEBUI_STATUS_LABELS]
            else:
                options = list(cfg.facet_values(spec.column or name)) or [ALL]
            index = options.index(current) if current in options else 0
            value = st.sidebar.selectbox(name, options, index=index, key=key)
        elif spec.kind is FacetKind.MULTI:
            options = list(cfg.facet_values(spec.column or name))
            value = st.sidebar.multiselect(
                name, options, default=[o for o in options if o in current], key=key
            )
        elif spec.kind is FacetKind.TRI:
            value = st.sidebar.radio(
                name, TRI_OPTIONS, index=TRI_OPTIONS.index(current), horizontal=True, key=key
            )
        else:
            value = st.sidebar.text_input(name, value=current, key=key)
        _show(cfg.set_facet(name, value))


# ----------------------------------------------------------------------
# main area
# ----------------------------------------------------------------------


def render_navigation(cfg: Configurator) -> None:
    nav = cfg.navigation()
    col_p, col_c = st.columns(2)
    pillar_labels = {f"{p} ({count})": p for p, (count, _) in nav.items()}
    chosen = col_p.selectbox("Pillar", ["(all)", *pillar_labels])
    pillar = pillar_labels.get(chosen)
    category = None
    if pillar is not None:
        cats = nav[pillar][1]
        cat_labels = {f"{c} ({n})": c for c, n in cats.items()}
        chosen_cat = col_c.selectbox("Category", ["(all)", *cat_labels])
        category = cat_labels.get(chosen_cat)
    cfg.select_navigation(pillar, category)


def render_candidates(cfg: Configurator) -> None:
    cards = cfg.candidates()
    st.subheader(f"Available cards ({len(cards)})")
    if not cards:
        st.info("No cards match the current filters.")
        return
    for idx, card in enumerate(cards[:MAX_CANDIDATES]):
        cols = st.columns([5, 2, 1])
        cols[0].markdown(f"**{card.item}**  \n{card.pillar} / {card.category}")
        cols[1].caption(f"{card.get(Col.UCM_STATUS)} | {card.get(Col.WEBUI_STATUS)} | {card.get(Col.CAMPAIGN)}")
        if cols[2].button("➕", key=f"add_{idx}_{card.key.label()}"):
            _show(cfg.add_selection(card))
            st.rerun()
    if len(cards) > MAX_CANDIDATES:
        st.caption(f"{len(cards) - MAX_CANDIDATES} more cards hidden; narrow the filters.")


def _on_weight_change(cfg: Configurator, card: Card, widget_key: str) -> None:
    result = cfg.set_weight(card.key, st.session_state.get(widget_key, ""))
    stored = cfg.ledger.get(card.key)
    # 入力欄を実際に保存された値（clamp 後・拒否時は元の値）へ戻す
    st.session_state[widget_key] = (stored.weightage if stored else "") or ""
    _show(result)


def render_selection(cfg: Configurator) -> None:
    st.subheader(f"Selected cards ({len(cfg.selection)})")
    for group, by_pillar in cfg.selection_groups().items():
        if not by_pillar:
            continue
        st.markdown(f"#### {group}")
        for pillar, cards in by_pillar.items():
            st.caption(pillar)
            for idx, card in enumerate(cards):
                label = card.key.label()
                widget_key = f"w_{group}_{pillar}_{idx}_{label}"
                st.session_state.setdefault(widget_key, card.weightage or "")
                cols = st.columns([5, 2, 1])
                cols[0].write(label)
                cols[1].text_input(
                    "Weightage",
                    key=widget_key,
                    label_visibility="collapsed",
                    on_change=_on_weight_change,
                    args=(cfg, card, widget_key),
                )
                if cols[2].button("✖", key=f"rm_{widget_key}"):
                    st.session_state.pop(widget_key, None)
                    _show(cfg.remove_selection(card.key))
                    st.rerun()


def render_budget(cfg: Configurator) -> None:
    st.subheader("Weight budget")
    cols = st.columns(len(PILLARS))
    for col, s in zip(cols, cfg.weight_summary()):
        col.metric(s.pillar, f"{s.used:g} / {s.budget:g}", f"{s.available:g} left")
        col.progress(s.ratio)
        for category, weight in cfg.category_weights(s.pillar).items():
            col.caption(f"{category}: {weight:g}")


@handle_exceptions(logger=logger)
def render_inventory(cfg: Configurator) -> None:
    # 一覧表は補助表示。失敗してもページ全体は止めない
    with st.expander("📋 Inventory", expanded=False):
        st.dataframe(cfg.catalog.to_frame(), width="stretch")


def main() -> None:
    settings = get_settings(create_dirs=True)
    st.set_page_config(page_title=settings.ui.page_title, layout="wide")
    st.title(settings.ui.page_title)

    cfg = _get_configurator()
    render_file_controls(cfg)
    render_facets(cfg)

    if not cfg.catalog.is_loaded:
        st.warning("Template not loaded. Import a CSV from the sidebar.")

    render_budget(cfg)
    left, right = st.columns(2)
    with left:
        render_navigation(cfg)
        render_candidates(cfg)
    with right:
        render_selection(cfg)

    if settings.ui.show_inventory_table and cfg.catalog.is_loaded:
        render_inventory(cfg)

    if settings.ui.debug_mode:
        with st.expander("🧪 Debug", expanded=False):
            st.json(cfg.filters.snapshot())
            st.write(list(cfg.notices))


if __name__ == "__main__":
    main()
