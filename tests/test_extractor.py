import asyncio
import logging

from bs4 import BeautifulSoup

from eir_liberator.connectors.extractor import ExtractorState, JournalExtractor, clean_lines, element_text
from eir_liberator.connectors.page import HTML_PARSER
from eir_liberator.connectors.se_1177.scraper import PROFILE_1177
from fakes import VACCINATION_ENTRY, VISIT_ENTRY, FakeClock, FakePage, journal_html

LOAD_MORE = PROFILE_1177.load_more


def _extractor(page, clock=None):
    return JournalExtractor(page, PROFILE_1177, clock=clock or FakeClock(), name="test")


def _append_entry(page, n):
    root = page.doc.select_one("#timeline-view")
    fragment = BeautifulSoup(
        f'<div class="ic-block-list__item"><h3>Anteckning nummer {n}</h3><p>Vårdcentral Test, rad {n}</p></div>',
        HTML_PARSER,
    )
    root.append(fragment.select_one("div"))


def test_scenario_b_three_pages_then_stop():
    def on_click(page, selector, index):
        if selector == LOAD_MORE:
            _append_entry(page, len(page.clicks))
            if len(page.clicks) == 3:
                page.doc.select_one(LOAD_MORE).decompose()

    page = FakePage(journal_html(VACCINATION_ENTRY, load_more=True), on_click=on_click)
    clock = FakeClock()
    ex = _extractor(page, clock)

    clicks = asyncio.run(ex.paginate())

    assert clicks == 3
    assert [c for c in page.clicks if c[0] == LOAD_MORE] == [(LOAD_MORE, 0)] * 3
    assert clock.sleeps == [2.0, 2.0, 2.0]
    assert page.count(".ic-block-list__item") == 4


def test_pagination_stops_on_disabled_button():
    html = journal_html(VACCINATION_ENTRY, load_more=True).replace("iu-px-xxl\"", "iu-px-xxl\" disabled")
    page = FakePage(html)
    assert asyncio.run(_extractor(page).paginate()) == 0
    assert page.clicks == []


def test_pagination_bound_is_logged_not_fatal(caplog):
    page = FakePage(journal_html(VACCINATION_ENTRY, load_more=True))
    clock = FakeClock()
    with caplog.at_level(logging.WARNING):
        clicks = asyncio.run(_extractor(page, clock).paginate())
    assert clicks == 50
    assert len(clock.sleeps) == 50
    assert "reached max load-more clicks" in caplog.text


def test_pagination_error_keeps_partial_progress():
    def on_click(page, selector, index):
        if len(page.clicks) == 2:
            raise RuntimeError("element detached")

    page = FakePage(journal_html(VACCINATION_ENTRY, load_more=True), on_click=on_click)
    assert asyncio.run(_extractor(page).paginate()) == 1


def test_wait_for_data_times_out_without_error():
    page = FakePage(journal_html(""))
    clock = FakeClock()
    ex = _extractor(page, clock)
    assert asyncio.run(ex.wait_for_data()) is False
    assert clock.now() == 10.0
    assert all(s <= 1.0 for s in clock.sleeps)


def test_wait_for_data_returns_once_content_appears():
    page = FakePage(journal_html(""))

    class RenderingClock(FakeClock):
        async def sleep(self, seconds):
            await super().sleep(seconds)
            if self.t >= 3:
                _append_entry(page, 1)

    clock = RenderingClock()
    assert asyncio.run(_extractor(page, clock).wait_for_data()) is True
    assert clock.now() == 3.0


def test_extract_entry_fields():
    soup = BeautifulSoup(VACCINATION_ENTRY, HTML_PARSER)
    entry = _extractor(FakePage("")).extract_entry(soup.select_one(".ic-block-list__item"))
    assert entry.date == "17 mar 2025"
    assert entry.title == "Vaccination mot influensa"
    assert entry.category == "Vaccinationer"
    assert entry.source == "Vårdcentral Danderyd, Region Stockholm"
    assert "Antecknad av Anna Svensson (Sjuksköterska)" in entry.details
    assert entry.text.splitlines()[0] == "Vaccination mot influensa"
    assert "\n\n" not in entry.text
    assert "  " not in entry.text


def test_extract_entry_text_fallbacks():
    html = """
    <div class="journal-entry">
      <p>2024-06-11</p>
      <p>Telefonkontakt med sköterska</p>
      <p>Provsvar inkomna, se Provsvar</p>
      <p>Folktandvården Stockholm</p>
    </div>"""
    soup = BeautifulSoup(html, HTML_PARSER)
    entry = _extractor(FakePage("")).extract_entry(soup.select_one(".journal-entry"))
    assert entry.date == "2024-06-11"
    assert entry.title == "Telefonkontakt med sköterska"
    assert entry.category == "Provsvar"
    assert entry.source == "Folktandvården Stockholm"
    assert entry.details == ""


def test_short_entries_are_noise():
    soup = BeautifulSoup('<div class="timeline-item"><p>Visa mer</p></div>', HTML_PARSER)
    assert _extractor(FakePage("")).extract_entry(soup.select_one("div")) is None


def test_element_text_breaks_on_blocks_and_skips_scripts():
    soup = BeautifulSoup("<div><h3>Rubrik</h3><p>Första <b>fet</b> rad</p><script>var x = 1;</script></div>", HTML_PARSER)
    assert clean_lines(element_text(soup.select_one("div"))) == ["Rubrik", "Första fet rad"]


def test_expand_and_merge_visible_entries():
    loose = """
    <div class="timeline-item">
      <h4>Remiss till fysioterapi</h4>
      <p>Skickad 2023-11-02 från vårdcentral</p>
    </div>
    <div class="timeline-item"><p>kort</p></div>
    """

    def on_click(page, selector, index):
        if selector == PROFILE_1177.entry_toggle:
            toggle = page.doc.select(selector)[index]
            container = toggle.find_parent(class_="ic-block-list__item")
            note = page.doc.new_tag("p")
            note.string = f"Expanderad anteckning: del {index + 1}"
            container.append(note)

    page = FakePage(journal_html(VACCINATION_ENTRY + VISIT_ENTRY + loose), on_click=on_click)
    ex = _extractor(page)
    entries = asyncio.run(ex.expand_and_extract())

    assert [e.title for e in entries] == [
        "Vaccination mot influensa",
        "Besök hos läkare",
        "Remiss till fysioterapi",
    ]
    assert "Expanderad anteckning: del 1" in entries[0].text
    assert "Expanderad anteckning: del 2" in entries[1].text
    assert len({e.text for e in entries}) == 3


def test_entry_errors_skip_only_that_entry():
    def on_click(page, selector, index):
        if selector == PROFILE_1177.entry_toggle and index == 0:
            raise RuntimeError("click intercepted")

    page = FakePage(journal_html(VACCINATION_ENTRY + VISIT_ENTRY), on_click=on_click)
    entries = asyncio.run(_extractor(page).expand_and_extract())
    # the failed one is still picked up by the visible-entry pass
    assert sorted(e.title for e in entries) == ["Besök hos läkare", "Vaccination mot influensa"]
    assert entries[0].title == "Besök hos läkare"


def test_run_walks_all_states():
    page = FakePage(journal_html(VACCINATION_ENTRY))
    ex = _extractor(page)
    entries = asyncio.run(ex.run())
    assert ex.state is ExtractorState.DONE
    assert len(entries) == 1
    assert ex.load_more_clicks == 0
    assert page.clicks == [(PROFILE_1177.entry_toggle, 0)]
