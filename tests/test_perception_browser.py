"""
在真实的 Chromium 页面上执行注入脚本。

需要先安装浏览器：
    playwright install chromium
未安装时这些测试会被跳过。
"""
import asyncio
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable
from urllib.parse import quote

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, async_playwright

sys.path.append(str(Path(__file__).resolve().parents[1]))

from listen_agent.controller import CLICK_JS
from listen_agent.perception import PLAYBACK_JS, SELECTORS, Perception

CONVERSATION = """
<div id="r1"><button aria-label="Listen">listen</button></div>
<div id="r2" style="display:none"><div><button aria-label="Listen">listen</button></div></div>
<div id="state">
  <button aria-label="Pause">pause</button>
  <button aria-label="Stop listening">stop listening</button>
  <button aria-label="Arrêter la lecture">arrêter</button>
</div>
"""


def _on_page(html: str, steps: Callable[[Page], Awaitable[Any]]) -> Any:
    async def main() -> Any:
        async with async_playwright() as p:
            try:
                browser = await p.chromium.launch(headless=True)
            except PlaywrightError as e:
                pytest.skip(f"Chromium 不可用: {e}")
            try:
                page = await browser.new_page()
                await page.set_content(html)
                return await steps(page)
            finally:
                await browser.close()

    return asyncio.run(main())


async def _append(page: Page, html: str) -> None:
    await page.evaluate("(html) => document.body.insertAdjacentHTML('beforeend', html)", html)


def test_control_under_hidden_ancestor_is_not_counted() -> None:
    snapshot = _on_page(CONVERSATION, Perception().snapshot)

    assert [c.label for c in snapshot.listen] == ["Listen"]
    assert sorted(c.label for c in snapshot.secondary) == ["Arrêter la lecture", "Pause", "Stop listening"]
    assert snapshot.count == 4
    assert snapshot.document


def test_stop_listening_labels_do_not_count_as_generating() -> None:
    async def steps(page: Page) -> list:
        perception = Perception()
        flags = [(await perception.snapshot(page)).generating]
        await _append(page, '<button aria-label="Stop response">stop</button>')
        flags.append((await perception.snapshot(page)).generating)
        return flags

    assert _on_page(CONVERSATION, steps) == [False, True]


def test_stop_button_test_id_counts_as_generating() -> None:
    snapshot = _on_page('<button data-testid="stop-button">■</button>', Perception().snapshot)

    assert snapshot.generating is True
    assert snapshot.count == 0


def test_page_without_controls_gives_empty_snapshot() -> None:
    snapshot = _on_page("<main><p>Bonjour</p></main>", Perception().snapshot)

    assert snapshot.listen == []
    assert snapshot.secondary == []
    assert snapshot.generating is False
    assert snapshot.count == 0


def test_ids_are_stable_across_snapshots_and_new_controls_get_new_ids() -> None:
    async def steps(page: Page) -> tuple:
        perception = Perception()
        first = await perception.snapshot(page)
        second = await perception.snapshot(page)
        await _append(page, '<div><button aria-label="Écouter">écouter</button></div>')
        third = await perception.snapshot(page)
        return first, second, third

    first, second, third = _on_page(CONVERSATION, steps)

    assert [c.key for c in first.listen] == [c.key for c in second.listen]
    assert [c.key for c in first.secondary] == [c.key for c in second.secondary]
    old_ids = {c.id for c in first.listen + first.secondary}
    assert third.listen[0].key == first.listen[0].key
    assert third.listen[-1].label == "Écouter"
    assert third.listen[-1].id not in old_ids


def test_inspect_follows_the_same_node() -> None:
    async def steps(page: Page) -> list:
        perception = Perception()
        target = (await perception.snapshot(page)).listen[0]
        states = [await perception.inspect(page, target.id)]
        await page.evaluate("() => { document.getElementById('r1').style.display = 'none'; }")
        states.append(await perception.inspect(page, target.id))
        await page.evaluate("() => document.getElementById('r1').remove()")
        states.append(await perception.inspect(page, target.id))
        return states

    shown, hidden, removed = _on_page(CONVERSATION, steps)

    assert (shown.present, shown.visible, shown.label) == (True, True, "Listen")
    assert (hidden.present, hidden.visible) == (True, False)
    assert (removed.present, removed.visible, removed.label) == (False, False, None)


def test_click_dispatches_mouse_events_in_order() -> None:
    async def steps(page: Page) -> tuple:
        await page.evaluate(
            """() => {
                window.__events = [];
                const button = document.querySelector('#r1 button');
                for (const type of ['mousedown', 'mouseup', 'click']) {
                    button.addEventListener(type, () => window.__events.push(type));
                }
            }"""
        )
        target = (await Perception().snapshot(page)).listen[0]
        dispatched = await page.evaluate(CLICK_JS, target.id)
        missing = await page.evaluate(CLICK_JS, 9999)
        return dispatched, missing, await page.evaluate("() => window.__events")

    dispatched, missing, events = _on_page(CONVERSATION, steps)

    assert dispatched is True
    assert missing is False
    assert events == ["mousedown", "mouseup", "click"]


def test_playback_follows_visible_secondary_controls() -> None:
    async def steps(page: Page) -> list:
        perception = Perception()
        active = [await perception.playback_active(page)]
        await page.evaluate("() => { document.getElementById('state').style.display = 'none'; }")
        active.append(await perception.playback_active(page))
        active.append(await page.evaluate(PLAYBACK_JS, SELECTORS["secondary"]))
        return active

    assert _on_page(CONVERSATION, steps) == [True, False, False]


def test_reload_restarts_ids_under_a_new_document_token() -> None:
    async def steps(page: Page) -> tuple:
        perception = Perception()
        await page.goto("data:text/html," + quote(CONVERSATION))
        before = await perception.snapshot(page)
        await page.reload()
        after = await perception.snapshot(page)
        return before, after

    before, after = _on_page("", steps)

    assert before.listen[0].id == after.listen[0].id
    assert before.document != after.document
    assert before.listen[0].key != after.listen[0].key
