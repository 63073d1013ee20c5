"""Self-contained HTML rendering of a trace and of the run index."""

from __future__ import annotations

import base64
import binascii
import json
from datetime import datetime, timezone
from html import escape
from typing import Iterable, Sequence
from urllib.parse import urlsplit

from trace_recorder.models import Action, NetworkEntry, NodeLocation, Trace

from .navigation import NetworkFilter
from .views import (
    RunSummary,
    TreeNode,
    build_action_tree,
    build_filmstrip,
    compute_waterfall,
    format_bytes,
    format_duration,
    status_class,
)

GLOBAL_SCOPE = "global"
BODY_PREVIEW_LIMIT = 5000
HTML_PREVIEW_LIMIT = 50000

_FILTER_LABELS = {
    NetworkFilter.ALL: "All",
    NetworkFilter.DOCUMENT: "Document",
    NetworkFilter.STYLESHEET: "CSS",
    NetworkFilter.SCRIPT: "JS",
    NetworkFilter.IMAGE: "Img",
    NetworkFilter.XHR: "XHR",
    NetworkFilter.FONT: "Font",
}

_VIEWER_CSS = """
* { box-sizing: border-box; margin: 0; padding: 0; }
body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; background: #1e1e1e;
       color: #cccccc; font-size: 13px; line-height: 1.4; height: 100vh; overflow: hidden; }
.trace-viewer { display: grid; grid-template-rows: auto auto 1fr; height: 100vh; }
.header { background: #252526; padding: 8px 16px; border-bottom: 1px solid #3c3c3c; display: flex;
          align-items: center; gap: 16px; }
.header-title { font-size: 14px; font-weight: 600; color: #ffffff; }
.header-meta { display: flex; gap: 16px; font-size: 12px; color: #888; }
.status-badge { padding: 2px 8px; border-radius: 3px; font-size: 11px; font-weight: 500; }
.status-badge.passed { background: #2d4a3e; color: #4ec9b0; }
.status-badge.failed, .status-badge.pending { background: #4a2d2d; color: #f14c4c; }
.filmstrip { border-bottom: 1px solid #3c3c3c; padding: 8px; overflow-x: auto; white-space: nowrap; }
.filmstrip-container { display: flex; gap: 4px; align-items: flex-end; }
.filmstrip-frame { flex-shrink: 0; width: 80px; height: 50px; background: #2d2d2d; border: 2px solid transparent;
                   border-radius: 4px; cursor: pointer; overflow: hidden; position: relative; }
.filmstrip-frame:hover { border-color: #555; }
.filmstrip-frame.selected { border-color: #0078d4; }
.filmstrip-frame img { width: 100%; height: 100%; object-fit: cover; }
.filmstrip-frame .frame-name { display: flex; align-items: center; justify-content: center; height: 100%;
                               color: #666; font-size: 10px; }
.filmstrip-frame .timestamp { position: absolute; bottom: 0; left: 0; right: 0; background: rgba(0,0,0,0.7);
                              font-size: 9px; padding: 1px 3px; text-align: center; }
.main-content { display: grid; grid-template-columns: 280px 1fr 320px; overflow: hidden; }
.actions-panel, .details-panel { background: #252526; display: flex; flex-direction: column; overflow: hidden; }
.actions-panel { border-right: 1px solid #3c3c3c; }
.details-panel { border-left: 1px solid #3c3c3c; }
.panel-header { padding: 10px 12px; font-weight: 600; font-size: 12px; text-transform: uppercase; color: #888;
                border-bottom: 1px solid #3c3c3c; }
.actions-list { flex: 1; overflow-y: auto; padding: 4px 0; }
.tree-header { display: flex; align-items: center; padding: 6px 12px; gap: 6px; cursor: pointer; }
.tree-header:hover, .action-item:hover, .network-row:hover { background: #2a2d2e; }
.tree-toggle { width: 16px; color: #888; font-size: 10px; transition: transform 0.15s; }
.tree-toggle.expanded { transform: rotate(90deg); }
.tree-label, .action-name { flex: 1; overflow: hidden; text-overflow: ellipsis; white-space: nowrap; }
.tree-children { display: none; padding-left: 20px; }
.tree-children.expanded { display: block; }
.action-item { display: flex; align-items: center; padding: 6px 12px; gap: 8px; cursor: pointer; }
.action-item.selected, .network-row.selected { background: #094771; }
.action-icon { width: 18px; height: 18px; border-radius: 3px; display: flex; align-items: center;
               justify-content: center; font-size: 10px; background: #4a4a4a; }
.action-icon.click { background: #4a3f6b; } .action-icon.fill { background: #3f5a4a; }
.action-icon.navigate { background: #3f4a5a; } .action-icon.wait { background: #5a4a3f; }
.action-icon.keyboard { background: #4a5a3f; } .action-icon.select { background: #5a3f5a; }
.action-icon.scroll { background: #3f5a5a; }
.action-duration { font-size: 11px; color: #888; }
.node-status { width: 6px; height: 6px; border-radius: 50%; background: #888; }
.node-status.passed { background: #4ec9b0; } .node-status.failed { background: #f14c4c; }
.snapshot-panel { display: flex; flex-direction: column; overflow: hidden; }
.snapshot-tabs, .details-tabs { display: flex; background: #252526; border-bottom: 1px solid #3c3c3c; }
.snapshot-tab, .details-tab { padding: 8px 14px; cursor: pointer; border-bottom: 2px solid transparent; font-size: 12px; }
.snapshot-tab.active, .details-tab.active { border-bottom-color: #0078d4; color: #ffffff; }
.details-tab .badge { background: #0e639c; color: #fff; font-size: 10px; padding: 1px 5px; border-radius: 8px;
                      margin-left: 4px; }
.snapshot-content { flex: 1; overflow: auto; display: flex; align-items: center; justify-content: center;
                    padding: 16px; background: #1a1a1a; }
.snapshot-frame { position: relative; display: inline-block; }
.snapshot-content img { max-width: 100%; max-height: 100%; object-fit: contain; border-radius: 4px; }
.dom-frame { display: flex; flex-direction: column; width: 100%; height: 100%; background: #2d2d2d; }
.dom-url { background: #1e1e1e; border-radius: 4px; margin: 6px 10px; padding: 4px 10px; color: #aaa; font-size: 12px; }
.dom-frame iframe { flex: 1; width: 100%; border: none; background: #fff; }
.click-pointer { position: absolute; width: 20px; height: 20px; border-radius: 50%; background: rgba(255,0,0,0.5);
                 border: 2px solid red; transform: translate(-50%, -50%); pointer-events: none; }
.no-snapshot, .muted { color: #888; font-style: italic; }
.details-content { flex: 1; overflow-y: auto; padding: 12px; }
.detail-section { margin-bottom: 16px; }
.detail-section-title { font-size: 11px; text-transform: uppercase; color: #888; margin-bottom: 8px; }
.detail-row { display: flex; margin-bottom: 6px; }
.detail-label { width: 80px; color: #888; flex-shrink: 0; }
.detail-value { flex: 1; color: #ddd; word-break: break-all; }
.detail-value.selector { font-family: Consolas, Monaco, monospace; color: #ce9178; font-size: 12px; }
.detail-value.error { color: #f14c4c; }
.console-entry { padding: 4px 8px; border-bottom: 1px solid #2d2d2d; font-family: Consolas, monospace; font-size: 12px; }
.console-entry.info { color: #3794ff; } .console-entry.warn { color: #cca700; }
.console-entry.error { color: #f14c4c; } .console-entry.debug { color: #888; }
.console-timestamp { color: #666; margin-right: 8px; }
.resource-filters { display: flex; gap: 4px; padding: 8px 0; }
.resource-filter { background: transparent; border: 1px solid #3c3c3c; color: #888; padding: 4px 10px;
                   cursor: pointer; font-size: 11px; border-radius: 3px; }
.resource-filter.active { background: #0078d4; color: #fff; border-color: #0078d4; }
.timeline-header { font-size: 10px; color: #888; padding: 4px 0; }
.network-table { width: 100%; border-collapse: collapse; font-size: 11px; }
.network-table th { text-align: left; padding: 6px; color: #888; border-bottom: 1px solid #3c3c3c; }
.network-table td { padding: 6px; border-bottom: 1px solid #2d2d2d; }
.network-row { cursor: pointer; }
.network-name { color: #9cdcfe; }
.network-status.success { color: #4ec9b0; } .network-status.redirect { color: #dcdcaa; }
.network-status.error { color: #f14c4c; }
.waterfall-track { position: relative; height: 16px; min-width: 120px; }
.waterfall-bar { position: absolute; height: 12px; top: 2px; border-radius: 2px; }
.empty-state { display: flex; flex-direction: column; align-items: center; justify-content: center;
               height: 100%; color: #666; }
.modal { position: fixed; inset: 0; background: rgba(0,0,0,0.7); display: none; align-items: center;
         justify-content: center; z-index: 1000; }
.modal.open { display: flex; }
.modal-body { background: #1e1e1e; border: 1px solid #3c3c3c; border-radius: 8px; width: 80%; max-width: 900px;
              max-height: 80%; display: flex; flex-direction: column; }
.modal-title { padding: 12px 16px; border-bottom: 1px solid #3c3c3c; display: flex; justify-content: space-between; }
.modal-close { background: none; border: none; color: #888; font-size: 18px; cursor: pointer; }
.modal-content { overflow-y: auto; padding: 16px; }
.network-tabs { display: flex; border-bottom: 1px solid #3c3c3c; margin-bottom: 12px; }
.network-tab { background: transparent; border: none; color: #888; padding: 8px 16px; cursor: pointer;
               border-bottom: 2px solid transparent; font-size: 11px; }
.network-tab.active { color: #4ec9b0; border-bottom-color: #4ec9b0; }
.network-tab-content { display: none; font-size: 11px; }
.network-tab-content.active { display: block; }
.kv-grid { display: grid; grid-template-columns: 200px 1fr; gap: 4px 16px; margin-bottom: 16px; }
.kv-grid .key { color: #4ec9b0; } .kv-grid .value { color: #ccc; word-break: break-all; }
.section-title { color: #dcdcaa; font-weight: bold; margin-bottom: 8px; }
pre.body { background: #252525; padding: 8px; border-radius: 4px; overflow-x: auto; color: #ccc; max-height: 400px; }
iframe.preview { width: 100%; height: 400px; border: 1px solid #444; background: #fff; }
"""

_VIEWER_JS = """
(function () {
    const trace = JSON.parse(document.getElementById('trace-data').textContent);
    const actions = new Map();
    for (const scenario of trace.scenarios) {
        for (const step of scenario.steps) {
            for (const action of step.actions) { actions.set(action.id, action); }
        }
    }
    const state = { action: null, snapshotTab: 'before', detailsTab: 'call', filter: 'all' };

    function esc(value) {
        const div = document.createElement('div');
        div.textContent = value == null ? '' : String(value);
        return div.innerHTML;
    }

    function template(id) {
        const node = document.getElementById(id);
        return node ? node.innerHTML : '';
    }

    function selectAction(actionId) {
        state.action = actionId;
        document.querySelectorAll('.action-item, .filmstrip-frame').forEach(function (item) {
            item.classList.toggle('selected', item.dataset.actionId === actionId);
        });
        const frame = document.querySelector('.filmstrip-frame.selected');
        if (frame) { frame.scrollIntoView({ inline: 'center', block: 'nearest' }); }
        const item = document.querySelector('.action-item[data-action-id="' + CSS.escape(actionId) + '"]');
        const badge = document.getElementById('network-badge');
        badge.textContent = item ? item.dataset.networkCount : String(trace.network_logs.length);
        renderSnapshot();
        renderDetails();
    }

    function renderSnapshot() {
        const container = document.getElementById('snapshot-content');
        const action = state.action ? actions.get(state.action) : null;
        if (!action) {
            container.innerHTML = '<div class="no-snapshot">Select an action to view snapshot</div>';
            return;
        }
        if (state.snapshotTab === 'dom-before' || state.snapshotTab === 'dom-after') {
            const dom = state.snapshotTab === 'dom-before' ? action.before_dom : action.after_dom;
            container.innerHTML = dom
                ? '<div class="dom-frame"><div class="dom-url">' + esc(action.page_url || 'about:blank') +
                  '</div><iframe src="' + esc(dom) + '"></iframe></div>'
                : '<div class="no-snapshot">No DOM snapshot available</div>';
            return;
        }
        const before = state.snapshotTab === 'before';
        const image = before ? action.before_snapshot : action.after_snapshot;
        if (!image) {
            container.innerHTML = '<div class="no-snapshot">No ' + state.snapshotTab + ' snapshot available</div>';
            return;
        }
        let markup = '<div class="snapshot-frame"><img src="' + esc(image) + '" alt="' + state.snapshotTab + ' snapshot">';
        if (before && action.click_point) {
            markup += '<div class="click-pointer" style="left:' + action.click_point.x + 'px;top:' +
                      action.click_point.y + 'px" title="(' + action.click_point.x + ', ' +
                      action.click_point.y + ')"></div>';
        }
        container.innerHTML = markup + '</div>';
    }

    function renderDetails() {
        const container = document.getElementById('details-content');
        if (state.detailsTab === 'console') {
            container.innerHTML = template('tpl-console');
        } else if (state.detailsTab === 'network') {
            container.innerHTML = template('tpl-waterfall-' + (state.action || 'global'));
            applyFilter(state.filter);
        } else if (state.action) {
            container.innerHTML = template('tpl-call-' + state.action);
        } else {
            container.innerHTML = '<div class="empty-state">Select an action to view details</div>';
        }
    }

    function applyFilter(filter) {
        state.filter = filter;
        document.querySelectorAll('#details-content .resource-filter').forEach(function (button) {
            button.classList.toggle('active', button.dataset.filter === filter);
        });
        document.querySelectorAll('#details-content .network-row').forEach(function (row) {
            row.style.display = filter === 'all' || row.dataset.type === filter ? '' : 'none';
        });
    }

    function openNetworkDetail(entryId) {
        const modal = document.getElementById('network-modal');
        document.getElementById('network-modal-title').textContent = entryId;
        document.getElementById('network-modal-content').innerHTML = template('tpl-net-' + entryId);
        modal.classList.add('open');
    }

    document.addEventListener('click', function (event) {
        const target = event.target;
        const selectable = target.closest('.action-item, .filmstrip-frame');
        if (selectable) { selectAction(selectable.dataset.actionId); return; }
        const header = target.closest('.tree-header');
        if (header) {
            header.querySelector('.tree-toggle').classList.toggle('expanded');
            header.nextElementSibling.classList.toggle('expanded');
            return;
        }
        const snapshotTab = target.closest('.snapshot-tab');
        if (snapshotTab) {
            document.querySelectorAll('.snapshot-tab').forEach(function (tab) { tab.classList.remove('active'); });
            snapshotTab.classList.add('active');
            state.snapshotTab = snapshotTab.dataset.tab;
            renderSnapshot();
            return;
        }
        const detailsTab = target.closest('.details-tab');
        if (detailsTab) {
            document.querySelectorAll('.details-tab').forEach(function (tab) { tab.classList.remove('active'); });
            detailsTab.classList.add('active');
            state.detailsTab = detailsTab.dataset.tab;
            renderDetails();
            return;
        }
        const filter = target.closest('.resource-filter');
        if (filter) { applyFilter(filter.dataset.filter); return; }
        const row = target.closest('.network-row');
        if (row) { openNetworkDetail(row.dataset.entryId); return; }
        const networkTab = target.closest('.network-tab');
        if (networkTab) {
            const scope = networkTab.closest('.network-detail');
            scope.querySelectorAll('.network-tab, .network-tab-content').forEach(function (node) {
                node.classList.toggle('active', node.dataset.tab === networkTab.dataset.tab);
            });
            return;
        }
        if (target.classList.contains('modal') || target.classList.contains('modal-close')) {
            document.getElementById('network-modal').classList.remove('open');
        }
    });

    document.addEventListener('DOMContentLoaded', function () {
        const first = document.querySelector('.action-item');
        if (first) { selectAction(first.dataset.actionId); } else { renderDetails(); }
    });
})();
"""

_INDEX_CSS = """
body { font-family: system-ui; background: #1e1e1e; color: #ccc; margin: 0; padding: 20px; }
h1 { color: #fff; font-size: 18px; }
.trace-item { display: flex; align-items: center; gap: 10px; padding: 12px 16px; background: #2d2d2d;
              border-radius: 6px; margin: 8px 0; text-decoration: none; color: inherit; }
.trace-item:hover { background: #363636; }
.trace-item.passed .status-icon { color: #4ec9b0; }
.trace-item.failed .status-icon { color: #f14c4c; }
.trace-name { flex: 1; }
.trace-meta, .trace-duration { color: #888; font-size: 12px; }
.empty { color: #888; font-style: italic; }
"""


def generate_trace_viewer(trace: Trace) -> str:
    """Render a trace into one HTML document that needs no server or network access."""

    status = trace.overall_status()
    browser = trace.browser + (f" {trace.browser_version}" if trace.browser_version else "")

    templates = [_waterfall_template(GLOBAL_SCOPE, trace.network_logs, scoped=False)]
    for scenario, step, action in trace.iter_actions():
        location = NodeLocation(scenario=scenario, step=step, action=action)
        templates.append(_waterfall_template(action.id, trace.network_for(action), scoped=True))
        templates.append(_call_template(action, location))
    templates.extend(_network_detail_template(entry) for entry in trace.network_logs)
    templates.append(_console_template(trace))

    return "".join(
        [
            "<!DOCTYPE html>\n<html lang=\"en\">\n<head>\n<meta charset=\"UTF-8\">\n",
            '<meta name="viewport" content="width=device-width, initial-scale=1.0">\n',
            f"<title>{escape(trace.test_name)} - Trace Viewer</title>\n",
            f"<style>{_VIEWER_CSS}</style>\n</head>\n<body>\n",
            '<div class="trace-viewer">\n<div class="header">',
            f'<div class="header-title">{escape(trace.test_name)}</div>',
            f'<div class="header-meta"><span>{escape(browser)}</span>',
            f"<span>{escape(trace.platform)}</span>",
            f"<span>{format_duration(trace.duration_ms)}</span>",
            f'<span class="status-badge {status}">{status}</span></div></div>\n',
            '<div class="filmstrip"><div class="filmstrip-container" id="filmstrip">',
            _render_filmstrip(trace),
            "</div></div>\n",
            '<div class="main-content">\n',
            '<div class="actions-panel"><div class="panel-header">Actions</div>',
            f'<div class="actions-list" id="actions-list">{_render_tree(build_action_tree(trace))}</div></div>\n',
            '<div class="snapshot-panel"><div class="snapshot-tabs">',
            '<div class="snapshot-tab active" data-tab="before">Before</div>',
            '<div class="snapshot-tab" data-tab="after">After</div>',
            '<div class="snapshot-tab" data-tab="dom-before">DOM Before</div>',
            '<div class="snapshot-tab" data-tab="dom-after">DOM After</div></div>',
            '<div class="snapshot-content" id="snapshot-content">',
            '<div class="no-snapshot">Select an action to view snapshot</div></div></div>\n',
            '<div class="details-panel"><div class="details-tabs">',
            '<div class="details-tab active" data-tab="call">Call</div>',
            f'<div class="details-tab" data-tab="console">Console <span class="badge">{len(trace.console_logs)}</span></div>',
            '<div class="details-tab" data-tab="network">Network ',
            f'<span class="badge" id="network-badge">{len(trace.network_logs)}</span></div></div>',
            '<div class="details-content" id="details-content">',
            '<div class="empty-state">Select an action to view details</div></div></div>\n',
            "</div>\n</div>\n",
            '<div class="modal" id="network-modal"><div class="modal-body"><div class="modal-title">',
            '<span id="network-modal-title"></span><button class="modal-close">✕</button></div>',
            '<div class="modal-content" id="network-modal-content"></div></div></div>\n',
            "\n".join(templates),
            f'\n<script type="application/json" id="trace-data">{_embed_json(trace)}</script>\n',
            f"<script>{_VIEWER_JS}</script>\n</body>\n</html>\n",
        ]
    )


def generate_index_page(summaries: Iterable[RunSummary]) -> str:
    """Render the cross-run index linking every run's viewer."""

    items = []
    for summary in summaries:
        icon = "✓" if summary.status == "passed" else "✗"
        duration = f"{summary.duration_ms / 1000:.1f}s" if summary.duration_ms else ""
        items.append(
            f'<a href="{escape(summary.viewer_path)}" class="trace-item {summary.status}">'
            f'<span class="status-icon">{icon}</span>'
            f'<span class="trace-name">{escape(summary.test_name)}</span>'
            f'<span class="trace-meta">{escape(summary.browser)} · {summary.scenarios} scenario(s)</span>'
            f'<span class="trace-duration">{duration}</span></a>'
        )
    body = "\n".join(items) if items else '<div class="empty">No recorded runs</div>'
    return (
        '<!DOCTYPE html>\n<html><head><meta charset="UTF-8"><title>Trace Viewer</title>'
        f"<style>{_INDEX_CSS}</style></head>\n<body><h1>📊 Trace Viewer</h1>\n{body}\n</body></html>\n"
    )


def _embed_json(trace: Trace) -> str:
    return trace.model_dump_json().replace("<", "\\u003c")


def _attr(value: object) -> str:
    return escape(str(value), quote=True)


def _render_filmstrip(trace: Trace) -> str:
    frames = []
    for frame in build_filmstrip(trace):
        if frame.snapshot:
            content = f'<img src="{_attr(frame.snapshot)}" alt="{_attr(frame.name)}">'
        else:
            content = f'<div class="frame-name">{escape(frame.name)}</div>'
        frames.append(
            f'<div class="filmstrip-frame" data-action-id="{_attr(frame.action_id)}">'
            f'{content}<div class="timestamp">{frame.label}</div></div>'
        )
    return "".join(frames)


def _render_tree(nodes: Sequence[TreeNode]) -> str:
    parts: list[str] = []
    open_depths: list[int] = []
    for node in nodes:
        while open_depths and open_depths[-1] >= node.depth:
            parts.append("</div></div>")
            open_depths.pop()
        if node.kind == "action":
            parts.append(
                f'<div class="action-item" data-action-id="{_attr(node.id)}" data-network-count="{node.network_count}">'
                f'<span class="action-icon {node.category}">{node.icon}</span>'
                f'<span class="action-name">{escape(node.label)}</span>'
                f'<span class="action-duration">{node.duration or 0}ms</span>'
                f'<span class="node-status {node.status}"></span></div>'
            )
            continue
        expanded = " expanded" if node.expanded else ""
        parts.append(
            f'<div class="tree-item {node.kind}" data-node-id="{_attr(node.id)}"><div class="tree-header">'
            f'<span class="tree-toggle{expanded}">▶</span><span class="tree-icon">{node.icon}</span>'
            f'<span class="tree-label">{escape(node.label)}</span>'
            f'<span class="node-status {node.status}"></span></div>'
            f'<div class="tree-children{expanded}">'
        )
        open_depths.append(node.depth)
    parts.extend("</div></div>" for _ in open_depths)
    return "".join(parts)


def _waterfall_template(scope: str, entries: Sequence[NetworkEntry], *, scoped: bool) -> str:
    if not entries:
        message = "No network requests for this action" if scoped else "No network requests captured"
        return f'<template id="tpl-waterfall-{_attr(scope)}"><div class="empty-state">{message}</div></template>'

    waterfall = compute_waterfall(entries)
    buttons = "".join(
        f'<button class="resource-filter{" active" if network_filter is NetworkFilter.ALL else ""}" '
        f'data-filter="{network_filter.value}">{label}</button>'
        for network_filter, label in _FILTER_LABELS.items()
    )
    rows = []
    for bar in waterfall.bars:
        entry = bar.entry
        rows.append(
            f'<tr class="network-row" data-type="{bar.resource_type}" data-entry-id="{_attr(entry.id)}">'
            f'<td title="{_attr(entry.url)}"><span class="network-name">{escape(_short_name(entry.url))}</span></td>'
            f"<td>{escape(entry.method)}</td>"
            f'<td><span class="network-status {status_class(entry.status)}">{entry.status or "-"}</span></td>'
            f"<td>{escape(entry.mime_type or bar.resource_type)}</td>"
            f"<td>{format_bytes(entry.size) if entry.size else '-'}</td>"
            f"<td>{f'{entry.duration}ms' if entry.duration else '-'}</td>"
            f'<td><div class="waterfall-track"><div class="waterfall-bar" '
            f'style="left:{bar.start_percent:.2f}%;width:{bar.width_percent:.2f}%;background:{bar.color}" '
            f'title="Start: {bar.start_offset_ms}ms, Duration: {entry.duration or 0}ms"></div></div></td></tr>'
        )
    return (
        f'<template id="tpl-waterfall-{_attr(scope)}">'
        f'<div class="resource-filters">{buttons}</div>'
        f'<div class="timeline-header">Timeline ({waterfall.span_ms}ms)</div>'
        '<table class="network-table"><thead><tr><th>Name</th><th>Method</th><th>Status</th><th>Type</th>'
        "<th>Size</th><th>Time</th><th>Waterfall</th></tr></thead>"
        f"<tbody>{''.join(rows)}</tbody></table></template>"
    )


def _short_name(url: str) -> str:
    parts = urlsplit(url or "")
    return parts.path.rstrip("/").rsplit("/", 1)[-1] or parts.path or parts.netloc or url


def _network_detail_template(entry: NetworkEntry) -> str:
    tabs = (
        ("headers", "Headers", _headers_tab(entry)),
        ("payload", "Payload", _payload_tab(entry)),
        ("preview", "Preview", _preview_tab(entry)),
        ("timing", "Timing", _timing_tab(entry)),
    )
    buttons = "".join(
        f'<button class="network-tab{" active" if position == 0 else ""}" data-tab="{key}">{label}</button>'
        for position, (key, label, _) in enumerate(tabs)
    )
    panes = "".join(
        f'<div class="network-tab-content{" active" if position == 0 else ""}" data-tab="{key}">{content}</div>'
        for position, (key, _, content) in enumerate(tabs)
    )
    return (
        f'<template id="tpl-net-{_attr(entry.id)}"><div class="network-detail">'
        f'<div class="network-tabs">{buttons}</div>{panes}</div></template>'
    )


def _kv_grid(pairs: Iterable[tuple[str, object]]) -> str:
    cells = "".join(
        f'<span class="key">{escape(key)}:</span><span class="value">{escape(str(value))}</span>' for key, value in pairs
    )
    return f'<div class="kv-grid">{cells}</div>'


def _headers_tab(entry: NetworkEntry) -> str:
    general: list[tuple[str, object]] = [("Request URL", entry.url), ("Request Method", entry.method)]
    if entry.status is not None:
        general.append(("Status Code", f"{entry.status} {entry.status_text or ''}".strip()))
    if entry.mime_type:
        general.append(("Content-Type", entry.mime_type))
    parts = ['<div class="section-title">General</div>', _kv_grid(general)]
    for title, headers in (("Request Headers", entry.request_headers), ("Response Headers", entry.response_headers)):
        if headers:
            parts.append(f'<div class="section-title">{title} ({len(headers)})</div>')
            parts.append(_kv_grid(headers.items()))
    if entry.cookies:
        parts.append(f'<div class="section-title">Cookies ({len(entry.cookies)})</div>')
        parts.append(_kv_grid((cookie.name, cookie.value) for cookie in entry.cookies))
    return "".join(parts)


def _payload_tab(entry: NetworkEntry) -> str:
    parts = []
    if entry.request_body:
        parts.append('<div class="section-title">Request Payload</div>')
        if entry.request_body_size:
            parts.append(f'<div class="muted">Size: {format_bytes(entry.request_body_size)}</div>')
        parts.append(f'<pre class="body">{escape(entry.request_body)}</pre>')
    else:
        parts.append('<div class="muted">No request payload</div>')

    parts.append('<div class="section-title">Response Body</div>')
    if entry.response_body_size is not None:
        parts.append(f'<div class="muted">Size: {format_bytes(entry.response_body_size)}</div>')
    if entry.response_body is None:
        parts.append('<div class="muted">No response body captured</div>')
        return "".join(parts)
    if entry.response_body_encoding == "base64":
        parts.append('<div class="muted">base64-encoded</div>')
    body = entry.response_body
    truncated = "\n... (truncated)" if len(body) > BODY_PREVIEW_LIMIT else ""
    parts.append(f'<pre class="body">{escape(body[:BODY_PREVIEW_LIMIT])}{truncated}</pre>')
    return "".join(parts)


def _body_text(entry: NetworkEntry) -> str | None:
    if entry.response_body is None or entry.response_body_encoding != "base64":
        return entry.response_body
    try:
        return base64.b64decode(entry.response_body, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None


def _preview_tab(entry: NetworkEntry) -> str:
    mime = (entry.mime_type or "").lower()
    if entry.response_body is None or not mime:
        return '<div class="muted">No preview available</div>'

    # Previews only show recorded bytes; nothing is fetched from the page origin.
    if "image" in mime:
        if entry.response_body_encoding != "base64":
            return '<div class="muted">No preview available</div>'
        source = f"data:{mime};base64,{entry.response_body}"
        return f'<img src="{_attr(source)}" alt="response preview" style="max-width:100%;max-height:400px">'
    if "font" in mime or "woff" in mime:
        return f'<div class="muted">Font file ({escape(mime)})</div>'

    text = _body_text(entry)
    if text is None:
        return '<div class="muted">Binary content</div>'
    if "json" in mime:
        try:
            pretty = json.dumps(json.loads(text), indent=2, ensure_ascii=False)
        except ValueError:
            return '<div class="muted">Invalid JSON</div>'
        return f'<pre class="body">{escape(pretty)}</pre>'
    if "html" in mime:
        document = (
            "<!DOCTYPE html><html><head>"
            '<meta http-equiv="Content-Security-Policy" content="default-src data:; style-src \'unsafe-inline\'">'
            "</head>"
            f"<body>{text[:HTML_PREVIEW_LIMIT]}</body></html>"
        )
        return f'<iframe class="preview" sandbox="allow-same-origin" srcdoc="{_attr(document)}"></iframe>'
    return f'<pre class="body">{escape(text[:BODY_PREVIEW_LIMIT * 2])}</pre>'


def _timing_tab(entry: NetworkEntry) -> str:
    timing = entry.timing
    if not entry.duration and timing is None:
        return '<div class="muted">No timing data available</div>'
    rows: list[tuple[str, object]] = []
    if entry.duration:
        rows.append(("Total Duration", f"{entry.duration} ms"))
    if timing is not None:
        if timing.response_start is not None:
            rows.append(("Waiting (TTFB)", f"{timing.response_start - timing.start_time} ms"))
        if timing.response_end is not None and timing.response_start is not None:
            rows.append(("Content Download", f"{timing.response_end - timing.response_start} ms"))
    parts = ['<div class="section-title">Request Timing</div>', _kv_grid(rows)]
    if entry.duration:
        width = min(100.0, entry.duration / 10)
        parts.append(
            '<div class="waterfall-track"><div class="waterfall-bar" '
            f'style="left:0;width:{width:.2f}%;background:#4ec9b0"></div></div>'
        )
    return "".join(parts)


def _detail_row(label: str, value: object, css: str = "") -> str:
    classes = f"detail-value {css}".strip()
    return f'<div class="detail-row"><span class="detail-label">{label}</span><span class="{classes}">{escape(str(value))}</span></div>'


def _call_template(action: Action, location: NodeLocation) -> str:
    parts = ['<div class="detail-section"><div class="detail-section-title">Action</div>']
    parts.append(_detail_row("Name", action.name))
    parts.append(_detail_row("Status", action.status))
    parts.append(_detail_row("Duration", f"{action.duration or 0}ms"))
    if action.selector:
        parts.append(_detail_row("Selector", action.selector, "selector"))
    if action.value is not None:
        parts.append(_detail_row("Value", action.value))
    if action.error:
        parts.append(_detail_row("Error", action.error, "error"))
    parts.append("</div>")

    element = action.target_element
    if element is not None:
        parts.append('<div class="detail-section"><div class="detail-section-title">Target Element</div>')
        parts.append(_detail_row("Tag", element.tag_name))
        for label, value in (
            ("ID", element.id),
            ("Class", element.class_name),
            ("Text", element.text_content),
            ("Input Value", element.input_value),
        ):
            if value:
                parts.append(_detail_row(label, value))
        box = element.bounding_box
        if box is not None:
            position = f"({round(box.x)}, {round(box.y)}) {round(box.width)}×{round(box.height)}"
            parts.append(_detail_row("Position", position))
        parts.append("</div>")

    if action.click_point is not None:
        parts.append('<div class="detail-section"><div class="detail-section-title">Click Point</div>')
        parts.append(_detail_row("X", f"{action.click_point.x}px"))
        parts.append(_detail_row("Y", f"{action.click_point.y}px"))
        parts.append("</div>")

    step = location.step
    parts.append('<div class="detail-section"><div class="detail-section-title">Context</div>')
    if step is not None:
        parts.append(_detail_row("Step", f"{step.keyword} {step.text}".strip()))
    parts.append(_detail_row("Scenario", location.scenario.name))
    parts.append(_detail_row("Page", action.page_title or ""))
    parts.append(_detail_row("URL", action.page_url or ""))
    parts.append("</div>")
    return f'<template id="tpl-call-{_attr(action.id)}">{"".join(parts)}</template>'


def _console_template(trace: Trace) -> str:
    if not trace.console_logs:
        return '<template id="tpl-console"><div class="empty-state">No console logs captured</div></template>'
    entries = []
    for entry in trace.console_logs:
        stamp = datetime.fromtimestamp(entry.timestamp / 1000, tz=timezone.utc).strftime("%H:%M:%S.%f")[:-3]
        entries.append(
            f'<div class="console-entry {entry.type}"><span class="console-timestamp">{stamp}</span>'
            f"{escape(entry.message)}</div>"
        )
    return f'<template id="tpl-console">{"".join(entries)}</template>'
