#!/usr/bin/env python3
"""Web viewer for memories and the user profile - accessible in browser."""

from __future__ import annotations

import json

from flask import Flask, render_template_string, request

from config import Config, load_config
from profile_store import ProfileStore
from vector_store import VectorStore

app = Flask(__name__)
ITEMS_PER_PAGE = 10
MAX_ROWS = 1000

_config: Config | None = None


def get_config() -> Config:
    global _config
    if _config is None:
        _config = load_config()
    return _config


def get_memories() -> list[dict]:
    """Fetch all memories, sorted by newest first."""
    store = VectorStore(get_config().db_path)
    if not store.path.exists():
        return []  # Nothing stored yet
    store.connect()
    try:
        rows = store.list_records(MAX_ROWS)
    finally:
        store.close()
    for row in rows:
        try:
            meta = json.loads(row.get("metadata") or "{}")
        except ValueError:
            meta = {}
        row["meta"] = meta if isinstance(meta, dict) else {}
        row["category"] = row["meta"].get("type", "other")
    return rows


def get_profile() -> dict:
    profile = ProfileStore(get_config().profile_path).load()
    return profile.to_dict()


def get_page_links(current: int, total: int) -> list:
    """Generate smart pagination links with ellipsis for gaps."""
    if total <= 7:
        return list(range(1, total + 1))

    links = []
    for p in range(1, total + 1):
        show_page = (
            p <= 3  # First 3 pages
            or p >= total - 2  # Last 3 pages
            or abs(p - current) <= 1  # Pages around current
        )
        if show_page:
            links.append(p)
        elif links[-1] != "...":
            links.append("...")
    return links


HTML = """
<!DOCTYPE html>
<html>
<head>
    <title>Local Memory</title>
    <style>
        body { font-family: system-ui; max-width: 900px; margin: 0 auto; padding: 20px; background: #1a1a2e; color: #eee; }
        h1, h2 { color: #00d9ff; }
        .header { display: flex; justify-content: space-between; align-items: center; margin-bottom: 20px; flex-wrap: wrap; gap: 10px; }
        .pagination { display: flex; gap: 6px; align-items: center; flex-wrap: wrap; }
        .pagination a, .pagination span { padding: 6px 12px; background: #0f3460; color: #00d9ff; text-decoration: none; border-radius: 5px; display: inline-block; }
        .pagination a.current, .pagination span.current { background: #00d9ff; color: #1a1a2e; font-weight: bold; }
        .pagination span.ellipsis { color: #888; background: transparent; }
        .pagination a.disabled { color: #666; pointer-events: none; }
        .memory, .profile { background: #16213e; padding: 15px; margin: 10px 0; border-radius: 8px; border-left: 4px solid #00d9ff; }
        .category { display: inline-block; padding: 2px 8px; border-radius: 4px; font-size: 12px; font-weight: bold; }
        .preference { background: #2ecc71; }
        .decision { background: #9b59b6; }
        .entity { background: #e91e63; }
        .fact { background: #4a90d9; }
        .other { background: #888; }
        .meta { color: #888; font-size: 12px; margin-top: 8px; }
        .search { margin-bottom: 20px; }
        input { padding: 10px; width: 100%; border-radius: 5px; border: none; background: #0f3460; color: #fff; }
    </style>
</head>
<body>
    <div class="header">
        <h1>Local Memory</h1>
        <div class="pagination">
            {% if page > 1 %}
            <a href="/?page={{ page-1 }}">← Prev</a>
            {% else %}
            <a class="disabled">← Prev</a>
            {% endif %}

            {% for p in page_links %}
            {% if p == "..." %}
            <span class="ellipsis">...</span>
            {% elif p == page %}
            <span class="current">{{ p }}</span>
            {% else %}
            <a href="/?page={{ p }}">{{ p }}</a>
            {% endif %}
            {% endfor %}

            {% if page < total_pages %}
            <a href="/?page={{ page+1 }}">Next →</a>
            {% else %}
            <a class="disabled">Next →</a>
            {% endif %}
        </div>
    </div>
    <div class="profile">
        <h2>Profile</h2>
        {% if profile.static or profile.dynamic %}
        <p>Stable Preferences:</p>
        <ul>{% for f in profile.static %}<li>{{ f }}</li>{% endfor %}</ul>
        <p>Recent Context:</p>
        <ul>{% for f in profile.dynamic %}<li>{{ f }}</li>{% endfor %}</ul>
        <div class="meta">Updated {{ profile.last_updated[:19] }}</div>
        {% else %}
        <p>No profile information available yet.</p>
        {% endif %}
    </div>
    <p>{{ total_memories }} memories total</p>
    <div class="search">
        <input type="text" id="search" placeholder="Search memories..." onkeyup="filterMemories()">
    </div>
    <div id="memories">
        {% for m in memories %}
        <div class="memory" data-content="{{ m.content|lower }}">
            <span class="category {{ m.category }}">{{ m.category }}</span>
            <p>{{ m.content }}</p>
            <div class="meta">{{ m.id }} | {{ m.meta.get("source", "") }} | {{ m.createdAt[:19] }}</div>
        </div>
        {% endfor %}
    </div>
    <script>
        function filterMemories() {
            const q = document.getElementById('search').value.toLowerCase();
            document.querySelectorAll('.memory').forEach(el => {
                el.style.display = el.dataset.content.includes(q) ? 'block' : 'none';
            });
        }
    </script>
</body>
</html>
"""


@app.route("/")
def index():
    all_memories = get_memories()

    total = len(all_memories)
    try:
        page = max(1, int(request.args.get("page", 1)))
    except ValueError:
        page = 1
    start = (page - 1) * ITEMS_PER_PAGE
    end = start + ITEMS_PER_PAGE
    memories = all_memories[start:end]
    total_pages = (total + ITEMS_PER_PAGE - 1) // ITEMS_PER_PAGE
    page_links = get_page_links(page, total_pages)

    return render_template_string(
        HTML,
        memories=memories,
        profile=get_profile(),
        page=page,
        total_pages=total_pages,
        total_memories=total,
        page_links=page_links,
    )


def main():
    print("Open http://localhost:5000 in your browser")
    app.run(port=5000)


if __name__ == "__main__":
    main()
