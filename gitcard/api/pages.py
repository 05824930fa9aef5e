from datetime import UTC
from datetime import datetime
from html import escape

from gitcard.models import CardData
from gitcard.text import format_number

SECTION_VERSION = "14"
FOOTER_LABEL = "wende/gitcard infographic"

_BASE_STYLE = """
      body{margin:0;background:#e5e7eb;font-family:Inter,system-ui,-apple-system,Segoe UI,Roboto,sans-serif;padding:24px}
      .wrap{max-width:896px;margin:0 auto;background:#f8f9fa;border:1px solid rgba(209,213,219,.7);border-radius:40px;padding:24px}
      .charts{display:grid;grid-template-columns:1fr;gap:16px;margin-top:16px}
      img.panel{display:block;width:100%;height:auto;border:0;background:transparent}
      footer{display:flex;justify-content:space-between;gap:12px;color:#9ca3af;font-size:11px;text-transform:uppercase;letter-spacing:.1em;margin-top:14px;padding:6px 6px 0}
      @media (min-width:900px){.charts{grid-template-columns:1fr 1fr}}
"""

_CARD_STYLE = """
      .box{background:#fff;border:1px solid #f3f4f6;border-radius:28px;padding:24px}
      .stats{display:grid;grid-template-columns:repeat(2,minmax(0,1fr));gap:16px;margin-top:16px}
      .muted{color:#9ca3af}
      .meta{font-size:12px;color:#6b7280;min-width:220px;line-height:1.8}
      .stat-label{font-size:11px;text-transform:uppercase;letter-spacing:.08em;color:#9ca3af;font-weight:600}
      .stat-value{font-size:32px;line-height:1.1;color:#1f2937;font-weight:300}
      .links{display:flex;flex-wrap:wrap;gap:8px;margin-top:16px;font-size:12px}
      .links a{color:#64748b;text-decoration:none;border:1px solid #e5e7eb;border-radius:999px;padding:4px 10px;background:#fff}
      @media (min-width:900px){.stats{grid-template-columns:repeat(4,minmax(0,1fr))}}
"""


def generated_label(now: datetime | None = None) -> str:
    moment = now or datetime.now(UTC)
    return f"{moment:%b} {moment.day}, {moment.year}"


def _document(title: str, style: str, body: str, now: datetime | None) -> str:
    return f"""<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>{escape(title)}</title>
    <style>{style}    </style>
  </head>
  <body>
    <main class="wrap">
{body}
      <footer>
        <span>{FOOTER_LABEL}</span>
        <span>Generated {escape(generated_label(now))}</span>
      </footer>
    </main>
  </body>
</html>"""


def _panel_image(base_url: str, section_id: str, alt: str) -> str:
    src = escape(f"{base_url}/{section_id}.png?v={SECTION_VERSION}")
    return f'<img class="panel" src="{src}" alt="{escape(alt)}" />'


def render_card_page(
    username: str, data: CardData, base_url: str, now: datetime | None = None
) -> str:
    """Render the HTML profile page; charts are served as PNG sections."""

    profile = data.profile
    login = profile.get("login") or username
    name = profile.get("name") or login
    bio = profile.get("bio") or ""
    company = profile.get("company") or ""
    location = profile.get("location") or ""
    stats = [
        ("Contributions", format_number(data.stats.commits_last_year)),
        ("Total Stars", format_number(data.stats.total_stars)),
        ("PRs", format_number(data.stats.prs_last_year)),
        ("Followers", format_number(profile.get("followers") or 0)),
    ]

    stat_cells = "\n".join(
        f'        <div><div class="stat-label">{escape(label)}</div>'
        f'<div class="stat-value">{escape(value)}</div></div>'
        for label, value in stats
    )
    meta = "".join(
        f"<div>{escape(value)}</div>" for value in (company, location) if value
    )
    bio_html = (
        f'<p style="margin:10px 0 0;max-width:520px;color:#6b7280;font-size:14px;line-height:1.6;">{escape(bio)}</p>'
        if bio
        else ""
    )
    links = " ".join(
        f'<a href="{escape(f"{base_url}/{section_id}.png")}" target="_blank" rel="noreferrer noopener">{label}</a>'
        for section_id, label in (
            ("header", "Header"),
            ("stats", "Stats"),
            ("activity", "Activity"),
            ("languages", "Languages"),
            ("repositories", "Repositories"),
            ("panels", "Panels"),
        )
    )

    body = f"""      <section class="box" style="display:flex;justify-content:space-between;gap:20px;align-items:flex-start;flex-wrap:wrap;">
        <div style="display:flex;gap:16px;min-width:320px;">
          <img src="{escape(profile.get("avatar_url") or "")}" alt="{escape(login)}" width="96" height="96" style="border-radius:999px;border:1px solid #f3f4f6;object-fit:cover;" />
          <div>
            <h1 style="margin:0 0 6px;font-size:34px;line-height:1.1;color:#111827;font-weight:500;">{escape(name)}</h1>
            <div class="muted" style="font-size:15px;">@{escape(login)}</div>
            {bio_html}
          </div>
        </div>
        <div class="meta">{meta}</div>
      </section>
      <section class="box stats">
{stat_cells}
      </section>
      <section style="margin-top:16px;">
        {_panel_image(base_url, "activity", "Contribution activity chart")}
      </section>
      <section class="charts">
        <article>{_panel_image(base_url, "languages", "Language distribution chart")}</article>
        <article>{_panel_image(base_url, "repositories", "Most starred repositories chart")}</article>
      </section>
      <nav class="links">{links}</nav>"""

    return _document(f"GitCard · {login}", _BASE_STYLE + _CARD_STYLE, body, now)


def render_panels_page(username: str, base_url: str, now: datetime | None = None) -> str:
    body = f"""      <section>
        {_panel_image(base_url, "stats", "Stats panel")}
      </section>
      <section style="margin-top:16px;">
        {_panel_image(base_url, "activity", "Contribution activity panel")}
      </section>
      <section class="charts">
        <article>{_panel_image(base_url, "languages", "Language distribution panel")}</article>
        <article>{_panel_image(base_url, "repositories", "Most starred repositories panel")}</article>
      </section>"""

    return _document(f"GitCard Panels · {username}", _BASE_STYLE, body, now)
