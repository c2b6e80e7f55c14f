#!/usr/bin/env python3
import re
import sys
import shutil
import html
from pathlib import Path

import markdown       # pip install markdown
import yaml           # pip install pyyaml
from bs4 import BeautifulSoup  # pip install beautifulsoup4

from posts import (
    InvalidDateFormat,
    LATEST_LABEL,
    LATEST_POSTS_COUNT,
    LOOKBACK_DAYS,
    group_by_date,
    post_date,
)

BASE_DIR = Path(__file__).parent

# Matches post filenames like "2015-08-08-hello-world.md"
POST_FILENAME_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})-(.+)$")


# -----------------------
# Config
# -----------------------

def get_config_path_from_args(argv=None) -> Path:
    """
    Determine which config file to use.

    - If a path is passed as first argument, use that.
    - Otherwise, assume config.yml next to this script.
    """
    argv = sys.argv[1:] if argv is None else argv
    if argv:
        return Path(argv[0]).resolve()
    return (BASE_DIR / "config.yml").resolve()


def _as_list(value):
    # extra_head / extra_footer can be a string or a list
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(x) for x in value]
    return []


def load_config(config_path: Path) -> dict:
    """Load YAML config and apply defaults."""
    if not config_path.exists():
        print(f"Config file not found: {config_path}", file=sys.stderr)
        sys.exit(1)

    data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}

    cfg = {
        "site_title": data.get("site_title", "Blog"),
        "site_tagline": data.get("site_tagline", ""),
        "posts_dir": data.get("posts_dir", "_posts"),
        "output_dir": data.get("output_dir", "_site"),
        "css_path": data.get("css_path", "style.css"),
        "include_drafts": bool(data.get("include_drafts", False)),
        # Sidebar grouping
        "latest_posts_count": int(data.get("latest_posts_count", LATEST_POSTS_COUNT)),
        "lookback_days": int(data.get("lookback_days", LOOKBACK_DAYS)),
        "extra_head": _as_list(data.get("extra_head", [])),
        "extra_footer": _as_list(data.get("extra_footer", [])),
    }
    return cfg


# -----------------------
# Loading posts
# -----------------------

def split_front_matter(text: str):
    """
    Split a post into (meta, body).

      ---
      title: Hello
      date: 2015-08-08
      ---
      Body in markdown.

    Files without a front-matter fence get empty meta.
    """
    if not text.startswith("---"):
        return {}, text

    parts = text.split("---", 2)
    if len(parts) < 3:
        return {}, text

    meta = yaml.safe_load(parts[1]) or {}
    if not isinstance(meta, dict):
        meta = {}
    return meta, parts[2].lstrip("\n")


def load_posts(posts_dir: Path, include_drafts: bool = False):
    """
    Read every *.md file in posts_dir into a post dict:

      {
        "title": "Hello",
        "date": date | datetime | str,   # as written in front matter
        "slug": "2015-08-08-hello-world",   # file stem
        "content_md": "markdown text",
        "draft": False,
        "source_file": Path,
        "_date": date,                   # normalized, used for sorting
      }

    Posts are returned newest first. Draft posts are skipped unless
    include_drafts=True.
    """
    posts = []

    for md_file in sorted(posts_dir.glob("*.md")):
        try:
            meta, body = split_front_matter(md_file.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            exc.source_file = md_file
            raise

        # Slug is the whole file stem, date included
        slug = md_file.stem
        m = POST_FILENAME_RE.match(slug)
        if m:
            file_date, name = m.group(1), m.group(2)
        else:
            file_date, name = None, slug

        draft = bool(meta.get("draft", False))
        if draft and not include_drafts:
            continue

        posts.append(
            {
                "title": str(meta.get("title") or name),
                "date": meta.get("date", file_date),
                "slug": slug,
                "content_md": body.strip(),
                "draft": draft,
                "source_file": md_file,
            }
        )

    for post in posts:
        try:
            post["_date"] = post_date(post)
        except InvalidDateFormat as exc:
            exc.source_file = post["source_file"]
            raise

    posts.sort(key=lambda p: p["_date"], reverse=True)
    return posts


# -----------------------
# Rendering
# -----------------------

def wrap_images_with_figures(html_fragment: str) -> str:
    """
    Wrap <img> tags in <figure> with <figcaption> using the alt text.
    This exposes the Markdown alt text as a visible caption.
    """
    soup = BeautifulSoup(html_fragment, "html.parser")

    for img in soup.find_all("img"):
        alt = img.get("alt", "").strip()

        # Skip if already inside a figure
        if img.find_parent("figure"):
            continue

        figure = soup.new_tag("figure")
        figure["class"] = "post-figure"

        img.replace_with(figure)
        figure.append(img)

        if alt:
            caption = soup.new_tag("figcaption")
            caption.string = alt
            figure.append(caption)

    return str(soup)


def post_href(post, prefix: str = "") -> str:
    return f"{prefix}posts/{post['slug']}.html"


def render_post_nav(grouped: dict, active_slug=None, prefix: str = "") -> str:
    """Render the grouped posts as the sidebar navigation list."""
    sections = []
    for label, group in grouped.items():
        links = []
        for post in group:
            css_class = "post-link"
            if post.get("slug") == active_slug:
                css_class += " active"
            title = html.escape(post["title"])
            links.append(
                f'<li><a href="{post_href(post, prefix)}" class="{css_class}">{title}</a></li>'
            )
        links_html = "\n          ".join(links)
        sections.append(f"""<section class="post-nav-group">
        <h2 class="post-nav-title">{html.escape(label)}</h2>
        <ul class="post-nav-list">
          {links_html}
        </ul>
      </section>""")

    sections_html = "\n      ".join(sections)
    return f"""<nav class="post-nav">
      {sections_html}
    </nav>"""


def render_post(post) -> str:
    """Render one post as an <article> block."""
    day = post["_date"].isoformat()
    day_label = post["_date"].strftime("%B %d, %Y")
    raw_html = markdown.markdown(post["content_md"])
    content_html = wrap_images_with_figures(raw_html)

    return f"""<article id="{html.escape(post['slug'])}" class="post">
  <header class="post-header">
    <h2 class="post-title">{html.escape(post['title'])}</h2>
    <time class="post-date" datetime="{day}">{day_label}</time>
  </header>
  <div class="post-body">
    {content_html}
  </div>
</article>
"""


def build_common_head_and_footer(cfg):
    """Return extra_head_html, extra_footer_html strings."""
    extra_head_items = cfg.get("extra_head") or []
    extra_head_html = ""
    if extra_head_items:
        extra_head_html = "\n  " + "\n  ".join(extra_head_items)

    extra_footer_items = cfg.get("extra_footer") or []
    extra_footer_html = ""
    if extra_footer_items:
        extra_footer_html = "\n    " + "\n    ".join(extra_footer_items)

    return extra_head_html, extra_footer_html


def render_page(page_title: str, body_html: str, nav_html: str, cfg, *, prefix: str = "") -> str:
    """Wrap a page body in the site layout with the sidebar."""
    site_title = html.escape(cfg["site_title"])
    site_tagline = html.escape(cfg["site_tagline"])
    extra_head_html, extra_footer_html = build_common_head_and_footer(cfg)

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>{html.escape(page_title)}</title>
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <link rel="stylesheet" href="{prefix}style.css">{extra_head_html}
</head>
<body>
<div class="layout">
  <aside class="sidebar">
    <header class="site-header">
      <h1 class="site-title"><a href="{prefix}index.html">{site_title}</a></h1>
      <p class="site-tagline">{site_tagline}</p>
    </header>

    {nav_html}
  </aside>

  <main class="content">
    <div class="content-inner">
{body_html}
    </div>
  </main>
</div>

<footer class="site-footer">
  {extra_footer_html}
</footer>
</body>
</html>
"""


def render_post_page(post, grouped: dict, cfg) -> str:
    nav_html = render_post_nav(grouped, active_slug=post["slug"], prefix="../")
    page_title = f"{cfg['site_title']} – {post['title']}"
    return render_page(page_title, render_post(post), nav_html, cfg, prefix="../")


def render_index_page(grouped: dict, cfg) -> str:
    """
    Render index.html: every post of the latest bucket in full, with the
    grouped navigation in the sidebar.
    """
    nav_html = render_post_nav(grouped)
    latest = grouped.get(LATEST_LABEL, [])
    if latest:
        body_html = "\n\n".join(render_post(p) for p in latest)
    else:
        body_html = "<p>No posts yet.</p>"
    return render_page(cfg["site_title"], body_html, nav_html, cfg)


# -----------------------
# Output
# -----------------------

def copy_css(css_src: Path, output_dir: Path):
    """Copy the CSS file into the output directory as style.css."""
    if not css_src.exists():
        print(f"WARNING: CSS file not found at {css_src}", file=sys.stderr)
        return
    dest = output_dir / "style.css"
    shutil.copy2(css_src, dest)
    print(f"Copied CSS to {dest}")


def build(cfg: dict, base_dir: Path = BASE_DIR) -> int:
    """
    Build the site described by cfg. Paths in cfg are relative to base_dir.
    Returns the number of post pages written.
    """
    posts_dir = (base_dir / cfg["posts_dir"]).resolve()
    output_dir = (base_dir / cfg["output_dir"]).resolve()
    css_src = (base_dir / cfg["css_path"]).resolve()

    posts = load_posts(posts_dir, include_drafts=cfg["include_drafts"])

    grouped = group_by_date(
        posts,
        latest_count=cfg["latest_posts_count"],
        lookback_days=cfg["lookback_days"],
    )

    post_dir = output_dir / "posts"
    post_dir.mkdir(parents=True, exist_ok=True)

    copy_css(css_src, output_dir)

    for post in posts:
        out_path = post_dir / f"{post['slug']}.html"
        out_path.write_text(render_post_page(post, grouped, cfg), encoding="utf-8")
        print(f"Wrote {out_path}")

    index_path = output_dir / "index.html"
    index_path.write_text(render_index_page(grouped, cfg), encoding="utf-8")
    print(f"Wrote {index_path}")

    return len(posts)


def main():
    config_path = get_config_path_from_args()
    cfg = load_config(config_path)

    try:
        count = build(cfg, base_dir=config_path.parent)
    except InvalidDateFormat as exc:
        source = getattr(exc, "source_file", None)
        where = f" in {source}" if source else ""
        print(f"ERROR: {exc}{where}", file=sys.stderr)
        sys.exit(1)
    except yaml.YAMLError as exc:
        source = getattr(exc, "source_file", None)
        print(f"ERROR: Invalid front matter in {source}:\n{exc}", file=sys.stderr)
        sys.exit(1)

    if not count:
        print("No posts found.", file=sys.stderr)


if __name__ == "__main__":
    main()
