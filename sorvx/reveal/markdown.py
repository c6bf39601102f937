"""Safe Markdown subset to HTML for revealed message text.

All input is HTML-escaped before any markup is added, so embedded tags and
scripts come out as text. Code (fenced or inline) is emitted literally with
no further formatting inside. An unclosed fence, common while a reply is
still being revealed, runs to the end of the text.
"""
import re

from markupsafe import escape

FENCE_RE = re.compile(r"```(?:([\w+#.-]+)[ \t]*\n)?\n?(.*?)(?:```|\Z)", re.DOTALL)
INLINE_CODE_RE = re.compile(r"`([^`\n]+)`")
PLACEHOLDER_RE = re.compile(r"[\x00\x01](\d+)[\x00\x01]")
FENCE_PLACEHOLDER_RE = re.compile(r"\x01\d+\x01")

HEADER_RE = re.compile(r"^(#{1,6})\s+(.+)$")
BULLET_RE = re.compile(r"^\s*[-*+]\s+(.*)$")
ORDERED_RE = re.compile(r"^\s*\d+[.)]\s+(.*)$")

BOLD_RE = re.compile(r"\*\*(.+?)\*\*")
ITALIC_STAR_RE = re.compile(r"(?<!\w)\*([^*\n]+?)\*(?!\w)")
ITALIC_UNDERSCORE_RE = re.compile(r"(?<!\w)_([^_\n]+?)_(?!\w)")
STRIKE_RE = re.compile(r"~~(.+?)~~")
LINK_RE = re.compile(r"\[([^\]\n]+)\]\(([^)\s]+)\)")
SAFE_URL_RE = re.compile(r"^(https?:|mailto:|/|#)", re.IGNORECASE)


def _link(match: re.Match) -> str:
    label, url = match.group(1), match.group(2)
    if not SAFE_URL_RE.match(url):
        return label
    return f'<a href="{url}" rel="noopener noreferrer" target="_blank">{label}</a>'


def _inline(text: str) -> str:
    text = LINK_RE.sub(_link, text)
    text = STRIKE_RE.sub(r"<del>\1</del>", text)
    text = BOLD_RE.sub(r"<strong>\1</strong>", text)
    text = ITALIC_STAR_RE.sub(r"<em>\1</em>", text)
    text = ITALIC_UNDERSCORE_RE.sub(r"<em>\1</em>", text)
    return text


def _render_block(block: str, out: list[str]) -> None:
    para: list[str] = []
    items: list[str] = []
    list_tag = None

    def flush_para():
        if para:
            out.append("<p>" + "<br>\n".join(para) + "</p>")
            para.clear()

    def flush_list():
        nonlocal list_tag
        if items:
            out.append(f"<{list_tag}>" + "".join(f"<li>{i}</li>" for i in items) + f"</{list_tag}>")
            items.clear()
        list_tag = None

    for line in block.split("\n"):
        header = HEADER_RE.match(line)
        bullet = BULLET_RE.match(line)
        ordered = ORDERED_RE.match(line)
        if header:
            flush_para()
            flush_list()
            level = len(header.group(1))
            out.append(f"<h{level}>{_inline(header.group(2))}</h{level}>")
        elif bullet or ordered:
            flush_para()
            tag = "ul" if bullet else "ol"
            if list_tag != tag:
                flush_list()
                list_tag = tag
            items.append(_inline((bullet or ordered).group(1)))
        elif FENCE_PLACEHOLDER_RE.fullmatch(line.strip()):
            flush_para()
            flush_list()
            out.append(line.strip())
        elif line.strip():
            flush_list()
            para.append(_inline(line))
    flush_para()
    flush_list()


def render_markdown(text: str) -> str:
    """Render `text` to HTML. Never emits markup that came from the input."""
    if not text:
        return ""
    text = text.replace("\x00", "").replace("\x01", "").replace("\r\n", "\n")
    stash: list[str] = []

    def keep(html: str, marker: str = "\x00") -> str:
        stash.append(html)
        return f"{marker}{len(stash) - 1}{marker}"

    def fence(match: re.Match) -> str:
        lang, body = match.group(1), match.group(2).rstrip("\n")
        cls = f' class="language-{escape(lang)}"' if lang else ""
        return "\n\n" + keep(f"<pre><code{cls}>{escape(body)}</code></pre>", "\x01") + "\n\n"

    text = FENCE_RE.sub(fence, text)
    text = str(escape(text))
    text = INLINE_CODE_RE.sub(lambda m: keep(f"<code>{m.group(1)}</code>"), text)

    out: list[str] = []
    for block in re.split(r"\n{2,}", text):
        if block.strip():
            _render_block(block, out)
    html = "\n".join(out)
    return PLACEHOLDER_RE.sub(lambda m: stash[int(m.group(1))], html)
