from __future__ import annotations

import re

from bs4 import BeautifulSoup

CODE_FENCE_PATTERN = re.compile(r"^```[a-zA-Z]*\s*\n?(?P<body>.*?)\n?```$", flags=re.DOTALL)
BLANK_LINES_PATTERN = re.compile(r"\n{3,}")


def html_to_text(html: str | None) -> str:
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "head"]):
        tag.decompose()
    for br in soup.find_all("br"):
        br.replace_with("\n")

    text = soup.get_text("\n")
    lines = [line.strip() for line in text.splitlines()]
    return BLANK_LINES_PATTERN.sub("\n\n", "\n".join(lines)).strip()


def strip_code_fences(text: str) -> str:
    """Remove a Markdown code fence wrapping the whole text (```json ... ```)."""
    stripped = text.strip()
    match = CODE_FENCE_PATTERN.match(stripped)
    if match:
        return match.group("body").strip()
    return stripped
