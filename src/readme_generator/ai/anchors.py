"""Heading slug policies and table-of-contents anchor repair.

GitHub builds heading anchors by lowercasing, dropping punctuation and
emoji, and turning each space into a hyphen. A heading such as
``## 🚀 Features`` therefore gets the anchor ``#-features``. Models tend
to write ``#features`` instead, which silently breaks the link.

The slug rule is a pluggable policy because the platform behaviour is
not formally documented.
"""

from __future__ import annotations

import logging
import re
from typing import Protocol

logger = logging.getLogger(__name__)

_HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")
_FENCE_PATTERN = re.compile(r"^\s*(```|~~~)")


class SlugPolicy(Protocol):
    """Turns heading text into a URL fragment."""

    name: str

    def slugify(self, heading: str) -> str:
        ...


class GitHubSlugPolicy:
    """GitHub's rule: removed characters leave their surrounding spaces behind."""

    name = "github"

    def slugify(self, heading: str) -> str:
        slug = heading.strip().lower()
        slug = re.sub(r"[^\w\- ]", "", slug)
        return slug.replace(" ", "-")


class NaiveSlugPolicy:
    """Collapsed rule most generators assume: no leading or doubled hyphens."""

    name = "naive"

    def slugify(self, heading: str) -> str:
        slug = heading.lower()
        slug = re.sub(r"[^\w\s-]", "", slug)
        slug = re.sub(r"\s+", "-", slug)
        slug = re.sub(r"-+", "-", slug)
        return slug.strip("-")


_POLICIES: dict[str, type[GitHubSlugPolicy] | type[NaiveSlugPolicy]] = {
    GitHubSlugPolicy.name: GitHubSlugPolicy,
    NaiveSlugPolicy.name: NaiveSlugPolicy,
}


def get_slug_policy(name: str) -> SlugPolicy:
    try:
        return _POLICIES[name]()
    except KeyError:
        raise ValueError(f"Unknown slug policy: {name}") from None


def extract_headings(markdown: str) -> list[str]:
    """Return heading texts outside fenced code blocks, in document order."""
    headings: list[str] = []
    in_code = False
    for line in markdown.splitlines():
        if _FENCE_PATTERN.match(line):
            in_code = not in_code
            continue
        if in_code:
            continue
        match = _HEADING_PATTERN.match(line)
        if match:
            headings.append(match.group(2).strip())
    return headings


def build_anchor_map(
    headings: list[str],
    *,
    policy: SlugPolicy,
    naive: SlugPolicy | None = None,
) -> dict[str, str]:
    """Map each heading's naive anchor to the platform anchor where they differ."""
    naive = naive or NaiveSlugPolicy()
    mapping: dict[str, str] = {}
    for heading in headings:
        simple = naive.slugify(heading)
        platform = policy.slugify(heading)
        if simple and simple != platform:
            mapping.setdefault(simple, platform)
    return mapping


def repair_toc_anchors(markdown: str, policy: SlugPolicy | None = None) -> str:
    """Rewrite ``](#naive)`` links so they target the platform anchors.

    Best effort: only anchors that exactly match a heading's naive slug
    are rewritten.
    """
    policy = policy or GitHubSlugPolicy()
    mapping = build_anchor_map(extract_headings(markdown), policy=policy)
    if not mapping:
        return markdown

    repaired = markdown
    replaced = 0
    for simple, platform in mapping.items():
        repaired, count = re.subn(
            rf"\]\(#{re.escape(simple)}\)",
            f"](#{platform})",
            repaired,
        )
        replaced += count

    logger.info(
        "Repaired table-of-contents anchors",
        extra={"policy": policy.name, "links_rewritten": replaced},
    )
    return repaired
