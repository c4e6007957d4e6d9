"""Prompt builder for README generation.

Renders a repository snapshot and the user's options into a single
prompt. The output is a pure function of its inputs: the same snapshot
and options always produce the same text.
"""

import logging

from readme_generator.ai.anchors import GitHubSlugPolicy, SlugPolicy
from readme_generator.schemas.generation import BadgeStyle, GenerationOptions, Tone
from readme_generator.schemas.repository import MAX_CONFIG_FILE_CHARS, RepositorySnapshot

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "\n... (truncated)"

SECTION_DESCRIPTIONS: dict[str, str] = {
    "badges": "Badges (stars, forks, license, language shields.io badges)",
    "features": "Features section highlighting key capabilities",
    "installation": "Installation instructions with commands",
    "usage": "Usage examples with code snippets",
    "techStack": "Tech stack / dependencies list",
    "apiReference": "API Reference with endpoints or methods",
    "configuration": "Configuration options and environment variables",
    "testing": "Testing instructions and commands",
    "roadmap": "Roadmap with planned features",
    "faq": "FAQ section with common questions",
    "contributing": "Contributing guidelines",
    "security": "Security policy and reporting vulnerabilities",
    "license": "License section",
}

TONE_GUIDES: dict[Tone, tuple[str, tuple[str, ...]]] = {
    Tone.PROFESSIONAL: (
        "formal, polished, and business-appropriate",
        (
            "Use clear, precise language without being overly casual",
            "Maintain a confident, authoritative voice",
            "Avoid slang, jokes, or overly casual expressions",
            "Structure information in a logical, organized manner",
            "Use complete sentences and proper grammar throughout",
        ),
    ),
    Tone.FRIENDLY: (
        "warm, approachable, and conversational",
        (
            "Use a welcoming, inclusive tone that makes readers feel at ease",
            "Add encouraging language like 'Let's get started!'",
            "Use contractions naturally (we're, you'll, it's)",
            "Include friendly calls-to-action",
            "Make complex topics feel accessible and fun",
        ),
    ),
    Tone.TECHNICAL: (
        "detailed, precise, and developer-focused",
        (
            "Include specific technical details, types, and parameters",
            "Use proper technical terminology without oversimplifying",
            "Provide comprehensive code examples with explanations",
            "Document edge cases, errors, and expected behaviors",
            "Assume the reader has technical expertise",
        ),
    ),
    Tone.MINIMAL: (
        "brief, concise, and to-the-point",
        (
            "Use the fewest words possible while remaining clear",
            "Avoid unnecessary adjectives and filler phrases",
            "Prefer bullet points over paragraphs where appropriate",
            "Skip lengthy explanations, just the essentials",
            "Every sentence should provide direct value",
        ),
    ),
}

# Example headers shown to the model when emoji headers are requested.
EMOJI_HEADERS: tuple[str, ...] = (
    "🚀 Features",
    "📦 Installation",
    "💻 Usage",
    "🛠️ Tech Stack",
    "📖 API Reference",
    "⚙️ Configuration",
    "🧪 Testing",
    "🗺️ Roadmap",
    "❓ FAQ",
    "🤝 Contributing",
    "🔒 Security",
    "📄 License",
)

PLAIN_TOC_HEADERS: tuple[str, ...] = ("Features", "Installation", "Usage")


README_PROMPT_TEMPLATE = """Generate a professional README.md file for this GitHub repository.

REPOSITORY INFO:
- Name: {name}
- Full name: {full_name}
- Description: {description}
- Owner: {owner}
- Stars: {stars}
- Forks: {forks}
- License: {license}
- Topics: {topics}
- Homepage: {homepage}
- Default branch: {default_branch}

LANGUAGES:
{languages}

ROOT FILES:
{root_files}

TOP-LEVEL DIRECTORIES:
{top_directories}

CONFIG FILES:
{config_files}

REQUESTED SECTIONS (in order): {requested_sections}
{tone_block}{badge_block}{emoji_block}{toc_block}
INSTRUCTIONS:
1. Generate ONLY the sections requested above, IN THE EXACT ORDER LISTED
2. Make it well-formatted markdown
3. Infer the project's purpose from the available information
4. For installation, use appropriate commands based on the detected package manager/language
5. For usage, provide realistic examples based on what the project appears to do
6. Use shields.io badge format if badges are requested, with the specified style parameter
7. For API reference, infer endpoints or methods from the codebase structure
8. For configuration, list environment variables or config options if detectable
9. IMPORTANT: Follow the tone guidelines strictly throughout the entire README
10. Output ONLY the raw markdown, no explanations or code fences"""


class PromptBuilder:
    """
    Builds the README generation prompt.

    Each option family (tone, badge style, emoji, table of contents)
    contributes its own delimited block after the requested section list.
    """

    def __init__(
        self,
        slug_policy: SlugPolicy | None = None,
        max_config_chars: int = MAX_CONFIG_FILE_CHARS,
    ):
        """
        Initialize prompt builder.

        Args:
            slug_policy: Anchor rule described to the model for TOC links
            max_config_chars: Characters of each config file to include
        """
        self.slug_policy = slug_policy or GitHubSlugPolicy()
        self.max_config_chars = max_config_chars

    def build(self, snapshot: RepositorySnapshot, options: GenerationOptions) -> str:
        prompt = README_PROMPT_TEMPLATE.format(
            name=snapshot.name,
            full_name=snapshot.full_name,
            description=snapshot.description or "No description provided",
            owner=snapshot.owner,
            stars=snapshot.stars,
            forks=snapshot.forks,
            license=snapshot.license or "Not specified",
            topics=", ".join(snapshot.topics) or "None",
            homepage=snapshot.homepage or "None",
            default_branch=snapshot.default_branch,
            languages=self._format_languages(snapshot) or "Not available",
            root_files=", ".join(f for f in snapshot.files if "/" not in f) or "Not available",
            top_directories=", ".join(d for d in snapshot.directories if "/" not in d)
            or "Not available",
            config_files=self._format_config_files(snapshot) or "None found",
            requested_sections=self.requested_sections(options),
            tone_block=self.tone_block(options.tone),
            badge_block=self.badge_block(options.badge_style, snapshot.full_name),
            emoji_block=self.emoji_block(options.use_emojis),
            toc_block=self.toc_block(options.include_toc, options.use_emojis),
        )

        logger.debug(
            "Built README prompt",
            extra={
                "repo": snapshot.full_name,
                "sections": options.enabled_sections,
                "prompt_length": len(prompt),
            },
        )
        return prompt

    @staticmethod
    def requested_sections(options: GenerationOptions) -> str:
        return ", ".join(SECTION_DESCRIPTIONS[s] for s in options.enabled_sections)

    @staticmethod
    def _format_languages(snapshot: RepositorySnapshot) -> str:
        ordered = sorted(snapshot.languages.items(), key=lambda item: (-item[1], item[0]))
        return ", ".join(f"{lang}: {size} bytes" for lang, size in ordered)

    def _format_config_files(self, snapshot: RepositorySnapshot) -> str:
        blocks = []
        for path in sorted(snapshot.config_files):
            content = snapshot.config_files[path]
            if len(content) > self.max_config_chars or path in snapshot.truncated_config_files:
                content = content[: self.max_config_chars] + TRUNCATION_MARKER
            blocks.append(f"--- {path} ---\n{content}")
        return "\n\n".join(blocks)

    @staticmethod
    def tone_block(tone: Tone) -> str:
        style, guidelines = TONE_GUIDES[tone]
        lines = "\n".join(f"- {g}" for g in guidelines)
        return f"\nWRITING TONE: {style.upper()}\n\nTone Guidelines:\n{lines}\n"

    @staticmethod
    def badge_block(badge_style: BadgeStyle, full_name: str) -> str:
        style = badge_style.value
        return (
            f"\nBADGE STYLE: {style}\n"
            f"When generating shields.io badges, use the style parameter: ?style={style}\n"
            f"Example format: ![Stars](https://img.shields.io/github/stars/{full_name}?style={style})\n"
        )

    @staticmethod
    def emoji_block(use_emojis: bool) -> str:
        if use_emojis:
            examples = "\n".join(f"- ## {header}" for header in EMOJI_HEADERS)
            return (
                "\nEMOJI FORMATTING: ENABLED\n"
                "Add relevant emojis to section headers to make them visually engaging.\n"
                f"Examples:\n{examples}\n"
            )
        return (
            "\nEMOJI FORMATTING: DISABLED\n"
            "Do NOT use any emojis in section headers. Keep headers plain text only.\n"
            'Example: "## Features" not "## 🚀 Features"\n'
        )

    def toc_block(self, include_toc: bool, use_emojis: bool) -> str:
        if not include_toc:
            return ""

        headers = EMOJI_HEADERS[:3] if use_emojis else PLAIN_TOC_HEADERS
        example = "\n".join(
            f"  - [{header}](#{self.slug_policy.slugify(header)})" for header in headers
        )
        rules = [
            "- Convert to lowercase",
            "- Replace spaces with hyphens",
            "- Remove special characters except hyphens",
        ]
        if use_emojis:
            first = EMOJI_HEADERS[0]
            slug = self.slug_policy.slugify(first)
            note = "the emoji is removed"
            if slug.startswith("-"):
                note += ", leaving a leading hyphen"
            rules.append(
                f'- For headers with emojis like "## {first}", the anchor becomes "#{slug}" ({note})'
            )
        return (
            "\nTABLE OF CONTENTS: ENABLED\n"
            "Include a Table of Contents section immediately after the project title/badges.\n"
            "Format it as a bulleted list with markdown anchor links to each section.\n\n"
            "CRITICAL: GitHub anchor format rules:\n"
            + "\n".join(rules)
            + f"\n- Example TOC:\n{example}\n\n"
            "Make sure the anchor links EXACTLY match how GitHub will render them.\n"
        )


def compile_prompt(
    snapshot: RepositorySnapshot,
    options: GenerationOptions,
    slug_policy: SlugPolicy | None = None,
) -> str:
    """Compile the generation prompt for ``snapshot`` under ``options``."""
    return PromptBuilder(slug_policy=slug_policy).build(snapshot, options)
