"""
Terminal printer built on Rich.

Consistent output for the depbump CLI:
- Semantic colors via a Rich theme
- Glyph-based status indicators in a fixed gutter
- Plain-text output with --plain
"""

from __future__ import annotations

import shutil
import sys
import textwrap
from typing import Any, ClassVar

from rich.console import Console
from rich.padding import Padding
from rich.prompt import Confirm
from rich.text import Text
from rich.theme import Theme
from wcwidth import wcswidth

THEME = Theme({
    "success": "green",
    "error": "bold red",
    "warning": "yellow",
    "heading": "bold",
    "callout": "cyan",
    "dim": "dim",
})


class Printer:
    """Terminal output with Rich formatting.

    Layout grid:
    - Columns 0-2: Gutter (glyphs only)
    - Column 2+: Content
    - Column 4+: Nested details
    """

    INDENT = "  "
    INDENT2 = "    "

    # === Three-Tier Glyph System ===
    # Nerd Font (Material Design) when detected, Unicode with --unicode or as
    # fallback, ASCII with --minimal.

    GLYPHS_NERD: ClassVar[dict[str, str]] = {
        "success": "󰄬",      # nf-md-check
        "error": "󰅖",        # nf-md-close
        "warning": "󰀦",      # nf-md-alert
        "action": "󰁔",       # nf-md-arrow_decision
        "bullet": "󰧟",       # nf-md-circle-medium
        "skip": "󰒭",         # nf-md-skip_next
    }

    GLYPHS_UNICODE: ClassVar[dict[str, str]] = {
        "success": "✔",
        "error": "✘",
        "warning": "!",
        "action": "➜",
        "bullet": "•",
        "skip": "»",
    }

    GLYPHS_MINIMAL: ClassVar[dict[str, str]] = {
        "success": "+",
        "error": "x",
        "warning": "!",
        "action": ">",
        "bullet": "-",
        "skip": "~",
    }

    def __init__(
        self,
        use_plain: bool = False,
        use_minimal: bool = False,
        use_unicode: bool = False,
    ):
        self.use_plain = use_plain
        self.use_minimal = use_minimal
        self.use_unicode = use_unicode
        self.console: Console | None = None
        self.has_rich = False

        if use_minimal:
            self.glyphs = self.GLYPHS_MINIMAL
        elif use_unicode:
            self.glyphs = self.GLYPHS_UNICODE
        elif self._detect_nerd_font():
            self.glyphs = self.GLYPHS_NERD
        else:
            self.glyphs = self.GLYPHS_UNICODE

        if not use_plain:
            self.console = Console(theme=THEME)
            self.has_rich = True

    @staticmethod
    def _detect_nerd_font() -> bool:
        """Check if the terminal can render Nerd Font icons.

        A width of 0 or -1 for a Material Design glyph means the font lacks it.
        """
        return int(wcswidth("󰁔")) > 0

    def _pad_glyph(self, glyph: str, target_width: int = 2) -> str:
        """Pad glyph to target terminal width so text after it lines up."""
        width = int(wcswidth(glyph))
        if width <= 0:
            width = 1
        return glyph + " " * max(0, target_width - width)

    @staticmethod
    def _wrap_plain_line(text: str, indent: str) -> str:
        term_width = shutil.get_terminal_size(fallback=(80, 24)).columns
        wrapper = textwrap.TextWrapper(
            width=max(len(indent) + 20, term_width),
            initial_indent=indent,
            subsequent_indent=indent,
            replace_whitespace=False,
            drop_whitespace=False,
            expand_tabs=False,
        )
        return wrapper.fill(text)

    def _print_indented_text(self, text: str, indent: str, style: str | None = None) -> None:
        """Print text at a fixed indent with wrapped continuation alignment."""
        for line in text.splitlines() or [text]:
            if not line:
                print()
                continue
            if self.console is not None:
                rendered = Text.from_ansi(line)
                if style:
                    rendered.stylize(style)
                self.console.print(Padding(rendered, (0, 0, 0, len(indent)), expand=False), overflow="fold")
            else:
                print(self._wrap_plain_line(line, indent))

    def _print_indented_renderable(self, renderable: Text, indent: str) -> None:
        if self.console is not None:
            self.console.print(Padding(renderable, (0, 0, 0, len(indent)), expand=False), overflow="fold")
        else:
            self._print_indented_text(renderable.plain, indent)

    def _print_glyph_line(self, glyph_name: str, style: str, text: str, file: Any = None) -> None:
        g = self._pad_glyph(self.glyphs[glyph_name])
        if self.console is not None:
            rendered = Text()
            rendered.append(g, style=style)
            rendered.append(text)
            self.console.print(rendered)
        else:
            print(f"{g}{text}", file=file or sys.stdout)

    # ─────────────────────────────────────────────────────────────────────────
    # Structure
    # ─────────────────────────────────────────────────────────────────────────

    def stream_line(self, text: str, indent: str = "  ") -> None:
        """Print one line of streamed subprocess output."""
        self._print_indented_text(text, indent, style="dim")

    def action(self, text: str) -> None:
        """Print action header with arrow at column 0."""
        print()
        g = self._pad_glyph(self.glyphs["action"])
        if self.console is not None:
            rendered = Text(g, style="callout")
            rendered.append(text, style="heading")
            self.console.print(rendered)
        else:
            print(f"{g}{text}")

    def section(self, title: str, count: int = 0) -> None:
        """Print a bold section header at column 2: **Title** (count)."""
        print()
        rendered = Text(title, style="heading")
        if count > 0:
            rendered.append(f" ({count})")
        self._print_indented_renderable(rendered, self.INDENT)

    def bullet(self, text: str) -> None:
        """Print a list item with the bullet in the gutter."""
        rendered = Text(self._pad_glyph(self.glyphs["bullet"]), style="dim")
        rendered.append(text)
        self._print_indented_renderable(rendered, "")

    def line(self, text: str) -> None:
        self._print_indented_text(text, self.INDENT)

    def detail(self, text: str) -> None:
        """Print dim text at column 4."""
        self._print_indented_text(text, self.INDENT2, style="dim")

    def dim(self, text: str) -> None:
        self._print_indented_text(text, self.INDENT, style="dim")

    def suggestion(self, text: str) -> None:
        """Print a call to action at column 2 (not dim)."""
        self._print_indented_text(text, self.INDENT, style="callout")

    # ─────────────────────────────────────────────────────────────────────────
    # Status lines
    # ─────────────────────────────────────────────────────────────────────────

    def info(self, text: str) -> None:
        """Print dim informational text at column 2."""
        self._print_indented_text(text, self.INDENT, style="dim")

    def success(self, text: str) -> None:
        self._print_glyph_line("success", "success", text)

    def complete(self, text: str) -> None:
        """Print a completion message after a blank line."""
        print()
        self._print_glyph_line("success", "success", text)

    def skipped(self, text: str) -> None:
        self._print_glyph_line("skip", "dim", text)

    def warn(self, text: str) -> None:
        self._print_glyph_line("warning", "warning", text)

    def error(self, text: str) -> None:
        self._print_glyph_line("error", "error", text, file=sys.stderr)

    # ─────────────────────────────────────────────────────────────────────────
    # Input
    # ─────────────────────────────────────────────────────────────────────────

    def confirm(self, prompt: str, default: bool = True) -> bool:
        """Ask a yes/no question; non-interactive input answers with the default."""
        if self.console is not None:
            try:
                return bool(Confirm.ask(prompt, default=default, console=self.console))
            except EOFError:
                return default
        suffix = " [Y/n]: " if default else " [y/N]: "
        try:
            response = input(f"{self.INDENT}{prompt}{suffix}").strip().lower()
        except EOFError:
            return default
        if not response:
            return default
        return response in ("y", "yes")
