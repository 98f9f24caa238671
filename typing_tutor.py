from __future__ import annotations

import argparse
import json
import logging
import os
import random
from collections import deque
from pathlib import Path
from typing import Deque, Dict, Iterable, List, Optional, Sequence, Tuple

try:
    from rich.text import Text
    from textual import events
    from textual.app import App, ComposeResult
    from textual.containers import Container
    from textual.widgets import Static
except ModuleNotFoundError as exc:
    missing = getattr(exc, "name", "")
    hint = "python3 -m pip install -U rich textual"
    print(f"Missing dependency '{missing}'. Install with: {hint}")
    raise SystemExit(1) from exc


logger = logging.getLogger(__name__)


# ---------------------------
# Constants
# ---------------------------

# Printable ASCII without space: 0x21 ('!') through 0x7E ('~').
ALPHABET: Tuple[str, ...] = tuple(chr(code) for code in range(0x21, 0x7F))
_ALPHABET_SET = frozenset(ALPHABET)

PROMPT_LENGTH = 50
ERROR_SCORE_INCR = 10
ERROR_SCORE_DECAY = 1
STAT_SCORE_INCR = 50
MISTAKE_HISTORY = 10
ERROR_STORAGE_KEY = "typing_errors"

BACKSPACE = "Backspace"
ENTER = "Enter"


def tier(count: int, increment: int) -> int:
    """Ceiling division: the coarse bucket a raw counter falls into."""
    return (count + increment - 1) // increment


def pair_key(expected: str, typed: str) -> str:
    return f"{expected} -> {typed}"


def split_pair_key(key: str) -> Tuple[str, str]:
    """
    Inverse of pair_key. Raises ValueError if the key is not
    "<char> -> <char>" with both chars in the alphabet.
    """
    expected, sep, typed = key.partition(" -> ")
    if not sep or expected not in _ALPHABET_SET or typed not in _ALPHABET_SET:
        raise ValueError(f"malformed pair key: {key!r}")
    return expected, typed


# ---------------------------
# Error model
# ---------------------------

class ErrorModel:
    """
    Per-character error scores plus per-confusion pair counters.

    Both counters saturate at zero. Every call to account() is followed by
    a synchronous save through the bound store, if any.
    """

    def __init__(
        self,
        error_score: Optional[Dict[str, int]] = None,
        pair_stats: Optional[Dict[Tuple[str, str], int]] = None,
        store: Optional["ErrorStore"] = None,
        decay: int = ERROR_SCORE_DECAY,
    ) -> None:
        self.error_score: Dict[str, int] = dict(error_score or {})
        self.pair_stats: Dict[Tuple[str, str], int] = dict(pair_stats or {})
        self.store = store
        self.decay = decay

    def score_for(self, c: str) -> int:
        return self.error_score.get(c, 0)

    def pair_count(self, expected: str, typed: str) -> int:
        return self.pair_stats.get((expected, typed), 0)

    def account(self, expected: str, typed: str) -> None:
        if expected == typed:
            self.error_score[expected] = max(0, self.score_for(expected) - self.decay)
            for pair, value in self.pair_stats.items():
                if pair[0] == expected:
                    self.pair_stats[pair] = max(0, value - self.decay)
        else:
            self.error_score[expected] = self.score_for(expected) + ERROR_SCORE_INCR
            # The wrongly produced char only becomes slightly more suspect.
            self.error_score[typed] = self.score_for(typed) + 1
            pair = (expected, typed)
            self.pair_stats[pair] = self.pair_stats.get(pair, 0) + STAT_SCORE_INCR
        if self.store is not None:
            self.store.save(self)

    def ranked_pairs(self) -> List[Tuple[str, int]]:
        """(pair key, tier) sorted by descending count, ties by key."""
        ordered = sorted(self.pair_stats.items(), key=lambda item: (-item[1], item[0]))
        return [(pair_key(*pair), tier(count, STAT_SCORE_INCR)) for pair, count in ordered]

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        return {
            "error_score": dict(self.error_score),
            "error_stats": {pair_key(*pair): count for pair, count in self.pair_stats.items()},
        }

    @classmethod
    def from_dict(cls, data: object, store: Optional["ErrorStore"] = None) -> "ErrorModel":
        """Raises ValueError on any shape or value it does not recognise."""
        if not isinstance(data, dict):
            raise ValueError("error statistics must be an object")
        raw_scores = data.get("error_score", {})
        raw_stats = data.get("error_stats", {})
        if not isinstance(raw_scores, dict) or not isinstance(raw_stats, dict):
            raise ValueError("error_score and error_stats must be objects")

        scores: Dict[str, int] = {}
        for c, value in raw_scores.items():
            if c not in _ALPHABET_SET:
                raise ValueError(f"unknown character in error_score: {c!r}")
            scores[c] = _count(value)

        stats: Dict[Tuple[str, str], int] = {}
        for key, value in raw_stats.items():
            stats[split_pair_key(key)] = _count(value)
        return cls(scores, stats, store=store)


def _count(value: object) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"expected a non-negative integer, got {value!r}")
    return value


# ---------------------------
# Persistence helpers
# ---------------------------

def _default_data_dir() -> Path:
    """
    Local-only statistics storage:
    - macOS: ~/Library/Application Support/typing-tutor
    - Linux: $XDG_DATA_HOME/typing-tutor or ~/.local/share/typing-tutor
    """
    home = Path.home()
    if sys_platform() == "darwin":
        return home / "Library" / "Application Support" / "typing-tutor"
    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        return Path(xdg) / "typing-tutor"
    return home / ".local" / "share" / "typing-tutor"


def sys_platform() -> str:
    try:
        return os.uname().sysname.lower()
    except AttributeError:
        # windows has no os.uname
        return os.name.lower()


CONFIG_PATH = Path(__file__).resolve().parent / "typing_tutor.config.json"


class ErrorStore:
    """Load/save contract for the error model."""

    def load(self) -> ErrorModel:
        raise NotImplementedError

    def save(self, model: ErrorModel) -> None:
        raise NotImplementedError


class MemoryErrorStore(ErrorStore):
    """Keeps the last saved snapshot in process; used with --no-save and in tests."""

    def __init__(self, data: Optional[Dict[str, object]] = None) -> None:
        self.data = data
        self.saves = 0

    def load(self) -> ErrorModel:
        if self.data is None:
            return ErrorModel(store=self)
        try:
            return ErrorModel.from_dict(self.data, store=self)
        except ValueError as exc:
            logger.warning("Discarding stored error statistics: %s", exc)
            return ErrorModel(store=self)

    def save(self, model: ErrorModel) -> None:
        self.data = model.to_dict()
        self.saves += 1


class JsonErrorStore(ErrorStore):
    """The whole model as one JSON document, rewritten on every save."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    @classmethod
    def in_dir(cls, data_dir: Path) -> "JsonErrorStore":
        return cls(Path(data_dir) / f"{ERROR_STORAGE_KEY}.json")

    def load(self) -> ErrorModel:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return ErrorModel.from_dict(data, store=self)
        except FileNotFoundError:
            return ErrorModel(store=self)
        except (OSError, ValueError) as exc:
            # corrupted or unreadable: start fresh rather than crash
            logger.warning("Discarding error statistics in %s: %s", self.path, exc)
            return ErrorModel(store=self)

    def save(self, model: ErrorModel) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # the target is only ever replaced whole
            tmp_path = self.path.with_name(self.path.name + ".tmp")
            tmp_path.write_text(json.dumps(model.to_dict(), indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError:
            logger.exception("Could not save error statistics to %s", self.path)


# ---------------------------
# Prompt generation
# ---------------------------

class PromptGenerator:
    """Weighted draw over ALPHABET; characters with higher error scores come up more."""

    def __init__(self, rng: Optional[random.Random] = None, length: int = PROMPT_LENGTH) -> None:
        self.rng = rng if rng is not None else random.Random()
        self.length = length

    @staticmethod
    def weight_for(model: ErrorModel, c: str) -> int:
        return tier(model.score_for(c), ERROR_SCORE_INCR) + 1

    def weights(self, model: ErrorModel) -> List[int]:
        return [self.weight_for(model, c) for c in ALPHABET]

    def generate(self, model: ErrorModel) -> str:
        chars = self.rng.choices(ALPHABET, weights=self.weights(model), k=self.length)
        return "".join(chars)


# ---------------------------
# Practice session
# ---------------------------

class PracticeSession:
    """
    One practice attempt over a sequence of rounds.

    A round is in progress while the cursor is short of the prompt length and
    complete once they are equal. Only Enter leaves a complete round.
    """

    def __init__(
        self,
        model: Optional[ErrorModel] = None,
        generator: Optional[PromptGenerator] = None,
    ) -> None:
        self.model = model if model is not None else ErrorModel()
        self.generator = generator if generator is not None else PromptGenerator()
        self.recent_mistakes: Deque[Tuple[str, str]] = deque(maxlen=MISTAKE_HISTORY)
        self.rounds_completed = 0
        self.prompt = ""
        self.correctness: List[bool] = []
        self.new_round()

    @property
    def cursor(self) -> int:
        return len(self.correctness)

    @property
    def is_complete(self) -> bool:
        return self.cursor == len(self.prompt)

    def new_round(self) -> None:
        self.prompt = self.generator.generate(self.model)
        self.correctness = []
        logger.debug("New prompt: %s", self.prompt)

    def handle_key(self, key: Optional[str]) -> bool:
        """
        Apply one key identifier. Returns True if the key was consumed as a
        practice keystroke; anything else leaves the session untouched.
        """
        if not key:
            return False
        if self.is_complete:
            if key == ENTER:
                self.new_round()
                return True
            return False
        if key == BACKSPACE:
            if self.correctness:
                self.correctness.pop()
            return True
        if len(key) != 1 or key not in _ALPHABET_SET:
            return False

        expected = self.prompt[self.cursor]
        correct = expected == key
        self.correctness.append(correct)
        self.model.account(expected, key)
        if not correct:
            self.recent_mistakes.append((expected, key))
        logger.debug("Keystroke %r expected %r correct=%s", key, expected, correct)

        if self.is_complete:
            self.rounds_completed += 1
            logger.info("Round %d complete, accuracy %.1f%%", self.rounds_completed, self.accuracy() * 100)
        return True

    def accuracy(self) -> float:
        if not self.correctness:
            return 0.0
        return sum(self.correctness) / len(self.correctness)

    def char_states(self) -> List[Tuple[str, str]]:
        """(char, state) per prompt position; state is cursor/correct/incorrect/untyped."""
        states: List[Tuple[str, str]] = []
        for i, c in enumerate(self.prompt):
            if i == self.cursor:
                state = "cursor"
            elif i < self.cursor:
                state = "correct" if self.correctness[i] else "incorrect"
            else:
                state = "untyped"
            states.append((c, state))
        return states

    def mistakes_latest_first(self) -> List[Tuple[str, str]]:
        return list(reversed(self.recent_mistakes))


# ---------------------------
# Config
# ---------------------------

THEMES: Dict[str, Dict[str, str]] = {
    "slate": {
        "card_bg": "#111827",
        "stats_bg": "#0f172a",
        "prompt_bg": "#0b1220",
        "border": "#1f2937",
        "title": "#e5e7eb",
        "muted": "#64748b",
        "hint": "#93c5fd",
        "ok": "#a7f3d0",
        "bad": "#fca5a5",
        "cursor": "#e5e7eb",
        "upcoming": "#cbd5e1",
        "bar_fg": "#60a5fa",
    },
    "ember": {
        "card_bg": "#1f140f",
        "stats_bg": "#21140e",
        "prompt_bg": "#1a1210",
        "border": "#3b1d14",
        "title": "#fef3c7",
        "muted": "#d6a08a",
        "hint": "#fbbf24",
        "ok": "#fcd34d",
        "bad": "#f87171",
        "cursor": "#fde68a",
        "upcoming": "#f3e8e1",
        "bar_fg": "#f97316",
    },
    "mint": {
        "card_bg": "#0b1f24",
        "stats_bg": "#0b1c22",
        "prompt_bg": "#0a1b1f",
        "border": "#12323a",
        "title": "#d1fae5",
        "muted": "#7dd3c7",
        "hint": "#5eead4",
        "ok": "#a7f3d0",
        "bad": "#fb7185",
        "cursor": "#d1fae5",
        "upcoming": "#c7f9f1",
        "bar_fg": "#34d399",
    },
}


def load_config(path: Optional[Path] = None) -> Dict[str, object]:
    path = CONFIG_PATH if path is None else path
    if not path.exists():
        return {}
    try:
        config = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        logger.warning("Ignoring unreadable config file %s", path)
        return {}
    return config if isinstance(config, dict) else {}


def build_palettes(config: Dict[str, object]) -> Dict[str, Dict[str, str]]:
    palettes = THEMES.copy()
    extra_themes = config.get("themes")
    if isinstance(extra_themes, dict):
        for name, colors in extra_themes.items():
            if isinstance(colors, dict):
                palettes[name] = {**palettes.get("slate", {}), **colors}
    return palettes


def setup_logging(level: str = "INFO", log_path: Optional[Path] = None) -> None:
    # The terminal belongs to the UI, so logs only go to a file.
    handler: logging.Handler = logging.NullHandler()
    if log_path is not None:
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(log_path, encoding="utf-8")
        except OSError as exc:
            # the UI has not started yet, so stdout is still ours
            print(f"Logging disabled, cannot open {log_path}: {exc}")
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        handlers=[handler],
    )


# ---------------------------
# Rendering
# ---------------------------

def render_prompt(session: PracticeSession, theme: Dict[str, str]) -> Text:
    styles = {
        "cursor": f"bold reverse {theme['cursor']}",
        "correct": f"bold {theme['ok']}",
        "incorrect": f"bold {theme['bad']} underline",
        "untyped": theme["upcoming"],
    }
    text = Text()
    for c, state in session.char_states():
        text.append(c, style=styles[state])
    if session.is_complete:
        text.append("\n\nEnter to continue", style=theme["hint"])
    return text


def render_stats(session: PracticeSession, theme: Dict[str, str]) -> Text:
    text = Text()
    text.append("Progress ", style=theme["muted"])
    text.append(f"{session.cursor:>2}/{len(session.prompt)}", style=f"bold {theme['title']}")
    text.append("   ", style=theme["muted"])
    text.append("Acc ", style=theme["muted"])
    text.append(f"{session.accuracy()*100:>5.1f}%", style=f"bold {theme['title']}")
    text.append("   ", style=theme["muted"])
    text.append("Rounds ", style=theme["muted"])
    text.append(f"{session.rounds_completed}", style=f"bold {theme['title']}")
    return text


def render_mistakes(mistakes: Iterable[Tuple[str, str]], theme: Dict[str, str]) -> Text:
    text = Text()
    text.append("Last mistakes:\n", style=f"bold {theme['title']}")
    for expected, typed in mistakes:
        text.append(expected, style=theme["ok"])
        text.append(" -> ", style=theme["muted"])
        text.append(f"{typed}\n", style=theme["bad"])
    return text


def render_error_stats(ranked: Sequence[Tuple[str, int]], theme: Dict[str, str]) -> Text:
    text = Text()
    text.append("Error stats:\n", style=f"bold {theme['title']}")
    for key, level in ranked:
        text.append(key, style=theme["upcoming"])
        text.append(f" ({level})\n", style=theme["muted"])
    return text


def translate_key(event: events.Key) -> str:
    """Map a textual key event onto the identifiers the session understands."""
    if event.key == "backspace":
        return BACKSPACE
    if event.key == "enter":
        return ENTER
    if event.character is not None and event.is_printable:
        return event.character
    return event.key


# ---------------------------
# UI widgets
# ---------------------------

class PromptView(Static):
    """Prompt rendering area."""
    pass


class StatsBar(Static):
    """Live round stats."""
    pass


class MistakesView(Static):
    """Most recent mistakes, latest first."""
    pass


class ErrorStatsView(Static):
    """Confusion pairs ranked by tier."""
    pass


class HelpBar(Static):
    """Help / controls."""
    pass


# ---------------------------
# App
# ---------------------------

class TypingTutor(App):
    CSS = """
    Screen {
        background: transparent;
    }

    #root {
        height: 100%;
        padding: 1 2;
    }

    #history {
        layout: horizontal;
        height: 1fr;
    }

    StatsBar, HelpBar {
        background: #0f172a;
        border: round #1f2937;
        padding: 0 2;
        height: 3;
    }

    PromptView {
        background: #0b1220;
        border: round #1f2937;
        padding: 1 2;
        height: 7;
    }

    MistakesView, ErrorStatsView {
        background: #111827;
        border: round #1f2937;
        padding: 0 2;
        width: 1fr;
        height: 100%;
    }
    """

    TITLE = "Typing Tutor"

    BINDINGS = [
        ("ctrl+q", "quit", "Quit"),
        ("ctrl+t", "cycle_theme", "Theme"),
    ]

    def __init__(
        self,
        store: Optional[ErrorStore] = None,
        generator: Optional[PromptGenerator] = None,
        config: Optional[Dict[str, object]] = None,
    ) -> None:
        super().__init__()
        config = load_config() if config is None else config
        self.palettes = build_palettes(config)
        self.theme_name = str(config.get("theme", "slate"))
        if self.theme_name not in self.palettes:
            self.theme_name = "slate"
        self.palette = self.palettes[self.theme_name]
        self.store = store if store is not None else MemoryErrorStore()
        self.practice = PracticeSession(self.store.load(), generator)

    def compose(self) -> ComposeResult:
        with Container(id="root"):
            self.stats_bar = StatsBar()
            self.prompt_view = PromptView()
            self.mistakes_view = MistakesView()
            self.error_stats_view = ErrorStatsView()
            self.help_bar = HelpBar()
            yield self.stats_bar
            yield self.prompt_view
            with Container(id="history"):
                yield self.mistakes_view
                yield self.error_stats_view
            yield self.help_bar

    def on_mount(self) -> None:
        self.apply_theme()
        self._render_all()

    def apply_theme(self) -> None:
        palette = self.palette
        self.stats_bar.styles.background = palette["stats_bg"]
        self.help_bar.styles.background = palette["stats_bg"]
        self.prompt_view.styles.background = palette["prompt_bg"]
        self.mistakes_view.styles.background = palette["card_bg"]
        self.error_stats_view.styles.background = palette["card_bg"]
        border_def = (("round", palette["border"]),)
        for widget in (self.stats_bar, self.help_bar, self.prompt_view,
                       self.mistakes_view, self.error_stats_view):
            widget.styles.border = border_def

    def action_cycle_theme(self) -> None:
        names = list(self.palettes.keys())
        self.theme_name = names[(names.index(self.theme_name) + 1) % len(names)]
        self.palette = self.palettes[self.theme_name]
        self.apply_theme()
        self._render_all()

    def on_key(self, event: events.Key) -> None:
        if self.practice.handle_key(translate_key(event)):
            event.prevent_default()
            event.stop()
            self._render_all()

    def _render_all(self) -> None:
        theme = self.palette
        self.prompt_view.update(render_prompt(self.practice, theme))
        self.stats_bar.update(render_stats(self.practice, theme))
        self.mistakes_view.update(render_mistakes(self.practice.mistakes_latest_first(), theme))
        self.error_stats_view.update(render_error_stats(self.practice.model.ranked_pairs(), theme))
        self._render_help()

    def _render_help(self) -> None:
        theme = self.palette
        text = Text()
        if self.practice.is_complete:
            text.append("Enter next round", style=theme["hint"])
        else:
            text.append("Type the prompt. Backspace undo", style=theme["hint"])
        text.append("  ", style=theme["muted"])
        text.append("Ctrl+T theme", style=theme["hint"])
        text.append("  ", style=theme["muted"])
        text.append("Ctrl+Q quit", style=theme["hint"])
        self.help_bar.update(text)


# ---------------------------
# Entry point
# ---------------------------

def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Adaptive single-character typing practice.")
    parser.add_argument("--data-dir", type=Path, default=None, help="where error statistics are kept")
    parser.add_argument("--seed", type=int, default=None, help="seed for prompt generation")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ...")
    parser.add_argument("--no-save", action="store_true", help="keep statistics in memory only")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    config = load_config()

    data_dir = args.data_dir
    if data_dir is None:
        configured = config.get("data_dir")
        data_dir = Path(str(configured)).expanduser() if configured else _default_data_dir()
    setup_logging(args.log_level or str(config.get("log_level", "INFO")), data_dir / "typing_tutor.log")

    if args.no_save:
        store: ErrorStore = MemoryErrorStore()
        logger.info("Error statistics kept in memory only")
    else:
        store = JsonErrorStore.in_dir(data_dir)
        logger.info("Error statistics stored in %s", store.path)

    generator = PromptGenerator(random.Random(args.seed))
    TypingTutor(store=store, generator=generator, config=config).run()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
