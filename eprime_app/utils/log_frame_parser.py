"""
E-Prime Log File Parser
=======================
Parses the text logs E-Prime writes while an experiment runs into a flat
table with one row per innermost (trial-level) frame.

A log file looks like::

    *** Header Start ***
    VersionPersist: 1
    LevelName: Session
    LevelName: Block
    LevelName: Trial
    Experiment: Stroop
    SessionTime: 11:11:11
    *** Header End ***
        Level: 3
        *** LogFrame Start ***
        Procedure: TrialProc
        Stim1.RT: 512
        *** LogFrame End ***
        Level: 2
        *** LogFrame Start ***
        Procedure: BlockProc
        *** LogFrame End ***

Levels count inward: the header is level 1 (session), trials have the
highest level number. E-Prime writes a frame's children before the frame
itself, so a frame's parent is the next frame in the file one level up.
Frames may also be nested textually (a Start inside an open frame); the
enclosing frame is then the parent. A frame with no ``Level:`` line sits one
level below its parent, or just below the header. Only frames written at
level 1 are merged into the header.

Keys that show up at more than one level are ambiguous. Each occurrence is
renamed ``Key[LevelName]`` and the bare key is skipped in the output.
"""

import io
import logging
import re
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set

from .config import ReaderConfig
from .errors import DamagedFileError
from .tabular_data import TabularData

logger = logging.getLogger(__name__)

# *** Header Start ***, *** LogFrame End ***, *** Trial-Begin *** ...
MARKER_RE = re.compile(
    r"^\*\*\*\s*(?P<name>\S.*?)[\s-]+(?P<edge>start|begin|end)\s*\*\*\*$",
    re.IGNORECASE,
)

HEADER_NAME = "header"
HEADER_START = "*** Header Start ***"

# Keys with special meaning inside the file
LEVEL_KEY = "Level"
LEVEL_NAME_KEY = "LevelName"

# Columns renamed on output
RENAMED_COLUMNS = {"Experiment": "ExperimentName"}

LevelNamer = Callable[[int, Optional["Frame"]], str]


class Frame:
    """One block of key/value pairs from the log, tagged with its level."""

    def __init__(self, level: int = 1, parent: Optional["Frame"] = None,
                 name: str = "", is_header: bool = False):
        self.level = level
        self.parent = parent
        self.name = name
        self.is_header = is_header
        # 1-based position among siblings at this level under the same parent
        self.counter = 0
        self._data: Dict[str, str] = {}

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __setitem__(self, key: str, value: str) -> None:
        self._data[key] = value

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._data.get(key, default)

    def keys(self) -> List[str]:
        return list(self._data.keys())

    def items(self):
        return self._data.items()

    def update(self, other: Mapping[str, str], overwrite: bool = True) -> None:
        for key, value in other.items():
            if overwrite or key not in self._data:
                self._data[key] = value

    def rename_keys(self, renames: Mapping[str, str]) -> None:
        """Rename keys in place, keeping their positions."""
        if not any(old in self._data for old in renames):
            return
        renamed: Dict[str, str] = {}
        for key, value in self._data.items():
            new_key = renames.get(key, key)
            if new_key != key and new_key in self._data:
                logger.warning("Renaming %r to %r overwrites an existing key at level %d",
                               key, new_key, self.level)
            renamed[new_key] = value
        self._data = renamed

    def lineage(self) -> List["Frame"]:
        """This frame and its ancestors, outermost first."""
        chain = []
        frame: Optional[Frame] = self
        while frame is not None:
            chain.append(frame)
            frame = frame.parent
        chain.reverse()
        return chain

    def flatten(self, annotate: Optional[Callable[["Frame"], Mapping[str, str]]] = None) -> Dict[str, str]:
        """
        Merge this frame's keys and its ancestors' into one mapping.

        This frame's own keys come first, then each ancestor's in turn out
        to the root. Ancestors only fill keys that are still missing, so
        inner values win when a key repeats.

        Args:
            annotate: Optional callback returning extra key/values to merge
                right after each frame's own keys.
        """
        row: Dict[str, str] = {}
        frame: Optional[Frame] = self
        while frame is not None:
            for key, value in frame._data.items():
                row.setdefault(key, value)
            if annotate is not None:
                for key, value in annotate(frame).items():
                    row.setdefault(key, value)
            frame = frame.parent
        return row

    def __repr__(self) -> str:
        return f"<Frame level={self.level} keys={len(self._data)}>"


class LogFrameParser:
    """
    Reads an E-Prime log into frames and flattens them into TabularData.

    Usage::

        with open("stroop-1-1.txt", encoding="utf-16") as f:
            data = LogFrameParser(f).to_data()
    """

    def __init__(self, stream: Iterable[str], config: Optional[ReaderConfig] = None,
                 level_namer: Optional[LevelNamer] = None):
        self.stream = stream
        self.config = config or ReaderConfig()
        self.level_namer: LevelNamer = level_namer or self.default_level_name
        self.frames: Optional[List[Frame]] = None
        self.header: Optional[Frame] = None
        # Declared in the header; index 0 is level 1
        self.level_names: List[str] = []
        self.levels: List[str] = []
        self.top_level = 0
        self.skip_columns: Set[str] = set()
        self._key_levels: Dict[str, Set[int]] = {}

    @classmethod
    def can_parse(cls, first_lines: List[str]) -> bool:
        if not first_lines or first_lines[0] is None:
            return False
        return HEADER_START in first_lines[0].lstrip("\ufeff")

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    @property
    def top_frames(self) -> List[Frame]:
        """Frames at the innermost level; each becomes one output row."""
        if self.frames is None:
            self.make_frames()
        return [frame for frame in self.frames if frame.level == self.top_level]

    @property
    def key_levels(self) -> Dict[str, Set[int]]:
        return {key: set(levels) for key, levels in self._key_levels.items()}

    def default_level_name(self, level: int, frame: Optional[Frame] = None) -> str:
        """Name a level for ambiguous-column renaming.

        Uses the frame's ``level_name_key`` value when configured, else the
        LevelName the header declared, else the level number.
        """
        key = self.config.level_name_key
        if key and frame is not None and frame.get(key):
            return frame.get(key)
        if 0 < level <= len(self.level_names):
            return self.level_names[level - 1]
        return str(level)

    def make_frames(self) -> List[Frame]:
        frames = self._read_frames()
        self._set_parents(frames)
        self.frames = frames

        seen_levels = sorted({frame.level for frame in frames})
        self.top_level = seen_levels[-1] if seen_levels else 0
        self.levels = [self.level_namer(level, None) for level in seen_levels]

        self._set_counters(frames)
        self._resolve_ambiguous_columns(frames)
        logger.debug("Read %d frames; levels %s; top level %d",
                     len(frames), self.levels, self.top_level)
        return frames

    def to_data(self) -> TabularData:
        if self.frames is None:
            self.make_frames()

        counter_columns = self._counter_columns()

        def annotate(frame: Frame) -> Dict[str, str]:
            name = counter_columns.get(frame.level)
            if name is None or frame.counter == 0:
                return {}
            return {name: str(frame.counter)}

        data = TabularData()
        for leaf in self.top_frames:
            row = leaf.flatten(annotate)
            row = {RENAMED_COLUMNS.get(k, k): v for k, v in row.items()
                   if k not in self.skip_columns}
            data.add_row(row)

        if self.config.columns:
            data.reorder_columns(self.config.columns)
        logger.debug("Flattened %d rows with %d columns", len(data), len(data.columns))
        return data

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def _read_frames(self) -> List[Frame]:
        stack: List[Frame] = []
        completed: List[Frame] = []
        pending_level: Optional[int] = None
        # A Level line inside an open frame; a directive only if a frame opens next
        held_level: Optional[str] = None
        header_placed = False

        for line_no, raw in enumerate(self.stream, 1):
            line = raw.strip().lstrip("\ufeff")
            if not line:
                continue

            marker = MARKER_RE.match(line)
            if held_level is not None:
                if marker and marker.group("edge").lower() != "end":
                    pending_level = int(held_level)
                else:
                    self._store(stack[-1], LEVEL_KEY, held_level)
                held_level = None

            if marker:
                name = marker.group("name").strip()
                if marker.group("edge").lower() == "end":
                    if not stack:
                        logger.warning("Line %d: %r closes no open frame; ignored", line_no, line)
                        continue
                    frame = stack.pop()
                    header_placed = self._close_frame(frame, completed, header_placed)
                else:
                    frame = self._open_frame(name, stack[-1] if stack else None, pending_level)
                    pending_level = None
                    stack.append(frame)
                continue

            key, sep, value = line.partition(":")
            key = key.strip()
            if not sep or not key:
                continue
            value = value.strip()

            if key == LEVEL_KEY and value.isdigit():
                if stack:
                    held_level = value
                else:
                    pending_level = int(value)
                continue
            if not stack:
                continue
            self._store(stack[-1], key, value)

        if stack:
            raise DamagedFileError(
                f"{len(stack)} frame(s) still open at end of file "
                f"(innermost at level {stack[-1].level})"
            )

        if self.header is not None and not header_placed:
            completed.append(self.header)
        return completed

    def _store(self, frame: Frame, key: str, value: str) -> None:
        if frame.is_header and key == LEVEL_NAME_KEY:
            self.level_names.append(value)
            return
        frame[key] = value
        self._key_levels.setdefault(key, set()).add(frame.level)

    def _open_frame(self, name: str, parent: Optional[Frame],
                    pending_level: Optional[int]) -> Frame:
        if name.lower() == HEADER_NAME:
            frame = Frame(level=1, parent=None, name=name, is_header=True)
            self.header = frame
            return frame

        if pending_level is not None:
            level = pending_level
        elif name in self.level_names:
            level = self.level_names.index(name) + 1
        elif parent is not None:
            level = parent.level + 1
        elif self.header is not None:
            # The header is level 1; only an explicit level 1 merges into it
            level = 2
        else:
            level = 1
        return Frame(level=level, parent=parent, name=name)

    def _close_frame(self, frame: Frame, completed: List[Frame], header_placed: bool) -> bool:
        """File a closed frame; returns whether the header is now in the list."""
        if frame.is_header:
            return header_placed
        # Session-level log frames belong with the header
        if frame.level == 1 and self.header is not None and frame.parent is None:
            self.header.update(dict(frame.items()), overwrite=False)
            if not header_placed:
                completed.append(self.header)
            return True
        completed.append(frame)
        return header_placed

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    def _set_parents(self, frames: List[Frame]) -> None:
        latest: Dict[int, Frame] = {}
        if self.header is not None:
            latest[1] = self.header
        for frame in reversed(frames):
            if frame.parent is None and not frame.is_header and frame.level > 1:
                frame.parent = latest.get(frame.level - 1)
            latest[frame.level] = frame

    @staticmethod
    def _set_counters(frames: List[Frame]) -> None:
        counts: Dict[tuple, int] = {}
        for frame in frames:
            key = (id(frame.parent), frame.level)
            counts[key] = counts.get(key, 0) + 1
            frame.counter = counts[key]

    def _counter_columns(self) -> Dict[int, str]:
        """Level -> counter column name, for declared levels below the header."""
        if not self.config.level_counters:
            return {}
        columns = {}
        for level in range(2, self.top_level + 1):
            if level > len(self.level_names):
                break
            name = self.level_names[level - 1]
            if name in self._key_levels or name in self.skip_columns:
                continue
            columns[level] = name
        return columns

    def _resolve_ambiguous_columns(self, frames: List[Frame]) -> None:
        ambiguous = {key for key, levels in self._key_levels.items() if len(levels) > 1}
        self.skip_columns = set(ambiguous)
        if not ambiguous:
            return
        logger.debug("Ambiguous columns: %s", sorted(ambiguous))
        for frame in frames:
            present = [key for key in ambiguous if key in frame]
            if not present:
                continue
            # Name the level before renaming; the naming key may itself be ambiguous
            level_name = self.level_namer(frame.level, frame)
            frame.rename_keys({key: f"{key}[{level_name}]" for key in present})


def parse_log(source, config: Optional[ReaderConfig] = None,
              level_namer: Optional[LevelNamer] = None) -> TabularData:
    """
    Parse an E-Prime log into TabularData.

    Args:
        source: A text stream, an iterable of lines, or the log text itself
        config: Reader options (column order, level naming, counters)
        level_namer: Optional ``(level, frame) -> name`` override

    Returns:
        TabularData with one row per innermost frame
    """
    if isinstance(source, str):
        source = io.StringIO(source)
    return LogFrameParser(source, config, level_namer).to_data()
