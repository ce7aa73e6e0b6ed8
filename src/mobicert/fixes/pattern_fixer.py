"""
mobicert — deterministic pattern fix capability

Purpose
- Repair mechanical failures without a model: broken relative import paths, unused imports,
  screens missing from the navigator and well-known symbols used without an import.

Functional requirements
- A fix is emitted only when its confidence reaches ``min_confidence`` (0.95 by default).
- At most ``max_fixes`` fixes per request; remaining records wait for the next attempt.
- Dry-run reports what would change and returns no patches.
- Fixes to the same file compose; every touched file becomes one full-content patch.
- The project tree is only read here; the repair loop applies the patches.
"""

from __future__ import annotations

import posixpath
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Any, Final, Protocol

import structlog

from mobicert.checks.project_checks import find_navigator
from mobicert.constants import SOURCE_EXTENSIONS
from mobicert.fixes.contract import FilePatch, FixInvalidRequestError, FixRequest, FixResponse
from mobicert.utils.fs import iter_source_files, resolve_within

if TYPE_CHECKING:
    from mobicert.domain.models import ErrorRecord

DEFAULT_MIN_CONFIDENCE: Final[float] = 0.95
DEFAULT_MAX_FIXES: Final[int] = 50
PROJECT_ROOT_KEY: Final[str] = "project_root"

# Confidence for a fix whose target is certain versus one picked among several candidates.
_CERTAIN: Final[float] = 0.95
_AMBIGUOUS: Final[float] = 0.8

_INDEX_STEM: Final[str] = "index"
_IMPORT_LINE_RE: Final = re.compile(
    r"^(?P<indent>[ \t]*)import\s+(?P<type>type\s+)?(?P<clause>[^'\"]+?)\s+from\s+"
    r"(?P<source>(?P<quote>['\"])[^'\"]+(?P=quote))(?P<tail>\s*;?\s*)$"
)
_IMPORT_STATEMENT_RE: Final = re.compile(
    r"^import\b(?:[^'\";]*?\bfrom\s*)?['\"][^'\"]+['\"];?[ \t]*$", re.MULTILINE
)
_NAMESPACE_RE: Final = re.compile(r"\*\s+as\s+(?P<name>[\w$]+)")
_IDENTIFIER_RE: Final = re.compile(r"[\w$]+")
_NAVIGATOR_CLOSE_RE: Final = re.compile(
    r"^(?P<indent>[ \t]*)</(?P<prefix>\w+)\.Navigator>", re.MULTILINE
)

# Symbols whose home module is unambiguous in Expo / React Native projects.
WELL_KNOWN_IMPORTS: Final[Mapping[str, tuple[str, bool]]] = {
    "React": ("react", True),
    "useState": ("react", False),
    "useEffect": ("react", False),
    "useCallback": ("react", False),
    "useMemo": ("react", False),
    "useRef": ("react", False),
    "useContext": ("react", False),
    "useReducer": ("react", False),
    "View": ("react-native", False),
    "Text": ("react-native", False),
    "TextInput": ("react-native", False),
    "TouchableOpacity": ("react-native", False),
    "Pressable": ("react-native", False),
    "ScrollView": ("react-native", False),
    "FlatList": ("react-native", False),
    "SectionList": ("react-native", False),
    "Image": ("react-native", False),
    "StyleSheet": ("react-native", False),
    "ActivityIndicator": ("react-native", False),
    "SafeAreaView": ("react-native", False),
    "Modal": ("react-native", False),
    "Alert": ("react-native", False),
    "Platform": ("react-native", False),
    "Dimensions": ("react-native", False),
    "StatusBar": ("expo-status-bar", False),
    "useNavigation": ("@react-navigation/native", False),
    "useRoute": ("@react-navigation/native", False),
    "NavigationContainer": ("@react-navigation/native", False),
    "useLocalSearchParams": ("expo-router", False),
    "useRouter": ("expo-router", False),
    "Link": ("expo-router", False),
}


class ProjectWorkspace:
    """In-memory view of the project files edited while answering one request."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self._original: dict[str, str] = {}
        self._current: dict[str, str] = {}
        self._modules: list[tuple[str, str]] | None = None

    def read(self, relative: str) -> str | None:
        if relative in self._current:
            return self._current[relative]
        try:
            text = resolve_within(self.root, relative).read_text(encoding="utf-8")
        except (OSError, ValueError):
            return None
        self._original[relative] = text
        self._current[relative] = text
        return text

    def write(self, relative: str, text: str) -> None:
        self._current[relative] = text

    def patches(self) -> tuple[FilePatch, ...]:
        return tuple(
            FilePatch(path=relative, content=text)
            for relative, text in self._current.items()
            if text != self._original.get(relative)
        )

    def modules(self) -> list[tuple[str, str]]:
        """``(module name, import target)`` per source file; index files name their directory."""

        if self._modules is None:
            self._modules = []
            for source in iter_source_files(self.root):
                relative = PurePosixPath(source.relative_to(self.root).as_posix())
                stem = _strip_source_suffix(relative.name)
                if stem == _INDEX_STEM and relative.parent.name:
                    self._modules.append((relative.parent.name, relative.parent.as_posix()))
                else:
                    self._modules.append((stem, (relative.parent / stem).as_posix()))
        return self._modules


@dataclass(frozen=True, slots=True)
class PatternFix:
    """One proposed fix and the full new text of every file it rewrites."""

    pattern: str
    file: str
    description: str
    confidence: float
    edits: Mapping[str, str] = field(default_factory=dict)


class FixPattern(Protocol):
    name: str

    def match(self, record: ErrorRecord) -> str | None: ...

    def propose(
        self, record: ErrorRecord, subject: str, workspace: ProjectWorkspace
    ) -> PatternFix | None: ...


class _MessagePattern:
    """Recognize a record by its message; ``subject`` is the regex's named group."""

    name: str = "pattern"
    messages: tuple[re.Pattern[str], ...] = ()

    def match(self, record: ErrorRecord) -> str | None:
        for pattern in self.messages:
            found = pattern.search(record.message)
            if found is not None:
                return found["subject"]
        return None


class MissingImportPattern(_MessagePattern):
    """Import a well-known symbol the file uses without importing."""

    name = "missing-import"
    messages = (
        re.compile(r"Cannot find name ['\"](?P<subject>[\w$]+)['\"]"),
        re.compile(r"['\"](?P<subject>[\w$]+)['\"] is not defined"),
    )

    def propose(
        self, record: ErrorRecord, subject: str, workspace: ProjectWorkspace
    ) -> PatternFix | None:
        home = WELL_KNOWN_IMPORTS.get(subject)
        if home is None or record.file is None:
            return None
        module, is_default = home
        text = workspace.read(record.file)
        if text is None:
            return None

        if _imports_name(text, subject):
            return None
        lines = text.split("\n")
        for index, line in enumerate(lines):
            parsed = _parse_import_line(line)
            if parsed is None or parsed.module != module or parsed.is_type_only:
                continue
            if is_default and parsed.default is None:
                parsed.default = subject
            elif not is_default and parsed.namespace is None:
                parsed.named.append(subject)
            else:
                continue
            lines[index] = parsed.render()
            return self._fix(record.file, subject, module, "\n".join(lines))

        clause = subject if is_default else f"{{ {subject} }}"
        statement = f"import {clause} from '{module}';"
        return self._fix(record.file, subject, module, _insert_import(text, statement))

    def _fix(self, file: str, subject: str, module: str, text: str) -> PatternFix:
        return PatternFix(
            pattern=self.name,
            file=file,
            description=f"Added import of '{subject}' from '{module}' in {file}",
            confidence=_CERTAIN,
            edits={file: text},
        )


class UnregisteredRoutePattern(_MessagePattern):
    """Register a screen file that no navigator references."""

    name = "unregistered-route"
    messages = (re.compile(r"Screen ['\"](?P<subject>[\w$]+)['\"] is not registered"),)

    def propose(
        self, record: ErrorRecord, subject: str, workspace: ProjectWorkspace
    ) -> PatternFix | None:
        if record.file is None or (workspace.root / "app").is_dir():
            # Expo Router apps route by file; there is nothing to register.
            return None
        navigator = find_navigator(workspace.root)
        screen_text = workspace.read(record.file)
        if navigator is None or screen_text is None:
            return None
        navigator_file = navigator[0].relative_to(workspace.root).as_posix()
        content = workspace.read(navigator_file)
        if content is None:
            return None

        route = subject.removesuffix("Screen") or subject
        if re.search(rf"""\bname\s*=\s*\{{?\s*['"]{re.escape(route)}['"]""", content):
            return None
        closings = list(_NAVIGATOR_CLOSE_RE.finditer(content))
        if not closings:
            return None

        if re.search(r"^export\s+default\b", screen_text, re.MULTILINE):
            identifier = subject if subject.endswith("Screen") else f"{subject}Screen"
            clause = identifier
        elif re.search(
            rf"^export\s+(?:function|const|class)\s+{re.escape(subject)}\b",
            screen_text,
            re.MULTILINE,
        ):
            identifier = subject
            clause = f"{{ {subject} }}"
        else:
            return None

        closing = closings[-1]
        element_indent = _screen_element_indent(content, closing)
        element = (
            f'{element_indent}<{closing["prefix"]}.Screen name="{route}" '
            f"component={{{identifier}}} />\n"
        )
        updated = content[: closing.start()] + element + content[closing.start() :]
        if not _imports_name(content, identifier):
            specifier = _relative_specifier(navigator_file, _import_target(record.file))
            quote = '"' if re.search(r'^import\b.*"', content, re.MULTILINE) else "'"
            semicolon = ";" if re.search(r"^import\b.*;\s*$", content, re.MULTILINE) else ""
            statement = f"import {clause} from {quote}{specifier}{quote}{semicolon}"
            updated = _insert_import(updated, statement)

        return PatternFix(
            pattern=self.name,
            file=record.file,
            description=(
                f"Registered screen '{route}' in {closing['prefix']} navigator {navigator_file}"
            ),
            # Several navigators in one file make the target navigator a guess.
            confidence=_CERTAIN if len(closings) == 1 else _AMBIGUOUS,
            edits={navigator_file: updated},
        )


class ImportPathPattern(_MessagePattern):
    """Point a broken relative import at the one source module carrying the intended name."""

    name = "import-path"
    messages = (
        re.compile(r"Cannot resolve import:?\s*['\"](?P<subject>\.{1,2}/[^'\"]*)['\"]"),
        re.compile(r"Cannot find module ['\"](?P<subject>\.{1,2}/[^'\"]*)['\"]"),
        re.compile(r"Unable to resolve path to module ['\"](?P<subject>\.{1,2}/[^'\"]*)['\"]"),
    )

    def propose(
        self, record: ErrorRecord, subject: str, workspace: ProjectWorkspace
    ) -> PatternFix | None:
        if record.file is None:
            return None
        text = workspace.read(record.file)
        target = _strip_source_suffix(PurePosixPath(subject).name)
        if text is None or not target or target in {".", ".."}:
            return None

        own_target = _import_target(record.file)
        modules = [(name, path) for name, path in workspace.modules() if path != own_target]
        candidates = [path for name, path in modules if name == target]
        if not candidates:
            # Case-only mismatches break on case-sensitive filesystems.
            candidates = [path for name, path in modules if name.lower() == target.lower()]
        if not candidates:
            return None

        replacement = _relative_specifier(record.file, candidates[0])
        if replacement == subject:
            return None
        pattern = re.compile(
            r"(\bfrom\s+|\bimport\s+|\bimport\(\s*|\brequire\(\s*)(['\"])"
            + re.escape(subject)
            + r"\2"
        )
        updated, count = pattern.subn(
            lambda found: f"{found[1]}{found[2]}{replacement}{found[2]}", text
        )
        if count == 0:
            return None
        return PatternFix(
            pattern=self.name,
            file=record.file,
            description=f"Fixed import path '{subject}' -> '{replacement}' in {record.file}",
            confidence=_CERTAIN if len(candidates) == 1 else _AMBIGUOUS,
            edits={record.file: updated},
        )


class UnusedImportPattern(_MessagePattern):
    """Drop an imported binding the compiler or linter reports as unused."""

    name = "unused-import"
    messages = (
        re.compile(
            r"['\"](?P<subject>[\w$]+)['\"] is declared but (?:its value is )?never (?:used|read)"
        ),
        re.compile(r"['\"](?P<subject>[\w$]+)['\"] is defined but never used"),
    )

    def propose(
        self, record: ErrorRecord, subject: str, workspace: ProjectWorkspace
    ) -> PatternFix | None:
        if record.file is None:
            return None
        text = workspace.read(record.file)
        if text is None:
            return None

        lines = text.split("\n")
        order = list(range(len(lines)))
        if record.line is not None and 0 < record.line <= len(lines):
            order.insert(0, record.line - 1)
        for index in order:
            parsed = _parse_import_line(lines[index])
            if parsed is None or subject not in parsed.bindings():
                continue
            parsed.remove(subject)
            if parsed.bindings():
                lines[index] = parsed.render()
            else:
                del lines[index]
            return PatternFix(
                pattern=self.name,
                file=record.file,
                description=f"Removed unused import '{subject}' from {record.file}",
                confidence=_CERTAIN,
                edits={record.file: "\n".join(lines)},
            )
        return None


DEFAULT_PATTERNS: Final[tuple[type[_MessagePattern], ...]] = (
    MissingImportPattern,
    UnregisteredRoutePattern,
    ImportPathPattern,
    UnusedImportPattern,
)


class PatternFixCapability:
    """Fix capability that applies high-confidence, deterministic source rewrites."""

    provider_name = "patterns"

    def __init__(
        self,
        *,
        min_confidence: float = DEFAULT_MIN_CONFIDENCE,
        max_fixes: int = DEFAULT_MAX_FIXES,
        dry_run: bool = False,
        patterns: tuple[FixPattern, ...] | None = None,
        logger: Any | None = None,
    ) -> None:
        if not 0.0 < min_confidence <= 1.0:
            raise ValueError("min_confidence must be in (0, 1]")
        if max_fixes <= 0:
            raise ValueError("max_fixes must be > 0")
        self.min_confidence = min_confidence
        self.max_fixes = max_fixes
        self.dry_run = dry_run
        self._patterns: tuple[FixPattern, ...] = (
            patterns if patterns is not None else tuple(cls() for cls in DEFAULT_PATTERNS)
        )
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    async def request_fix(self, request: FixRequest) -> FixResponse:
        root = request.project_context.get(PROJECT_ROOT_KEY)
        if not isinstance(root, str) or not root:
            raise FixInvalidRequestError(
                f"fix request carries no {PROJECT_ROOT_KEY!r}", provider=self.provider_name
            )
        workspace = ProjectWorkspace(Path(root))
        log = self._logger.bind(provider=self.provider_name, tier=request.tier.value)

        applied: list[PatternFix] = []
        skipped = 0
        for record in (*request.errors, *request.warnings):
            if len(applied) >= self.max_fixes:
                log.info("pattern_fix_limit_reached", max_fixes=self.max_fixes)
                break
            fix = self._propose(record, workspace)
            if fix is None:
                skipped += 1
                continue
            if fix.confidence < self.min_confidence:
                log.debug(
                    "pattern_fix_skipped",
                    pattern=fix.pattern,
                    file=fix.file,
                    confidence=fix.confidence,
                    min_confidence=self.min_confidence,
                )
                skipped += 1
                continue
            for path, text in fix.edits.items():
                workspace.write(path, text)
            applied.append(fix)
            log.debug("pattern_fix_applied", pattern=fix.pattern, file=fix.file)

        patches = workspace.patches()
        prefix = "[dry run] " if self.dry_run else ""
        description = "; ".join(f"{prefix}{fix.description}" for fix in applied)
        log.info(
            "pattern_fix_finished",
            applied=len(applied),
            skipped=skipped,
            files=len(patches),
            dry_run=self.dry_run,
        )
        if self.dry_run:
            return FixResponse(success=False, description=description)
        return FixResponse(success=bool(patches), patches=patches, description=description)

    def _propose(self, record: ErrorRecord, workspace: ProjectWorkspace) -> PatternFix | None:
        for pattern in self._patterns:
            subject = pattern.match(record)
            if subject is not None:
                return pattern.propose(record, subject, workspace)
        return None


@dataclass(slots=True)
class _ImportLine:
    indent: str
    type_prefix: str
    default: str | None
    namespace: str | None
    named: list[str]
    source: str
    tail: str

    @property
    def module(self) -> str:
        return self.source[1:-1]

    @property
    def is_type_only(self) -> bool:
        return bool(self.type_prefix)

    def bindings(self) -> list[str]:
        names = [name for name in (self.default, self.namespace) if name is not None]
        names.extend(_local_name(specifier) for specifier in self.named)
        return names

    def remove(self, name: str) -> None:
        if self.default == name:
            self.default = None
        elif self.namespace == name:
            self.namespace = None
        else:
            self.named = [spec for spec in self.named if _local_name(spec) != name]

    def render(self) -> str:
        parts = [self.default] if self.default is not None else []
        if self.namespace is not None:
            parts.append(f"* as {self.namespace}")
        if self.named:
            parts.append("{ " + ", ".join(self.named) + " }")
        clause = ", ".join(parts)
        return f"{self.indent}import {self.type_prefix}{clause} from {self.source}{self.tail}"


def _parse_import_line(line: str) -> _ImportLine | None:
    """Parse a single-line ``import ... from '...'``; anything fancier is left alone."""

    found = _IMPORT_LINE_RE.match(line)
    if found is None:
        return None
    clause = found["clause"].strip()
    named: list[str] = []
    braces = re.search(r"\{(?P<body>[^{}]*)\}", clause)
    if braces is not None:
        named = [part.strip() for part in braces["body"].split(",") if part.strip()]
        clause = clause[: braces.start()] + clause[braces.end() :]

    default = namespace = None
    for part in (piece.strip() for piece in clause.split(",")):
        if not part:
            continue
        namespace_match = _NAMESPACE_RE.fullmatch(part)
        if namespace_match is not None:
            namespace = namespace_match["name"]
        elif _IDENTIFIER_RE.fullmatch(part):
            default = part
        else:
            return None
    return _ImportLine(
        indent=found["indent"],
        type_prefix="type " if found["type"] else "",
        default=default,
        namespace=namespace,
        named=named,
        source=found["source"],
        tail=found["tail"],
    )


def _local_name(specifier: str) -> str:
    return re.split(r"\s+as\s+", specifier.removeprefix("type ").strip())[-1]


def _imports_name(text: str, name: str) -> bool:
    binding = re.compile(rf"(?<![\w$]){re.escape(name)}(?![\w$])")
    for statement in _IMPORT_STATEMENT_RE.finditer(text):
        clause = re.split(r"['\"]", statement[0], maxsplit=1)[0].removeprefix("import")
        if binding.search(clause):
            return True
    return False


def _insert_import(text: str, statement: str) -> str:
    """Insert ``statement`` after the last top-level import, or at the top of the file."""

    statements = list(_IMPORT_STATEMENT_RE.finditer(text))
    if not statements:
        return f"{statement}\n{text}"
    end = statements[-1].end()
    return f"{text[:end]}\n{statement}{text[end:]}"


def _screen_element_indent(content: str, closing: re.Match[str]) -> str:
    previous = re.findall(
        rf"^([ \t]*)<{re.escape(closing['prefix'])}\.Screen\b",
        content[: closing.start()],
        re.MULTILINE,
    )
    return previous[-1] if previous else f"{closing['indent']}  "


def _strip_source_suffix(name: str) -> str:
    for suffix in SOURCE_EXTENSIONS:
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return name


def _import_target(relative: str) -> str:
    path = PurePosixPath(relative)
    stem = _strip_source_suffix(path.name)
    if stem == _INDEX_STEM and path.parent.name:
        return path.parent.as_posix()
    return (path.parent / stem).as_posix()


def _relative_specifier(from_file: str, target: str) -> str:
    start = PurePosixPath(from_file).parent.as_posix()
    specifier = posixpath.relpath(target, start or ".")
    return specifier if specifier.startswith(".") else f"./{specifier}"


__all__ = [
    "DEFAULT_MAX_FIXES",
    "DEFAULT_MIN_CONFIDENCE",
    "DEFAULT_PATTERNS",
    "PROJECT_ROOT_KEY",
    "WELL_KNOWN_IMPORTS",
    "FixPattern",
    "ImportPathPattern",
    "MissingImportPattern",
    "PatternFix",
    "PatternFixCapability",
    "ProjectWorkspace",
    "UnregisteredRoutePattern",
    "UnusedImportPattern",
]
