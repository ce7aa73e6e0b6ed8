"""
Structural project checks run at tier1.

These checks read the project tree directly (no external tooling) and are cheap enough to run
on every certification:
- ``manifest``: app.json / package.json sanity, platform identifiers, asset paths, plugins.
- ``imports``: relative, alias and bare-package import resolution across the source tree.
- ``navigation``: React Navigation route/screen registration; Expo Router apps are file-based.

Blocking file access runs in a worker thread so the tier's other checks keep progressing.
"""

from __future__ import annotations

import asyncio
import json
import re
import time
from pathlib import Path
from typing import TYPE_CHECKING, Final

from mobicert.checks.base import CheckContext, CheckOutcome
from mobicert.constants import APP_MANIFEST, LOCKFILES, PACKAGE_MANIFEST, TSCONFIG
from mobicert.domain.models import ErrorKind, ErrorRecord, Severity
from mobicert.utils.fs import is_within, iter_source_files

if TYPE_CHECKING:
    from collections.abc import Mapping

_SEMVER_RE: Final = re.compile(r"^\d+\.\d+\.\d+(?:[-+][0-9A-Za-z.-]+)?$")
_SLUG_RE: Final = re.compile(r"^[a-z0-9][a-z0-9_-]*$", re.IGNORECASE)
_IOS_BUNDLE_RE: Final = re.compile(r"^[A-Za-z][A-Za-z0-9-]*(?:\.[A-Za-z0-9][A-Za-z0-9-]*)+$")
_ANDROID_PACKAGE_RE: Final = re.compile(r"^[A-Za-z][A-Za-z0-9_]*(?:\.[A-Za-z][A-Za-z0-9_]*)+$")

_ASSET_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("icon",),
    ("splash", "image"),
    ("ios", "icon"),
    ("android", "icon"),
    ("android", "adaptiveIcon", "foregroundImage"),
    ("android", "adaptiveIcon", "backgroundImage"),
    ("web", "favicon"),
    ("notification", "icon"),
)

_IMPORT_RES: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"""^\s*(?:import|export)\s[^'"]*?\bfrom\s+['"](?P<spec>[^'"]+)['"]"""),
    re.compile(r"""^\s*import\s+['"](?P<spec>[^'"]+)['"]"""),
    re.compile(r"""\brequire\(\s*['"](?P<spec>[^'"]+)['"]\s*\)"""),
    re.compile(r"""\bimport\(\s*['"](?P<spec>[^'"]+)['"]\s*\)"""),
)
_RESOLVE_SUFFIXES: Final[tuple[str, ...]] = (
    "",
    ".ts",
    ".tsx",
    ".js",
    ".jsx",
    ".json",
    ".ios.tsx",
    ".android.tsx",
    ".native.tsx",
    ".ios.ts",
    ".android.ts",
    ".native.ts",
    ".web.tsx",
    ".web.ts",
)
_INDEX_FILES: Final[tuple[str, ...]] = ("index.ts", "index.tsx", "index.js", "index.jsx")

# Packages that resolve without a package.json entry in Expo/React Native projects.
_IMPLICIT_PACKAGES: Final[frozenset[str]] = frozenset(
    {
        "react",
        "react-native",
        "expo",
        "expo-status-bar",
        "expo-router",
        "expo-constants",
        "expo-linking",
        "expo-modules-core",
        "fs",
        "path",
        "util",
        "child_process",
        "os",
        "crypto",
        "stream",
        "events",
    }
)

_NAVIGATOR_FILES: Final[tuple[str, ...]] = (
    "src/navigation/index.tsx",
    "src/navigation/index.ts",
    "src/navigation/AppNavigator.tsx",
    "src/navigation/RootNavigator.tsx",
    "src/navigation/MainNavigator.tsx",
    "src/Navigator.tsx",
    "App.tsx",
    "App.js",
)
_SCREEN_ELEMENT_RE: Final = re.compile(r"<\s*(?:\w+)\.Screen\b(?P<props>[^>]*)>", re.DOTALL)
_NAME_PROP_RE: Final = re.compile(r"""\bname\s*=\s*\{?\s*['"](?P<name>[^'"]+)['"]""")
_COMPONENT_PROP_RE: Final = re.compile(
    r"\bcomponent\s*=\s*\{\s*(?P<component>[A-Za-z_$][\w$.]*)\s*\}"
)
_ROUTE_OBJECT_RE: Final = re.compile(
    r"""['"]?(?P<name>\w+)['"]?\s*:\s*\{[^}]*\bscreen\s*:\s*(?P<component>[A-Za-z_$][\w$]*)"""
)
_NAVIGATOR_FACTORY_RE: Final = re.compile(
    r"create(?:NativeStack|Stack|BottomTab|MaterialTopTab|MaterialBottomTab|Drawer)Navigator"
)
_SCREEN_FILE_EXCLUDE_RE: Final = re.compile(r"\.(?:test|spec|styles?)\.")


class _ProjectTreeCheck:
    """Run a synchronous tree inspection off the event loop and enrich its records."""

    name: str
    tool: str

    async def run(self, context: CheckContext) -> CheckOutcome:
        started = time.perf_counter()
        records = await asyncio.to_thread(self.inspect, context.project_path)
        return CheckOutcome(
            check_name=self.name,
            records=tuple(context.parsers.enrich(records, source=self.name)),
            duration_ms=_elapsed_ms(started),
        )

    def inspect(self, project: Path) -> list[ErrorRecord]:
        raise NotImplementedError


class ManifestCheck(_ProjectTreeCheck):
    """Validate the app manifest, package manifest and dependency lockfile."""

    name = "manifest"
    tool = "config"

    def inspect(self, project: Path) -> list[ErrorRecord]:
        records: list[ErrorRecord] = []
        package, package_error = _load_json(project / PACKAGE_MANIFEST)
        if package_error is not None:
            records.append(
                ErrorRecord(
                    kind=ErrorKind.CONFIG, file=str(PACKAGE_MANIFEST), message=package_error
                )
            )
        if not any((project / name).is_file() for name in LOCKFILES):
            records.append(
                ErrorRecord(
                    kind=ErrorKind.DEPENDENCY,
                    severity=Severity.WARNING,
                    message="No dependency lockfile found; installs are not reproducible",
                )
            )

        manifest_path = project / APP_MANIFEST
        if not manifest_path.exists() and any(
            (project / name).is_file() for name in ("app.config.js", "app.config.ts")
        ):
            # Dynamic configs are evaluated by the tier2 expo-config check.
            return records
        manifest, manifest_error = _load_json(manifest_path)
        if manifest_error is not None:
            records.append(
                ErrorRecord(kind=ErrorKind.CONFIG, file=str(APP_MANIFEST), message=manifest_error)
            )
            return records

        expo = manifest.get("expo", manifest)
        if not isinstance(expo, dict):
            records.append(_manifest_error("'expo' must be an object"))
            return records

        for field_name in ("name", "slug", "version"):
            value = expo.get(field_name)
            if not isinstance(value, str) or not value.strip():
                records.append(_manifest_error(f"Missing required field '{field_name}'"))
        slug = expo.get("slug")
        if isinstance(slug, str) and slug.strip() and not _SLUG_RE.match(slug):
            records.append(_manifest_error(f"Invalid slug '{slug}'; use URL-friendly characters"))
        version = expo.get("version")
        if isinstance(version, str) and version.strip() and not _SEMVER_RE.match(version):
            records.append(_manifest_error(f"Version '{version}' is not a semantic version"))

        records.extend(_check_platform_identifiers(expo))
        records.extend(_check_assets(expo, project))
        records.extend(_check_plugins(expo, project, package or {}))
        return records


class ImportResolutionCheck(_ProjectTreeCheck):
    """Every import in the source tree must resolve to a file, alias target or declared package."""

    name = "imports"
    tool = "imports"

    def inspect(self, project: Path) -> list[ErrorRecord]:
        package, _ = _load_json(project / PACKAGE_MANIFEST)
        declared = set(_IMPLICIT_PACKAGES)
        for section in ("dependencies", "devDependencies", "peerDependencies"):
            entries = (package or {}).get(section)
            if isinstance(entries, dict):
                declared.update(key for key in entries if isinstance(key, str))
        aliases = load_path_aliases(project)

        records: list[ErrorRecord] = []
        for source in iter_source_files(project):
            relative = source.relative_to(project).as_posix()
            try:
                text = source.read_text(encoding="utf-8", errors="replace")
            except OSError as exc:
                records.append(
                    ErrorRecord(
                        kind=ErrorKind.IMPORT_RESOLUTION,
                        file=relative,
                        message=f"Unable to read source file: {exc.strerror or exc}",
                    )
                )
                continue
            for line_number, specifier in _iter_imports(text):
                record = self._check_specifier(
                    project, source, relative, line_number, specifier, aliases, declared
                )
                if record is not None:
                    records.append(record)
        return records

    def _check_specifier(
        self,
        project: Path,
        source: Path,
        relative: str,
        line_number: int,
        specifier: str,
        aliases: Mapping[str, Path],
        declared: set[str],
    ) -> ErrorRecord | None:
        if specifier.startswith((".", "/")):
            base = (source.parent / specifier) if specifier.startswith(".") else Path(specifier)
            if _resolve_module(base) is None:
                return ErrorRecord(
                    kind=ErrorKind.IMPORT_RESOLUTION,
                    file=relative,
                    line=line_number,
                    message=f"Cannot resolve import '{specifier}'",
                )
            return None

        for prefix, target in aliases.items():
            if specifier == prefix.rstrip("/") or specifier.startswith(prefix):
                remainder = specifier[len(prefix) :] if specifier.startswith(prefix) else ""
                resolved = _resolve_module(target / remainder if remainder else target)
                if resolved is None or not is_within(resolved, project):
                    return ErrorRecord(
                        kind=ErrorKind.IMPORT_RESOLUTION,
                        file=relative,
                        line=line_number,
                        message=f"Cannot resolve alias import '{specifier}'",
                    )
                return None

        package_name = _package_name(specifier)
        if package_name in declared or package_name.startswith("node:"):
            return None
        if (project / "node_modules" / package_name).is_dir():
            return None
        return ErrorRecord(
            kind=ErrorKind.DEPENDENCY,
            file=relative,
            line=line_number,
            message=f"Package '{package_name}' is not declared in package.json",
        )


class NavigationCheck(_ProjectTreeCheck):
    """Route/screen registration for React Navigation projects."""

    name = "navigation"
    tool = "navigation"

    def inspect(self, project: Path) -> list[ErrorRecord]:
        if (project / "app").is_dir():
            # Expo Router: routes are the files themselves.
            return []
        screens_dir = project / "src" / "screens"
        if not screens_dir.is_dir():
            return []

        screens = _screen_names(screens_dir)
        navigator = find_navigator(project)
        if navigator is None:
            return [
                ErrorRecord(
                    kind=ErrorKind.ROUTE_REGISTRATION,
                    severity=Severity.WARNING,
                    message="No navigation configuration found",
                )
            ]

        navigator_path, content = navigator
        navigator_file = navigator_path.relative_to(project).as_posix()
        records: list[ErrorRecord] = []
        routes = _registered_routes(content)
        seen: set[str] = set()
        for route_name, component, line_number in routes:
            if route_name in seen:
                records.append(
                    ErrorRecord(
                        kind=ErrorKind.ROUTE_REGISTRATION,
                        file=navigator_file,
                        line=line_number,
                        message=f"Duplicate screen name '{route_name}'",
                    )
                )
            seen.add(route_name)
            target = component or route_name
            if not _screen_exists(target, route_name, screens, content):
                records.append(
                    ErrorRecord(
                        kind=ErrorKind.ROUTE_REGISTRATION,
                        file=navigator_file,
                        line=line_number,
                        message=f"Route '{route_name}' references missing screen '{target}'",
                    )
                )

        registered = {name for name, _, _ in routes} | {
            component for _, component, _ in routes if component
        }
        for screen_name, screen_file in sorted(screens.items()):
            if screen_name.startswith("_") or screen_name == "index":
                continue
            if screen_name in registered or _strip_screen_suffix(screen_name) in registered:
                continue
            records.append(
                ErrorRecord(
                    kind=ErrorKind.ROUTE_REGISTRATION,
                    file=screen_file.relative_to(project).as_posix(),
                    severity=Severity.WARNING,
                    message=f"Screen '{screen_name}' is not registered in any navigator",
                )
            )

        if "@react-navigation" in content and "NavigationContainer" not in content:
            if "useNavigation" not in content and "navigation." not in content:
                records.append(
                    ErrorRecord(
                        kind=ErrorKind.ROUTE_REGISTRATION,
                        file=navigator_file,
                        severity=Severity.WARNING,
                        message="NavigationContainer may be missing; wrap the app in it",
                    )
                )
        return records


def load_path_aliases(project: Path) -> dict[str, Path]:
    """Map tsconfig ``paths`` prefixes (``"@/"``) to their first target directory."""

    config, _ = _load_json(project / TSCONFIG, allow_comments=True)
    options = (config or {}).get("compilerOptions")
    if not isinstance(options, dict):
        return {}
    base_url = options.get("baseUrl")
    base = project / base_url if isinstance(base_url, str) else project
    paths = options.get("paths")
    if not isinstance(paths, dict):
        return {}
    aliases: dict[str, Path] = {}
    for alias, targets in paths.items():
        if not isinstance(alias, str) or not isinstance(targets, list) or not targets:
            continue
        first = targets[0]
        if not isinstance(first, str):
            continue
        aliases[alias.removesuffix("*")] = base / first.removesuffix("*")
    return dict(sorted(aliases.items(), key=lambda item: -len(item[0])))


def _iter_imports(text: str) -> list[tuple[int, str]]:
    found: list[tuple[int, str]] = []
    in_block_comment = False
    for line_number, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if in_block_comment:
            if "*/" in stripped:
                in_block_comment = False
            continue
        if stripped.startswith("/*") and "*/" not in stripped:
            in_block_comment = True
            continue
        if stripped.startswith(("//", "*")):
            continue
        for pattern in _IMPORT_RES:
            for match in pattern.finditer(line):
                found.append((line_number, match["spec"]))
    return found


def _resolve_module(base: Path) -> Path | None:
    if not base.name:
        return None
    for suffix in _RESOLVE_SUFFIXES:
        candidate = base.with_name(base.name + suffix) if suffix else base
        if candidate.is_file():
            return candidate
    if base.is_dir():
        for index in _INDEX_FILES:
            if (base / index).is_file():
                return base / index
    return None


def _package_name(specifier: str) -> str:
    parts = specifier.split("/")
    if specifier.startswith("@") and len(parts) >= 2:
        return f"{parts[0]}/{parts[1]}"
    return parts[0]


def _screen_names(screens_dir: Path) -> dict[str, Path]:
    screens: dict[str, Path] = {}
    for path in sorted(screens_dir.rglob("*")):
        if not path.is_file() or path.suffix not in {".tsx", ".ts", ".jsx", ".js"}:
            continue
        if _SCREEN_FILE_EXCLUDE_RE.search(path.name) or "node_modules" in path.parts:
            continue
        name = path.parent.name if path.stem == "index" else path.stem
        screens.setdefault(name, path)
    return screens


def find_navigator(project: Path) -> tuple[Path, str] | None:
    """Return the first file declaring a navigator, with its content."""

    candidates = [project / relative for relative in _NAVIGATOR_FILES]
    navigation_dir = project / "src" / "navigation"
    if navigation_dir.is_dir():
        candidates.extend(sorted(navigation_dir.glob("*.tsx")))
    for candidate in candidates:
        if not candidate.is_file():
            continue
        content = candidate.read_text(encoding="utf-8", errors="replace")
        if _NAVIGATOR_FACTORY_RE.search(content) or _SCREEN_ELEMENT_RE.search(content):
            return candidate, content
    return None


def _registered_routes(content: str) -> list[tuple[str, str | None, int]]:
    routes: list[tuple[str, str | None, int]] = []
    for element in _SCREEN_ELEMENT_RE.finditer(content):
        name = _NAME_PROP_RE.search(element["props"])
        if name is None:
            continue
        component = _COMPONENT_PROP_RE.search(element["props"])
        routes.append(
            (
                name["name"],
                component["component"] if component else None,
                content.count("\n", 0, element.start()) + 1,
            )
        )
    for match in _ROUTE_OBJECT_RE.finditer(content):
        routes.append(
            (match["name"], match["component"], content.count("\n", 0, match.start()) + 1)
        )
    return routes


def _screen_exists(
    component: str, route_name: str, screens: Mapping[str, Path], content: str
) -> bool:
    for candidate in (component, route_name, f"{route_name}Screen"):
        if candidate in screens:
            return True
    # Components declared inline or imported from outside src/screens.
    declared = re.compile(
        rf"(?:function|const|class|let|var)\s+{re.escape(component)}\b|"
        rf"import\s+[^;]*\b{re.escape(component)}\b[^;]*from"
    )
    return declared.search(content) is not None


def _strip_screen_suffix(name: str) -> str:
    return name.removesuffix("Screen")


def _manifest_error(message: str) -> ErrorRecord:
    return ErrorRecord(kind=ErrorKind.CONFIG, file=str(APP_MANIFEST), message=message)


def _check_platform_identifiers(expo: Mapping[str, object]) -> list[ErrorRecord]:
    records: list[ErrorRecord] = []
    ios = expo.get("ios")
    if isinstance(ios, dict):
        bundle = ios.get("bundleIdentifier")
        if bundle is not None and (not isinstance(bundle, str) or not _IOS_BUNDLE_RE.match(bundle)):
            records.append(_manifest_error(f"Invalid ios.bundleIdentifier {bundle!r}"))
    android = expo.get("android")
    if isinstance(android, dict):
        package = android.get("package")
        if package is not None and (
            not isinstance(package, str) or not _ANDROID_PACKAGE_RE.match(package)
        ):
            records.append(_manifest_error(f"Invalid android.package {package!r}"))
    return records


def _check_assets(expo: Mapping[str, object], project: Path) -> list[ErrorRecord]:
    records: list[ErrorRecord] = []
    for field_path in _ASSET_FIELDS:
        value: object = expo
        for part in field_path:
            value = value.get(part) if isinstance(value, dict) else None
        if not isinstance(value, str) or value.startswith(("http://", "https://")):
            continue
        asset = project / value
        if not asset.is_file() or not is_within(asset, project):
            dotted = ".".join(field_path)
            records.append(_manifest_error(f"Asset for '{dotted}' not found: {value}"))
    return records


def _check_plugins(
    expo: Mapping[str, object], project: Path, package: Mapping[str, object]
) -> list[ErrorRecord]:
    plugins = expo.get("plugins")
    if plugins is None:
        return []
    if not isinstance(plugins, list):
        return [_manifest_error("'plugins' must be an array")]
    declared: set[str] = set()
    for section in ("dependencies", "devDependencies"):
        entries = package.get(section)
        if isinstance(entries, dict):
            declared.update(entries)
    records: list[ErrorRecord] = []
    for entry in plugins:
        name = entry[0] if isinstance(entry, list) and entry else entry
        if not isinstance(name, str) or not name.strip():
            records.append(
                ErrorRecord(
                    kind=ErrorKind.PLUGIN, file=str(APP_MANIFEST), message="Malformed plugin entry"
                )
            )
            continue
        if name.startswith("."):
            if _resolve_module(project / name) is None:
                records.append(
                    ErrorRecord(
                        kind=ErrorKind.PLUGIN,
                        file=str(APP_MANIFEST),
                        message=f"Config plugin file not found: {name}",
                    )
                )
            continue
        if _package_name(name) not in declared and _package_name(name) not in _IMPLICIT_PACKAGES:
            records.append(
                ErrorRecord(
                    kind=ErrorKind.PLUGIN,
                    file=str(APP_MANIFEST),
                    message=f"Config plugin '{name}' is not a declared dependency",
                )
            )
    return records


def _load_json(path: Path, *, allow_comments: bool = False) -> tuple[dict, str | None]:
    """Return ``(payload, None)`` or ``({}, reason)``; never raises."""

    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}, f"{path.name} not found"
    except OSError as exc:
        return {}, f"Unable to read {path.name}: {exc.strerror or exc}"
    if allow_comments:
        text = _strip_jsonc(text)
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        return {}, f"Invalid JSON in {path.name}: {exc.msg} (line {exc.lineno})"
    if not isinstance(payload, dict):
        return {}, f"{path.name} root must be an object"
    return payload, None


_JSONC_COMMENT_RE: Final = re.compile(r'("(?:\\.|[^"\\])*")|//[^\n]*|/\*.*?\*/', re.DOTALL)
_JSONC_TRAILING_COMMA_RE: Final = re.compile(r",(\s*[}\]])")


def _strip_jsonc(text: str) -> str:
    without_comments = _JSONC_COMMENT_RE.sub(lambda m: m.group(1) or "", text)
    return _JSONC_TRAILING_COMMA_RE.sub(r"\1", without_comments)


def _elapsed_ms(started: float) -> int:
    return max(0, int((time.perf_counter() - started) * 1000))


__all__ = [
    "ImportResolutionCheck",
    "ManifestCheck",
    "NavigationCheck",
    "find_navigator",
    "load_path_aliases",
]
