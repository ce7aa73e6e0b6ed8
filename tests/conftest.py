"""Shared fixtures: a minimal clean Expo project and a scripted command executor."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from mobicert.checks.base import CommandResult, CommandSpec

NAVIGATOR_SOURCE = """\
import { NavigationContainer } from '@react-navigation/native';
import { createNativeStackNavigator } from '@react-navigation/native-stack';
import HomeScreen from '../screens/HomeScreen';

const Stack = createNativeStackNavigator();

export default function AppNavigator() {
  return (
    <NavigationContainer>
      <Stack.Navigator>
        <Stack.Screen name="Home" component={HomeScreen} />
      </Stack.Navigator>
    </NavigationContainer>
  );
}
"""

HOME_SCREEN_SOURCE = """\
import { Text, View } from 'react-native';

export default function HomeScreen() {
  return (
    <View>
      <Text>Home</Text>
    </View>
  );
}
"""

APP_SOURCE = """\
import AppNavigator from './src/navigation';

export default function App() {
  return <AppNavigator />;
}
"""


def write_expo_project(root: Path) -> Path:
    """Lay out a small React Navigation project that passes every structural check."""

    root.mkdir(parents=True, exist_ok=True)
    package = {
        "name": "demo",
        "version": "1.0.0",
        "main": "App.tsx",
        "dependencies": {
            "expo": "~51.0.0",
            "react": "18.2.0",
            "react-native": "0.74.0",
            "@react-navigation/native": "^6.1.0",
            "@react-navigation/native-stack": "^6.9.0",
        },
    }
    manifest = {
        "expo": {
            "name": "Demo",
            "slug": "demo",
            "version": "1.0.0",
            "icon": "./assets/icon.png",
            "ios": {"bundleIdentifier": "com.example.demo"},
            "android": {"package": "com.example.demo"},
        }
    }
    (root / "package.json").write_text(json.dumps(package, indent=2), encoding="utf-8")
    (root / "package-lock.json").write_text("{}", encoding="utf-8")
    (root / "app.json").write_text(json.dumps(manifest, indent=2), encoding="utf-8")
    (root / "assets").mkdir(exist_ok=True)
    (root / "assets" / "icon.png").write_bytes(b"\x89PNG\r\n")
    (root / "App.tsx").write_text(APP_SOURCE, encoding="utf-8")
    (root / "src" / "navigation").mkdir(parents=True, exist_ok=True)
    (root / "src" / "screens").mkdir(parents=True, exist_ok=True)
    (root / "src" / "navigation" / "index.tsx").write_text(NAVIGATOR_SOURCE, encoding="utf-8")
    (root / "src" / "screens" / "HomeScreen.tsx").write_text(HOME_SCREEN_SOURCE, encoding="utf-8")
    return root


class ScriptedExecutor:
    """Command executor returning canned results keyed by a word in the argv."""

    def __init__(self, results: dict[str, CommandResult] | None = None) -> None:
        self.results = dict(results or {})
        self.calls: list[CommandSpec] = []

    async def run(self, spec: CommandSpec) -> CommandResult:
        self.calls.append(spec)
        for key, result in self.results.items():
            if key in spec.argv:
                return CommandResult(
                    argv=spec.argv,
                    exit_code=result.exit_code,
                    stdout=result.stdout,
                    stderr=result.stderr,
                    duration_ms=result.duration_ms,
                    timed_out=result.timed_out,
                    error=result.error,
                )
        return CommandResult(argv=spec.argv, exit_code=0, stdout="", stderr="", duration_ms=1)

    def ran(self, word: str) -> bool:
        return any(word in spec.argv for spec in self.calls)


def command_result(
    exit_code: int | None = 0,
    stdout: str = "",
    stderr: str = "",
    *,
    timed_out: bool = False,
    error: str | None = None,
) -> CommandResult:
    return CommandResult(
        argv=("placeholder",),
        exit_code=exit_code,
        stdout=stdout,
        stderr=stderr,
        duration_ms=1,
        timed_out=timed_out,
        error=error,
    )


@pytest.fixture
def expo_project(tmp_path: Path) -> Path:
    return write_expo_project(tmp_path / "app")


@pytest.fixture
def project_factory():
    return write_expo_project


@pytest.fixture
def scripted_executor() -> ScriptedExecutor:
    return ScriptedExecutor()


@pytest.fixture
def make_result():
    return command_result
