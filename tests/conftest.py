"""Pytest configuration for the huffstyle data-driven suites."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

TESTS_DIR = Path(__file__).parent


def parse_tests_file(path: Path) -> list[tuple[str, str, str]]:
    """Parse a .tests file into (name, input, expected) tuples.

    Input and expected are returned exactly as written, without their final
    newline; callers strip where whitespace does not matter.
    """
    lines = path.read_text().split("\n")
    result: list[tuple[str, str, str]] = []
    i = 0
    while i < len(lines):
        line = lines[i]
        if line.startswith("=== "):
            test_name = line[4:].strip()
            i += 1
            input_lines: list[str] = []
            while i < len(lines) and not lines[i].startswith("---"):
                input_lines.append(lines[i])
                i += 1
            if i < len(lines) and lines[i] == "---":
                i += 1
            expected_lines: list[str] = []
            while i < len(lines) and not lines[i].startswith("---"):
                expected_lines.append(lines[i])
                i += 1
            if i < len(lines) and lines[i] == "---":
                i += 1
            result.append((test_name, "\n".join(input_lines), "\n".join(expected_lines)))
        else:
            i += 1
    return result


def discover_tests(subdir: str) -> list[tuple[str, str, str, str]]:
    """Find all tests in a suite, returns (test_id, input, expected, file_stem)."""
    results = []
    for test_file in sorted((TESTS_DIR / subdir).glob("*.tests")):
        for name, source, expected in parse_tests_file(test_file):
            test_id = f"{test_file.stem}/{name}"
            results.append((test_id, source, expected, test_file.stem))
    return results


def pytest_generate_tests(metafunc):
    """Parametrize the parse, lint, and format suites over their .tests files."""
    if "parse_input" in metafunc.fixturenames:
        params = [
            pytest.param(source, expected, id=test_id)
            for test_id, source, expected, _ in discover_tests("parse")
        ]
        metafunc.parametrize("parse_input,parse_expected", params)
    if "lint_input" in metafunc.fixturenames:
        params = [
            pytest.param(source, expected, stem, id=test_id)
            for test_id, source, expected, stem in discover_tests("lint")
        ]
        metafunc.parametrize("lint_input,lint_expected,lint_rule", params)
    if "format_input" in metafunc.fixturenames:
        params = [
            pytest.param(source, expected, id=test_id)
            for test_id, source, expected, _ in discover_tests("format")
        ]
        metafunc.parametrize("format_input,format_expected", params)
