"""
Tests for source code analysis
"""

import textwrap

import pytest

from mnemograph.code_analysis import CodeAnalyzer


PYTHON_SOURCE = textwrap.dedent('''
    import os
    import numpy as np
    from pathlib import Path
    from .models import Node, Edge


    class Store(Base, mixins.Loggable):
        """Keeps things."""

        def get(self, key):
            """Fetch a key."""
            try:
                return self.data[key]
            except KeyError:
                return None

        async def refresh(self):
            await self.client.pull()


    def helper(x):
        if x and x > 1:
            return [i for i in range(x) if i % 2]
        return []
''')

JS_SOURCE = textwrap.dedent('''
    import fs from 'fs';
    import { readFile, writeFile as write } from 'fs/promises';
    import * as path from 'path';
    import './polyfill';

    export interface Options {
      depth: number;
    }

    export class Walker extends EventEmitter {
      async walk(dir) {
        try {
          const entries = await readFile(dir);
          return entries;
        } catch (err) {
          return null;
        }
      }
    }

    export async function scan(root) {
      if (root && root.length) {
        return new Promise((resolve) => resolve(root));
      }
    }

    const double = (x) => x * 2;
''')


@pytest.fixture
def analyzer():
    return CodeAnalyzer()


class TestPythonAnalysis:
    """ast-based extraction"""

    def test_symbols(self, analyzer):
        result = analyzer.analyze_code(PYTHON_SOURCE, "pkg/store.py")
        by_name = {s.name: s for s in result.symbols}

        assert by_name["Store"].kind == "class"
        assert by_name["Store"].docstring == "Keeps things."
        assert by_name["get"].kind == "function"
        assert by_name["get"].signature == "def get(self, key):"
        assert by_name["get"].docstring == "Fetch a key."
        assert by_name["refresh"].kind == "function"
        assert by_name["helper"].location == {"file": "pkg/store.py", "line": by_name["helper"].line,
                                              "column": 0}

        imports = sorted(s.name for s in result.symbols if s.kind == "import")
        assert imports == ["Edge", "Node", "Path", "np", "os"]

    def test_symbols_in_source_order(self, analyzer):
        result = analyzer.analyze_code(PYTHON_SOURCE, "store.py")
        lines = [s.line for s in result.symbols]
        assert lines == sorted(lines)

    def test_dependencies(self, analyzer):
        result = analyzer.analyze_code(PYTHON_SOURCE, "store.py")
        deps = {(d.source, d.target, d.kind) for d in result.dependencies}

        assert ("store.py", "os", "import") in deps
        assert ("store.py", "numpy", "import") in deps
        assert ("store.py", "pathlib", "import") in deps
        assert ("store.py", ".models", "import") in deps
        assert ("Store", "Base", "extends") in deps
        assert ("Store", "mixins.Loggable", "extends") in deps

    def test_patterns(self, analyzer):
        result = analyzer.analyze_code(PYTHON_SOURCE, "store.py")
        patterns = {p.type: p for p in result.patterns}

        assert patterns["error-handling"].occurrences == 1
        assert patterns["async-await"].occurrences == 1
        assert patterns["async-await"].locations[0]["file"] == "store.py"

    def test_complexity(self, analyzer):
        result = analyzer.analyze_code(PYTHON_SOURCE, "store.py")
        # 1 + except + if + and + comprehension + comprehension-if
        assert result.complexity == 6

    def test_syntax_error_gives_empty_result(self, analyzer):
        result = analyzer.analyze_code("def broken(:\n", "broken.py")
        assert result.symbols == []
        assert result.complexity == 0


class TestJavaScriptAnalysis:
    """Regex-based extraction"""

    def test_symbols(self, analyzer):
        result = analyzer.analyze_code(JS_SOURCE, "src/walker.ts")
        kinds = {(s.name, s.kind) for s in result.symbols}

        assert ("Walker", "class") in kinds
        assert ("Options", "interface") in kinds
        assert ("scan", "function") in kinds
        assert ("scan", "export") in kinds
        assert ("double", "function") in kinds
        for name in ("fs", "readFile", "write", "path"):
            assert (name, "import") in kinds

    def test_dependencies(self, analyzer):
        result = analyzer.analyze_code(JS_SOURCE, "walker.ts")
        deps = {(d.source, d.target, d.kind) for d in result.dependencies}

        assert ("walker.ts", "fs", "import") in deps
        assert ("walker.ts", "fs/promises", "import") in deps
        assert ("walker.ts", "path", "import") in deps
        assert ("walker.ts", "./polyfill", "import") in deps
        assert ("Walker", "EventEmitter", "extends") in deps

    def test_patterns(self, analyzer):
        result = analyzer.analyze_code(JS_SOURCE, "walker.js")
        patterns = {p.type: p.occurrences for p in result.patterns}

        assert patterns == {"error-handling": 1, "async-await": 1, "promise": 1}

    def test_complexity(self, analyzer):
        result = analyzer.analyze_code(JS_SOURCE, "walker.js")
        # 1 + catch + if + &&
        assert result.complexity == 4


class TestDispatch:
    """Language selection"""

    def test_unsupported_extension(self, analyzer):
        result = analyzer.analyze_code("fn main() {}", "main.rs")
        assert result.symbols == []
        assert result.dependencies == []
        assert result.patterns == []
        assert result.complexity == 0

    def test_analyze_file(self, analyzer, tmp_path):
        source = tmp_path / "mod.py"
        source.write_text("def f():\n    pass\n")

        result = analyzer.analyze_file(str(source))

        assert [s.name for s in result.symbols] == ["f"]

    def test_to_dict(self, analyzer):
        data = analyzer.analyze_code("class A(B):\n    pass\n", "a.py").to_dict()

        assert data["symbols"][0]["name"] == "A"
        assert data["symbols"][0]["location"]["line"] == 1
        assert data["dependencies"] == [{"source": "A", "target": "B", "kind": "extends"}]
        assert data["complexity"] == 1
