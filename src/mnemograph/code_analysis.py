"""
Code Analysis for Mnemograph

Extracts symbols, dependencies and recurring patterns from source files so
they can be ingested into the knowledge graph.

- Python: parsed with the standard ast module
- JavaScript / TypeScript: line-oriented regex scanner (best effort)
- Anything else: empty result
"""

import ast
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class CodeSymbol:
    """A named definition found in a source file."""
    name: str
    kind: str  # function, class, interface, import, export
    file: str
    line: int
    column: int = 0
    signature: Optional[str] = None
    docstring: Optional[str] = None

    @property
    def location(self) -> Dict[str, Any]:
        return {"file": self.file, "line": self.line, "column": self.column}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind,
            "location": self.location,
            "signature": self.signature,
            "docstring": self.docstring,
        }


@dataclass
class CodeDependency:
    source: str
    target: str
    kind: str  # import, extends

    def to_dict(self) -> Dict[str, Any]:
        return {"source": self.source, "target": self.target, "kind": self.kind}


@dataclass
class CodePattern:
    """A recurring construct, e.g. error handling or async/await."""
    type: str
    description: str
    occurrences: int = 0
    locations: List[Dict[str, Any]] = field(default_factory=list)

    def record(self, file: str, line: int) -> None:
        self.occurrences += 1
        self.locations.append({"file": file, "line": line})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "description": self.description,
            "occurrences": self.occurrences,
            "locations": list(self.locations),
        }


@dataclass
class CodeAnalysisResult:
    symbols: List[CodeSymbol] = field(default_factory=list)
    dependencies: List[CodeDependency] = field(default_factory=list)
    complexity: int = 0
    patterns: List[CodePattern] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbols": [s.to_dict() for s in self.symbols],
            "dependencies": [d.to_dict() for d in self.dependencies],
            "complexity": self.complexity,
            "patterns": [p.to_dict() for p in self.patterns],
        }


PATTERN_DESCRIPTIONS = {
    "error-handling": "Try/except error handling blocks",
    "async-await": "Async/await usage",
    "promise": "Promise construction",
}


class _PatternCollector:
    def __init__(self, file_path: str):
        self.file_path = file_path
        self._patterns: Dict[str, CodePattern] = {}

    def record(self, pattern_type: str, line: int) -> None:
        pattern = self._patterns.get(pattern_type)
        if pattern is None:
            pattern = CodePattern(type=pattern_type,
                                  description=PATTERN_DESCRIPTIONS[pattern_type])
            self._patterns[pattern_type] = pattern
        pattern.record(self.file_path, line)

    def patterns(self) -> List[CodePattern]:
        return list(self._patterns.values())


class CodeAnalyzer:
    """
    Dispatches on file extension.

    Usage:
        analyzer = CodeAnalyzer()
        result = analyzer.analyze_code(source, "pkg/module.py")
        names = [s.name for s in result.symbols]
    """

    PYTHON_EXTENSIONS = {".py", ".pyi"}
    JAVASCRIPT_EXTENSIONS = {".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs"}

    # Decision points for cyclomatic complexity
    _PY_BRANCHES = (ast.If, ast.IfExp, ast.For, ast.AsyncFor, ast.While,
                    ast.ExceptHandler)

    # JavaScript / TypeScript line patterns
    JS_FUNCTION = re.compile(
        r'^\s*(export\s+)?(?:default\s+)?(?:async\s+)?function\s*\*?\s*([A-Za-z_$][\w$]*)\s*[(<]'
    )
    JS_ARROW = re.compile(
        r'^\s*(?:export\s+)?(?:const|let|var)\s+([A-Za-z_$][\w$]*)\s*(?::[^=]+)?=\s*'
        r'(?:async\s+)?(?:function\b|\([^)]*\)\s*(?::[^=]+)?=>|[A-Za-z_$][\w$]*\s*=>)'
    )
    JS_CLASS = re.compile(
        r'^\s*(?:export\s+)?(?:default\s+)?(?:abstract\s+)?class\s+([A-Za-z_$][\w$]*)'
        r'(?:\s*<[^>]*>)?(?:\s+extends\s+([A-Za-z_$][\w$.]*))?'
    )
    JS_INTERFACE = re.compile(r'^\s*(?:export\s+)?interface\s+([A-Za-z_$][\w$]*)')
    JS_IMPORT = re.compile(r'^\s*import\s+(?:type\s+)?(.+?)\s+from\s+[\'"]([^\'"]+)[\'"]')
    JS_BARE_IMPORT = re.compile(r'^\s*import\s+[\'"]([^\'"]+)[\'"]')
    JS_TRY = re.compile(r'\btry\s*\{')
    JS_AWAIT = re.compile(r'\bawait\b')
    JS_PROMISE = re.compile(r'\bnew\s+Promise\b')
    JS_BRANCH = re.compile(r'\b(?:if|while|for|case|catch)\b|&&|\|\|')

    def analyze_code(self, code: str, file_path: str) -> CodeAnalysisResult:
        """
        Analyze source text.

        Args:
            code: File contents
            file_path: Path used for language detection and symbol locations

        Returns:
            CodeAnalysisResult (empty for unsupported or unparseable files)
        """
        extension = Path(file_path).suffix.lower()

        if extension in self.PYTHON_EXTENSIONS:
            return self.analyze_python(code, file_path)
        if extension in self.JAVASCRIPT_EXTENSIONS:
            return self.analyze_javascript(code, file_path)

        logger.warning(f"Unsupported file type for analysis: {extension or file_path}")
        return CodeAnalysisResult()

    def analyze_file(self, file_path: str) -> CodeAnalysisResult:
        code = Path(file_path).read_text(encoding="utf-8")
        return self.analyze_code(code, file_path)

    # ------------------------------------------------------------------
    # Python
    # ------------------------------------------------------------------

    def analyze_python(self, code: str, file_path: str) -> CodeAnalysisResult:
        try:
            tree = ast.parse(code, filename=file_path)
        except (SyntaxError, ValueError) as e:
            logger.warning(f"Failed to parse Python code in {file_path}: {e}")
            return CodeAnalysisResult()

        lines = code.splitlines()
        result = CodeAnalysisResult()
        patterns = _PatternCollector(file_path)

        for node in ast.walk(tree):
            if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                result.symbols.append(CodeSymbol(
                    name=node.name,
                    kind="function",
                    file=file_path,
                    line=node.lineno,
                    column=node.col_offset,
                    signature=self._source_line(lines, node.lineno),
                    docstring=ast.get_docstring(node),
                ))

            elif isinstance(node, ast.ClassDef):
                result.symbols.append(CodeSymbol(
                    name=node.name,
                    kind="class",
                    file=file_path,
                    line=node.lineno,
                    column=node.col_offset,
                    signature=self._source_line(lines, node.lineno),
                    docstring=ast.get_docstring(node),
                ))
                for base in node.bases:
                    result.dependencies.append(
                        CodeDependency(source=node.name, target=ast.unparse(base), kind="extends")
                    )

            elif isinstance(node, ast.Import):
                for alias in node.names:
                    result.symbols.append(CodeSymbol(
                        name=alias.asname or alias.name,
                        kind="import",
                        file=file_path,
                        line=node.lineno,
                    ))
                    result.dependencies.append(
                        CodeDependency(source=file_path, target=alias.name, kind="import")
                    )

            elif isinstance(node, ast.ImportFrom):
                module = "." * node.level + (node.module or "")
                for alias in node.names:
                    result.symbols.append(CodeSymbol(
                        name=alias.asname or alias.name,
                        kind="import",
                        file=file_path,
                        line=node.lineno,
                    ))
                result.dependencies.append(
                    CodeDependency(source=file_path, target=module, kind="import")
                )

            elif isinstance(node, ast.Try):
                patterns.record("error-handling", node.lineno)

            elif isinstance(node, ast.Await):
                patterns.record("async-await", node.lineno)

        result.symbols.sort(key=lambda s: (s.line, s.column))
        result.complexity = self._python_complexity(tree)
        result.patterns = patterns.patterns()
        return result

    def _python_complexity(self, tree: ast.AST) -> int:
        complexity = 1
        for node in ast.walk(tree):
            if isinstance(node, self._PY_BRANCHES):
                complexity += 1
            elif isinstance(node, ast.BoolOp):
                complexity += len(node.values) - 1
            elif isinstance(node, ast.comprehension):
                complexity += 1 + len(node.ifs)
        return complexity

    @staticmethod
    def _source_line(lines: List[str], lineno: int) -> Optional[str]:
        if 0 < lineno <= len(lines):
            return lines[lineno - 1].strip()
        return None

    # ------------------------------------------------------------------
    # JavaScript / TypeScript
    # ------------------------------------------------------------------

    def analyze_javascript(self, code: str, file_path: str) -> CodeAnalysisResult:
        result = CodeAnalysisResult()
        patterns = _PatternCollector(file_path)
        complexity = 1

        for lineno, line in enumerate(code.splitlines(), start=1):
            stripped = line.strip()
            if stripped.startswith(("//", "*", "/*")):
                continue

            match = self.JS_FUNCTION.match(line)
            if match:
                name = match.group(2)
                column = line.index("function")
                result.symbols.append(CodeSymbol(
                    name=name, kind="function", file=file_path,
                    line=lineno, column=column, signature=stripped,
                ))
                if match.group(1):
                    result.symbols.append(CodeSymbol(
                        name=name, kind="export", file=file_path, line=lineno,
                    ))

            match = self.JS_ARROW.match(line)
            if match:
                result.symbols.append(CodeSymbol(
                    name=match.group(1), kind="function", file=file_path,
                    line=lineno, column=len(line) - len(line.lstrip()), signature=stripped,
                ))

            match = self.JS_CLASS.match(line)
            if match:
                name = match.group(1)
                result.symbols.append(CodeSymbol(
                    name=name, kind="class", file=file_path,
                    line=lineno, column=line.index("class"), signature=stripped,
                ))
                if match.group(2):
                    result.dependencies.append(
                        CodeDependency(source=name, target=match.group(2), kind="extends")
                    )

            match = self.JS_INTERFACE.match(line)
            if match:
                result.symbols.append(CodeSymbol(
                    name=match.group(1), kind="interface", file=file_path,
                    line=lineno, column=line.index("interface"),
                ))

            match = self.JS_IMPORT.match(line)
            if match:
                for name in self._import_names(match.group(1)):
                    result.symbols.append(CodeSymbol(
                        name=name, kind="import", file=file_path, line=lineno,
                    ))
                result.dependencies.append(
                    CodeDependency(source=file_path, target=match.group(2), kind="import")
                )
            else:
                match = self.JS_BARE_IMPORT.match(line)
                if match:
                    result.dependencies.append(
                        CodeDependency(source=file_path, target=match.group(1), kind="import")
                    )

            for _ in self.JS_TRY.finditer(line):
                patterns.record("error-handling", lineno)
            for _ in self.JS_AWAIT.finditer(line):
                patterns.record("async-await", lineno)
            for _ in self.JS_PROMISE.finditer(line):
                patterns.record("promise", lineno)

            complexity += len(self.JS_BRANCH.findall(line))

        result.complexity = complexity
        result.patterns = patterns.patterns()
        return result

    @staticmethod
    def _import_names(clause: str) -> List[str]:
        """Local names bound by an import clause: default, {a, b as c}, * as ns."""
        names = []
        clause = clause.strip()

        braces = re.search(r'\{([^}]*)\}', clause)
        if braces:
            for spec in braces.group(1).split(","):
                spec = spec.strip()
                if spec.startswith("type "):
                    spec = spec[5:].strip()
                if spec:
                    names.append(spec.split(" as ")[-1].strip())
            clause = (clause[:braces.start()] + clause[braces.end():]).strip()

        for part in clause.split(","):
            part = part.strip()
            if not part:
                continue
            if part.startswith("*"):
                names.append(part.split(" as ")[-1].strip())
            else:
                names.append(part)

        return names
