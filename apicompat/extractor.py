"""Surface extraction from JSON snapshots and Python distributions.

Python artifacts (wheels, sdists, zip files, source trees, single modules)
are parsed with ``ast``; nothing is imported or executed.
"""

import ast
import json
import logging
import re
import tarfile
import tempfile
import zipfile
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from packaging.utils import (
    InvalidSdistFilename,
    InvalidWheelFilename,
    parse_sdist_filename,
    parse_wheel_filename,
)

from .errors import ExtractionError
from .sources.utils import safe_extract_tar, safe_extract_zip
from .surface import Accessibility, Member, MemberKind, Parameter, Surface

logger = logging.getLogger(__name__)

UNSTABLE_SEGMENTS = frozenset({"preview", "experimental", "unstable"})
UNSTABLE_DECORATORS = frozenset({"experimental", "preview", "unstable"})

# Top-level directories and files of a source tree that never ship public API;
# inside a package these names are ordinary modules (mylib.testing)
PROJECT_DIRS = frozenset({
    "tests", "test", "testing", "docs", "doc", "examples", "example",
    "benchmarks", "scripts", "build", "dist",
})
PROJECT_FILES = frozenset({"setup.py", "noxfile.py", "conftest.py"})
SKIP_FILES = frozenset({"conftest.py", "__main__.py"})
METADATA_SUFFIXES = (".dist-info", ".data", ".egg-info")

TAR_SUFFIXES = (".tar.gz", ".tgz", ".tar.bz2", ".tar.xz")

_CONSTANT_NAME = re.compile(r"^[A-Z][A-Z0-9_]*$")


def _unparse(node: Optional[ast.AST]) -> Optional[str]:
    return ast.unparse(node) if node is not None else None


def _decorator_name(node: ast.expr) -> str:
    """Return the trailing name of a decorator (``abc.abstractmethod`` -> ``abstractmethod``)."""
    if isinstance(node, ast.Call):
        node = node.func
    if isinstance(node, ast.Attribute):
        return node.attr
    if isinstance(node, ast.Name):
        return node.id
    return ""


def _is_literal(node: ast.AST) -> bool:
    if isinstance(node, ast.Constant):
        return True
    if isinstance(node, ast.UnaryOp) and isinstance(node.op, (ast.USub, ast.UAdd)):
        return _is_literal(node.operand)
    if isinstance(node, (ast.Tuple, ast.List, ast.Set)):
        return all(_is_literal(e) for e in node.elts)
    return False


def _is_final_annotation(node: Optional[ast.expr]) -> bool:
    if node is None:
        return False
    if isinstance(node, ast.Subscript):
        node = node.value
    return _decorator_name(node) == "Final"


def _is_unstable(qualified_name: str) -> bool:
    return any(part.lower() in UNSTABLE_SEGMENTS for part in qualified_name.split("."))


def _literal_all(tree: ast.Module) -> Optional[set]:
    """Return names from a literal module-level ``__all__``, or None."""
    for node in tree.body:
        targets = []
        if isinstance(node, ast.Assign):
            targets = node.targets
        elif isinstance(node, ast.AnnAssign) and node.value is not None:
            targets = [node.target]
        for target in targets:
            if isinstance(target, ast.Name) and target.id == "__all__":
                if isinstance(node.value, (ast.List, ast.Tuple)):
                    return {
                        elt.value for elt in node.value.elts
                        if isinstance(elt, ast.Constant) and isinstance(elt.value, str)
                    }
    return None


def member_accessibility(name: str, in_class: bool) -> Optional[Accessibility]:
    """Map a Python name to an accessibility, or None when not observable.

    Module-level names with a leading underscore are private. Inside a class a
    single leading underscore means the member is exposed to subclasses only;
    double-underscore names are mangled and never observable.
    """
    if not name.startswith("_"):
        return Accessibility.PUBLIC
    if not in_class:
        return None
    if name.startswith("__") and name.endswith("__"):
        return Accessibility.PUBLIC
    if name.startswith("__"):
        return None
    return Accessibility.PROTECTED


class _ScopeBuilder:
    """Collects the observable members of one module or class body."""

    def __init__(self, declaring_type: str, in_class: bool, exported: Optional[set],
                 inherited_unstable: bool = False):
        self.declaring_type = declaring_type
        self.in_class = in_class
        self.exported = exported
        self.inherited_unstable = inherited_unstable
        # later definitions of the same name shadow earlier ones
        self._by_name: Dict[str, List[Member]] = {}

    def _accessibility(self, name: str) -> Optional[Accessibility]:
        if self.exported is not None and not self.in_class:
            return Accessibility.PUBLIC if name in self.exported else None
        return member_accessibility(name, self.in_class)

    def _stable(self, name: str, decorators: Iterable[str] = ()) -> bool:
        if self.inherited_unstable:
            return False
        if any(d in UNSTABLE_DECORATORS for d in decorators):
            return False
        return not _is_unstable(f"{self.declaring_type}.{name}")

    def visit(self, body: List[ast.stmt]) -> List[Member]:
        overloads: Dict[str, List[Member]] = {}
        for node in body:
            if isinstance(node, ast.ClassDef):
                self._visit_class(node)
            elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                member, is_overload = self._visit_function(node)
                if member is None:
                    continue
                if is_overload:
                    overloads.setdefault(member.name, []).append(member)
                elif member.name in overloads and member.kind is MemberKind.METHOD:
                    # implementation behind @overload variants is not observable
                    continue
                else:
                    self._by_name[member.name] = [member]
            elif isinstance(node, (ast.Assign, ast.AnnAssign)):
                for member in self._visit_assignment(node):
                    self._by_name[member.name] = [member]
        for name, variants in overloads.items():
            self._by_name[name] = variants
        return [m for group in self._by_name.values() for m in group]

    def _visit_class(self, node: ast.ClassDef) -> None:
        access = self._accessibility(node.name)
        if access is None:
            return
        decorators = [_decorator_name(d) for d in node.decorator_list]
        stable = self._stable(node.name, decorators)
        modifiers = {"final"} if "final" in decorators else set()
        type_member = Member(
            name=node.name,
            kind=MemberKind.TYPE,
            declaring_type=self.declaring_type,
            accessibility=access,
            modifiers=frozenset(modifiers),
            stable=stable,
        )
        inner = _ScopeBuilder(type_member.qualified_name, in_class=True, exported=None,
                              inherited_unstable=not stable)
        self._by_name[node.name] = [type_member] + inner.visit(node.body)

    def _visit_function(self, node) -> Tuple[Optional[Member], bool]:
        access = self._accessibility(node.name)
        if access is None:
            return None, False
        decorators = [_decorator_name(d) for d in node.decorator_list]
        if any(isinstance(d, ast.Attribute) and d.attr in ("setter", "deleter")
               for d in node.decorator_list):
            return None, False

        modifiers = set()
        is_static = "staticmethod" in decorators
        is_classmethod = "classmethod" in decorators
        if self.in_class and (is_static or is_classmethod):
            modifiers.add("static")
        if "abstractmethod" in decorators:
            modifiers.add("abstract")
        if "final" in decorators:
            modifiers.add("final")

        stable = self._stable(node.name, decorators)
        returns = _unparse(node.returns)
        if self.in_class and ("property" in decorators or "cached_property" in decorators):
            member = Member(
                name=node.name,
                kind=MemberKind.PROPERTY,
                declaring_type=self.declaring_type,
                return_type=returns,
                accessibility=access,
                modifiers=frozenset(modifiers),
                stable=stable,
            )
            return member, False

        drop_first = self.in_class and not is_static
        member = Member(
            name=node.name,
            kind=MemberKind.METHOD,
            declaring_type=self.declaring_type,
            parameters=tuple(_parameters(node.args, drop_first)),
            return_type=returns,
            accessibility=access,
            modifiers=frozenset(modifiers),
            stable=stable,
        )
        return member, "overload" in decorators

    def _visit_assignment(self, node) -> List[Member]:
        if isinstance(node, ast.Assign):
            targets = [t for t in node.targets if isinstance(t, ast.Name)]
            annotation = None
        else:
            targets = [node.target] if isinstance(node.target, ast.Name) else []
            annotation = node.annotation
        members = []
        for target in targets:
            name = target.id
            if name in ("__all__", "__slots__"):
                continue
            access = self._accessibility(name)
            if access is None:
                continue
            value = None
            if node.value is not None and (
                _is_final_annotation(annotation)
                or (_CONSTANT_NAME.match(name) and _is_literal(node.value))
            ):
                value = ast.unparse(node.value)
            members.append(Member(
                name=name,
                kind=MemberKind.FIELD,
                declaring_type=self.declaring_type,
                return_type=_unparse(annotation),
                accessibility=access,
                value=value,
                stable=self._stable(name),
            ))
        return members


def _parameters(args: ast.arguments, drop_first: bool) -> List[Parameter]:
    positional = list(args.posonlyargs) + list(args.args)
    n_required = len(positional) - len(args.defaults)
    params = []
    for i, arg in enumerate(positional):
        params.append(Parameter(
            name=arg.arg,
            type=_unparse(arg.annotation) or "Any",
            has_default=i >= n_required,
        ))
    if drop_first and params:
        params = params[1:]
    if args.vararg is not None:
        params.append(Parameter(
            name=f"*{args.vararg.arg}",
            type=_unparse(args.vararg.annotation) or "Any",
            has_default=True,
        ))
    for arg, default in zip(args.kwonlyargs, args.kw_defaults):
        params.append(Parameter(
            name=arg.arg,
            type=_unparse(arg.annotation) or "Any",
            has_default=default is not None,
        ))
    if args.kwarg is not None:
        params.append(Parameter(
            name=f"**{args.kwarg.arg}",
            type=_unparse(args.kwarg.annotation) or "Any",
            has_default=True,
        ))
    return params


def extract_module_members(source: str, module_name: str, filename: str = "<string>") -> List[Member]:
    """Extract observable members of one Python module from its source text.

    Raises:
        ExtractionError: If the source cannot be parsed
    """
    try:
        tree = ast.parse(source, filename=filename)
    except SyntaxError as e:
        raise ExtractionError(f"Cannot parse {filename}: {e.msg} (line {e.lineno})", filename) from e
    builder = _ScopeBuilder(module_name, in_class=False, exported=_literal_all(tree),
                            inherited_unstable=_is_unstable(module_name))
    return builder.visit(tree.body)


def _module_name(rel: Path) -> Optional[str]:
    parts = list(rel.with_suffix("").parts)
    if parts[-1] == "__init__":
        parts = parts[:-1]
    if not parts:
        return None
    for part in parts:
        if not part.isidentifier() or part.startswith("_"):
            return None
    return ".".join(parts)


def _source_root(tree_root: Path) -> Path:
    """Locate the import root of a source tree (``src/`` layout aware)."""
    if (tree_root / "src").is_dir():
        return tree_root / "src"
    return tree_root


def _unwrap_sdist(unpacked: Path) -> Path:
    """Step into the single name-version/ directory sdists wrap everything in.

    A lone directory that is itself a package is left alone.
    """
    entries = list(unpacked.iterdir())
    if len(entries) == 1 and entries[0].is_dir() and not (entries[0] / "__init__.py").exists():
        return entries[0]
    return unpacked


def iter_python_modules(root: Path, skip_project_dirs: bool = True) -> List[Tuple[str, Path]]:
    """Return (module name, path) pairs for importable public modules under root, sorted.

    With ``skip_project_dirs`` the top-level tests/docs/scripts directories
    and build files of a source tree are ignored. Wheels hold only package
    contents and are walked with it off.
    """
    modules = []
    for path in sorted(root.rglob("*.py")):
        rel = path.relative_to(root)
        dirs = rel.parts[:-1]
        if any(p == "__pycache__" or p.endswith(METADATA_SUFFIXES) for p in dirs):
            continue
        if skip_project_dirs:
            if dirs and dirs[0] in PROJECT_DIRS:
                continue
            if not dirs and rel.name in PROJECT_FILES:
                continue
        if rel.name in SKIP_FILES:
            continue
        name = _module_name(rel)
        if name is None:
            continue
        modules.append((name, path))
    return modules


def extract_tree(root: Path, name: str, version: str, skip_project_dirs: bool = True) -> Surface:
    """Build a Surface from every public module below ``root``."""
    modules = iter_python_modules(root, skip_project_dirs)
    if not modules:
        raise ExtractionError(f"No Python modules found in {root}", root)
    seen: Dict[str, Path] = {}
    members: List[Member] = []
    for module_name, path in modules:
        if module_name in seen:
            raise ExtractionError(
                f"Module {module_name} defined twice: {seen[module_name]} and {path}", path
            )
        seen[module_name] = path
        try:
            source = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ExtractionError(f"Cannot read {path}: {e}", path) from e
        members.extend(extract_module_members(source, module_name, str(path)))
    logger.debug("extracted %d members from %d modules in %s", len(members), len(modules), root)
    try:
        return Surface(name=name, version=version, members=members)
    except ValueError as e:
        raise ExtractionError(str(e), root) from e


def _identity_from_filename(path: Path) -> Tuple[Optional[str], Optional[str]]:
    if path.name.endswith(".whl"):
        try:
            name, version, _build, _tags = parse_wheel_filename(path.name)
            return str(name), str(version)
        except InvalidWheelFilename:
            return None, None
    if path.name.endswith((".tar.gz", ".zip")):
        try:
            name, version = parse_sdist_filename(path.name)
            return str(name), str(version)
        except InvalidSdistFilename:
            return None, None
    return None, None


def _version_from_tree(root: Path) -> Optional[str]:
    """Read a literal ``__version__`` from a top-level package, if any."""
    for init in sorted(root.glob("*/__init__.py")):
        try:
            tree = ast.parse(init.read_text(encoding="utf-8"))
        except (SyntaxError, OSError, UnicodeDecodeError):
            continue
        for node in tree.body:
            if (isinstance(node, ast.Assign) and len(node.targets) == 1
                    and isinstance(node.targets[0], ast.Name)
                    and node.targets[0].id == "__version__"
                    and isinstance(node.value, ast.Constant)):
                return str(node.value.value)
    return None


def load_surface(path: Path) -> Surface:
    """Load a JSON surface snapshot.

    Raises:
        ExtractionError: If the file is unreadable or not a valid snapshot
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        raise ExtractionError(f"Cannot read surface snapshot {path}: {e}", path) from e
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Invalid JSON in surface snapshot {path}: {e}", path) from e
    if not isinstance(data, dict):
        raise ExtractionError(f"Surface snapshot {path} must be a JSON object", path)
    try:
        return Surface.from_dict(data)
    except ValueError as e:
        raise ExtractionError(f"Invalid surface snapshot {path}: {e}", path) from e


def save_surface(surface: Surface, path: Path) -> None:
    """Persist a surface as a JSON snapshot."""
    surface.save(path)


def extract_surface(path: Path, name: Optional[str] = None, version: Optional[str] = None) -> Surface:
    """Produce the public API Surface of an artifact.

    Args:
        path: JSON snapshot, wheel, sdist, zip, directory or ``.py`` file
        name: Library name (inferred from the artifact when omitted)
        version: Library version (inferred from the artifact when omitted)

    Returns:
        Surface with members sorted by signature

    Raises:
        ExtractionError: If the artifact is missing, malformed or unsupported
    """
    path = Path(path)
    if not path.exists():
        raise ExtractionError(f"Artifact not found: {path}", path)

    if path.is_file() and path.suffix == ".json":
        surface = load_surface(path)
        if name or version:
            surface = Surface(name=name or surface.name, version=version or surface.version,
                              members=surface.members)
        return surface

    inferred_name, inferred_version = _identity_from_filename(path)
    name = name or inferred_name
    version = version or inferred_version

    if path.is_dir():
        root = _source_root(path)
        return extract_tree(root, name or path.name, version or _version_from_tree(root) or "unknown")

    if path.suffix == ".py":
        try:
            source = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ExtractionError(f"Cannot read {path}: {e}", path) from e
        members = extract_module_members(source, path.stem, str(path))
        try:
            return Surface(name=name or path.stem, version=version or "unknown", members=members)
        except ValueError as e:
            raise ExtractionError(str(e), path) from e

    with tempfile.TemporaryDirectory(prefix="apicompat_") as tmpdir:
        tmp = Path(tmpdir)
        if path.suffix in (".whl", ".zip"):
            try:
                with zipfile.ZipFile(path) as zf:
                    safe_extract_zip(zf, tmp)
            except zipfile.BadZipFile as e:
                raise ExtractionError(f"Corrupt archive {path}: {e}", path) from e
        elif path.name.endswith(TAR_SUFFIXES):
            try:
                with tarfile.open(path) as tar:
                    safe_extract_tar(tar, tmp)
            except (tarfile.TarError, EOFError, OSError) as e:
                raise ExtractionError(f"Corrupt archive {path}: {e}", path) from e
        else:
            raise ExtractionError(f"Unsupported artifact format: {path.name}", path)

        if path.suffix == ".whl":
            source_root = tmp
            skip_project_dirs = False
        else:
            source_root = _source_root(_unwrap_sdist(tmp))
            skip_project_dirs = True
        return extract_tree(
            source_root,
            name or path.stem,
            version or _version_from_tree(source_root) or "unknown",
            skip_project_dirs=skip_project_dirs,
        )
