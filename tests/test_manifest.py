import unittest
from pathlib import Path
from tempfile import TemporaryDirectory

from depbump.upgrade.graph import SourceKind
from depbump.upgrade.manifest import Declaration, read_declarations, source_kind

PYPROJECT = """
[project]
name = "demo"
version = "0.1.0"
dependencies = [
    "httpx>=0.27",
    "Rich_Text[extra]==1.0",
    "mylib",
]

[project.optional-dependencies]
docs = ["mkdocs>=1.5", "httpx"]

[dependency-groups]
test = ["pytest>=8", {include-group = "lint"}]
lint = ["ruff"]

[tool.uv]
dev-dependencies = ["ipython"]

[tool.uv.sources]
mylib = { path = "../mylib", editable = true }
ruff = { git = "https://github.com/astral-sh/ruff" }
pytest = [{ index = "pypi" }]
unknown = { path = "../unknown" }
"""


class ManifestTests(unittest.TestCase):
    def _read(self, text):
        with TemporaryDirectory() as tmp:
            path = Path(tmp) / "pyproject.toml"
            path.write_text(text, encoding="utf-8")
            return read_declarations(path)

    def test_main_dependencies(self):
        decls = self._read(PYPROJECT)
        self.assertTrue(decls["httpx"].in_main)
        self.assertEqual(decls["httpx"].requirement, ">=0.27")
        self.assertIn("rich-text", decls)
        self.assertIsNone(decls["httpx"].allowed_envs)

    def test_groups_and_extras(self):
        decls = self._read(PYPROJECT)
        self.assertEqual(decls["mkdocs"].allowed_envs, frozenset({"docs"}))
        self.assertEqual(decls["pytest"].allowed_envs, frozenset({"test"}))
        self.assertEqual(decls["ipython"].allowed_envs, frozenset({"dev"}))
        # Also in the main list: always installed
        self.assertIsNone(decls["httpx"].allowed_envs)

    def test_sources(self):
        decls = self._read(PYPROJECT)
        self.assertEqual(decls["mylib"].source, SourceKind.EDITABLE)
        self.assertEqual(decls["ruff"].source, SourceKind.GIT)
        self.assertEqual(decls["pytest"].source, SourceKind.REGISTRY)
        self.assertNotIn("unknown", decls)

    def test_invalid_requirement_skipped(self):
        with self.assertLogs("depbump.upgrade.manifest", level="WARNING"):
            decls = self._read('[project]\nname = "x"\ndependencies = ["ok", "not valid !!"]\n')
        self.assertEqual(list(decls), ["ok"])

    def test_uv_add_flags(self):
        self.assertEqual(Declaration(name="a", in_main=True, groups={"test"}).uv_add_flags(), [])
        self.assertEqual(Declaration(name="a", groups={"test"}).uv_add_flags(), ["--group", "test"])
        self.assertEqual(Declaration(name="a", extras={"docs"}).uv_add_flags(), ["--optional", "docs"])


class SourceKindTests(unittest.TestCase):
    def test_classification(self):
        self.assertEqual(source_kind({"registry": "https://pypi.org/simple"}), SourceKind.REGISTRY)
        self.assertEqual(source_kind({"editable": "."}), SourceKind.EDITABLE)
        self.assertEqual(source_kind({"virtual": "."}), SourceKind.EDITABLE)
        self.assertEqual(source_kind({"path": "../x", "editable": False}), SourceKind.PATH)
        self.assertEqual(source_kind({"directory": "../x"}), SourceKind.PATH)
        self.assertEqual(source_kind({"workspace": True}), SourceKind.PATH)
        self.assertEqual(source_kind({"url": "https://x/y.whl"}), SourceKind.URL)
        self.assertEqual(source_kind({"git": "https://x/y.git"}), SourceKind.GIT)

    def test_only_registry_is_version_upgradable(self):
        self.assertTrue(SourceKind.REGISTRY.version_upgradable)
        for kind in (SourceKind.PATH, SourceKind.EDITABLE, SourceKind.GIT, SourceKind.URL):
            self.assertFalse(kind.version_upgradable)


if __name__ == "__main__":
    unittest.main()
