import unittest
from pathlib import Path
from tempfile import TemporaryDirectory

from depbump.upgrade.changelog import ChangelogRecord, capture_before, fill_after, read_changelog
from depbump.upgrade.graph import DependencyGraph, DependencyNode, VersionDelta


class ReadChangelogTests(unittest.TestCase):
    def test_prefers_markdown_file(self):
        with TemporaryDirectory() as tmp:
            location = Path(tmp)
            (location / "CHANGELOG.md").write_text("md", encoding="utf-8")
            (location / "CHANGELOG").write_text("plain", encoding="utf-8")
            self.assertEqual(read_changelog(location), "md")

    def test_falls_back_to_plain_file(self):
        with TemporaryDirectory() as tmp:
            location = Path(tmp)
            (location / "CHANGELOG").write_text("plain", encoding="utf-8")
            self.assertEqual(read_changelog(location), "plain")

    def test_absent(self):
        with TemporaryDirectory() as tmp:
            self.assertIsNone(read_changelog(Path(tmp)))
        self.assertIsNone(read_changelog(None))


class RecordTests(unittest.TestCase):
    def test_capture_only_top_level(self):
        with TemporaryDirectory() as tmp:
            location = Path(tmp)
            (location / "CHANGELOG.md").write_text("v1", encoding="utf-8")
            graph = DependencyGraph([
                DependencyNode(name="httpx", version="1", top_level=True, location=location),
                DependencyNode(name="idna", version="1", location=location),
                DependencyNode(name="rich", version="1", top_level=True),
            ])

            records = capture_before(graph)

        self.assertEqual(records, [ChangelogRecord("httpx", before="v1"), ChangelogRecord("rich")])

    def test_fill_after_reads_new_location(self):
        with TemporaryDirectory() as tmp:
            new_location = Path(tmp)
            (new_location / "CHANGELOG.md").write_text("v2", encoding="utf-8")
            graph = DependencyGraph([
                DependencyNode(name="httpx", version="2", top_level=True, location=new_location),
            ])
            records = [ChangelogRecord("httpx", before="v1"), ChangelogRecord("rich", before="r")]

            filled = fill_after(records, [VersionDelta("httpx", "1", "2")], graph)

        self.assertEqual(filled, [ChangelogRecord("httpx", before="v1", after="v2")])

    def test_fill_after_missing_node(self):
        filled = fill_after([ChangelogRecord("gone", before="x")], [VersionDelta("gone", "1", "2")], DependencyGraph())
        self.assertEqual(filled, [ChangelogRecord("gone", before="x", after=None)])


if __name__ == "__main__":
    unittest.main()
