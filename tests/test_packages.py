import unittest

from depbump.upgrade.errors import UsageError
from depbump.upgrade.graph import SourceKind
from depbump.upgrade.manifest import Declaration
from depbump.upgrade.packages import PackageSpec, parse_package_args, validate_packages


class PackageSpecTests(unittest.TestCase):
    def test_plain_name(self):
        spec = PackageSpec.parse("Rich_Text")
        self.assertEqual(spec.name, "rich-text")
        self.assertIsNone(spec.version)
        self.assertIsNone(spec.requirement())

    def test_pinned(self):
        spec = PackageSpec.parse("httpx@0.28")
        self.assertEqual(spec.version, "0.28")
        self.assertEqual(spec.requirement(), "httpx~=0.28")

    def test_single_segment_version(self):
        self.assertEqual(PackageSpec.parse("django@5").requirement(), "django==5.*")

    def test_invalid(self):
        for raw in ("", "@1.0", "httpx@", "httpx@not-a-version", "-bad", "a b"):
            with self.subTest(raw=raw), self.assertRaises(UsageError):
                PackageSpec.parse(raw)

    def test_comma_separated_args(self):
        specs = parse_package_args(["httpx,rich@13.0", "anyio", ","])
        self.assertEqual([spec.name for spec in specs], ["httpx", "rich", "anyio"])
        self.assertEqual(specs[1].version, "13.0")


class ValidatePackagesTests(unittest.TestCase):
    def test_version_on_git_source_rejected(self):
        decls = {"mylib": Declaration(name="mylib", in_main=True, source=SourceKind.GIT)}
        with self.assertRaises(UsageError) as ctx:
            validate_packages([PackageSpec.parse("mylib@1.0")], decls, "dev")
        self.assertIn("git", str(ctx.exception))

    def test_unversioned_git_source_allowed(self):
        decls = {"mylib": Declaration(name="mylib", in_main=True, source=SourceKind.GIT)}
        self.assertEqual(validate_packages([PackageSpec.parse("mylib")], decls, "dev"), [])

    def test_environment_mismatch_is_warning(self):
        decls = {
            "pytest": Declaration(name="pytest", groups={"test"}),
            "httpx": Declaration(name="httpx", in_main=True),
        }
        specs = parse_package_args(["pytest", "httpx"])

        mismatches = validate_packages(specs, decls, "dev")

        self.assertEqual(len(mismatches), 1)
        self.assertEqual(mismatches[0].spec.name, "pytest")
        self.assertIn("DEPBUMP_ENV=test", mismatches[0].message)

    def test_undeclared_packages_pass(self):
        self.assertEqual(validate_packages([PackageSpec.parse("idna")], {}, "dev"), [])


if __name__ == "__main__":
    unittest.main()
