import unittest
from pathlib import Path
from tempfile import TemporaryDirectory
from unittest.mock import patch

from depbump.cli import make_args
from depbump.commands import (
    EXIT_ERROR,
    EXIT_HALTED,
    EXIT_OK,
    cmd_apply_upgrades,
    cmd_upgrade,
    hook_flags_for,
    parse_upgrade_triple,
)
from depbump.commands import _graph_reader as real_graph_reader
from depbump.config import ProjectFiles, Settings
from depbump.upgrade import (
    DependencyGraph,
    DependencyNode,
    HookRegistry,
    ResolutionAborted,
    UsageError,
    VersionDelta,
)

PYPROJECT = """\
[project]
name = "demo"
version = "0.1.0"
dependencies = ["httpx>=1.0"]

[dependency-groups]
test = ["pytest>=8"]
"""


class DummyPrinter:
    def __init__(self, confirm_response=True):
        self.errors = []
        self.infos = []
        self.warns = []
        self.completes = []
        self.states = []
        self.changes = []
        self.missing = []
        self.halts = []
        self.summaries = []
        self.prompts = []
        self.confirm_response = confirm_response

    def error(self, text):
        self.errors.append(text)

    def info(self, text):
        self.infos.append(text)

    def warn(self, text):
        self.warns.append(text)

    def complete(self, text):
        self.completes.append(text)

    def action(self, *args, **kwargs):
        pass

    def upgrade_state(self, state):
        self.states.append(state)

    def env_mismatch(self, mismatch):
        self.warns.append(mismatch.message)

    def deltas(self, deltas):
        self.changes.extend(deltas)

    def version_change(self, delta):
        self.changes.append(delta)

    def skipped_env(self, *args, **kwargs):
        pass

    def missing_hooks(self, names):
        self.missing.extend(names)

    def summary_written(self, result, project_root):
        self.summaries.append(result)

    def self_upgrade_halt(self, message):
        self.halts.append(message)

    def confirm(self, prompt, default=True):
        self.prompts.append(prompt)
        return self.confirm_response


class FakeResolver:
    def __init__(self, project, holder, after, error=None):
        self.project = project
        self.holder = holder
        self.after = after
        self.error = error
        self.requests = []

    def resolve(self, request):
        self.requests.append(request)
        (self.project / "uv.lock").write_text("changed", encoding="utf-8")
        if self.error is not None:
            raise self.error
        self.holder["graph"] = self.after


class CmdUpgradeTests(unittest.TestCase):
    def setUp(self):
        self._tmp = TemporaryDirectory()
        self.project = Path(self._tmp.name)
        (self.project / "pyproject.toml").write_text(PYPROJECT, encoding="utf-8")
        (self.project / "uv.lock").write_text("original", encoding="utf-8")
        self.files = ProjectFiles(self.project)
        self.settings = Settings(project_name="demo")
        self.printer = DummyPrinter()

        self.before = DependencyGraph([
            DependencyNode(name="httpx", version="1.0.0", top_level=True),
            DependencyNode(name="pytest", version="8.0.0", top_level=True, allowed_envs=frozenset({"test"})),
        ])
        self.after = DependencyGraph([
            DependencyNode(name="httpx", version="1.1.0", top_level=True),
            DependencyNode(name="pytest", version="8.0.0", top_level=True, allowed_envs=frozenset({"test"})),
        ])
        self.holder = {"graph": self.before}
        self.hook_calls = []
        self.registry = HookRegistry({
            "httpx": lambda old, new, flags: self.hook_calls.append(("httpx", old, new, flags)),
        })

        reader = patch("depbump.commands._graph_reader", return_value=lambda: self.holder["graph"])
        reader.start()
        self.addCleanup(reader.stop)

    def tearDown(self):
        self._tmp.cleanup()

    def _run(self, resolver=None, **overrides):
        args = make_args(**overrides)
        resolver = resolver or FakeResolver(self.project, self.holder, self.after)
        return cmd_upgrade(args, self.printer, self.files, self.settings, registry=self.registry, resolver=resolver)

    def test_requires_packages_or_all(self):
        self.assertEqual(self._run(), EXIT_ERROR)
        self.assertIn("use --all", self.printer.errors[0])

    def test_rejects_all_with_packages(self):
        self.assertEqual(self._run(packages=["httpx"], all=True), EXIT_ERROR)
        self.assertEqual(self.printer.errors, ["Cannot specify both --all and package names."])

    def test_rejects_only_and_target_with_packages(self):
        self.assertEqual(self._run(packages=["httpx"], only="dev"), EXIT_ERROR)
        self.assertEqual(self._run(packages=["httpx"], target="linux"), EXIT_ERROR)
        self.assertEqual(self.printer.errors, [
            "Cannot specify both --only and package names.",
            "Cannot specify both --target and package names.",
        ])

    def test_invalid_package_identifier(self):
        self.assertEqual(self._run(packages=["httpx@"]), EXIT_ERROR)
        self.assertIn("Invalid package identifier", self.printer.errors[0])

    def test_missing_manifest(self):
        (self.project / "pyproject.toml").unlink()
        self.assertEqual(self._run(all=True), EXIT_ERROR)
        self.assertIn("No pyproject.toml", self.printer.errors[0])

    def test_upgrade_runs_hooks(self):
        resolver = FakeResolver(self.project, self.holder, self.after)

        result = self._run(resolver=resolver, packages=["httpx"], yes=True)

        self.assertEqual(result, EXIT_OK)
        self.assertEqual(self.hook_calls, [("httpx", "1.0.0", "1.1.0", ["--yes"])])
        self.assertEqual(self.printer.changes, [VersionDelta("httpx", "1.0.0", "1.1.0")])
        self.assertEqual(self.printer.completes, ["Upgrade complete"])
        self.assertEqual([spec.name for spec in resolver.requests[0].packages], ["httpx"])
        self.assertTrue((self.project / "deps.CHANGELOG.md").exists())

    def test_hook_flags_passed_through(self):
        self._run(all=True, hook_flag=["--dry-run"])
        self.assertEqual(self.hook_calls[0][3], ["--dry-run"])

    def test_env_mismatch_is_dropped(self):
        resolver = FakeResolver(self.project, self.holder, self.after)

        result = self._run(resolver=resolver, packages=["pytest"])

        self.assertEqual(result, EXIT_OK)
        self.assertIn("DEPBUMP_ENV=test", self.printer.warns[0])
        self.assertEqual(self.printer.infos, ["Nothing to upgrade in this environment"])
        self.assertEqual(resolver.requests, [])

    def test_pinned_version_uses_declared_group(self):
        self.settings.environment = "test"
        resolver = FakeResolver(self.project, self.holder, self.after)

        self._run(resolver=resolver, packages=["pytest@8.3"])

        request = resolver.requests[0]
        self.assertEqual(request.add_flags, {"pytest": ["--group", "test"]})
        self.assertEqual(request.requirements, {"pytest": "pytest~=8.3"})

    def test_aborted_resolution_restores(self):
        error = ResolutionAborted("Pinning declined")
        resolver = FakeResolver(self.project, self.holder, self.after, error=error)

        result = self._run(resolver=resolver, packages=["httpx"])

        self.assertEqual(result, EXIT_ERROR)
        self.assertEqual(self.printer.errors, ["Upgrade aborted: Pinning declined"])
        self.assertEqual(len(self.printer.prompts), 1)
        self.assertEqual((self.project / "uv.lock").read_text(encoding="utf-8"), "original")
        self.assertEqual(self.hook_calls, [])

    def test_interrupt_is_reported(self):
        resolver = FakeResolver(self.project, self.holder, self.after, error=KeyboardInterrupt())

        result = self._run(resolver=resolver, all=True, yes=True)

        self.assertEqual(result, EXIT_ERROR)
        self.assertEqual(self.printer.errors, ["Upgrade interrupted"])
        self.assertEqual(self.printer.prompts, [])
        self.assertEqual((self.project / "uv.lock").read_text(encoding="utf-8"), "original")

    def test_unreadable_lock_after_resolution_is_reported(self):
        (self.project / "uv.lock").write_text("version = 1\n", encoding="utf-8")
        resolver = FakeResolver(self.project, self.holder, self.after)

        with patch("depbump.commands._graph_reader", new=real_graph_reader):
            result = self._run(resolver=resolver, all=True, yes=True)

        self.assertEqual(result, EXIT_ERROR)
        self.assertTrue(self.printer.errors[0].startswith("Could not read the dependency graph"))
        self.assertEqual((self.project / "uv.lock").read_text(encoding="utf-8"), "version = 1\n")

    def test_self_upgrade_halts(self):
        self.holder["graph"] = DependencyGraph([*self.before, DependencyNode(name="typer", version="0.12.0")])
        after = DependencyGraph([*self.after, DependencyNode(name="typer", version="0.15.0")])
        resolver = FakeResolver(self.project, self.holder, after)

        result = self._run(resolver=resolver, all=True)

        self.assertEqual(result, EXIT_HALTED)
        self.assertEqual(self.hook_calls, [])
        self.assertIn("depbump apply-upgrades", self.printer.halts[0])
        self.assertIn("typer:0.12.0:0.15.0", self.printer.halts[0])
        self.assertEqual((self.project / "uv.lock").read_text(encoding="utf-8"), "changed")

    def test_git_ci_skips_resolution(self):
        resolver = FakeResolver(self.project, self.holder, self.after)
        self.holder["graph"] = self.after
        historical = DependencyGraph([DependencyNode(name="httpx", version="1.0.0")])

        with patch("depbump.commands.read_historical_lock", return_value=historical):
            result = self._run(resolver=resolver, all=True, git_ci=True)

        self.assertEqual(result, EXIT_OK)
        self.assertEqual(resolver.requests, [])
        self.assertEqual(self.hook_calls, [("httpx", "1.0.0", "1.1.0", ["--yes"])])


class HookFlagTests(unittest.TestCase):
    def test_yes_appends_flag_once(self):
        args = make_args(hook_flag=["--yes", "--fast"])
        self.assertEqual(hook_flags_for(args, yes=True), ["--yes", "--fast"])
        self.assertEqual(hook_flags_for(make_args(), yes=True), ["--yes"])
        self.assertEqual(hook_flags_for(make_args(), yes=False), [])


class ApplyUpgradesTests(unittest.TestCase):
    def setUp(self):
        self.printer = DummyPrinter()
        self.calls = []

    def _hook(self, name):
        return lambda old, new, flags: self.calls.append((name, old, new, flags))

    def test_parse_triple(self):
        self.assertEqual(parse_upgrade_triple("HTTPX:1.0:1.1"), VersionDelta("httpx", "1.0", "1.1"))
        self.assertEqual(parse_upgrade_triple("httpx::1.1"), VersionDelta("httpx", None, "1.1"))

    def test_parse_triple_rejects_malformed(self):
        for raw in ("httpx:1.0", "httpx:1.0:", ":1.0:1.1", "httpx@1:1.0:1.1", "httpx:1:2:3"):
            with self.subTest(raw=raw):
                with self.assertRaises(UsageError):
                    parse_upgrade_triple(raw)

    def test_runs_hooks_in_given_order(self):
        registry = HookRegistry({"httpx": self._hook("httpx"), "anyio": self._hook("anyio")})
        args = make_args(packages=["anyio:4.0:4.4", "httpx:1.0:1.1", "idna:3.6:3.7"], yes=True)

        result = cmd_apply_upgrades(args, self.printer, registry=registry)

        self.assertEqual(result, EXIT_OK)
        self.assertEqual(self.calls, [
            ("anyio", "4.0", "4.4", ["--yes"]),
            ("httpx", "1.0", "1.1", ["--yes"]),
        ])
        self.assertEqual([delta.name for delta in self.printer.changes], ["anyio", "httpx"])
        self.assertEqual(self.printer.missing, ["idna"])
        self.assertEqual(self.printer.completes, ["Upgrade hooks applied"])

    def test_failing_hook(self):
        def broken(old, new, flags):
            raise RuntimeError("boom")

        args = make_args(packages=["httpx:1.0:1.1"])
        result = cmd_apply_upgrades(args, self.printer, registry=HookRegistry({"httpx": broken}))

        self.assertEqual(result, EXIT_ERROR)
        self.assertEqual(self.printer.errors, ["Upgrade hook for httpx failed: boom"])

    def test_requires_upgrades(self):
        result = cmd_apply_upgrades(make_args(), self.printer, registry=HookRegistry())
        self.assertEqual(result, EXIT_ERROR)

    def test_malformed_upgrade(self):
        result = cmd_apply_upgrades(make_args(packages=["httpx"]), self.printer, registry=HookRegistry())
        self.assertEqual(result, EXIT_ERROR)
        self.assertIn("expected name:old_version:new_version", self.printer.errors[0])


if __name__ == "__main__":
    unittest.main()
