import tempfile
import unittest
from pathlib import Path

from src.domain.exceptions import ConfigurationException
from src.infrastructure.config_loader import RosterLoader

SAMPLE_ROSTER = Path(__file__).resolve().parent.parent / "repos" / "sample"


class TestRosterLoader(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.config_dir = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_loads_lists_and_single_records_in_path_order(self) -> None:
        (self.config_dir / "b.yaml").write_text(
            "org: beta\nname: tools\n", encoding="utf-8"
        )
        (self.config_dir / "a.yml").write_text(
            "- org: alpha\n"
            "  name: [one, two]\n"
            "  description: Apps\n"
            "  featureConfig:\n"
            "    nugetDependencyUpdates:\n"
            "      enabled: true\n"
            "      versionLock: None\n",
            encoding="utf-8",
        )
        (self.config_dir / "empty.yml").write_text("", encoding="utf-8")
        (self.config_dir / "notes.txt").write_text("org: ignored", encoding="utf-8")

        entries = RosterLoader(self.config_dir).load()

        self.assertEqual([e.org for e in entries], ["alpha", "beta"])
        self.assertEqual(entries[0].name, ["one", "two"])
        self.assertEqual(entries[0].nuget_dependency_updates.version_lock.value, "None")
        self.assertFalse(entries[1].is_enabled())

    def test_missing_directory_raises(self) -> None:
        with self.assertRaises(ConfigurationException):
            RosterLoader(self.config_dir / "live").load()

    def test_invalid_yaml_raises(self) -> None:
        (self.config_dir / "bad.yml").write_text("- org: [unclosed\n", encoding="utf-8")

        with self.assertRaises(ConfigurationException):
            RosterLoader(self.config_dir).load()

    def test_disabled_entry_with_stale_settings_does_not_block_loading(self) -> None:
        (self.config_dir / "repos.yml").write_text(
            "- org: acme\n"
            "  name: api\n"
            "  featureConfig:\n"
            "    nugetDependencyUpdates:\n"
            "      enabled: true\n"
            "- org: acme\n"
            "  name: legacy\n"
            "  featureConfig:\n"
            "    nugetDependencyUpdates:\n"
            "      enabled: false\n"
            "      versionLock: Patch\n",
            encoding="utf-8",
        )

        entries = RosterLoader(self.config_dir).load()

        self.assertEqual(len(entries), 2)
        self.assertEqual([e.name for e in entries if e.is_enabled()], [["api"]])

    def test_invalid_record_names_the_file(self) -> None:
        (self.config_dir / "bad.yml").write_text("- name: orphan\n", encoding="utf-8")

        with self.assertRaises(ConfigurationException) as ctx:
            RosterLoader(self.config_dir).load()

        self.assertIn("bad.yml", str(ctx.exception))

    def test_bundled_sample_roster_is_valid(self) -> None:
        entries = RosterLoader(SAMPLE_ROSTER).load()

        self.assertEqual(len(entries), 3)
        self.assertEqual([e.is_enabled() for e in entries], [True, True, False])
        self.assertTrue(entries[1].nuget_dependency_updates.check_only)
