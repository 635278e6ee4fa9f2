import unittest

from src.domain.exceptions import ConfigurationException
from src.domain.models import VersionLock
from src.infrastructure.acl import OutdatedReportTranslator, RepoConfigTranslator


class TestRepoConfigTranslator(unittest.TestCase):
    def test_to_domain_applies_defaults(self) -> None:
        raw_entry = {
            "org": "acme",
            "name": ["api", "worker"],
            "description": "Application solutions",
            "featureConfig": {"nugetDependencyUpdates": {"enabled": True}},
        }

        entry = RepoConfigTranslator.to_domain(raw_entry)
        settings = entry.nuget_dependency_updates

        self.assertEqual(entry.name, ["api", "worker"])
        self.assertTrue(entry.is_enabled())
        self.assertEqual(settings.solutions_dir, ".")
        self.assertFalse(settings.check_only)
        self.assertEqual(settings.version_lock, VersionLock.MINOR)
        self.assertEqual(settings.exclusions, [])
        self.assertEqual(settings.inclusions, [])

    def test_to_domain_reads_camel_case_settings(self) -> None:
        raw_entry = {
            "org": "acme",
            "name": "api",
            "featureConfig": {
                "nugetDependencyUpdates": {
                    "enabled": True,
                    "solutionsDir": "Solutions",
                    "checkOnly": True,
                    "versionLock": "Major",
                    "exclusions": "Microsoft.",
                    "inclusions": None,
                }
            },
        }

        entry = RepoConfigTranslator.to_domain(raw_entry)
        settings = entry.nuget_dependency_updates

        self.assertEqual(entry.name, ["api"])
        self.assertEqual(entry.description, "")
        self.assertEqual(settings.solutions_dir, "Solutions")
        self.assertTrue(settings.check_only)
        self.assertEqual(settings.version_lock, VersionLock.MAJOR)
        self.assertEqual(settings.exclusions, ["Microsoft."])
        self.assertEqual(settings.inclusions, [])

    def test_missing_feature_is_not_enabled(self) -> None:
        entry = RepoConfigTranslator.to_domain({"org": "acme", "name": ["api"]})

        self.assertIsNone(entry.nuget_dependency_updates)
        self.assertFalse(entry.is_enabled())

    def test_enabled_defaults_to_false(self) -> None:
        entry = RepoConfigTranslator.to_domain(
            {"org": "acme", "name": ["api"], "featureConfig": {"nugetDependencyUpdates": {"solutionsDir": "src"}}}
        )

        self.assertFalse(entry.is_enabled())

    def test_invalid_version_lock_raises(self) -> None:
        raw_entry = {
            "org": "acme",
            "name": ["api"],
            "featureConfig": {"nugetDependencyUpdates": {"enabled": True, "versionLock": "Patch"}},
        }

        with self.assertRaises(ConfigurationException):
            RepoConfigTranslator.to_domain(raw_entry)

    def test_disabled_feature_ignores_invalid_settings(self) -> None:
        raw_entry = {
            "org": "acme",
            "name": ["legacy"],
            "featureConfig": {"nugetDependencyUpdates": {"enabled": False, "versionLock": "Patch", "exclusions": 7}},
        }

        entry = RepoConfigTranslator.to_domain(raw_entry)

        self.assertFalse(entry.is_enabled())
        self.assertEqual(entry.nuget_dependency_updates.version_lock, VersionLock.MINOR)

    def test_enabled_flag_is_still_validated(self) -> None:
        raw_entry = {
            "org": "acme",
            "name": ["api"],
            "featureConfig": {"nugetDependencyUpdates": {"enabled": "sometimes"}},
        }

        with self.assertRaises(ConfigurationException):
            RepoConfigTranslator.to_domain(raw_entry)

    def test_missing_org_or_names_raises(self) -> None:
        with self.assertRaises(ConfigurationException):
            RepoConfigTranslator.to_domain({"name": ["api"]})
        with self.assertRaises(ConfigurationException):
            RepoConfigTranslator.to_domain({"org": "acme", "name": []})

    def test_non_mapping_raises(self) -> None:
        with self.assertRaises(ConfigurationException):
            RepoConfigTranslator.to_domain(["acme", "api"])


class TestOutdatedReportTranslator(unittest.TestCase):
    def test_flattens_projects_and_frameworks(self) -> None:
        raw_report = {
            "Projects": [
                {
                    "Name": "Api",
                    "TargetFrameworks": [
                        {
                            "Name": "net8.0",
                            "Dependencies": [
                                {"Name": "Serilog", "ResolvedVersion": "3.0.1", "LatestVersion": "3.1.1", "UpgradeSeverity": "Minor"},
                                {"Name": "Polly", "ResolvedVersion": "8.0.0", "LatestVersion": "8.2.0", "UpgradeSeverity": "Minor"},
                            ],
                        }
                    ],
                },
                {"Name": "Empty", "TargetFrameworks": []},
            ]
        }

        dependencies = OutdatedReportTranslator.outdated_dependencies(raw_report)

        self.assertEqual([d["package"] for d in dependencies], ["Serilog", "Polly"])
        self.assertEqual(dependencies[0]["project"], "Api")
        self.assertEqual(dependencies[0]["latest_version"], "3.1.1")

    def test_empty_report_has_no_dependencies(self) -> None:
        self.assertEqual(OutdatedReportTranslator.outdated_dependencies({"Projects": []}), [])
        self.assertEqual(OutdatedReportTranslator.outdated_dependencies({}), [])

    def test_non_object_raises(self) -> None:
        with self.assertRaises(ValueError):
            OutdatedReportTranslator.outdated_dependencies([])
