from typing import Any, Dict, List, Optional
from pydantic import ValidationError

from src.domain.exceptions import ConfigurationException
from src.domain.models import NUGET_FEATURE, NugetUpdateSettings, RepoConfigEntry


class RepoConfigTranslator:
    """
    Anti-corruption layer that translates raw roster records (as parsed from YAML) into RepoConfigEntry instances.
    """

    @staticmethod
    def to_domain(raw_entry: Dict[str, Any]) -> RepoConfigEntry:
        """
        Transforms a raw roster record into a validated RepoConfigEntry.

        Args:
            raw_entry (Dict[str, Any]): One record from a roster file.

        Returns:
            RepoConfigEntry: The validated configuration entry.

        Raises:
            ConfigurationException: If the record is malformed.
        """
        if not isinstance(raw_entry, dict):
            raise ConfigurationException(f"Roster entries must be mappings, got {type(raw_entry).__name__}.")

        names = raw_entry.get('name')
        if isinstance(names, str):
            names = [names]

        feature_config = raw_entry.get('featureConfig') or {}
        if not isinstance(feature_config, dict):
            raise ConfigurationException(f"featureConfig for '{raw_entry.get('org')}' must be a mapping.")
        nuget_raw = feature_config.get(NUGET_FEATURE)

        try:
            return RepoConfigEntry(
                org=raw_entry.get('org') or '',
                name=names or [],
                description=raw_entry.get('description') or '',
                nuget_dependency_updates=RepoConfigTranslator._nuget_settings(nuget_raw),
            )
        except ValidationError as e:
            raise ConfigurationException(
                f"Invalid roster entry for org '{raw_entry.get('org')}': {e}"
            ) from e

    @staticmethod
    def _nuget_settings(nuget_raw: Any) -> Optional[NugetUpdateSettings]:
        if nuget_raw is None:
            return None
        if isinstance(nuget_raw, dict):
            gate = NugetUpdateSettings.model_validate({'enabled': nuget_raw.get('enabled') or False})
            if not gate.enabled:
                # Other keys of a disabled feature are not validated.
                return gate
        return NugetUpdateSettings.model_validate(nuget_raw)


class OutdatedReportTranslator:
    """
    Reads the JSON report written by dotnet-outdated.
    """

    @staticmethod
    def outdated_dependencies(raw_report: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Flattens the per-project, per-framework report into one record per outdated dependency.
        """
        if not isinstance(raw_report, dict):
            raise ValueError("dotnet-outdated report must be a JSON object.")

        dependencies = []
        for project in raw_report.get('Projects') or []:
            for framework in project.get('TargetFrameworks') or []:
                for dependency in framework.get('Dependencies') or []:
                    dependencies.append({
                        'project': project.get('Name', ''),
                        'framework': framework.get('Name', ''),
                        'package': dependency.get('Name', ''),
                        'resolved_version': dependency.get('ResolvedVersion'),
                        'latest_version': dependency.get('LatestVersion'),
                        'severity': dependency.get('UpgradeSeverity'),
                    })
        return dependencies
