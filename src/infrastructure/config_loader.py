import logging
from pathlib import Path
from typing import List

import yaml

from src.domain.exceptions import ConfigurationException
from src.domain.models import RepoConfigEntry
from src.infrastructure.acl import RepoConfigTranslator

logger = logging.getLogger(__name__)

ROSTER_PATTERNS = ("*.yml", "*.yaml")


class RosterLoader:
    """
    Loads the repository roster from every YAML file under a configuration directory.
    Files are read in sorted path order; each holds a list of records or a single record.
    """

    def __init__(self, config_directory: Path):
        self.config_directory = Path(config_directory)

    def _roster_files(self) -> List[Path]:
        files = set()
        for pattern in ROSTER_PATTERNS:
            files.update(self.config_directory.rglob(pattern))
        return sorted(files)

    def load(self) -> List[RepoConfigEntry]:
        if not self.config_directory.is_dir():
            raise ConfigurationException(f"Could not find config directory: {self.config_directory}")

        entries: List[RepoConfigEntry] = []
        for path in self._roster_files():
            try:
                with path.open(encoding="utf-8") as f:
                    data = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as e:
                raise ConfigurationException(f"Could not read roster file {path}: {e}") from e

            if data is None:
                continue
            records = data if isinstance(data, list) else [data]
            try:
                entries.extend(RepoConfigTranslator.to_domain(record) for record in records)
            except ConfigurationException as e:
                raise ConfigurationException(f"{path}: {e}") from e

        logger.info(f"Loaded {len(entries)} roster entries from {self.config_directory}.")
        return entries
