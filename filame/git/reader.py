"""Read and parse bundle descriptor files."""

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ..models import PackageBundle

logger = logging.getLogger(__name__)


class BundleReader:
    """Read and parse bundle descriptors."""

    def read_bundle(self, path: Path) -> PackageBundle | None:
        """Read a descriptor file. Returns None if it is missing or corrupt."""
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (yaml.YAMLError, OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read bundle from {path}: {e}")
            return None

        bundle = self.parse_bundle(data)
        if bundle is None:
            logger.warning(f"Invalid bundle descriptor: {path}")
        return bundle

    def read_bundle_str(self, text: str) -> PackageBundle | None:
        """Parse a descriptor from a YAML string."""
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            logger.warning(f"Failed to parse bundle descriptor: {e}")
            return None
        return self.parse_bundle(data)

    def parse_bundle(self, data: Any) -> PackageBundle | None:
        """Validate parsed YAML as a PackageBundle."""
        if not isinstance(data, dict):
            return None
        try:
            return PackageBundle.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Failed to validate bundle: {e}")
            return None
