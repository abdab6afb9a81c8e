"""Write bundle descriptor files."""

from pathlib import Path

import yaml

from ..models import PackageBundle

DESCRIPTOR_FILENAME = "package.yaml"


class BundleWriter:
    """Write a bundle's descriptor into the repository."""

    def descriptor_path(self, bundle: PackageBundle, repo_root: Path) -> Path:
        """Get ``<repo_root>/<package dir>/package.yaml`` for a bundle."""
        return repo_root / bundle.package_dir / DESCRIPTOR_FILENAME

    def write_bundle(self, bundle: PackageBundle, repo_root: Path) -> Path:
        """Write the descriptor, creating the package directory.

        Raises:
            OSError: If the filesystem write fails.
        """
        path = self.descriptor_path(bundle, repo_root)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            f.write(self.write_bundle_str(bundle))
        return path

    def write_bundle_str(self, bundle: PackageBundle) -> str:
        """Convert bundle to YAML string."""
        data = bundle.model_dump(by_alias=True, mode="json")
        return yaml.dump(
            data,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )
