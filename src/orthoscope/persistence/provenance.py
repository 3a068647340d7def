"""Provenance of orthology index builds.

An ingestion run records the installation scope it was built for, the
OrthoXML source it read and the counts produced by each step. The record
is appended to the ``_provenance`` table, one row per run, and written as
a JSON sidecar next to the database.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import polars as pl
import structlog

if TYPE_CHECKING:
    from orthoscope.config.schema import OrthoscopeConfig
    from orthoscope.persistence.duckdb_store import IndexStore
    from orthoscope.taxonomy import TaxonScopeRegistry

logger = structlog.get_logger()

PROVENANCE_TABLE_NAME = "_provenance"

PROVENANCE_SCHEMA = {
    "orthoscope_version": pl.Utf8,
    "config_hash": pl.Utf8,
    "oma_release": pl.Utf8,
    "uberon_version": pl.Utf8,
    "taxonomy_version": pl.Utf8,
    "species_ids": pl.List(pl.Int64),
    "scope_taxon_count": pl.Int64,
    "source_path": pl.Utf8,
    "source_origin": pl.Utf8,
    "source_origin_version": pl.Utf8,
    "created_at": pl.Utf8,
    "steps_json": pl.Utf8,
}


class ProvenanceTracker:
    """
    Provenance of one ingestion run.

    Attributes:
        version: orthoscope version building the index
        config_hash: Hash of the configuration in effect
        source_versions: OMA release, Uberon and taxonomy versions
        species_ids: Species of the installation scope, sorted
        scope_taxon_count: Number of taxa in the installation scope
        source: OrthoXML path, origin and origin version
        steps: Recorded steps with the counts they produced
    """

    def __init__(self, version: str, config: "OrthoscopeConfig"):
        self.version = version
        self.config_hash = config.config_hash()
        self.source_versions = config.versions.model_dump()
        self.species_ids: tuple[int, ...] = ()
        self.scope_taxon_count = 0
        self.source: dict[str, Optional[str]] = {}
        self.steps: list[dict] = []
        self.created_at = datetime.now(timezone.utc)

    def record_scope(self, registry: "TaxonScopeRegistry") -> None:
        """Record the species and taxa the ingestion keeps groups for."""
        self.species_ids = tuple(sorted(registry.species_ids))
        self.scope_taxon_count = len(registry.scope_taxon_ids())

    def record_source(
        self,
        path: Path,
        origin: Optional[str] = None,
        origin_version: Optional[str] = None,
    ) -> None:
        """Record the OrthoXML file read, with its origin attributes."""
        self.source = {
            "path": str(path),
            "origin": origin,
            "origin_version": origin_version,
        }

    def record_step(self, step_name: str, **counts: int) -> None:
        """
        Record a processing step.

        Args:
            step_name: Name of the processing step
            **counts: Counts produced by the step, e.g. ``record_count=42``
        """
        self.steps.append({
            "step_name": step_name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "counts": counts,
        })
        logger.debug("provenance_step_recorded", step_name=step_name, **counts)

    def create_metadata(self) -> dict:
        return {
            "orthoscope_version": self.version,
            "config_hash": self.config_hash,
            "source_versions": self.source_versions,
            "scope": {
                "species_ids": list(self.species_ids),
                "taxon_count": self.scope_taxon_count,
            },
            "source": self.source,
            "created_at": self.created_at.isoformat(),
            "steps": self.steps,
        }

    def save_sidecar(self, output_path: Path) -> Path:
        """
        Save provenance metadata as a JSON sidecar file.

        Args:
            output_path: Path to the DuckDB database.
                         Sidecar will be saved as {path}.provenance.json

        Returns:
            Path of the written sidecar
        """
        sidecar_path = output_path.with_suffix(".provenance.json")
        sidecar_path.parent.mkdir(parents=True, exist_ok=True)

        with open(sidecar_path, "w") as f:
            json.dump(self.create_metadata(), f, indent=2)
        return sidecar_path

    def to_frame(self) -> pl.DataFrame:
        """One-row DataFrame of this run, in the ``_provenance`` layout."""
        row = {
            "orthoscope_version": self.version,
            "config_hash": self.config_hash,
            "oma_release": self.source_versions.get("oma_release"),
            "uberon_version": self.source_versions.get("uberon_version"),
            "taxonomy_version": self.source_versions.get("taxonomy_version"),
            "species_ids": list(self.species_ids),
            "scope_taxon_count": self.scope_taxon_count,
            "source_path": self.source.get("path"),
            "source_origin": self.source.get("origin"),
            "source_origin_version": self.source.get("origin_version"),
            "created_at": self.created_at.isoformat(),
            "steps_json": json.dumps(self.steps),
        }
        return pl.DataFrame([row], schema=PROVENANCE_SCHEMA)

    def save_to_store(self, store: "IndexStore") -> None:
        """
        Append this run to the ``_provenance`` table of a store.

        Args:
            store: IndexStore instance
        """
        first_run = not store.has_checkpoint(PROVENANCE_TABLE_NAME)
        store.save_dataframe(
            self.to_frame(),
            PROVENANCE_TABLE_NAME,
            "Provenance of orthology ingestion runs",
            replace=first_run,
        )
        logger.info(
            "provenance_saved",
            config_hash=self.config_hash[:16],
            oma_release=self.source_versions.get("oma_release"),
            steps=len(self.steps),
        )

    @classmethod
    def from_config(
        cls,
        config: "OrthoscopeConfig",
        version: Optional[str] = None
    ) -> "ProvenanceTracker":
        """
        Create ProvenanceTracker from an OrthoscopeConfig.

        Args:
            config: OrthoscopeConfig instance
            version: Version string. If None, uses orthoscope.__version__

        Returns:
            ProvenanceTracker instance
        """
        if version is None:
            from orthoscope import __version__
            version = __version__

        return cls(version, config)
