"""
Network state persistence.

Writes the opaque state produced by a network's `serialize()` to the brain
file and keeps a JSON metadata sidecar for tracking.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

from .network import SignalNetwork

logger = logging.getLogger(__name__)


class ModelStore:
    """
    Save and restore network state on the local filesystem.

    A missing brain file on load is not an error: the network keeps its
    current state.
    """

    @staticmethod
    def metadata_path(brain_path: Path) -> Path:
        return brain_path.with_name(brain_path.stem + "_metadata.json")

    def save(
        self,
        network: SignalNetwork,
        brain_path: str,
        metadata: Optional[Dict] = None,
    ) -> str:
        """
        Save network state and metadata to disk.

        Args:
            network: Network to serialize
            brain_path: Destination of the serialized state
            metadata: Training metrics and configuration

        Returns:
            Path to saved state file
        """
        brain_path = Path(brain_path)
        brain_path.parent.mkdir(parents=True, exist_ok=True)

        with open(brain_path, "wb") as f:
            f.write(network.serialize())

        metadata_full = {
            "saved_at": datetime.now().strftime("%Y%m%d_%H%M%S"),
            **(metadata or {}),
        }

        metadata_path = self.metadata_path(brain_path)
        with open(metadata_path, "w") as f:
            json.dump(metadata_full, f, indent=2, default=str)

        logger.info(f"Network state saved to {brain_path}")

        return str(brain_path)

    def load(self, network: SignalNetwork, brain_path: str) -> bool:
        """
        Restore network state from disk.

        Args:
            network: Network to restore into
            brain_path: Path to the serialized state

        Returns:
            True if state was loaded, False if the file does not exist
        """
        brain_path = Path(brain_path)

        if not brain_path.exists():
            logger.info(f"Brain file not found at {brain_path}")
            return False

        with open(brain_path, "rb") as f:
            network.deserialize(f.read())

        logger.info(f"Network state loaded from {brain_path}")

        return True

    def load_metadata(self, brain_path: str) -> Dict:
        """
        Read the metadata sidecar of a brain file.

        Returns:
            Metadata dict, empty if no sidecar exists
        """
        metadata_path = self.metadata_path(Path(brain_path))

        if not metadata_path.exists():
            return {}

        with open(metadata_path, "r") as f:
            return json.load(f)
