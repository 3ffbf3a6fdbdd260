"""
Artifact emission interface

The compiled model is handed to an ArtifactRenderer that turns it into
text artifacts; ArtifactWriter persists them. The core never depends on
the output format.

Writing is all-or-nothing: every artifact is rendered in memory first, then
written to temporary files in the output directory, and only when all of
them are on disk are stale peer artifacts removed and the new ones renamed
into place.
"""

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Union

from bcg.policy.program import CompiledModel, CompiledPeer
from bcg.utils.error_handling import BCGError, EmissionError


class ArtifactRenderer(ABC):
    """Renders a compiled model into named text artifacts"""

    extension = ".conf"
    global_artifact_name = "bird.conf"

    @abstractmethod
    def render_global(self, model: CompiledModel) -> str:
        """Artifact holding global settings and origin programs"""

    @abstractmethod
    def render_peer(self, peer: CompiledPeer, model: CompiledModel) -> str:
        """Artifact holding one peer's sessions and programs"""

    def peer_artifact_name(self, peer: CompiledPeer) -> str:
        return f"AS{peer.peer.asn}_{peer.name}{self.extension}"

    @property
    def stale_pattern(self) -> str:
        """Glob matching peer artifacts from earlier runs"""
        return f"AS*{self.extension}"


@dataclass
class WriteResult:
    """Result of writing one artifact set"""
    output_dir: str
    written: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    dry_run: bool = False


class ArtifactWriter:
    """Writes rendered artifacts to an output directory as one set"""

    def __init__(self, output_dir: Union[str, Path], dry_run: bool = False):
        self.output_dir = Path(output_dir)
        self.dry_run = dry_run
        self.logger = logging.getLogger(__name__)

    def render(self, model: CompiledModel, renderer: ArtifactRenderer) -> Dict[str, str]:
        """
        Render every artifact in memory

        Returns:
            Mapping of artifact file name to content, global artifact first
        """
        artifacts: Dict[str, str] = {}
        try:
            artifacts[renderer.global_artifact_name] = renderer.render_global(model)
            for peer in model.peers.values():
                name = renderer.peer_artifact_name(peer)
                if name in artifacts:
                    raise EmissionError(f"Two artifacts would be written to {name}", peer=peer.peer.key)
                artifacts[name] = renderer.render_peer(peer, model)
        except BCGError:
            raise
        except Exception as e:
            raise EmissionError(f"Rendering with {type(renderer).__name__} failed",
                                technical_details=str(e))
        return artifacts

    def write(self, model: CompiledModel, renderer: ArtifactRenderer) -> WriteResult:
        """
        Render and persist the artifact set

        Raises:
            EmissionError: rendering or writing failed; the output directory
                is left as it was unless the final renames were under way
        """
        artifacts = self.render(model, renderer)
        result = WriteResult(output_dir=str(self.output_dir), dry_run=self.dry_run)

        if self.dry_run:
            self.logger.info(f"Dry run is enabled, skipped writing {len(artifacts)} artifacts "
                             f"to {self.output_dir}")
            result.written = list(artifacts)
            return result

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise EmissionError(f"Cannot create output directory {self.output_dir}",
                                technical_details=str(e))

        staged = self._stage(artifacts)

        try:
            for stale in sorted(self.output_dir.glob(renderer.stale_pattern)):
                if stale.name not in artifacts:
                    stale.unlink()
                    result.removed.append(stale.name)
                    self.logger.debug(f"Removed stale artifact {stale.name}")

            for name, temp_path in staged.items():
                os.replace(temp_path, self.output_dir / name)
                result.written.append(name)
        except OSError as e:
            self._discard(staged)
            raise EmissionError(f"Cannot install artifacts in {self.output_dir}",
                                technical_details=str(e))

        self.logger.info(f"Wrote {len(result.written)} artifacts to {self.output_dir}"
                         + (f", removed {len(result.removed)} stale" if result.removed else ""))
        return result

    def _stage(self, artifacts: Dict[str, str]) -> Dict[str, str]:
        staged: Dict[str, str] = {}
        try:
            for name, content in artifacts.items():
                with tempfile.NamedTemporaryFile(mode='w', dir=self.output_dir, prefix='.bcg-',
                                                 suffix='.tmp', delete=False) as temp_file:
                    staged[name] = temp_file.name
                    temp_file.write(content)
        except OSError as e:
            self._discard(staged)
            raise EmissionError(f"Cannot write artifacts to {self.output_dir}",
                                technical_details=str(e))
        return staged

    def _discard(self, staged: Dict[str, str]):
        for temp_path in staged.values():
            try:
                os.unlink(temp_path)
            except FileNotFoundError:
                pass
