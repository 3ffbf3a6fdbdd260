#!/usr/bin/env python3
"""
Pipeline Orchestration - bcg run management

Runs the stages of one compilation in order, each stage fully completing
before the next begins:
1. Load and validate the peer document
2. Enrich peers from PeeringDB and bgpq4
3. Check the enriched configuration and compile filter programs
4. Render and write the artifact set
5. Ask the routing daemon to reconfigure

Any stage failure aborts the run before artifacts are touched.
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..config import load_config, validate, validate_resolved
from ..emission import ArtifactRenderer, ArtifactWriter, BirdControl, JSONRenderer
from ..generators.bgpq4_wrapper import BGPq4Wrapper
from ..models import GlobalConfig
from ..policy import CompiledModel, compile_model
from ..registry import PeeringDBClient
from ..resolver.enrichment import EnrichmentResolver
from ..utils.config import BCGSettings, get_config
from ..utils.logging import LoggingTimer
from ..validators.rpki import RPKIValidator


@dataclass
class PipelineConfig:
    """Pipeline execution configuration"""
    config_path: str
    output_directory: Optional[str] = None   # Falls back to settings
    control_socket: Optional[str] = None     # Falls back to settings
    workers: Optional[int] = None            # Falls back to settings
    dry_run: bool = False
    configure_daemon: bool = True


@dataclass
class PipelineResult:
    """Complete pipeline execution results"""
    success: bool
    peers_compiled: int
    execution_time: float
    output_files: List[str] = field(default_factory=list)
    removed_files: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    reconfigured: bool = False


class BCGPipeline:
    """Complete bcg compilation pipeline orchestrator"""

    def __init__(self, config: PipelineConfig,
                 settings: Optional[BCGSettings] = None,
                 registry=None,
                 prefix_generator=None,
                 renderer: Optional[ArtifactRenderer] = None,
                 control=None,
                 logger: Optional[logging.Logger] = None):
        self.config = config
        self.settings = settings or get_config()
        self.logger = logger or logging.getLogger(__name__)

        # Collaborators are built lazily so check runs never touch the network
        self._registry = registry
        self._prefix_generator = prefix_generator
        self.renderer = renderer or JSONRenderer()
        self._control = control

    @property
    def registry(self):
        if self._registry is None:
            self._registry = PeeringDBClient.from_settings(self.settings.registry)
        return self._registry

    @property
    def prefix_generator(self):
        if self._prefix_generator is None:
            self._prefix_generator = BGPq4Wrapper.from_settings(self.settings.bgpq4)
        return self._prefix_generator

    @property
    def control(self):
        if self._control is None:
            socket_path = self.config.control_socket or self.settings.output.control_socket
            self._control = BirdControl(socket_path)
        return self._control

    @property
    def output_directory(self) -> Path:
        return Path(self.config.output_directory or self.settings.output.output_dir)

    @property
    def workers(self) -> int:
        return self.config.workers or self.settings.output.workers

    def load(self) -> GlobalConfig:
        """Load and validate the peer document"""
        with LoggingTimer(self.logger, "configuration load"):
            config = load_config(self.config.config_path)
            validate(config)
        self.logger.info(f"Loaded {len(config.peers)} peers for AS{config.asn}")
        return config

    def enrich(self, config: GlobalConfig) -> GlobalConfig:
        """Resolve registry data and prefix sets, then check the result"""
        resolver = EnrichmentResolver(self.registry, self.prefix_generator,
                                      irrdb=config.irrdb, max_workers=self.workers)
        with LoggingTimer(self.logger, "peer enrichment"):
            resolver.resolve_all(config)
        validate_resolved(config)
        return config

    def compile(self, config: GlobalConfig) -> CompiledModel:
        with LoggingTimer(self.logger, "policy compilation"):
            return compile_model(config)

    def prepare(self) -> CompiledModel:
        """Load, enrich and compile without emitting anything"""
        return self.compile(self.enrich(self.load()))

    def rpki_validator(self) -> Optional[RPKIValidator]:
        """RPKI validator from settings, or None when no VRP file is configured"""
        if not self.settings.rpki.vrp_path:
            return None
        return RPKIValidator.from_settings(self.settings.rpki)

    def run(self) -> PipelineResult:
        """
        Execute the complete pipeline

        Raises:
            BCGError: from whichever stage failed
        """
        start_time = time.time()

        model = self.prepare()

        writer = ArtifactWriter(self.output_directory, dry_run=self.config.dry_run)
        with LoggingTimer(self.logger, "artifact emission"):
            written = writer.write(model, self.renderer)

        reconfigured = False
        if self.config.dry_run:
            self.logger.info("Dry run is enabled, skipped daemon reconfiguration")
        elif not self.config.configure_daemon:
            self.logger.info("Daemon reconfiguration disabled")
        else:
            self.control.configure()
            reconfigured = True

        warnings = [f"[{peer.name}] {warning}"
                    for peer in model.peers.values()
                    for warning in peer.warnings]

        result = PipelineResult(
            success=True,
            peers_compiled=len(model.peers),
            execution_time=time.time() - start_time,
            output_files=written.written,
            removed_files=written.removed,
            warnings=warnings,
            reconfigured=reconfigured,
        )
        self.logger.info(f"Pipeline completed: {result.peers_compiled} peers compiled "
                         f"in {result.execution_time:.2f}s")
        return result


def run_pipeline(config_path: str,
                 output_dir: Optional[str] = None,
                 dry_run: bool = False,
                 configure_daemon: bool = True,
                 workers: Optional[int] = None) -> PipelineResult:
    """
    Convenience function to run the complete bcg pipeline

    Args:
        config_path: Peer document (YAML, TOML or JSON)
        output_dir: Directory for artifacts, defaults to settings
        dry_run: Compile without writing or reconfiguring
        configure_daemon: Reconfigure BIRD after writing
        workers: Peer enrichment parallelism, defaults to settings

    Returns:
        Pipeline execution results
    """
    config = PipelineConfig(
        config_path=config_path,
        output_directory=output_dir,
        workers=workers,
        dry_run=dry_run,
        configure_daemon=configure_daemon,
    )
    return BCGPipeline(config).run()
