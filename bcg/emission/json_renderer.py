"""
JSON renderer

Daemon-agnostic rendering of the compiled model: one JSON document for the
global settings and one per peer, carrying sessions, programs, flags and
warnings verbatim.
"""

import json

from bcg import __version__
from bcg.emission.interface import ArtifactRenderer
from bcg.policy.program import CompiledModel, CompiledPeer


class JSONRenderer(ArtifactRenderer):

    extension = ".json"
    global_artifact_name = "bcg.json"

    def __init__(self, indent: int = 2):
        self.indent = indent

    def _dump(self, data: dict) -> str:
        return json.dumps(data, indent=self.indent, sort_keys=True) + "\n"

    def render_global(self, model: CompiledModel) -> str:
        return self._dump({
            'generator': f"bcg {__version__}",
            'global': model.global_config.to_dict(),
            'origin': {str(f): p.to_dict() for f, p in sorted(model.origin_programs.items())},
            'peers': [self.peer_artifact_name(peer) for peer in model.peers.values()],
        })

    def render_peer(self, peer: CompiledPeer, model: CompiledModel) -> str:
        data = peer.to_dict()
        data['local_asn'] = model.global_config.asn
        return self._dump(data)
