"""
Peer document schema

Pydantic models for the on-disk document shape. Keys are kebab-case in the
document (``import-limit4``, ``as-set``). Shape and scalar types are checked
here; policy rules (peer types, address syntax, name collisions) live in
bcg.config.validator so their messages name the offending peer.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from bcg.models import GlobalConfig, PeerConfig, VRRPInstance


def _kebab(name: str) -> str:
    return name.replace("_", "-")


class DocumentModel(BaseModel):
    """Base for document sections: kebab-case keys, unknown keys rejected"""
    model_config = ConfigDict(
        alias_generator=_kebab,
        populate_by_name=True,
        extra="forbid",
    )


class VRRPSchema(DocumentModel):
    state: str
    interface: str
    vrid: int
    priority: int
    vips: List[str] = Field(default_factory=list)

    def to_model(self) -> VRRPInstance:
        return VRRPInstance(
            state=self.state.upper(),
            interface=self.interface,
            vrid=self.vrid,
            priority=self.priority,
            vips=list(self.vips),
        )


class PeerSchema(DocumentModel):
    asn: int = Field(..., gt=0, le=4294967295)
    type: str
    description: str = ""
    as_set: str = ""
    import_limit4: Optional[int] = Field(default=None, ge=0)
    import_limit6: Optional[int] = Field(default=None, ge=0)
    local_pref: int = Field(default=100, ge=0, le=4294967295)
    import_policy: Optional[str] = None
    neighbors: List[str] = Field(default_factory=list)

    disabled: bool = False
    passive: bool = False
    multihop: bool = False
    enforce_first_as: bool = True
    enforce_peer_nexthop: bool = True
    export_default: bool = False
    no_specifics: bool = False
    allow_blackholes: bool = False

    communities: List[str] = Field(default_factory=list)
    large_communities: List[str] = Field(default_factory=list)
    prepends: int = 0

    def to_model(self, key: str) -> PeerConfig:
        # 0 in the document means "derive a default"
        return PeerConfig(
            key=key,
            asn=self.asn,
            type=self.type,
            description=self.description,
            as_set=self.as_set.strip(),
            import_limit4=self.import_limit4 or None,
            import_limit6=self.import_limit6 or None,
            local_pref=self.local_pref,
            import_policy=self.import_policy,
            neighbors=list(self.neighbors),
            disabled=self.disabled,
            passive=self.passive,
            multihop=self.multihop,
            enforce_first_as=self.enforce_first_as,
            enforce_peer_nexthop=self.enforce_peer_nexthop,
            export_default=self.export_default,
            no_specifics=self.no_specifics,
            allow_blackholes=self.allow_blackholes,
            communities=list(self.communities),
            large_communities=list(self.large_communities),
            prepends=self.prepends,
        )


class GlobalSchema(DocumentModel):
    asn: int = Field(..., gt=0, le=4294967295)
    router_id: str
    prefixes: List[str] = Field(default_factory=list)
    irrdb: str = "rr.ntt.net"
    rtr_server: str = ""
    filter_default: bool = False
    pref_src4: str = ""
    pref_src6: str = ""
    merge_paths: bool = False
    enable_default: bool = False
    keep_filtered: bool = False
    vrrp: List[VRRPSchema] = Field(default_factory=list)
    peers: Dict[str, PeerSchema] = Field(default_factory=dict)

    def to_model(self) -> GlobalConfig:
        return GlobalConfig(
            asn=self.asn,
            router_id=self.router_id,
            origin_prefixes=list(self.prefixes),
            irrdb=self.irrdb,
            rtr_server=self.rtr_server,
            filter_default=self.filter_default,
            pref_src4=self.pref_src4,
            pref_src6=self.pref_src6,
            merge_paths=self.merge_paths,
            default_enabled=self.enable_default,
            keep_filtered=self.keep_filtered,
            vrrp_instances=[v.to_model() for v in self.vrrp],
            peers={key: peer.to_model(key) for key, peer in self.peers.items()},
        )
