"""
bcg - BGP policy compiler for route-server and edge router daemons.

Turns a declarative description of BGP relationships into per-session
routing policy with:
- YAML/TOML/JSON peer configuration with validation and normalization
- PeeringDB and bgpq4 based enrichment of peer data
- Ordered, address-family scoped import/export filter programs
- Family-matched RPKI origin validation
- All-or-nothing artifact emission and daemon reconfiguration
"""

__version__ = "0.4.0"
__author__ = "bcg contributors"
