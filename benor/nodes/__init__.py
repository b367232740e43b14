"""Node implementations for the consensus network"""
from .consensus_node import ConsensusNode
from .network import Network, launch_network, launch_http_network

__all__ = ['ConsensusNode', 'Network', 'launch_network', 'launch_http_network']
