"""Ben-Or consensus core"""
from .message_store import MessageStore
from .round_machine import RoundStateMachine, NodeConsensusState, NodeStateSnapshot
from .driver import RoundDriver, CancellationToken

__all__ = ['MessageStore', 'RoundStateMachine', 'NodeConsensusState', 'NodeStateSnapshot',
           'RoundDriver', 'CancellationToken']
