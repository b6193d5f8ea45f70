"""
Registrar and voter client, connected in-process by an EventBus
"""

from .events import EventBus, NETWORK_STATE, ELECTIONS, VOTES
from .registrar import Registrar
from .voter_client import VoterClient, parse_answer, register_cohort

__all__ = [
    'EventBus',
    'NETWORK_STATE',
    'ELECTIONS',
    'VOTES',
    'Registrar',
    'VoterClient',
    'parse_answer',
    'register_cohort',
]
