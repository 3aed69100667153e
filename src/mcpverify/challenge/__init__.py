"""Challenge issuance and the two proof checks (DNS consensus, endpoint handshake)."""

from mcpverify.challenge.consensus import ConsensusResult, ResolverConsensusChecker, ResolverVote
from mcpverify.challenge.endpoint import EndpointProtocolValidator
from mcpverify.challenge.instructions import InstructionRenderer
from mcpverify.challenge.issuer import ChallengeIssuer

__all__ = [
    "ChallengeIssuer",
    "ConsensusResult",
    "EndpointProtocolValidator",
    "InstructionRenderer",
    "ResolverConsensusChecker",
    "ResolverVote",
]
