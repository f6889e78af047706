"""Service layer exports."""

from .capabilities import CapabilityService, default_capabilities
from .command_translator import CommandTranslator, RpcCall
from .expiry_sweeper import ExpirySweeper
from .fulfillment import FulfillmentRouter
from .oauth_authority import OAuthAuthority, external_user_id_for
from .skill import SkillService
from .state_query import StateQueryEngine

__all__ = [
    "CapabilityService",
    "CommandTranslator",
    "ExpirySweeper",
    "FulfillmentRouter",
    "OAuthAuthority",
    "RpcCall",
    "SkillService",
    "StateQueryEngine",
    "default_capabilities",
    "external_user_id_for",
]
