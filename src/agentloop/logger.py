import logging

logger = logging.getLogger("agentloop")
