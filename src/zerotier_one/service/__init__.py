"""
zerotier-one service role - supervisor, engine, termination and upgrade hand-off.
"""

from zerotier_one.service.node import Node, ServiceEngine
from zerotier_one.service.pidfile import PidFile
from zerotier_one.service.supervisor import Supervisor, SupervisorState, exit_code_for
from zerotier_one.service.termination import TerminationKind, TerminationReason, TerminationState
from zerotier_one.service.upgrade import ExecReplaceUpgrade, MarkerLineUpgrade, UpgradeStrategy, select_upgrade_strategy

__all__ = [
    "ExecReplaceUpgrade",
    "MarkerLineUpgrade",
    "Node",
    "PidFile",
    "ServiceEngine",
    "Supervisor",
    "SupervisorState",
    "TerminationKind",
    "TerminationReason",
    "TerminationState",
    "UpgradeStrategy",
    "exit_code_for",
    "select_upgrade_strategy",
]
