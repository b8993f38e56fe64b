"""guidewatch: periodic guideline-compliance auditing for project sessions."""

from guidewatch._version import __version__
from guidewatch.auditor import Auditor, build_auditor
from guidewatch.core.config import GuidewatchConfig, load_config
from guidewatch.core.models import RuleId, SessionState
from guidewatch.core.session import load_session, session_from_dict
from guidewatch.ledger.hooks import HookResult

__all__ = [
    "__version__",
    "Auditor",
    "GuidewatchConfig",
    "HookResult",
    "RuleId",
    "SessionState",
    "build_auditor",
    "load_config",
    "load_session",
    "session_from_dict",
]
